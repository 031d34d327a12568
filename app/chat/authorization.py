"""
Service-level authorization for chat operations.

This module gates every read and write on a conversation. It is distinct
from DRF permission classes, which only establish that the request is
authenticated.

Key Components:
    ChatAuthorizationService: Stateless service class with the membership gate

Error Codes:
    NOT_FOUND: Conversation does not exist
    NOT_PARTICIPANT: User is not a participant in the conversation

Usage:
    gate = ChatAuthorizationService.authorize(conversation_id, request.user)
    if not gate.success:
        return Response(gate.to_response(), status=status_for(gate.error_code))
    conversation = gate.data  # participants already prefetched
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.services import ServiceResult

if TYPE_CHECKING:
    from authentication.models import User
    from chat.models import Conversation


class ChatAuthorizationService:
    """
    Stateless membership checks for chat operations.

    Methods never write; calling them twice gives the same answer as long as
    membership does not change in between.
    """

    NOT_FOUND = "NOT_FOUND"
    NOT_PARTICIPANT = "NOT_PARTICIPANT"

    @classmethod
    def authorize(
        cls,
        conversation_id: int,
        user: "User",
    ) -> ServiceResult["Conversation"]:
        """
        Check that the conversation exists and the user belongs to it.

        Args:
            conversation_id: ID of the conversation
            user: User attempting the operation

        Returns:
            ServiceResult with the conversation (participants prefetched in
            join order) on success, or a failure with NOT_FOUND /
            NOT_PARTICIPANT.
        """
        from chat.models import Conversation

        try:
            conversation = Conversation.objects.prefetch_related(
                "participants"
            ).get(pk=conversation_id)
        except (Conversation.DoesNotExist, ValueError, TypeError):
            return ServiceResult.failure(
                "Chat not found",
                error_code=cls.NOT_FOUND,
            )

        if user.pk not in conversation.participant_ids():
            return ServiceResult.failure(
                "You are not a participant in this chat",
                error_code=cls.NOT_PARTICIPANT,
            )

        return ServiceResult.success(conversation)
