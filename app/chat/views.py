"""
ViewSets for chat API.

This module provides REST API endpoints for the chat system:
- MessageViewSet: Message history and sending (nested under conversation)

URL Structure:
    /api/v1/chat/conversations/{id}/messages/            GET, POST

Design Decisions:
    - Authorization is the service-level membership gate, so GET and POST
      answer 404/403 identically
    - Sending goes through DeliveryOrchestrator; the view only validates
      the body and renders the result
    - History is returned in full, oldest first
"""

from __future__ import annotations

from drf_spectacular.utils import (
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)
from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from chat.authorization import ChatAuthorizationService
from chat.ledger import MessageLedger
from chat.serializers import MessageCreateSerializer, MessageSerializer
from chat.services import DeliveryOrchestrator

ERROR_STATUS = {
    ChatAuthorizationService.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ChatAuthorizationService.NOT_PARTICIPANT: status.HTTP_403_FORBIDDEN,
}


def error_response(result) -> Response:
    """Render a failed ServiceResult with the status its error code maps to."""
    return Response(
        result.to_response(),
        status=ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST),
    )


@extend_schema_view(
    list=extend_schema(
        operation_id="list_messages",
        summary="List messages",
        description=(
            "All messages in the conversation, oldest first, with sender "
            "identity and per-recipient delivery status."
        ),
        tags=["Chat - Messages"],
        responses={
            200: MessageSerializer(many=True),
            403: OpenApiResponse(description="Not a participant in this chat"),
            404: OpenApiResponse(description="Chat not found"),
        },
    ),
    create=extend_schema(
        operation_id="send_message",
        summary="Send message",
        description=(
            "Persist a message, push it to connected recipients and return it "
            "with its final delivery status. Requires text, image or file."
        ),
        tags=["Chat - Messages"],
        request=MessageCreateSerializer,
        responses={
            201: MessageSerializer,
            400: OpenApiResponse(description="Empty or invalid message body"),
            403: OpenApiResponse(description="Not a participant in this chat"),
            404: OpenApiResponse(description="Chat not found"),
        },
    ),
)
class MessageViewSet(viewsets.GenericViewSet):
    """
    ViewSet for message operations within a conversation.

    list:
        Get all messages in the conversation.

    create:
        Send a message to the conversation.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = MessageSerializer

    def get_serializer_class(self):
        """Return appropriate serializer based on action."""
        if self.action == "create":
            return MessageCreateSerializer
        return MessageSerializer

    def list(self, request, conversation_pk=None):
        gate = ChatAuthorizationService.authorize(conversation_pk, request.user)
        if not gate.success:
            return error_response(gate)

        messages = MessageLedger.list_for_conversation(gate.data)
        serializer = MessageSerializer(messages, many=True)
        return Response(serializer.data)

    def create(self, request, conversation_pk=None):
        # Membership is checked before the body so a stranger learns nothing
        # about validation rules of a chat they cannot post to
        gate = ChatAuthorizationService.authorize(conversation_pk, request.user)
        if not gate.success:
            return error_response(gate)

        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = DeliveryOrchestrator.send_message(
            conversation_id=conversation_pk,
            sender=request.user,
            content=serializer.to_content(),
        )
        if not result.success:
            return error_response(result)

        return Response(
            MessageSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )
