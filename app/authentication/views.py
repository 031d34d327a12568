"""
Authentication views.

This module provides API views for:
- The user directory a client uses to start chats

Related files:
    - serializers.py: UserSerializer
    - urls.py: URL routing

Note:
    Token issuance is not handled here. Requests authenticate with a
    simplejwt bearer token or a Django session.
"""

from drf_spectacular.utils import extend_schema
from rest_framework.generics import ListAPIView
from rest_framework.permissions import IsAuthenticated

from authentication.models import User
from authentication.serializers import UserSerializer


@extend_schema(
    summary="List other users",
    description=(
        "Return every active user except the caller, with their display "
        "identity. Credentials are never included."
    ),
    tags=["Auth - Users"],
    responses={200: UserSerializer(many=True)},
)
class UserDirectoryView(ListAPIView):
    """
    API view for the user directory.

    GET: All active users other than the requester

    URL: /api/v1/auth/users/
    """

    permission_classes = [IsAuthenticated]
    serializer_class = UserSerializer
    pagination_class = None

    def get_queryset(self):
        return (
            User.objects.filter(is_active=True)
            .exclude(pk=self.request.user.pk)
            .select_related("profile")
            .order_by("email")
        )
