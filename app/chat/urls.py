"""
URL configuration for chat API.

URL Structure:
    Messages:
        /conversations/{id}/messages/            GET, POST

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.urls import path

from chat.views import MessageViewSet

app_name = "chat"

urlpatterns = [
    path(
        "conversations/<int:conversation_pk>/messages/",
        MessageViewSet.as_view({"get": "list", "post": "create"}),
        name="conversation-message-list",
    ),
]
