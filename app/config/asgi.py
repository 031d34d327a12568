"""
ASGI entry point for the chat delivery service.

Routes two protocols:
- http: the Django application (REST API, admin, health check)
- websocket: ChatConsumer at /ws/chat/, the live connection the delivery
  core pushes new messages to

WebSocket connections pass through AllowedHostsOriginValidator and then
JWTAuthMiddleware, which puts the authenticated user on the scope.

Run with an ASGI server, e.g.:
    uvicorn config.asgi:application
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Django must be set up before Channels routing imports models
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import AllowedHostsOriginValidator  # noqa: E402

from chat.middleware import JWTAuthMiddleware  # noqa: E402
from chat.routing import websocket_urlpatterns  # noqa: E402

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "websocket": AllowedHostsOriginValidator(
            JWTAuthMiddleware(URLRouter(websocket_urlpatterns))
        ),
    }
)
