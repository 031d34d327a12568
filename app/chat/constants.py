"""
Constants and configuration for the chat delivery core.

This module centralizes configuration values for:
- Message content limits
- Real-time fan-out (push timeouts, event names)
- The presence registry in Redis
- Analytics stream records

Deployment-specific values (stream key, stream length, Redis timeouts) are
read from Django settings where noted.

Import example:
    from chat.constants import DELIVERY_CONFIG, PRESENCE_CONFIG
"""

from typing import Final


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message content."""

    MAX_TEXT_LENGTH: Final[int] = 10000  # Characters
    MAX_FILE_NAME_LENGTH: Final[int] = 255

    # Storage tag recorded when a file descriptor does not name one
    DEFAULT_FILE_STORAGE: Final[str] = "s3"


# =============================================================================
# Delivery Configuration
# =============================================================================


class DELIVERY_CONFIG:
    """Configuration for real-time fan-out."""

    # Upper bound for one recipient during fan-out (presence lookup plus
    # push), and for each push during catch-up
    PUSH_TIMEOUT_SECONDS: Final[float] = 2.0

    # Channel layer event type; handled by ChatConsumer.chat_new_message
    PUSH_EVENT_TYPE: Final[str] = "chat.new_message"

    # Frame type seen by WebSocket clients
    CLIENT_EVENT_TYPE: Final[str] = "new_message"

    # Upper bound on messages replayed to one user on reconnect
    MAX_PENDING_PER_CATCHUP: Final[int] = 500


# =============================================================================
# Presence Configuration
# =============================================================================


class PRESENCE_CONFIG:
    """Configuration for the connection registry."""

    # Registry entries expire unless refreshed by a heartbeat; clients are
    # expected to send one every 30 seconds
    CONNECTION_TTL_SECONDS: Final[int] = 90

    # Redis key prefix; full key is "<prefix>:<user_id>"
    KEY_PREFIX_CONNECTION: Final[str] = "presence:channel"


# =============================================================================
# Analytics Configuration
# =============================================================================


class ANALYTICS_CONFIG:
    """
    Configuration for message analytics records.

    Stream key and max length come from settings.CHAT_ANALYTICS_STREAM and
    settings.CHAT_ANALYTICS_STREAM_MAXLEN; these are the fallbacks.
    """

    DEFAULT_STREAM: Final[str] = "chat:messages"
    DEFAULT_MAXLEN: Final[int] = 100000

    # Stream values are strings; booleans are encoded as these literals
    TRUE: Final[str] = "true"
    FALSE: Final[str] = "false"
    NO_FILE_TYPE: Final[str] = "none"
