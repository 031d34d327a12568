"""
Authentication application.

Owns the user identity that the chat domain builds on. Token issuance
(login, registration) is handled outside this service; requests arrive with
a simplejwt access token.

Key components:
    - User model: Custom email-based user with a UUID primary key
    - Profile model: Display identity (name, profile picture)
    - UserDirectoryView: Lists the other users a client can chat with

Usage:
    from authentication.models import User, Profile
    from authentication.serializers import UserSerializer
"""
