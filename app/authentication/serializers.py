"""
Serializers for authentication models.

Related files:
    - models.py: User and Profile models
    - views.py: UserDirectoryView
    - chat/serializers.py: Reuses UserSerializer for message senders

Security:
    - The password hash and permission flags are never serialized
"""

from rest_framework import serializers

from authentication.models import Profile, User


class UserSerializer(serializers.ModelSerializer):
    """
    Public identity of a user (read only).

    Used for the user directory and as the ``sender`` of every message, so
    it must only read fields reachable through select_related("profile").
    """

    full_name = serializers.SerializerMethodField()
    profile_picture = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "full_name",
            "profile_picture",
        ]
        read_only_fields = fields

    def get_full_name(self, obj):
        """Return the user's full name from profile."""
        return obj.get_full_name()

    def get_profile_picture(self, obj):
        """Return the avatar URL, or None when unset."""
        try:
            return obj.profile.profile_picture or None
        except Profile.DoesNotExist:
            return None
