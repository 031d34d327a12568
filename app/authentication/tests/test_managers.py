"""
Tests for UserManager.

The manager creates email-identified users and forwards display identity
fields to the Profile created by the post_save signal.

Related files:
    - managers.py: Implementation under test
    - signals.py: Creates the profile the manager writes to
"""

import pytest

from authentication.models import Profile, User


class TestUserManagerCreateUser:
    """Tests for UserManager.create_user() method."""

    def test_creates_user_with_email_and_password(self, db):
        """
        Given valid email and password
        When create_user is called
        Then a user is created with those credentials
        """
        user = User.objects.create_user(
            email="mgr_create_user@example.com", password="SecurePass123!"
        )

        assert user.pk is not None
        assert user.email == "mgr_create_user@example.com"
        assert user.check_password("SecurePass123!") is True

    def test_normalizes_email_domain_to_lowercase(self, db):
        """
        Given an email with uppercase characters in domain
        When create_user is called
        Then the domain portion is normalized to lowercase
        """
        user = User.objects.create_user(
            email="Test.User@EXAMPLE.COM", password="TestPass123!"
        )

        assert user.email == "Test.User@example.com"

    def test_raises_valueerror_when_email_is_empty(self, db):
        with pytest.raises(ValueError) as exc_info:
            User.objects.create_user(email="", password="TestPass123!")

        assert "Email field must be set" in str(exc_info.value)

    def test_creates_user_without_password(self, db):
        """
        Given an email but no password
        When create_user is called
        Then user is created with unusable password
        """
        user = User.objects.create_user(email="nopass@example.com")

        assert user.has_usable_password() is False
        assert user.check_password("") is False

    def test_profile_created_by_signal(self, db):
        """
        Why it matters: message serialization joins sender__profile, so
        every user needs a profile row from the moment it exists.
        """
        user = User.objects.create_user(email="signal@example.com")

        assert Profile.objects.filter(user=user).exists()

    def test_copies_name_fields_onto_profile(self, db):
        user = User.objects.create_user(
            email="named@example.com",
            first_name="Ada",
            last_name="Lovelace",
            profile_picture="https://cdn.example.com/ada.png",
        )

        profile = Profile.objects.get(user=user)
        assert profile.first_name == "Ada"
        assert profile.last_name == "Lovelace"
        assert profile.profile_picture == "https://cdn.example.com/ada.png"
        assert user.get_full_name() == "Ada Lovelace"

    def test_full_name_falls_back_to_email(self, db):
        user = User.objects.create_user(email="anon@example.com")

        assert user.get_full_name() == "anon@example.com"


class TestUserManagerCreateSuperuser:
    """Tests for UserManager.create_superuser() method."""

    def test_sets_staff_and_superuser_flags(self, db):
        admin = User.objects.create_superuser(
            email="admin@example.com", password="AdminPass123!"
        )

        assert admin.is_staff is True
        assert admin.is_superuser is True

    def test_rejects_is_staff_false(self, db):
        with pytest.raises(ValueError, match="is_staff=True"):
            User.objects.create_superuser(
                email="admin2@example.com", password="x", is_staff=False
            )
