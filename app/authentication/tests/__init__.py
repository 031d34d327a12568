"""
Tests for authentication app.

This package contains test modules for:
- test_managers.py: UserManager and profile creation
- test_views.py: User directory endpoint

Usage:
    pytest app/authentication/tests/
"""
