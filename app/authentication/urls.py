"""
URL configuration for authentication app.

URL structure:
    /api/v1/auth/users/    - Directory of other users (GET)
"""

from django.urls import path

from authentication.views import UserDirectoryView

app_name = "authentication"

urlpatterns = [
    path("users/", UserDirectoryView.as_view(), name="user-directory"),
]
