"""
URL configuration for the user directory.

All endpoints are prefixed with /api/v1/users/ (configured in config/urls.py).
"""

from django.urls import path

from authentication import views

app_name = "authentication"

urlpatterns = [
    path("", views.UserListView.as_view(), name="user-list"),
    path("store/", views.UserStoreView.as_view(), name="user-store"),
    path("status/", views.UserStatusView.as_view(), name="user-status"),
    # Presence keep-alive for clients without a websocket
    path("heartbeat/", views.HeartbeatView.as_view(), name="user-heartbeat"),
]
