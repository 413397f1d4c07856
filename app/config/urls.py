"""
URL configuration for the chat backend.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/users/                 - User directory
        store/                     - Upsert the caller's record
        status/                    - Set online/offline
        heartbeat/                 - Refresh presence
    /api/v1/chat/                  - Chat endpoints
        conversations/direct/      - Get or create a direct conversation
        conversations/group/       - Create a group conversation
        conversations/{id}/messages/ - Message list/send
        conversations/{id}/typing/ - Typing indicator get/set
        conversations/{id}/read/   - Mark conversation as read
        messages/{id}/             - Message delete
        messages/{id}/reactions/toggle/ - Toggle a reaction
        sidebar/                   - Sidebar entries for the caller

WebSocket routes live in chat/routing.py (ws/live/).

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    # User directory
    path("users/", include("authentication.urls")),
    # Chat
    path("chat/", include("chat.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Chat Admin"
admin.site.site_title = "Chat Admin Portal"
admin.site.index_title = "Users and conversations"
