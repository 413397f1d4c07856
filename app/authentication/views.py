"""
User directory views.

This module provides API views for:
- Storing the caller's directory record after sign-in
- Listing other users
- Setting the online flag and sending presence heartbeats

Endpoints:
    POST /api/v1/users/store/      - Upsert caller from identity claims
    GET  /api/v1/users/            - Everyone except the caller
    POST /api/v1/users/status/     - Set is_online
    POST /api/v1/users/heartbeat/  - Keep presence alive

Sign-in itself happens at the identity provider; these endpoints only see
its bearer token (see backends.py).

Related files:
    - serializers.py: Request/response serialization
    - services.py: UserDirectoryService
    - urls.py: URL routing
"""

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.serializers import UserSerializer, UserStatusSerializer
from authentication.services import UserDirectoryService


class UserStoreView(APIView):
    """
    Create or refresh the caller's directory record.

    URL: /api/v1/users/store/

    Clients call this once after every sign-in. The response is the
    caller's own record.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Store current user",
        description=(
            "Insert the caller into the directory on first sign-in, or refresh "
            "their name and avatar from the identity token."
        ),
        tags=["Users"],
        request=None,
        responses={200: UserSerializer},
    )
    def post(self, request):
        result = UserDirectoryService.store(request.user)

        if not result.success:
            return Response(
                {"error": result.error, "error_code": result.error_code},
                status=status.HTTP_401_UNAUTHORIZED,
            )

        return Response(UserSerializer(result.data).data)


class UserListView(APIView):
    """
    List every user except the caller.

    URL: /api/v1/users/

    Unauthenticated callers receive an empty list rather than an error.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="List users",
        tags=["Users"],
        responses={200: UserSerializer(many=True)},
    )
    def get(self, request):
        users = UserDirectoryService.get_all(request.user)
        return Response(UserSerializer(users, many=True).data)


class UserStatusView(APIView):
    """
    Set the caller's online flag.

    URL: /api/v1/users/status/

    Request body:
        {"is_online": true}
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="Update online status",
        description="No-op for unauthenticated callers or callers not yet stored.",
        tags=["Users"],
        request=UserStatusSerializer,
        responses={204: OpenApiResponse(description="Status recorded")},
    )
    def post(self, request):
        serializer = UserStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        UserDirectoryService.update_status(
            request.user, serializer.validated_data["is_online"]
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


class HeartbeatView(APIView):
    """
    Presence heartbeat.

    URL: /api/v1/users/heartbeat/

    Clients without a websocket call this periodically so the presence
    expiry task does not mark them offline.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="Presence heartbeat",
        tags=["Users"],
        request=None,
        responses={204: OpenApiResponse(description="Heartbeat recorded")},
    )
    def post(self, request):
        UserDirectoryService.heartbeat(request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
