"""
API views for chat.

This module provides REST API endpoints for the chat system:
- Conversation creation (direct get-or-create, groups)
- Messages (list, send, delete, reaction toggle)
- Typing indicators and read receipts
- Sidebar

URL Structure:
    /api/v1/chat/conversations/direct/                   POST
    /api/v1/chat/conversations/group/                    POST
    /api/v1/chat/conversations/{id}/messages/            GET, POST
    /api/v1/chat/conversations/{id}/typing/              GET, POST
    /api/v1/chat/conversations/{id}/read/                POST
    /api/v1/chat/messages/{id}/                          DELETE
    /api/v1/chat/messages/{id}/reactions/toggle/         POST
    /api/v1/chat/sidebar/                                GET

Authentication:
    Mutations that create data require a caller identity (401 otherwise).
    Presence-style mutations (typing, read) silently do nothing for
    anonymous callers, and queries return an empty list.

Design Decisions:
    - Views are thin: they parse input, call a service, shape the output
    - Service failures map to 404 (*_NOT_FOUND), 403 (NOT_PARTICIPANT,
      PERMISSION_DENIED) or 400 (everything else)
    - The same queries are available as live subscriptions over the
      websocket (see consumers.py)
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from authentication.identity import get_caller_id
from chat.serializers import (
    ConversationIdSerializer,
    DirectConversationCreateSerializer,
    GroupConversationCreateSerializer,
    MessageCreateSerializer,
    MessageSerializer,
    ReactionToggleResponseSerializer,
    ReactionToggleSerializer,
    SidebarEntrySerializer,
    TypingSetSerializer,
)
from chat.services import (
    ConversationService,
    MessageService,
    ReactionService,
    ReadReceiptService,
    SidebarService,
    TypingService,
)
from core.services import ServiceResult

FORBIDDEN_ERROR_CODES = {"NOT_PARTICIPANT", "PERMISSION_DENIED"}


def failure_response(result: ServiceResult) -> Response:
    """Translate a failed ServiceResult into an error response."""
    code = result.error_code or ""
    if code.endswith("_NOT_FOUND"):
        status_code = status.HTTP_404_NOT_FOUND
    elif code in FORBIDDEN_ERROR_CODES:
        status_code = status.HTTP_403_FORBIDDEN
    else:
        status_code = status.HTTP_400_BAD_REQUEST

    body = {"error": result.error, "error_code": result.error_code}
    if result.errors:
        body["errors"] = result.errors
    return Response(body, status=status_code)


class ReadOpenWriteAuthenticatedMixin:
    """GET is open to anonymous callers (empty result), writes need identity."""

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAuthenticated()]


# =============================================================================
# Conversation Registry
# =============================================================================


class DirectConversationView(APIView):
    """
    Get or create the direct conversation with another user.

    URL: /api/v1/chat/conversations/direct/

    Idempotent: repeated calls (from either user) return the same id.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_or_create_direct_conversation",
        summary="Get or create direct conversation",
        tags=["Chat - Conversations"],
        request=DirectConversationCreateSerializer,
        responses={
            200: ConversationIdSerializer,
            400: OpenApiResponse(description="SAME_USER"),
            404: OpenApiResponse(description="USER_NOT_FOUND"),
        },
    )
    def post(self, request):
        serializer = DirectConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConversationService.get_or_create_direct(
            get_caller_id(request.user),
            serializer.validated_data["other_user_id"],
        )
        if not result.success:
            return failure_response(result)

        return Response({"conversation_id": result.data.id})


class GroupConversationView(APIView):
    """
    Create a group conversation.

    URL: /api/v1/chat/conversations/group/

    Request body:
        {"participant_ids": ["user_b", "user_c"], "group_name": "Team"}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_group_conversation",
        summary="Create group conversation",
        tags=["Chat - Conversations"],
        request=GroupConversationCreateSerializer,
        responses={
            201: ConversationIdSerializer,
            400: OpenApiResponse(
                description="GROUP_NAME_REQUIRED, MEMBERS_REQUIRED or GROUP_TOO_LARGE"
            ),
            404: OpenApiResponse(description="USER_NOT_FOUND"),
        },
    )
    def post(self, request):
        serializer = GroupConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConversationService.create_group(
            get_caller_id(request.user),
            serializer.validated_data["participant_ids"],
            serializer.validated_data["group_name"],
        )
        if not result.success:
            return failure_response(result)

        return Response(
            {"conversation_id": result.data.id}, status=status.HTTP_201_CREATED
        )


# =============================================================================
# Message Store
# =============================================================================


class ConversationMessagesView(ReadOpenWriteAuthenticatedMixin, APIView):
    """
    Messages of a conversation.

    URL: /api/v1/chat/conversations/{id}/messages/

    GET: All messages in creation order with reaction groups
    POST: Send a message (throttled by the "messages" scope)
    """

    throttle_scope = "messages"

    def get_throttles(self):
        if self.request.method == "POST":
            return [ScopedRateThrottle()]
        return []

    @extend_schema(
        operation_id="list_messages",
        summary="List messages",
        tags=["Chat - Messages"],
        responses={200: MessageSerializer(many=True)},
    )
    def get(self, request, conversation_pk):
        caller_id = get_caller_id(request.user)
        if caller_id is None:
            return Response([])

        result = MessageService.list_messages(caller_id, conversation_pk)
        if not result.success:
            return failure_response(result)

        serializer = MessageSerializer(
            result.data, many=True, context={"caller_id": caller_id}
        )
        return Response(serializer.data)

    @extend_schema(
        operation_id="send_message",
        summary="Send message",
        tags=["Chat - Messages"],
        request=MessageCreateSerializer,
        responses={
            201: MessageSerializer,
            400: OpenApiResponse(description="EMPTY_CONTENT or CONTENT_TOO_LONG"),
            403: OpenApiResponse(description="NOT_PARTICIPANT"),
            404: OpenApiResponse(description="CONVERSATION_NOT_FOUND"),
        },
    )
    def post(self, request, conversation_pk):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        caller_id = get_caller_id(request.user)
        result = MessageService.send(
            caller_id, conversation_pk, serializer.validated_data["text"]
        )
        if not result.success:
            return failure_response(result)

        return Response(
            MessageSerializer(result.data, context={"caller_id": caller_id}).data,
            status=status.HTTP_201_CREATED,
        )


class MessageDetailView(APIView):
    """
    Delete a message.

    URL: /api/v1/chat/messages/{id}/

    Soft delete; only the sender may delete.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="delete_message",
        summary="Delete message",
        tags=["Chat - Messages"],
        responses={
            204: OpenApiResponse(description="Message deleted"),
            403: OpenApiResponse(description="PERMISSION_DENIED"),
            404: OpenApiResponse(description="MESSAGE_NOT_FOUND"),
        },
    )
    def delete(self, request, pk):
        result = MessageService.remove(get_caller_id(request.user), pk)
        if not result.success:
            return failure_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)


class MessageReactionToggleView(APIView):
    """
    Toggle the caller's reaction on a message.

    URL: /api/v1/chat/messages/{id}/reactions/toggle/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="toggle_reaction",
        summary="Toggle reaction",
        tags=["Chat - Reactions"],
        request=ReactionToggleSerializer,
        responses={200: ReactionToggleResponseSerializer},
    )
    def post(self, request, pk):
        serializer = ReactionToggleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ReactionService.toggle_reaction(
            get_caller_id(request.user), pk, serializer.validated_data["emoji"]
        )
        if not result.success:
            return failure_response(result)

        return Response(result.data)


# =============================================================================
# Typing and read receipts
# =============================================================================


class TypingView(APIView):
    """
    Typing indicators of a conversation.

    URL: /api/v1/chat/conversations/{id}/typing/

    GET: Names of other users typing now
    POST: Set the caller's typing state (no-op for anonymous callers)
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="list_typing_users",
        summary="Who is typing",
        tags=["Chat - Typing"],
        responses={200: OpenApiResponse(description="List of display names")},
    )
    def get(self, request, conversation_pk):
        caller_id = get_caller_id(request.user)
        if caller_id is None:
            return Response([])

        result = TypingService.get_active(caller_id, conversation_pk)
        if not result.success:
            return failure_response(result)

        return Response(result.data)

    @extend_schema(
        operation_id="set_typing",
        summary="Set typing state",
        tags=["Chat - Typing"],
        request=TypingSetSerializer,
        responses={
            204: OpenApiResponse(description="Typing state recorded"),
            403: OpenApiResponse(description="NOT_PARTICIPANT"),
        },
    )
    def post(self, request, conversation_pk):
        serializer = TypingSetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        caller_id = get_caller_id(request.user)
        if caller_id is None:
            return Response(status=status.HTTP_204_NO_CONTENT)

        result = TypingService.set_typing(
            caller_id, conversation_pk, serializer.validated_data["is_typing"]
        )
        if not result.success:
            return failure_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)


class MarkReadView(APIView):
    """
    Mark a conversation as read.

    URL: /api/v1/chat/conversations/{id}/read/

    Clients call this when a conversation is opened and whenever its
    message list changes while open.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation read",
        tags=["Chat - Read Receipts"],
        request=None,
        responses={204: OpenApiResponse(description="Receipt recorded")},
    )
    def post(self, request, conversation_pk):
        caller_id = get_caller_id(request.user)
        if caller_id is not None:
            ReadReceiptService.mark_read(caller_id, conversation_pk)

        return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Sidebar
# =============================================================================


class SidebarView(APIView):
    """
    Sidebar of the caller.

    URL: /api/v1/chat/sidebar/

    One entry per other user and per group, newest activity first.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="get_sidebar",
        summary="Sidebar data",
        tags=["Chat - Sidebar"],
        responses={200: SidebarEntrySerializer(many=True)},
    )
    def get(self, request):
        caller_id = get_caller_id(request.user)
        if caller_id is None:
            return Response([])

        entries = SidebarService.get_sidebar_data(caller_id)
        return Response(SidebarEntrySerializer(entries, many=True).data)
