"""
Core Application - Infrastructure & Base Classes

Shared building blocks used by the domain apps (authentication, chat).
Nothing in here knows about users, conversations or messages.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - SoftDeleteMixin: Soft delete support (is_deleted, deleted_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError: Input validation failures
    - NotFoundError: Resource not found
    - PermissionDeniedError: Caller may not access the resource

Realtime (import from core.realtime):
    - publish: Send live query invalidations after commit
    - conversation_group, user_group, DIRECTORY_GROUP: Channel group names

Views (import from core.views):
    - health_check: Liveness/readiness endpoint

Usage:
    from core.models import BaseModel
    from core.model_mixins import SoftDeleteMixin
    from core.services import BaseService, ServiceResult
    from core.exceptions import ValidationError, NotFoundError
"""
