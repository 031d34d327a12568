"""
Service layer primitives.

ServiceResult wraps the outcome of a service call so that expected failures
(a conversation that does not exist, a sender who is not a participant) are
returned as values with a machine-readable error code, while unexpected
failures (database errors, bugs) keep propagating as exceptions.

Usage:
    from core.services import BaseService, ServiceResult

    class DeliveryOrchestrator(BaseService):
        @classmethod
        def send_message(cls, conversation_id, sender, content):
            gate = ChatAuthorizationService.authorize(conversation_id, sender)
            if not gate:
                return gate

            with cls.atomic():
                message = MessageLedger.create(...)

            cls.get_logger().info(f"Created message {message.id}")
            return ServiceResult.success(message)

    # In a view
    result = DeliveryOrchestrator.send_message(conversation_pk, request.user, content)
    if not result.success:
        return Response(result.to_response(), status=status_for(result.error_code))

Related:
    - core.exceptions: exceptions for unexpected or non-local failures
    - core.exception_handlers: maps exceptions to HTTP responses
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of a service operation.

    Attributes:
        success: Whether the operation succeeded
        data: Result payload when successful
        error: Human-readable error message when failed
        error_code: Machine-readable code (e.g. NOT_FOUND, NOT_PARTICIPANT)
        errors: Optional field-level errors
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result carrying ``data``."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)

        Example:
            return ServiceResult.failure("Chat not found", error_code="NOT_FOUND")
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert a failed result to an API error body.

        Returns:
            {"error": ..., "error_code": ..., "errors": ...}; keys with no
            value are omitted.
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {"error": self.error}
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for stateless service classes.

    Services expose classmethods only. They return ServiceResult for
    expected failures and raise for unexpected ones.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the concrete service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Run the enclosed block in a database transaction.

        Thin wrapper around django.db.transaction.atomic() that keeps
        transaction boundaries visible in service code.
        """
        with transaction.atomic():
            yield
