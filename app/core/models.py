"""
Abstract base model shared by the domain apps.

BaseModel gives every table the same pair of audit timestamps. Domain
models (conversations, participants, messages, delivery entries, profiles)
inherit from it instead of declaring their own.

Usage:
    from core.models import BaseModel

    class Conversation(BaseModel):
        last_message_at = models.DateTimeField(null=True)
"""

from __future__ import annotations

from django.db import models


class BaseModel(models.Model):
    """
    Abstract model with creation and modification timestamps.

    Fields:
        created_at: Set once when the row is inserted
        updated_at: Refreshed on every save()

    Note:
        QuerySet.update() bypasses auto_now, so services that issue
        targeted UPDATE statements must set updated_at themselves.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when this record was last modified",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self.pk})"
