"""Append-only audit history shared by every tracked entity."""
from __future__ import annotations

import logging
from typing import Any

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

logger = logging.getLogger("logistics")


def actor_id(actor) -> str:
    """Return the stored identity of ``actor`` (a request user or a raw id)."""
    if actor is None:
        return ""
    return str(getattr(actor, "id", actor) or "")


def snapshot(instance, exclude=()) -> dict[str, Any]:
    """Column values of ``instance`` keyed by attribute name."""
    return {
        field.attname: field.value_from_object(instance)
        for field in instance._meta.concrete_fields
        if field.attname not in exclude
    }


class HistoryQuerySet(models.QuerySet):
    def for_entity(self, entity_id, action=None, start=None, end=None):
        qs = self.filter(entity_id=entity_id)
        if action:
            qs = qs.filter(action=action)
        if start is not None:
            qs = qs.filter(performed_at__gte=start)
        if end is not None:
            qs = qs.filter(performed_at__lte=end)
        return qs.order_by("-performed_at", "-id")


class HistoryRecord(models.Model):
    """One state transition of a tracked entity.

    ``entity_id`` is not a foreign key: records outlive the hard delete of
    the entity they describe. Rows are only ever inserted.
    """

    entity_id = models.UUIDField("entity", db_index=True)
    action = models.CharField("action", max_length=32, db_index=True)
    field = models.CharField("field", max_length=100, blank=True, default="", db_index=True)
    old_value = models.JSONField("old value", null=True, blank=True, encoder=DjangoJSONEncoder)
    new_value = models.JSONField("new value", null=True, blank=True, encoder=DjangoJSONEncoder)
    performed_by = models.CharField("performed by", max_length=64, blank=True, default="")
    performed_at = models.DateTimeField("performed at", default=timezone.now, db_index=True)
    reason = models.CharField("reason", max_length=255, blank=True, default="")
    metadata = models.JSONField("metadata", default=dict, blank=True, encoder=DjangoJSONEncoder)

    objects = HistoryQuerySet.as_manager()

    class Meta:
        abstract = True
        ordering = ["-performed_at", "-id"]

    def __str__(self):
        return f"[{self.performed_at}] {self.action} on {self.entity_id}"

    @classmethod
    def record(
        cls,
        entity_id,
        action: str,
        actor,
        *,
        field: str = "",
        old_value: Any = None,
        new_value: Any = None,
        reason: str = "",
        metadata: dict | None = None,
        **extra,
    ):
        entry = cls.objects.create(
            entity_id=entity_id,
            action=action,
            field=field or "",
            old_value=old_value,
            new_value=new_value,
            performed_by=actor_id(actor),
            reason=reason or "",
            metadata=metadata or {},
            **extra,
        )
        logger.debug(
            "%s: %s on %s by %s",
            cls.__name__, action, entity_id, entry.performed_by,
        )
        return entry
