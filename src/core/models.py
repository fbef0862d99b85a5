"""Abstract base models shared by the organisation apps."""
import uuid

from django.db import models
from django.utils import timezone


class TimeStampedModel(models.Model):
    """UUID primary key plus creation / modification timestamps."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField("created at", auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField("updated at", auto_now=True)

    class Meta:
        abstract = True


class ActorStampedModel(models.Model):
    """Identity of the token subject that created / last touched a row.

    Users live in the external auth service, so only their ``sub`` claim is
    stored.
    """

    created_by = models.CharField("created by", max_length=64, blank=True, default="", db_index=True)
    updated_by = models.CharField("updated by", max_length=64, blank=True, default="")

    class Meta:
        abstract = True


class StatusHistoryMixin(models.Model):
    """Keeps an append-only ``status_history`` next to the ``status`` column.

    Concrete models declare their own ``status`` field with domain choices.
    """

    status_history = models.JSONField("status history", default=list, blank=True)

    class Meta:
        abstract = True

    def add_status_history(self, status, reason, actor_id):
        self.status = status
        self.status_history = list(self.status_history or []) + [
            {
                "status": status,
                "reason": reason or "",
                "changed_by": str(actor_id or ""),
                "changed_at": timezone.now().isoformat(),
            }
        ]
