"""Organisation structure models: divisions of a branch and the positions inside them."""
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from core.history import HistoryRecord
from core.hierarchy import HierarchicalModel
from core.models import ActorStampedModel, StatusHistoryMixin, TimeStampedModel


class Division(HierarchicalModel, StatusHistoryMixin, ActorStampedModel, TimeStampedModel):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        RESTRUCTURING = "restructuring", "Restructuring"

    hierarchy_messages = {
        "parent_not_found": "Parent division not found",
        "self_parent": "Division cannot be its own parent",
        "descendant_parent": "Cannot set a descendant as parent",
    }

    code = models.CharField("code", max_length=20, unique=True)
    name = models.CharField("name", max_length=100, db_index=True)
    description = models.CharField("description", max_length=500, blank=True, default="")
    parent = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="children",
        verbose_name="parent division",
    )
    branch = models.ForeignKey(
        "branches.Branch",
        on_delete=models.PROTECT,
        related_name="divisions",
        verbose_name="branch",
    )
    head_position = models.ForeignKey(
        "Position",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="headed_divisions",
        verbose_name="head position",
    )

    # Performance
    kpis = models.JSONField("KPIs", default=list, blank=True)
    metrics_updated_at = models.DateTimeField("metrics updated at", default=timezone.now)

    # Budget
    budget_allocated = models.DecimalField(
        "allocated budget", max_digits=18, decimal_places=2, default=0, validators=[MinValueValidator(0)]
    )
    budget_spent = models.DecimalField(
        "spent budget", max_digits=18, decimal_places=2, default=0, validators=[MinValueValidator(0)]
    )
    budget_remaining = models.DecimalField("remaining budget", max_digits=18, decimal_places=2, default=0)
    budget_currency = models.CharField("currency", max_length=3, default="IDR")
    fiscal_year = models.CharField("fiscal year", max_length=9, blank=True, default="")
    budget_updated_at = models.DateTimeField("budget updated at", default=timezone.now)

    status = models.CharField("status", max_length=20, choices=Status.choices, default=Status.ACTIVE, db_index=True)

    class Meta:
        verbose_name = "division"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["branch", "status"], name="division_branch_status_idx"),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    def recompute_remaining_budget(self):
        self.budget_remaining = self.budget_allocated - self.budget_spent


class Position(HierarchicalModel, StatusHistoryMixin, ActorStampedModel, TimeStampedModel):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        DRAFT = "draft", "Draft"

    hierarchy_parent_field = "reporting_to"
    hierarchy_messages = {
        "parent_not_found": "Reporting position not found",
        "self_parent": "Position cannot report to itself",
        "descendant_parent": "Cannot report to a subordinate position",
    }

    code = models.CharField("code", max_length=20, unique=True)
    title = models.CharField("title", max_length=100, db_index=True)
    description = models.CharField("description", max_length=500, blank=True, default="")
    reporting_to = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="direct_reports",
        verbose_name="reports to",
    )
    division = models.ForeignKey(
        Division,
        on_delete=models.PROTECT,
        related_name="positions",
        verbose_name="division",
    )

    requirements = models.JSONField("requirements", default=dict, blank=True)
    responsibilities = models.JSONField("responsibilities", default=list, blank=True)
    authorities = models.JSONField("authorities", default=list, blank=True)

    # Compensation
    salary_grade = models.CharField("salary grade", max_length=20, db_index=True)
    salary_min = models.DecimalField(
        "minimum salary", max_digits=18, decimal_places=2, validators=[MinValueValidator(0)]
    )
    salary_max = models.DecimalField(
        "maximum salary", max_digits=18, decimal_places=2, validators=[MinValueValidator(0)]
    )
    salary_currency = models.CharField("salary currency", max_length=3, default="IDR")
    benefits = models.JSONField("benefits", default=list, blank=True)

    status = models.CharField("status", max_length=20, choices=Status.choices, default=Status.ACTIVE, db_index=True)

    # Vacancy
    is_vacant = models.BooleanField("vacant", default=True, db_index=True)
    headcount_authorized = models.PositiveIntegerField("authorized headcount", default=1)
    headcount_filled = models.PositiveIntegerField("filled headcount", default=0)

    class Meta:
        verbose_name = "position"
        ordering = ["title"]
        indexes = [
            models.Index(fields=["division", "status"], name="position_division_status_idx"),
        ]

    def __str__(self):
        return f"{self.code} - {self.title}"

    @property
    def headcount(self):
        return {"authorized": self.headcount_authorized, "filled": self.headcount_filled}

    @property
    def vacancy(self):
        return {"is_vacant": self.is_vacant, "headcount": self.headcount}


class DivisionHistory(HistoryRecord):
    class Action(models.TextChoices):
        CREATE = "create", "Create"
        UPDATE = "update", "Update"
        DELETE = "delete", "Delete"
        STATUS_CHANGE = "status_change", "Status change"
        BUDGET_UPDATE = "budget_update", "Budget update"
        KPI_UPDATE = "kpi_update", "KPI update"

    action = models.CharField("action", max_length=32, choices=Action.choices, db_index=True)

    class Meta(HistoryRecord.Meta):
        verbose_name = "division history"
        verbose_name_plural = "division history"
        indexes = [
            models.Index(fields=["entity_id", "performed_at"], name="division_hist_entity_idx"),
        ]


class PositionHistory(HistoryRecord):
    class Action(models.TextChoices):
        CREATE = "create", "Create"
        UPDATE = "update", "Update"
        DELETE = "delete", "Delete"
        STATUS_CHANGE = "status_change", "Status change"
        REPORTING_CHANGE = "reporting_change", "Reporting change"
        VACANCY_CHANGE = "vacancy_change", "Vacancy change"

    action = models.CharField("action", max_length=32, choices=Action.choices, db_index=True)

    class Meta(HistoryRecord.Meta):
        verbose_name = "position history"
        verbose_name_plural = "position history"
        indexes = [
            models.Index(fields=["entity_id", "performed_at"], name="position_hist_entity_idx"),
        ]
