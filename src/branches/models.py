"""Branch network models."""
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from core.history import HistoryRecord
from core.hierarchy import HierarchicalModel
from core.models import ActorStampedModel, StatusHistoryMixin, TimeStampedModel


class Branch(HierarchicalModel, StatusHistoryMixin, ActorStampedModel, TimeStampedModel):
    """Office / hub of the logistics network, arranged as a tree."""

    class Type(models.TextChoices):
        HEADQUARTERS = "headquarters", "Headquarters"
        REGIONAL = "regional", "Regional"
        BRANCH = "branch", "Branch"

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        PENDING = "pending", "Pending"
        CLOSED = "closed", "Closed"

    hierarchy_messages = {
        "parent_not_found": "Parent branch not found",
        "self_parent": "Branch cannot be its own parent",
        "descendant_parent": "Cannot set a descendant as parent (would create a cycle)",
    }

    code = models.CharField("code", max_length=20, unique=True)
    name = models.CharField("name", max_length=100, db_index=True)
    type = models.CharField("type", max_length=20, choices=Type.choices, db_index=True)
    parent = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="children",
        verbose_name="parent branch",
    )

    # Address
    street = models.CharField("street", max_length=200)
    city = models.CharField("city", max_length=100, db_index=True)
    state = models.CharField("state", max_length=100, db_index=True)
    postal_code = models.CharField("postal code", max_length=20)
    country = models.CharField("country", max_length=100, default="Indonesia")
    longitude = models.FloatField("longitude", null=True, blank=True)
    latitude = models.FloatField("latitude", null=True, blank=True)

    # Contact
    phone = models.CharField("phone", max_length=20)
    email = models.EmailField("email")
    fax = models.CharField("fax", max_length=20, blank=True, default="")
    website = models.URLField("website", blank=True, default="")

    # Resources
    employee_count = models.PositiveIntegerField("employees", default=0)
    vehicle_count = models.PositiveIntegerField("vehicles", default=0)
    storage_capacity = models.FloatField("storage capacity", default=0, validators=[MinValueValidator(0)])
    max_daily_packages = models.PositiveIntegerField("max daily packages", default=0)

    # Performance
    monthly_revenue = models.DecimalField(
        "monthly revenue", max_digits=16, decimal_places=2, default=0, validators=[MinValueValidator(0)]
    )
    monthly_packages = models.PositiveIntegerField("monthly packages", default=0)
    customer_satisfaction = models.FloatField(
        "customer satisfaction", default=0, validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    delivery_success_rate = models.FloatField(
        "delivery success rate", default=0, validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    metrics_updated_at = models.DateTimeField("metrics updated at", default=timezone.now)

    status = models.CharField("status", max_length=20, choices=Status.choices, default=Status.ACTIVE, db_index=True)

    class Meta:
        verbose_name = "branch"
        verbose_name_plural = "branches"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["latitude", "longitude"], name="branch_location_idx"),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    @property
    def coordinates(self):
        if self.longitude is None or self.latitude is None:
            return None
        return [self.longitude, self.latitude]


class BranchOperatingHours(models.Model):
    class Day(models.TextChoices):
        MONDAY = "monday", "Monday"
        TUESDAY = "tuesday", "Tuesday"
        WEDNESDAY = "wednesday", "Wednesday"
        THURSDAY = "thursday", "Thursday"
        FRIDAY = "friday", "Friday"
        SATURDAY = "saturday", "Saturday"
        SUNDAY = "sunday", "Sunday"

    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name="operating_hours")
    day = models.CharField("day", max_length=10, choices=Day.choices)
    is_open = models.BooleanField("open", default=True)
    open_time = models.CharField("opens at", max_length=5, default="08:00")
    close_time = models.CharField("closes at", max_length=5, default="17:00")

    class Meta:
        verbose_name = "operating hours"
        verbose_name_plural = "operating hours"
        constraints = [
            models.UniqueConstraint(fields=["branch", "day"], name="uniq_branch_operating_day"),
        ]

    def __str__(self):
        return f"{self.branch_id} {self.day}"


class BranchDocument(TimeStampedModel):
    class Type(models.TextChoices):
        LICENSE = "license", "License"
        PERMIT = "permit", "Permit"
        CERTIFICATE = "certificate", "Certificate"
        CONTRACT = "contract", "Contract"
        OTHER = "other", "Other"

    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name="documents")
    name = models.CharField("name", max_length=100)
    type = models.CharField("type", max_length=20, choices=Type.choices)
    file_url = models.URLField("file URL", max_length=500)
    uploaded_at = models.DateTimeField("uploaded at", default=timezone.now)
    expires_at = models.DateTimeField("expires at", null=True, blank=True)
    is_active = models.BooleanField("active", default=True)

    class Meta:
        verbose_name = "branch document"
        ordering = ["-uploaded_at"]

    def __str__(self):
        return self.name


class BranchHistory(HistoryRecord):
    class Action(models.TextChoices):
        CREATE = "create", "Create"
        UPDATE = "update", "Update"
        DELETE = "delete", "Delete"
        STATUS_CHANGE = "status_change", "Status change"
        RESOURCE_UPDATE = "resource_update", "Resource update"
        PERFORMANCE_UPDATE = "performance_update", "Performance update"
        DOCUMENT_ADD = "document_add", "Document added"
        DOCUMENT_UPDATE = "document_update", "Document updated"
        DOCUMENT_DELETE = "document_delete", "Document deleted"
        OPERATIONAL_HOURS_UPDATE = "operational_hours_update", "Operational hours update"

    action = models.CharField("action", max_length=32, choices=Action.choices, db_index=True)

    class Meta(HistoryRecord.Meta):
        verbose_name = "branch history"
        verbose_name_plural = "branch history"
        indexes = [
            models.Index(fields=["entity_id", "performed_at"], name="branch_hist_entity_idx"),
        ]
