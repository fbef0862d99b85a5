"""Service-area models: polygon coverage zones served by branches."""
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from core import geo
from core.history import HistoryRecord
from core.models import ActorStampedModel, TimeStampedModel


BOUNDS_FIELDS = ("min_longitude", "min_latitude", "max_longitude", "max_latitude")


class ServiceAreaQuerySet(models.QuerySet):
    def active(self):
        return self.filter(status=ServiceArea.Status.ACTIVE)

    def covering_box(self, min_lon, min_lat, max_lon, max_lat):
        """Rows whose stored bounding box meets the given box."""
        return self.filter(
            min_longitude__lte=max_lon,
            max_longitude__gte=min_lon,
            min_latitude__lte=max_lat,
            max_latitude__gte=min_lat,
        )

    def find_containing_areas(self, point):
        """Active areas whose boundary contains ``point`` (``[lon, lat]``).

        Returns ``(area, distance_km, within_coverage_radius)`` tuples.
        """
        lon, lat = float(point[0]), float(point[1])
        matches = []
        for area in self.active().covering_box(lon, lat, lon, lat):
            if area.contains_point(point):
                distance = area.distance_from_center(point)
                matches.append((area, distance, distance <= area.coverage_radius))
        return matches

    def find_nearby(self, point, max_distance_km):
        """Active areas whose centre lies within ``max_distance_km``, nearest first."""
        min_lon, min_lat, max_lon, max_lat = geo.search_box(point, max_distance_km)
        candidates = self.active().filter(center_latitude__gte=min_lat, center_latitude__lte=max_lat)
        if min_lon is not None:
            candidates = candidates.filter(center_longitude__gte=min_lon, center_longitude__lte=max_lon)
        found = []
        for area in candidates:
            distance = area.distance_from_center(point)
            if distance <= max_distance_km:
                found.append((area, distance))
        found.sort(key=lambda pair: pair[1])
        return found

    def detect_overlaps(self, area):
        """Other active areas whose boundary intersects ``area``."""
        box = geo.bounds(area.boundaries)
        if box is None:
            return []
        candidates = self.active().covering_box(*box)
        if area.pk:
            candidates = candidates.exclude(pk=area.pk)
        return [other for other in candidates if area.intersects(other)]


class ServiceArea(ActorStampedModel, TimeStampedModel):
    class Type(models.TextChoices):
        DELIVERY = "delivery", "Delivery"
        PICKUP = "pickup", "Pickup"
        BOTH = "both", "Both"

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        PENDING = "pending", "Pending"

    name = models.CharField("name", max_length=100, db_index=True)
    code = models.CharField("code", max_length=20, unique=True)
    description = models.CharField("description", max_length=500, blank=True, default="")
    boundaries = models.JSONField("boundaries")
    center_longitude = models.FloatField("center longitude")
    center_latitude = models.FloatField("center latitude")
    # Bounding box of the outer ring, kept in step with boundaries on save.
    min_longitude = models.FloatField("min longitude", null=True, editable=False)
    min_latitude = models.FloatField("min latitude", null=True, editable=False)
    max_longitude = models.FloatField("max longitude", null=True, editable=False)
    max_latitude = models.FloatField("max latitude", null=True, editable=False)
    coverage_radius = models.FloatField("coverage radius (km)", default=0, validators=[MinValueValidator(0)])
    type = models.CharField("type", max_length=10, choices=Type.choices, default=Type.BOTH, db_index=True)

    # Pricing
    base_price = models.DecimalField("base price", max_digits=14, decimal_places=2, default=0)
    price_per_km = models.DecimalField("price per km", max_digits=14, decimal_places=2, default=0)
    minimum_distance = models.FloatField("minimum distance", default=0)
    maximum_distance = models.FloatField("maximum distance", default=0)
    special_rates = models.JSONField("special rates", default=list, blank=True)

    status = models.CharField("status", max_length=10, choices=Status.choices, default=Status.ACTIVE, db_index=True)
    metadata = models.JSONField("metadata", default=dict, blank=True)

    branches = models.ManyToManyField(
        "branches.Branch",
        through="ServiceAreaBranch",
        related_name="service_areas",
        blank=True,
    )

    objects = ServiceAreaQuerySet.as_manager()

    class Meta:
        verbose_name = "service area"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status", "type"], name="service_area_status_type_idx"),
            models.Index(
                fields=["min_longitude", "max_longitude", "min_latitude", "max_latitude"],
                name="service_area_bbox_idx",
            ),
            models.Index(fields=["center_latitude", "center_longitude"], name="service_area_center_idx"),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    def save(self, *args, **kwargs):
        box = geo.bounds(self.boundaries)
        self.min_longitude, self.min_latitude, self.max_longitude, self.max_latitude = box or (None,) * 4
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "boundaries" in update_fields:
            kwargs["update_fields"] = {*update_fields, *BOUNDS_FIELDS}
        super().save(*args, **kwargs)

    @property
    def center(self):
        return [self.center_longitude, self.center_latitude]

    @center.setter
    def center(self, value):
        self.center_longitude, self.center_latitude = float(value[0]), float(value[1])

    def contains_point(self, point) -> bool:
        return geo.point_in_polygon(point, self.boundaries)

    def distance_from_center(self, point) -> float:
        return geo.distance_from_center(self.center, point)

    def intersects(self, other) -> bool:
        return geo.polygons_intersect(self.boundaries, other.boundaries)


class ServiceAreaBranch(models.Model):
    """Assignment of a branch to a service area; at most one primary per area."""

    service_area = models.ForeignKey(ServiceArea, on_delete=models.CASCADE, related_name="assignments")
    branch = models.ForeignKey("branches.Branch", on_delete=models.CASCADE, related_name="service_area_assignments")
    assigned_at = models.DateTimeField("assigned at", default=timezone.now)
    is_primary = models.BooleanField("primary", default=False)

    class Meta:
        verbose_name = "service area branch"
        ordering = ["-is_primary", "assigned_at"]
        constraints = [
            models.UniqueConstraint(fields=["service_area", "branch"], name="uniq_service_area_branch"),
        ]

    def __str__(self):
        return f"{self.service_area_id} <- {self.branch_id}"


class ServiceAreaHistory(HistoryRecord):
    class Action(models.TextChoices):
        CREATE = "create", "Create"
        UPDATE = "update", "Update"
        DELETE = "delete", "Delete"
        STATUS_CHANGE = "status_change", "Status change"
        BRANCH_ASSIGNMENT = "branch_assignment", "Branch assignment"
        PRICING_UPDATE = "pricing_update", "Pricing update"

    action = models.CharField("action", max_length=32, choices=Action.choices, db_index=True)
    changed_fields = models.JSONField("changed fields", default=list, blank=True)

    class Meta(HistoryRecord.Meta):
        verbose_name = "service area history"
        verbose_name_plural = "service area history"
        indexes = [
            models.Index(fields=["entity_id", "performed_at"], name="sa_hist_entity_idx"),
        ]
