"""Serializers for the branch endpoints.

Address, contact, resource and performance blocks are flat columns on
``Branch``; they are exposed as nested objects through ``source="*"``.
"""
from __future__ import annotations

import re

from rest_framework import serializers

from api.v1.serializers import CoordinatesField
from branches.models import Branch, BranchDocument, BranchOperatingHours

TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")


def _minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def _normalize_time(value: str) -> str:
    hours, minutes = value.split(":")
    return f"{int(hours):02d}:{minutes}"


# ---------------------------------------------------------------------------
# Nested blocks
# ---------------------------------------------------------------------------

class BranchAddressSerializer(serializers.Serializer):
    street = serializers.CharField(min_length=2, max_length=200)
    city = serializers.CharField(min_length=2, max_length=100)
    state = serializers.CharField(min_length=2, max_length=100)
    postal_code = serializers.CharField(min_length=2, max_length=20)
    country = serializers.CharField(min_length=2, max_length=100, required=False)
    coordinates = CoordinatesField(required=False, allow_null=True)

    def to_internal_value(self, data):
        attrs = super().to_internal_value(data)
        if "coordinates" in attrs:
            coordinates = attrs.pop("coordinates")
            attrs["longitude"], attrs["latitude"] = coordinates or (None, None)
        return attrs


class BranchContactSerializer(serializers.Serializer):
    phone = serializers.CharField(min_length=5, max_length=20)
    email = serializers.EmailField()
    fax = serializers.CharField(min_length=5, max_length=20, required=False, allow_blank=True, allow_null=True)
    website = serializers.URLField(required=False, allow_blank=True, allow_null=True)

    def validate_fax(self, value):
        return value or ""

    def validate_website(self, value):
        return value or ""


class BranchResourcesSerializer(serializers.Serializer):
    employee_count = serializers.IntegerField(min_value=0, required=False)
    vehicle_count = serializers.IntegerField(min_value=0, required=False)
    storage_capacity = serializers.FloatField(min_value=0, required=False)
    max_daily_packages = serializers.IntegerField(min_value=0, required=False)

    def validate(self, attrs):
        if self.parent is None and not attrs:
            raise serializers.ValidationError("At least one resource value is required.")
        return attrs


class BranchPerformanceSerializer(serializers.Serializer):
    monthly_revenue = serializers.DecimalField(
        max_digits=16, decimal_places=2, min_value=0, required=False, coerce_to_string=False,
    )
    monthly_packages = serializers.IntegerField(min_value=0, required=False)
    customer_satisfaction = serializers.FloatField(min_value=0, max_value=100, required=False)
    delivery_success_rate = serializers.FloatField(min_value=0, max_value=100, required=False)
    metrics_updated_at = serializers.DateTimeField(read_only=True)

    def validate(self, attrs):
        if self.parent is None and not attrs:
            raise serializers.ValidationError("At least one performance metric is required.")
        return attrs


class OperatingHoursListSerializer(serializers.ListSerializer):
    def validate(self, attrs):
        days = [row["day"] for row in attrs]
        if len(days) != len(set(days)):
            raise serializers.ValidationError("Each day can only appear once.")
        return attrs


class OperatingHoursSerializer(serializers.Serializer):
    day = serializers.ChoiceField(choices=BranchOperatingHours.Day.choices)
    is_open = serializers.BooleanField(default=True)
    open_time = serializers.RegexField(TIME_PATTERN, required=False, allow_null=True)
    close_time = serializers.RegexField(TIME_PATTERN, required=False, allow_null=True)

    class Meta:
        list_serializer_class = OperatingHoursListSerializer

    def validate(self, attrs):
        open_time, close_time = attrs.get("open_time"), attrs.get("close_time")
        if attrs.get("is_open", True):
            if not open_time or not close_time:
                raise serializers.ValidationError("Open and close times are required when open.")
            if _minutes(open_time) >= _minutes(close_time):
                raise serializers.ValidationError({"close_time": "Close time must be after open time."})
        attrs["is_open"] = attrs.get("is_open", True)
        attrs["open_time"] = _normalize_time(open_time) if open_time else "08:00"
        attrs["close_time"] = _normalize_time(close_time) if close_time else "17:00"
        return attrs


class BranchDocumentSerializer(serializers.ModelSerializer):
    class Meta:
        model = BranchDocument
        fields = [
            "id", "name", "type", "file_url", "uploaded_at",
            "expires_at", "is_active", "created_at", "updated_at",
        ]
        read_only_fields = ["id", "uploaded_at", "created_at", "updated_at"]
        extra_kwargs = {"name": {"min_length": 2}}


class BranchSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Branch
        fields = ["id", "code", "name", "type", "level", "status"]


# ---------------------------------------------------------------------------
# Branch
# ---------------------------------------------------------------------------

class BranchSerializer(serializers.ModelSerializer):
    """Create / list representation."""

    parent = serializers.UUIDField(source="parent_id", allow_null=True, required=False)
    address = BranchAddressSerializer(source="*")
    contact_info = BranchContactSerializer(source="*")
    resources = BranchResourcesSerializer(source="*", required=False)
    performance_metrics = BranchPerformanceSerializer(source="*", read_only=True)
    operational_hours = OperatingHoursSerializer(source="operating_hours", many=True, required=False)

    class Meta:
        model = Branch
        fields = [
            "id", "code", "name", "type", "parent", "path", "level",
            "address", "contact_info", "resources", "performance_metrics",
            "operational_hours", "status", "status_history",
            "created_by", "updated_by", "created_at", "updated_at",
        ]
        read_only_fields = [
            "id", "path", "level", "status_history",
            "created_by", "updated_by", "created_at", "updated_at",
        ]
        extra_kwargs = {
            "code": {"min_length": 2, "validators": []},
            "name": {"min_length": 2},
        }


class BranchUpdateSerializer(BranchSerializer):
    """Every field optional; ``code`` is immutable."""

    resources = BranchResourcesSerializer(source="*", read_only=True)
    operational_hours = OperatingHoursSerializer(source="operating_hours", many=True, read_only=True)
    status_reason = serializers.CharField(max_length=200, required=False, allow_blank=True, write_only=True)

    class Meta(BranchSerializer.Meta):
        fields = BranchSerializer.Meta.fields + ["status_reason"]
        read_only_fields = BranchSerializer.Meta.read_only_fields + ["code"]


class BranchDetailSerializer(BranchSerializer):
    parent_branch = BranchSummarySerializer(source="parent", read_only=True)
    documents = BranchDocumentSerializer(many=True, read_only=True)

    class Meta(BranchSerializer.Meta):
        fields = BranchSerializer.Meta.fields + ["parent_branch", "documents"]
