"""Serializers for the service-area endpoints."""
from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from api.v1.serializers import CoordinatesField
from core.geo import validate_polygon
from service_areas.io import EXPORT_FORMATS, IMPORT_FORMATS
from service_areas.models import ServiceArea, ServiceAreaBranch


def _money(**kwargs):
    return serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=0, coerce_to_string=False, **kwargs,
    )


class SpecialRateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)
    rate = serializers.FloatField(min_value=0)
    conditions = serializers.JSONField(required=False)


class PricingSerializer(serializers.Serializer):
    base_price = _money(required=False)
    price_per_km = _money(required=False)
    minimum_distance = serializers.FloatField(min_value=0, required=False)
    maximum_distance = serializers.FloatField(min_value=0, required=False)
    special_rates = SpecialRateSerializer(many=True, required=False)

    def validate(self, attrs):
        if self.parent is None and not attrs:
            raise serializers.ValidationError("At least one pricing value is required.")
        minimum, maximum = attrs.get("minimum_distance"), attrs.get("maximum_distance")
        if minimum is not None and maximum is not None and minimum > maximum:
            raise serializers.ValidationError(
                {"minimum_distance": "Minimum distance cannot exceed maximum distance."}
            )
        return attrs


class PricingUpdateSerializer(PricingSerializer):
    reason = serializers.CharField(max_length=200, required=False, allow_blank=True)


class ServiceAreaBranchSerializer(serializers.ModelSerializer):
    branch = serializers.UUIDField(source="branch_id")
    is_primary = serializers.BooleanField(default=False)

    class Meta:
        model = ServiceAreaBranch
        fields = ["branch", "is_primary", "assigned_at"]
        read_only_fields = ["assigned_at"]


class BranchAssignmentSerializer(serializers.Serializer):
    branch = serializers.UUIDField()
    is_primary = serializers.BooleanField(default=False)
    reason = serializers.CharField(max_length=200, required=False, allow_blank=True)


class ServiceAreaSummarySerializer(serializers.ModelSerializer):
    center = serializers.ListField(child=serializers.FloatField(), read_only=True)

    class Meta:
        model = ServiceArea
        fields = ["id", "name", "code", "type", "status", "coverage_radius", "center"]


class ServiceAreaSerializer(serializers.ModelSerializer):
    """Create / list / detail representation.

    ``branches`` is written as ``[{branch, is_primary}]`` and read back from
    the assignment rows; ``pricing`` maps onto the flat pricing columns.
    """

    center = CoordinatesField(required=False)
    pricing = PricingSerializer(source="*", required=False)
    branches = ServiceAreaBranchSerializer(source="assignments", many=True, required=False)
    check_overlap = serializers.BooleanField(default=False, write_only=True)
    reason = serializers.CharField(max_length=200, required=False, allow_blank=True, write_only=True)

    class Meta:
        model = ServiceArea
        fields = [
            "id", "name", "code", "description", "boundaries", "center",
            "coverage_radius", "type", "pricing", "branches", "status", "metadata",
            "check_overlap", "reason",
            "created_by", "updated_by", "created_at", "updated_at",
        ]
        read_only_fields = ["id", "created_by", "updated_by", "created_at", "updated_at"]
        extra_kwargs = {
            "code": {"min_length": 2, "validators": []},
            "name": {"min_length": 2},
            "coverage_radius": {"min_value": 0},
        }

    def validate_boundaries(self, value):
        try:
            return validate_polygon(value)
        except DjangoValidationError as exc:
            raise serializers.ValidationError(exc.message_dict["boundaries"])

    def validate(self, attrs):
        center = attrs.pop("center", None)
        if center is not None:
            attrs["center_longitude"], attrs["center_latitude"] = center
        return attrs


class ImportSerializer(serializers.Serializer):
    file = serializers.FileField(required=False)
    format = serializers.ChoiceField(choices=IMPORT_FORMATS, default="geojson")
    overwrite = serializers.BooleanField(default=False)


class ExportQuerySerializer(serializers.Serializer):
    format = serializers.ChoiceField(choices=EXPORT_FORMATS, default="geojson")
    status = serializers.ChoiceField(choices=ServiceArea.Status.choices, required=False)
    type = serializers.ChoiceField(choices=ServiceArea.Type.choices, required=False)
