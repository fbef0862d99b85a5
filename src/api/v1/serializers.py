"""Serializers shared by every organisation resource of API v1."""
from rest_framework import serializers

from core.geo import validate_position


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

class HistoryEntrySerializer(serializers.Serializer):
    """Read-only view of any ``HistoryRecord`` subclass."""

    id = serializers.IntegerField(read_only=True)
    entity_id = serializers.UUIDField(read_only=True)
    action = serializers.CharField(read_only=True)
    field = serializers.CharField(read_only=True)
    old_value = serializers.JSONField(read_only=True)
    new_value = serializers.JSONField(read_only=True)
    performed_by = serializers.CharField(read_only=True)
    performed_at = serializers.DateTimeField(read_only=True)
    reason = serializers.CharField(read_only=True)
    metadata = serializers.JSONField(read_only=True)


class ServiceAreaHistoryEntrySerializer(HistoryEntrySerializer):
    changed_fields = serializers.ListField(child=serializers.CharField(), read_only=True)


class HistoryQuerySerializer(serializers.Serializer):
    action = serializers.CharField(required=False, allow_blank=True)
    start_date = serializers.DateTimeField(required=False)
    end_date = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        start, end = attrs.get("start_date"), attrs.get("end_date")
        if start and end and start > end:
            raise serializers.ValidationError({"end_date": "End date must be after start date."})
        return attrs


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------

class StatusChangeSerializer(serializers.Serializer):
    """``{status, reason}`` body of every ``/status/`` route.

    ``status`` choices are injected by the view through the ``choices``
    context entry.
    """

    status = serializers.ChoiceField(choices=[])
    reason = serializers.CharField(max_length=200, required=False, allow_blank=True, allow_null=True)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["status"].choices = self.context.get("choices", [])


class PointQuerySerializer(serializers.Serializer):
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    latitude = serializers.FloatField(min_value=-90, max_value=90)


class LocationQuerySerializer(PointQuerySerializer):
    """Point plus a ``max_distance`` whose unit and default belong to the view."""

    max_distance = serializers.FloatField(min_value=0, required=False)


class CoordinatesField(serializers.ListField):
    """``[longitude, latitude]`` pair."""

    child = serializers.FloatField()

    def __init__(self, **kwargs):
        kwargs.setdefault("min_length", 2)
        kwargs.setdefault("max_length", 2)
        super().__init__(**kwargs)

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        return validate_position(value, self.field_name or "coordinates")
