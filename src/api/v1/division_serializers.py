"""Serializers for the division and position endpoints."""
from __future__ import annotations

from rest_framework import serializers

from api.v1.branch_serializers import BranchSummarySerializer
from divisions.models import Division, Position


def _amount(**kwargs):
    return serializers.DecimalField(
        max_digits=18, decimal_places=2, min_value=0, coerce_to_string=False, **kwargs,
    )


# ---------------------------------------------------------------------------
# Division blocks
# ---------------------------------------------------------------------------

class KPISerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)
    target = serializers.FloatField()
    unit = serializers.CharField(max_length=30)
    current = serializers.FloatField(default=0)
    updated_at = serializers.CharField(read_only=True)


class DivisionBudgetSerializer(serializers.Serializer):
    allocated = _amount(source="budget_allocated", required=False)
    spent = _amount(source="budget_spent", required=False)
    remaining = serializers.DecimalField(
        source="budget_remaining", max_digits=18, decimal_places=2, read_only=True, coerce_to_string=False,
    )
    currency = serializers.CharField(source="budget_currency", min_length=3, max_length=3, required=False)
    fiscal_year = serializers.CharField(max_length=9, required=False, allow_blank=True)
    updated_at = serializers.DateTimeField(source="budget_updated_at", read_only=True)

    def validate(self, attrs):
        if self.parent is None and not attrs:
            raise serializers.ValidationError("At least one budget value is required.")
        return attrs


class DivisionSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Division
        fields = ["id", "code", "name", "level", "status"]


class DivisionSerializer(serializers.ModelSerializer):
    parent = serializers.UUIDField(source="parent_id", allow_null=True, required=False)
    branch = serializers.UUIDField(source="branch_id")
    head_position = serializers.UUIDField(source="head_position_id", allow_null=True, required=False)
    kpis = KPISerializer(many=True, required=False)
    budget = DivisionBudgetSerializer(source="*", required=False)

    class Meta:
        model = Division
        fields = [
            "id", "code", "name", "description", "parent", "branch", "head_position",
            "path", "level", "kpis", "metrics_updated_at", "budget",
            "status", "status_history",
            "created_by", "updated_by", "created_at", "updated_at",
        ]
        read_only_fields = [
            "id", "path", "level", "metrics_updated_at", "status_history",
            "created_by", "updated_by", "created_at", "updated_at",
        ]
        extra_kwargs = {
            "code": {"min_length": 2, "validators": []},
            "name": {"min_length": 2},
        }


class DivisionUpdateSerializer(DivisionSerializer):
    """KPIs and budget have their own routes."""

    kpis = KPISerializer(many=True, read_only=True)
    budget = DivisionBudgetSerializer(source="*", read_only=True)
    status_reason = serializers.CharField(max_length=200, required=False, allow_blank=True, write_only=True)

    class Meta(DivisionSerializer.Meta):
        fields = DivisionSerializer.Meta.fields + ["status_reason"]


class DivisionDetailSerializer(DivisionSerializer):
    parent_division = DivisionSummarySerializer(source="parent", read_only=True)
    branch_detail = BranchSummarySerializer(source="branch", read_only=True)
    head_position_detail = serializers.SerializerMethodField()

    class Meta(DivisionSerializer.Meta):
        fields = DivisionSerializer.Meta.fields + ["parent_division", "branch_detail", "head_position_detail"]

    def get_head_position_detail(self, obj):
        if obj.head_position is None:
            return None
        return PositionSummarySerializer(obj.head_position).data


# ---------------------------------------------------------------------------
# Position blocks
# ---------------------------------------------------------------------------

class EducationSerializer(serializers.Serializer):
    degree = serializers.CharField(max_length=100)
    field = serializers.CharField(max_length=100)
    is_required = serializers.BooleanField(default=True)


class ExperienceSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=500)
    years_required = serializers.IntegerField(min_value=0)
    is_required = serializers.BooleanField(default=True)


class SkillSerializer(serializers.Serializer):
    LEVELS = ("beginner", "intermediate", "advanced", "expert")

    name = serializers.CharField(max_length=100)
    level = serializers.ChoiceField(choices=LEVELS)
    is_required = serializers.BooleanField(default=True)


class CertificationSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    is_required = serializers.BooleanField(default=False)


class RequirementsSerializer(serializers.Serializer):
    education = EducationSerializer(many=True, default=list)
    experience = ExperienceSerializer(many=True, default=list)
    skills = SkillSerializer(many=True, default=list)
    certifications = CertificationSerializer(many=True, default=list)


class ResponsibilitySerializer(serializers.Serializer):
    PRIORITIES = ("low", "medium", "high", "critical")

    description = serializers.CharField(max_length=500)
    priority = serializers.ChoiceField(choices=PRIORITIES, default="medium")


class AuthoritySerializer(serializers.Serializer):
    description = serializers.CharField(max_length=500)
    scope = serializers.CharField(max_length=200, required=False, allow_blank=True)


class BenefitSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)
    value = serializers.FloatField(required=False, allow_null=True)


class SalaryRangeSerializer(serializers.Serializer):
    min = _amount(source="salary_min")
    max = _amount(source="salary_max")
    currency = serializers.CharField(source="salary_currency", min_length=3, max_length=3, required=False)

    def validate(self, attrs):
        low, high = attrs.get("salary_min"), attrs.get("salary_max")
        if low is not None and high is not None and low > high:
            raise serializers.ValidationError({"min": "Minimum salary cannot exceed maximum salary."})
        return attrs


class HeadcountSerializer(serializers.Serializer):
    authorized = serializers.IntegerField(source="headcount_authorized", min_value=0, required=False)
    filled = serializers.IntegerField(source="headcount_filled", min_value=0, required=False)


class PositionSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Position
        fields = ["id", "code", "title", "level", "is_vacant", "status"]


class PositionSerializer(serializers.ModelSerializer):
    reporting_to = serializers.UUIDField(source="reporting_to_id", allow_null=True, required=False)
    division = serializers.UUIDField(source="division_id")
    requirements = RequirementsSerializer(required=False)
    responsibilities = ResponsibilitySerializer(many=True, required=False)
    authorities = AuthoritySerializer(many=True, required=False)
    salary_range = SalaryRangeSerializer(source="*")
    benefits = BenefitSerializer(many=True, required=False)
    headcount = HeadcountSerializer(source="*", required=False)

    class Meta:
        model = Position
        fields = [
            "id", "code", "title", "description", "reporting_to", "division",
            "path", "level", "requirements", "responsibilities", "authorities",
            "salary_grade", "salary_range", "benefits",
            "status", "status_history", "is_vacant", "headcount",
            "created_by", "updated_by", "created_at", "updated_at",
        ]
        read_only_fields = [
            "id", "path", "level", "status_history",
            "created_by", "updated_by", "created_at", "updated_at",
        ]
        extra_kwargs = {
            "code": {"min_length": 2, "validators": []},
            "title": {"min_length": 2},
        }


class PositionUpdateSerializer(PositionSerializer):
    status_reason = serializers.CharField(max_length=200, required=False, allow_blank=True, write_only=True)

    class Meta(PositionSerializer.Meta):
        fields = PositionSerializer.Meta.fields + ["status_reason"]


class PositionDetailSerializer(PositionSerializer):
    reporting_position = PositionSummarySerializer(source="reporting_to", read_only=True)
    division_detail = DivisionSummarySerializer(source="division", read_only=True)

    class Meta(PositionSerializer.Meta):
        fields = PositionSerializer.Meta.fields + ["reporting_position", "division_detail"]


class CompensationSerializer(serializers.Serializer):
    """Used with ``partial=True``: every block optional, at least one present."""

    salary_grade = serializers.CharField(max_length=20)
    salary_range = SalaryRangeSerializer(source="*")
    benefits = BenefitSerializer(many=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one compensation value is required.")
        return attrs
