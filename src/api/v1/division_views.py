"""ViewSets for divisions and positions."""
from __future__ import annotations

import logging

from rest_framework import serializers, status
from rest_framework.decorators import action
from rest_framework.response import Response

from api.v1.division_serializers import (
    AuthoritySerializer,
    CompensationSerializer,
    DivisionBudgetSerializer,
    DivisionDetailSerializer,
    DivisionSerializer,
    DivisionSummarySerializer,
    DivisionUpdateSerializer,
    KPISerializer,
    PositionDetailSerializer,
    PositionSerializer,
    PositionSummarySerializer,
    PositionUpdateSerializer,
    RequirementsSerializer,
    ResponsibilitySerializer,
)
from api.v1.pagination import DivisionPagination, PositionPagination
from api.v1.views import OrganisationViewSet, deleted_response
from divisions import services
from divisions.models import Division, DivisionHistory, Position, PositionHistory

logger = logging.getLogger("logistics")


def _list_payload(data, key):
    """Accept either a bare list or ``{key: [...]}``."""
    if isinstance(data, dict):
        return data.get(key, [])
    return data


class _HierarchyQuerySerializer(serializers.Serializer):
    branch = serializers.UUIDField(required=False)
    division = serializers.UUIDField(required=False)


class DivisionViewSet(OrganisationViewSet):
    queryset = Division.objects.select_related("parent", "branch", "head_position")
    serializer_class = DivisionSerializer
    pagination_class = DivisionPagination
    filterset_fields = ["branch", "parent"]
    search_fields = ["name", "code"]
    ordering_fields = ["name", "code", "level", "created_at", "updated_at"]
    ordering = ["name"]

    permission_resource = "division"
    history_model = DivisionHistory
    status_choices = Division.Status.choices
    not_found_message = "Division not found"

    def get_serializer_class(self):
        if self.action == "retrieve":
            return DivisionDetailSerializer
        if self.action in ("update", "partial_update"):
            return DivisionUpdateSerializer
        return DivisionSerializer

    def _detail(self, division, status_code=status.HTTP_200_OK):
        return Response(DivisionDetailSerializer(division).data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        division = services.create_division(dict(serializer.validated_data), request.user)
        return self._detail(division, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        division = self.get_object()
        serializer = self.get_serializer(division, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        changes = dict(serializer.validated_data)
        reason = changes.pop("status_reason", "")
        division = services.update_division(division, changes, request.user, status_reason=reason)
        return self._detail(division)

    def destroy(self, request, *args, **kwargs):
        services.delete_division(self.get_object(), request.user)
        return deleted_response("Division deleted successfully")

    @action(detail=True, methods=["patch"], url_path="status")
    def change_status(self, request, pk=None):
        division = self.get_object()
        new_status, reason = self.validated_status_change(request)
        division = services.change_division_status(division, new_status, reason, request.user)
        return self._detail(division)

    @action(detail=False, methods=["get"])
    def hierarchy(self, request):
        query = _HierarchyQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        return Response(services.division_hierarchy(query.validated_data.get("branch")))

    @action(detail=True, methods=["get"])
    def children(self, request, pk=None):
        division = self.get_object()
        return Response(DivisionSummarySerializer(division.get_children().order_by("name"), many=True).data)

    @action(detail=True, methods=["get"])
    def ancestors(self, request, pk=None):
        division = self.get_object()
        return Response(DivisionSummarySerializer(division.get_ancestors(), many=True).data)

    @action(detail=True, methods=["put"])
    def kpis(self, request, pk=None):
        division = self.get_object()
        serializer = KPISerializer(data=_list_payload(request.data, "kpis"), many=True)
        serializer.is_valid(raise_exception=True)
        division = services.update_kpis(division, serializer.validated_data, request.user)
        return self._detail(division)

    @action(detail=True, methods=["patch"])
    def budget(self, request, pk=None):
        division = self.get_object()
        serializer = DivisionBudgetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        division = services.update_budget(division, serializer.validated_data, request.user)
        return Response(DivisionBudgetSerializer(division).data)


class PositionViewSet(OrganisationViewSet):
    queryset = Position.objects.select_related("reporting_to", "division")
    serializer_class = PositionSerializer
    pagination_class = PositionPagination
    filterset_fields = ["division", "salary_grade", "is_vacant", "reporting_to"]
    search_fields = ["title", "code"]
    ordering_fields = ["title", "code", "level", "salary_grade", "created_at", "updated_at"]
    ordering = ["title"]

    permission_resource = "position"
    history_model = PositionHistory
    status_choices = Position.Status.choices
    not_found_message = "Position not found"

    def get_serializer_class(self):
        if self.action == "retrieve":
            return PositionDetailSerializer
        if self.action in ("update", "partial_update"):
            return PositionUpdateSerializer
        return PositionSerializer

    def _detail(self, position, status_code=status.HTTP_200_OK):
        return Response(PositionDetailSerializer(position).data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        position = services.create_position(dict(serializer.validated_data), request.user)
        return self._detail(position, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        position = self.get_object()
        serializer = self.get_serializer(position, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        changes = dict(serializer.validated_data)
        reason = changes.pop("status_reason", "")
        position = services.update_position(position, changes, request.user, status_reason=reason)
        return self._detail(position)

    def destroy(self, request, *args, **kwargs):
        services.delete_position(self.get_object(), request.user)
        return deleted_response("Position deleted successfully")

    @action(detail=True, methods=["patch"], url_path="status")
    def change_status(self, request, pk=None):
        position = self.get_object()
        new_status, reason = self.validated_status_change(request)
        position = services.change_position_status(position, new_status, reason, request.user)
        return self._detail(position)

    @action(detail=False, methods=["get"])
    def hierarchy(self, request):
        query = _HierarchyQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        return Response(services.position_hierarchy(query.validated_data.get("division")))

    @action(detail=True, methods=["get"], url_path="direct-reports")
    def direct_reports(self, request, pk=None):
        position = self.get_object()
        reports = position.get_children().order_by("title")
        return Response(PositionSummarySerializer(reports, many=True).data)

    @action(detail=True, methods=["get"], url_path="reporting-chain")
    def reporting_chain(self, request, pk=None):
        position = self.get_object()
        return Response(PositionSummarySerializer(position.get_ancestors(), many=True).data)

    # ------------------------------------------------------------------
    # Requirements / responsibilities / authorities / compensation
    # ------------------------------------------------------------------

    def _replace_block(self, request, field, serializer):
        position = self.get_object()
        serializer.is_valid(raise_exception=True)
        position = services.replace_position_block(position, field, serializer.validated_data, request.user)
        return self._detail(position)

    @action(detail=True, methods=["put"])
    def requirements(self, request, pk=None):
        payload = request.data.get("requirements", request.data) if isinstance(request.data, dict) else request.data
        return self._replace_block(request, "requirements", RequirementsSerializer(data=payload))

    @action(detail=True, methods=["put"])
    def responsibilities(self, request, pk=None):
        payload = _list_payload(request.data, "responsibilities")
        return self._replace_block(request, "responsibilities", ResponsibilitySerializer(data=payload, many=True))

    @action(detail=True, methods=["put"])
    def authorities(self, request, pk=None):
        payload = _list_payload(request.data, "authorities")
        return self._replace_block(request, "authorities", AuthoritySerializer(data=payload, many=True))

    @action(detail=True, methods=["patch"])
    def compensation(self, request, pk=None):
        position = self.get_object()
        serializer = CompensationSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        position = services.update_compensation(position, serializer.validated_data, request.user)
        return self._detail(position)
