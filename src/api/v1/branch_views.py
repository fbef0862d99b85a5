"""ViewSet for branch management."""
from __future__ import annotations

import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.response import Response

from api.v1.branch_serializers import (
    BranchDetailSerializer,
    BranchDocumentSerializer,
    BranchPerformanceSerializer,
    BranchResourcesSerializer,
    BranchSerializer,
    BranchSummarySerializer,
    BranchUpdateSerializer,
    OperatingHoursSerializer,
)
from api.v1.pagination import BranchPagination
from api.v1.serializers import LocationQuerySerializer
from api.v1.views import UUID_LOOKUP_REGEX, OrganisationViewSet, deleted_response, parse_bool
from branches import services
from branches.models import Branch, BranchHistory

logger = logging.getLogger("logistics")

DEFAULT_MAX_DISTANCE_M = 10000


class BranchViewSet(OrganisationViewSet):
    """Branch CRUD plus hierarchy, resources, documents and location routes."""

    queryset = Branch.objects.select_related("parent").prefetch_related("operating_hours")
    serializer_class = BranchSerializer
    pagination_class = BranchPagination
    filterset_fields = ["type", "city", "state", "parent"]
    search_fields = ["name", "code"]
    ordering_fields = ["name", "code", "level", "created_at", "updated_at"]
    ordering = ["name"]

    permission_resource = "branch"
    ownership_actions = ("update", "partial_update", "destroy")
    history_model = BranchHistory
    status_choices = Branch.Status.choices
    not_found_message = "Branch not found"

    def get_serializer_class(self):
        if self.action == "retrieve":
            return BranchDetailSerializer
        if self.action in ("update", "partial_update"):
            return BranchUpdateSerializer
        return BranchSerializer

    @staticmethod
    def resolve_owner(branch_id):
        return Branch.objects.filter(pk=branch_id).values_list("created_by", flat=True).first()

    def _detail(self, branch, status_code=status.HTTP_200_OK):
        return Response(BranchDetailSerializer(branch).data, status=status_code)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        hours = data.pop("operating_hours", None)
        branch = services.create_branch(data, request.user, operating_hours=hours)
        return self._detail(branch, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        branch = self.get_object()
        serializer = self.get_serializer(branch, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        changes = dict(serializer.validated_data)
        reason = changes.pop("status_reason", "")
        branch = services.update_branch(branch, changes, request.user, status_reason=reason)
        return self._detail(branch)

    def destroy(self, request, *args, **kwargs):
        services.delete_branch(self.get_object(), request.user)
        return deleted_response("Branch deleted successfully")

    @action(detail=True, methods=["patch"], url_path="status")
    def change_status(self, request, pk=None):
        branch = self.get_object()
        new_status, reason = self.validated_status_change(request)
        branch = services.change_branch_status(branch, new_status, reason, request.user)
        return self._detail(branch)

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    @action(detail=False, methods=["get"])
    def hierarchy(self, request):
        return Response(services.hierarchy_tree())

    @action(detail=True, methods=["get"])
    def children(self, request, pk=None):
        branch = self.get_object()
        if parse_bool(request.query_params.get("include_descendants")):
            branches = branch.get_descendants()
        else:
            branches = branch.get_children().order_by("name")
        return Response(BranchSummarySerializer(branches, many=True).data)

    @action(detail=True, methods=["get"])
    def ancestors(self, request, pk=None):
        branch = self.get_object()
        return Response(BranchSummarySerializer(branch.get_ancestors(), many=True).data)

    # ------------------------------------------------------------------
    # Resources / metrics
    # ------------------------------------------------------------------

    @action(detail=True, methods=["patch"])
    def resources(self, request, pk=None):
        branch = self.get_object()
        serializer = BranchResourcesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        branch = services.update_resources(branch, serializer.validated_data, request.user)
        return Response(BranchResourcesSerializer(branch).data)

    @action(detail=True, methods=["patch"], url_path="performance-metrics")
    def performance_metrics(self, request, pk=None):
        branch = self.get_object()
        serializer = BranchPerformanceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        branch = services.update_performance_metrics(branch, serializer.validated_data, request.user)
        return Response(BranchPerformanceSerializer(branch).data)

    # ------------------------------------------------------------------
    # Documents / operational hours
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def documents(self, request, pk=None):
        branch = self.get_object()
        serializer = BranchDocumentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        document = services.add_document(branch, serializer.validated_data, request.user)
        return Response(BranchDocumentSerializer(document).data, status=status.HTTP_201_CREATED)

    @action(
        detail=True,
        methods=["put", "patch", "delete"],
        url_path=rf"documents/(?P<document_id>{UUID_LOOKUP_REGEX})",
    )
    def document_detail(self, request, pk=None, document_id=None):
        branch = self.get_object()
        self.not_found_message = "Document not found"
        document = get_object_or_404(branch.documents.all(), pk=document_id)

        if request.method == "DELETE":
            services.delete_document(branch, document, request.user)
            return deleted_response("Document deleted successfully")

        serializer = BranchDocumentSerializer(document, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        document = services.update_document(branch, document, serializer.validated_data, request.user)
        return Response(BranchDocumentSerializer(document).data)

    @action(detail=True, methods=["put"], url_path="operational-hours")
    def operational_hours(self, request, pk=None):
        branch = self.get_object()
        payload = request.data
        if isinstance(payload, dict):
            payload = payload.get("operational_hours", [])
        serializer = OperatingHoursSerializer(data=payload, many=True)
        serializer.is_valid(raise_exception=True)
        branch = services.set_operating_hours(branch, serializer.validated_data, request.user)
        return Response(OperatingHoursSerializer(branch.operating_hours.order_by("id"), many=True).data)

    # ------------------------------------------------------------------
    # Location
    # ------------------------------------------------------------------

    @action(detail=False, methods=["get"])
    def location(self, request):
        query = LocationQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        longitude = query.validated_data["longitude"]
        latitude = query.validated_data["latitude"]
        max_distance = query.validated_data.get("max_distance", DEFAULT_MAX_DISTANCE_M)

        found = services.branches_near(longitude, latitude, max_distance)
        branches = []
        for branch, distance in found:
            item = BranchSerializer(branch).data
            item["distance"] = round(distance, 2)
            branches.append(item)
        return Response({
            "branches": branches,
            "count": len(branches),
            "center": [longitude, latitude],
            "max_distance": max_distance,
        })
