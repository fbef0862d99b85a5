"""ViewSet for service areas: CRUD, branch assignment, pricing, geo lookups and file exchange."""
from __future__ import annotations

import logging

from django.conf import settings
from django.core.cache import cache
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from api.v1.pagination import ServiceAreaHistoryPagination, ServiceAreaPagination
from api.v1.serializers import LocationQuerySerializer, PointQuerySerializer, ServiceAreaHistoryEntrySerializer
from api.v1.service_area_serializers import (
    BranchAssignmentSerializer,
    ExportQuerySerializer,
    ImportSerializer,
    PricingSerializer,
    PricingUpdateSerializer,
    ServiceAreaSerializer,
    ServiceAreaSummarySerializer,
)
from api.v1.views import UUID_LOOKUP_REGEX, OrganisationViewSet, deleted_response
from core.export import download_response
from service_areas import io, services
from service_areas.models import ServiceArea, ServiceAreaHistory

logger = logging.getLogger("logistics")

DEFAULT_MAX_DISTANCE_KM = 10


def _assignment_rows(assignments):
    if assignments is None:
        return None
    return [
        {"branch": row["branch_id"], "is_primary": row.get("is_primary", False)}
        for row in assignments
    ]


class ServiceAreaViewSet(OrganisationViewSet):
    queryset = ServiceArea.objects.prefetch_related("assignments")
    serializer_class = ServiceAreaSerializer
    pagination_class = ServiceAreaPagination
    parser_classes = [JSONParser, MultiPartParser, FormParser]
    filterset_fields = ["type"]
    search_fields = ["name", "code", "description"]
    ordering_fields = ["name", "code", "created_at", "updated_at"]
    ordering = ["name"]

    permission_resource = "serviceArea"
    permission_actions = {"import_areas": "create", "export_areas": "read"}
    history_model = ServiceAreaHistory
    history_serializer_class = ServiceAreaHistoryEntrySerializer
    history_pagination_class = ServiceAreaHistoryPagination
    status_choices = ServiceArea.Status.choices
    default_status = None
    not_found_message = "Service area not found"

    def _detail(self, area, status_code=status.HTTP_200_OK):
        return Response(ServiceAreaSerializer(area).data, status=status_code)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def retrieve(self, request, *args, **kwargs):
        key = services.detail_cache_key(kwargs["pk"])
        data = cache.get(key)
        if data is None:
            data = dict(ServiceAreaSerializer(self.get_object()).data)
            cache.set(key, data, settings.SERVICE_AREA_CACHE_TTL)
        return Response(data)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        assignments = _assignment_rows(data.pop("assignments", None))
        check_overlap = data.pop("check_overlap", False)
        reason = data.pop("reason", "")
        area = services.create_service_area(
            data, request.user, branches=assignments, check_overlap=check_overlap, reason=reason,
        )
        return self._detail(area, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        area = self.get_object()
        serializer = self.get_serializer(area, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        changes = dict(serializer.validated_data)
        assignments = _assignment_rows(changes.pop("assignments", None))
        check_overlap = changes.pop("check_overlap", False)
        reason = changes.pop("reason", "")
        area = services.update_service_area(
            area, changes, request.user, branches=assignments, check_overlap=check_overlap, reason=reason,
        )
        return self._detail(area)

    def destroy(self, request, *args, **kwargs):
        services.delete_service_area(self.get_object(), request.user)
        return deleted_response("Service area deleted successfully")

    @action(detail=True, methods=["patch"], url_path="status")
    def change_status(self, request, pk=None):
        area = self.get_object()
        new_status, reason = self.validated_status_change(request)
        area = services.change_service_area_status(area, new_status, reason, request.user)
        return self._detail(area)

    # ------------------------------------------------------------------
    # Branch assignments / pricing
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"], url_path="branches")
    def assign_branch(self, request, pk=None):
        area = self.get_object()
        serializer = BranchAssignmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data
        area = services.assign_branch(
            area, params["branch"], params["is_primary"], request.user, reason=params.get("reason", ""),
        )
        return self._detail(area)

    @action(
        detail=True,
        methods=["delete"],
        url_path=rf"branches/(?P<branch_id>{UUID_LOOKUP_REGEX})",
    )
    def remove_branch(self, request, pk=None, branch_id=None):
        area = self.get_object()
        area = services.remove_branch(area, branch_id, request.user)
        return self._detail(area)

    @action(detail=True, methods=["patch"])
    def pricing(self, request, pk=None):
        area = self.get_object()
        serializer = PricingUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        patch = dict(serializer.validated_data)
        reason = patch.pop("reason", "")
        area = services.update_pricing(area, patch, request.user, reason=reason)
        return Response(PricingSerializer(area).data)

    # ------------------------------------------------------------------
    # Geo lookups
    # ------------------------------------------------------------------

    @action(detail=False, methods=["get"])
    def point(self, request):
        query = PointQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        point = [query.validated_data["longitude"], query.validated_data["latitude"]]

        matches = [
            {
                "service_area_id": str(area.pk),
                "name": area.name,
                "code": area.code,
                "distance": round(distance, 2),
                "within_coverage_radius": within,
            }
            for area, distance, within in ServiceArea.objects.find_containing_areas(point)
        ]
        return Response({"point": point, "service_areas": matches, "count": len(matches)})

    @action(detail=False, methods=["get"])
    def location(self, request):
        query = LocationQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        point = [query.validated_data["longitude"], query.validated_data["latitude"]]
        max_distance = query.validated_data.get("max_distance", DEFAULT_MAX_DISTANCE_KM)

        areas = []
        for area, distance in ServiceArea.objects.find_nearby(point, max_distance):
            item = ServiceAreaSummarySerializer(area).data
            item["distance"] = round(distance, 2)
            item["within_coverage_radius"] = distance <= area.coverage_radius
            areas.append(item)
        return Response({
            "point": point,
            "service_areas": areas,
            "count": len(areas),
            "max_distance": max_distance,
        })

    @action(detail=True, methods=["get"])
    def overlaps(self, request, pk=None):
        area = self.get_object()
        overlapping = ServiceArea.objects.detect_overlaps(area)
        return Response({
            "service_area": {"id": str(area.pk), "name": area.name, "code": area.code},
            "overlapping_areas": ServiceAreaSummarySerializer(overlapping, many=True).data,
            "count": len(overlapping),
        })

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    @action(detail=False, methods=["post"], url_path="import")
    def import_areas(self, request):
        serializer = ImportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data
        records = io.parse_upload(params.get("file"), params["format"])
        results = services.import_service_areas(
            records, request.user, overwrite=params["overwrite"], source=params["format"],
        )
        return Response(results)

    @action(detail=False, methods=["get"], url_path="export")
    def export_areas(self, request):
        query = ExportQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        areas = ServiceArea.objects.order_by("code")
        if params.get("status"):
            areas = areas.filter(status=params["status"])
        if params.get("type"):
            areas = areas.filter(type=params["type"])

        content, filename, content_type = io.export_areas(areas, params["format"])
        logger.info("Exported %s service areas as %s", areas.count(), params["format"])
        return download_response(content, filename, content_type)
