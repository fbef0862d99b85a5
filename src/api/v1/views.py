"""Shared building blocks for the organisation ViewSets of API v1."""
import logging

from rest_framework import filters, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from django_filters.rest_framework import DjangoFilterBackend

from api.v1.pagination import HistoryPagination
from api.v1.permissions import HasResourcePermission
from api.v1.serializers import HistoryEntrySerializer, HistoryQuerySerializer, StatusChangeSerializer

logger = logging.getLogger("logistics")

UUID_LOOKUP_REGEX = r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


def parse_bool(raw_value, *, default: bool = False) -> bool:
    value = str(raw_value or "").strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    return default


def deleted_response(message: str) -> Response:
    return Response({"status": "success", "message": message}, status=status.HTTP_200_OK)


class OrganisationViewSet(viewsets.ModelViewSet):
    """CRUD ViewSet with status filtering, ``/status/`` and ``/history/`` routes.

    Subclasses declare ``permission_resource``, ``history_model`` and
    ``status_choices``. ``default_status`` filters the list unless the client
    sends ``status=all``.
    """

    permission_classes = [HasResourcePermission]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    lookup_value_regex = UUID_LOOKUP_REGEX
    http_method_names = ["get", "post", "put", "patch", "delete", "head", "options"]

    permission_resource = None
    history_model = None
    history_serializer_class = HistoryEntrySerializer
    history_pagination_class = HistoryPagination
    status_choices = ()
    default_status = "active"

    def filter_status(self, queryset):
        requested = self.request.query_params.get("status", self.default_status)
        if requested and requested != "all":
            queryset = queryset.filter(status=requested)
        return queryset

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action == "list":
            queryset = self.filter_status(queryset)
        return queryset

    def validated_status_change(self, request):
        serializer = StatusChangeSerializer(data=request.data, context={"choices": self.status_choices})
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data["status"], serializer.validated_data.get("reason") or ""

    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        query = HistoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        records = self.history_model.objects.for_entity(
            pk,
            action=params.get("action") or None,
            start=params.get("start_date"),
            end=params.get("end_date"),
        )
        paginator = self.history_pagination_class()
        page = paginator.paginate_queryset(records, request, view=self)
        return paginator.get_paginated_response(self.history_serializer_class(page, many=True).data)
