"""Pagination utilities for API v1."""
import math

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class StandardResultsSetPagination(PageNumberPagination):
    """``page`` / ``limit`` pagination returning ``{<results_key>, pagination}``.

    Views set ``results_key`` (``branches``, ``service_areas``...) on a
    subclass.
    """

    page_size = 10
    page_size_query_param = "limit"
    max_page_size = 100
    results_key = "results"

    def get_pagination_meta(self):
        total = self.page.paginator.count
        limit = self.page.paginator.per_page
        return {
            "total": total,
            "page": self.page.number,
            "limit": limit,
            "pages": math.ceil(total / limit) if limit else 0,
        }

    def get_paginated_response(self, data):
        return Response({self.results_key: data, "pagination": self.get_pagination_meta()})

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "properties": {
                self.results_key: schema,
                "pagination": {"type": "object"},
            },
        }


class PageFlagsMixin:
    """``total_pages`` plus next/previous flags instead of ``pages``."""

    def get_pagination_meta(self):
        meta = super().get_pagination_meta()
        meta["total_pages"] = meta.pop("pages")
        meta["has_next_page"] = self.page.has_next()
        meta["has_prev_page"] = self.page.has_previous()
        return meta


class BranchPagination(StandardResultsSetPagination):
    results_key = "branches"


class ServiceAreaPagination(PageFlagsMixin, StandardResultsSetPagination):
    results_key = "service_areas"


class DivisionPagination(StandardResultsSetPagination):
    results_key = "divisions"


class PositionPagination(StandardResultsSetPagination):
    results_key = "positions"


class HistoryPagination(StandardResultsSetPagination):
    page_size = 20
    results_key = "history"


class ServiceAreaHistoryPagination(PageFlagsMixin, HistoryPagination):
    page_size = 10
