"""Business-logic / service functions for service areas.

Every mutation runs in a transaction, writes one ``ServiceAreaHistory`` row
and drops the cached detail of the area.
"""
from __future__ import annotations

import logging
from typing import Any

from django.core.cache import cache
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from branches.models import Branch
from core.exceptions import AlreadyInState, DomainError, DuplicateCode, RelatedNotFound
from core.geo import calculate_centroid, validate_polygon
from core.history import actor_id, snapshot
from service_areas.models import ServiceArea, ServiceAreaBranch, ServiceAreaHistory

logger = logging.getLogger("logistics")

PRICING_FIELDS = ("base_price", "price_per_km", "minimum_distance", "maximum_distance", "special_rates")
IMPORT_FIELDS = ("name", "code", "description", "boundaries", "center", "coverage_radius", "type", "status")


def detail_cache_key(area_id) -> str:
    return f"service-area:{area_id}"


def invalidate_cached_detail(area_id) -> None:
    cache.delete(detail_cache_key(area_id))


def assignments_payload(area: ServiceArea) -> list[dict[str, Any]]:
    return [
        {
            "branch": str(row.branch_id),
            "is_primary": row.is_primary,
            "assigned_at": row.assigned_at,
        }
        for row in area.assignments.order_by("assigned_at", "id")
    ]


def pricing_payload(area: ServiceArea) -> dict[str, Any]:
    return {field: getattr(area, field) for field in PRICING_FIELDS}


def area_snapshot(area: ServiceArea) -> dict[str, Any]:
    data = snapshot(area)
    data["branches"] = assignments_payload(area)
    return data


def _check_code_available(code: str, exclude_pk=None) -> None:
    taken = ServiceArea.objects.filter(code=code)
    if exclude_pk is not None:
        taken = taken.exclude(pk=exclude_pk)
    if taken.exists():
        raise DuplicateCode("Service area code already exists", status_code=400)


def _save_unique(area: ServiceArea) -> None:
    """Save, turning a lost race on the unique code into the usual 400."""
    try:
        with transaction.atomic():
            area.save()
    except IntegrityError:
        raise DuplicateCode("Service area code already exists", status_code=400)


def _check_assignments(assignments: list[dict[str, Any]]) -> None:
    ids = [str(row["branch"]) for row in assignments]
    if len(ids) != len(set(ids)):
        raise DomainError("A branch can only be assigned once", field="branches")
    requested = set(ids)
    found = {str(pk) for pk in Branch.objects.filter(pk__in=requested).values_list("pk", flat=True)}
    if requested - found:
        raise RelatedNotFound("One or more assigned branches do not exist", field="branches")
    if sum(1 for row in assignments if row.get("is_primary")) > 1:
        raise DomainError("Only one branch can be primary", field="branches")


def _replace_assignments(area: ServiceArea, assignments: list[dict[str, Any]]) -> None:
    area.assignments.all().delete()
    now = timezone.now()
    ServiceAreaBranch.objects.bulk_create([
        ServiceAreaBranch(
            service_area=area,
            branch_id=row["branch"],
            is_primary=bool(row.get("is_primary")),
            assigned_at=now,
        )
        for row in assignments
    ])


def _check_pricing(area: ServiceArea) -> None:
    if area.minimum_distance > area.maximum_distance:
        raise DomainError(
            "Minimum distance cannot exceed maximum distance",
            field="pricing.minimum_distance",
        )


def warn_overlaps(area: ServiceArea) -> list[ServiceArea]:
    """Log every active area intersecting ``area``; the write is never blocked."""
    overlapping = ServiceArea.objects.detect_overlaps(area)
    for other in overlapping:
        logger.warning(
            "Service area %s overlaps with %s (%s)", area.code, other.name, other.code,
        )
    return overlapping


def _locked(area: ServiceArea) -> ServiceArea:
    return ServiceArea.objects.select_for_update().get(pk=area.pk)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

@transaction.atomic
def create_service_area(
    data: dict[str, Any],
    actor,
    *,
    branches: list[dict[str, Any]] | None = None,
    check_overlap: bool = False,
    reason: str = "",
) -> ServiceArea:
    _check_code_available(data["code"])
    if branches:
        _check_assignments(branches)

    area = ServiceArea(**data)
    if "center_longitude" not in data:
        area.center = calculate_centroid(area.boundaries)
    _check_pricing(area)
    area.created_by = area.updated_by = actor_id(actor)
    if check_overlap:
        warn_overlaps(area)
    _save_unique(area)

    changed_fields = sorted(data)
    if branches:
        _replace_assignments(area, branches)
        changed_fields.append("branches")

    ServiceAreaHistory.record(
        area.pk, ServiceAreaHistory.Action.CREATE, actor,
        new_value=area_snapshot(area),
        reason=reason or "Initial creation",
        changed_fields=changed_fields,
    )
    logger.info("Service area %s (%s) created by %s", area.code, area.pk, actor_id(actor))
    return area


@transaction.atomic
def update_service_area(
    area: ServiceArea,
    changes: dict[str, Any],
    actor,
    *,
    branches: list[dict[str, Any]] | None = None,
    check_overlap: bool = False,
    reason: str = "",
) -> ServiceArea:
    if "code" in changes and changes["code"] != area.code:
        _check_code_available(changes["code"], exclude_pk=area.pk)
    if branches is not None:
        _check_assignments(branches)

    area = _locked(area)
    old_value = area_snapshot(area)
    changed_fields = []
    for field, value in changes.items():
        if getattr(area, field) != value:
            changed_fields.append(field)
            setattr(area, field, value)
    _check_pricing(area)

    if check_overlap and "boundaries" in changed_fields:
        warn_overlaps(area)

    area.updated_by = actor_id(actor)
    _save_unique(area)
    if branches is not None:
        _replace_assignments(area, branches)
        changed_fields.append("branches")

    ServiceAreaHistory.record(
        area.pk, ServiceAreaHistory.Action.UPDATE, actor,
        old_value=old_value,
        new_value=area_snapshot(area),
        reason=reason or "Update service area",
        changed_fields=changed_fields,
    )
    invalidate_cached_detail(area.pk)
    logger.info("Service area %s updated by %s: %s", area.pk, actor_id(actor), ", ".join(changed_fields) or "-")
    return area


@transaction.atomic
def delete_service_area(area: ServiceArea, actor, reason: str = "") -> None:
    area_id = area.pk
    old_value = area_snapshot(area)
    area.delete()

    ServiceAreaHistory.record(
        area_id, ServiceAreaHistory.Action.DELETE, actor,
        old_value=old_value,
        reason=reason or "Delete service area",
    )
    invalidate_cached_detail(area_id)
    logger.info("Service area %s deleted by %s", area_id, actor_id(actor))


@transaction.atomic
def change_service_area_status(area: ServiceArea, status: str, reason: str, actor) -> ServiceArea:
    area = _locked(area)
    if area.status == status:
        raise AlreadyInState(f"Service area is already {status}", field="status")

    old_status = area.status
    area.status = status
    area.updated_by = actor_id(actor)
    area.save(update_fields=["status", "updated_by", "updated_at"])

    ServiceAreaHistory.record(
        area.pk, ServiceAreaHistory.Action.STATUS_CHANGE, actor,
        field="status",
        old_value=old_status,
        new_value=status,
        reason=reason or f"Status changed to {status}",
        changed_fields=["status"],
    )
    invalidate_cached_detail(area.pk)
    return area


# ---------------------------------------------------------------------------
# Branch assignments / pricing
# ---------------------------------------------------------------------------

@transaction.atomic
def assign_branch(area: ServiceArea, branch_id, is_primary: bool, actor, reason: str = "") -> ServiceArea:
    """Assign (or re-flag) a branch; a new primary clears every other primary."""
    if not Branch.objects.filter(pk=branch_id).exists():
        raise RelatedNotFound("Branch not found", field="branch")

    area = _locked(area)
    old_value = assignments_payload(area)
    if is_primary:
        area.assignments.exclude(branch_id=branch_id).update(is_primary=False)
    ServiceAreaBranch.objects.update_or_create(
        service_area=area,
        branch_id=branch_id,
        defaults={"is_primary": is_primary, "assigned_at": timezone.now()},
    )
    area.updated_by = actor_id(actor)
    area.save(update_fields=["updated_by", "updated_at"])

    ServiceAreaHistory.record(
        area.pk, ServiceAreaHistory.Action.BRANCH_ASSIGNMENT, actor,
        field="branches",
        old_value=old_value,
        new_value=assignments_payload(area),
        reason=reason or f"Branch {branch_id} assigned to service area",
        metadata={"operation": "assign", "branch_id": str(branch_id), "is_primary": is_primary},
        changed_fields=["branches"],
    )
    invalidate_cached_detail(area.pk)
    return area


@transaction.atomic
def remove_branch(area: ServiceArea, branch_id, actor, reason: str = "") -> ServiceArea:
    area = _locked(area)
    assignment = area.assignments.filter(branch_id=branch_id).first()
    if assignment is None:
        raise RelatedNotFound("Branch not assigned to this service area", field="branch")

    old_value = assignments_payload(area)
    assignment.delete()
    area.updated_by = actor_id(actor)
    area.save(update_fields=["updated_by", "updated_at"])

    ServiceAreaHistory.record(
        area.pk, ServiceAreaHistory.Action.BRANCH_ASSIGNMENT, actor,
        field="branches",
        old_value=old_value,
        new_value=assignments_payload(area),
        reason=reason or f"Branch {branch_id} removed from service area",
        metadata={"operation": "remove", "branch_id": str(branch_id)},
        changed_fields=["branches"],
    )
    invalidate_cached_detail(area.pk)
    return area


@transaction.atomic
def update_pricing(area: ServiceArea, patch: dict[str, Any], actor, reason: str = "") -> ServiceArea:
    area = _locked(area)
    old_value = pricing_payload(area)
    for field in PRICING_FIELDS:
        if field in patch:
            setattr(area, field, patch[field])
    _check_pricing(area)
    area.updated_by = actor_id(actor)
    area.save(update_fields=[*PRICING_FIELDS, "updated_by", "updated_at"])

    ServiceAreaHistory.record(
        area.pk, ServiceAreaHistory.Action.PRICING_UPDATE, actor,
        field="pricing",
        old_value=old_value,
        new_value=pricing_payload(area),
        reason=reason or "Pricing configuration updated",
        changed_fields=["pricing"],
    )
    invalidate_cached_detail(area.pk)
    return area


# ---------------------------------------------------------------------------
# Bulk import
# ---------------------------------------------------------------------------

def _import_one(record: dict[str, Any], actor, overwrite: bool, source: str) -> str:
    data = {field: record[field] for field in IMPORT_FIELDS if field in record}
    data["boundaries"] = validate_polygon(data.get("boundaries"))
    center = data.pop("center", None) or calculate_centroid(data["boundaries"])

    existing = ServiceArea.objects.filter(code=data["code"]).first()
    if existing is not None and not overwrite:
        raise DomainError("Service area with this code already exists", field="code")

    area = existing or ServiceArea(created_by=actor_id(actor))
    old_value = area_snapshot(area) if existing else None
    for field, value in data.items():
        setattr(area, field, value)
    area.center = center
    area.updated_by = actor_id(actor)
    area.full_clean(validate_unique=False)
    area.save()

    ServiceAreaHistory.record(
        area.pk,
        ServiceAreaHistory.Action.UPDATE if existing else ServiceAreaHistory.Action.CREATE,
        actor,
        old_value=old_value,
        new_value=area_snapshot(area),
        reason=f"Imported from {source}",
        changed_fields=sorted(data),
    )
    if existing:
        invalidate_cached_detail(area.pk)
        return "updated"
    return "created"


def import_service_areas(records: list[dict[str, Any]], actor, *, overwrite: bool = False, source: str = "file") -> dict:
    """Create or overwrite one area per record; failures are reported, not raised."""
    results = {"total": len(records), "created": 0, "updated": 0, "failed": 0, "errors": []}
    for record in records:
        code = record.get("code", "")
        if record.get("error"):
            results["failed"] += 1
            results["errors"].append({"code": code, "error": record["error"]})
            continue
        try:
            with transaction.atomic():
                outcome = _import_one(record, actor, overwrite, source)
        except DomainError as exc:
            error = exc.message
        except DjangoValidationError as exc:
            error = "; ".join(
                f"{field}: {' '.join(messages)}" for field, messages in exc.message_dict.items()
            ) if hasattr(exc, "error_dict") else " ".join(exc.messages)
        except IntegrityError as exc:
            error = str(exc)
        else:
            results[outcome] += 1
            continue
        results["failed"] += 1
        results["errors"].append({"code": code, "error": error})

    logger.info(
        "Service area import by %s: %d created, %d updated, %d failed",
        actor_id(actor), results["created"], results["updated"], results["failed"],
    )
    return results
