"""Business-logic / service functions for the branches app.

Every mutation runs in one transaction and appends its history record(s)
after the branch row has been written.
"""
from __future__ import annotations

import logging
import math
from typing import Any

from django.db import transaction
from django.utils import timezone

from branches.models import Branch, BranchDocument, BranchHistory, BranchOperatingHours
from core.exceptions import AlreadyInState, DependentRecordsExist, DuplicateCode, ParentNotFound
from core.geo import EARTH_RADIUS_KM, haversine_km
from core.hierarchy import build_tree
from core.history import actor_id, snapshot

logger = logging.getLogger("logistics")

RESOURCE_FIELDS = ("employee_count", "vehicle_count", "storage_capacity", "max_daily_packages")
METRIC_FIELDS = ("monthly_revenue", "monthly_packages", "customer_satisfaction", "delivery_success_rate")
DOCUMENT_FIELDS = ("name", "type", "file_url", "expires_at", "is_active")
OPERATING_HOURS_FIELDS = ("day", "is_open", "open_time", "close_time")


def _ensure_parent_exists(parent_id) -> None:
    if parent_id is not None and not Branch.objects.filter(pk=parent_id).exists():
        raise ParentNotFound("Parent branch not found", field="parent")


def _operating_hours_payload(branch: Branch) -> list[dict[str, Any]]:
    return [
        {field: getattr(row, field) for field in OPERATING_HOURS_FIELDS}
        for row in branch.operating_hours.order_by("id")
    ]


def _replace_operating_hours(branch: Branch, hours: list[dict[str, Any]]) -> None:
    branch.operating_hours.all().delete()
    BranchOperatingHours.objects.bulk_create(
        [BranchOperatingHours(branch=branch, **row) for row in hours]
    )


def _touch(branch: Branch, actor) -> None:
    branch.updated_by = actor_id(actor)
    branch.save(update_fields=["updated_by", "updated_at"])


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

@transaction.atomic
def create_branch(data: dict[str, Any], actor, operating_hours=None) -> Branch:
    if Branch.objects.filter(code=data["code"]).exists():
        raise DuplicateCode("Branch code already exists")
    _ensure_parent_exists(data.get("parent_id"))

    branch = Branch(**data)
    branch.created_by = branch.updated_by = actor_id(actor)
    branch.add_status_history(branch.status, "Initial creation", actor_id(actor))
    branch.save()

    if operating_hours:
        _replace_operating_hours(branch, operating_hours)

    BranchHistory.record(branch.pk, BranchHistory.Action.CREATE, actor, new_value=snapshot(branch))
    logger.info("Branch %s (%s) created by %s", branch.code, branch.pk, actor_id(actor))
    return branch


@transaction.atomic
def update_branch(branch: Branch, changes: dict[str, Any], actor, status_reason: str = "") -> Branch:
    """Apply ``changes`` and record one ``update`` entry per modified field.

    A ``status`` change goes through the status history instead.
    """
    changes = dict(changes)
    pending = []

    if "parent_id" in changes and changes["parent_id"] != branch.parent_id:
        new_parent_id = changes["parent_id"]
        branch.validate_reparent(new_parent_id)
        _ensure_parent_exists(new_parent_id)

    new_status = changes.pop("status", None)
    if new_status and new_status != branch.status:
        reason = status_reason or "Status updated"
        pending.append(dict(
            action=BranchHistory.Action.STATUS_CHANGE,
            field="status",
            old_value=branch.status,
            new_value=new_status,
            reason=reason,
        ))
        branch.add_status_history(new_status, reason, actor_id(actor))

    for field, value in changes.items():
        old_value = getattr(branch, field)
        if old_value != value:
            pending.append(dict(
                action=BranchHistory.Action.UPDATE,
                field=field,
                old_value=old_value,
                new_value=value,
            ))
            setattr(branch, field, value)

    branch.updated_by = actor_id(actor)
    branch.save()

    for entry in pending:
        BranchHistory.record(branch.pk, actor=actor, **entry)
    logger.info("Branch %s updated by %s (%d change(s))", branch.pk, actor_id(actor), len(pending))
    return branch


@transaction.atomic
def delete_branch(branch: Branch, actor) -> None:
    if branch.get_children().exists():
        raise DependentRecordsExist("Cannot delete branch with child branches")
    if branch.divisions.exists():
        raise DependentRecordsExist("Cannot delete branch with associated divisions")

    branch_id = branch.pk
    data = snapshot(branch)
    data["operating_hours"] = _operating_hours_payload(branch)
    branch.delete()

    BranchHistory.record(branch_id, BranchHistory.Action.DELETE, actor, old_value=data)
    logger.info("Branch %s deleted by %s", branch_id, actor_id(actor))


@transaction.atomic
def change_branch_status(branch: Branch, status: str, reason: str, actor) -> Branch:
    if branch.status == status:
        raise AlreadyInState(f"Branch is already {status}", field="status")

    old_status = branch.status
    branch.add_status_history(status, reason, actor_id(actor))
    branch.updated_by = actor_id(actor)
    branch.save(update_fields=["status", "status_history", "updated_by", "updated_at"])

    BranchHistory.record(
        branch.pk,
        BranchHistory.Action.STATUS_CHANGE,
        actor,
        field="status",
        old_value=old_status,
        new_value=status,
        reason=reason,
    )
    return branch


# ---------------------------------------------------------------------------
# Partial blocks
# ---------------------------------------------------------------------------

def _patch_block(branch: Branch, fields, patch: dict[str, Any]) -> tuple[dict, dict]:
    old = {field: getattr(branch, field) for field in fields}
    for field in fields:
        if field in patch:
            setattr(branch, field, patch[field])
    new = {field: getattr(branch, field) for field in fields}
    return old, new


@transaction.atomic
def update_resources(branch: Branch, patch: dict[str, Any], actor) -> Branch:
    old, new = _patch_block(branch, RESOURCE_FIELDS, patch)
    branch.updated_by = actor_id(actor)
    branch.save(update_fields=[*RESOURCE_FIELDS, "updated_by", "updated_at"])

    BranchHistory.record(
        branch.pk, BranchHistory.Action.RESOURCE_UPDATE, actor,
        field="resources", old_value=old, new_value=new,
    )
    return branch


@transaction.atomic
def update_performance_metrics(branch: Branch, patch: dict[str, Any], actor) -> Branch:
    old, new = _patch_block(branch, METRIC_FIELDS, patch)
    old["metrics_updated_at"] = branch.metrics_updated_at
    branch.metrics_updated_at = new["metrics_updated_at"] = timezone.now()
    branch.updated_by = actor_id(actor)
    branch.save(update_fields=[*METRIC_FIELDS, "metrics_updated_at", "updated_by", "updated_at"])

    BranchHistory.record(
        branch.pk, BranchHistory.Action.PERFORMANCE_UPDATE, actor,
        field="performance_metrics", old_value=old, new_value=new,
    )
    return branch


# ---------------------------------------------------------------------------
# Documents / operating hours
# ---------------------------------------------------------------------------

@transaction.atomic
def add_document(branch: Branch, data: dict[str, Any], actor) -> BranchDocument:
    document = BranchDocument.objects.create(branch=branch, uploaded_at=timezone.now(), **data)
    _touch(branch, actor)
    BranchHistory.record(
        branch.pk, BranchHistory.Action.DOCUMENT_ADD, actor,
        field="documents", new_value=snapshot(document),
        metadata={"document_id": str(document.pk)},
    )
    return document


@transaction.atomic
def update_document(branch: Branch, document: BranchDocument, data: dict[str, Any], actor) -> BranchDocument:
    old = snapshot(document)
    for field in DOCUMENT_FIELDS:
        if field in data:
            setattr(document, field, data[field])
    document.save()
    _touch(branch, actor)
    BranchHistory.record(
        branch.pk, BranchHistory.Action.DOCUMENT_UPDATE, actor,
        field="documents", old_value=old, new_value=snapshot(document),
        metadata={"document_id": str(document.pk)},
    )
    return document


@transaction.atomic
def delete_document(branch: Branch, document: BranchDocument, actor) -> None:
    old = snapshot(document)
    document_id = str(document.pk)
    document.delete()
    _touch(branch, actor)
    BranchHistory.record(
        branch.pk, BranchHistory.Action.DOCUMENT_DELETE, actor,
        field="documents", old_value=old,
        metadata={"document_id": document_id},
    )


@transaction.atomic
def set_operating_hours(branch: Branch, hours: list[dict[str, Any]], actor) -> Branch:
    old = _operating_hours_payload(branch)
    _replace_operating_hours(branch, hours)
    _touch(branch, actor)
    BranchHistory.record(
        branch.pk, BranchHistory.Action.OPERATIONAL_HOURS_UPDATE, actor,
        field="operating_hours", old_value=old, new_value=_operating_hours_payload(branch),
    )
    return branch


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def hierarchy_tree() -> list[dict[str, Any]]:
    branches = (
        Branch.objects
        .filter(status=Branch.Status.ACTIVE)
        .only("id", "code", "name", "type", "parent_id", "level", "path")
        .order_by("level", "name")
    )
    return build_tree(
        branches,
        lambda b: {
            "id": str(b.pk),
            "code": b.code,
            "name": b.name,
            "type": b.type,
            "parent": str(b.parent_id) if b.parent_id else None,
            "level": b.level,
            "path": b.path,
        },
    )


def branches_near(longitude: float, latitude: float, max_distance_m: float) -> list[tuple[Branch, float]]:
    """Active branches within ``max_distance_m`` meters, nearest first."""
    radius_km = max_distance_m / 1000.0
    lat_delta = math.degrees(radius_km / EARTH_RADIUS_KM)
    cos_lat = math.cos(math.radians(latitude))
    lon_delta = 180.0 if cos_lat < 1e-9 else min(180.0, lat_delta / cos_lat)

    candidates = Branch.objects.filter(
        status=Branch.Status.ACTIVE,
        latitude__isnull=False,
        longitude__isnull=False,
        latitude__gte=latitude - lat_delta,
        latitude__lte=latitude + lat_delta,
    )
    if lon_delta < 180.0:
        candidates = candidates.filter(
            longitude__gte=longitude - lon_delta,
            longitude__lte=longitude + lon_delta,
        )

    found = []
    for branch in candidates:
        distance = haversine_km([longitude, latitude], branch.coordinates)
        if distance <= radius_km:
            found.append((branch, distance))
    found.sort(key=lambda pair: pair[1])
    return found
