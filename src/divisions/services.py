"""Business-logic / service functions for divisions and positions.

Same contract as the branch services: one transaction per mutation, the
history record(s) written after the row.
"""
from __future__ import annotations

import logging
from typing import Any

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from branches.models import Branch
from core.exceptions import (
    AlreadyInState,
    DependentRecordsExist,
    DomainError,
    DuplicateCode,
    ParentNotFound,
    RelatedNotFound,
)
from core.hierarchy import PATH_DELIMITER, build_tree
from core.history import actor_id, snapshot
from divisions.models import Division, DivisionHistory, Position, PositionHistory

logger = logging.getLogger("logistics")

BUDGET_FIELDS = ("budget_allocated", "budget_spent", "budget_currency", "fiscal_year")
COMPENSATION_FIELDS = ("salary_grade", "salary_min", "salary_max", "salary_currency", "benefits")
VACANCY_FIELDS = ("is_vacant", "headcount_authorized", "headcount_filled")


def _budget_payload(division: Division) -> dict[str, Any]:
    return {
        "allocated": division.budget_allocated,
        "spent": division.budget_spent,
        "remaining": division.budget_remaining,
        "currency": division.budget_currency,
        "fiscal_year": division.fiscal_year,
        "updated_at": division.budget_updated_at,
    }


def _compensation_payload(position: Position) -> dict[str, Any]:
    return {field: getattr(position, field) for field in COMPENSATION_FIELDS}


def _subtree(model, roots) -> list:
    """``roots`` plus every descendant, ordered for tree building."""
    roots = list(roots)
    if not roots:
        return []
    under = Q()
    for root in roots:
        under |= Q(path__startswith=f"{root.path}{PATH_DELIMITER}")
    descendants = model.objects.filter(under).order_by("level", "path")
    return roots + list(descendants)


def _ensure_branch(branch_id) -> None:
    if not Branch.objects.filter(pk=branch_id).exists():
        raise RelatedNotFound("Branch not found", field="branch")


def _ensure_head_position(position_id) -> None:
    if position_id is not None and not Position.objects.filter(pk=position_id).exists():
        raise RelatedNotFound("Head position not found", field="head_position")


def _ensure_division(division_id) -> None:
    if not Division.objects.filter(pk=division_id).exists():
        raise RelatedNotFound("Division not found", field="division")


def _ensure_parent(model, parent_id) -> None:
    if parent_id is not None and not model.objects.filter(pk=parent_id).exists():
        raise ParentNotFound(
            model.hierarchy_messages["parent_not_found"], field=model.hierarchy_parent_field,
        )


def _check_code(model, code: str, label: str, exclude_pk=None) -> None:
    taken = model.objects.filter(code=code)
    if exclude_pk is not None:
        taken = taken.exclude(pk=exclude_pk)
    if taken.exists():
        raise DuplicateCode(f"{label} code already exists")


def _check_salary_range(position: Position) -> None:
    if position.salary_min > position.salary_max:
        raise DomainError("Minimum salary cannot exceed maximum salary", field="salary_range.min")


def _status_change(instance, history_model, new_status, reason, actor) -> dict[str, Any]:
    entry = dict(
        action=history_model.Action.STATUS_CHANGE,
        field="status",
        old_value=instance.status,
        new_value=new_status,
        reason=reason,
    )
    instance.add_status_history(new_status, reason, actor_id(actor))
    return entry


# ---------------------------------------------------------------------------
# Divisions
# ---------------------------------------------------------------------------

@transaction.atomic
def create_division(data: dict[str, Any], actor) -> Division:
    _check_code(Division, data["code"], "Division")
    _ensure_parent(Division, data.get("parent_id"))
    _ensure_branch(data["branch_id"])
    _ensure_head_position(data.get("head_position_id"))

    division = Division(**data)
    division.recompute_remaining_budget()
    division.created_by = division.updated_by = actor_id(actor)
    division.add_status_history(division.status, "Initial creation", actor_id(actor))
    division.save()

    DivisionHistory.record(division.pk, DivisionHistory.Action.CREATE, actor, new_value=snapshot(division))
    logger.info("Division %s (%s) created by %s", division.code, division.pk, actor_id(actor))
    return division


@transaction.atomic
def update_division(division: Division, changes: dict[str, Any], actor, status_reason: str = "") -> Division:
    changes = dict(changes)
    pending = []

    if "code" in changes and changes["code"] != division.code:
        _check_code(Division, changes["code"], "Division", exclude_pk=division.pk)
    if "parent_id" in changes and changes["parent_id"] != division.parent_id:
        division.validate_reparent(changes["parent_id"])
        _ensure_parent(Division, changes["parent_id"])
    if "branch_id" in changes:
        _ensure_branch(changes["branch_id"])
    if "head_position_id" in changes:
        _ensure_head_position(changes["head_position_id"])

    new_status = changes.pop("status", None)
    if new_status and new_status != division.status:
        pending.append(_status_change(
            division, DivisionHistory, new_status, status_reason or "Status updated", actor,
        ))

    for field, value in changes.items():
        old_value = getattr(division, field)
        if old_value != value:
            pending.append(dict(
                action=DivisionHistory.Action.UPDATE, field=field, old_value=old_value, new_value=value,
            ))
            setattr(division, field, value)

    division.updated_by = actor_id(actor)
    division.save()

    for entry in pending:
        DivisionHistory.record(division.pk, actor=actor, **entry)
    logger.info("Division %s updated by %s (%d change(s))", division.pk, actor_id(actor), len(pending))
    return division


@transaction.atomic
def delete_division(division: Division, actor) -> None:
    if division.get_children().exists():
        raise DependentRecordsExist("Cannot delete division with child divisions")
    if division.positions.exists():
        raise DependentRecordsExist("Cannot delete division with associated positions")

    division_id = division.pk
    data = snapshot(division)
    division.delete()

    DivisionHistory.record(division_id, DivisionHistory.Action.DELETE, actor, old_value=data)
    logger.info("Division %s deleted by %s", division_id, actor_id(actor))


@transaction.atomic
def change_division_status(division: Division, status: str, reason: str, actor) -> Division:
    if division.status == status:
        raise AlreadyInState(f"Division is already {status}", field="status")

    entry = _status_change(division, DivisionHistory, status, reason, actor)
    division.updated_by = actor_id(actor)
    division.save(update_fields=["status", "status_history", "updated_by", "updated_at"])
    DivisionHistory.record(division.pk, actor=actor, **entry)
    return division


@transaction.atomic
def update_kpis(division: Division, kpis: list[dict[str, Any]], actor) -> Division:
    old = list(division.kpis or [])
    now = timezone.now()
    division.kpis = [{**kpi, "updated_at": now.isoformat()} for kpi in kpis]
    division.metrics_updated_at = now
    division.updated_by = actor_id(actor)
    division.save(update_fields=["kpis", "metrics_updated_at", "updated_by", "updated_at"])

    DivisionHistory.record(
        division.pk, DivisionHistory.Action.KPI_UPDATE, actor,
        field="kpis", old_value=old, new_value=division.kpis,
    )
    return division


@transaction.atomic
def update_budget(division: Division, patch: dict[str, Any], actor) -> Division:
    """Merge ``patch`` into the budget; ``remaining`` is always ``allocated - spent``."""
    old = _budget_payload(division)
    for field in BUDGET_FIELDS:
        if field in patch:
            setattr(division, field, patch[field])
    division.recompute_remaining_budget()
    division.budget_updated_at = timezone.now()
    division.updated_by = actor_id(actor)
    division.save(update_fields=[
        *BUDGET_FIELDS, "budget_remaining", "budget_updated_at", "updated_by", "updated_at",
    ])

    DivisionHistory.record(
        division.pk, DivisionHistory.Action.BUDGET_UPDATE, actor,
        field="budget", old_value=old, new_value=_budget_payload(division),
    )
    return division


def division_hierarchy(branch_id=None) -> list[dict[str, Any]]:
    roots = Division.objects.roots().order_by("name")
    if branch_id:
        roots = roots.filter(branch_id=branch_id)
    return build_tree(
        _subtree(Division, roots),
        lambda d: {
            "id": str(d.pk),
            "code": d.code,
            "name": d.name,
            "branch": str(d.branch_id),
            "head_position": str(d.head_position_id) if d.head_position_id else None,
            "level": d.level,
            "status": d.status,
        },
    )


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------

@transaction.atomic
def create_position(data: dict[str, Any], actor) -> Position:
    _check_code(Position, data["code"], "Position")
    _ensure_parent(Position, data.get("reporting_to_id"))
    _ensure_division(data["division_id"])

    position = Position(**data)
    _check_salary_range(position)
    position.created_by = position.updated_by = actor_id(actor)
    position.add_status_history(position.status, "Initial creation", actor_id(actor))
    position.save()

    PositionHistory.record(position.pk, PositionHistory.Action.CREATE, actor, new_value=snapshot(position))
    logger.info("Position %s (%s) created by %s", position.code, position.pk, actor_id(actor))
    return position


@transaction.atomic
def update_position(position: Position, changes: dict[str, Any], actor, status_reason: str = "") -> Position:
    """Reporting-line and vacancy changes get their own history actions."""
    changes = dict(changes)
    pending = []

    if "code" in changes and changes["code"] != position.code:
        _check_code(Position, changes["code"], "Position", exclude_pk=position.pk)
    if "division_id" in changes:
        _ensure_division(changes["division_id"])

    reporting_to = changes.pop("reporting_to_id", position.reporting_to_id)
    if reporting_to != position.reporting_to_id:
        position.validate_reparent(reporting_to)
        _ensure_parent(Position, reporting_to)
        pending.append(dict(
            action=PositionHistory.Action.REPORTING_CHANGE,
            field="reporting_to",
            old_value=position.reporting_to_id,
            new_value=reporting_to,
        ))
        position.reporting_to_id = reporting_to

    vacancy = {field: changes.pop(field) for field in VACANCY_FIELDS if field in changes}
    if vacancy:
        old_vacancy = position.vacancy
        for field, value in vacancy.items():
            setattr(position, field, value)
        if position.vacancy != old_vacancy:
            pending.append(dict(
                action=PositionHistory.Action.VACANCY_CHANGE,
                field="vacancy",
                old_value=old_vacancy,
                new_value=position.vacancy,
            ))

    new_status = changes.pop("status", None)
    if new_status and new_status != position.status:
        pending.append(_status_change(
            position, PositionHistory, new_status, status_reason or "Status updated", actor,
        ))

    for field, value in changes.items():
        old_value = getattr(position, field)
        if old_value != value:
            pending.append(dict(
                action=PositionHistory.Action.UPDATE, field=field, old_value=old_value, new_value=value,
            ))
            setattr(position, field, value)

    _check_salary_range(position)
    position.updated_by = actor_id(actor)
    position.save()

    for entry in pending:
        PositionHistory.record(position.pk, actor=actor, **entry)
    logger.info("Position %s updated by %s (%d change(s))", position.pk, actor_id(actor), len(pending))
    return position


@transaction.atomic
def delete_position(position: Position, actor) -> None:
    if position.direct_reports.exists():
        raise DependentRecordsExist("Cannot delete position with direct reports")
    if position.headed_divisions.exists():
        raise DependentRecordsExist("Cannot delete position that is a division head")

    position_id = position.pk
    data = snapshot(position)
    position.delete()

    PositionHistory.record(position_id, PositionHistory.Action.DELETE, actor, old_value=data)
    logger.info("Position %s deleted by %s", position_id, actor_id(actor))


@transaction.atomic
def change_position_status(position: Position, status: str, reason: str, actor) -> Position:
    if position.status == status:
        raise AlreadyInState(f"Position is already {status}", field="status")

    entry = _status_change(position, PositionHistory, status, reason, actor)
    position.updated_by = actor_id(actor)
    position.save(update_fields=["status", "status_history", "updated_by", "updated_at"])
    PositionHistory.record(position.pk, actor=actor, **entry)
    return position


@transaction.atomic
def replace_position_block(position: Position, field: str, value, actor) -> Position:
    """Replace ``requirements``, ``responsibilities`` or ``authorities`` wholesale."""
    old = getattr(position, field)
    setattr(position, field, value)
    position.updated_by = actor_id(actor)
    position.save(update_fields=[field, "updated_by", "updated_at"])

    PositionHistory.record(
        position.pk, PositionHistory.Action.UPDATE, actor,
        field=field, old_value=old, new_value=value,
    )
    return position


@transaction.atomic
def update_compensation(position: Position, patch: dict[str, Any], actor) -> Position:
    old = _compensation_payload(position)
    for field in COMPENSATION_FIELDS:
        if field in patch:
            setattr(position, field, patch[field])
    _check_salary_range(position)
    position.updated_by = actor_id(actor)
    position.save(update_fields=[*COMPENSATION_FIELDS, "updated_by", "updated_at"])

    PositionHistory.record(
        position.pk, PositionHistory.Action.UPDATE, actor,
        field="compensation", old_value=old, new_value=_compensation_payload(position),
    )
    return position


def position_hierarchy(division_id=None) -> list[dict[str, Any]]:
    roots = Position.objects.roots().order_by("title")
    if division_id:
        roots = roots.filter(division_id=division_id)
    return build_tree(
        _subtree(Position, roots),
        lambda p: {
            "id": str(p.pk),
            "code": p.code,
            "title": p.title,
            "division": str(p.division_id),
            "reporting_to": str(p.reporting_to_id) if p.reporting_to_id else None,
            "level": p.level,
            "is_vacant": p.is_vacant,
            "status": p.status,
        },
    )
