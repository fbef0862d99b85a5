"""Materialized-path trees.

Every hierarchical row stores ``path`` (comma-joined ancestor ids ending with
its own id) and ``level`` (number of ancestors). Descendants are found with a
prefix match on ``path + ","`` instead of walking the tree.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from django.db import models, transaction

from core.exceptions import CircularReference, ParentNotFound

logger = logging.getLogger("logistics")

PATH_DELIMITER = ","

_UNKNOWN = object()


class HierarchyQuerySet(models.QuerySet):
    def roots(self):
        return self.filter(**{f"{self.model.hierarchy_parent_field}__isnull": True})

    def descendants_of(self, path: str):
        return self.filter(path__startswith=f"{path}{PATH_DELIMITER}")


class HierarchicalModel(models.Model):
    """Abstract tree node.

    Concrete models declare the self-referential foreign key and name it in
    ``hierarchy_parent_field``. ``path``/``level`` are recomputed in
    :meth:`save` only when the row is new or that foreign key changed since
    it was loaded.
    """

    hierarchy_parent_field = "parent"
    hierarchy_messages = {
        "parent_not_found": "Parent not found",
        "self_parent": "A node cannot be its own parent",
        "descendant_parent": "Cannot set a descendant as parent",
    }

    path = models.CharField("path", max_length=2048, blank=True, default="", db_index=True, editable=False)
    level = models.PositiveIntegerField("level", default=0, db_index=True, editable=False)

    objects = HierarchyQuerySet.as_manager()

    class Meta:
        abstract = True

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_parent_id = instance.__dict__.get(instance._parent_attname(), _UNKNOWN)
        return instance

    @classmethod
    def _parent_attname(cls) -> str:
        return cls._meta.get_field(cls.hierarchy_parent_field).attname

    # ------------------------------------------------------------------
    # Path maintenance
    # ------------------------------------------------------------------

    @property
    def hierarchy_parent_id(self):
        return getattr(self, self._parent_attname())

    def parent_is_dirty(self) -> bool:
        if self._state.adding:
            return True
        loaded = getattr(self, "_loaded_parent_id", _UNKNOWN)
        return loaded is _UNKNOWN or loaded != self.hierarchy_parent_id

    def compute_path_and_level(self) -> None:
        parent_id = self.hierarchy_parent_id
        if parent_id is None:
            self.path = str(self.pk)
            self.level = 0
            return

        parent = (
            type(self)._default_manager
            .filter(pk=parent_id)
            .only("path", "level")
            .first()
        )
        if parent is None:
            raise ParentNotFound(
                self.hierarchy_messages["parent_not_found"],
                field=self.hierarchy_parent_field,
            )
        self.path = f"{parent.path}{PATH_DELIMITER}{self.pk}"
        self.level = parent.level + 1

    def save(self, *args, **kwargs):
        reparented = self.parent_is_dirty()
        adding = self._state.adding
        old_path = self.path

        with transaction.atomic():
            if reparented:
                if not adding:
                    self.validate_reparent(self.hierarchy_parent_id)
                self.compute_path_and_level()
                update_fields = kwargs.get("update_fields")
                if update_fields is not None:
                    kwargs["update_fields"] = set(update_fields) | {"path", "level"}

            super().save(*args, **kwargs)

            if reparented and not adding and old_path and old_path != self.path:
                self._rewrite_subtree(old_path)

        self._loaded_parent_id = self.hierarchy_parent_id

    def _rewrite_subtree(self, old_path: str) -> None:
        descendants = list(
            type(self)._default_manager.descendants_of(old_path).only("path", "level")
        )
        for node in descendants:
            node.path = f"{self.path}{node.path[len(old_path):]}"
            node.level = node.path.count(PATH_DELIMITER)
        if descendants:
            type(self)._default_manager.bulk_update(descendants, ["path", "level"])
            logger.info(
                "Rewrote path of %d descendant(s) of %s %s",
                len(descendants), self._meta.model_name, self.pk,
            )

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def get_children(self):
        return type(self)._default_manager.filter(**{self.hierarchy_parent_field: self.pk})

    def get_descendants(self):
        return (
            type(self)._default_manager
            .descendants_of(self.path)
            .order_by("level", "path")
        )

    def ancestor_ids(self) -> list[str]:
        if not self.path:
            return []
        return self.path.split(PATH_DELIMITER)[:-1]

    def get_ancestors(self) -> list:
        """Ancestors ordered from the root down to the immediate parent."""
        ids = self.ancestor_ids()
        if not ids:
            return []
        found = {
            str(pk): node
            for pk, node in type(self)._default_manager.in_bulk(ids).items()
        }
        return [found[node_id] for node_id in ids if node_id in found]

    def validate_reparent(self, candidate_parent_id) -> None:
        """Reject a new parent that is this node or one of its descendants.

        The descendant set is read from the live row, not from ``self.path``.
        """
        if candidate_parent_id is None:
            return
        if str(candidate_parent_id) == str(self.pk):
            raise CircularReference(
                self.hierarchy_messages["self_parent"],
                field=self.hierarchy_parent_field,
            )
        live_path = (
            type(self)._default_manager
            .filter(pk=self.pk)
            .values_list("path", flat=True)
            .first()
        ) or self.path
        if type(self)._default_manager.descendants_of(live_path).filter(pk=candidate_parent_id).exists():
            raise CircularReference(
                self.hierarchy_messages["descendant_parent"],
                field=self.hierarchy_parent_field,
            )


def build_tree(nodes: Iterable[HierarchicalModel], to_dict: Callable[[Any], dict]) -> list[dict]:
    """Nest ``nodes`` under their parents; orphans of the set become roots."""
    nodes = list(nodes)
    items = {}
    for node in nodes:
        item = to_dict(node)
        item["children"] = []
        items[node.pk] = item

    roots = []
    for node in nodes:
        parent_item = items.get(node.hierarchy_parent_id)
        if parent_item is not None:
            parent_item["children"].append(items[node.pk])
        else:
            roots.append(items[node.pk])
    return roots
