import uuid

import pytest

from branches.models import Branch
from core.exceptions import CircularReference, ParentNotFound
from core.hierarchy import build_tree


@pytest.mark.django_db
class TestMaterializedPath:
    def test_root_path_is_own_id(self, make_branch):
        root = make_branch("ROOT")
        assert root.path == str(root.pk)
        assert root.level == 0

    def test_child_path_extends_parent(self, make_branch):
        root = make_branch("ROOT")
        child = make_branch("CHILD", parent_id=root.pk)
        grandchild = make_branch("GRAND", parent_id=child.pk)

        assert child.path == f"{root.pk},{child.pk}"
        assert child.level == 1
        assert grandchild.path == f"{root.pk},{child.pk},{grandchild.pk}"
        assert grandchild.level == 2

    def test_missing_parent_is_rejected(self, make_branch):
        with pytest.raises(ParentNotFound):
            Branch(parent_id=uuid.uuid4(), code="ORPHAN", name="Orphan", type="branch").save()

    def test_reparent_rewrites_descendants(self, make_branch):
        a = make_branch("A")
        b = make_branch("B", parent_id=a.pk)
        c = make_branch("C", parent_id=b.pk)
        d = make_branch("D")

        b = Branch.objects.get(pk=b.pk)
        b.parent_id = d.pk
        b.save()

        b.refresh_from_db()
        c.refresh_from_db()
        assert b.path == f"{d.pk},{b.pk}"
        assert b.level == 1
        assert c.path == f"{d.pk},{b.pk},{c.pk}"
        assert c.level == 2

    def test_moving_to_root_resets_level(self, make_branch):
        a = make_branch("A")
        b = make_branch("B", parent_id=a.pk)
        c = make_branch("C", parent_id=b.pk)

        b = Branch.objects.get(pk=b.pk)
        b.parent_id = None
        b.save()

        c.refresh_from_db()
        assert b.path == str(b.pk)
        assert b.level == 0
        assert c.level == 1

    def test_unchanged_parent_keeps_path(self, make_branch):
        root = make_branch("ROOT")
        child = make_branch("CHILD", parent_id=root.pk)
        child = Branch.objects.get(pk=child.pk)
        child.name = "Renamed"
        child.save()
        child.refresh_from_db()
        assert child.path == f"{root.pk},{child.pk}"


@pytest.mark.django_db
class TestCycleDetection:
    def test_self_parent(self, make_branch):
        a = make_branch("A")
        with pytest.raises(CircularReference, match="its own parent"):
            a.validate_reparent(a.pk)

    def test_descendant_parent(self, make_branch):
        a = make_branch("A")
        b = make_branch("B", parent_id=a.pk)
        c = make_branch("C", parent_id=b.pk)
        with pytest.raises(CircularReference, match="descendant"):
            a.validate_reparent(c.pk)

    def test_sibling_is_allowed(self, make_branch):
        a = make_branch("A")
        b = make_branch("B")
        a.validate_reparent(b.pk)

    def test_save_rejects_cycle(self, make_branch):
        a = make_branch("A")
        b = make_branch("B", parent_id=a.pk)
        a = Branch.objects.get(pk=a.pk)
        a.parent_id = b.pk
        with pytest.raises(CircularReference):
            a.save()

        a.refresh_from_db()
        b.refresh_from_db()
        assert (a.parent_id, a.path, a.level) == (None, str(a.pk), 0)
        assert (b.parent_id, b.path, b.level) == (a.pk, f"{a.pk},{b.pk}", 1)


@pytest.mark.django_db
class TestTraversal:
    def test_ancestors_root_first(self, make_branch):
        a = make_branch("A")
        b = make_branch("B", parent_id=a.pk)
        c = make_branch("C", parent_id=b.pk)
        assert [node.pk for node in c.get_ancestors()] == [a.pk, b.pk]
        assert a.get_ancestors() == []

    def test_descendants_by_prefix(self, make_branch):
        a = make_branch("A")
        b = make_branch("B", parent_id=a.pk)
        c = make_branch("C", parent_id=b.pk)
        make_branch("OTHER")
        assert [node.pk for node in a.get_descendants()] == [b.pk, c.pk]
        assert [node.pk for node in a.get_children()] == [b.pk]

    def test_build_tree_nests_children(self, make_branch):
        a = make_branch("A")
        b = make_branch("B", parent_id=a.pk)
        make_branch("C", parent_id=b.pk)

        nodes = Branch.objects.order_by("level", "name")
        tree = build_tree(nodes, lambda node: {"code": node.code})

        assert len(tree) == 1
        assert tree[0]["code"] == "A"
        assert tree[0]["children"][0]["code"] == "B"
        assert tree[0]["children"][0]["children"][0]["code"] == "C"
