"""Tests for /api/v1/service-areas/ CRUD, assignments, pricing and geo lookups."""
import logging
import uuid

import pytest
from django.core.cache import cache

from service_areas import services
from service_areas.models import ServiceArea, ServiceAreaBranch, ServiceAreaHistory

URL = "/api/v1/service-areas/"

OVERLAPPING = [[106.85, -6.25], [107.0, -6.25], [107.0, -6.0], [106.85, -6.0], [106.85, -6.25]]
FAR_AWAY = [[110.0, -7.0], [110.1, -7.0], [110.1, -6.9], [110.0, -6.9], [110.0, -7.0]]


def detail_url(area_id, suffix=""):
    return f"{URL}{area_id}/{suffix}"


def polygon(ring):
    return {"type": "Polygon", "coordinates": [ring]}


def make_area(actor, code, ring, **extra):
    data = {"name": f"Area {code}", "code": code, "boundaries": polygon(ring)}
    data.update(extra)
    return services.create_service_area(data, actor)


@pytest.mark.django_db
class TestCreate:
    def test_center_defaults_to_centroid(self, admin_client, square):
        resp = admin_client.post(URL, {"name": "Central", "code": "SA-C", "boundaries": square}, format="json")
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["center"] == [pytest.approx(106.78), pytest.approx(-6.22)]
        assert data["type"] == "both"
        assert data["status"] == "active"

        entry = ServiceAreaHistory.objects.get(entity_id=data["id"])
        assert entry.action == "create"
        assert entry.reason == "Initial creation"
        assert "boundaries" in entry.changed_fields

    def test_full_payload(self, admin_client, square, branch, other_branch):
        payload = {
            "name": "Central",
            "code": "SA-C",
            "boundaries": square,
            "center": [106.8, -6.2],
            "coverage_radius": 7.5,
            "type": "delivery",
            "pricing": {
                "base_price": "10000.00",
                "price_per_km": 1500,
                "minimum_distance": 0,
                "maximum_distance": 50,
                "special_rates": [{"name": "Night", "rate": 1.5}],
            },
            "branches": [
                {"branch": str(branch.pk), "is_primary": True},
                {"branch": str(other_branch.pk)},
            ],
        }
        resp = admin_client.post(URL, payload, format="json")
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["center"] == [106.8, -6.2]
        assert data["pricing"]["base_price"] == 10000
        assert data["pricing"]["special_rates"] == [{"name": "Night", "rate": 1.5}]
        primaries = {row["branch"]: row["is_primary"] for row in data["branches"]}
        assert primaries == {str(branch.pk): True, str(other_branch.pk): False}

    def test_duplicate_code(self, admin_client, square, service_area):
        resp = admin_client.post(URL, {"name": "Again", "code": "SA-JKT", "boundaries": square}, format="json")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Service area code already exists"

    def test_code_taken_between_check_and_insert(self, admin_client, square, service_area, monkeypatch):
        monkeypatch.setattr(services, "_check_code_available", lambda code, exclude_pk=None: None)
        resp = admin_client.post(URL, {"name": "Again", "code": "SA-JKT", "boundaries": square}, format="json")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Service area code already exists"
        assert ServiceArea.objects.filter(code="SA-JKT").count() == 1

    def test_same_branch_twice(self, admin_client, square, branch):
        payload = {
            "name": "Central", "code": "SA-C", "boundaries": square,
            "branches": [{"branch": str(branch.pk), "is_primary": True}, {"branch": str(branch.pk)}],
        }
        resp = admin_client.post(URL, payload, format="json")
        assert resp.status_code == 400
        assert resp.json()["message"] == "A branch can only be assigned once"
        assert not ServiceArea.objects.filter(code="SA-C").exists()

    def test_two_primary_branches(self, admin_client, square, branch, other_branch):
        payload = {
            "name": "Central", "code": "SA-C", "boundaries": square,
            "branches": [
                {"branch": str(branch.pk), "is_primary": True},
                {"branch": str(other_branch.pk), "is_primary": True},
            ],
        }
        resp = admin_client.post(URL, payload, format="json")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Only one branch can be primary"

    def test_unknown_branch(self, admin_client, square, db):
        payload = {
            "name": "Central", "code": "SA-C", "boundaries": square,
            "branches": [{"branch": str(uuid.uuid4())}],
        }
        resp = admin_client.post(URL, payload, format="json")
        assert resp.status_code == 404
        assert resp.json()["message"] == "One or more assigned branches do not exist"

    def test_unclosed_ring(self, admin_client, db):
        ring = [[106.7, -6.3], [106.9, -6.3], [106.9, -6.1], [106.7, -6.1]]
        resp = admin_client.post(URL, {"name": "Open", "code": "SA-O", "boundaries": polygon(ring)}, format="json")
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "boundaries"

    def test_minimum_above_maximum_distance(self, admin_client, square, db):
        payload = {
            "name": "Central", "code": "SA-C", "boundaries": square,
            "pricing": {"minimum_distance": 20, "maximum_distance": 10},
        }
        resp = admin_client.post(URL, payload, format="json")
        assert resp.status_code == 400

    def test_overlap_is_only_a_warning(self, admin_client, admin_user, square, caplog, monkeypatch):
        monkeypatch.setattr(logging.getLogger("logistics"), "propagate", True)
        make_area(admin_user, "SA-EAST", OVERLAPPING)

        with caplog.at_level(logging.WARNING, logger="logistics"):
            resp = admin_client.post(
                URL,
                {"name": "Central", "code": "SA-C", "boundaries": square, "check_overlap": True},
                format="json",
            )
        assert resp.status_code == 201
        assert "overlaps with Area SA-EAST (SA-EAST)" in caplog.text


@pytest.mark.django_db
class TestListAndRetrieve:
    def test_list_includes_every_status(self, admin_client, admin_user, service_area):
        inactive = make_area(admin_user, "SA-OFF", FAR_AWAY)
        services.change_service_area_status(inactive, "inactive", "", admin_user)

        resp = admin_client.get(URL)
        data = resp.json()["data"]
        assert {row["code"] for row in data["service_areas"]} == {"SA-JKT", "SA-OFF"}
        assert data["pagination"] == {
            "total": 2, "page": 1, "limit": 10, "total_pages": 1,
            "has_next_page": False, "has_prev_page": False,
        }

    def test_status_filter(self, admin_client, admin_user, service_area):
        inactive = make_area(admin_user, "SA-OFF", FAR_AWAY)
        services.change_service_area_status(inactive, "inactive", "", admin_user)
        resp = admin_client.get(URL, {"status": "inactive"})
        assert [row["code"] for row in resp.json()["data"]["service_areas"]] == ["SA-OFF"]

    def test_type_filter(self, admin_client, admin_user, service_area):
        make_area(admin_user, "SA-PICK", FAR_AWAY, type="pickup")
        resp = admin_client.get(URL, {"type": "pickup"})
        assert [row["code"] for row in resp.json()["data"]["service_areas"]] == ["SA-PICK"]

    def test_retrieve_is_cached(self, admin_client, service_area):
        key = services.detail_cache_key(service_area.pk)
        resp = admin_client.get(detail_url(service_area.pk))
        assert resp.status_code == 200
        assert cache.get(key)["code"] == "SA-JKT"

        ServiceArea.objects.filter(pk=service_area.pk).update(name="Changed behind the cache")
        assert admin_client.get(detail_url(service_area.pk)).json()["data"]["name"] == "Central Jakarta"

    def test_mutation_invalidates_cache(self, admin_client, service_area):
        admin_client.get(detail_url(service_area.pk))
        admin_client.patch(detail_url(service_area.pk), {"name": "Jakarta Pusat"}, format="json")
        assert cache.get(services.detail_cache_key(service_area.pk)) is None
        assert admin_client.get(detail_url(service_area.pk)).json()["data"]["name"] == "Jakarta Pusat"

    def test_unknown_area(self, admin_client, db):
        resp = admin_client.get(detail_url(uuid.uuid4()))
        assert resp.status_code == 404
        assert resp.json()["message"] == "Service area not found"


@pytest.mark.django_db
class TestUpdateStatusDelete:
    def test_update_records_changed_fields(self, admin_client, service_area):
        resp = admin_client.patch(
            detail_url(service_area.pk), {"name": "Jakarta Pusat", "coverage_radius": 8}, format="json",
        )
        assert resp.status_code == 200
        entry = ServiceAreaHistory.objects.get(entity_id=service_area.pk, action="update")
        assert sorted(entry.changed_fields) == ["coverage_radius", "name"]
        assert entry.reason == "Update service area"
        assert entry.old_value["name"] == "Central Jakarta"

    def test_update_replaces_branches(self, admin_client, service_area, branch, other_branch):
        ServiceAreaBranch.objects.create(service_area=service_area, branch=branch, is_primary=True)
        resp = admin_client.patch(
            detail_url(service_area.pk), {"branches": [{"branch": str(other_branch.pk)}]}, format="json",
        )
        assert resp.status_code == 200
        assert [row["branch"] for row in resp.json()["data"]["branches"]] == [str(other_branch.pk)]

    def test_duplicate_code_on_update(self, admin_client, admin_user, service_area):
        other = make_area(admin_user, "SA-OTHER", FAR_AWAY)
        resp = admin_client.patch(detail_url(other.pk), {"code": "SA-JKT"}, format="json")
        assert resp.status_code == 400

    def test_change_status(self, admin_client, service_area):
        resp = admin_client.patch(detail_url(service_area.pk, "status/"), {"status": "inactive"}, format="json")
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "inactive"
        entry = ServiceAreaHistory.objects.get(entity_id=service_area.pk, action="status_change")
        assert entry.reason == "Status changed to inactive"

        again = admin_client.patch(detail_url(service_area.pk, "status/"), {"status": "inactive"}, format="json")
        assert again.status_code == 400
        assert again.json()["message"] == "Service area is already inactive"

    def test_delete(self, admin_client, service_area):
        resp = admin_client.delete(detail_url(service_area.pk))
        assert resp.json() == {"status": "success", "message": "Service area deleted successfully"}
        assert admin_client.get(detail_url(service_area.pk)).status_code == 404
        entry = ServiceAreaHistory.objects.get(entity_id=service_area.pk, action="delete")
        assert entry.old_value["code"] == "SA-JKT"

    def test_history_pagination(self, admin_client, service_area):
        admin_client.patch(detail_url(service_area.pk, "status/"), {"status": "pending"}, format="json")
        data = admin_client.get(detail_url(service_area.pk, "history/")).json()["data"]
        assert [entry["action"] for entry in data["history"]] == ["status_change", "create"]
        assert data["history"][0]["changed_fields"] == ["status"]
        assert data["pagination"]["has_next_page"] is False


@pytest.mark.django_db
class TestBranchAssignment:
    def test_assign_primary_clears_previous(self, admin_client, service_area, branch, other_branch):
        first = admin_client.post(
            detail_url(service_area.pk, "branches/"), {"branch": str(branch.pk), "is_primary": True}, format="json",
        )
        assert first.status_code == 200

        second = admin_client.post(
            detail_url(service_area.pk, "branches/"),
            {"branch": str(other_branch.pk), "is_primary": True},
            format="json",
        )
        rows = {row["branch"]: row["is_primary"] for row in second.json()["data"]["branches"]}
        assert rows == {str(branch.pk): False, str(other_branch.pk): True}
        assert service_area.assignments.filter(is_primary=True).count() == 1

        entry = ServiceAreaHistory.objects.filter(
            entity_id=service_area.pk, action="branch_assignment",
        ).first()
        assert entry.metadata["operation"] == "assign"
        assert entry.metadata["branch_id"] == str(other_branch.pk)

    def test_reassign_updates_flag(self, admin_client, service_area, branch):
        url = detail_url(service_area.pk, "branches/")
        admin_client.post(url, {"branch": str(branch.pk), "is_primary": True}, format="json")
        admin_client.post(url, {"branch": str(branch.pk), "is_primary": False}, format="json")
        assert service_area.assignments.get().is_primary is False

    def test_assign_unknown_branch(self, admin_client, service_area):
        resp = admin_client.post(
            detail_url(service_area.pk, "branches/"), {"branch": str(uuid.uuid4())}, format="json",
        )
        assert resp.status_code == 404
        assert resp.json()["message"] == "Branch not found"

    def test_remove_branch(self, admin_client, service_area, branch):
        ServiceAreaBranch.objects.create(service_area=service_area, branch=branch)
        resp = admin_client.delete(detail_url(service_area.pk, f"branches/{branch.pk}/"))
        assert resp.status_code == 200
        assert resp.json()["data"]["branches"] == []

        entry = ServiceAreaHistory.objects.filter(entity_id=service_area.pk, action="branch_assignment").first()
        assert entry.metadata["operation"] == "remove"

    def test_remove_unassigned_branch(self, admin_client, service_area, branch):
        resp = admin_client.delete(detail_url(service_area.pk, f"branches/{branch.pk}/"))
        assert resp.status_code == 404
        assert resp.json()["message"] == "Branch not assigned to this service area"


@pytest.mark.django_db
class TestPricing:
    def test_update_pricing(self, admin_client, service_area):
        resp = admin_client.patch(
            detail_url(service_area.pk, "pricing/"),
            {"base_price": "15000", "price_per_km": 2500, "maximum_distance": 40, "reason": "2025 tariff"},
            format="json",
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["base_price"] == 15000
        assert data["price_per_km"] == 2500
        assert data["maximum_distance"] == 40

        entry = ServiceAreaHistory.objects.get(entity_id=service_area.pk, action="pricing_update")
        assert entry.reason == "2025 tariff"
        assert entry.field == "pricing"

    def test_minimum_above_stored_maximum(self, admin_client, service_area):
        resp = admin_client.patch(detail_url(service_area.pk, "pricing/"), {"minimum_distance": 5}, format="json")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Minimum distance cannot exceed maximum distance"

    def test_empty_patch(self, admin_client, service_area):
        resp = admin_client.patch(detail_url(service_area.pk, "pricing/"), {}, format="json")
        assert resp.status_code == 400


@pytest.mark.django_db
class TestGeoLookups:
    def test_point_inside(self, admin_client, service_area):
        resp = admin_client.get(f"{URL}point/", {"longitude": 106.8, "latitude": -6.2})
        data = resp.json()["data"]
        assert data["count"] == 1
        match = data["service_areas"][0]
        assert match["code"] == "SA-JKT"
        assert match["distance"] == 0
        assert match["within_coverage_radius"] is True

    def test_point_outside_coverage_radius(self, admin_client, service_area):
        resp = admin_client.get(f"{URL}point/", {"longitude": 106.88, "latitude": -6.28})
        match = resp.json()["data"]["service_areas"][0]
        assert match["within_coverage_radius"] is False

    def test_point_outside(self, admin_client, service_area):
        resp = admin_client.get(f"{URL}point/", {"longitude": 110.0, "latitude": -7.5})
        assert resp.json()["data"]["count"] == 0

    def test_inactive_areas_ignored(self, admin_client, admin_user, service_area):
        services.change_service_area_status(service_area, "inactive", "", admin_user)
        resp = admin_client.get(f"{URL}point/", {"longitude": 106.8, "latitude": -6.2})
        assert resp.json()["data"]["count"] == 0

    @pytest.mark.parametrize("point", [
        (106.7, -6.2),
        (106.9, -6.2),
        (106.8, -6.3),
        (106.8, -6.1),
        (106.9, -6.1),
    ])
    def test_point_on_boundary(self, admin_client, service_area, point):
        resp = admin_client.get(f"{URL}point/", {"longitude": point[0], "latitude": point[1]})
        assert [row["code"] for row in resp.json()["data"]["service_areas"]] == ["SA-JKT"]

    def test_shared_edge_belongs_to_both_areas(self, admin_client, admin_user, service_area):
        make_area(admin_user, "SA-NEXT", [[106.9, -6.3], [107.1, -6.3], [107.1, -6.1], [106.9, -6.1], [106.9, -6.3]])
        resp = admin_client.get(f"{URL}point/", {"longitude": 106.9, "latitude": -6.2})
        assert {row["code"] for row in resp.json()["data"]["service_areas"]} == {"SA-JKT", "SA-NEXT"}

    def test_bounding_box_follows_boundaries(self, admin_user, service_area):
        assert (service_area.min_longitude, service_area.max_latitude) == (106.7, -6.1)
        services.update_service_area(service_area, {"boundaries": polygon(FAR_AWAY)}, admin_user)
        service_area.refresh_from_db()
        assert (service_area.min_longitude, service_area.min_latitude) == (110.0, -7.0)
        assert (service_area.max_longitude, service_area.max_latitude) == (110.1, -6.9)
        assert ServiceArea.objects.find_containing_areas([106.8, -6.2]) == []
        [(area, _, _)] = ServiceArea.objects.find_containing_areas([110.05, -6.95])
        assert area.pk == service_area.pk

    def test_point_requires_coordinates(self, admin_client, db):
        resp = admin_client.get(f"{URL}point/", {"longitude": 200, "latitude": 0})
        assert resp.status_code == 400

    def test_location_default_radius(self, admin_client, admin_user, service_area):
        make_area(admin_user, "SA-FAR", FAR_AWAY)
        resp = admin_client.get(f"{URL}location/", {"longitude": 106.85, "latitude": -6.2})
        data = resp.json()["data"]
        assert [row["code"] for row in data["service_areas"]] == ["SA-JKT"]
        assert data["max_distance"] == 10

    def test_location_small_radius(self, admin_client, service_area):
        resp = admin_client.get(f"{URL}location/", {"longitude": 106.85, "latitude": -6.2, "max_distance": 1})
        assert resp.json()["data"]["count"] == 0

    def test_overlaps(self, admin_client, admin_user, service_area):
        make_area(admin_user, "SA-EAST", OVERLAPPING)
        make_area(admin_user, "SA-FAR", FAR_AWAY)
        resp = admin_client.get(detail_url(service_area.pk, "overlaps/"))
        data = resp.json()["data"]
        assert data["service_area"]["code"] == "SA-JKT"
        assert [row["code"] for row in data["overlapping_areas"]] == ["SA-EAST"]
        assert data["count"] == 1


@pytest.mark.django_db
class TestAccess:
    def test_reader_cannot_assign(self, reader_client, service_area, branch):
        resp = reader_client.post(detail_url(service_area.pk, "branches/"), {"branch": str(branch.pk)}, format="json")
        assert resp.status_code == 403

    def test_reader_can_look_up(self, reader_client, service_area):
        resp = reader_client.get(f"{URL}point/", {"longitude": 106.8, "latitude": -6.2})
        assert resp.status_code == 200
