"""Tests for /api/v1/positions/: reporting lines, vacancy and compensation."""
import uuid

import pytest

from divisions import services
from divisions.models import Position, PositionHistory

URL = "/api/v1/positions/"


def detail_url(position_id, suffix=""):
    return f"{URL}{position_id}/{suffix}"


def position_payload(code, division, **overrides):
    payload = {
        "code": code,
        "title": f"Position {code}",
        "division": str(division.pk),
        "salary_grade": "S1",
        "salary_range": {"min": 5000000, "max": 8000000},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_position(admin_user, division):
    def _make(code, reporting_to=None, **extra):
        data = {
            "code": code,
            "title": f"Position {code}",
            "division_id": division.pk,
            "salary_grade": "S1",
            "salary_min": 5000000,
            "salary_max": 8000000,
            **extra,
        }
        if reporting_to is not None:
            data["reporting_to_id"] = reporting_to.pk
        return services.create_position(data, admin_user)
    return _make


@pytest.mark.django_db
class TestCreate:
    def test_create_reporting_position(self, admin_client, division, position):
        payload = position_payload(
            "OPS-SUP",
            division,
            reporting_to=str(position.pk),
            requirements={"skills": [{"name": "Routing", "level": "advanced"}]},
            headcount={"authorized": 3},
        )
        resp = admin_client.post(URL, payload, format="json")
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["level"] == 1
        assert data["reporting_position"]["code"] == "OPS-MGR"
        assert data["division_detail"]["code"] == "OPS"
        assert data["salary_range"] == {"min": 5000000, "max": 8000000, "currency": "IDR"}
        assert data["headcount"] == {"authorized": 3, "filled": 0}
        assert data["is_vacant"] is True
        assert data["requirements"]["skills"][0]["is_required"] is True
        assert data["requirements"]["education"] == []

    def test_salary_range_required(self, admin_client, division):
        payload = position_payload("OPS-SUP", division)
        del payload["salary_range"]
        resp = admin_client.post(URL, payload, format="json")
        assert resp.status_code == 400

    def test_min_above_max(self, admin_client, division):
        payload = position_payload("OPS-SUP", division, salary_range={"min": 9000000, "max": 8000000})
        resp = admin_client.post(URL, payload, format="json")
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "salary_range.min"

    def test_duplicate_code(self, admin_client, division, position):
        resp = admin_client.post(URL, position_payload("OPS-MGR", division), format="json")
        assert resp.status_code == 409
        assert resp.json()["message"] == "Position code already exists"

    def test_unknown_division(self, admin_client, db):
        payload = {
            "code": "X1", "title": "Ghost", "division": str(uuid.uuid4()),
            "salary_grade": "S1", "salary_range": {"min": 1, "max": 2},
        }
        resp = admin_client.post(URL, payload, format="json")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Division not found"

    def test_unknown_reporting_position(self, admin_client, division):
        payload = position_payload("OPS-SUP", division, reporting_to=str(uuid.uuid4()))
        resp = admin_client.post(URL, payload, format="json")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Reporting position not found"


@pytest.mark.django_db
class TestList:
    def test_active_by_default(self, admin_client, position, make_position):
        make_position("OPS-NEW", status="draft")
        data = admin_client.get(URL).json()["data"]
        assert [row["code"] for row in data["positions"]] == ["OPS-MGR"]

        everything = admin_client.get(URL, {"status": "all"}).json()["data"]
        assert len(everything["positions"]) == 2

    def test_filter_vacant(self, admin_client, position, make_position):
        make_position("OPS-CLERK", is_vacant=False, headcount_filled=1)
        data = admin_client.get(URL, {"is_vacant": "false"}).json()["data"]
        assert [row["code"] for row in data["positions"]] == ["OPS-CLERK"]


@pytest.mark.django_db
class TestReportingLines:
    def test_circular_reporting_line(self, admin_client, position, make_position):
        supervisor = make_position("OPS-SUP", reporting_to=position)
        clerk = make_position("OPS-CLERK", reporting_to=supervisor)

        resp = admin_client.patch(detail_url(position.pk), {"reporting_to": str(clerk.pk)}, format="json")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Cannot report to a subordinate position"

        position.refresh_from_db()
        assert position.reporting_to_id is None

    def test_report_to_itself(self, admin_client, position):
        resp = admin_client.patch(detail_url(position.pk), {"reporting_to": str(position.pk)}, format="json")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Position cannot report to itself"

    def test_unknown_reporting_position(self, admin_client, position):
        resp = admin_client.patch(detail_url(position.pk), {"reporting_to": str(uuid.uuid4())}, format="json")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Reporting position not found"

    def test_reporting_change_history(self, admin_client, position, make_position):
        director = make_position("OPS-DIR")
        supervisor = make_position("OPS-SUP", reporting_to=position)
        clerk = make_position("OPS-CLERK", reporting_to=supervisor)

        resp = admin_client.patch(detail_url(supervisor.pk), {"reporting_to": str(director.pk)}, format="json")
        assert resp.status_code == 200

        entry = PositionHistory.objects.get(entity_id=supervisor.pk, action="reporting_change")
        assert entry.field == "reporting_to"
        assert entry.old_value == str(position.pk)
        assert entry.new_value == str(director.pk)

        clerk.refresh_from_db()
        assert clerk.path == f"{director.pk},{supervisor.pk},{clerk.pk}"

    def test_detach_to_root(self, admin_client, position, make_position):
        supervisor = make_position("OPS-SUP", reporting_to=position)
        resp = admin_client.patch(detail_url(supervisor.pk), {"reporting_to": None}, format="json")
        data = resp.json()["data"]
        assert data["level"] == 0
        assert data["reporting_to"] is None

    def test_direct_reports_and_chain(self, admin_client, position, make_position):
        supervisor = make_position("OPS-SUP", reporting_to=position)
        clerk = make_position("OPS-CLERK", reporting_to=supervisor)

        reports = admin_client.get(detail_url(position.pk, "direct-reports/")).json()["data"]
        assert [row["code"] for row in reports] == ["OPS-SUP"]

        chain = admin_client.get(detail_url(clerk.pk, "reporting-chain/")).json()["data"]
        assert [row["code"] for row in chain] == ["OPS-MGR", "OPS-SUP"]

    def test_hierarchy(self, admin_client, admin_user, branch, position, make_position):
        make_position("OPS-SUP", reporting_to=position)
        other = services.create_division({"code": "FIN", "name": "Finance", "branch_id": branch.pk}, admin_user)
        services.create_position(
            {
                "code": "FIN-MGR", "title": "Finance Manager", "division_id": other.pk,
                "salary_grade": "M1", "salary_min": 1, "salary_max": 2,
            },
            admin_user,
        )

        tree = admin_client.get(f"{URL}hierarchy/", {"division": str(position.division_id)}).json()["data"]
        assert [node["code"] for node in tree] == ["OPS-MGR"]
        assert [node["code"] for node in tree[0]["children"]] == ["OPS-SUP"]
        assert tree[0]["children"][0]["reporting_to"] == str(position.pk)


@pytest.mark.django_db
class TestUpdate:
    def test_vacancy_change_is_one_entry(self, admin_client, position):
        resp = admin_client.patch(
            detail_url(position.pk), {"is_vacant": False, "headcount": {"filled": 1}}, format="json",
        )
        assert resp.status_code == 200

        [entry] = PositionHistory.objects.filter(entity_id=position.pk, action="vacancy_change")
        assert entry.field == "vacancy"
        assert entry.old_value == {"is_vacant": True, "headcount": {"authorized": 1, "filled": 0}}
        assert entry.new_value == {"is_vacant": False, "headcount": {"authorized": 1, "filled": 1}}

    def test_plain_field_update(self, admin_client, position):
        admin_client.patch(detail_url(position.pk), {"title": "Head of Operations"}, format="json")
        entry = PositionHistory.objects.get(entity_id=position.pk, action="update")
        assert entry.field == "title"
        assert entry.old_value == "Operations Manager"

    def test_salary_range_checked_against_stored_values(self, admin_client, position):
        resp = admin_client.patch(detail_url(position.pk), {"salary_range": {"min": 25000000}}, format="json")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Minimum salary cannot exceed maximum salary"

    def test_status_route(self, admin_client, position):
        url = detail_url(position.pk, "status/")
        assert admin_client.patch(url, {"status": "draft"}, format="json").status_code == 200
        again = admin_client.patch(url, {"status": "draft"}, format="json")
        assert again.json()["message"] == "Position is already draft"


@pytest.mark.django_db
class TestBlocks:
    def test_requirements(self, admin_client, position):
        payload = {"requirements": {
            "education": [{"degree": "Bachelor", "field": "Logistics"}],
            "experience": [{"description": "Warehouse operations", "years_required": 5}],
            "certifications": [{"name": "CSCP"}],
        }}
        resp = admin_client.put(detail_url(position.pk, "requirements/"), payload, format="json")
        assert resp.status_code == 200
        requirements = resp.json()["data"]["requirements"]
        assert requirements["experience"][0]["years_required"] == 5
        assert requirements["certifications"][0]["is_required"] is False
        assert requirements["skills"] == []

    def test_invalid_skill_level(self, admin_client, position):
        payload = {"skills": [{"name": "Routing", "level": "guru"}]}
        resp = admin_client.put(detail_url(position.pk, "requirements/"), payload, format="json")
        assert resp.status_code == 400

    def test_responsibilities(self, admin_client, position):
        payload = [{"description": "Plan routes", "priority": "high"}, {"description": "Report KPIs"}]
        resp = admin_client.put(detail_url(position.pk, "responsibilities/"), payload, format="json")
        priorities = [row["priority"] for row in resp.json()["data"]["responsibilities"]]
        assert priorities == ["high", "medium"]
        assert PositionHistory.objects.filter(
            entity_id=position.pk, action="update", field="responsibilities",
        ).exists()

    def test_authorities(self, admin_client, position):
        payload = {"authorities": [{"description": "Approve overtime", "scope": "Division"}]}
        resp = admin_client.put(detail_url(position.pk, "authorities/"), payload, format="json")
        assert resp.json()["data"]["authorities"] == [{"description": "Approve overtime", "scope": "Division"}]

    def test_compensation(self, admin_client, position):
        payload = {"salary_range": {"max": 25000000}, "benefits": [{"name": "Transport", "value": 500000}]}
        resp = admin_client.patch(detail_url(position.pk, "compensation/"), payload, format="json")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["salary_range"]["max"] == 25000000
        assert data["salary_range"]["min"] == 10000000
        assert data["benefits"][0]["name"] == "Transport"

        entry = PositionHistory.objects.get(entity_id=position.pk, field="compensation")
        assert entry.old_value["salary_max"] == "20000000.00"

    def test_compensation_range_violation(self, admin_client, position):
        resp = admin_client.patch(
            detail_url(position.pk, "compensation/"), {"salary_range": {"min": 30000000}}, format="json",
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "Minimum salary cannot exceed maximum salary"

    def test_empty_compensation(self, admin_client, position):
        resp = admin_client.patch(detail_url(position.pk, "compensation/"), {}, format="json")
        assert resp.status_code == 400


@pytest.mark.django_db
class TestDelete:
    def test_delete(self, admin_client, position):
        resp = admin_client.delete(detail_url(position.pk))
        assert resp.json()["message"] == "Position deleted successfully"
        assert not Position.objects.filter(pk=position.pk).exists()

    def test_with_direct_reports(self, admin_client, position, make_position):
        make_position("OPS-SUP", reporting_to=position)
        resp = admin_client.delete(detail_url(position.pk))
        assert resp.status_code == 400
        assert resp.json()["message"] == "Cannot delete position with direct reports"

    def test_division_head(self, admin_client, admin_user, division, position):
        services.update_division(division, {"head_position_id": position.pk}, admin_user)
        resp = admin_client.delete(detail_url(position.pk))
        assert resp.status_code == 400
        assert resp.json()["message"] == "Cannot delete position that is a division head"

    def test_reader_cannot_delete(self, reader_client, position):
        assert reader_client.delete(detail_url(position.pk)).status_code == 403
