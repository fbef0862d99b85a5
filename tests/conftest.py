import time

import jwt
import pytest
from django.conf import settings
from django.core.cache import cache
from rest_framework.test import APIClient

from api.authentication import ClaimsUser
from branches import services as branch_services
from divisions import services as division_services
from service_areas import services as area_services

RESOURCES = ("branch", "serviceArea", "division", "position")

SQUARE = {
    "type": "Polygon",
    "coordinates": [[[106.7, -6.3], [106.9, -6.3], [106.9, -6.1], [106.7, -6.1], [106.7, -6.3]]],
}


def claims_user(sub, roles=(), permissions=()):
    return ClaimsUser({
        "sub": sub,
        "email": f"{sub}@example.com",
        "roles": [{"name": role} for role in roles],
        "permissions": [{"resource": resource, "action": action} for resource, action in permissions],
    })


def mint_token(claims, secret=None, expires_in=300):
    payload = {"exp": int(time.time()) + expires_in, **claims}
    return jwt.encode(
        payload,
        secret or settings.SIMPLE_JWT["SIGNING_KEY"],
        algorithm=settings.SIMPLE_JWT["ALGORITHM"],
    )


def branch_data(code="JKT-HQ", **overrides):
    data = {
        "code": code,
        "name": f"Branch {code}",
        "type": "branch",
        "street": "Jl. Sudirman 1",
        "city": "Jakarta",
        "state": "DKI Jakarta",
        "postal_code": "10220",
        "phone": "+62215550100",
        "email": f"{code.lower()}@example.com",
    }
    data.update(overrides)
    return data


def branch_payload(code="JKT-HQ", **overrides):
    payload = {
        "code": code,
        "name": f"Branch {code}",
        "type": "branch",
        "address": {
            "street": "Jl. Sudirman 1",
            "city": "Jakarta",
            "state": "DKI Jakarta",
            "postal_code": "10220",
            "coordinates": [106.8227, -6.2088],
        },
        "contact_info": {"phone": "+62215550100", "email": f"{code.lower()}@example.com"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for():
    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client
    return _client


@pytest.fixture
def admin_user():
    return claims_user("admin-1", roles=["admin"])


@pytest.fixture
def reader_user():
    return claims_user("reader-1", permissions=[(resource, "read") for resource in RESOURCES])


@pytest.fixture
def admin_client(client_for, admin_user):
    return client_for(admin_user)


@pytest.fixture
def reader_client(client_for, reader_user):
    return client_for(reader_user)


@pytest.fixture
def branch(db, admin_user):
    return branch_services.create_branch(
        branch_data("JKT-HQ", type="headquarters", longitude=106.8227, latitude=-6.2088),
        admin_user,
    )


@pytest.fixture
def other_branch(db, admin_user):
    return branch_services.create_branch(
        branch_data("BDG-01", city="Bandung", longitude=107.6191, latitude=-6.9175),
        admin_user,
    )


@pytest.fixture
def service_area(db, admin_user):
    return area_services.create_service_area(
        {
            "name": "Central Jakarta",
            "code": "SA-JKT",
            "boundaries": SQUARE,
            "center_longitude": 106.8,
            "center_latitude": -6.2,
            "coverage_radius": 5,
        },
        admin_user,
    )


@pytest.fixture
def division(branch, admin_user):
    return division_services.create_division(
        {"code": "OPS", "name": "Operations", "branch_id": branch.pk},
        admin_user,
    )


@pytest.fixture
def position(division, admin_user):
    return division_services.create_position(
        {
            "code": "OPS-MGR",
            "title": "Operations Manager",
            "division_id": division.pk,
            "salary_grade": "M1",
            "salary_min": 10000000,
            "salary_max": 20000000,
        },
        admin_user,
    )


@pytest.fixture
def make_user():
    return claims_user


@pytest.fixture
def make_token():
    return mint_token


@pytest.fixture
def make_branch_payload():
    return branch_payload


@pytest.fixture
def make_branch(db, admin_user):
    def _make(code, **overrides):
        return branch_services.create_branch(branch_data(code, **overrides), admin_user)
    return _make


@pytest.fixture
def square():
    return {"type": "Polygon", "coordinates": [[list(pos) for pos in SQUARE["coordinates"][0]]]}
