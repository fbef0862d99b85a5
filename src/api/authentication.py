"""Bearer-token authentication for the API.

Tokens are issued by the external auth service. They are verified with the
``SIMPLE_JWT`` settings and turned into a :class:`ClaimsUser` without any
database lookup.
"""
import time

import jwt
from rest_framework import exceptions
from rest_framework_simplejwt.authentication import JWTStatelessUserAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken
from rest_framework_simplejwt.models import TokenUser

from core.access import ADMIN_ROLES


class ClaimsUser(TokenUser):
    """Request user backed by the token claims.

    ``roles`` accepts ``[{"name": ...}]`` or plain strings; ``permissions`` is
    a list of ``{"resource", "action"}`` dicts.
    """

    @property
    def email(self):
        return self.token.get("email", "")

    @property
    def roles(self) -> list:
        names = []
        for role in self.token.get("roles") or []:
            name = role.get("name") if isinstance(role, dict) else role
            if name:
                names.append(str(name))
        return names

    @property
    def permissions(self) -> list:
        return [
            {"resource": entry.get("resource"), "action": entry.get("action")}
            for entry in self.token.get("permissions") or []
            if isinstance(entry, dict)
        ]

    @property
    def is_admin(self) -> bool:
        return any(role in ADMIN_ROLES for role in self.roles)

    @property
    def is_staff(self) -> bool:
        return self.is_admin


def _is_expired(raw_token) -> bool:
    try:
        payload = jwt.decode(raw_token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return False
    exp = payload.get("exp")
    return isinstance(exp, (int, float)) and exp < time.time()


class ClaimsJWTAuthentication(JWTStatelessUserAuthentication):
    """``Authorization: Bearer <JWT>`` without a user table."""

    def get_validated_token(self, raw_token):
        try:
            return super().get_validated_token(raw_token)
        except InvalidToken:
            if _is_expired(raw_token):
                raise exceptions.AuthenticationFailed("Token expired", code="token_expired")
            raise exceptions.AuthenticationFailed("Invalid token", code="token_not_valid")
