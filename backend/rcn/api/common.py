"""
Helpers shared by the API blueprints: service lookup and the acting user.
"""

from dataclasses import dataclass
from typing import Optional

from flask import current_app, request

from rcn.domain.directory import Actor
from rcn.errors import AuthenticationRequired, ValidationError


EXTENSION_KEY = "rcn"


@dataclass
class Services:
    """Service graph built once per app in ``create_app``."""
    referrals: object
    inbox: object
    auth: object
    organizations: object
    engine: object


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]


def bearer_token() -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:].strip() or None


def current_actor() -> Actor:
    """Staff member behind the Bearer token, or AuthenticationRequired."""
    token = bearer_token()
    if not token:
        raise AuthenticationRequired()
    actor = get_services().auth.validate_access_token(token)
    if actor is None:
        raise AuthenticationRequired("Your session has expired. Please sign in again.")
    return actor


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def expected_version(data: dict) -> Optional[int]:
    """Optional ``version`` field used for optimistic concurrency."""
    value = data.get("version", data.get("expected_version"))
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError("version must be an integer.", field="version") from e
