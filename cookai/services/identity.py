from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from cookai.app.domain.errors import InvalidIdentityError
from cookai.app.domain.models import Identity

logger = logging.getLogger(__name__)

_REQUIRED_CLAIMS = ("sub", "email", "name")


def _decode_segment(segment: str) -> dict[str, Any]:
    padded = segment + "=" * (-len(segment) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as err:
        raise InvalidIdentityError() from err
    if not isinstance(payload, dict):
        raise InvalidIdentityError()
    return payload


def identity_from_id_token(token: str) -> Identity:
    """
    Build an Identity from a Google ID token.

    Only the payload is decoded; the signature is the identity provider's
    concern. The raw token is kept as the access token.
    """
    parts = token.split(".") if token else []
    if len(parts) < 2 or not parts[1]:
        raise InvalidIdentityError("Invalid token format")

    payload = _decode_segment(parts[1])
    missing = [claim for claim in _REQUIRED_CLAIMS if not payload.get(claim)]
    if missing:
        logger.warning("ID token is missing claims: %s", ", ".join(missing))
        raise InvalidIdentityError("Missing required user information")

    return Identity(
        id=str(payload["sub"]),
        email=str(payload["email"]),
        name=str(payload["name"]),
        picture=str(payload.get("picture") or ""),
        access_token=token,
    )


def identity_from_record(record: Any) -> Identity:
    """Validate a stored identity record, requiring id, email and name."""
    if not isinstance(record, dict) or not all(record.get(key) for key in ("id", "email", "name")):
        raise InvalidIdentityError("Missing required user information")
    try:
        return Identity.model_validate(record)
    except PydanticValidationError as err:
        raise InvalidIdentityError("Missing required user information") from err
