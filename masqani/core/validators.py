import re

import jwt
import phonenumbers
from fastapi import Request

from .errors import AuthRequiredError, ValidationError
from .settings import settings


def decode_http_access_token(token: str) -> str:
    payload = jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[settings.ALGORITHM],
    )

    subject = payload.get("sub")
    if not subject:
        raise AuthRequiredError("Token missing subject")

    return str(subject)


def read_access_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get("access_token")


async def jwt_protect(request: Request) -> str:
    token = read_access_token(request)
    if not token:
        raise AuthRequiredError("Not authenticated")

    try:
        return decode_http_access_token(token)

    except jwt.ExpiredSignatureError as e:
        raise AuthRequiredError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthRequiredError("Invalid token") from e


def normalize_phone(
    raw: str | None,
    min_length: int | None = None,
    region: str | None = None,
) -> str:
    """Return ``raw`` as an E.164 number.

    Only the digit count is enforced; M-Pesa confirms the rest.
    """
    min_length = settings.MIN_PHONE_LENGTH if min_length is None else min_length
    region = region or settings.PHONE_DEFAULT_REGION

    digits = re.sub(r"\D", "", raw or "")
    if len(digits) < min_length:
        raise ValidationError(
            f"Phone number must have at least {min_length} digits"
        )

    candidate = raw.strip()
    try:
        parsed = phonenumbers.parse(candidate, region)
    except phonenumbers.NumberParseException as e:
        raise ValidationError(f"Unrecognised phone number: {e}") from e

    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
