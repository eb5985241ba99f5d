import secrets
from dataclasses import dataclass
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import get_settings


@dataclass(frozen=True)
class AuthContext:
    user_id: Optional[str] = None
    session_id: Optional[str] = None

    @property
    def signed_in(self) -> bool:
        return bool(self.user_id and self.session_id)


SIGNED_OUT = AuthContext()


def _serializer(secret: Optional[str] = None) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(
        secret or get_settings().session_secret, salt="dashboard-session"
    )


def issue_session_token(user_id: str, *, secret: Optional[str] = None) -> str:
    """Mint a token for a user the identity provider has already verified."""
    if not user_id:
        raise ValueError("user_id is required")
    payload = {"u": user_id, "sid": secrets.token_urlsafe(16)}
    return _serializer(secret).dumps(payload)


def read_session_token(
    token: Optional[str],
    *,
    secret: Optional[str] = None,
    max_age_hours: Optional[int] = None,
) -> AuthContext:
    if not token:
        return SIGNED_OUT
    if max_age_hours is None:
        max_age_hours = get_settings().session_max_age_hours
    try:
        data = _serializer(secret).loads(token, max_age=max_age_hours * 3600)
    except (SignatureExpired, BadSignature):
        return SIGNED_OUT
    if not isinstance(data, dict):
        return SIGNED_OUT

    user_id = data.get("u")
    session_id = data.get("sid")
    if not isinstance(user_id, str) or not isinstance(session_id, str):
        return SIGNED_OUT
    return AuthContext(user_id=user_id, session_id=session_id)


def bearer_token(header_value: Optional[str]) -> Optional[str]:
    if not header_value:
        return None
    scheme, _, value = header_value.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()
