from typing import Optional

import bcrypt
from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings
from errors import AuthError

NOT_AUTHORIZED = "Not authorized to access this route"


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.secret_key, salt="auth-token")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def issue_token(user_id: int) -> str:
    return _serializer().dumps({"u": user_id})


def verify_token(token: str, max_age_secs: Optional[int] = None) -> int:
    settings = get_settings()
    if max_age_secs is None:
        max_age_secs = settings.token_max_age_secs
    try:
        # SignatureExpired is a BadSignature
        data = _serializer().loads(token, max_age=max_age_secs)
    except BadSignature as exc:
        raise AuthError(NOT_AUTHORIZED) from exc

    user_id = data.get("u") if isinstance(data, dict) else None
    if not isinstance(user_id, int) or user_id <= 0:
        raise AuthError(NOT_AUTHORIZED)
    return user_id
