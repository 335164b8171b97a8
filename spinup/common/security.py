import base64
import hashlib
import hmac
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from spinup.config import settings


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise ValueError("Invalid token") from e


def trello_webhook_signature(body: bytes, callback_url: str, secret: str | None = None) -> str:
    """Signature Trello sends in the ``X-Trello-Webhook`` header.

    base64(HMAC-SHA1(app secret, raw body + registered callback URL))
    """
    key = (secret or settings.TRELLO_API_SECRET).encode()
    digest = hmac.new(key, body + callback_url.encode(), hashlib.sha1).digest()
    return base64.b64encode(digest).decode()


def verify_trello_webhook_signature(body: bytes, callback_url: str, signature: str | None) -> bool:
    if not signature:
        return False
    expected = trello_webhook_signature(body, callback_url)
    return hmac.compare_digest(signature, expected)
