"""JWT encode/decode using PyJWT."""
import time
import jwt

from notely.config import settings

_ALGORITHM = "HS256"


def create_token(user_id: str) -> str:
    now = int(time.time())
    payload = {
        "user_id": user_id,
        "exp": now + settings.jwt_expiry_s,
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.exceptions on invalid/expired."""
    return jwt.decode(token, settings.jwt_secret, algorithms=[_ALGORITHM])
