"""Account endpoints gated by a CAPTCHA: register, login, and token lookup."""
import logging

import jwt
from fastapi import APIRouter, Depends, Header, HTTPException

from notely.api.deps import get_captcha, require_captcha
from notely.database import fetch_login_user, fetch_user, find_conflicting_user, insert_user
from notely.models.schemas import LoginRequest, LoginResponse, RegisterRequest, RegisterResponse, UserOut
from notely.services.captcha import CaptchaService
from notely.services.passwords import check_password, hash_password
from notely.services.token import create_token, decode_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=201, response_model=RegisterResponse)
async def register(body: RegisterRequest, captcha: CaptchaService = Depends(get_captcha)):
    require_captcha(captcha, body.captcha_id, body.captcha_text)

    email = body.email.lower()
    username = body.username.lower()
    existing = await find_conflicting_user(email, username)
    if existing:
        detail = "Email already registered" if existing["email"] == email else "Username already taken"
        raise HTTPException(status_code=400, detail=detail)

    user = await insert_user(
        first_name=body.first_name,
        last_name=body.last_name,
        email=email,
        username=username,
        password_hash=hash_password(body.password),
    )
    logger.info("Registered user %s", user["id"])
    return RegisterResponse(message="User registered successfully", user=UserOut(**user))


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, captcha: CaptchaService = Depends(get_captcha)):
    require_captcha(captcha, body.captcha_id, body.captcha_text)

    user = await fetch_login_user(body.email_or_username.lower())
    if user is None or not check_password(user.pop("password"), body.password):
        logger.info("Rejected login for %s", body.email_or_username)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return LoginResponse(
        message="Login successful",
        token=create_token(user["id"]),
        user=UserOut(**user),
    )


async def current_user(authorization: str | None = Header(None)) -> dict:
    """Resolve ``Authorization: Bearer <jwt>`` to an active user row."""
    token = authorization.split(" ", 1)[1].strip() if authorization and " " in authorization else None
    if not token:
        raise HTTPException(status_code=401, detail="Access token required")
    try:
        payload = decode_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=403, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=403, detail="Invalid token")

    user = await fetch_user(payload.get("user_id", ""))
    if user is None:
        raise HTTPException(status_code=401, detail="User not found or account deactivated")
    return user


@router.get("/me")
async def me(user: dict = Depends(current_user)):
    return {"user": UserOut(**user).model_dump(by_alias=True)}
