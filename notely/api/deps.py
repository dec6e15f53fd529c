"""Request-scoped accessors for objects owned by the application lifespan."""
from fastapi import HTTPException, Request

from notely.services.captcha import CaptchaService


def get_captcha(request: Request) -> CaptchaService:
    return request.app.state.captcha


def require_captcha(captcha: CaptchaService, captcha_id: str, captcha_text: str) -> None:
    """Gate used by register/login: consume the challenge or reject with 400."""
    if not captcha.verify(captcha_id, captcha_text):
        raise HTTPException(status_code=400, detail="Invalid or expired captcha")
