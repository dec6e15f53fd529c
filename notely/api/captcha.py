"""CAPTCHA endpoints: generate a challenge, verify an answer."""
from fastapi import APIRouter, Depends

from notely.api.deps import get_captcha
from notely.models.schemas import CaptchaChallenge, CaptchaVerifyRequest, CaptchaVerifyResponse
from notely.services.captcha import CaptchaService

router = APIRouter(prefix="/api/captcha", tags=["captcha"])


@router.api_route("/generate", methods=["GET", "POST"], response_model=CaptchaChallenge)
def generate(captcha: CaptchaService = Depends(get_captcha)):
    identifier, image = captcha.create()
    return CaptchaChallenge(id=identifier, image=image)


@router.post("/verify", response_model=CaptchaVerifyResponse)
def verify(body: CaptchaVerifyRequest, captcha: CaptchaService = Depends(get_captcha)):
    return CaptchaVerifyResponse(valid=captcha.verify(body.id, body.text))
