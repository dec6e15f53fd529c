"""Pydantic request/response bodies for the REST API."""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_EMAIL_PATTERN = r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CaptchaChallenge(BaseModel):
    id: str
    image: str


class CaptchaVerifyRequest(BaseModel):
    id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)


class CaptchaVerifyResponse(BaseModel):
    valid: bool


class CaptchaFields(CamelModel):
    captcha_id: str = Field(..., min_length=1)
    captcha_text: str = Field(..., min_length=1)


class RegisterRequest(CaptchaFields):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    username: str = Field(..., min_length=3)
    email: str = Field(..., pattern=_EMAIL_PATTERN)
    password: str = Field(..., min_length=6)


class LoginRequest(CaptchaFields):
    email_or_username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserOut(CamelModel):
    id: str
    first_name: str
    last_name: str
    email: str
    username: str
    date_joined: float


class RegisterResponse(BaseModel):
    message: str
    user: UserOut


class LoginResponse(BaseModel):
    message: str
    token: str
    user: UserOut
