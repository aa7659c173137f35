from pydantic import BaseModel, ConfigDict


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    roles: list[str]
    full_name: str | None = None


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str | None = None
    full_name: str | None = None
    phone: str | None = None


class MeResponse(ProfileResponse):
    roles: list[str]
    is_admin: bool
