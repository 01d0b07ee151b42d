from pydantic import BaseModel, ConfigDict, Field


class _Wire(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(populate_by_name=True)


class LoginRequest(_Wire):
    username: str
    password: str


class TokenResponse(_Wire):
    access_token: str = Field(alias="accessToken", min_length=1)
    refresh_token: str = Field(alias="refreshToken", min_length=1)


class RefreshRequest(_Wire):
    refresh_token: str = Field(alias="refreshToken")


class RefreshResponse(_Wire):
    access_token: str = Field(alias="accessToken", min_length=1)
    refresh_token: str | None = Field(default=None, alias="refreshToken")
