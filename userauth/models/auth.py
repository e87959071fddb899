"""Auth request and response models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from userauth.models.user import User


class LoginRequest(BaseModel):
    """Login credentials.

    Either ``username`` or ``email`` identifies the account; presence of at
    least one is checked by the session service so the failure uses the
    standard error envelope.
    """

    username: Optional[str] = None
    email: Optional[str] = None
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    """Body variant of the refresh-token exchange, for non-cookie clients."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    refresh_token: Optional[str] = None


class TokenPair(BaseModel):
    """Access and refresh token issued together."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    access_token: str
    refresh_token: str


class LoginData(BaseModel):
    """Payload of a successful login.

    Tokens are returned in the body as well as in cookies so that clients
    which cannot use cookies still get them.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user: User
    access_token: str
    refresh_token: str
