from pydantic import BaseModel, Field

from staffhub.core.security import PIN_PATTERN
from staffhub.schemas.staff import USERNAME_PATTERN


class LoginIn(BaseModel):
    roblox_username: str = Field(pattern=USERNAME_PATTERN)
    pin: str = Field(pattern=PIN_PATTERN)
