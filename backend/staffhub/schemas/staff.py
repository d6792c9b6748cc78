from datetime import datetime

from pydantic import BaseModel, Field

from staffhub.core.permissions import StaffRole
from staffhub.core.security import PIN_PATTERN

USERNAME_PATTERN = r"^[A-Za-z0-9_]{3,20}$"


class PermissionsIn(BaseModel):
    view_restricted_data: bool | None = None
    edit_content: bool | None = None
    send_messages: bool | None = None
    manage_staff: bool | None = None


class StaffCreate(BaseModel):
    roblox_username: str = Field(pattern=USERNAME_PATTERN)
    display_name: str | None = Field(default=None, min_length=1, max_length=100)
    role: StaffRole | None = None
    permissions: PermissionsIn | None = None
    pin: str | None = Field(default=None, pattern=PIN_PATTERN)


class StaffUpdate(BaseModel):
    display_name: str | None = Field(default=None, min_length=1, max_length=100)
    role: StaffRole | None = None
    permissions: PermissionsIn | None = None
    is_active: bool | None = None


class PinResetIn(BaseModel):
    new_pin: str | None = Field(default=None, pattern=PIN_PATTERN)


class StaffOut(BaseModel):
    id: int
    roblox_username: str
    roblox_user_id: int | None
    display_name: str
    role: str
    permissions: dict[str, bool]
    avatar_url: str | None
    is_active: bool
    is_verified: bool
    last_active: datetime | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
