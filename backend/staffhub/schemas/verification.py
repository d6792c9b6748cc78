from datetime import datetime

from pydantic import BaseModel, Field

from staffhub.schemas.staff import USERNAME_PATTERN


class VerificationStartIn(BaseModel):
    roblox_username: str = Field(pattern=USERNAME_PATTERN)


class VerificationSessionOut(BaseModel):
    id: int
    roblox_username: str
    roblox_user_id: int | None
    verification_code: str
    expires_at: datetime
    is_completed: bool
    created_at: datetime

    class Config:
        from_attributes = True
