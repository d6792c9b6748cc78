from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from staffhub.db.base import Base


class VerificationSession(Base):
    __tablename__ = "verification_sessions"
    # Clients hold session ids; a replaced or purged id must not come back.
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(primary_key=True)
    roblox_username: Mapped[str] = mapped_column(String(64), index=True)
    roblox_user_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    verification_code: Mapped[str] = mapped_column(String(32), index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, index=True)
