from datetime import datetime

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from staffhub.db.base import Base


class StaffMember(Base):
    __tablename__ = "staff_members"
    # Ids end up in bearer tokens and must never be handed out twice.
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(primary_key=True)
    roblox_username: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    # Unique but nullable: NULLs never collide.
    roblox_user_id: Mapped[int | None] = mapped_column(BigInteger, unique=True, nullable=True)
    display_name: Mapped[str] = mapped_column(String(100))
    role: Mapped[str] = mapped_column(String(20), default="staff", index=True)
    pin_hash: Mapped[str] = mapped_column(String(255))
    permissions: Mapped[dict] = mapped_column(JSON, default=dict)
    avatar_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    last_active: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime)
