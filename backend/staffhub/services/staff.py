import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from staffhub.core.clock import Clock, utc_now_naive
from staffhub.core.permissions import merge_permissions, normalize_role, permissions_for_role
from staffhub.core.security import PinHasher, generate_pin, is_valid_pin
from staffhub.core.settings import Settings, get_settings
from staffhub.db.models.staff_member import StaffMember
from staffhub.services.roblox import RobloxClient, UsernameValidation

logger = logging.getLogger(__name__)

STAFF_NOT_FOUND = "Staff member not found"
ACCOUNT_DEACTIVATED = "Account is deactivated"
INVALID_PIN = "Invalid PIN"
USERNAME_TAKEN = "A staff member with this Roblox username already exists"
PIN_FORMAT_INVALID = "PIN must be 4 to 8 digits"


def normalize_username(username: str) -> str:
    return (username or "").strip().lower()


@dataclass
class StaffCreateResult:
    success: bool
    staff: StaffMember | None = None
    pin: str | None = None
    error: str | None = None


@dataclass
class PinResetResult:
    success: bool
    pin: str | None = None
    error: str | None = None


@dataclass
class CredentialCheck:
    success: bool
    staff: StaffMember | None = None
    error: str | None = None


class StaffService:
    def __init__(
        self,
        db: Session,
        roblox: RobloxClient,
        *,
        settings: Settings | None = None,
        pin_hasher: PinHasher | None = None,
        clock: Clock = utc_now_naive,
    ) -> None:
        self.db = db
        self.roblox = roblox
        self.settings = settings or get_settings()
        self.pin_hasher = pin_hasher or PinHasher(self.settings.bcrypt_rounds)
        self.clock = clock

    async def create(
        self,
        roblox_username: str,
        *,
        display_name: str | None = None,
        role: str | None = None,
        permissions: dict | None = None,
        pin: str | None = None,
    ) -> StaffCreateResult:
        if pin and not is_valid_pin(pin):
            return StaffCreateResult(success=False, error=PIN_FORMAT_INVALID)

        validation = await self.roblox.validate(roblox_username)
        if not validation.valid:
            logger.info("staff.create rejected username=%s reason=%s", roblox_username, validation.error)
            return StaffCreateResult(success=False, error=validation.error)

        # bcrypt and the blocking DB session stay off the event loop.
        return await asyncio.to_thread(
            self._insert,
            roblox_username,
            validation,
            display_name=display_name,
            role=role,
            permissions=permissions,
            pin=pin,
        )

    def _insert(
        self,
        roblox_username: str,
        validation: UsernameValidation,
        *,
        display_name: str | None,
        role: str | None,
        permissions: dict | None,
        pin: str | None,
    ) -> StaffCreateResult:
        username = normalize_username(roblox_username)
        if self.get_by_username(username) is not None:
            return StaffCreateResult(success=False, error=USERNAME_TAKEN)

        plain_pin = pin or generate_pin(self.settings.pin_length)
        normalized_role = normalize_role(role)
        profile = validation.profile
        now = self.clock()

        staff = StaffMember(
            roblox_username=username,
            roblox_user_id=profile.id if profile else None,
            display_name=display_name or (profile.display_name if profile else None) or roblox_username,
            role=normalized_role,
            pin_hash=self.pin_hasher.hash(plain_pin),
            permissions=permissions_for_role(normalized_role, permissions),
            avatar_url=validation.avatar_url,
            is_active=True,
            is_verified=False,
            last_active=None,
            created_at=now,
            updated_at=now,
        )
        self.db.add(staff)
        self.db.commit()
        self.db.refresh(staff)

        logger.info("staff.created id=%s username=%s role=%s", staff.id, username, normalized_role)
        return StaffCreateResult(success=True, staff=staff, pin=plain_pin)

    def get_by_id(self, staff_id: int) -> StaffMember | None:
        return self.db.get(StaffMember, staff_id)

    def get_by_username(self, username: str) -> StaffMember | None:
        return (
            self.db.query(StaffMember)
            .filter(StaffMember.roblox_username == normalize_username(username))
            .first()
        )

    def get_by_roblox_user_id(self, roblox_user_id: int) -> StaffMember | None:
        return self.db.query(StaffMember).filter(StaffMember.roblox_user_id == roblox_user_id).first()

    def get_all(self, include_inactive: bool = False) -> list[StaffMember]:
        query = self.db.query(StaffMember)
        if not include_inactive:
            query = query.filter(StaffMember.is_active.is_(True))
        return query.order_by(StaffMember.created_at.desc(), StaffMember.id.desc()).all()

    def update(
        self,
        staff_id: int,
        *,
        display_name: str | None = None,
        role: str | None = None,
        permissions: dict | None = None,
        is_active: bool | None = None,
    ) -> StaffMember | None:
        staff = self.get_by_id(staff_id)
        if staff is None:
            return None

        changed: list[str] = []
        if display_name is not None:
            staff.display_name = display_name
            changed.append("display_name")
        if role is not None:
            staff.role = normalize_role(role)
            changed.append("role")
        if permissions is not None:
            staff.permissions = merge_permissions(staff.permissions, permissions)
            changed.append("permissions")
        if is_active is not None:
            staff.is_active = is_active
            changed.append("is_active")

        if not changed:
            return staff

        staff.updated_at = self.clock()
        self.db.commit()
        self.db.refresh(staff)
        logger.info("staff.updated id=%s fields=%s", staff_id, ",".join(changed))
        return staff

    def reset_pin(self, staff_id: int, new_pin: str | None = None) -> PinResetResult:
        staff = self.get_by_id(staff_id)
        if staff is None:
            return PinResetResult(success=False, error=STAFF_NOT_FOUND)
        if new_pin and not is_valid_pin(new_pin):
            return PinResetResult(success=False, error=PIN_FORMAT_INVALID)

        plain_pin = new_pin or generate_pin(self.settings.pin_length)
        staff.pin_hash = self.pin_hasher.hash(plain_pin)
        staff.updated_at = self.clock()
        self.db.commit()

        logger.info("staff.pin_reset id=%s username=%s", staff_id, staff.roblox_username)
        return PinResetResult(success=True, pin=plain_pin)

    def verify_credentials(self, username: str, pin: str) -> CredentialCheck:
        staff = self.get_by_username(username)
        if staff is None:
            return CredentialCheck(success=False, error=STAFF_NOT_FOUND)
        if not staff.is_active:
            return CredentialCheck(success=False, error=ACCOUNT_DEACTIVATED)
        if not self.pin_hasher.verify(pin, staff.pin_hash):
            return CredentialCheck(success=False, error=INVALID_PIN)

        staff.last_active = self.clock()
        self.db.commit()
        return CredentialCheck(success=True, staff=staff)

    def mark_verified(self, staff_id: int) -> None:
        staff = self.get_by_id(staff_id)
        if staff is None:
            raise LookupError(f"Staff member {staff_id} disappeared before verification")
        if staff.is_verified:
            return
        staff.is_verified = True
        staff.updated_at = self.clock()
        self.db.commit()
        logger.info("staff.verified id=%s", staff_id)

    def delete(self, staff_id: int) -> bool:
        staff = self.get_by_id(staff_id)
        if staff is None:
            return False
        self.db.delete(staff)
        self.db.commit()
        logger.info("staff.deleted id=%s", staff_id)
        return True
