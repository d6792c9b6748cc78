import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.orm import Session

from staffhub.core.clock import Clock, utc_now_naive
from staffhub.core.metrics import increment_counter
from staffhub.core.security import generate_verification_code
from staffhub.core.settings import Settings, get_settings
from staffhub.db.models.verification_session import VerificationSession
from staffhub.services.roblox import RobloxClient
from staffhub.services.staff import StaffService, normalize_username

logger = logging.getLogger(__name__)

SESSION_NOT_FOUND = "Verification session not found"
ALREADY_COMPLETED = "Verification already completed"
SESSION_EXPIRED = "Verification session expired"
ROBLOX_ID_MISSING = "Roblox user ID not found"


@dataclass
class SessionStartResult:
    success: bool
    session: VerificationSession | None = None
    instructions: str | None = None
    error: str | None = None


@dataclass
class VerificationOutcome:
    success: bool
    error: str | None = None


def code_missing_message(code: str) -> str:
    return (
        f'Verification code not found in profile. Please add "{code}" '
        "to your Roblox profile description."
    )


class VerificationService:
    """Roblox ownership checks via a one-time code in the profile description.

    A session is ``created`` until it is either completed or its expiry
    passes. Expiry is never written; it is derived from ``expires_at`` at
    read time, and expired rows are removed by :meth:`cleanup_expired_sessions`.
    """

    def __init__(
        self,
        db: Session,
        roblox: RobloxClient,
        staff: StaffService,
        *,
        settings: Settings | None = None,
        clock: Clock = utc_now_naive,
    ) -> None:
        self.db = db
        self.roblox = roblox
        self.staff = staff
        self.settings = settings or get_settings()
        self.clock = clock

    async def create_session(self, roblox_username: str) -> SessionStartResult:
        validation = await self.roblox.validate(roblox_username)
        if not validation.valid:
            increment_counter("verification_total", action="start", result="invalid_username")
            logger.info("verification.start rejected username=%s reason=%s", roblox_username, validation.error)
            return SessionStartResult(success=False, error=validation.error)

        session = await asyncio.to_thread(
            self._replace_session,
            normalize_username(roblox_username),
            validation.profile.id if validation.profile else None,
        )

        increment_counter("verification_total", action="start", result="created")
        logger.info("verification.created id=%s username=%s", session.id, session.roblox_username)
        instructions = (
            "To verify your Roblox account, add this code to your Roblox profile "
            f"description: {session.verification_code}\n\n"
            f"This code expires in {self.settings.verification_expiry_minutes} minutes."
        )
        return SessionStartResult(success=True, session=session, instructions=instructions)

    def _replace_session(self, username: str, roblox_user_id: int | None) -> VerificationSession:
        now = self.clock()
        # Two concurrent starts for one username can still both land a row;
        # the stale one only ever fails its profile check.
        self.db.query(VerificationSession).filter(
            VerificationSession.roblox_username == username
        ).delete(synchronize_session="fetch")
        session = VerificationSession(
            roblox_username=username,
            roblox_user_id=roblox_user_id,
            verification_code=generate_verification_code(self.settings.verification_code_length),
            expires_at=now + timedelta(minutes=self.settings.verification_expiry_minutes),
            is_completed=False,
            created_at=now,
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        return session

    def get_by_id(self, session_id: int) -> VerificationSession | None:
        return self.db.get(VerificationSession, session_id)

    def get_active_session(self, roblox_username: str) -> VerificationSession | None:
        return (
            self.db.query(VerificationSession)
            .filter(
                VerificationSession.roblox_username == normalize_username(roblox_username),
                VerificationSession.is_completed.is_(False),
                VerificationSession.expires_at > self.clock(),
            )
            .order_by(VerificationSession.created_at.desc(), VerificationSession.id.desc())
            .first()
        )

    def _reject(self, session_id: int, result: str, error: str) -> VerificationOutcome:
        increment_counter("verification_total", action="verify", result=result)
        logger.info("verification.verify rejected id=%s result=%s", session_id, result)
        return VerificationOutcome(success=False, error=error)

    async def verify_session(self, session_id: int) -> VerificationOutcome:
        session = await asyncio.to_thread(self.get_by_id, session_id)
        if session is None:
            return self._reject(session_id, "not_found", SESSION_NOT_FOUND)
        if session.is_completed:
            return self._reject(session_id, "already_completed", ALREADY_COMPLETED)
        if session.expires_at <= self.clock():
            return self._reject(session_id, "expired", SESSION_EXPIRED)
        if not session.roblox_user_id:
            return self._reject(session_id, "missing_user_id", ROBLOX_ID_MISSING)

        username = session.roblox_username
        code = session.verification_code
        if not await self.roblox.confirm_code_present(session.roblox_user_id, code):
            return self._reject(session_id, "code_missing", code_missing_message(code))

        await asyncio.to_thread(self._complete, session)

        increment_counter("verification_total", action="verify", result="success")
        logger.info("verification.completed id=%s username=%s", session_id, username)
        return VerificationOutcome(success=True)

    def _complete(self, session: VerificationSession) -> None:
        session.is_completed = True
        self.db.commit()

        staff = self.staff.get_by_username(session.roblox_username)
        if staff is not None:
            self.staff.mark_verified(staff.id)

    def cleanup_expired_sessions(self) -> int:
        removed = (
            self.db.query(VerificationSession)
            .filter(VerificationSession.expires_at < self.clock())
            .delete(synchronize_session="fetch")
        )
        self.db.commit()
        if removed:
            logger.debug("verification.cleanup removed=%s", removed)
        return int(removed or 0)
