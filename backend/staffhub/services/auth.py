import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from staffhub.core.clock import Clock, utc_now_naive
from staffhub.core.metrics import increment_counter
from staffhub.core.settings import Settings, get_settings
from staffhub.db.models.login_attempt import LoginAttempt
from staffhub.db.models.staff_member import StaffMember
from staffhub.services.staff import StaffService, normalize_username

logger = logging.getLogger(__name__)

ACCOUNT_LOCKED = "Account locked"
ACCOUNT_LOCK_REASON = "Too many failed login attempts for this account"
IP_LOCK_REASON = "Too many failed login attempts from this IP"


@dataclass
class LockoutStatus:
    locked: bool
    reason: str | None = None
    remaining_minutes: int | None = None


@dataclass
class LoginResult:
    success: bool
    staff: StaffMember | None = None
    error: str | None = None


class AuthService:
    """PIN login guarded by a lockout computed from the attempt log.

    Nothing about a lockout is stored: every check recounts failed
    attempts inside the trailing window, per account and per address.
    """

    def __init__(
        self,
        db: Session,
        staff: StaffService,
        *,
        settings: Settings | None = None,
        clock: Clock = utc_now_naive,
    ) -> None:
        self.db = db
        self.staff = staff
        self.settings = settings or get_settings()
        self.clock = clock

    def record_attempt(
        self,
        roblox_username: str,
        ip_address: str,
        success: bool,
        failure_reason: str | None = None,
    ) -> LoginAttempt:
        attempt = LoginAttempt(
            roblox_username=normalize_username(roblox_username),
            ip_address=ip_address,
            success=success,
            failure_reason=failure_reason,
            created_at=self.clock(),
        )
        self.db.add(attempt)
        self.db.commit()
        logger.debug("auth.attempt username=%s ip=%s success=%s", attempt.roblox_username, ip_address, success)
        return attempt

    def _failures_query(self, window_minutes: int):
        since = self.clock() - timedelta(minutes=window_minutes)
        return self.db.query(LoginAttempt).filter(
            LoginAttempt.success.is_(False),
            LoginAttempt.created_at > since,
        )

    def recent_failures(self, roblox_username: str, window_minutes: int | None = None) -> list[LoginAttempt]:
        window = self.settings.lockout_duration_minutes if window_minutes is None else window_minutes
        return (
            self._failures_query(window)
            .filter(LoginAttempt.roblox_username == normalize_username(roblox_username))
            .order_by(LoginAttempt.created_at.desc(), LoginAttempt.id.desc())
            .all()
        )

    def recent_failures_by_ip(self, ip_address: str, window_minutes: int | None = None) -> list[LoginAttempt]:
        window = self.settings.lockout_duration_minutes if window_minutes is None else window_minutes
        return (
            self._failures_query(window)
            .filter(LoginAttempt.ip_address == ip_address)
            .order_by(LoginAttempt.created_at.desc(), LoginAttempt.id.desc())
            .all()
        )

    def _remaining_minutes(self, oldest: datetime) -> int:
        unlock_at = oldest + timedelta(minutes=self.settings.lockout_duration_minutes)
        return math.ceil((unlock_at - self.clock()).total_seconds() / 60)

    def is_locked_out(self, roblox_username: str, ip_address: str) -> LockoutStatus:
        window = self.settings.lockout_duration_minutes

        account_failures = self.recent_failures(roblox_username, window)
        if len(account_failures) >= self.settings.max_login_attempts:
            return LockoutStatus(
                locked=True,
                reason=ACCOUNT_LOCK_REASON,
                remaining_minutes=self._remaining_minutes(account_failures[-1].created_at),
            )

        ip_failures = self.recent_failures_by_ip(ip_address, window)
        if len(ip_failures) >= self.settings.max_attempts_per_ip:
            return LockoutStatus(
                locked=True,
                reason=IP_LOCK_REASON,
                remaining_minutes=self._remaining_minutes(ip_failures[-1].created_at),
            )

        return LockoutStatus(locked=False)

    def login(self, roblox_username: str, pin: str, ip_address: str) -> LoginResult:
        lockout = self.is_locked_out(roblox_username, ip_address)
        if lockout.locked:
            # Locked attempts still count, so hammering during a lockout
            # keeps the address counter climbing.
            self.record_attempt(roblox_username, ip_address, False, ACCOUNT_LOCKED)
            increment_counter("auth_login_total", result="locked")
            logger.info("auth.login locked username=%s ip=%s", normalize_username(roblox_username), ip_address)
            return LoginResult(
                success=False,
                error=f"{lockout.reason}. Try again in {lockout.remaining_minutes} minutes.",
            )

        check = self.staff.verify_credentials(roblox_username, pin)
        self.record_attempt(roblox_username, ip_address, check.success, check.error)

        if not check.success:
            failures = self.recent_failures(roblox_username, self.settings.lockout_duration_minutes)
            remaining = self.settings.max_login_attempts - len(failures)
            increment_counter("auth_login_total", result="failed")
            logger.info(
                "auth.login failed username=%s ip=%s reason=%s",
                normalize_username(roblox_username),
                ip_address,
                check.error,
            )
            error = f"{check.error}. {remaining} attempts remaining." if remaining > 0 else check.error
            return LoginResult(success=False, error=error)

        increment_counter("auth_login_total", result="success")
        logger.info("auth.login success staff_id=%s ip=%s", check.staff.id, ip_address)
        return LoginResult(success=True, staff=check.staff)

    def cleanup_old_attempts(self, days_to_keep: int = 30) -> int:
        cutoff = self.clock() - timedelta(days=days_to_keep)
        removed = (
            self.db.query(LoginAttempt)
            .filter(LoginAttempt.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if removed:
            logger.debug("auth.cleanup removed=%s", removed)
        return int(removed or 0)
