import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from staffhub.core.metrics import increment_counter
from staffhub.core.settings import Settings, get_settings
from staffhub.db.session import SessionLocal
from staffhub.services.auth import AuthService
from staffhub.services.roblox import RobloxClient
from staffhub.services.staff import StaffService
from staffhub.services.verification import VerificationService

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 60


@dataclass
class CleanupResult:
    expired_sessions: int = 0
    old_attempts: int = 0


def run_cleanup_once(db: Session, settings: Settings | None = None) -> CleanupResult:
    settings = settings or get_settings()
    roblox = RobloxClient(settings)
    staff = StaffService(db, roblox, settings=settings)
    verification = VerificationService(db, roblox, staff, settings=settings)
    auth = AuthService(db, staff, settings=settings)

    result = CleanupResult(
        expired_sessions=verification.cleanup_expired_sessions(),
        old_attempts=auth.cleanup_old_attempts(settings.login_attempt_retention_days),
    )
    increment_counter("cleanup_removed_total", value=result.expired_sessions, table="verification_sessions")
    increment_counter("cleanup_removed_total", value=result.old_attempts, table="login_attempts")
    if result.expired_sessions or result.old_attempts:
        logger.info(
            "maintenance.cleanup expired_sessions=%s old_attempts=%s",
            result.expired_sessions,
            result.old_attempts,
        )
    return result


async def run_cleanup_loop(
    stop_event: asyncio.Event,
    settings: Settings | None = None,
    session_factory: Callable[[], Session] = SessionLocal,
) -> None:
    settings = settings or get_settings()
    if not settings.cleanup_enabled:
        return

    interval = max(MIN_INTERVAL_SECONDS, settings.cleanup_interval_seconds)

    while not stop_event.is_set():
        db = session_factory()
        try:
            run_cleanup_once(db, settings)
        except Exception:
            logger.exception("Maintenance cleanup tick failed")
        finally:
            db.close()
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass
