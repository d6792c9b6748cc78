from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from staffhub.core.settings import Settings, get_settings
from staffhub.db.session import get_db
from staffhub.services.auth import AuthService
from staffhub.services.roblox import RobloxClient
from staffhub.services.staff import StaffService
from staffhub.services.verification import VerificationService


@lru_cache
def get_roblox_client() -> RobloxClient:
    return RobloxClient(get_settings())


def get_staff_service(
    db: Session = Depends(get_db),
    roblox: RobloxClient = Depends(get_roblox_client),
    settings: Settings = Depends(get_settings),
) -> StaffService:
    return StaffService(db, roblox, settings=settings)


def get_verification_service(
    db: Session = Depends(get_db),
    roblox: RobloxClient = Depends(get_roblox_client),
    staff: StaffService = Depends(get_staff_service),
    settings: Settings = Depends(get_settings),
) -> VerificationService:
    return VerificationService(db, roblox, staff, settings=settings)


def get_auth_service(
    db: Session = Depends(get_db),
    staff: StaffService = Depends(get_staff_service),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(db, staff, settings=settings)


def client_ip(request: Request, settings: Settings = Depends(get_settings)) -> str:
    """Address used for the per-address lockout.

    Only hops appended by our own proxies are trusted: with N trusted
    proxies the client is the Nth entry from the right of X-Forwarded-For.
    Anything further left is whatever the caller chose to send.
    """
    forwarded = [part.strip() for part in request.headers.get("x-forwarded-for", "").split(",") if part.strip()]
    hops = settings.trusted_proxy_count
    if hops > 0 and forwarded:
        return forwarded[-min(hops, len(forwarded))][:64]
    if request.client and request.client.host:
        return request.client.host[:64]
    return "unknown"
