import os
import re
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from staffhub.core.permissions import StaffPermission, has_permission
from staffhub.core.settings import get_settings
from staffhub.db.models.staff_member import StaffMember
from staffhub.db.session import get_db

ALGORITHM = "HS256"

# I, O, 0 and 1 are left out so codes survive being read off a screen.
VERIFICATION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

PIN_PATTERN = r"^[0-9]{4,8}$"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def _get_secret_key() -> str:
    secret = os.getenv("SECRET_KEY")
    if not secret:
        raise RuntimeError("SECRET_KEY is not set")
    return secret


class PinHasher:
    def __init__(self, rounds: int = 12) -> None:
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, pin: str) -> str:
        return self._context.hash(pin)

    def verify(self, pin: str, pin_hash: str) -> bool:
        try:
            return self._context.verify(pin, pin_hash)
        except ValueError:
            return False


def is_valid_pin(pin: str) -> bool:
    return bool(re.fullmatch(PIN_PATTERN, pin or ""))


def generate_pin(length: int = 4) -> str:
    if length < 1:
        raise ValueError("PIN length must be positive")
    low = 10 ** (length - 1)
    high = 10**length - 1
    return str(low + secrets.randbelow(high - low + 1))


def generate_verification_code(length: int = 6) -> str:
    return "".join(secrets.choice(VERIFICATION_CODE_ALPHABET) for _ in range(length))


def create_access_token(payload: dict) -> str:
    to_encode = payload.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=get_settings().access_token_expire_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, _get_secret_key(), algorithm=ALGORITHM)


def get_current_staff(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> StaffMember:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(token, _get_secret_key(), algorithms=[ALGORITHM])
        subject = payload.get("sub")
        if not subject:
            raise credentials_exception
        staff_id = int(subject)
    except (JWTError, ValueError) as exc:
        raise credentials_exception from exc

    staff = db.get(StaffMember, staff_id)
    if not staff or not staff.is_active:
        raise credentials_exception
    return staff


def require_permission(permission: StaffPermission):
    def _dependency(current_staff: StaffMember = Depends(get_current_staff)) -> StaffMember:
        if not has_permission(current_staff.permissions, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission required: {permission}",
            )
        return current_staff

    return _dependency
