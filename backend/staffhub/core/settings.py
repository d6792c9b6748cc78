import os
from dataclasses import dataclass
from functools import lru_cache


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)).strip())
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)).strip())
    except (TypeError, ValueError):
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./staffhub.db"
    access_token_expire_minutes: int = 60
    bcrypt_rounds: int = 12
    pin_length: int = 4
    verification_code_length: int = 6
    verification_expiry_minutes: int = 10
    max_login_attempts: int = 5
    lockout_duration_minutes: int = 15
    login_attempt_retention_days: int = 30
    cleanup_interval_seconds: int = 3600
    cleanup_enabled: bool = True
    roblox_users_api: str = "https://users.roblox.com/v1"
    roblox_thumbnails_api: str = "https://thumbnails.roblox.com/v1"
    roblox_timeout_seconds: float = 5.0
    avatar_cache_ttl_seconds: int = 600
    trusted_proxy_count: int = 1

    @property
    def max_attempts_per_ip(self) -> int:
        return self.max_login_attempts * 2

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            access_token_expire_minutes=_env_int("ACCESS_TOKEN_EXPIRE_MINUTES", cls.access_token_expire_minutes),
            bcrypt_rounds=_env_int("BCRYPT_ROUNDS", cls.bcrypt_rounds),
            pin_length=_env_int("PIN_LENGTH", cls.pin_length),
            verification_code_length=_env_int("VERIFICATION_CODE_LENGTH", cls.verification_code_length),
            verification_expiry_minutes=_env_int("VERIFICATION_EXPIRY_MINUTES", cls.verification_expiry_minutes),
            max_login_attempts=_env_int("MAX_LOGIN_ATTEMPTS", cls.max_login_attempts),
            lockout_duration_minutes=_env_int("LOCKOUT_DURATION_MINUTES", cls.lockout_duration_minutes),
            login_attempt_retention_days=_env_int("LOGIN_ATTEMPT_RETENTION_DAYS", cls.login_attempt_retention_days),
            cleanup_interval_seconds=_env_int("CLEANUP_INTERVAL_SECONDS", cls.cleanup_interval_seconds),
            cleanup_enabled=_env_bool("CLEANUP_ENABLED", cls.cleanup_enabled),
            roblox_users_api=os.getenv("ROBLOX_USERS_API", cls.roblox_users_api).rstrip("/"),
            roblox_thumbnails_api=os.getenv("ROBLOX_THUMBNAILS_API", cls.roblox_thumbnails_api).rstrip("/"),
            roblox_timeout_seconds=_env_float("ROBLOX_TIMEOUT_SECONDS", cls.roblox_timeout_seconds),
            avatar_cache_ttl_seconds=_env_int("AVATAR_CACHE_TTL_SECONDS", cls.avatar_cache_ttl_seconds),
            trusted_proxy_count=max(0, _env_int("TRUSTED_PROXY_COUNT", cls.trusted_proxy_count)),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
