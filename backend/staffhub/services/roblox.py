"""Read-only client for the public Roblox users and thumbnails APIs.

Every public method degrades to a negative result (``None`` / ``False``)
instead of raising: "no such account" and "Roblox is unavailable" must look
the same to callers, since both have to block staff creation and
verification. Internally each lookup still reports which of the two it was,
so the distinction shows up in logs and the ``roblox_lookup_total`` counter.
"""

import enum
import logging
from dataclasses import dataclass

import httpx

from staffhub.core.cache import TTLCache
from staffhub.core.metrics import increment_counter
from staffhub.core.settings import Settings, get_settings

logger = logging.getLogger(__name__)

USERNAME_NOT_FOUND = "Roblox username not found"
ACCOUNT_BANNED = "This Roblox account is banned"


class LookupStatus(str, enum.Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    TRANSIENT_FAILURE = "transient_failure"


@dataclass(frozen=True)
class RobloxProfile:
    id: int
    name: str
    display_name: str
    description: str
    created: str | None = None
    is_banned: bool = False
    has_verified_badge: bool = False

    @classmethod
    def from_api(cls, payload: dict) -> "RobloxProfile":
        return cls(
            id=int(payload["id"]),
            name=str(payload.get("name") or ""),
            display_name=str(payload.get("displayName") or payload.get("name") or ""),
            description=str(payload.get("description") or ""),
            created=payload.get("created"),
            is_banned=bool(payload.get("isBanned", False)),
            has_verified_badge=bool(payload.get("hasVerifiedBadge", False)),
        )


@dataclass(frozen=True)
class LookupResult:
    status: LookupStatus
    profile: RobloxProfile | None = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.OK and self.profile is not None


@dataclass(frozen=True)
class UsernameValidation:
    valid: bool
    profile: RobloxProfile | None = None
    avatar_url: str | None = None
    error: str | None = None


_NOT_FOUND = LookupResult(LookupStatus.NOT_FOUND)
_TRANSIENT = LookupResult(LookupStatus.TRANSIENT_FAILURE)


class RobloxClient:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        avatar_cache: TTLCache | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport
        self._avatar_cache = avatar_cache or TTLCache(self._settings.avatar_cache_ttl_seconds)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.roblox_timeout_seconds,
            transport=self._transport,
            headers={"Accept": "application/json"},
        )

    @staticmethod
    def _record(kind: str, result: LookupResult) -> LookupResult:
        increment_counter("roblox_lookup_total", kind=kind, result=result.status.value)
        return result

    async def _request_json(self, method: str, url: str, **kwargs) -> tuple[int, dict | None]:
        async with self._client() as client:
            res = await client.request(method, url, **kwargs)
        if res.status_code == 404:
            return 404, None
        res.raise_for_status()
        payload = res.json()
        if not isinstance(payload, dict):
            raise ValueError("Unexpected Roblox API payload")
        return res.status_code, payload

    async def lookup_user_id(self, user_id: int) -> LookupResult:
        url = f"{self._settings.roblox_users_api}/users/{int(user_id)}"
        try:
            status_code, payload = await self._request_json("GET", url)
            if status_code == 404 or payload is None:
                logger.debug("roblox.lookup_id not_found user_id=%s", user_id)
                return self._record("id", _NOT_FOUND)
            profile = RobloxProfile.from_api(payload)
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.warning("roblox.lookup_id failed user_id=%s error=%s", user_id, exc)
            return self._record("id", _TRANSIENT)
        return self._record("id", LookupResult(LookupStatus.OK, profile))

    async def lookup_username(self, username: str) -> LookupResult:
        url = f"{self._settings.roblox_users_api}/usernames/users"
        body = {"usernames": [username], "excludeBannedUsers": False}
        try:
            _, payload = await self._request_json("POST", url, json=body)
            matches = (payload or {}).get("data") or []
            if not matches:
                logger.debug("roblox.lookup_username not_found username=%s", username)
                return self._record("username", _NOT_FOUND)
            user_id = int(matches[0]["id"])
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.warning("roblox.lookup_username failed username=%s error=%s", username, exc)
            return self._record("username", _TRANSIENT)
        return await self.lookup_user_id(user_id)

    async def resolve_by_username(self, username: str) -> RobloxProfile | None:
        result = await self.lookup_username(username)
        return result.profile if result.found else None

    async def resolve_by_id(self, user_id: int) -> RobloxProfile | None:
        result = await self.lookup_user_id(user_id)
        return result.profile if result.found else None

    async def fetch_avatar(self, user_id: int, size: str = "150x150") -> str | None:
        cache_key = f"{int(user_id)}:{size}"
        cached = self._avatar_cache.get(cache_key)
        if cached is not None:
            return cached

        url = f"{self._settings.roblox_thumbnails_api}/users/avatar-headshot"
        params = {"userIds": str(int(user_id)), "size": size, "format": "Png", "isCircular": "false"}
        try:
            _, payload = await self._request_json("GET", url, params=params)
            items = (payload or {}).get("data") or []
            image_url = items[0].get("imageUrl") if items else None
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("roblox.avatar failed user_id=%s error=%s", user_id, exc)
            return None
        if not image_url:
            return None
        return self._avatar_cache.set(cache_key, str(image_url))

    async def validate(self, username: str) -> UsernameValidation:
        profile = await self.resolve_by_username(username)
        if profile is None:
            return UsernameValidation(valid=False, error=USERNAME_NOT_FOUND)
        if profile.is_banned:
            return UsernameValidation(valid=False, profile=profile, error=ACCOUNT_BANNED)
        avatar_url = await self.fetch_avatar(profile.id)
        return UsernameValidation(valid=True, profile=profile, avatar_url=avatar_url)

    async def confirm_code_present(self, user_id: int, code: str) -> bool:
        profile = await self.resolve_by_id(user_id)
        if profile is None:
            return False
        return code in profile.description
