from typing import Literal

StaffRole = Literal["staff", "management", "admin"]

StaffPermission = Literal[
    "view_restricted_data",
    "edit_content",
    "send_messages",
    "manage_staff",
]

ROLES: tuple[str, ...] = ("staff", "management", "admin")
DEFAULT_ROLE = "staff"

PERMISSIONS_BY_ROLE: dict[str, dict[StaffPermission, bool]] = {
    "staff": {
        "view_restricted_data": True,
        "edit_content": True,
        "send_messages": True,
        "manage_staff": False,
    },
    "management": {
        "view_restricted_data": True,
        "edit_content": True,
        "send_messages": True,
        "manage_staff": True,
    },
    "admin": {
        "view_restricted_data": True,
        "edit_content": True,
        "send_messages": True,
        "manage_staff": True,
    },
}


def normalize_role(role: str | None) -> str:
    value = (role or "").strip().lower()
    if value in PERMISSIONS_BY_ROLE:
        return value
    return DEFAULT_ROLE


def merge_permissions(base: dict | None, overrides: dict | None) -> dict[str, bool]:
    merged = {key: bool(value) for key, value in (base or {}).items()}
    for key, value in (overrides or {}).items():
        if key in PERMISSIONS_BY_ROLE[DEFAULT_ROLE] and value is not None:
            merged[key] = bool(value)
    return merged


def permissions_for_role(role: str | None, overrides: dict | None = None) -> dict[str, bool]:
    return merge_permissions(PERMISSIONS_BY_ROLE[normalize_role(role)], overrides)


def has_permission(permissions: dict | None, permission: StaffPermission) -> bool:
    return bool((permissions or {}).get(permission, False))
