import asyncio
import re
import threading

import pytest

from staffhub.core.security import PinHasher
from staffhub.services.roblox import ACCOUNT_BANNED, USERNAME_NOT_FOUND
from staffhub.services.staff import (
    ACCOUNT_DEACTIVATED,
    INVALID_PIN,
    PIN_FORMAT_INVALID,
    STAFF_NOT_FOUND,
    USERNAME_TAKEN,
    StaffService,
)


def _create(staff_service, username="TestUser", **kwargs):
    return asyncio.run(staff_service.create(username, **kwargs))


def test_create_generates_four_digit_pin_and_hashes_it(staff_service):
    result = _create(staff_service)

    assert result.success is True
    assert re.fullmatch(r"\d{4}", result.pin)
    staff = result.staff
    assert staff.roblox_username == "testuser"
    assert staff.roblox_user_id == 1001
    assert staff.display_name == "Test User"
    assert staff.avatar_url == "https://tr.rbxcdn.com/headshot.png"
    assert staff.pin_hash != result.pin
    assert result.pin not in staff.pin_hash
    assert staff.is_active is True
    assert staff.is_verified is False


def test_credentials_work_right_after_create(staff_service):
    result = _create(staff_service, pin="4821")

    check = staff_service.verify_credentials("TESTUSER", "4821")

    assert check.success is True
    assert check.staff.id == result.staff.id
    assert check.staff.last_active is not None


def test_create_rejects_unknown_username(staff_service):
    result = _create(staff_service, "GhostUser")
    assert result.success is False
    assert result.error == USERNAME_NOT_FOUND
    assert staff_service.get_all(include_inactive=True) == []


def test_create_rejects_banned_account(staff_service, roblox):
    roblox.add_profile("BannedUser", 2002, is_banned=True)
    result = _create(staff_service, "BannedUser")
    assert result.success is False
    assert result.error == ACCOUNT_BANNED


def test_create_rejects_when_roblox_is_down(staff_service, roblox):
    roblox.available = False
    result = _create(staff_service)
    assert result.success is False
    assert result.error == USERNAME_NOT_FOUND


def test_create_rejects_duplicate_username_case_insensitively(staff_service):
    assert _create(staff_service).success is True
    duplicate = _create(staff_service, "testuser")
    assert duplicate.success is False
    assert duplicate.error == USERNAME_TAKEN


def test_create_merges_role_defaults_with_overrides(staff_service):
    result = _create(staff_service, role="staff", permissions={"manage_staff": True, "send_messages": False})
    assert result.staff.role == "staff"
    assert result.staff.permissions == {
        "view_restricted_data": True,
        "edit_content": True,
        "send_messages": False,
        "manage_staff": True,
    }


def test_create_prefers_explicit_display_name(staff_service):
    result = _create(staff_service, display_name="Ops Lead")
    assert result.staff.display_name == "Ops Lead"


def test_verify_credentials_errors(staff_service):
    staff = _create(staff_service, pin="1357").staff

    assert staff_service.verify_credentials("nobody", "1357").error == STAFF_NOT_FOUND
    assert staff_service.verify_credentials("TestUser", "2468").error == INVALID_PIN

    staff_service.update(staff.id, is_active=False)
    assert staff_service.verify_credentials("TestUser", "1357").error == ACCOUNT_DEACTIVATED


def test_reset_pin_replaces_previous_pin(staff_service):
    created = _create(staff_service, pin="1111")

    reset = staff_service.reset_pin(created.staff.id)

    assert reset.success is True
    assert re.fullmatch(r"\d{4}", reset.pin)
    if reset.pin != "1111":
        assert staff_service.verify_credentials("TestUser", "1111").success is False
    assert staff_service.verify_credentials("TestUser", reset.pin).success is True


def test_reset_pin_with_explicit_value(staff_service):
    created = _create(staff_service, pin="1111")
    reset = staff_service.reset_pin(created.staff.id, "9090")
    assert reset.pin == "9090"
    assert staff_service.verify_credentials("TestUser", "1111").success is False
    assert staff_service.verify_credentials("TestUser", "9090").success is True


def test_reset_pin_unknown_staff(staff_service):
    result = staff_service.reset_pin(999)
    assert result.success is False
    assert result.error == STAFF_NOT_FOUND


def test_mark_verified_is_idempotent(staff_service):
    staff = _create(staff_service).staff
    staff_service.mark_verified(staff.id)
    staff_service.mark_verified(staff.id)
    assert staff_service.get_by_id(staff.id).is_verified is True


def test_mark_verified_on_vanished_record_raises(staff_service):
    with pytest.raises(LookupError):
        staff_service.mark_verified(12345)


def test_lookups(staff_service):
    staff = _create(staff_service).staff
    assert staff_service.get_by_id(staff.id).id == staff.id
    assert staff_service.get_by_username("TeStUsEr").id == staff.id
    assert staff_service.get_by_roblox_user_id(1001).id == staff.id
    assert staff_service.get_by_roblox_user_id(1) is None


def test_get_all_newest_first_and_hides_inactive(staff_service, roblox, clock):
    roblox.add_profile("SecondUser", 2001)
    first = _create(staff_service).staff
    clock.advance(minutes=1)
    second = _create(staff_service, "SecondUser").staff

    assert [s.id for s in staff_service.get_all()] == [second.id, first.id]

    staff_service.update(first.id, is_active=False)
    assert [s.id for s in staff_service.get_all()] == [second.id]
    assert [s.id for s in staff_service.get_all(include_inactive=True)] == [second.id, first.id]


def test_update_without_fields_returns_record_unchanged(staff_service, clock):
    staff = _create(staff_service).staff
    updated_at = staff.updated_at
    clock.advance(minutes=5)

    result = staff_service.update(staff.id)

    assert result.id == staff.id
    assert result.updated_at == updated_at


def test_update_merges_permission_overlay(staff_service):
    staff = _create(staff_service).staff
    result = staff_service.update(staff.id, display_name="Renamed", role="management", permissions={"edit_content": False})
    assert result.display_name == "Renamed"
    assert result.role == "management"
    assert result.permissions["edit_content"] is False
    assert result.permissions["view_restricted_data"] is True


def test_update_unknown_staff_returns_none(staff_service):
    assert staff_service.update(404, display_name="x") is None


def test_delete(staff_service):
    staff = _create(staff_service).staff
    assert staff_service.delete(staff.id) is True
    assert staff_service.get_by_id(staff.id) is None
    assert staff_service.delete(staff.id) is False


def test_delete_then_create_gets_a_fresh_id(staff_service):
    old_id = _create(staff_service).staff.id
    staff_service.delete(old_id)

    recreated = _create(staff_service).staff

    assert recreated.id > old_id


@pytest.mark.parametrize("pin", ["12a4", "123", "123456789", "١٢٣٤", "12 34"])
def test_create_rejects_malformed_pin(staff_service, pin):
    result = _create(staff_service, pin=pin)
    assert result.success is False
    assert result.error == PIN_FORMAT_INVALID
    assert staff_service.get_by_username("TestUser") is None


def test_reset_pin_rejects_malformed_pin(staff_service):
    staff = _create(staff_service, pin="1111").staff

    result = staff_service.reset_pin(staff.id, "abcd")

    assert result.success is False
    assert result.error == PIN_FORMAT_INVALID
    assert staff_service.verify_credentials("TestUser", "1111").success is True


def test_create_hashes_off_the_event_loop(db_session, roblox, settings, clock):
    hash_threads = []

    class RecordingHasher(PinHasher):
        def hash(self, pin: str) -> str:
            hash_threads.append(threading.get_ident())
            return super().hash(pin)

    service = StaffService(db_session, roblox, settings=settings, pin_hasher=RecordingHasher(4), clock=clock)

    async def scenario():
        result = await service.create("TestUser")
        return threading.get_ident(), result

    loop_thread, result = asyncio.run(scenario())

    assert result.success is True
    assert len(hash_threads) == 1
    assert hash_threads[0] != loop_thread
