import asyncio

from staffhub.db.models.login_attempt import LoginAttempt
from staffhub.services.auth import ACCOUNT_LOCK_REASON, ACCOUNT_LOCKED, IP_LOCK_REASON

IP = "203.0.113.7"


def _create_staff(staff_service, username="TestUser", pin="4821"):
    return asyncio.run(staff_service.create(username, pin=pin)).staff


def _fail(auth_service, username, ip=IP, times=1):
    for _ in range(times):
        auth_service.record_attempt(username, ip, False, "Invalid PIN")


def test_login_success_records_attempt(auth_service, staff_service, db_session):
    staff = _create_staff(staff_service)

    result = auth_service.login("testuser", "4821", IP)

    assert result.success is True
    assert result.staff.id == staff.id
    attempt = db_session.query(LoginAttempt).one()
    assert attempt.success is True
    assert attempt.roblox_username == "testuser"
    assert attempt.ip_address == IP
    assert attempt.failure_reason is None


def test_wrong_pin_reports_remaining_attempts(auth_service, staff_service):
    _create_staff(staff_service)

    result = auth_service.login("TestUser", "0000", IP)

    assert result.success is False
    assert result.error == "Invalid PIN. 4 attempts remaining."


def test_unknown_staff_is_recorded_as_failure(auth_service, db_session):
    result = auth_service.login("nobody", "1234", IP)
    assert result.success is False
    assert result.error == "Staff member not found. 4 attempts remaining."
    attempt = db_session.query(LoginAttempt).one()
    assert attempt.success is False
    assert attempt.failure_reason == "Staff member not found"


def test_account_lockout_after_max_failures(auth_service, staff_service, db_session):
    _create_staff(staff_service)

    errors = [auth_service.login("TestUser", "0000", IP).error for _ in range(5)]
    assert errors == [
        "Invalid PIN. 4 attempts remaining.",
        "Invalid PIN. 3 attempts remaining.",
        "Invalid PIN. 2 attempts remaining.",
        "Invalid PIN. 1 attempts remaining.",
        "Invalid PIN",
    ]

    sixth = auth_service.login("TestUser", "4821", IP)

    assert sixth.success is False
    assert sixth.error == f"{ACCOUNT_LOCK_REASON}. Try again in 15 minutes."
    last = db_session.query(LoginAttempt).order_by(LoginAttempt.id.desc()).first()
    assert last.success is False
    assert last.failure_reason == ACCOUNT_LOCKED
    assert db_session.query(LoginAttempt).count() == 6


def test_account_threshold_boundary(auth_service):
    _fail(auth_service, "TestUser", times=4)
    assert auth_service.is_locked_out("TestUser", IP).locked is False

    _fail(auth_service, "TestUser")
    status = auth_service.is_locked_out("testuser", IP)
    assert status.locked is True
    assert status.reason == ACCOUNT_LOCK_REASON
    assert status.remaining_minutes == 15


def test_address_threshold_boundary(auth_service):
    for i in range(9):
        _fail(auth_service, f"user{i}")
    assert auth_service.is_locked_out("fresh", IP).locked is False

    _fail(auth_service, "user9")
    status = auth_service.is_locked_out("fresh", IP)
    assert status.locked is True
    assert status.reason == IP_LOCK_REASON

    assert auth_service.is_locked_out("fresh", "198.51.100.1").locked is False


def test_account_reason_wins_when_both_limits_hit(auth_service):
    _fail(auth_service, "TestUser", times=10)
    status = auth_service.is_locked_out("TestUser", IP)
    assert status.reason == ACCOUNT_LOCK_REASON


def test_remaining_minutes_counts_from_oldest_failure(auth_service, clock):
    _fail(auth_service, "TestUser")
    clock.advance(minutes=4, seconds=30)
    _fail(auth_service, "TestUser", times=4)

    status = auth_service.is_locked_out("TestUser", IP)

    assert status.locked is True
    assert status.remaining_minutes == 11


def test_failures_outside_window_do_not_count(auth_service, clock):
    _fail(auth_service, "TestUser", times=5)
    clock.advance(minutes=15)

    assert auth_service.recent_failures("TestUser", 15) == []
    assert auth_service.is_locked_out("TestUser", IP).locked is False


def test_successful_attempts_are_not_failures(auth_service):
    for _ in range(6):
        auth_service.record_attempt("TestUser", IP, True)
    assert auth_service.recent_failures("TestUser", 15) == []
    assert auth_service.recent_failures_by_ip(IP, 15) == []


def test_recent_failures_newest_first(auth_service, clock):
    auth_service.record_attempt("TestUser", IP, False, "first")
    clock.advance(minutes=1)
    auth_service.record_attempt("TestUser", IP, False, "second")

    reasons = [a.failure_reason for a in auth_service.recent_failures("TESTUSER", 15)]
    assert reasons == ["second", "first"]
    assert [a.failure_reason for a in auth_service.recent_failures_by_ip(IP, 15)] == ["second", "first"]


def test_lockout_expires_and_login_works_again(auth_service, staff_service, clock):
    _create_staff(staff_service)
    for _ in range(5):
        auth_service.login("TestUser", "0000", IP)
    assert auth_service.login("TestUser", "4821", IP).success is False

    clock.advance(minutes=16)
    assert auth_service.login("TestUser", "4821", IP).success is True


def test_cleanup_old_attempts(auth_service, clock, db_session):
    _fail(auth_service, "TestUser", times=3)
    clock.advance(days=20)
    _fail(auth_service, "TestUser", times=2)
    clock.advance(days=11)

    removed = auth_service.cleanup_old_attempts(30)

    assert removed == 3
    assert db_session.query(LoginAttempt).count() == 2
    assert auth_service.cleanup_old_attempts(30) == 0


def test_cleanup_respects_custom_retention(auth_service, clock):
    _fail(auth_service, "TestUser")
    clock.advance(days=2)
    assert auth_service.cleanup_old_attempts(days_to_keep=1) == 1
    assert auth_service.cleanup_old_attempts() == 0


def test_zero_minute_window_counts_nothing(auth_service):
    _fail(auth_service, "TestUser")

    assert auth_service.recent_failures("TestUser", 0) == []
    assert auth_service.recent_failures_by_ip(IP, 0) == []
    assert len(auth_service.recent_failures("TestUser")) == 1
