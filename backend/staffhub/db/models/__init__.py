from staffhub.db.models.login_attempt import LoginAttempt
from staffhub.db.models.staff_member import StaffMember
from staffhub.db.models.verification_session import VerificationSession

__all__ = ["LoginAttempt", "StaffMember", "VerificationSession"]
