import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from staffhub.api.deps import client_ip, get_auth_service
from staffhub.core.api_response import success_response_payload
from staffhub.core.observability import log_business_event
from staffhub.core.security import create_access_token, get_current_staff
from staffhub.db.models.staff_member import StaffMember
from staffhub.schemas.auth import LoginIn
from staffhub.schemas.staff import StaffOut
from staffhub.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/login")
def login(
    payload: LoginIn,
    request: Request,
    ip: str = Depends(client_ip),
    auth: AuthService = Depends(get_auth_service),
):
    result = auth.login(payload.roblox_username, payload.pin, ip)
    if not result.success:
        log_business_event(logger, request, event="auth.login", result="rejected", username=payload.roblox_username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=result.error)

    staff = result.staff
    token = create_access_token({"sub": str(staff.id), "role": staff.role})
    log_business_event(logger, request, event="auth.login", result="success", staff_id=staff.id)
    return success_response_payload(
        request,
        data={
            "staff": StaffOut.model_validate(staff).model_dump(mode="json"),
            "access_token": token,
            "token_type": "bearer",
        },
        message="Login successful",
    )


@router.post("/logout")
def logout(request: Request):
    return success_response_payload(request, message="Logged out successfully")


@router.get("/check-lockout")
def check_lockout(
    request: Request,
    username: str = Query(min_length=1),
    ip: str = Depends(client_ip),
    auth: AuthService = Depends(get_auth_service),
):
    lockout = auth.is_locked_out(username, ip)
    return success_response_payload(
        request,
        data={
            "locked": lockout.locked,
            "reason": lockout.reason,
            "remaining_minutes": lockout.remaining_minutes,
        },
    )


@router.get("/me")
def me(request: Request, current_staff: StaffMember = Depends(get_current_staff)):
    return success_response_payload(request, data=StaffOut.model_validate(current_staff).model_dump(mode="json"))
