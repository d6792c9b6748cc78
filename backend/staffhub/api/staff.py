import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from staffhub.api.deps import get_staff_service
from staffhub.core.api_response import success_response_payload
from staffhub.core.metrics import increment_counter
from staffhub.core.observability import log_business_event
from staffhub.core.security import require_permission
from staffhub.db.models.staff_member import StaffMember
from staffhub.schemas.staff import PinResetIn, StaffCreate, StaffOut, StaffUpdate
from staffhub.services.staff import STAFF_NOT_FOUND, StaffService

router = APIRouter(prefix="/staff", tags=["staff"])
logger = logging.getLogger(__name__)


def _serialize(staff: StaffMember) -> dict:
    return StaffOut.model_validate(staff).model_dump(mode="json")


def _permissions_dict(permissions) -> dict | None:
    if permissions is None:
        return None
    return permissions.model_dump(exclude_none=True)


@router.get("")
def list_staff(
    request: Request,
    include_inactive: bool = False,
    service: StaffService = Depends(get_staff_service),
    _: StaffMember = Depends(require_permission("manage_staff")),
):
    return success_response_payload(request, data=[_serialize(s) for s in service.get_all(include_inactive)])


@router.get("/{staff_id}")
def get_staff(
    staff_id: int,
    request: Request,
    service: StaffService = Depends(get_staff_service),
    _: StaffMember = Depends(require_permission("manage_staff")),
):
    staff = service.get_by_id(staff_id)
    if staff is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=STAFF_NOT_FOUND)
    return success_response_payload(request, data=_serialize(staff))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_staff(
    payload: StaffCreate,
    request: Request,
    service: StaffService = Depends(get_staff_service),
    actor: StaffMember = Depends(require_permission("manage_staff")),
):
    result = await service.create(
        payload.roblox_username,
        display_name=payload.display_name,
        role=payload.role,
        permissions=_permissions_dict(payload.permissions),
        pin=payload.pin,
    )
    if not result.success:
        increment_counter("staff_admin_total", action="create", result="rejected")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)

    increment_counter("staff_admin_total", action="create", result="success")
    log_business_event(logger, request, event="staff.create", actor_id=actor.id, staff_id=result.staff.id)
    return success_response_payload(
        request,
        data={"staff": _serialize(result.staff), "pin": result.pin},
        message=f"Staff member created. Their PIN is: {result.pin}",
    )


@router.patch("/{staff_id}")
def update_staff(
    staff_id: int,
    payload: StaffUpdate,
    request: Request,
    service: StaffService = Depends(get_staff_service),
    actor: StaffMember = Depends(require_permission("manage_staff")),
):
    staff = service.update(
        staff_id,
        display_name=payload.display_name,
        role=payload.role,
        permissions=_permissions_dict(payload.permissions),
        is_active=payload.is_active,
    )
    if staff is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=STAFF_NOT_FOUND)
    increment_counter("staff_admin_total", action="update", result="success")
    log_business_event(logger, request, event="staff.update", actor_id=actor.id, staff_id=staff_id)
    return success_response_payload(request, data=_serialize(staff), message="Staff member updated")


@router.post("/{staff_id}/reset-pin")
def reset_pin(
    staff_id: int,
    request: Request,
    payload: PinResetIn | None = None,
    service: StaffService = Depends(get_staff_service),
    actor: StaffMember = Depends(require_permission("manage_staff")),
):
    result = service.reset_pin(staff_id, payload.new_pin if payload else None)
    if not result.success:
        code = status.HTTP_404_NOT_FOUND if result.error == STAFF_NOT_FOUND else status.HTTP_400_BAD_REQUEST
        raise HTTPException(status_code=code, detail=result.error)
    increment_counter("staff_admin_total", action="reset_pin", result="success")
    log_business_event(logger, request, event="staff.reset_pin", actor_id=actor.id, staff_id=staff_id)
    return success_response_payload(
        request,
        data={"pin": result.pin},
        message=f"PIN has been reset. New PIN: {result.pin}",
    )


@router.delete("/{staff_id}")
def delete_staff(
    staff_id: int,
    request: Request,
    service: StaffService = Depends(get_staff_service),
    actor: StaffMember = Depends(require_permission("manage_staff")),
):
    if actor.id == staff_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")
    if not service.delete(staff_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=STAFF_NOT_FOUND)
    increment_counter("staff_admin_total", action="delete", result="success")
    log_business_event(logger, request, event="staff.delete", actor_id=actor.id, staff_id=staff_id)
    return success_response_payload(request, message="Staff member deleted")
