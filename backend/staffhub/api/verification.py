import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from staffhub.api.deps import get_verification_service
from staffhub.core.api_response import success_response_payload
from staffhub.core.observability import log_business_event
from staffhub.db.models.verification_session import VerificationSession
from staffhub.schemas.verification import VerificationSessionOut, VerificationStartIn
from staffhub.services.verification import SESSION_NOT_FOUND, VerificationService

router = APIRouter(prefix="/verification", tags=["verification"])
logger = logging.getLogger(__name__)


def _serialize(session: VerificationSession, service: VerificationService) -> dict:
    data = VerificationSessionOut.model_validate(session).model_dump(mode="json")
    data["is_expired"] = session.expires_at <= service.clock()
    return data


@router.post("/start", status_code=status.HTTP_201_CREATED)
async def start_verification(
    payload: VerificationStartIn,
    request: Request,
    service: VerificationService = Depends(get_verification_service),
):
    result = await service.create_session(payload.roblox_username)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    log_business_event(logger, request, event="verification.start", session_id=result.session.id)
    return success_response_payload(
        request,
        data={"session": _serialize(result.session, service), "instructions": result.instructions},
        message="Verification session created",
    )


@router.get("/active")
def active_session(
    request: Request,
    username: str = Query(min_length=1),
    service: VerificationService = Depends(get_verification_service),
):
    session = service.get_active_session(username)
    return success_response_payload(request, data=_serialize(session, service) if session else None)


@router.post("/{session_id}/verify")
async def verify(
    session_id: int,
    request: Request,
    service: VerificationService = Depends(get_verification_service),
):
    outcome = await service.verify_session(session_id)
    if not outcome.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=outcome.error)
    log_business_event(logger, request, event="verification.verify", result="success", session_id=session_id)
    return success_response_payload(
        request,
        message="Verification successful! Your Roblox account has been verified.",
    )


@router.get("/{session_id}")
def get_session(
    session_id: int,
    request: Request,
    service: VerificationService = Depends(get_verification_service),
):
    session = service.get_by_id(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=SESSION_NOT_FOUND)
    return success_response_payload(request, data=_serialize(session, service))
