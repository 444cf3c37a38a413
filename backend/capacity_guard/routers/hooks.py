import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_booking_store, get_capacity_engine, get_hook_caller, get_session
from ..domain.errors import (
    AdmissionRejectedError,
    CapacityExceededError,
    LockAcquisitionError,
    StoreUnavailableError,
)
from ..infrastructure.repositories import SqlAlchemyBookingStore
from ..models import BookingStatus
from ..schemas import BookingCreateHook, CapacityExceededRejection, HookRejection
from ..usecases import hooks as hook_usecase
from ..usecases.engine import CapacityEngine
from ..utils.audit_log import emit_audit_log

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hooks/bookings", tags=["hooks"], dependencies=[Depends(get_hook_caller)])


def _unavailable(exc: Exception) -> HTTPException:
    if isinstance(exc, LockAcquisitionError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="slot is busy, retry later")
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="booking store unavailable")


def _audit_failed(exc: RuntimeError) -> HTTPException:
    logger.error("audit log emission failed: %s", exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")


@router.post(
    "/before-create",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={status.HTTP_400_BAD_REQUEST: {"model": HookRejection}},
)
async def before_create(
    payload: BookingCreateHook,
    session: AsyncSession = Depends(get_session),
    engine: CapacityEngine = Depends(get_capacity_engine),
    caller: str = Depends(get_hook_caller),
) -> Response:
    settings = get_settings()
    async with session.begin():
        try:
            await hook_usecase.before_create(
                engine,
                event_type=payload.event_type,
                event_id=payload.event_id,
                slot_start=payload.slot_start,
                message=settings.capacity_full_message,
            )
        except AdmissionRejectedError as exc:
            rejection = HookRejection(message=str(exc))
        except (StoreUnavailableError, LockAcquisitionError) as exc:
            raise _unavailable(exc)
        else:
            rejection = None

    if rejection is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    try:
        emit_audit_log(
            action="booking.admission_rejected",
            event_id=payload.event_id,
            slot_start=payload.slot_start,
            ceiling=engine.config.ceiling_for(payload.event_id),
            caller=caller,
            message=rejection.message,
        )
    except RuntimeError as exc:
        raise _audit_failed(exc)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=rejection.model_dump())


@router.post(
    "/{booking_id}/after-meta-update",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={status.HTTP_400_BAD_REQUEST: {"model": CapacityExceededRejection}},
)
async def after_meta_update(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    store: SqlAlchemyBookingStore = Depends(get_booking_store),
    engine: CapacityEngine = Depends(get_capacity_engine),
    caller: str = Depends(get_hook_caller),
) -> Response:
    settings = get_settings()
    # The cancellation must be committed, so the rejection is returned after the transaction closes.
    async with session.begin():
        try:
            await hook_usecase.after_meta_update(
                engine,
                store,
                booking_id=booking_id,
                message_template=settings.capacity_exceeded_message,
            )
        except CapacityExceededError as exc:
            exceeded = exc
        except (StoreUnavailableError, LockAcquisitionError) as exc:
            raise _unavailable(exc)
        else:
            exceeded = None

    if exceeded is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    report = exceeded.report
    try:
        emit_audit_log(
            action="booking.capacity_cancelled",
            booking_id=booking_id,
            event_id=exceeded.scope.event_id,
            slot_start=exceeded.scope.slot_start,
            status_from=exceeded.status_from,
            status_to=BookingStatus.CANCELLED,
            ceiling=report.ceiling,
            remaining=report.remaining,
            attempted=report.attempted,
            caller=caller,
            message=exceeded.message,
        )
    except RuntimeError as exc:
        raise _audit_failed(exc)
    body = CapacityExceededRejection(
        message=exceeded.message,
        ceiling=report.ceiling,
        remaining=report.remaining,
        attempted=report.attempted,
    )
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump())
