"""
Rental Requests API.

Farmers submit and cancel requests; operators approve or reject them and scan
the pickup/return QR credentials. SMS notifications are sent as background
tasks after the transition has committed.
"""

from typing import Optional
import logging

from fastapi import APIRouter, BackgroundTasks, Header, Query, status

from agri_rental.api.deps import DbSession, CurrentUser, CredentialVerifier, FarmerUser, RentalReviewer
from agri_rental.exceptions import NotFoundError
from agri_rental.models.rental_request import RentalStatus
from agri_rental.schemas.rental_request import (
    CredentialResponse,
    CredentialScan,
    RentalRequestAction,
    RentalRequestCreate,
    RentalRequestListResponse,
    RentalRequestResponse,
)
from agri_rental.security.rbac import Permission, require_permission
from agri_rental.services.credentials import generate_qr_code_base64, verification_url
from agri_rental.services.notification_service import notify_transition
from agri_rental.services.rental_lifecycle import RentalLifecycleService, transition_notice

logger = logging.getLogger(__name__)
router = APIRouter()

StatusFilter = Optional[RentalStatus]


def _page(items, total: int, page: int, page_size: int) -> RentalRequestListResponse:
    return RentalRequestListResponse(
        items=[RentalRequestResponse.from_model(r) for r in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=RentalRequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_rental_request(
    request_data: RentalRequestCreate,
    db: DbSession,
    current_user: FarmerUser,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=64),
):
    """Submit a rental request for ``[start_date, end_date)``."""
    service = RentalLifecycleService(db)
    rental = await service.submit(current_user, request_data, idempotency_key=idempotency_key)
    return RentalRequestResponse.from_model(rental)


@router.get("/mine", response_model=RentalRequestListResponse)
async def list_my_requests(
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    items, total = await RentalLifecycleService(db).list_for_farmer(current_user.id, page, page_size)
    return _page(items, total, page, page_size)


@router.get("/pending", response_model=RentalRequestListResponse)
async def list_pending_requests(
    db: DbSession,
    current_user: RentalReviewer,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    items, total = await RentalLifecycleService(db).list_pending(page, page_size)
    return _page(items, total, page, page_size)


@router.get("", response_model=RentalRequestListResponse)
async def list_rental_requests(
    db: DbSession,
    current_user: RentalReviewer,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: StatusFilter = Query(None, alias="status"),
):
    """All rental requests, newest first (admin)."""
    items, total = await RentalLifecycleService(db).list_all(
        page, page_size, status=status_filter.value if status_filter else None
    )
    return _page(items, total, page, page_size)


@router.get("/{request_id}", response_model=RentalRequestResponse)
async def get_rental_request(request_id: int, db: DbSession, current_user: CurrentUser):
    rental = await RentalLifecycleService(db).get_for_user(request_id, current_user)
    return RentalRequestResponse.from_model(rental)


@router.patch("/{request_id}", response_model=RentalRequestResponse)
async def update_rental_request_status(
    request_id: int,
    action_data: RentalRequestAction,
    db: DbSession,
    current_user: CurrentUser,
    background_tasks: BackgroundTasks,
):
    """Approve, reject (admin) or cancel (owning farmer) a pending request."""
    service = RentalLifecycleService(db)

    if action_data.action == "cancel":
        rental = await service.cancel(request_id, current_user)
    else:
        require_permission(current_user, Permission.REVIEW_RENTALS)
        if action_data.action == "approve":
            rental = await service.approve(request_id, current_user, admin_notes=action_data.admin_notes)
        else:
            rental = await service.reject(
                request_id,
                current_user,
                rejection_reason=action_data.rejection_reason or "",
                admin_notes=action_data.admin_notes,
            )

    background_tasks.add_task(notify_transition, transition_notice(rental))
    return RentalRequestResponse.from_model(rental)


@router.post("/{request_id}/confirm-pickup", response_model=RentalRequestResponse)
async def confirm_pickup(
    request_id: int,
    scan: CredentialScan,
    db: DbSession,
    current_user: CredentialVerifier,
    background_tasks: BackgroundTasks,
):
    """Operator scanned the pickup QR code at handover."""
    rental = await RentalLifecycleService(db).confirm_pickup(request_id, scan.credential)
    logger.info("Pickup confirmed for rental request %s by user %s", request_id, current_user.id)
    background_tasks.add_task(notify_transition, transition_notice(rental))
    return RentalRequestResponse.from_model(rental)


@router.post("/{request_id}/confirm-return", response_model=RentalRequestResponse)
async def confirm_return(
    request_id: int,
    scan: CredentialScan,
    db: DbSession,
    current_user: CredentialVerifier,
    background_tasks: BackgroundTasks,
):
    """Operator scanned the return QR code when the machine came back."""
    rental = await RentalLifecycleService(db).confirm_return(request_id, scan.credential)
    logger.info("Return confirmed for rental request %s by user %s", request_id, current_user.id)
    background_tasks.add_task(notify_transition, transition_notice(rental))
    return RentalRequestResponse.from_model(rental)


@router.get("/{request_id}/credential", response_model=CredentialResponse)
async def get_credential(request_id: int, db: DbSession, current_user: CurrentUser):
    """The credential the farmer presents next, with its QR code."""
    service = RentalLifecycleService(db)
    rental = await service.get_for_user(request_id, current_user)

    current = service.current_credential(rental)
    token = service.issuer.reveal(current[1]) if current else None
    if token is None:
        raise NotFoundError("Active credential for rental request", request_id)

    purpose, record = current
    return CredentialResponse(
        request_id=rental.id,
        purpose=purpose.value,
        credential=token,
        qr_code=generate_qr_code_base64(token),
        verification_url=verification_url(rental, purpose),
        issued_at=record.issued_at,
    )
