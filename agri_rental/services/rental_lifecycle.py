"""
Rental Request Lifecycle.

The authoritative state machine for equipment rental requests:

    (submit)        -> pending
    pending  --approve-->        approved   (admin)
    pending  --reject-->         rejected   (admin, reason required)
    pending  --cancel-->         cancelled  (owning farmer)
    approved --confirm_pickup--> active     (pickup credential)
    active   --confirm_return--> returned   (return credential)

Submission rechecks availability and inserts the request together with one
occupancy row per held day in a single transaction; the unique key on
occupancy turns a lost race into ``DateUnavailable``. Every transition is a
compare-and-swap on the current status, so two operators acting on the same
request cannot both succeed. On any failure the transaction is rolled back and
the request is left exactly as it was.
"""
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional, Sequence
import logging

from sqlalchemy import select, update, delete, func, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agri_rental.config import settings
from agri_rental.exceptions import (
    DateRangeInvalid,
    DateUnavailable,
    ForbiddenError,
    InvalidStateTransition,
    NotFoundError,
    CredentialAlreadyConsumed,
    ValidationFailed,
)
from agri_rental.models.availability import EquipmentOccupancy
from agri_rental.models.equipment import Equipment
from agri_rental.models.rental_request import (
    BLOCKING_STATUSES,
    CredentialPurpose,
    RentalCredential,
    RentalRequest,
    RentalStatus,
)
from agri_rental.models.user import User
from agri_rental.schemas.rental_request import RentalRequestCreate
from agri_rental.security.rbac import is_operator
from agri_rental.services import fee_calculator
from agri_rental.services.availability_resolver import AvailabilityResolver, REASON_BOOKED
from agri_rental.services.calendar import half_open_days
from agri_rental.services.credentials import CredentialIssuer, credential_issuer, verification_url
from agri_rental.services.notification_service import TransitionNotice

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    action: str
    source: RentalStatus
    target: RentalStatus


TRANSITIONS = {
    t.action: t
    for t in (
        Transition("approve", RentalStatus.PENDING, RentalStatus.APPROVED),
        Transition("reject", RentalStatus.PENDING, RentalStatus.REJECTED),
        Transition("cancel", RentalStatus.PENDING, RentalStatus.CANCELLED),
        Transition("confirm_pickup", RentalStatus.APPROVED, RentalStatus.ACTIVE),
        Transition("confirm_return", RentalStatus.ACTIVE, RentalStatus.RETURNED),
    )
}

# Which credential the farmer should be holding in each status
CREDENTIAL_FOR_STATUS = {
    RentalStatus.APPROVED.value: CredentialPurpose.PICKUP,
    RentalStatus.ACTIVE.value: CredentialPurpose.RETURN,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def billed_days(start: date, end: date, selected_dates: Optional[Sequence[date]]) -> int:
    """Billed day count: the selected days when given, else every day of ``[start, end)``."""
    if not selected_dates:
        return (end - start).days

    selected = set(selected_dates)
    outside = sorted(d for d in selected if not (start <= d < end))
    if outside:
        listed = ", ".join(d.isoformat() for d in outside)
        raise DateRangeInvalid(f"Selected dates fall outside the requested range: {listed}")
    return len(selected)


def transition_notice(request: RentalRequest) -> TransitionNotice:
    """Snapshot of a request for the SMS sent after a transition."""
    purpose = CREDENTIAL_FOR_STATUS.get(request.status)
    return TransitionNotice(
        request_id=request.id,
        status=request.status,
        recipient=request.receiver_phone,
        equipment_name=request.equipment.name if request.equipment else f"equipment #{request.equipment_id}",
        rejection_reason=request.rejection_reason,
        verification_url=verification_url(request, purpose) if purpose else None,
    )


class RentalLifecycleService:
    """Creates rental requests and moves them through their lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        resolver: Optional[AvailabilityResolver] = None,
        issuer: Optional[CredentialIssuer] = None,
    ):
        self.db = db
        self.resolver = resolver or AvailabilityResolver(db)
        self.issuer = issuer or credential_issuer

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get(self, request_id: int) -> RentalRequest:
        result = await self.db.execute(
            select(RentalRequest)
            .where(RentalRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        request = result.unique().scalar_one_or_none()
        if request is None:
            raise NotFoundError("Rental request", request_id)
        return request

    async def get_for_user(self, request_id: int, user: User) -> RentalRequest:
        """Farmers may only see their own requests; operators see all."""
        request = await self.get(request_id)
        if request.farmer_id != user.id and not is_operator(user):
            raise ForbiddenError("You can only view your own rental requests")
        return request

    async def list_requests(
        self,
        page: int = 1,
        page_size: int = 20,
        farmer_id: Optional[int] = None,
        status: Optional[str] = None,
        equipment_id: Optional[int] = None,
    ) -> tuple[list[RentalRequest], int]:
        """Newest first, with the total matching count."""
        conditions = []
        if farmer_id is not None:
            conditions.append(RentalRequest.farmer_id == farmer_id)
        if status:
            conditions.append(RentalRequest.status == status)
        if equipment_id is not None:
            conditions.append(RentalRequest.equipment_id == equipment_id)

        count_query = select(func.count()).select_from(RentalRequest)
        query = select(RentalRequest)
        if conditions:
            count_query = count_query.where(and_(*conditions))
            query = query.where(and_(*conditions))

        total = (await self.db.execute(count_query)).scalar() or 0
        result = await self.db.execute(
            query.order_by(RentalRequest.created_at.desc(), RentalRequest.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.unique().scalars().all()), total

    async def list_all(self, page: int = 1, page_size: int = 20, status: Optional[str] = None):
        return await self.list_requests(page=page, page_size=page_size, status=status)

    async def list_for_farmer(self, farmer_id: int, page: int = 1, page_size: int = 20):
        return await self.list_requests(page=page, page_size=page_size, farmer_id=farmer_id)

    async def list_pending(self, page: int = 1, page_size: int = 20):
        return await self.list_requests(page=page, page_size=page_size, status=RentalStatus.PENDING.value)

    def current_credential(self, request: RentalRequest) -> Optional[tuple[CredentialPurpose, RentalCredential]]:
        """The unconsumed credential the farmer should present next, if any."""
        purpose = CREDENTIAL_FOR_STATUS.get(request.status)
        if purpose is None:
            return None
        record = request.credential_for(purpose)
        if record is None or record.is_consumed:
            return None
        return purpose, record

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(
        self,
        farmer: User,
        data: RentalRequestCreate,
        idempotency_key: Optional[str] = None,
        today: Optional[date] = None,
    ) -> RentalRequest:
        """Create a pending request after re-checking every held day."""
        today = today or date.today()
        farmer_id = farmer.id
        if data.end_date <= data.start_date:
            raise DateRangeInvalid("end_date must be after start_date")
        if data.start_date < today:
            raise DateRangeInvalid("Rental cannot start in the past")
        if (data.end_date - data.start_date).days > settings.RENTAL_MAX_DAYS:
            raise DateRangeInvalid(f"Rental cannot exceed {settings.RENTAL_MAX_DAYS} days")

        if idempotency_key:
            existing = await self._find_by_idempotency_key(farmer_id, idempotency_key)
            if existing is not None:
                logger.info("Idempotent replay of rental request %s", existing.id)
                return existing

        days_billed = billed_days(data.start_date, data.end_date, data.selected_dates)
        held_days = half_open_days(data.start_date, data.end_date)

        try:
            equipment = await self._lock_equipment(data.equipment_id)

            availability = await self.resolver.resolve_for(
                equipment, held_days[0], held_days[-1], today=today
            )
            unavailable = {day: entry.reason for day, entry in availability.items() if not entry.available}
            if unavailable:
                raise DateUnavailable(unavailable)

            quote = fee_calculator.compute(days_billed, equipment)
            request = RentalRequest(
                farmer_id=farmer_id,
                equipment_id=equipment.id,
                start_date=data.start_date,
                end_date=data.end_date,
                rental_duration_days=days_billed,
                machine_fee=quote.machine_fee,
                delivery_fee=quote.delivery_fee,
                security_deposit=quote.security_deposit,
                total_amount=quote.total_amount,
                receiver_name=data.receiver_name,
                receiver_phone=data.receiver_phone,
                delivery_address=data.delivery_address,
                delivery_latitude=data.delivery_latitude,
                delivery_longitude=data.delivery_longitude,
                additional_notes=data.notes,
                status=RentalStatus.PENDING.value,
                idempotency_key=idempotency_key,
            )
            self.db.add(request)
            await self.db.flush()

            self.db.add_all(
                EquipmentOccupancy(equipment_id=equipment.id, day=day, request_id=request.id)
                for day in held_days
            )
            await self.db.flush()
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            return await self._resolve_insert_conflict(farmer_id, data.equipment_id, held_days, idempotency_key)
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Rental request %s submitted: equipment=%s %s..%s billed_days=%d",
            request.id,
            request.equipment_id,
            request.start_date,
            request.end_date,
            request.rental_duration_days,
        )
        return await self.get(request.id)

    async def _lock_equipment(self, equipment_id: int) -> Equipment:
        """Row-lock the machine so concurrent submissions for it queue up."""
        result = await self.db.execute(
            select(Equipment).where(Equipment.id == equipment_id).with_for_update(of=Equipment)
        )
        equipment = result.unique().scalar_one_or_none()
        if equipment is None or not equipment.is_active:
            raise NotFoundError("Equipment", equipment_id)
        return equipment

    async def _find_by_idempotency_key(self, farmer_id: int, key: str) -> Optional[RentalRequest]:
        result = await self.db.execute(
            select(RentalRequest.id).where(
                and_(RentalRequest.farmer_id == farmer_id, RentalRequest.idempotency_key == key)
            )
        )
        request_id = result.scalar_one_or_none()
        return await self.get(request_id) if request_id is not None else None

    async def _resolve_insert_conflict(
        self,
        farmer_id: int,
        equipment_id: int,
        held_days: list[date],
        idempotency_key: Optional[str],
    ) -> RentalRequest:
        """A unique key fired: either a concurrent retry or a lost race for the days."""
        if idempotency_key:
            existing = await self._find_by_idempotency_key(farmer_id, idempotency_key)
            if existing is not None:
                return existing

        result = await self.db.execute(
            select(EquipmentOccupancy.day).where(
                and_(
                    EquipmentOccupancy.equipment_id == equipment_id,
                    EquipmentOccupancy.day.in_(held_days),
                )
            )
        )
        taken = {day: REASON_BOOKED for day in result.scalars()}
        logger.warning("Concurrent booking conflict on equipment %s", equipment_id)
        raise DateUnavailable(taken or {day: REASON_BOOKED for day in held_days})

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def approve(self, request_id: int, admin: User, admin_notes: Optional[str] = None) -> RentalRequest:
        request = await self.get(request_id)
        self._require_status(request, TRANSITIONS["approve"])
        now = _utcnow()
        try:
            await self._compare_and_set(
                request,
                TRANSITIONS["approve"],
                approved_by=admin.id,
                approved_at=now,
                admin_notes=admin_notes,
            )
            issued = self.issuer.issue(request, CredentialPurpose.PICKUP, now=now)
            self.db.add(issued.record)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return await self.get(request_id)

    async def reject(
        self,
        request_id: int,
        admin: User,
        rejection_reason: str,
        admin_notes: Optional[str] = None,
    ) -> RentalRequest:
        if not rejection_reason or not rejection_reason.strip():
            raise ValidationFailed("A rejection reason is required")
        request = await self.get(request_id)
        self._require_status(request, TRANSITIONS["reject"])
        try:
            await self._compare_and_set(
                request,
                TRANSITIONS["reject"],
                approved_by=admin.id,
                approved_at=_utcnow(),
                rejection_reason=rejection_reason.strip(),
                admin_notes=admin_notes,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return await self.get(request_id)

    async def cancel(self, request_id: int, farmer: User) -> RentalRequest:
        request = await self.get(request_id)
        if request.farmer_id != farmer.id:
            raise ForbiddenError("You can only cancel your own rental requests")
        self._require_status(request, TRANSITIONS["cancel"])
        try:
            await self._compare_and_set(request, TRANSITIONS["cancel"], cancelled_at=_utcnow())
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return await self.get(request_id)

    async def confirm_pickup(self, request_id: int, credential: str) -> RentalRequest:
        request = await self.get(request_id)
        transition = TRANSITIONS["confirm_pickup"]
        self._require_status(request, transition)
        record = await self._verify_credential(credential, request, CredentialPurpose.PICKUP)

        now = _utcnow()
        try:
            await self._consume(record, now)
            await self._compare_and_set(request, transition, pickup_confirmed_at=now)
            issued = self.issuer.issue(request, CredentialPurpose.RETURN, now=now)
            self.db.add(issued.record)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return await self.get(request_id)

    async def confirm_return(self, request_id: int, credential: str) -> RentalRequest:
        request = await self.get(request_id)
        transition = TRANSITIONS["confirm_return"]
        self._require_status(request, transition)
        record = await self._verify_credential(credential, request, CredentialPurpose.RETURN)

        now = _utcnow()
        try:
            await self._consume(record, now)
            await self._compare_and_set(request, transition, return_confirmed_at=now)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return await self.get(request_id)

    def _require_status(self, request: RentalRequest, transition: Transition) -> None:
        if request.status != transition.source.value:
            logger.warning(
                "Rejected %s on rental request %s in status %s",
                transition.action,
                request.id,
                request.status,
            )
            raise InvalidStateTransition(request.id, request.status, transition.action)

    async def _verify_credential(
        self, token: str, request: RentalRequest, purpose: CredentialPurpose
    ) -> RentalCredential:
        jti = self.issuer.jti_of(token)
        record = await self.db.get(RentalCredential, jti) if jti else None
        return self.issuer.verify(token, request, purpose, record)

    async def _consume(self, record: RentalCredential, now: datetime) -> None:
        """Mark a credential used; loses cleanly to a concurrent scan."""
        result = await self.db.execute(
            update(RentalCredential)
            .where(and_(RentalCredential.id == record.id, RentalCredential.consumed_at.is_(None)))
            .values(consumed_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise CredentialAlreadyConsumed(record.purpose)

    async def _compare_and_set(self, request: RentalRequest, transition: Transition, **values) -> None:
        """Apply ``transition`` only if the stored status is still its source."""
        result = await self.db.execute(
            update(RentalRequest)
            .where(
                and_(
                    RentalRequest.id == request.id,
                    RentalRequest.status == transition.source.value,
                )
            )
            .values(status=transition.target.value, updated_at=_utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = await self.db.scalar(select(RentalRequest.status).where(RentalRequest.id == request.id))
            logger.warning(
                "Lost status race on rental request %s during %s (now %s)",
                request.id,
                transition.action,
                current,
            )
            raise InvalidStateTransition(request.id, current or "unknown", transition.action)

        if transition.target not in BLOCKING_STATUSES:
            await self.db.execute(
                delete(EquipmentOccupancy)
                .where(EquipmentOccupancy.request_id == request.id)
                .execution_options(synchronize_session=False)
            )

        logger.info(
            "Rental request %s: %s -> %s",
            request.id,
            transition.source.value,
            transition.target.value,
        )
