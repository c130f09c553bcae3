"""Equipment API - rentable machinery and its categories."""
from decimal import Decimal
from typing import Optional
import logging

from fastapi import APIRouter, Query, status
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError

from agri_rental.api.deps import DbSession, CurrentUser, EquipmentManager
from agri_rental.exceptions import ConflictError, NotFoundError
from agri_rental.models.equipment import Equipment, EquipmentCategory
from agri_rental.schemas.equipment import (
    EquipmentCategoryCreate,
    EquipmentCategoryUpdate,
    EquipmentCategoryResponse,
    EquipmentCreate,
    EquipmentUpdate,
    EquipmentResponse,
    EquipmentListResponse,
)
from agri_rental.security.rbac import is_operator

logger = logging.getLogger(__name__)
router = APIRouter()


async def _get_category(db, category_id: int) -> EquipmentCategory:
    category = await db.get(EquipmentCategory, category_id)
    if category is None:
        raise NotFoundError("Equipment category", category_id)
    return category


async def _get_equipment(db, equipment_id: int) -> Equipment:
    equipment = await db.get(Equipment, equipment_id)
    if equipment is None:
        raise NotFoundError("Equipment", equipment_id)
    return equipment


async def _commit_unique(db, detail: str) -> None:
    """Commit, reporting a unique-key clash as 409."""
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(detail)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


@router.get("/categories", response_model=list[EquipmentCategoryResponse])
async def list_categories(
    db: DbSession,
    current_user: CurrentUser,
    include_inactive: bool = False,
):
    """List equipment categories by name."""
    query = select(EquipmentCategory).order_by(EquipmentCategory.name)
    if not (include_inactive and is_operator(current_user)):
        query = query.where(EquipmentCategory.is_active == True)  # noqa: E712
    result = await db.execute(query)
    return result.scalars().all()


@router.post("/categories", response_model=EquipmentCategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    category_data: EquipmentCategoryCreate,
    db: DbSession,
    current_user: EquipmentManager,
):
    category = EquipmentCategory(**category_data.model_dump())
    db.add(category)
    await _commit_unique(db, f"Category '{category_data.name}' already exists")
    await db.refresh(category)
    logger.info("Equipment category %s created by user %s", category.id, current_user.id)
    return category


@router.put("/categories/{category_id}", response_model=EquipmentCategoryResponse)
async def update_category(
    category_id: int,
    category_data: EquipmentCategoryUpdate,
    db: DbSession,
    current_user: EquipmentManager,
):
    category = await _get_category(db, category_id)
    for field, value in category_data.model_dump(exclude_unset=True).items():
        setattr(category, field, value)
    await _commit_unique(db, f"Category '{category_data.name}' already exists")
    await db.refresh(category)
    return category


@router.post("/categories/{category_id}/activate", response_model=EquipmentCategoryResponse)
async def activate_category(category_id: int, db: DbSession, current_user: EquipmentManager):
    category = await _get_category(db, category_id)
    category.is_active = True
    await db.commit()
    await db.refresh(category)
    return category


@router.post("/categories/{category_id}/deactivate", response_model=EquipmentCategoryResponse)
async def deactivate_category(category_id: int, db: DbSession, current_user: EquipmentManager):
    category = await _get_category(db, category_id)
    category.is_active = False
    await db.commit()
    await db.refresh(category)
    logger.info("Equipment category %s deactivated by user %s", category.id, current_user.id)
    return category


# ---------------------------------------------------------------------------
# Equipment
# ---------------------------------------------------------------------------


@router.get("", response_model=EquipmentListResponse)
async def list_equipment(
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    category_id: Optional[int] = None,
    search: Optional[str] = Query(None, max_length=100),
    is_available: Optional[bool] = None,
    current_status: Optional[str] = None,
    min_daily_rate: Optional[Decimal] = Query(None, ge=0),
    max_daily_rate: Optional[Decimal] = Query(None, ge=0),
    include_inactive: bool = False,
):
    """List equipment with pagination and filtering."""
    query = select(Equipment)

    if not (include_inactive and is_operator(current_user)):
        query = query.where(Equipment.is_active == True)  # noqa: E712
    if category_id is not None:
        query = query.where(Equipment.category_id == category_id)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(Equipment.name.ilike(pattern), Equipment.description.ilike(pattern)))
    if is_available is not None:
        query = query.where(Equipment.is_available == is_available)
    if current_status:
        query = query.where(Equipment.current_status == current_status)
    if min_daily_rate is not None:
        query = query.where(Equipment.daily_rate >= min_daily_rate)
    if max_daily_rate is not None:
        query = query.where(Equipment.daily_rate <= max_daily_rate)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    offset = (page - 1) * page_size
    result = await db.execute(query.order_by(Equipment.name, Equipment.id).offset(offset).limit(page_size))
    equipment_list = result.unique().scalars().all()

    return EquipmentListResponse(
        items=[EquipmentResponse.from_model(e) for e in equipment_list],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{equipment_id}", response_model=EquipmentResponse)
async def get_equipment(equipment_id: int, db: DbSession, current_user: CurrentUser):
    """Get a single machine by ID."""
    equipment = await _get_equipment(db, equipment_id)
    if not equipment.is_active and not is_operator(current_user):
        raise NotFoundError("Equipment", equipment_id)
    return EquipmentResponse.from_model(equipment)


@router.post("", response_model=EquipmentResponse, status_code=status.HTTP_201_CREATED)
async def create_equipment(
    equipment_data: EquipmentCreate,
    db: DbSession,
    current_user: EquipmentManager,
):
    await _get_category(db, equipment_data.category_id)

    equipment = Equipment(**equipment_data.model_dump())
    db.add(equipment)
    await _commit_unique(db, f"Equipment '{equipment_data.name}' already exists in this category")
    await db.refresh(equipment)
    logger.info("Equipment %s created by user %s", equipment.id, current_user.id)
    return EquipmentResponse.from_model(equipment)


@router.patch("/{equipment_id}", response_model=EquipmentResponse)
async def update_equipment(
    equipment_id: int,
    equipment_data: EquipmentUpdate,
    db: DbSession,
    current_user: EquipmentManager,
):
    equipment = await _get_equipment(db, equipment_id)
    update_data = equipment_data.model_dump(exclude_unset=True)
    if update_data.get("category_id") is not None:
        await _get_category(db, update_data["category_id"])

    for field, value in update_data.items():
        setattr(equipment, field, value)

    await _commit_unique(db, "Equipment with this name already exists in the category")
    await db.refresh(equipment)
    logger.info("Equipment %s updated: %s", equipment.id, sorted(update_data))
    return EquipmentResponse.from_model(equipment)


@router.post("/{equipment_id}/activate", response_model=EquipmentResponse)
async def activate_equipment(equipment_id: int, db: DbSession, current_user: EquipmentManager):
    equipment = await _get_equipment(db, equipment_id)
    equipment.is_active = True
    await db.commit()
    await db.refresh(equipment)
    return EquipmentResponse.from_model(equipment)


@router.post("/{equipment_id}/deactivate", response_model=EquipmentResponse)
async def deactivate_equipment(equipment_id: int, db: DbSession, current_user: EquipmentManager):
    """Soft delete; existing requests keep their history."""
    equipment = await _get_equipment(db, equipment_id)
    equipment.is_active = False
    await db.commit()
    await db.refresh(equipment)
    logger.info("Equipment %s deactivated by user %s", equipment.id, current_user.id)
    return EquipmentResponse.from_model(equipment)
