"""
Family member API endpoints - the people meals are planned for
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from menu_planner.api.auth import get_current_user
from menu_planner.database import get_db
from menu_planner.errors import ValidationError
from menu_planner.models.diner_preference import UserDinerPreference
from menu_planner.models.family_member import FamilyMember
from menu_planner.models.user import User
from menu_planner.services import diner_store
from menu_planner.utils.validators import require_valid_diners

router = APIRouter()
logger = logging.getLogger(__name__)


# --- Pydantic Schemas ---

class FamilyMemberResponse(BaseModel):
    id: int
    name: str
    preferences: Optional[str]
    dietary_restrictions: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class FamilyMemberCreate(BaseModel):
    name: str
    preferences: Optional[str] = None
    dietary_restrictions: Optional[str] = None


class FamilyMemberUpdate(BaseModel):
    name: Optional[str] = None
    preferences: Optional[str] = None
    dietary_restrictions: Optional[str] = None


# --- Helper ---

def _validate_member(name: str, preferences: Optional[str], dietary_restrictions: Optional[str]) -> None:
    require_valid_diners([{"name": name, "preferences": preferences}])
    require_valid_diners([{"name": name, "preferences": dietary_restrictions}])


# --- Endpoints ---

@router.get("/", response_model=List[FamilyMemberResponse])
async def list_family_members(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = await db.execute(
        select(FamilyMember)
        .where(FamilyMember.user_id == current_user.id)
        .order_by(FamilyMember.id)
    )
    return result.scalars().all()


@router.post("/", response_model=FamilyMemberResponse, status_code=201)
async def create_family_member(
    data: FamilyMemberCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    _validate_member(data.name, data.preferences, data.dietary_restrictions)

    member = FamilyMember(
        user_id=current_user.id,
        name=data.name.strip(),
        preferences=data.preferences or None,
        dietary_restrictions=data.dietary_restrictions or None,
    )
    db.add(member)
    await db.commit()
    await db.refresh(member)
    return member


@router.get("/{member_id}", response_model=FamilyMemberResponse)
async def get_family_member(
    member_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    members = await diner_store.get_owned_family_members(db, current_user.id, [member_id])
    return members[0]


@router.put("/{member_id}", response_model=FamilyMemberResponse)
async def update_family_member(
    member_id: int,
    data: FamilyMemberUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Edits are visible everywhere the member is a diner: bulk meals and
    custom meals both reference the live row.
    """
    member = (await diner_store.get_owned_family_members(db, current_user.id, [member_id]))[0]

    updates = data.model_dump(exclude_unset=True)
    name = updates.get("name", member.name)
    preferences = updates.get("preferences", member.preferences)
    restrictions = updates.get("dietary_restrictions", member.dietary_restrictions)
    _validate_member(name, preferences, restrictions)

    member.name = name.strip()
    member.preferences = preferences or None
    member.dietary_restrictions = restrictions or None
    member.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(member)
    return member


def _member_in_use(name: str, references: int) -> ValidationError:
    return ValidationError(
        f"{name} is a diner of {references} customized meal(s); "
        "change or revert those meals first, or delete their menu plan if it is confirmed",
        details={"meal_count": references},
    )


@router.delete("/{member_id}")
async def delete_family_member(
    member_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    A member held by a custom meal cannot be deleted: that meal's diner set
    is frozen. Bulk selections simply lose the member.
    """
    member = (await diner_store.get_owned_family_members(db, current_user.id, [member_id]))[0]

    name = member.name
    references = await diner_store.count_custom_references(db, member.id)
    if references:
        raise _member_in_use(name, references)

    await db.execute(delete(UserDinerPreference).where(UserDinerPreference.family_member_id == member.id))
    await db.delete(member)
    try:
        await db.commit()
    except IntegrityError:
        # a meal picked the member up after the count
        await db.rollback()
        raise _member_in_use(name, await diner_store.count_custom_references(db, member_id))

    logger.info(f"Deleted family member {member_id} of user {current_user.id}")
    return {"message": "Family member deleted"}
