"""
Diner store - persistence operations for bulk diner preferences and
per-meal custom diners.

Bulk preference writes commit on their own (they are a complete user action).
Meal diner writes only flush: they are always one step of a meal transition
and the lifecycle manager commits or rolls back the whole transition.
"""
import logging
from datetime import datetime
from typing import List, Sequence

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from menu_planner.errors import DatabaseError, NotFoundError
from menu_planner.models.family_member import FamilyMember
from menu_planner.models.diner_preference import UserDinerPreference
from menu_planner.models.menu_plan import Meal, MealDiner, MealType
from menu_planner.utils.validators import validate_meal_type

logger = logging.getLogger(__name__)


def dedupe_ids(ids: Sequence[int]) -> List[int]:
    """Drop repeated ids, keeping first-seen order"""
    return list(dict.fromkeys(int(i) for i in ids))


async def get_owned_family_members(
    db: AsyncSession,
    user_id: int,
    member_ids: Sequence[int],
) -> List[FamilyMember]:
    """
    Load family members by id, all of which must belong to user_id.
    Unknown ids and other users' members are reported the same way.
    """
    ids = dedupe_ids(member_ids)
    if not ids:
        return []

    result = await db.execute(
        select(FamilyMember)
        .where(FamilyMember.id.in_(ids), FamilyMember.user_id == user_id)
        .order_by(FamilyMember.id)
    )
    members = list(result.scalars().all())

    missing = sorted(set(ids) - {m.id for m in members})
    if missing:
        raise NotFoundError(
            f"Family member not found: {', '.join(str(i) for i in missing)}",
            details={"family_member_ids": missing},
        )
    return members


# ---------------------------------------------------------------------------
# Bulk preferences
# ---------------------------------------------------------------------------

async def get_bulk_preferences(db: AsyncSession, user_id: int, meal_type: str) -> List[int]:
    """Family member ids in the user's bulk selection for a meal type"""
    meal_type = validate_meal_type(meal_type)
    result = await db.execute(
        select(UserDinerPreference.family_member_id)
        .where(
            UserDinerPreference.user_id == user_id,
            UserDinerPreference.meal_type == meal_type,
        )
        .order_by(UserDinerPreference.family_member_id)
    )
    return list(result.scalars().all())


async def get_bulk_members(db: AsyncSession, user_id: int, meal_type: MealType) -> List[FamilyMember]:
    """The bulk selection joined to the live family member rows"""
    result = await db.execute(
        select(FamilyMember)
        .join(UserDinerPreference, UserDinerPreference.family_member_id == FamilyMember.id)
        .where(
            UserDinerPreference.user_id == user_id,
            UserDinerPreference.meal_type == meal_type,
        )
        .order_by(FamilyMember.id)
    )
    return list(result.scalars().all())


async def set_bulk_preferences(
    db: AsyncSession,
    user_id: int,
    meal_type: str,
    member_ids: Sequence[int],
) -> List[int]:
    """
    Replace the bulk selection for (user, meal_type) in one transaction.
    An empty list is valid: nobody eats this meal type by default.
    """
    meal_type = validate_meal_type(meal_type)
    ids = dedupe_ids(member_ids)
    await get_owned_family_members(db, user_id, ids)

    try:
        await db.execute(
            delete(UserDinerPreference).where(
                UserDinerPreference.user_id == user_id,
                UserDinerPreference.meal_type == meal_type,
            )
        )
        db.add_all([
            UserDinerPreference(user_id=user_id, meal_type=meal_type, family_member_id=member_id)
            for member_id in ids
        ])
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to set bulk preferences for user {user_id} ({meal_type.value}): {e}")
        raise DatabaseError("Failed to set diner preferences") from e

    logger.info(f"User {user_id} bulk {meal_type.value} diners set to {ids}")
    return sorted(ids)


async def delete_bulk_preferences(db: AsyncSession, user_id: int, meal_type: str) -> None:
    meal_type = validate_meal_type(meal_type)
    try:
        await db.execute(
            delete(UserDinerPreference).where(
                UserDinerPreference.user_id == user_id,
                UserDinerPreference.meal_type == meal_type,
            )
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise DatabaseError("Failed to clear diner preferences") from e


# ---------------------------------------------------------------------------
# Meal diners
# ---------------------------------------------------------------------------

async def set_meal_custom_flag(db: AsyncSession, meal: Meal, has_custom_diners: bool) -> None:
    """Set the override flag; always touches the row so the version advances"""
    meal.has_custom_diners = has_custom_diners
    meal.updated_at = datetime.utcnow()
    await db.flush()


async def get_meal_diners(db: AsyncSession, meal_id: int) -> List[FamilyMember]:
    """Family members joined through MealDiner, in id order"""
    result = await db.execute(
        select(FamilyMember)
        .join(MealDiner, MealDiner.family_member_id == FamilyMember.id)
        .where(MealDiner.meal_id == meal_id)
        .order_by(FamilyMember.id)
    )
    return list(result.scalars().all())


async def replace_meal_diners(db: AsyncSession, meal_id: int, member_ids: Sequence[int]) -> None:
    """Delete + insert the meal's MealDiner rows inside the caller's transaction"""
    await db.execute(delete(MealDiner).where(MealDiner.meal_id == meal_id))
    db.add_all([
        MealDiner(meal_id=meal_id, family_member_id=member_id)
        for member_id in dedupe_ids(member_ids)
    ])
    await db.flush()


async def clear_meal_diners(db: AsyncSession, meal_id: int) -> None:
    await db.execute(delete(MealDiner).where(MealDiner.meal_id == meal_id))
    await db.flush()


async def count_custom_references(db: AsyncSession, family_member_id: int) -> int:
    """How many meals hold this member in their custom diner set"""
    result = await db.execute(
        select(MealDiner.meal_id).where(MealDiner.family_member_id == family_member_id)
    )
    return len(result.scalars().all())
