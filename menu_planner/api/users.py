"""
User profile API endpoints - household preferences, default diner count and
account removal
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from menu_planner.api.auth import UserResponse, get_current_user
from menu_planner.database import get_db
from menu_planner.errors import ValidationError
from menu_planner.models.menu_plan import Meal, MealDiner, MenuPlan
from menu_planner.models.user import User
from menu_planner.utils.validators import validate_default_diners, validate_user_preferences

router = APIRouter()
logger = logging.getLogger(__name__)


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    preferences: Optional[str] = None
    default_diners: Optional[int] = None


@router.get("/me", response_model=UserResponse)
async def get_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/me", response_model=UserResponse)
async def update_profile(
    data: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Update the household profile used when generating dishes"""
    if data.full_name is not None:
        if not data.full_name.strip():
            raise ValidationError("Full name is required")
        current_user.full_name = data.full_name.strip()
    if data.preferences is not None:
        current_user.preferences = validate_user_preferences(data.preferences)
    if data.default_diners is not None:
        current_user.default_diners = validate_default_diners(data.default_diners)

    current_user.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(current_user)
    return current_user


@router.delete("/me")
async def delete_account(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Family members, bulk selections, menu plans and shopping lists cascade
    with the user row. Custom meal diners go first: they restrict member deletes.
    """
    user_id = current_user.id
    meal_ids = (
        select(Meal.id)
        .join(MenuPlan, Meal.menu_plan_id == MenuPlan.id)
        .where(MenuPlan.user_id == user_id)
    )

    await db.execute(delete(MealDiner).where(MealDiner.meal_id.in_(meal_ids)))
    await db.delete(current_user)
    await db.commit()

    logger.info(f"Deleted account of user {user_id}")
    return {"message": "Account deleted"}
