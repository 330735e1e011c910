"""
Bulk diner preference API endpoints - who eats lunch / dinner by default
"""
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from menu_planner.api.auth import get_current_user
from menu_planner.database import get_db
from menu_planner.models.user import User
from menu_planner.services import diner_store
from menu_planner.utils.validators import validate_meal_type

router = APIRouter()


class DinerPreferenceUpdate(BaseModel):
    family_member_ids: List[int]


class DinerPreferenceResponse(BaseModel):
    meal_type: str
    family_member_ids: List[int]


@router.get("/{meal_type}", response_model=DinerPreferenceResponse)
async def get_diner_preferences(
    meal_type: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    mt = validate_meal_type(meal_type)
    ids = await diner_store.get_bulk_preferences(db, current_user.id, mt)
    return DinerPreferenceResponse(meal_type=mt.value, family_member_ids=ids)


@router.put("/{meal_type}", response_model=DinerPreferenceResponse)
async def set_diner_preferences(
    meal_type: str,
    data: DinerPreferenceUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Replace the bulk selection; every meal still in bulk mode follows it"""
    mt = validate_meal_type(meal_type)
    ids = await diner_store.set_bulk_preferences(db, current_user.id, mt, data.family_member_ids)
    return DinerPreferenceResponse(meal_type=mt.value, family_member_ids=ids)


@router.delete("/{meal_type}")
async def clear_diner_preferences(
    meal_type: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    mt = validate_meal_type(meal_type)
    await diner_store.delete_bulk_preferences(db, current_user.id, mt)
    return {"message": f"{mt.value.capitalize()} diner preferences cleared"}
