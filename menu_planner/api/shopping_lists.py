"""
Shopping list API endpoints
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from menu_planner.api.auth import get_current_user
from menu_planner.database import get_db
from menu_planner.models.user import User
from menu_planner.services import shopping_list_service
from menu_planner.services.ai_service import get_ai_service

router = APIRouter()


class ShoppingListCreate(BaseModel):
    menu_plan_id: int


class ShoppingItemResponse(BaseModel):
    ingredient: str
    quantity: str
    unit: str


class ShoppingListResponse(BaseModel):
    id: int
    menu_plan_id: int
    items: List[ShoppingItemResponse]
    generated_at: Optional[datetime]

    class Config:
        from_attributes = True


@router.post("/", response_model=ShoppingListResponse, status_code=201)
async def create_shopping_list(
    data: ShoppingListCreate,
    db: AsyncSession = Depends(get_db),
    ai=Depends(get_ai_service),
    current_user: User = Depends(get_current_user)
):
    """Build a list for a confirmed plan from the diners each meal has right now"""
    return await shopping_list_service.generate_shopping_list(db, ai, current_user.id, data.menu_plan_id)


@router.get("/{list_id}", response_model=ShoppingListResponse)
async def get_shopping_list(
    list_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await shopping_list_service.get_shopping_list(db, current_user.id, list_id)
