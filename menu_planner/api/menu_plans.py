"""
Menu plan API endpoints - plan generation, per-meal diner overrides, confirmation
"""
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from menu_planner.api.auth import get_current_user
from menu_planner.api.shopping_lists import ShoppingListResponse
from menu_planner.database import get_db
from menu_planner.errors import ValidationError
from menu_planner.models.family_member import FamilyMember
from menu_planner.models.menu_plan import DAYS_OF_WEEK, Meal, MenuPlan
from menu_planner.models.user import User
from menu_planner.services import meal_lifecycle, shopping_list_service
from menu_planner.services.ai_service import get_ai_service
from menu_planner.services.diner_resolver import ResolvedMeal, resolve_plan_diners
from menu_planner.services.meal_lifecycle import DinersByCount, DinersByList, MenuPlanRequest

router = APIRouter()


# --- Pydantic Schemas ---

class DinerInput(BaseModel):
    name: str
    preferences: Optional[str] = None


class MenuPlanCreate(BaseModel):
    start_date: date
    end_date: date
    days: Optional[List[str]] = None
    meal_types: List[str] = ["lunch", "dinner"]
    diner_count: Optional[int] = None
    diners: Optional[List[DinerInput]] = None
    dishes_per_meal: Optional[int] = None


class MealUpdate(BaseModel):
    family_member_ids: Optional[List[int]] = None
    dish_count: Optional[int] = None
    version: Optional[int] = None


class MealRegenerate(BaseModel):
    dish_count: Optional[int] = None
    version: Optional[int] = None


class MealRevert(BaseModel):
    version: Optional[int] = None


class DishResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    ingredients: List[str]
    course: str
    position: int

    class Config:
        from_attributes = True


class DinerResponse(BaseModel):
    id: int
    name: str
    preferences: Optional[str]
    dietary_restrictions: Optional[str]

    class Config:
        from_attributes = True


class MealResponse(BaseModel):
    id: int
    menu_plan_id: int
    day_of_week: str
    meal_type: str
    has_custom_diners: bool
    diners: List[DinerResponse]
    diner_count: int
    dishes: List[DishResponse]
    version: int
    updated_at: Optional[datetime]


class MenuPlanResponse(BaseModel):
    id: int
    start_date: date
    end_date: date
    status: str
    confirmed_at: Optional[datetime]
    created_at: Optional[datetime]
    meals: List[MealResponse]


# --- Helpers ---

def _days_in_range(start: date, end: date) -> List[str]:
    """Weekday names covered by [start, end), in calendar order, at most one week"""
    days = []
    current = start
    while current < end and len(days) < 7:
        days.append(DAYS_OF_WEEK[current.weekday()])
        current += timedelta(days=1)
    return days


def _custom_diners(data: MenuPlanCreate):
    if data.diner_count is not None and data.diners is not None:
        raise ValidationError("Provide either diner_count or diners, not both")
    if data.diner_count is not None:
        return DinersByCount(count=data.diner_count)
    if data.diners is not None:
        return DinersByList(diners=[d.model_dump() for d in data.diners])
    return None


def _build_meal_response(meal: Meal, diners: List[FamilyMember]) -> MealResponse:
    return MealResponse(
        id=meal.id,
        menu_plan_id=meal.menu_plan_id,
        day_of_week=meal.day_of_week,
        meal_type=meal.meal_type.value,
        has_custom_diners=meal.has_custom_diners,
        diners=[DinerResponse.model_validate(d) for d in diners],
        diner_count=len(diners),
        dishes=[
            DishResponse(
                id=d.id,
                name=d.name,
                description=d.description,
                ingredients=list(d.ingredients or []),
                course=d.course.value,
                position=d.position,
            )
            for d in meal.dishes
        ],
        version=meal.version,
        updated_at=meal.updated_at,
    )


def _build_resolved_response(resolved: ResolvedMeal) -> MealResponse:
    return _build_meal_response(resolved.meal, resolved.diners)


def _build_plan_response(plan: MenuPlan, diners_by_meal: Dict[int, List[FamilyMember]]) -> MenuPlanResponse:
    return MenuPlanResponse(
        id=plan.id,
        start_date=plan.start_date,
        end_date=plan.end_date,
        status=plan.status.value,
        confirmed_at=plan.confirmed_at,
        created_at=plan.created_at,
        meals=[_build_meal_response(m, diners_by_meal.get(m.id, [])) for m in plan.meals],
    )


async def _plan_response(db: AsyncSession, plan: MenuPlan) -> MenuPlanResponse:
    return _build_plan_response(plan, await resolve_plan_diners(db, plan))


# --- Endpoints ---

@router.post("/", response_model=MenuPlanResponse, status_code=201)
async def create_menu_plan(
    data: MenuPlanCreate,
    db: AsyncSession = Depends(get_db),
    ai=Depends(get_ai_service),
    current_user: User = Depends(get_current_user)
):
    """Generate a draft plan; every meal starts out following the bulk diners"""
    request = MenuPlanRequest(
        start_date=data.start_date,
        end_date=data.end_date,
        days=data.days if data.days is not None else _days_in_range(data.start_date, data.end_date),
        meal_types=data.meal_types,
        custom_diners=_custom_diners(data),
        dishes_per_meal=data.dishes_per_meal,
    )
    plan = await meal_lifecycle.create_menu_plan(db, ai, current_user.id, request)
    return await _plan_response(db, plan)


@router.get("/", response_model=List[MenuPlanResponse])
async def list_menu_plans(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    plans = await meal_lifecycle.list_menu_plans(db, current_user.id)
    return [await _plan_response(db, p) for p in plans]


@router.get("/{plan_id}", response_model=MenuPlanResponse)
async def get_menu_plan(
    plan_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    plan = await meal_lifecycle.get_menu_plan(db, current_user.id, plan_id)
    return await _plan_response(db, plan)


@router.delete("/{plan_id}")
async def delete_menu_plan(
    plan_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    await meal_lifecycle.delete_menu_plan(db, current_user.id, plan_id)
    return {"message": "Menu plan deleted"}


@router.post("/{plan_id}/confirm", response_model=MenuPlanResponse)
async def confirm_menu_plan(
    plan_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Lock the plan; its meals can no longer change"""
    plan = await meal_lifecycle.confirm_menu_plan(db, current_user.id, plan_id)
    return await _plan_response(db, plan)


@router.get("/{plan_id}/meals/{meal_id}", response_model=MealResponse)
async def get_meal(
    plan_id: int,
    meal_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    resolved = await meal_lifecycle.get_meal(db, current_user.id, meal_id, plan_id)
    return _build_resolved_response(resolved)


@router.put("/{plan_id}/meals/{meal_id}", response_model=MealResponse)
async def update_meal(
    plan_id: int,
    meal_id: int,
    data: MealUpdate,
    db: AsyncSession = Depends(get_db),
    ai=Depends(get_ai_service),
    current_user: User = Depends(get_current_user)
):
    """
    With family_member_ids the meal switches to exactly those diners.
    Without them the dishes are regenerated for whoever eats the meal now.
    """
    if data.family_member_ids is not None:
        resolved = await meal_lifecycle.update_meal_diners(
            db, ai, current_user.id, meal_id,
            family_member_ids=data.family_member_ids,
            dish_count=data.dish_count,
            expected_version=data.version,
            plan_id=plan_id,
        )
    else:
        resolved = await meal_lifecycle.regenerate_meal(
            db, ai, current_user.id, meal_id,
            dish_count=data.dish_count,
            expected_version=data.version,
            plan_id=plan_id,
        )
    return _build_resolved_response(resolved)


@router.post("/{plan_id}/meals/{meal_id}/regenerate", response_model=MealResponse)
async def regenerate_meal(
    plan_id: int,
    meal_id: int,
    data: Optional[MealRegenerate] = None,
    db: AsyncSession = Depends(get_db),
    ai=Depends(get_ai_service),
    current_user: User = Depends(get_current_user)
):
    data = data or MealRegenerate()
    resolved = await meal_lifecycle.regenerate_meal(
        db, ai, current_user.id, meal_id,
        dish_count=data.dish_count,
        expected_version=data.version,
        plan_id=plan_id,
    )
    return _build_resolved_response(resolved)


@router.post("/{plan_id}/meals/{meal_id}/revert-to-bulk", response_model=MealResponse)
async def revert_meal_to_bulk(
    plan_id: int,
    meal_id: int,
    data: Optional[MealRevert] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Drop the meal's own diners; dishes stay until the next regeneration"""
    data = data or MealRevert()
    resolved = await meal_lifecycle.revert_meal_to_bulk(
        db, current_user.id, meal_id,
        expected_version=data.version,
        plan_id=plan_id,
    )
    return _build_resolved_response(resolved)


@router.get("/{plan_id}/shopping-lists", response_model=List[ShoppingListResponse])
async def list_plan_shopping_lists(
    plan_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await shopping_list_service.list_shopping_lists(db, current_user.id, plan_id)
