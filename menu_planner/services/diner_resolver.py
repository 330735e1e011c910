"""
Diner resolution - the single answer to "who eats this meal?"

    has_custom_diners = True   ->  MealDiner rows for the meal (frozen membership)
    has_custom_diners = False  ->  owner's bulk selection for the meal type (live)

Nothing here caches across calls: every resolution reads the store, so a
change to the bulk selection is visible to the very next resolution.
An empty diner list is a legitimate answer and is returned as-is.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from menu_planner.errors import NotFoundError
from menu_planner.models.family_member import FamilyMember
from menu_planner.models.menu_plan import Meal, MealDiner, MenuPlan
from menu_planner.services import diner_store


@dataclass
class ResolvedMeal:
    meal: Meal
    diners: List[FamilyMember] = field(default_factory=list)

    @property
    def diner_count(self) -> int:
        return len(self.diners)


async def _plan_owner_id(db: AsyncSession, menu_plan_id: int) -> int:
    result = await db.execute(select(MenuPlan.user_id).where(MenuPlan.id == menu_plan_id))
    owner_id = result.scalar_one_or_none()
    if owner_id is None:
        raise NotFoundError("Menu plan not found")
    return owner_id


async def resolve_diners(
    db: AsyncSession,
    meal: Meal,
    owner_id: Optional[int] = None,
) -> List[FamilyMember]:
    """Effective diner list for an in-memory meal record"""
    if meal.has_custom_diners:
        return await diner_store.get_meal_diners(db, meal.id)

    if owner_id is None:
        owner_id = await _plan_owner_id(db, meal.menu_plan_id)
    return await diner_store.get_bulk_members(db, owner_id, meal.meal_type)


async def load_meal(db: AsyncSession, meal_id: int) -> Meal:
    """Meal with its plan and dishes eagerly loaded; NotFoundError if absent"""
    result = await db.execute(
        select(Meal)
        .options(selectinload(Meal.menu_plan), selectinload(Meal.dishes))
        .where(Meal.id == meal_id)
        .execution_options(populate_existing=True)
    )
    meal = result.scalar_one_or_none()
    if meal is None:
        raise NotFoundError("Meal not found")
    return meal


async def resolve_meal_diners(db: AsyncSession, meal_id: int) -> ResolvedMeal:
    """Load a meal by id and populate its diners by the resolution rule"""
    meal = await load_meal(db, meal_id)
    diners = await resolve_diners(db, meal, owner_id=meal.menu_plan.user_id)
    return ResolvedMeal(meal=meal, diners=diners)


async def resolve_plan_diners(db: AsyncSession, plan: MenuPlan) -> Dict[int, List[FamilyMember]]:
    """
    Resolve every meal of a plan. Each bulk selection is read once per call
    and all custom diner sets come from a single query.
    """
    resolved: Dict[int, List[FamilyMember]] = {}
    custom_ids = [m.id for m in plan.meals if m.has_custom_diners]

    custom_sets: Dict[int, List[FamilyMember]] = defaultdict(list)
    if custom_ids:
        result = await db.execute(
            select(MealDiner.meal_id, FamilyMember)
            .join(FamilyMember, MealDiner.family_member_id == FamilyMember.id)
            .where(MealDiner.meal_id.in_(custom_ids))
            .order_by(MealDiner.meal_id, FamilyMember.id)
        )
        for meal_id, member in result.all():
            custom_sets[meal_id].append(member)

    bulk_sets = {}
    for meal in plan.meals:
        if meal.has_custom_diners:
            resolved[meal.id] = list(custom_sets.get(meal.id, []))
            continue
        if meal.meal_type not in bulk_sets:
            bulk_sets[meal.meal_type] = await diner_store.get_bulk_members(
                db, plan.user_id, meal.meal_type
            )
        resolved[meal.id] = list(bulk_sets[meal.meal_type])

    return resolved
