"""
Shopping list generation from a confirmed menu plan.

Quantities follow the diners each meal resolves to at the moment the list
is generated. A bulk meal therefore reflects the current bulk selection,
while a custom meal keeps its frozen diner set.
"""
import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from menu_planner.errors import DatabaseError, ForbiddenError, NotFoundError, ValidationError
from menu_planner.models.menu_plan import MenuPlan
from menu_planner.models.shopping_list import ShoppingList
from menu_planner.services.ai_service import GeneratedDish, MealShoppingInput
from menu_planner.services.diner_resolver import resolve_plan_diners
from menu_planner.services.meal_lifecycle import get_owned_plan

logger = logging.getLogger(__name__)


def build_shopping_inputs(plan: MenuPlan, resolved) -> List[MealShoppingInput]:
    """One input per meal that somebody actually eats"""
    inputs = []
    for meal in plan.meals:
        diner_count = len(resolved.get(meal.id, []))
        if diner_count == 0:
            continue
        inputs.append(MealShoppingInput(
            day_of_week=meal.day_of_week,
            meal_type=meal.meal_type.value,
            diner_count=diner_count,
            dishes=[
                GeneratedDish(
                    name=dish.name,
                    description=dish.description or "",
                    ingredients=list(dish.ingredients or []),
                    course=dish.course.value,
                )
                for dish in meal.dishes
            ],
        ))
    return inputs


async def generate_shopping_list(db: AsyncSession, ai, user_id: int, plan_id: int) -> ShoppingList:
    plan = await get_owned_plan(db, user_id, plan_id)
    if not plan.is_confirmed:
        raise ValidationError("Menu plan must be confirmed before generating a shopping list")

    resolved = await resolve_plan_diners(db, plan)
    inputs = build_shopping_inputs(plan, resolved)
    skipped = len(plan.meals) - len(inputs)
    if skipped:
        logger.info(f"Plan {plan_id}: {skipped} meal(s) without diners left out of the shopping list")

    items = await ai.generate_shopping_items(inputs) if inputs else []

    shopping_list = ShoppingList(
        menu_plan_id=plan.id,
        items=[item.to_dict() for item in items],
    )
    try:
        db.add(shopping_list)
        await db.commit()
        await db.refresh(shopping_list)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to store shopping list for plan {plan_id}: {e}")
        raise DatabaseError("Failed to store shopping list") from e

    logger.info(f"Generated shopping list {shopping_list.id} for plan {plan_id} ({len(items)} items)")
    return shopping_list


async def get_shopping_list(db: AsyncSession, user_id: int, list_id: int) -> ShoppingList:
    result = await db.execute(
        select(ShoppingList, MenuPlan.user_id)
        .join(MenuPlan, ShoppingList.menu_plan_id == MenuPlan.id)
        .where(ShoppingList.id == list_id)
    )
    row = result.first()
    if not row:
        raise NotFoundError("Shopping list not found")
    shopping_list, owner_id = row
    if owner_id != user_id:
        raise ForbiddenError("Access denied")
    return shopping_list


async def list_shopping_lists(db: AsyncSession, user_id: int, plan_id: int) -> List[ShoppingList]:
    await get_owned_plan(db, user_id, plan_id)
    result = await db.execute(
        select(ShoppingList)
        .where(ShoppingList.menu_plan_id == plan_id)
        .order_by(ShoppingList.generated_at.desc(), ShoppingList.id.desc())
    )
    return list(result.scalars().all())
