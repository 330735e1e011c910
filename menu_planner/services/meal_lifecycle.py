"""
Meal lifecycle manager.

Each meal is in one of two states:
    Bulk   (has_custom_diners=False) - diners follow the owner's bulk selection
    Custom (has_custom_diners=True)  - diners are the meal's own MealDiner rows

    create            -> Bulk
    update_meal_diners: Bulk|Custom -> Custom  (dishes regenerated)
    regenerate_meal:    Bulk|Custom -> same    (only dishes change)
    revert_meal_to_bulk: Custom -> Bulk        (dishes kept)

Every transition validates and calls the AI before touching the database,
then writes everything in a single commit. Meals of a confirmed plan never
change.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Union

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from menu_planner.config import get_settings
from menu_planner.errors import (
    AIServiceError, ConflictError, DatabaseError, ForbiddenError, NotFoundError, ValidationError,
)
from menu_planner.models.menu_plan import (
    Dish, DishCourse, Meal, MealDiner, MenuPlan, MenuPlanStatus,
)
from menu_planner.models.shopping_list import ShoppingList
from menu_planner.models.user import User
from menu_planner.services import diner_store
from menu_planner.services.ai_service import GeneratedDish
from menu_planner.services.diner_resolver import (
    ResolvedMeal, load_meal, resolve_diners, resolve_meal_diners,
)
from menu_planner.utils.validators import (
    require_valid_diners, validate_date_range, validate_days, validate_dish_count,
    validate_meal_types,
)

logger = logging.getLogger(__name__)

PromptDiner = Dict[str, Optional[str]]


# ---------------------------------------------------------------------------
# Plan-creation diner configuration
# ---------------------------------------------------------------------------

@dataclass
class DinersByCount:
    """N anonymous diners"""
    count: int


@dataclass
class DinersByList:
    """Named diners with optional preferences"""
    diners: List[PromptDiner]


CustomDiners = Union[DinersByCount, DinersByList]


@dataclass
class MenuPlanRequest:
    start_date: date
    end_date: date
    days: Sequence[str]
    meal_types: Sequence[str]
    custom_diners: Optional[CustomDiners] = None
    dishes_per_meal: Optional[int] = None


def placeholder_diners(count: int) -> List[PromptDiner]:
    return [{"name": f"Diner {i}", "preferences": None} for i in range(1, count + 1)]


def normalize_custom_diners(custom: Optional[CustomDiners], max_diners: int) -> List[PromptDiner]:
    """Collapse either diner variant into one validated list of prompt diners"""
    if custom is None:
        return []

    if isinstance(custom, DinersByCount):
        if custom.count < 1:
            raise ValidationError("At least one diner is required")
        if custom.count > max_diners:
            raise ValidationError(f"Maximum {max_diners} diners allowed")
        return placeholder_diners(custom.count)

    require_valid_diners(custom.diners, max_diners)
    return [
        {"name": d["name"].strip(), "preferences": d.get("preferences") or None}
        for d in custom.diners
    ]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    return user


async def get_owned_plan(db: AsyncSession, user_id: int, plan_id: int) -> MenuPlan:
    """Plan with meals and dishes loaded; NotFound if absent, Forbidden if not the owner's"""
    result = await db.execute(
        select(MenuPlan)
        .options(selectinload(MenuPlan.meals).selectinload(Meal.dishes))
        .where(MenuPlan.id == plan_id)
        .execution_options(populate_existing=True)
    )
    plan = result.scalar_one_or_none()
    if not plan:
        raise NotFoundError("Menu plan not found")
    if plan.user_id != user_id:
        raise ForbiddenError("Access denied")
    return plan


async def get_owned_meal(
    db: AsyncSession,
    user_id: int,
    meal_id: int,
    plan_id: Optional[int] = None,
) -> Meal:
    meal = await load_meal(db, meal_id)
    if plan_id is not None and meal.menu_plan_id != plan_id:
        raise NotFoundError("Meal not found")
    if meal.menu_plan.user_id != user_id:
        raise ForbiddenError("Access denied")
    return meal


def _ensure_mutable(meal: Meal) -> None:
    if meal.menu_plan.is_confirmed:
        raise ForbiddenError("Cannot update meals in a confirmed plan")


def _check_version(meal: Meal, expected_version: Optional[int]) -> None:
    if expected_version is not None and meal.version != expected_version:
        raise ConflictError(
            "Meal was modified by another request - reload and try again",
            details={"expected_version": expected_version, "current_version": meal.version},
        )


def _dish_count_for(meal: Meal, requested: Optional[int]) -> int:
    if requested is not None:
        return validate_dish_count(requested)
    if meal.dishes:
        return validate_dish_count(min(len(meal.dishes), 4))
    return get_settings().DEFAULT_DISHES_PER_MEAL


def enforce_dish_contract(dishes: List[GeneratedDish], dish_count: int) -> List[GeneratedDish]:
    """At most dish_count dishes, at least one, each with a known course"""
    if not dishes:
        raise AIServiceError("AI service returned no dishes")

    valid_courses = {c.value for c in DishCourse}
    for dish in dishes:
        if dish.course not in valid_courses:
            raise AIServiceError(f"AI service returned an unknown course: {dish.course!r}")

    if len(dishes) > dish_count:
        logger.warning(f"AI returned {len(dishes)} dishes, keeping the first {dish_count}")
    return dishes[:dish_count]


def _prompt_diners(diners, user: User) -> List[PromptDiner]:
    """Resolved diners for the prompt; an empty meal is sized with the user's default"""
    if diners:
        return [d.as_prompt_diner() for d in diners]
    return placeholder_diners(user.default_diners or 1)


async def _generate_dishes(
    ai,
    user: User,
    prompt_diners: List[PromptDiner],
    dish_count: int,
    day_of_week: str,
    meal_type: str,
) -> List[GeneratedDish]:
    dishes = await ai.generate_dishes(
        preferences=user.preferences or "",
        diners=prompt_diners,
        dish_count=dish_count,
        day_of_week=day_of_week,
        meal_type=meal_type,
    )
    return enforce_dish_contract(dishes, dish_count)


def _build_dishes(generated: List[GeneratedDish]) -> List[Dish]:
    return [
        Dish(
            name=d.name,
            description=d.description,
            ingredients=list(d.ingredients),
            course=DishCourse(d.course),
            position=position,
        )
        for position, d in enumerate(generated)
    ]


@asynccontextmanager
async def _transaction(db: AsyncSession, action: str):
    """Commit on success; roll everything back on any failure"""
    try:
        yield
        await db.commit()
    except StaleDataError as e:
        await db.rollback()
        raise ConflictError("Meal was modified by another request - reload and try again") from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Database failure while trying to {action}: {e}")
        raise DatabaseError(f"Failed to {action}") from e
    except Exception:
        await db.rollback()
        raise


# ---------------------------------------------------------------------------
# Menu plans
# ---------------------------------------------------------------------------

async def create_menu_plan(db: AsyncSession, ai, user_id: int, request: MenuPlanRequest) -> MenuPlan:
    """
    Generate a plan with one meal per (day, meal type), all in Bulk state.
    Dishes for every meal are generated before anything is written, so an
    AI failure leaves no plan behind.
    """
    settings = get_settings()

    validate_date_range(request.start_date, request.end_date, settings.MAX_PLAN_DAYS)
    days = validate_days(request.days)
    meal_types = validate_meal_types(request.meal_types)
    dish_count = validate_dish_count(
        settings.DEFAULT_DISHES_PER_MEAL if request.dishes_per_meal is None else request.dishes_per_meal
    )
    fallback_diners = normalize_custom_diners(request.custom_diners, settings.MAX_DINERS)

    user = await get_user(db, user_id)

    # Prompt sizing snapshot per meal type; the meals themselves stay in Bulk
    prompt_diners_by_type = {}
    for meal_type in meal_types:
        bulk = await diner_store.get_bulk_members(db, user_id, meal_type)
        if bulk:
            prompt_diners_by_type[meal_type] = [m.as_prompt_diner() for m in bulk]
        elif fallback_diners:
            prompt_diners_by_type[meal_type] = fallback_diners
        else:
            prompt_diners_by_type[meal_type] = placeholder_diners(user.default_diners or 1)

    generated = []
    for day in days:
        for meal_type in meal_types:
            try:
                dishes = await _generate_dishes(
                    ai, user, prompt_diners_by_type[meal_type], dish_count, day, meal_type.value
                )
            except AIServiceError as e:
                logger.warning(f"Menu generation for user {user_id} failed on {day} {meal_type.value}: {e}")
                raise
            generated.append((day, meal_type, dishes))

    async with _transaction(db, "create menu plan"):
        plan = MenuPlan(
            user_id=user_id,
            start_date=request.start_date,
            end_date=request.end_date,
            status=MenuPlanStatus.DRAFT,
        )
        plan.meals = [
            Meal(
                day_of_week=day,
                meal_type=meal_type,
                has_custom_diners=False,
                dishes=_build_dishes(dishes),
            )
            for day, meal_type, dishes in generated
        ]
        db.add(plan)

    logger.info(f"Created menu plan {plan.id} for user {user_id} with {len(generated)} meals")
    return await get_owned_plan(db, user_id, plan.id)


async def get_menu_plan(db: AsyncSession, user_id: int, plan_id: int) -> MenuPlan:
    return await get_owned_plan(db, user_id, plan_id)


async def list_menu_plans(db: AsyncSession, user_id: int) -> List[MenuPlan]:
    result = await db.execute(
        select(MenuPlan)
        .options(selectinload(MenuPlan.meals).selectinload(Meal.dishes))
        .where(MenuPlan.user_id == user_id)
        .order_by(MenuPlan.start_date.desc(), MenuPlan.id.desc())
    )
    return list(result.scalars().all())


async def confirm_menu_plan(db: AsyncSession, user_id: int, plan_id: int) -> MenuPlan:
    """draft -> confirmed; happens once and cannot be undone"""
    plan = await get_owned_plan(db, user_id, plan_id)
    if plan.is_confirmed:
        raise ValidationError("Menu plan is already confirmed")

    async with _transaction(db, "confirm menu plan"):
        plan.status = MenuPlanStatus.CONFIRMED
        plan.confirmed_at = datetime.utcnow()

    logger.info(f"Menu plan {plan_id} confirmed")
    return await get_owned_plan(db, user_id, plan_id)


async def delete_menu_plan(db: AsyncSession, user_id: int, plan_id: int) -> None:
    plan = await get_owned_plan(db, user_id, plan_id)
    meal_ids = [m.id for m in plan.meals]

    async with _transaction(db, "delete menu plan"):
        if meal_ids:
            await db.execute(delete(MealDiner).where(MealDiner.meal_id.in_(meal_ids)))
        await db.execute(delete(ShoppingList).where(ShoppingList.menu_plan_id == plan_id))
        await db.delete(plan)

    logger.info(f"Deleted menu plan {plan_id}")


# ---------------------------------------------------------------------------
# Meal transitions
# ---------------------------------------------------------------------------

async def update_meal_diners(
    db: AsyncSession,
    ai,
    user_id: int,
    meal_id: int,
    family_member_ids: Sequence[int],
    dish_count: Optional[int] = None,
    expected_version: Optional[int] = None,
    plan_id: Optional[int] = None,
) -> ResolvedMeal:
    """Bulk|Custom -> Custom with exactly the given members; dishes are regenerated"""
    settings = get_settings()

    meal = await get_owned_meal(db, user_id, meal_id, plan_id)
    _ensure_mutable(meal)
    _check_version(meal, expected_version)

    member_ids = diner_store.dedupe_ids(family_member_ids)
    if not member_ids:
        raise ValidationError("At least one diner is required")
    if len(member_ids) > settings.MAX_DINERS:
        raise ValidationError(f"Maximum {settings.MAX_DINERS} diners allowed")
    members = await diner_store.get_owned_family_members(db, user_id, member_ids)
    require_valid_diners(members, settings.MAX_DINERS)

    count = _dish_count_for(meal, dish_count)
    user = await get_user(db, user_id)

    dishes = await _generate_dishes(
        ai,
        user,
        [m.as_prompt_diner() for m in members],
        count,
        meal.day_of_week,
        meal.meal_type.value,
    )

    async with _transaction(db, "update meal"):
        await diner_store.replace_meal_diners(db, meal.id, member_ids)
        meal.dishes = _build_dishes(dishes)
        await diner_store.set_meal_custom_flag(db, meal, True)

    logger.info(f"Meal {meal_id} now has custom diners {sorted(member_ids)}")
    return await resolve_meal_diners(db, meal_id)


async def regenerate_meal(
    db: AsyncSession,
    ai,
    user_id: int,
    meal_id: int,
    dish_count: Optional[int] = None,
    expected_version: Optional[int] = None,
    plan_id: Optional[int] = None,
) -> ResolvedMeal:
    """New dishes for the currently resolved diners; flag and diner set untouched"""
    meal = await get_owned_meal(db, user_id, meal_id, plan_id)
    _ensure_mutable(meal)
    _check_version(meal, expected_version)

    count = _dish_count_for(meal, dish_count)
    user = await get_user(db, user_id)
    diners = await resolve_diners(db, meal, owner_id=user_id)

    dishes = await _generate_dishes(
        ai,
        user,
        _prompt_diners(diners, user),
        count,
        meal.day_of_week,
        meal.meal_type.value,
    )

    async with _transaction(db, "regenerate meal"):
        meal.dishes = _build_dishes(dishes)
        meal.updated_at = datetime.utcnow()

    logger.info(f"Regenerated meal {meal_id} with {len(dishes)} dishes for {len(diners)} diners")
    return await resolve_meal_diners(db, meal_id)


async def revert_meal_to_bulk(
    db: AsyncSession,
    user_id: int,
    meal_id: int,
    expected_version: Optional[int] = None,
    plan_id: Optional[int] = None,
) -> ResolvedMeal:
    """Custom -> Bulk. Dishes stay as they are until the next regenerate/update."""
    meal = await get_owned_meal(db, user_id, meal_id, plan_id)
    _ensure_mutable(meal)
    _check_version(meal, expected_version)

    if not meal.has_custom_diners:
        return await resolve_meal_diners(db, meal_id)

    async with _transaction(db, "revert meal to bulk"):
        await diner_store.clear_meal_diners(db, meal.id)
        await diner_store.set_meal_custom_flag(db, meal, False)

    logger.info(f"Meal {meal_id} reverted to bulk diners")
    return await resolve_meal_diners(db, meal_id)


async def get_meal(db: AsyncSession, user_id: int, meal_id: int, plan_id: Optional[int] = None) -> ResolvedMeal:
    await get_owned_meal(db, user_id, meal_id, plan_id)
    return await resolve_meal_diners(db, meal_id)
