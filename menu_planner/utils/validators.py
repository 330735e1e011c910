"""
Input validation utilities
"""
import re
from datetime import date
from typing import Iterable, List, Optional, Sequence

from menu_planner.errors import ValidationError
from menu_planner.models.menu_plan import DAYS_OF_WEEK, MealType

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MAX_DINER_NAME_LENGTH = 100
MAX_DINER_PREFERENCES_LENGTH = 500
MAX_USER_PREFERENCES_LENGTH = 1000
MIN_DISHES_PER_MEAL = 1
MAX_DISHES_PER_MEAL = 4


def validate_email(email: str) -> str:
    """Validate email format"""
    if not email or not EMAIL_RE.match(email):
        raise ValidationError("Invalid email format")
    return email.strip().lower()


def validate_password(password: str) -> str:
    """Validate password length (minimum 8 characters)"""
    if not password or len(password) < 8:
        raise ValidationError("Password must be at least 8 characters long")
    return password


def validate_user_preferences(preferences: Optional[str]) -> str:
    if preferences and len(preferences) > MAX_USER_PREFERENCES_LENGTH:
        raise ValidationError(
            f"Preferences text is too long (max {MAX_USER_PREFERENCES_LENGTH} characters)"
        )
    return preferences or ""


def validate_default_diners(value: int) -> int:
    if value < 1:
        raise ValidationError("Default diners must be at least 1")
    return value


def validate_meal_type(meal_type: str) -> MealType:
    """Validate meal type is lunch or dinner"""
    if isinstance(meal_type, MealType):
        return meal_type
    try:
        return MealType(str(meal_type).lower())
    except ValueError:
        raise ValidationError('mealType must be either "lunch" or "dinner"')


def validate_meal_types(meal_types: Sequence[str]) -> List[MealType]:
    if not meal_types:
        raise ValidationError("At least one meal type is required")
    result = []
    for meal_type in meal_types:
        validated = validate_meal_type(meal_type)
        if validated not in result:
            result.append(validated)
    return result


def validate_day_of_week(day: str) -> str:
    normalized = str(day).strip().lower()
    if normalized not in DAYS_OF_WEEK:
        raise ValidationError(f"Invalid day of week: {day}")
    return normalized


def validate_days(days: Sequence[str]) -> List[str]:
    if not days:
        raise ValidationError("At least one day is required")
    result = []
    for day in days:
        validated = validate_day_of_week(day)
        if validated not in result:
            result.append(validated)
    return result


def validate_dish_count(count: int) -> int:
    """Number of dishes per meal must be between 1 and 4"""
    if count < MIN_DISHES_PER_MEAL or count > MAX_DISHES_PER_MEAL:
        raise ValidationError(
            f"Number of dishes must be between {MIN_DISHES_PER_MEAL} and {MAX_DISHES_PER_MEAL}"
        )
    return count


def validate_date_range(start_date: date, end_date: date, max_days: int = 14) -> int:
    """Validate a plan date range; returns its length in days"""
    if start_date >= end_date:
        raise ValidationError("End date must be after start date")
    days = (end_date - start_date).days
    if days > max_days:
        raise ValidationError(f"Maximum {max_days} days allowed per menu plan")
    return days


def validate_diners(diners: Iterable, max_diners: int = 20) -> List[str]:
    """
    Validate a diner configuration. Accepts anything with name/preferences
    (dicts or FamilyMember rows) and returns the list of problems found.
    The same rules apply at plan creation and when overriding a meal.
    """
    diners = list(diners)
    errors = []

    if len(diners) == 0:
        errors.append("At least one diner is required")
    if len(diners) > max_diners:
        errors.append(f"Maximum {max_diners} diners allowed")

    for diner in diners:
        name = diner.get("name") if isinstance(diner, dict) else getattr(diner, "name", None)
        prefs = diner.get("preferences") if isinstance(diner, dict) else getattr(diner, "preferences", None)
        if not name or not str(name).strip():
            errors.append("All diners must have a name")
        elif len(name) > MAX_DINER_NAME_LENGTH:
            errors.append(f"Diner names must be at most {MAX_DINER_NAME_LENGTH} characters")
        if prefs and len(prefs) > MAX_DINER_PREFERENCES_LENGTH:
            errors.append(
                f"Diner preferences must be at most {MAX_DINER_PREFERENCES_LENGTH} characters"
            )

    return errors


def require_valid_diners(diners: Iterable, max_diners: int = 20) -> None:
    errors = validate_diners(diners, max_diners)
    if errors:
        raise ValidationError(", ".join(dict.fromkeys(errors)), details=errors)
