from menu_planner.models.user import User
from menu_planner.models.family_member import FamilyMember
from menu_planner.models.menu_plan import (
    MenuPlan, Meal, MealDiner, Dish, MealType, MenuPlanStatus, DishCourse,
)
from menu_planner.models.diner_preference import UserDinerPreference
from menu_planner.models.shopping_list import ShoppingList

__all__ = [
    "User",
    "FamilyMember",
    "MenuPlan",
    "Meal",
    "MealDiner",
    "Dish",
    "MealType",
    "MenuPlanStatus",
    "DishCourse",
    "UserDinerPreference",
    "ShoppingList",
]
