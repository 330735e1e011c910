"""
AI boundary for the meal planner.

Two operations, both sized by diners that were already resolved by the caller:
  generate_dishes(...)         -> list[GeneratedDish]
  generate_shopping_items(...) -> list[ShoppingItem]

MealAIService talks to Claude; MockMealAIService is a deterministic
stand-in used in development and tests.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fastapi import Request

from menu_planner.config import get_settings
from menu_planner.errors import AIServiceError
from menu_planner.services.claude_service import AIConfig, ClaudeService

logger = logging.getLogger(__name__)


@dataclass
class GeneratedDish:
    name: str
    description: str
    ingredients: List[str]
    course: str


@dataclass
class ShoppingItem:
    ingredient: str
    quantity: str
    unit: str

    def to_dict(self) -> Dict[str, str]:
        return {"ingredient": self.ingredient, "quantity": self.quantity, "unit": self.unit}


@dataclass
class MealShoppingInput:
    """A meal's dishes together with how many people actually eat it"""
    day_of_week: str
    meal_type: str
    diner_count: int
    dishes: List[GeneratedDish] = field(default_factory=list)


SYSTEM_PROMPT_CHEF = (
    "You are an expert home chef who plans balanced, varied family meals. "
    "You respect every diner's preferences and dietary restrictions. "
    "You always answer with valid JSON."
)

SYSTEM_PROMPT_SHOPPING = (
    "You build consolidated grocery lists. You group equivalent ingredients, "
    "scale quantities to the number of servings and always answer with valid JSON."
)

DISHES_SCHEMA = {
    "dishes": [
        {
            "name": "Dish name",
            "description": "Short description",
            "ingredients": ["ingredient (approx. quantity per serving)"],
            "course": "starter|main|dessert",
        }
    ]
}

SHOPPING_SCHEMA = {
    "items": [
        {"ingredient": "Ingredient name", "quantity": "500", "unit": "g"}
    ]
}


def _format_diners(diners: List[Dict[str, Optional[str]]]) -> str:
    lines = []
    for d in diners:
        if d.get("preferences"):
            lines.append(f"- {d['name']} ({d['preferences']})")
        else:
            lines.append(f"- {d['name']}")
    return "\n".join(lines)


def _parse_dishes(payload: Dict[str, Any]) -> List[GeneratedDish]:
    raw = payload.get("dishes")
    if not isinstance(raw, list):
        raise AIServiceError("Invalid AI response: missing dishes array")

    dishes = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("name"):
            raise AIServiceError("Invalid AI response: dish without a name")
        ingredients = item.get("ingredients") or []
        dishes.append(GeneratedDish(
            name=str(item["name"]).strip(),
            description=str(item.get("description") or "").strip(),
            ingredients=[str(i) for i in ingredients],
            course=str(item.get("course") or "").strip().lower(),
        ))
    return dishes


def _parse_shopping_items(payload: Dict[str, Any]) -> List[ShoppingItem]:
    raw = payload.get("items")
    if not isinstance(raw, list):
        raise AIServiceError("Invalid AI response: missing items array")

    items = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("ingredient"):
            continue
        items.append(ShoppingItem(
            ingredient=str(item["ingredient"]).strip(),
            quantity=str(item.get("quantity", "")).strip(),
            unit=str(item.get("unit", "")).strip(),
        ))
    return items


class MealAIService:
    """Claude-backed dish and shopping list generation"""

    def __init__(self, claude: ClaudeService):
        self.claude = claude

    async def generate_dishes(
        self,
        preferences: str,
        diners: List[Dict[str, Optional[str]]],
        dish_count: int,
        day_of_week: str,
        meal_type: str,
    ) -> List[GeneratedDish]:
        prompt = f"""
        Plan {meal_type} for {day_of_week.capitalize()} for {len(diners)} people.

        DINERS:
        {_format_diners(diners)}

        HOUSEHOLD PREFERENCES:
        {preferences or "No specific preferences"}

        Generate exactly {dish_count} dishes. Each dish has a course: starter, main or dessert.
        List ingredients with approximate quantities per serving.
        """

        payload = await self.claude.generate_structured_response(
            prompt=prompt,
            system_prompt=SYSTEM_PROMPT_CHEF,
            response_format=DISHES_SCHEMA,
            temperature=0.8,
        )
        return _parse_dishes(payload)

    async def generate_shopping_items(self, meals: List[MealShoppingInput]) -> List[ShoppingItem]:
        if not meals:
            return []

        blocks = []
        for meal in meals:
            dish_lines = "\n".join(
                f"  * {dish.name}: {', '.join(dish.ingredients)}" for dish in meal.dishes
            )
            blocks.append(
                f"{meal.day_of_week.capitalize()} {meal.meal_type} - {meal.diner_count} servings\n{dish_lines}"
            )

        prompt = f"""
        Build one consolidated shopping list for these meals. Ingredient quantities
        are per serving; multiply by the servings of each meal and sum across meals.

        MEALS:
        {chr(10).join(blocks)}

        Merge equivalent ingredients ("tomato" and "tomatoes" are the same) and use
        standard units (g, kg, ml, l, units).
        """

        payload = await self.claude.generate_structured_response(
            prompt=prompt,
            system_prompt=SYSTEM_PROMPT_SHOPPING,
            response_format=SHOPPING_SCHEMA,
            temperature=0.3,
        )
        return _parse_shopping_items(payload)


MOCK_DISHES = {
    "lunch": [
        GeneratedDish("Caesar Salad", "Romaine, grilled chicken and parmesan",
                      ["Romaine lettuce", "Chicken breast", "Parmesan", "Croutons"], "starter"),
        GeneratedDish("Pasta Carbonara", "Spaghetti with egg, cheese and pancetta",
                      ["Spaghetti", "Eggs", "Pancetta", "Parmesan"], "main"),
        GeneratedDish("Tiramisu", "Coffee and mascarpone dessert",
                      ["Ladyfingers", "Coffee", "Mascarpone", "Cocoa powder"], "dessert"),
        GeneratedDish("Chickpea Stew", "Slow-cooked chickpeas with spinach",
                      ["Chickpeas", "Spinach", "Onion", "Tomato"], "main"),
    ],
    "dinner": [
        GeneratedDish("Vegetable Soup", "Home-made vegetable soup",
                      ["Carrot", "Onion", "Celery", "Potato"], "starter"),
        GeneratedDish("Baked Salmon", "Salmon with lemon and herbs",
                      ["Salmon fillet", "Lemon", "Olive oil", "Garlic"], "main"),
        GeneratedDish("Custard Flan", "Classic caramel flan",
                      ["Milk", "Eggs", "Sugar", "Vanilla"], "dessert"),
        GeneratedDish("Roast Chicken", "Oven roast chicken with potatoes",
                      ["Chicken thighs", "Potato", "Rosemary", "Garlic"], "main"),
    ],
}


class MockMealAIService:
    """
    Deterministic implementation of the MealAIService contract.
    Dishes come from a fixed catalogue; each shopping item quantity is the
    number of servings that use the ingredient.
    """

    async def generate_dishes(
        self,
        preferences: str,
        diners: List[Dict[str, Optional[str]]],
        dish_count: int,
        day_of_week: str,
        meal_type: str,
    ) -> List[GeneratedDish]:
        catalogue = MOCK_DISHES.get(meal_type, MOCK_DISHES["lunch"])
        return [
            GeneratedDish(d.name, d.description, list(d.ingredients), d.course)
            for d in catalogue[:dish_count]
        ]

    async def generate_shopping_items(self, meals: List[MealShoppingInput]) -> List[ShoppingItem]:
        servings: "OrderedDict[str, int]" = OrderedDict()
        for meal in meals:
            for dish in meal.dishes:
                for ingredient in dish.ingredients:
                    servings[ingredient] = servings.get(ingredient, 0) + meal.diner_count
        return [
            ShoppingItem(ingredient=name, quantity=str(total), unit="servings")
            for name, total in servings.items()
            if total > 0
        ]


def build_ai_service(config: AIConfig):
    """Pick the real or mock implementation for the given configuration"""
    if config.use_mock:
        logger.info("Using mock AI service")
        return MockMealAIService()
    if not config.api_key:
        logger.warning("ANTHROPIC_API_KEY not configured - falling back to mock AI service")
        return MockMealAIService()
    return MealAIService(ClaudeService(config))


def get_ai_service(request: Request):
    """FastAPI dependency: the AI service attached to the running app"""
    service = getattr(request.app.state, "ai_service", None)
    if service is None:
        service = build_ai_service(AIConfig.from_settings(get_settings()))
        request.app.state.ai_service = service
    return service
