"""
Test fixtures - in-memory SQLite database, a seeded household, a recording
mock AI and an authenticated HTTP client
"""
from datetime import date

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from menu_planner.database import Base, get_db, enable_sqlite_foreign_keys
from menu_planner.main import app
from menu_planner.api.auth import get_password_hash, create_access_token
from menu_planner.models import FamilyMember, MealType, User, UserDinerPreference
from menu_planner.services import meal_lifecycle
from menu_planner.services.ai_service import MockMealAIService, get_ai_service
from menu_planner.services.meal_lifecycle import MenuPlanRequest

PLAN_START = date(2026, 1, 5)  # a Monday
PLAN_END = date(2026, 1, 7)


@pytest_asyncio.fixture()
async def db_session():
    """Create a fresh in-memory SQLite database for each test"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """
    Baseline household: a user with three family members, all at dinner and
    Alice + Bob at lunch; plus a second user with one member of their own.
    """
    user = User(
        email="test@example.com",
        full_name="Test User",
        hashed_password=get_password_hash("testpass123"),
        preferences="Mediterranean",
        default_diners=2,
    )
    other = User(
        email="other@example.com",
        full_name="Other User",
        hashed_password=get_password_hash("otherpass123"),
        default_diners=4,
    )
    db_session.add_all([user, other])
    await db_session.flush()

    alice = FamilyMember(user_id=user.id, name="Alice", preferences="Loves fish")
    bob = FamilyMember(user_id=user.id, name="Bob", dietary_restrictions="Vegetarian")
    carol = FamilyMember(user_id=user.id, name="Carol")
    stranger = FamilyMember(user_id=other.id, name="Stranger")
    db_session.add_all([alice, bob, carol, stranger])
    await db_session.flush()

    db_session.add_all([
        UserDinerPreference(user_id=user.id, meal_type=MealType.DINNER, family_member_id=alice.id),
        UserDinerPreference(user_id=user.id, meal_type=MealType.DINNER, family_member_id=bob.id),
        UserDinerPreference(user_id=user.id, meal_type=MealType.DINNER, family_member_id=carol.id),
        UserDinerPreference(user_id=user.id, meal_type=MealType.LUNCH, family_member_id=alice.id),
        UserDinerPreference(user_id=user.id, meal_type=MealType.LUNCH, family_member_id=bob.id),
    ])
    await db_session.commit()

    return {
        "user": user,
        "other": other,
        "alice": alice,
        "bob": bob,
        "carol": carol,
        "stranger": stranger,
    }


class RecordingAI(MockMealAIService):
    """Mock AI that keeps the arguments of every call for assertions"""

    def __init__(self):
        self.dish_calls = []
        self.shopping_calls = []

    async def generate_dishes(self, **kwargs):
        self.dish_calls.append({**kwargs, "diners": list(kwargs["diners"])})
        return await super().generate_dishes(**kwargs)

    async def generate_shopping_items(self, meals):
        self.shopping_calls.append(list(meals))
        return await super().generate_shopping_items(meals)


@pytest_asyncio.fixture()
async def ai():
    return RecordingAI()


@pytest_asyncio.fixture()
async def plan(db_session, seed_data, ai):
    """Draft plan: Monday + Tuesday, lunch + dinner, two dishes per meal"""
    request = MenuPlanRequest(
        start_date=PLAN_START,
        end_date=PLAN_END,
        days=["monday", "tuesday"],
        meal_types=["lunch", "dinner"],
        dishes_per_meal=2,
    )
    created = await meal_lifecycle.create_menu_plan(db_session, ai, seed_data["user"].id, request)
    ai.dish_calls.clear()
    return created


@pytest_asyncio.fixture()
async def client(db_session, seed_data, ai):
    """Authenticated httpx AsyncClient bound to the FastAPI app"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ai_service] = lambda: ai

    token = create_access_token(data={"sub": seed_data["user"].email})

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        ac.headers["Authorization"] = f"Bearer {token}"
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauth_client(db_session, ai):
    """Unauthenticated httpx AsyncClient"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ai_service] = lambda: ai

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()
