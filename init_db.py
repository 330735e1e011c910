"""Create the database tables and optionally a demo household"""
import asyncio
import sys

from sqlalchemy import select

from menu_planner.api.auth import get_password_hash
from menu_planner.database import engine, Base, AsyncSessionLocal
from menu_planner.models import FamilyMember, MealType, User, UserDinerPreference

DEMO_EMAIL = "demo@menuplanner.local"


async def seed_demo_household():
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).where(User.email == DEMO_EMAIL))
        if result.scalar_one_or_none():
            print("Demo household already exists.")
            return

        user = User(
            email=DEMO_EMAIL,
            full_name="Demo User",
            hashed_password=get_password_hash("demo1234"),
            preferences="Mediterranean, little red meat",
            default_diners=3,
        )
        session.add(user)
        await session.flush()

        members = [
            FamilyMember(user_id=user.id, name="Alex", preferences="Loves spicy food"),
            FamilyMember(user_id=user.id, name="Sam", dietary_restrictions="Vegetarian"),
            FamilyMember(user_id=user.id, name="Robin", dietary_restrictions="No nuts"),
        ]
        session.add_all(members)
        await session.flush()

        # Everyone at dinner, only the first two at lunch
        for member in members:
            session.add(UserDinerPreference(user_id=user.id, meal_type=MealType.DINNER, family_member_id=member.id))
        for member in members[:2]:
            session.add(UserDinerPreference(user_id=user.id, meal_type=MealType.LUNCH, family_member_id=member.id))

        await session.commit()
        print(f"Demo household created: {DEMO_EMAIL} / demo1234")


async def init(seed: bool = False):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Database tables created successfully.")

    if seed:
        await seed_demo_household()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init(seed="--seed" in sys.argv))
