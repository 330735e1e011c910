"""
Menu plan models: plan -> meals -> dishes, plus the MealDiner override table
"""
from sqlalchemy import (
    Column, Integer, String, Text, Date, DateTime, Boolean, ForeignKey, JSON,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum
from menu_planner.database import Base


class MealType(str, Enum):
    LUNCH = "lunch"
    DINNER = "dinner"


class MenuPlanStatus(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"


class DishCourse(str, Enum):
    STARTER = "starter"
    MAIN = "main"
    DESSERT = "dessert"


DAYS_OF_WEEK = [
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
]


class MenuPlan(Base):
    __tablename__ = "menu_plans"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(
        SQLEnum(MenuPlanStatus, native_enum=False),
        nullable=False,
        default=MenuPlanStatus.DRAFT,
    )
    confirmed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    meals = relationship(
        "Meal",
        back_populates="menu_plan",
        cascade="all, delete-orphan",
        order_by="Meal.id",
    )

    @property
    def is_confirmed(self) -> bool:
        return self.status == MenuPlanStatus.CONFIRMED


class Meal(Base):
    """
    One lunch or dinner of a plan.
    has_custom_diners=False: diners are the owner's live bulk selection.
    has_custom_diners=True: diners are exactly the MealDiner rows.
    """
    __tablename__ = "meals"

    id = Column(Integer, primary_key=True, index=True)
    menu_plan_id = Column(
        Integer, ForeignKey("menu_plans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day_of_week = Column(String, nullable=False)
    meal_type = Column(SQLEnum(MealType, native_enum=False), nullable=False)
    has_custom_diners = Column(Boolean, nullable=False, default=False)

    # Bumped on every UPDATE of the row; stale writers get StaleDataError
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    menu_plan = relationship("MenuPlan", back_populates="meals")
    dishes = relationship(
        "Dish",
        back_populates="meal",
        cascade="all, delete-orphan",
        order_by="Dish.position",
    )

    __mapper_args__ = {"version_id_col": version}


class MealDiner(Base):
    """Explicit diner override for a meal (authoritative only when has_custom_diners)"""
    __tablename__ = "meal_diners"

    meal_id = Column(Integer, ForeignKey("meals.id", ondelete="CASCADE"), primary_key=True)
    family_member_id = Column(
        Integer, ForeignKey("family_members.id", ondelete="RESTRICT"), primary_key=True
    )


class Dish(Base):
    __tablename__ = "dishes"

    id = Column(Integer, primary_key=True, index=True)
    meal_id = Column(Integer, ForeignKey("meals.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    ingredients = Column(JSON, nullable=False, default=list)  # ["Chicken (200g)", ...]
    course = Column(SQLEnum(DishCourse, native_enum=False), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    meal = relationship("Meal", back_populates="dishes")
