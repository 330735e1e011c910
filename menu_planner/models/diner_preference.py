"""
Bulk diner selection: who eats each meal type by default.
Rows for a (user, meal_type) pair are the live default diner set of every
meal of that type that has no custom diners.
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum
from datetime import datetime
from menu_planner.database import Base
from menu_planner.models.menu_plan import MealType


class UserDinerPreference(Base):
    __tablename__ = "user_diner_preferences"
    __table_args__ = (
        UniqueConstraint("user_id", "meal_type", "family_member_id", name="uq_user_meal_type_member"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    meal_type = Column(SQLEnum(MealType, native_enum=False), nullable=False)
    family_member_id = Column(
        Integer, ForeignKey("family_members.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime, default=datetime.utcnow)
