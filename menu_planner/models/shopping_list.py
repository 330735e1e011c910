"""
Shopping list generated from a confirmed menu plan
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, JSON
from datetime import datetime
from menu_planner.database import Base


class ShoppingList(Base):
    __tablename__ = "shopping_lists"

    id = Column(Integer, primary_key=True, index=True)
    menu_plan_id = Column(
        Integer, ForeignKey("menu_plans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    items = Column(JSON, nullable=False, default=list)  # [{ingredient, quantity, unit}]
    generated_at = Column(DateTime, default=datetime.utcnow)
