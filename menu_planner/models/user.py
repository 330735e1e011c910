"""
User model - account owner of family members, bulk diner preferences and menu plans
"""
from sqlalchemy import Column, Integer, String, Text, DateTime
from datetime import datetime
from menu_planner.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    hashed_password = Column(String, nullable=False)

    # Free-text household preferences handed to the dish generator
    preferences = Column(Text, nullable=False, default="")

    # Prompt sizing fallback when a meal resolves to nobody
    default_diners = Column(Integer, nullable=False, default=2)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
