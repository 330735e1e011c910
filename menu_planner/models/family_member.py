"""
Family member model - the people a meal can be cooked for
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from datetime import datetime
from menu_planner.database import Base


class FamilyMember(Base):
    __tablename__ = "family_members"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    preferences = Column(String(500), nullable=True)
    dietary_restrictions = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def as_prompt_diner(self) -> dict:
        """Name/preferences pair in the shape the dish generator expects"""
        notes = [p for p in (self.preferences, self.dietary_restrictions) if p]
        return {"name": self.name, "preferences": "; ".join(notes) or None}
