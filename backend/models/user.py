"""User model definitions."""

from sqlalchemy import Column, Integer, String
from backend.database import Base

ROLE_PATIENT = "patient"
ROLE_ADMIN = "admin"


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String)
    email = Column(String, unique=True, index=True)
    role = Column(String, default=ROLE_PATIENT)  # patient/admin

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
