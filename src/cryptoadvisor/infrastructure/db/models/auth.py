# src/cryptoadvisor/infrastructure/db/models/auth.py
"""
SQLAlchemy ORM model for the alert owner. Authentication itself happens
outside this service; the user row only anchors ownership and cascades.
"""

from sqlalchemy import Column, Integer, String, DateTime, func
from sqlalchemy.orm import relationship
from .base import Base


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # --- Relationships ---
    smart_alerts = relationship("SmartAlert", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    holdings = relationship("WatchlistHolding", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"
