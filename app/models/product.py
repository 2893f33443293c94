"""Product model."""

import uuid

from sqlalchemy import JSON, Column, DateTime, Numeric, String

from app.clock import utcnow
from app.database import Base


class Product(Base):
    """Product metadata record."""

    __tablename__ = "product"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    description = Column(String(2000), nullable=False)
    tags = Column(JSON, nullable=False, default=list)
    price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
