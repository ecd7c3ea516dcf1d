"""Car listing model.

Tags and image references are ordered lists of strings. They are stored as
child rows with a ``position`` column and exposed on ``Car`` through
association proxies, so ``car.tags`` and ``car.images`` read and assign like
plain lists.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Text, Integer, ForeignKey, Uuid
from sqlalchemy.ext.associationproxy import association_proxy
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship
from app.db.base import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Car(Base):
    """Car listing owned by a single user."""
    
    __tablename__ = "cars"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    
    # Relationships
    user = relationship("User", back_populates="cars")
    tag_rows = relationship(
        "CarTag",
        order_by="CarTag.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )
    image_rows = relationship(
        "CarImage",
        order_by="CarImage.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )

    tags = association_proxy("tag_rows", "name", creator=lambda name: CarTag(name=name))
    images = association_proxy("image_rows", "filename", creator=lambda filename: CarImage(filename=filename))


class CarTag(Base):
    """One tag of a car, kept in input order."""

    __tablename__ = "car_tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    car_id = Column(Uuid(as_uuid=True), ForeignKey("cars.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    name = Column(String(100), nullable=False)


class CarImage(Base):
    """Reference to a stored image file of a car."""

    __tablename__ = "car_images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    car_id = Column(Uuid(as_uuid=True), ForeignKey("cars.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    filename = Column(String(255), nullable=False)
