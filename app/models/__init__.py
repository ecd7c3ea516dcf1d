"""Database models."""
from app.models.user import User
from app.models.car import Car, CarTag, CarImage

__all__ = [
    "User",
    "Car",
    "CarTag",
    "CarImage",
]
