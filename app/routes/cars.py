"""Car listing routes."""
import uuid
from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.orm import Session
from pydantic import BaseModel

from app.db.sessions import get_db
from app.models.car import Car
from app.core.security import get_current_user_id
from app.services.asset_manager import AssetManager
from app.services.car_repository import CarRepository


router = APIRouter(prefix="/api/cars", tags=["Cars"])


# Response schemas
class CarResponse(BaseModel):
    id: str
    user_id: str
    title: str
    description: str
    tags: List[str]
    images: List[str]
    image_urls: List[str]
    created_at: Optional[str]
    updated_at: Optional[str]


def get_asset_manager(request: Request) -> AssetManager:
    return request.app.state.assets


def get_car_repository(
    db: Session = Depends(get_db),
    assets: AssetManager = Depends(get_asset_manager)
) -> CarRepository:
    return CarRepository(db, assets)


def car_response(car: Car, assets: AssetManager) -> CarResponse:
    images = list(car.images)
    return CarResponse(
        id=str(car.id),
        user_id=str(car.user_id),
        title=car.title,
        description=car.description,
        tags=list(car.tags),
        images=images,
        image_urls=assets.resolve_urls(images),
        created_at=car.created_at.isoformat() if car.created_at else None,
        updated_at=car.updated_at.isoformat() if car.updated_at else None
    )


@router.post("", response_model=CarResponse, status_code=status.HTTP_201_CREATED)
async def create_car(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    user_id: uuid.UUID = Depends(get_current_user_id),
    repo: CarRepository = Depends(get_car_repository)
):
    """
    Create a car listing with up to 10 JPEG/PNG images.

    Protected endpoint - requires JWT authentication.

    Args:
        title: Title of the car (required)
        description: Description of the car (required)
        tags: Comma-separated tags
        images: Image files to attach

    Raises:
        ValidationError 400: Missing fields or a rejected image
    """
    refs = await repo.assets.store(images)
    car = repo.create(user_id, title, description, tags, refs)
    return car_response(car, repo.assets)


@router.get("", response_model=List[CarResponse])
def list_cars(
    search: Optional[str] = None,
    user_id: uuid.UUID = Depends(get_current_user_id),
    repo: CarRepository = Depends(get_car_repository)
):
    """
    List the current user's cars, newest first.

    ``search`` keeps cars whose title, description or a tag contains it
    (case-insensitive).
    """
    return [car_response(car, repo.assets) for car in repo.list(user_id, search)]


@router.get("/{car_id}", response_model=CarResponse)
def get_car(
    car_id: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    repo: CarRepository = Depends(get_car_repository)
):
    """
    Get a specific car by ID.

    Only returns cars owned by the current user.
    """
    return car_response(repo.get_by_id(user_id, car_id), repo.assets)


@router.patch("/{car_id}", response_model=CarResponse)
async def update_car(
    car_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    user_id: uuid.UUID = Depends(get_current_user_id),
    repo: CarRepository = Depends(get_car_repository)
):
    """
    Update a car owned by the current user.

    Omitted fields are left unchanged. Uploaded images replace all existing
    images of the car.
    """
    refs = await repo.assets.store(images)
    car = repo.update(user_id, car_id, title, description, tags, refs)
    return car_response(car, repo.assets)


@router.delete("/{car_id}", response_model=CarResponse)
def delete_car(
    car_id: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    repo: CarRepository = Depends(get_car_repository)
):
    """
    Delete a car and its image files.

    Only allows deletion of cars owned by the current user.
    """
    return car_response(repo.delete(user_id, car_id), repo.assets)
