"""User account routes."""
import uuid
from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr, Field

from app.db.sessions import get_db
from app.models.user import User
from app.core.security import get_current_user_id
from app.services.auth_service import AuthService


router = APIRouter(prefix="/api/users", tags=["Users"])


# Request/Response schemas
class CredentialsRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UpdateProfileRequest(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    email: str
    created_at: Optional[str]


class AuthResponse(BaseModel):
    user: UserResponse
    token: str


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        email=user.email,
        created_at=user.created_at.isoformat() if user.created_at else None
    )


def get_auth_service(db: Session = Depends(get_db)) -> AuthService:
    return AuthService(db)


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(request: CredentialsRequest, service: AuthService = Depends(get_auth_service)):
    """
    Register a new user.

    - Creates user account with hashed password
    - Returns the user and a JWT access token
    """
    user, token = service.signup(request.email, request.password)
    return AuthResponse(user=user_response(user), token=token)


@router.post("/login", response_model=AuthResponse)
def login(request: CredentialsRequest, service: AuthService = Depends(get_auth_service)):
    """
    Login with email and password.

    - Validates credentials
    - Returns the user and a fresh JWT access token
    """
    user, token = service.login(request.email, request.password)
    return AuthResponse(user=user_response(user), token=token)


@router.get("/profile", response_model=UserResponse)
def get_profile(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service)
):
    """
    Get current authenticated user information.

    Protected endpoint - requires JWT token.
    """
    return user_response(service.get_profile(user_id))


@router.patch("/profile", response_model=UserResponse)
def update_profile(
    request: UpdateProfileRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service)
):
    """
    Update email and/or password of the current user.

    Protected endpoint - requires JWT token.
    """
    user = service.update_profile(user_id, email=request.email, password=request.password)
    return user_response(user)
