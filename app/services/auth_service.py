"""User account service: signup, login and profile maintenance."""
import logging
import uuid
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import AuthError, NotFoundError, ValidationError
from app.core.security import (
    DUMMY_PASSWORD_HASH,
    create_user_token,
    get_password_hash,
    verify_password,
)
from app.models.user import User

logger = logging.getLogger(__name__)


class AuthService:
    """Account operations backed by the users table.

    Usage:
        service = AuthService(db)
        user, token = service.signup(email, password)
    """

    def __init__(self, db: Session):
        self.db = db

    def _get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def _get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def signup(self, email: str, password: str) -> Tuple[User, str]:
        """
        Register a new user.

        - Rejects an email that is already registered
        - Stores only the bcrypt hash of the password
        - Returns the new user and a bearer token
        """
        if self._get_by_email(email):
            raise ValidationError("Email already registered")

        user = User(email=email, password_hash=get_password_hash(password))
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # Another signup for the same email committed first
            self.db.rollback()
            raise ValidationError("Email already registered")
        self.db.refresh(user)

        logger.info("Registered user %s", user.id)
        return user, create_user_token(user.id)

    def login(self, email: str, password: str) -> Tuple[User, str]:
        """
        Check credentials and issue a fresh bearer token.

        An unknown email still pays for one bcrypt verification so the
        response time does not tell which emails are registered.
        """
        user = self._get_by_email(email)
        if user is None:
            verify_password(password, DUMMY_PASSWORD_HASH)
            raise AuthError("Invalid login credentials", status_code=400)

        if not verify_password(password, user.password_hash):
            raise AuthError("Invalid login credentials", status_code=400)

        return user, create_user_token(user.id)

    def get_profile(self, user_id: uuid.UUID) -> User:
        user = self._get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def update_profile(
        self,
        user_id: uuid.UUID,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> User:
        """Apply a partial profile update; the password is re-hashed when given."""
        user = self.get_profile(user_id)

        if email and email != user.email:
            existing = self._get_by_email(email)
            if existing is not None and existing.id != user.id:
                raise ValidationError("Email already registered")
            user.email = email

        if password:
            user.password_hash = get_password_hash(password)

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("Email already registered")
        self.db.refresh(user)

        logger.info("Updated profile of user %s", user.id)
        return user
