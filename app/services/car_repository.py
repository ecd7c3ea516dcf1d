"""Owner-scoped persistence of car listings.

Every query filters on the caller's user id as well as the car id, so a car
owned by someone else is indistinguishable from a missing one.

Image files and car rows are two independent stores. The repository keeps
them consistent with compensating cleanup only:
  - create/update failures discard the files received with the request
  - old files are deleted after the replacing update has committed
  - file deletion after a committed delete is best-effort and only logged

Update and delete take the car row's write lock before reading it, so two
writers on one car run one after the other and each sees the other's result.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import NotFoundError, ServerError, ValidationError
from app.models.car import Car, CarTag
from app.services.asset_manager import AssetManager
from app.utils.tags import TagParser

logger = logging.getLogger(__name__)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _parse_id(car_id) -> Optional[uuid.UUID]:
    if isinstance(car_id, uuid.UUID):
        return car_id
    try:
        return uuid.UUID(str(car_id))
    except ValueError:
        return None


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


class CarRepository:
    """CRUD over cars for a single database session.

    Usage:
        repo = CarRepository(db, assets)
        car = repo.create(user_id, "Tesla", "EV", "electric, sedan", refs)
    """

    def __init__(self, db: Session, assets: AssetManager):
        self.db = db
        self.assets = assets

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except StaleDataError as e:
            # The row went away between the locked read and the flush
            self.db.rollback()
            raise NotFoundError("Car not found") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Could not %s car", action)
            raise ServerError(f"Could not {action} car") from e

    def _owned(self, user_id: uuid.UUID):
        return (
            self.db.query(Car)
            .options(selectinload(Car.tag_rows), selectinload(Car.image_rows))
            .filter(Car.user_id == user_id)
        )

    def _lock(self, user_id: uuid.UUID, car_id) -> Car:
        """
        Lock an owned car for the rest of the transaction and load it.

        The lock is taken with a conditional UPDATE so it works on every
        backend, including SQLite where FOR UPDATE is not rendered. The car
        is read only after that, so the loaded tags and images are the ones
        committed by any writer that held the lock before us.
        """
        parsed = _parse_id(car_id)
        if parsed is None:
            raise NotFoundError("Car not found")

        result = self.db.execute(
            update(Car)
            .where(Car.id == parsed, Car.user_id == user_id)
            .values(updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("Car not found")

        return (
            self._owned(user_id)
            .filter(Car.id == parsed)
            .populate_existing()
            .with_for_update(of=Car)
            .one()
        )

    def create(
        self,
        user_id: uuid.UUID,
        title: Optional[str],
        description: Optional[str],
        tags: Optional[str] = None,
        image_refs: Optional[List[str]] = None,
    ) -> Car:
        """
        Persist a new car owned by ``user_id``.

        Args:
            user_id: Owner identity
            title: Required title
            description: Required description
            tags: Comma-separated tags
            image_refs: References of images already stored for this request

        Raises:
            ValidationError: Missing title or description. The stored images
                are discarded before this propagates, as on any other failure.
        """
        image_refs = list(image_refs or [])
        try:
            car = Car(
                user_id=user_id,
                title=_require_text(title, "Title"),
                description=_require_text(description, "Description"),
            )
            car.tags = TagParser.parse(tags)
            car.images = image_refs

            self.db.add(car)
            self._commit("create")
        except Exception:
            self.db.rollback()
            self.assets.discard(image_refs)
            raise

        self.db.refresh(car)
        logger.info("Created car %s for user %s with %d image(s)", car.id, user_id, len(image_refs))
        return car

    def list(self, user_id: uuid.UUID, search: Optional[str] = None) -> List[Car]:
        """Return the user's cars, newest first, optionally filtered by a search term."""
        query = self._owned(user_id)

        if search:
            pattern = f"%{_escape_like(search)}%"
            query = query.filter(
                or_(
                    Car.title.ilike(pattern, escape="\\"),
                    Car.description.ilike(pattern, escape="\\"),
                    Car.tag_rows.any(CarTag.name.ilike(pattern, escape="\\")),
                )
            )

        return query.order_by(Car.created_at.desc()).all()

    def get_by_id(self, user_id: uuid.UUID, car_id) -> Car:
        parsed = _parse_id(car_id)
        car = self._owned(user_id).filter(Car.id == parsed).first() if parsed else None
        if car is None:
            raise NotFoundError("Car not found")
        return car

    def update(
        self,
        user_id: uuid.UUID,
        car_id,
        title: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[str] = None,
        new_image_refs: Optional[List[str]] = None,
    ) -> Car:
        """
        Apply a partial update to a car owned by ``user_id``.

        Supplied fields replace the stored ones; None leaves a field alone.
        New images replace the whole image list, and the files they replace
        are deleted only once the update has been committed.
        """
        new_image_refs = list(new_image_refs or [])
        try:
            if title is not None:
                title = _require_text(title, "Title")
            if description is not None:
                description = _require_text(description, "Description")
            tag_names = TagParser.parse(tags) if tags is not None else None

            car = self._lock(user_id, car_id)
            old_image_refs = list(car.images)

            if title is not None:
                car.title = title
            if description is not None:
                car.description = description
            if tag_names is not None:
                car.tags = tag_names
            if new_image_refs:
                car.images = new_image_refs

            self._commit("update")
        except Exception:
            self.db.rollback()
            self.assets.discard(new_image_refs)
            raise

        if new_image_refs:
            self.assets.discard(old_image_refs)

        self.db.refresh(car)
        logger.info("Updated car %s for user %s", car.id, user_id)
        return car

    def delete(self, user_id: uuid.UUID, car_id) -> Car:
        """Delete a car owned by ``user_id`` and then its image files."""
        try:
            car = self._lock(user_id, car_id)
            image_refs = list(car.images)

            self.db.delete(car)
            self._commit("delete")
        except Exception:
            self.db.rollback()
            raise

        # The row is gone; a file that fails to delete here stays orphaned
        self.assets.discard(image_refs)
        logger.info("Deleted car %s for user %s", car.id, user_id)
        return car
