import hashlib
import logging
import secrets

from sqlalchemy import delete, func, select
from sqlalchemy.orm import selectinload
from werkzeug.security import check_password_hash, generate_password_hash

from models.models import ApiToken, Parking, Spot, Subscription, User, Vehicle, db
from services.statistics import occupancy_rate

logger = logging.getLogger(__name__)


class Repository:
    """Uniform CRUD over one model.

    Reads return rows in creation (id) order with the relations listed by
    ``eager_options`` already loaded. ``get_by_id`` returns ``None`` for an
    unknown id; turning that into a 404 is the caller's job.
    """

    model = None

    def eager_options(self):
        return []

    def _select(self):
        return select(self.model).options(*self.eager_options()).order_by(self.model.id)

    def list(self):
        return db.session.scalars(self._select()).all()

    def get_by_id(self, entity_id):
        return db.session.scalars(self._select().where(self.model.id == entity_id)).first()

    def create(self, fields):
        entity = self.model(**fields)
        db.session.add(entity)
        db.session.commit()
        logger.info(f"Created {self.model.__name__} {entity.id}")
        return self.get_by_id(entity.id)

    def update(self, entity, fields):
        for key, value in fields.items():
            setattr(entity, key, value)
        db.session.commit()
        # re-read so store-side defaults (updated_at) are reflected
        db.session.refresh(entity)
        logger.info(f"Updated {self.model.__name__} {entity.id}: {sorted(fields)}")
        return entity

    def delete(self, entity):
        entity_id = entity.id
        db.session.delete(entity)
        db.session.commit()
        logger.info(f"Deleted {self.model.__name__} {entity_id}")
        return True

    def exists(self, entity_id):
        return db.session.get(self.model, entity_id) is not None


#  ---------PARKINGS---
class ParkingRepository(Repository):
    model = Parking

    def eager_options(self):
        return [selectinload(Parking.spots)]

    def find_by_location(self, location):
        # case-insensitive, % and _ match literally
        query = self._select().where(Parking.location.icontains(location, autoescape=True))
        return db.session.scalars(query).all()

    def list_available(self):
        query = self._select().where(Parking.spots.any(Spot.status == "available"))
        return db.session.scalars(query).all()

    def list_by_occupancy(self, min_rate, max_rate):
        return [
            parking for parking in self.list()
            if min_rate <= occupancy_rate(parking) <= max_rate
        ]

    def total_spots_count(self):
        return db.session.scalar(select(func.count(Spot.id)))


#  ---------SPOTS---
class SpotRepository(Repository):
    model = Spot

    def eager_options(self):
        return [selectinload(Spot.parking), selectinload(Spot.vehicle)]


#  ---------VEHICLES---
class VehicleRepository(Repository):
    model = Vehicle

    def eager_options(self):
        return [
            selectinload(Vehicle.spot).selectinload(Spot.parking),
            selectinload(Vehicle.subscriptions),
        ]

    def plate_taken(self, plate_number, exclude_id=None):
        query = select(Vehicle.id).where(Vehicle.plate_number == plate_number)
        if exclude_id is not None:
            query = query.where(Vehicle.id != exclude_id)
        return db.session.scalar(query) is not None

    def find_by_spot(self, spot_id):
        return db.session.scalars(select(Vehicle).where(Vehicle.spot_id == spot_id)).first()

    def delete(self, entity):
        # subscriptions survive their vehicle, flagged as orphaned
        for subscription in entity.subscriptions:
            subscription.vehicle_id = None
        if entity.subscriptions:
            logger.warning(
                f"Vehicle {entity.plate_number} deleted, orphaning {len(entity.subscriptions)} subscription(s)"
            )
        return super().delete(entity)


#  ---------SUBSCRIPTIONS---
class SubscriptionRepository(Repository):
    model = Subscription

    def eager_options(self):
        return [selectinload(Subscription.vehicle)]


#  ---------USERS---
class UserRepository(Repository):
    model = User

    def find_by_email(self, email):
        return db.session.scalars(select(User).where(User.email == email)).first()

    def create(self, fields):
        fields = dict(fields)
        fields["password"] = generate_password_hash(fields["password"])
        return super().create(fields)

    def authenticate(self, email, password):
        user = self.find_by_email(email)
        if user and check_password_hash(user.password, password):
            return user
        return None


class TokenRepository:
    """Bearer tokens. Only the sha256 of a token is stored."""

    @staticmethod
    def _digest(token):
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    def issue(self, user):
        token = secrets.token_hex(32)
        db.session.add(ApiToken(user_id=user.id, token_hash=self._digest(token)))
        db.session.commit()
        return token

    def find_user(self, token):
        api_token = db.session.scalars(
            select(ApiToken).where(ApiToken.token_hash == self._digest(token))
        ).first()
        return api_token.user if api_token else None

    def revoke(self, token):
        result = db.session.execute(
            delete(ApiToken).where(ApiToken.token_hash == self._digest(token))
        )
        db.session.commit()
        return result.rowcount > 0
