from datetime import datetime
from sqlite3 import Connection as SQLite3Connection

from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import CheckConstraint, event
from sqlalchemy.engine import Engine

db = SQLAlchemy()

SPOT_STATUSES = ("available", "occupied", "reserved")
SUBSCRIPTION_TYPES = ("monthly", "daily")
USER_ROLES = ("admin", "agent")


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, record):
    # sqlite ignores ON DELETE rules unless asked
    if isinstance(dbapi_conn, SQLite3Connection):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys = ON;")
        cursor.close()


def _one_of(column, values):
    allowed = ", ".join(f"'{value}'" for value in values)
    return CheckConstraint(f"{column} IN ({allowed})", name=f"valid_{column}")


def _iso(value):
    return value.isoformat() if value else None


#  ---------MODELS---
class User(db.Model, UserMixin):
    __tablename__ = "users"
    __table_args__ = (_one_of("role", USER_ROLES),)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(10), nullable=False, default="agent")
    created_at = db.Column(db.DateTime, default=datetime.now)

    tokens = db.relationship("ApiToken", back_populates="user", lazy=True, cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<User {self.email}>"


class ApiToken(db.Model):
    __tablename__ = "api_tokens"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_hash = db.Column(db.String(64), unique=True, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.now)

    user = db.relationship("User", back_populates="tokens")


class Parking(db.Model):
    __tablename__ = "parkings"
    __table_args__ = (CheckConstraint("total_spots >= 1", name="valid_total_spots"),)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    location = db.Column(db.String(255), nullable=False)
    # declared capacity, not checked against the real spot count
    total_spots = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    spots = db.relationship(
        "Spot",
        back_populates="parking",
        lazy=True,
        order_by="Spot.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, with_spots=True):
        data = {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "total_spots": self.total_spots,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if with_spots:
            data["spots"] = [spot.to_dict() for spot in self.spots]
        return data

    def __repr__(self):
        return f"<Parking {self.id} {self.name}>"


class Spot(db.Model):
    __tablename__ = "spots"
    __table_args__ = (_one_of("status", SPOT_STATUSES),)

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(10), nullable=False, default="available")
    parking_id = db.Column(db.Integer, db.ForeignKey("parkings.id", ondelete="CASCADE"), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    parking = db.relationship("Parking", back_populates="spots")
    vehicle = db.relationship("Vehicle", back_populates="spot", uselist=False, lazy=True)

    def to_dict(self, with_relations=False):
        data = {
            "id": self.id,
            "number": self.number,
            "status": self.status,
            "parking_id": self.parking_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if with_relations:
            data["parking"] = self.parking.to_dict(with_spots=False) if self.parking else None
            data["vehicle"] = self.vehicle.to_dict() if self.vehicle else None
        return data

    def __repr__(self):
        return f"<Spot {self.number} - {self.status}>"


class Vehicle(db.Model):
    __tablename__ = "vehicles"
    id = db.Column(db.Integer, primary_key=True)
    plate_number = db.Column(db.String(255), unique=True, nullable=False)
    brand = db.Column(db.String(255), nullable=False)
    owner_name = db.Column(db.String(255), nullable=False)
    spot_id = db.Column(db.Integer, db.ForeignKey("spots.id", ondelete="SET NULL"), nullable=True)
    entry_time = db.Column(db.DateTime, nullable=True)
    exit_time = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    spot = db.relationship("Spot", back_populates="vehicle")
    subscriptions = db.relationship(
        "Subscription", back_populates="vehicle", lazy=True, order_by="Subscription.id"
    )

    def to_dict(self, with_relations=False):
        data = {
            "id": self.id,
            "plate_number": self.plate_number,
            "brand": self.brand,
            "owner_name": self.owner_name,
            "spot_id": self.spot_id,
            "entry_time": _iso(self.entry_time),
            "exit_time": _iso(self.exit_time),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if with_relations:
            spot = None
            if self.spot:
                spot = self.spot.to_dict()
                spot["parking"] = self.spot.parking.to_dict(with_spots=False)
            data["spot"] = spot
            data["subscriptions"] = [sub.to_dict() for sub in self.subscriptions]
        return data

    def __repr__(self):
        return f"<Vehicle {self.plate_number}>"


class Subscription(db.Model):
    __tablename__ = "subscriptions"
    __table_args__ = (
        _one_of("type", SUBSCRIPTION_TYPES),
        CheckConstraint("end_date > start_date", name="valid_period"),
        CheckConstraint("price >= 0", name="valid_price"),
    )

    id = db.Column(db.Integer, primary_key=True)
    # nullable: a deleted vehicle leaves its subscriptions orphaned
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True)
    type = db.Column(db.String(10), nullable=False)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    vehicle = db.relationship("Vehicle", back_populates="subscriptions")

    @property
    def orphaned(self):
        return self.vehicle_id is None

    def to_dict(self, with_relations=False):
        data = {
            "id": self.id,
            "vehicle_id": self.vehicle_id,
            "type": self.type,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "price": float(self.price) if self.price is not None else None,
            "orphaned": self.orphaned,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if with_relations:
            data["vehicle"] = self.vehicle.to_dict() if self.vehicle else None
        return data

    def __repr__(self):
        return f"<Subscription {self.id} {self.type}>"
