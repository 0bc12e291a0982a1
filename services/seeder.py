import logging
import random
from datetime import datetime, timedelta

from sqlalchemy import func, select

from models.models import Parking, Spot, Subscription, User, Vehicle, db
from repositories.repositories import UserRepository

logger = logging.getLogger(__name__)

BRANDS = ["Toyota", "Renault", "Peugeot", "BMW"]

DEMO_USERS = [
    {"name": "Admin", "email": "admin@parking.com", "password": "password", "role": "admin"},
    {"name": "Agent", "email": "agent@parking.com", "password": "password", "role": "agent"},
]

# name, location, spot prefix, spot count, how many of them start available
DEMO_PARKINGS = [
    ("Centre Ville", "Rue de la Paix, Paris", "A", 50, 30),
    ("Gare du Nord", "Place Napoléon III, Paris", "B", 100, 60),
]


def _count(model):
    return db.session.scalar(select(func.count()).select_from(model))


def seed_database(rng=None, now=None):
    """Load the demo dataset. Returns False when it is already there."""
    rng = rng or random.Random(42)
    now = now or datetime.now()
    users = UserRepository()

    if users.find_by_email(DEMO_USERS[0]["email"]):
        logger.info("Demo data already present, skipping seed")
        return False

    for user in DEMO_USERS:
        users.create(user)

    for name, location, prefix, count, available in DEMO_PARKINGS:
        parking = Parking(name=name, location=location, total_spots=count)
        db.session.add(parking)
        for i in range(1, count + 1):
            parking.spots.append(
                Spot(number=f"{prefix}{i:02d}", status="available" if i <= available else "occupied")
            )
    db.session.commit()

    occupied = db.session.scalars(
        select(Spot).where(Spot.status == "occupied").order_by(Spot.id).limit(10)
    ).all()
    plates = rng.sample(range(100, 1000), len(occupied))
    for spot, plate in zip(occupied, plates):
        db.session.add(Vehicle(
            plate_number=f"ABC{plate}",
            brand=rng.choice(BRANDS),
            owner_name=f"Owner {rng.randint(1, 100)}",
            spot_id=spot.id,
            entry_time=now - timedelta(hours=rng.randint(1, 8)),
        ))
    db.session.commit()

    for vehicle in db.session.scalars(select(Vehicle).order_by(Vehicle.id).limit(5)).all():
        db.session.add(Subscription(
            vehicle_id=vehicle.id,
            type=rng.choice(["monthly", "daily"]),
            start_date=now - timedelta(days=rng.randint(1, 30)),
            end_date=now + timedelta(days=rng.randint(30, 90)),
            price=rng.randint(50, 200),
        ))
    db.session.commit()

    logger.info(
        f"Seeded {_count(User)} users, {_count(Parking)} parkings, "
        f"{_count(Spot)} spots, {_count(Vehicle)} vehicles, "
        f"{_count(Subscription)} subscriptions"
    )
    return True
