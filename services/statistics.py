"""
Derived parking statistics.

Rates are percentages rounded half-up to two places, and are 0 whenever the
spot count they divide by is 0. Per-parking figures count the parking's real
Spot rows, not its declared ``total_spots`` capacity.
"""
from collections import Counter
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
import logging

from sqlalchemy import func, select

from models.models import Parking, Spot, Subscription, Vehicle, db

logger = logging.getLogger(__name__)


def rate(part, total):
    if total <= 0:
        return 0
    percent = Decimal(part) * 100 / Decimal(total)
    return float(percent.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def spot_counts(parking):
    counts = Counter(spot.status for spot in parking.spots)
    return len(parking.spots), counts


def occupancy_rate(parking):
    total, counts = spot_counts(parking)
    return rate(counts["occupied"], total)


class StatisticsService:
    """
    Aggregates over the entity store.

    ``clock`` returns the current time; "active" subscriptions are those whose
    end_date is not before it, evaluated on every call.
    """

    def __init__(self, clock=None):
        self.clock = clock or datetime.now

    def parking_stats(self, parking):
        total, counts = spot_counts(parking)
        return {
            "total_spots": total,
            "occupied_spots": counts["occupied"],
            "available_spots": counts["available"],
            "reserved_spots": counts["reserved"],
            "occupancy_rate": rate(counts["occupied"], total),
            "availability_rate": rate(counts["available"], total),
        }

    def _count(self, column, *criteria):
        query = select(func.count(column))
        if criteria:
            query = query.where(*criteria)
        return db.session.scalar(query)

    def dashboard_stats(self):
        now = self.clock()
        total_spots = self._count(Spot.id)
        occupied = self._count(Spot.id, Spot.status == "occupied")
        available = self._count(Spot.id, Spot.status == "available")
        stats = {
            "total_parkings": self._count(Parking.id),
            "total_spots": total_spots,
            "occupied_spots": occupied,
            "available_spots": available,
            "occupancy_rate": rate(occupied, total_spots),
            "total_vehicles": self._count(Vehicle.id),
            "active_subscriptions": self._count(Subscription.id, Subscription.end_date >= now),
        }
        logger.debug(f"Dashboard stats at {now.isoformat()}: {stats}")
        return stats
