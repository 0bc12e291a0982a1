import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from pydantic import ValidationError
from werkzeug.routing import IntegerConverter

from controllers.errors import BadRequest, NotFound, ValidationFailed
from repositories.repositories import (
    ParkingRepository,
    SpotRepository,
    SubscriptionRepository,
    TokenRepository,
    UserRepository,
    VehicleRepository,
)
from schemas.schemas import (
    MAX_ID,
    LoginPayload,
    ParkingCreate,
    ParkingUpdate,
    SpotCreate,
    SpotUpdate,
    SubscriptionCreate,
    SubscriptionUpdate,
    VehicleCreate,
    VehicleUpdate,
)
from services.statistics import StatisticsService

logger = logging.getLogger(__name__)


class IdConverter(IntegerConverter):
    """Route ids, bounded to what the store can hold so larger ones 404."""

    def __init__(self, url_map, *args, **kwargs):
        kwargs.setdefault("max", MAX_ID)
        super().__init__(url_map, *args, **kwargs)


bp = Blueprint("main", __name__)

parkings = ParkingRepository()
spots = SpotRepository()
vehicles = VehicleRepository()
subscriptions = SubscriptionRepository()
users = UserRepository()
tokens = TokenRepository()


def bearer_token(req=None):
    header = (req or request).headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def payload(schema):
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    try:
        return schema.model_validate(data).allowed_fields()
    except ValidationError as exc:
        raise ValidationFailed.from_pydantic(exc)


def find_or_404(repository, entity_id, label):
    entity = repository.get_by_id(entity_id)
    if entity is None:
        raise NotFound(f"{label} not found")
    return entity


def statistics():
    return StatisticsService(clock=current_app.config["CLOCK"])


def float_arg(name, default):
    raw = request.args.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise BadRequest(f"The {name} parameter must be a number.")


def no_content():
    return "", 204


#------AUTH---
@bp.route("/login", methods=["POST"])
def login():
    fields = payload(LoginPayload)
    user = users.authenticate(fields["email"], fields["password"])
    if user is None:
        logger.warning(f"Failed login for {fields['email']}")
        return jsonify({"message": "Invalid credentials"}), 401

    token = tokens.issue(user)
    logger.info(f"User {user.email} logged in")
    return jsonify({"user": user.to_dict(), "token": token})


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    tokens.revoke(bearer_token())
    logger.info(f"User {current_user.email} logged out")
    return no_content()


@bp.route("/user")
@login_required
def current_user_detail():
    return jsonify(current_user.to_dict())


#------DASHBOARD---
@bp.route("/dashboard/stats")
@login_required
def dashboard_stats():
    return jsonify(statistics().dashboard_stats())


#------PARKINGS---
@bp.route("/parkings")
@login_required
def list_parkings():
    return jsonify([parking.to_dict() for parking in parkings.list()])


@bp.route("/parkings", methods=["POST"])
@login_required
def create_parking():
    parking = parkings.create(payload(ParkingCreate))
    return jsonify(parking.to_dict()), 201


@bp.route("/parkings/available")
@login_required
def available_parkings():
    return jsonify([parking.to_dict() for parking in parkings.list_available()])


@bp.route("/parkings/search")
@login_required
def search_parkings():
    location = request.args.get("location", "").strip()
    if not location:
        raise BadRequest("The location parameter is required.")
    return jsonify([parking.to_dict() for parking in parkings.find_by_location(location)])


@bp.route("/parkings/occupancy")
@login_required
def parkings_by_occupancy():
    min_rate = float_arg("min_rate", 0.0)
    max_rate = float_arg("max_rate", 100.0)
    if min_rate > max_rate:
        raise BadRequest("min_rate must not be greater than max_rate.")
    return jsonify([parking.to_dict() for parking in parkings.list_by_occupancy(min_rate, max_rate)])


@bp.route("/parkings/<id:parking_id>")
@login_required
def show_parking(parking_id):
    return jsonify(find_or_404(parkings, parking_id, "Parking").to_dict())


@bp.route("/parkings/<id:parking_id>", methods=["PUT", "PATCH"])
@login_required
def update_parking(parking_id):
    parking = find_or_404(parkings, parking_id, "Parking")
    parking = parkings.update(parking, payload(ParkingUpdate))
    return jsonify(parking.to_dict())


@bp.route("/parkings/<id:parking_id>", methods=["DELETE"])
@login_required
def delete_parking(parking_id):
    parkings.delete(find_or_404(parkings, parking_id, "Parking"))
    return no_content()


@bp.route("/parkings/<id:parking_id>/stats")
@login_required
def parking_stats(parking_id):
    parking = find_or_404(parkings, parking_id, "Parking")
    return jsonify(statistics().parking_stats(parking))


#------SPOTS---
def check_parking_exists(fields, errors):
    if "parking_id" in fields and not parkings.exists(fields["parking_id"]):
        errors["parking_id"] = ["The selected parking id is invalid."]


@bp.route("/spots")
@login_required
def list_spots():
    return jsonify([spot.to_dict(with_relations=True) for spot in spots.list()])


@bp.route("/spots", methods=["POST"])
@login_required
def create_spot():
    fields = payload(SpotCreate)
    errors = {}
    check_parking_exists(fields, errors)
    if errors:
        raise ValidationFailed(errors)

    spot = spots.create(fields)
    return jsonify(spot.to_dict()), 201


@bp.route("/spots/<id:spot_id>")
@login_required
def show_spot(spot_id):
    return jsonify(find_or_404(spots, spot_id, "Spot").to_dict(with_relations=True))


@bp.route("/spots/<id:spot_id>", methods=["PUT", "PATCH"])
@login_required
def update_spot(spot_id):
    spot = find_or_404(spots, spot_id, "Spot")
    fields = payload(SpotUpdate)
    errors = {}
    check_parking_exists(fields, errors)
    if errors:
        raise ValidationFailed(errors)

    spot = spots.update(spot, fields)
    return jsonify(spot.to_dict())


@bp.route("/spots/<id:spot_id>", methods=["DELETE"])
@login_required
def delete_spot(spot_id):
    spots.delete(find_or_404(spots, spot_id, "Spot"))
    return no_content()


#------VEHICLES---
def check_vehicle_fields(fields, errors, vehicle_id=None):
    plate_number = fields.get("plate_number")
    if plate_number is not None and vehicles.plate_taken(plate_number, exclude_id=vehicle_id):
        errors["plate_number"] = ["The plate number has already been taken."]

    spot_id = fields.get("spot_id")
    if spot_id is None:
        return
    if not spots.exists(spot_id):
        errors["spot_id"] = ["The selected spot id is invalid."]
        return
    occupant = vehicles.find_by_spot(spot_id)
    if occupant is not None and occupant.id != vehicle_id:
        errors["spot_id"] = [f"The spot is already assigned to vehicle {occupant.plate_number}."]


@bp.route("/vehicles")
@login_required
def list_vehicles():
    return jsonify([vehicle.to_dict(with_relations=True) for vehicle in vehicles.list()])


@bp.route("/vehicles", methods=["POST"])
@login_required
def create_vehicle():
    fields = payload(VehicleCreate)
    errors = {}
    check_vehicle_fields(fields, errors)
    if errors:
        raise ValidationFailed(errors)

    vehicle = vehicles.create(fields)
    return jsonify(vehicle.to_dict()), 201


@bp.route("/vehicles/<id:vehicle_id>")
@login_required
def show_vehicle(vehicle_id):
    return jsonify(find_or_404(vehicles, vehicle_id, "Vehicle").to_dict(with_relations=True))


@bp.route("/vehicles/<id:vehicle_id>", methods=["PUT", "PATCH"])
@login_required
def update_vehicle(vehicle_id):
    vehicle = find_or_404(vehicles, vehicle_id, "Vehicle")
    fields = payload(VehicleUpdate)
    errors = {}
    check_vehicle_fields(fields, errors, vehicle_id=vehicle.id)
    if errors:
        raise ValidationFailed(errors)

    vehicle = vehicles.update(vehicle, fields)
    return jsonify(vehicle.to_dict())


@bp.route("/vehicles/<id:vehicle_id>", methods=["DELETE"])
@login_required
def delete_vehicle(vehicle_id):
    vehicles.delete(find_or_404(vehicles, vehicle_id, "Vehicle"))
    return no_content()


#------SUBSCRIPTIONS---
def check_vehicle_exists(fields, errors):
    if "vehicle_id" in fields and not vehicles.exists(fields["vehicle_id"]):
        errors["vehicle_id"] = ["The selected vehicle id is invalid."]


@bp.route("/subscriptions")
@login_required
def list_subscriptions():
    return jsonify([sub.to_dict(with_relations=True) for sub in subscriptions.list()])


@bp.route("/subscriptions", methods=["POST"])
@login_required
def create_subscription():
    fields = payload(SubscriptionCreate)
    errors = {}
    check_vehicle_exists(fields, errors)
    if errors:
        raise ValidationFailed(errors)

    subscription = subscriptions.create(fields)
    return jsonify(subscription.to_dict()), 201


@bp.route("/subscriptions/<id:subscription_id>")
@login_required
def show_subscription(subscription_id):
    subscription = find_or_404(subscriptions, subscription_id, "Subscription")
    return jsonify(subscription.to_dict(with_relations=True))


@bp.route("/subscriptions/<id:subscription_id>", methods=["PUT", "PATCH"])
@login_required
def update_subscription(subscription_id):
    subscription = find_or_404(subscriptions, subscription_id, "Subscription")
    fields = payload(SubscriptionUpdate)
    errors = {}
    check_vehicle_exists(fields, errors)

    start_date = fields.get("start_date", subscription.start_date)
    end_date = fields.get("end_date", subscription.end_date)
    if end_date <= start_date:
        errors["end_date"] = ["The end date must be a date after start date."]
    if errors:
        raise ValidationFailed(errors)

    subscription = subscriptions.update(subscription, fields)
    return jsonify(subscription.to_dict())


@bp.route("/subscriptions/<id:subscription_id>", methods=["DELETE"])
@login_required
def delete_subscription(subscription_id):
    subscriptions.delete(find_or_404(subscriptions, subscription_id, "Subscription"))
    return no_content()
