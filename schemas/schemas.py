from datetime import datetime
from decimal import Decimal
from typing import Annotated, ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationInfo, field_validator

SpotStatus = Literal["available", "occupied", "reserved"]
SubscriptionType = Literal["monthly", "daily"]

# largest signed 64-bit integer the store can hold
MAX_ID = 2**63 - 1
# bools and numeric strings are rejected, not coerced
StoreInt = Annotated[StrictInt, Field(ge=-MAX_ID - 1, le=MAX_ID)]


def _naive(value):
    # stored datetimes are naive local time
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class Payload(BaseModel):
    """Request body allow-list. Unknown keys are dropped, not rejected."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    def allowed_fields(self):
        return self.model_dump(exclude_unset=True)


class PartialPayload(Payload):
    """Update body: every key optional, only sent keys are applied."""

    nullable_fields: ClassVar[tuple] = ()

    @field_validator("*")
    @classmethod
    def not_null(cls, value, info: ValidationInfo):
        if value is None and info.field_name not in cls.nullable_fields:
            raise ValueError(f"The {info.field_name} field may not be null.")
        return value


#  ---------AUTH---
class LoginPayload(Payload):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=False)

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)


#  ---------PARKINGS---
class ParkingCreate(Payload):
    name: str = Field(min_length=1, max_length=255)
    location: str = Field(min_length=1, max_length=255)
    total_spots: StoreInt = Field(ge=1)


class ParkingUpdate(PartialPayload):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    total_spots: Optional[StoreInt] = Field(None, ge=1)


#  ---------SPOTS---
class SpotCreate(Payload):
    number: str = Field(min_length=1, max_length=255)
    status: SpotStatus = "available"
    parking_id: StoreInt


class SpotUpdate(PartialPayload):
    number: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[SpotStatus] = None
    parking_id: Optional[StoreInt] = None


#  ---------VEHICLES---
class VehicleCreate(Payload):
    plate_number: str = Field(min_length=1, max_length=255)
    brand: str = Field(min_length=1, max_length=255)
    owner_name: str = Field(min_length=1, max_length=255)
    spot_id: Optional[StoreInt] = None
    entry_time: Optional[datetime] = None
    exit_time: Optional[datetime] = None

    @field_validator("entry_time", "exit_time")
    @classmethod
    def naive_times(cls, value):
        return _naive(value)


class VehicleUpdate(PartialPayload):
    nullable_fields: ClassVar[tuple] = ("spot_id", "entry_time", "exit_time")

    plate_number: Optional[str] = Field(None, min_length=1, max_length=255)
    brand: Optional[str] = Field(None, min_length=1, max_length=255)
    owner_name: Optional[str] = Field(None, min_length=1, max_length=255)
    spot_id: Optional[StoreInt] = None
    entry_time: Optional[datetime] = None
    exit_time: Optional[datetime] = None

    @field_validator("entry_time", "exit_time")
    @classmethod
    def naive_times(cls, value):
        return _naive(value)


#  ---------SUBSCRIPTIONS---
class SubscriptionCreate(Payload):
    vehicle_id: StoreInt
    type: SubscriptionType
    start_date: datetime
    end_date: datetime
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)

    @field_validator("start_date", "end_date")
    @classmethod
    def naive_dates(cls, value):
        return _naive(value)

    @field_validator("end_date")
    @classmethod
    def after_start(cls, value, info: ValidationInfo):
        start = info.data.get("start_date")
        if start is not None and value <= start:
            raise ValueError("The end date must be a date after start date.")
        return value


class SubscriptionUpdate(PartialPayload):
    # end_date > start_date is checked against the stored row once merged
    vehicle_id: Optional[StoreInt] = None
    type: Optional[SubscriptionType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)

    @field_validator("start_date", "end_date")
    @classmethod
    def naive_dates(cls, value):
        return _naive(value)
