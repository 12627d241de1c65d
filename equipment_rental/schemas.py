"""Request payload schemas.

Each entity has a ``*Create`` schema (required fields enforced) and a
``*Update`` schema where every field is optional, so a PUT only carries the
fields it changes. Payloads use camelCase keys; ``load`` hands back
snake_case dicts ready for the model columns.
"""
from datetime import date, datetime, timezone
from typing import ClassVar, Literal, Optional

from dateutil.parser import isoparse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from equipment_rental.errors import ValidationError

EquipmentStatus = Literal["available", "rented", "maintenance", "unavailable"]
UnitStatus = EquipmentStatus
RentalStatus = Literal["active", "completed"]
MaintenanceStatus = Literal["scheduled", "in-progress", "completed"]

_DATETIME_FIELDS = ("start_date", "end_date", "return_date", "scheduled_date", "completed_date")


def _to_naive_utc(value):
    if isinstance(value, str):
        value = isoparse(value)
    if isinstance(value, datetime) and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    return value


class Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True,
                              str_strip_whitespace=True)

    # columns an update may omit but never set to null
    non_nullable: ClassVar[tuple] = ()

    @field_validator(*_DATETIME_FIELDS, mode="before", check_fields=False)
    @classmethod
    def parse_timestamp(cls, value):
        # Accepts plain dates ("2024-05-01") as well as full ISO timestamps.
        if value is None:
            return value
        try:
            return _to_naive_utc(value)
        except (ValueError, OverflowError):
            raise ValueError("invalid date, use ISO 8601 (YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS)")


# ============================================================
# Customers / contacts
# ============================================================

class CustomerCreate(Payload):
    name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    notes: Optional[str] = None


class CustomerUpdate(CustomerCreate):
    non_nullable: ClassVar[tuple] = ("name",)

    name: Optional[str] = Field(default=None, min_length=1)


class ContactCreate(Payload):
    customer_id: int
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    position: Optional[str] = None
    is_primary: bool = False


class ContactUpdate(ContactCreate):
    non_nullable: ClassVar[tuple] = ("customer_id", "first_name", "last_name", "is_primary")

    customer_id: Optional[int] = None
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    is_primary: Optional[bool] = None


# ============================================================
# Reference data
# ============================================================

class BrandCreate(Payload):
    name: str = Field(min_length=1)
    description: Optional[str] = None


class BrandUpdate(BrandCreate):
    non_nullable: ClassVar[tuple] = ("name",)

    name: Optional[str] = Field(default=None, min_length=1)


class CategoryCreate(BrandCreate):
    pass


class CategoryUpdate(BrandUpdate):
    pass


# ============================================================
# Equipment
# ============================================================

class EquipmentCreate(Payload):
    name: str = Field(min_length=1)
    model: Optional[str] = None
    brand_id: Optional[int] = None
    category_id: Optional[int] = None
    daily_rate: Optional[float] = Field(default=None, ge=0)
    status: EquipmentStatus = "available"
    notes: Optional[str] = None


class EquipmentUpdate(EquipmentCreate):
    non_nullable: ClassVar[tuple] = ("name", "status")

    name: Optional[str] = Field(default=None, min_length=1)
    status: Optional[EquipmentStatus] = None


class EquipmentUnitCreate(Payload):
    equipment_id: int
    serial_number: Optional[str] = None
    purchase_date: Optional[date] = None
    purchase_price: Optional[float] = Field(default=None, ge=0)
    status: UnitStatus = "available"
    condition: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("purchase_date", mode="before")
    @classmethod
    def parse_purchase_date(cls, value):
        if isinstance(value, str):
            try:
                return isoparse(value).date()
            except ValueError:
                raise ValueError("invalid date, use YYYY-MM-DD")
        return value


class EquipmentUnitUpdate(EquipmentUnitCreate):
    non_nullable: ClassVar[tuple] = ("equipment_id", "status")

    equipment_id: Optional[int] = None
    status: Optional[UnitStatus] = None


# ============================================================
# Maintenance / rentals
# ============================================================

class MaintenanceCreate(Payload):
    equipment_id: int
    equipment_unit_id: Optional[int] = None
    type: str = Field(min_length=1)
    description: str = Field(min_length=1)
    scheduled_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    cost: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    status: MaintenanceStatus = "scheduled"


class MaintenanceUpdate(MaintenanceCreate):
    non_nullable: ClassVar[tuple] = ("equipment_id", "type", "description", "status")

    equipment_id: Optional[int] = None
    type: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    status: Optional[MaintenanceStatus] = None


class RentalCreate(Payload):
    customer_id: int
    equipment_id: int
    equipment_unit_id: Optional[int] = None
    start_date: datetime
    end_date: datetime
    daily_rate: Optional[float] = Field(default=None, ge=0)
    status: Literal["active"] = "active"
    notes: Optional[str] = None


class RentalUpdate(Payload):
    non_nullable: ClassVar[tuple] = ("customer_id", "equipment_id", "start_date", "end_date", "status")

    customer_id: Optional[int] = None
    equipment_id: Optional[int] = None
    equipment_unit_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    return_date: Optional[datetime] = None
    daily_rate: Optional[float] = Field(default=None, ge=0)
    status: Optional[RentalStatus] = None
    notes: Optional[str] = None


def format_errors(exc):
    """Turn a pydantic error into one readable line."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "body"
        parts.append(f"{location}: {error['msg']}")
    return "Validation error: " + "; ".join(parts)


def load(schema, data, partial=False):
    """Validate ``data`` against ``schema`` and return the column values.

    With ``partial`` only the fields present in the payload are returned,
    so the caller can merge them onto an existing record.
    """
    if not isinstance(data, dict):
        raise ValidationError("Validation error: request body must be a JSON object")
    try:
        payload = schema.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(format_errors(exc))
    values = payload.model_dump(exclude_unset=partial)
    nulls = [to_camel(name) for name in schema.non_nullable if name in values and values[name] is None]
    if nulls:
        raise ValidationError("Validation error: " + "; ".join(f"{name}: may not be null" for name in nulls))
    return values
