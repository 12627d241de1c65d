"""Status reconciliation.

Keeps ``Equipment.status`` and the unit counters consistent with the
rental and maintenance records pointing at them.  Equipment status is
derived:

* ``unavailable`` is an administrative override and is never assigned here;
* ``rented`` while an active rental references the equipment;
* ``maintenance`` while a pending (not completed) maintenance record does;
* ``available`` otherwise.

``total_units`` / ``available_units`` are maintained incrementally as units
are created, change status or are deleted.  They are adjusted in the same
transaction as the unit write, with the equipment row locked.

Every operation checks its inputs before the first write, so a rejected
call leaves the session untouched.
"""
import logging

from sqlalchemy import select

from equipment_rental.database import db
from equipment_rental.errors import ConflictError, ValidationError
from equipment_rental.models import (Brand, Category, Customer, Equipment,
                                     EquipmentUnit, Maintenance, Rental, utcnow)
from equipment_rental.storage import count, get, merge, require

logger = logging.getLogger(__name__)

# statuses an administrator may set by hand; the others are derived
ADMIN_STATUSES = ("available", "unavailable")
# equipment in these states can be handed out
RENTABLE_STATUSES = ("available", "maintenance")
MAINTENANCE_ORDER = {"scheduled": 0, "in-progress": 1, "completed": 2}


# ============================================================
# Equipment status
# ============================================================

def active_rental_for(equipment_id):
    return db.session.scalars(
        select(Rental).filter(Rental.equipment_id == equipment_id, Rental.status == "active")
    ).first()


def has_pending_maintenance(equipment_id=None, unit_id=None):
    criteria = [Maintenance.status != "completed"]
    if equipment_id is not None:
        criteria.append(Maintenance.equipment_id == equipment_id)
    if unit_id is not None:
        criteria.append(Maintenance.equipment_unit_id == unit_id)
    return count(Maintenance, *criteria) > 0


def derive_status(equipment):
    if equipment.status == "unavailable":
        return "unavailable"
    if active_rental_for(equipment.id) is not None:
        return "rented"
    if has_pending_maintenance(equipment_id=equipment.id):
        return "maintenance"
    return "available"


def sync_equipment_status(equipment):
    status = derive_status(equipment)
    if status != equipment.status:
        logger.info("Equipment %s: %s -> %s", equipment.id, equipment.status, status)
        equipment.status = status
    return equipment


def _check_admin_status(status, label="Equipment"):
    if status not in ADMIN_STATUSES:
        raise ValidationError(
            f"{label} status '{status}' is derived from rentals and maintenance; "
            f"only {' or '.join(ADMIN_STATUSES)} can be set directly"
        )


def create_equipment(data):
    if data.get("brand_id") is not None:
        require(Brand, data["brand_id"], "Brand")
    if data.get("category_id") is not None:
        require(Category, data["category_id"], "Category")
    _check_admin_status(data.get("status") or "available")

    equipment = Equipment(**data)
    db.session.add(equipment)
    db.session.commit()
    logger.info("Registered equipment %s (%s)", equipment.id, equipment.name)
    return equipment


def update_equipment(equipment_id, data):
    equipment = get(Equipment, equipment_id, lock=True)
    if equipment is None:
        return None
    if data.get("brand_id") is not None:
        require(Brand, data["brand_id"], "Brand")
    if data.get("category_id") is not None:
        require(Category, data["category_id"], "Category")
    status = data.pop("status", None)
    if status is not None:
        _check_admin_status(status)

    merge(equipment, data)
    if status == "unavailable":
        if equipment.status != "unavailable":
            logger.info("Equipment %s marked unavailable by override", equipment.id)
        equipment.status = "unavailable"
    elif status == "available":
        # clearing the override hands the status back to the derivation
        equipment.status = "available"
        sync_equipment_status(equipment)
    db.session.commit()
    return equipment


def delete_equipment(equipment_id):
    """Delete an equipment model with its units and maintenance history.

    Refused while any rental, active or not, still references it.
    """
    equipment = get(Equipment, equipment_id)
    if equipment is None:
        return False
    rentals = count(Rental, Rental.equipment_id == equipment_id)
    if rentals:
        logger.warning("Rejected delete of equipment %s: %d rental(s)", equipment_id, rentals)
        raise ConflictError(f"Equipment {equipment_id} is referenced by {rentals} rental record(s)")
    db.session.delete(equipment)
    db.session.commit()
    logger.info("Deleted equipment %s", equipment_id)
    return True


# ============================================================
# Units and their counters
# ============================================================

def _adjust_counters(equipment_id, total=0, available=0):
    equipment = get(Equipment, equipment_id, lock=True)
    if equipment is None:
        return
    equipment.total_units = max(0, (equipment.total_units or 0) + total)
    equipment.available_units = max(0, (equipment.available_units or 0) + available)
    logger.debug("Equipment %s units: total=%d available=%d",
                 equipment_id, equipment.total_units, equipment.available_units)


def set_unit_status(unit, status):
    """Change a unit's status, moving ``available_units`` across the boundary.

    The unit is re-read under lock first, so the +1/-1 is decided on the
    status other writers left behind, not on what this session last saw.
    """
    get(EquipmentUnit, unit.id, lock=True)
    previous = unit.status
    if previous == status:
        return unit
    unit.status = status
    if previous == "available":
        _adjust_counters(unit.equipment_id, available=-1)
    elif status == "available":
        _adjust_counters(unit.equipment_id, available=1)
    logger.info("Unit %s: %s -> %s", unit.id, previous, status)
    return unit


def _sync_unit_maintenance(unit):
    get(EquipmentUnit, unit.id, lock=True)
    pending = has_pending_maintenance(unit_id=unit.id)
    if pending and unit.status == "available":
        set_unit_status(unit, "maintenance")
    elif not pending and unit.status == "maintenance":
        set_unit_status(unit, "available")


def _release_unit(unit):
    """Hand a unit back after its rental ends."""
    if unit is None:
        return
    get(EquipmentUnit, unit.id, lock=True)
    if unit.status == "rented":
        set_unit_status(unit, "available")
        _sync_unit_maintenance(unit)


def _lock_unit(unit_id):
    """Load a unit for writing: its equipment row is locked first, then the unit."""
    unit = get(EquipmentUnit, unit_id)
    if unit is None:
        return None
    get(Equipment, unit.equipment_id, lock=True)
    return get(EquipmentUnit, unit_id, lock=True)


def _unit_of(equipment, unit_id):
    if unit_id is None:
        return None
    unit = require(EquipmentUnit, unit_id, "Equipment unit", lock=True)
    if unit.equipment_id != equipment.id:
        raise ValidationError(f"Equipment unit {unit_id} does not belong to equipment {equipment.id}")
    return unit


def create_unit(data):
    require(Equipment, data["equipment_id"], "Equipment", lock=True)
    status = data.get("status") or "available"
    _check_admin_status(status, "Equipment unit")
    data["status"] = status
    unit = EquipmentUnit(**data)
    db.session.add(unit)
    _adjust_counters(unit.equipment_id, total=1, available=1 if status == "available" else 0)
    db.session.commit()
    logger.info("Added unit %s to equipment %s", unit.id, unit.equipment_id)
    return unit


def update_unit(unit_id, data):
    """Merge changes into a unit.

    Like equipment, a unit's status can only be set to ``unavailable``
    (taken out of service) or ``available``; the latter falls back to
    ``maintenance`` while maintenance on the unit is still pending.
    """
    unit = _lock_unit(unit_id)
    if unit is None:
        return None
    if "equipment_id" in data and data["equipment_id"] != unit.equipment_id:
        raise ValidationError("equipmentId of a unit cannot be changed")
    data.pop("equipment_id", None)
    status = data.pop("status", None)
    if status is not None:
        _check_admin_status(status, "Equipment unit")
        held = count(Rental, Rental.equipment_unit_id == unit.id, Rental.status == "active")
        if held:
            raise ConflictError(f"Equipment unit {unit.id} is out on an active rental")

    merge(unit, data)
    if status == "unavailable":
        set_unit_status(unit, "unavailable")
    elif status == "available":
        set_unit_status(unit, "available")
        _sync_unit_maintenance(unit)
    db.session.commit()
    return unit


def delete_unit(unit_id):
    unit = _lock_unit(unit_id)
    if unit is None:
        return False
    references = (count(Rental, Rental.equipment_unit_id == unit_id)
                  + count(Maintenance, Maintenance.equipment_unit_id == unit_id))
    if references:
        logger.warning("Rejected delete of unit %s: %d reference(s)", unit_id, references)
        raise ConflictError(f"Equipment unit {unit_id} is referenced by {references} rental/maintenance record(s)")

    _adjust_counters(unit.equipment_id, total=-1,
                     available=-1 if unit.status == "available" else 0)
    db.session.delete(unit)
    db.session.commit()
    logger.info("Deleted unit %s", unit_id)
    return True


# ============================================================
# Rentals
# ============================================================

def _check_dates(start, end):
    if start is not None and end is not None and end < start:
        raise ValidationError("endDate must not be before startDate")


def create_rental(data):
    """Open a rental and mark its equipment (and unit) rented.

    Rejected when the customer or equipment does not exist, when the
    equipment already has an active rental, or when it is not in a
    rentable state.
    """
    require(Customer, data["customer_id"], "Customer")
    equipment = require(Equipment, data["equipment_id"], "Equipment", lock=True)
    _check_dates(data.get("start_date"), data.get("end_date"))
    unit = _unit_of(equipment, data.get("equipment_unit_id"))

    current = active_rental_for(equipment.id)
    if current is not None:
        logger.warning("Rejected rental of equipment %s: already rented by rental %s",
                       equipment.id, current.id)
        raise ConflictError(f"Equipment {equipment.id} is already rented (rental {current.id})")
    if equipment.status not in RENTABLE_STATUSES:
        logger.warning("Rejected rental of equipment %s: status %s", equipment.id, equipment.status)
        raise ConflictError(f"Equipment {equipment.id} is {equipment.status} and cannot be rented")
    if unit is not None and unit.status != "available":
        raise ConflictError(f"Equipment unit {unit.id} is {unit.status} and cannot be rented")

    if data.get("daily_rate") is None:
        data["daily_rate"] = equipment.daily_rate
    data["status"] = "active"
    rental = Rental(**data)
    db.session.add(rental)
    sync_equipment_status(equipment)
    if unit is not None:
        set_unit_status(unit, "rented")
    db.session.commit()
    logger.info("Rental %s opened: equipment %s for customer %s",
                rental.id, rental.equipment_id, rental.customer_id)
    return rental


def update_rental(rental_id, data):
    """Merge changes into a rental; completing it releases the equipment."""
    rental = get(Rental, rental_id, lock=True)
    if rental is None:
        return None
    for key, label in (("equipment_id", "equipmentId"), ("equipment_unit_id", "equipmentUnitId")):
        if key in data and data[key] != getattr(rental, key):
            raise ValidationError(f"{label} of a rental cannot be changed")
    if "customer_id" in data:
        require(Customer, data["customer_id"], "Customer")

    status = data.get("status", rental.status)
    if rental.status == "completed" and status != "completed":
        raise ValidationError("A completed rental cannot be reopened")
    if data.get("return_date") is not None and status != "completed":
        raise ValidationError("returnDate can only be set when the rental is completed")
    _check_dates(data.get("start_date", rental.start_date), data.get("end_date", rental.end_date))

    completing = rental.status != "completed" and status == "completed"
    merge(rental, data)
    if rental.status == "completed" and rental.return_date is None:
        rental.return_date = utcnow()
    if completing:
        get(Equipment, rental.equipment_id, lock=True)
        _release_unit(rental.unit)
        sync_equipment_status(rental.equipment)
        logger.info("Rental %s completed, equipment %s now %s",
                    rental.id, rental.equipment_id, rental.equipment.status)
    db.session.commit()
    return rental


def delete_rental(rental_id):
    rental = get(Rental, rental_id, lock=True)
    if rental is None:
        return False
    was_active = rental.status == "active"
    equipment, unit = rental.equipment, rental.unit
    db.session.delete(rental)
    if was_active:
        get(Equipment, equipment.id, lock=True)
        _release_unit(unit)
        sync_equipment_status(equipment)
    db.session.commit()
    logger.info("Deleted rental %s", rental_id)
    return True


# ============================================================
# Maintenance
# ============================================================

def _check_completed_date(status, completed_date):
    if completed_date is not None and status != "completed":
        raise ValidationError("completedDate can only be set when the maintenance is completed")


def create_maintenance(data):
    equipment = require(Equipment, data["equipment_id"], "Equipment", lock=True)
    unit = _unit_of(equipment, data.get("equipment_unit_id"))
    status = data.get("status") or "scheduled"
    data["status"] = status
    _check_completed_date(status, data.get("completed_date"))
    if status == "completed" and data.get("completed_date") is None:
        data["completed_date"] = utcnow()

    record = Maintenance(**data)
    db.session.add(record)
    sync_equipment_status(equipment)
    if unit is not None:
        _sync_unit_maintenance(unit)
    db.session.commit()
    logger.info("Maintenance %s (%s) %s for equipment %s",
                record.id, record.type, record.status, record.equipment_id)
    return record


def update_maintenance(maintenance_id, data):
    """Merge changes into a maintenance record.

    Status only moves forward (scheduled -> in-progress -> completed).
    Moving the record to other equipment re-derives both.
    """
    record = get(Maintenance, maintenance_id)
    if record is None:
        return None

    previous = record.status
    status = data.get("status") or previous
    if MAINTENANCE_ORDER[status] < MAINTENANCE_ORDER[previous]:
        raise ValidationError(f"Maintenance cannot go back from {previous} to {status}")
    _check_completed_date(status, data.get("completed_date"))

    old_equipment, old_unit = record.equipment, record.unit
    equipment = old_equipment
    if data.get("equipment_id", record.equipment_id) != record.equipment_id:
        equipment = require(Equipment, data["equipment_id"], "Equipment", lock=True)
    unit_id = data["equipment_unit_id"] if "equipment_unit_id" in data else record.equipment_unit_id
    unit = _unit_of(equipment, unit_id)

    data.pop("equipment_id", None)
    data.pop("equipment_unit_id", None)
    merge(record, data)
    record.equipment = equipment
    record.unit = unit
    if record.status == "completed" and record.completed_date is None:
        record.completed_date = utcnow()

    sync_equipment_status(equipment)
    if old_equipment is not equipment:
        sync_equipment_status(old_equipment)
    for touched in {old_unit, unit} - {None}:
        _sync_unit_maintenance(touched)
    db.session.commit()
    if status != previous:
        logger.info("Maintenance %s: %s -> %s", record.id, previous, status)
    return record


def delete_maintenance(maintenance_id):
    record = get(Maintenance, maintenance_id)
    if record is None:
        return False
    equipment, unit = record.equipment, record.unit
    db.session.delete(record)
    sync_equipment_status(equipment)
    if unit is not None:
        _sync_unit_maintenance(unit)
    db.session.commit()
    logger.info("Deleted maintenance %s", maintenance_id)
    return True
