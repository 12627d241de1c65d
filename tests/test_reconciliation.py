import random
from datetime import timedelta

import pytest
from sqlalchemy import update

from equipment_rental import reconciliation, storage
from equipment_rental.database import db
from equipment_rental.errors import ConflictError, ValidationError
from equipment_rental.models import Equipment, EquipmentUnit, Rental, utcnow

from conftest import maintenance_data, rental_data


def _status(equipment_id):
    return storage.get_equipment(equipment_id).status


def _active_rentals(equipment_id):
    return Rental.query.filter_by(equipment_id=equipment_id, status="active").count()


# ============================================================
# Rentals
# ============================================================

def test_creating_rental_marks_equipment_rented(customer, equipment):
    rental = reconciliation.create_rental(rental_data(customer.id, equipment.id))

    assert rental.status == "active"
    assert rental.return_date is None
    assert _status(equipment.id) == "rented"


def test_rental_copies_equipment_daily_rate(customer, equipment):
    rental = reconciliation.create_rental(rental_data(customer.id, equipment.id))
    assert rental.daily_rate == 150.0

    other = reconciliation.create_equipment({"name": "Excavator 2", "daily_rate": 90.0})
    discounted = reconciliation.create_rental(rental_data(customer.id, other.id, daily_rate=80.0))
    assert discounted.daily_rate == 80.0


def test_second_active_rental_is_rejected(customer, equipment):
    reconciliation.create_rental(rental_data(customer.id, equipment.id))
    later = utcnow() + timedelta(days=30)

    with pytest.raises(ConflictError, match="already rented"):
        reconciliation.create_rental(rental_data(
            customer.id, equipment.id, start_date=later, end_date=later + timedelta(days=3)))
    assert _active_rentals(equipment.id) == 1


def test_rental_for_unknown_equipment_is_rejected_without_changes(customer):
    with pytest.raises(ValidationError, match="Equipment 5 does not exist"):
        reconciliation.create_rental(rental_data(customer.id, 5))
    assert Rental.query.count() == 0


def test_rental_for_unknown_customer_is_rejected(equipment):
    with pytest.raises(ValidationError, match="Customer 9 does not exist"):
        reconciliation.create_rental(rental_data(9, equipment.id))
    assert _status(equipment.id) == "available"


def test_rental_end_before_start_is_rejected(customer, equipment):
    start = utcnow()
    with pytest.raises(ValidationError, match="endDate"):
        reconciliation.create_rental(rental_data(
            customer.id, equipment.id, start_date=start, end_date=start - timedelta(days=1)))


def test_completing_rental_makes_equipment_available(customer, equipment):
    rental = reconciliation.create_rental(rental_data(customer.id, equipment.id))

    completed = reconciliation.update_rental(rental.id, {"status": "completed"})

    assert completed.status == "completed"
    assert completed.return_date is not None
    assert _status(equipment.id) == "available"


def test_completing_rental_keeps_given_return_date(customer, equipment):
    rental = reconciliation.create_rental(rental_data(customer.id, equipment.id))
    returned = utcnow() - timedelta(hours=2)

    completed = reconciliation.update_rental(rental.id, {"status": "completed", "return_date": returned})

    assert completed.return_date == returned


def test_completing_rental_with_pending_maintenance_goes_to_maintenance(customer, equipment):
    rental = reconciliation.create_rental(rental_data(customer.id, equipment.id))
    reconciliation.create_maintenance(maintenance_data(equipment.id))
    assert _status(equipment.id) == "rented"

    reconciliation.update_rental(rental.id, {"status": "completed"})

    assert _status(equipment.id) == "maintenance"


def test_completed_rental_cannot_be_reopened(customer, equipment):
    rental = reconciliation.create_rental(rental_data(customer.id, equipment.id))
    reconciliation.update_rental(rental.id, {"status": "completed"})

    with pytest.raises(ValidationError, match="cannot be reopened"):
        reconciliation.update_rental(rental.id, {"status": "active"})


def test_return_date_only_on_completed_rental(customer, equipment):
    rental = reconciliation.create_rental(rental_data(customer.id, equipment.id))

    with pytest.raises(ValidationError, match="returnDate"):
        reconciliation.update_rental(rental.id, {"return_date": utcnow()})


def test_rental_equipment_cannot_be_changed(customer, equipment):
    other = reconciliation.create_equipment({"name": "Excavator 2"})
    rental = reconciliation.create_rental(rental_data(customer.id, equipment.id))

    with pytest.raises(ValidationError, match="equipmentId"):
        reconciliation.update_rental(rental.id, {"equipment_id": other.id})


def test_updating_rental_notes_leaves_status_alone(customer, equipment):
    rental = reconciliation.create_rental(rental_data(customer.id, equipment.id))

    updated = reconciliation.update_rental(rental.id, {"notes": "Deliver to site B"})

    assert updated.notes == "Deliver to site B"
    assert updated.status == "active"
    assert _status(equipment.id) == "rented"


def test_deleting_active_rental_releases_equipment(customer, equipment):
    rental = reconciliation.create_rental(rental_data(customer.id, equipment.id))

    assert reconciliation.delete_rental(rental.id) is True
    assert _status(equipment.id) == "available"


def test_rental_is_overdue_only_while_active(customer, equipment):
    start = utcnow() - timedelta(days=10)
    rental = reconciliation.create_rental(rental_data(
        customer.id, equipment.id, start_date=start, end_date=start + timedelta(days=3)))

    assert rental.is_overdue()
    assert rental.to_dict()["displayStatus"] == "overdue"
    assert rental.status == "active"

    reconciliation.update_rental(rental.id, {"status": "completed"})
    assert not rental.is_overdue()
    assert [r.id for r in storage.list_rentals(overdue_only=True)] == []


# ============================================================
# Maintenance
# ============================================================

def test_pending_maintenance_marks_equipment(equipment):
    reconciliation.create_maintenance(maintenance_data(equipment.id))
    assert _status(equipment.id) == "maintenance"


def test_maintenance_for_unknown_equipment_is_rejected(app):
    with pytest.raises(ValidationError, match="Equipment 3 does not exist"):
        reconciliation.create_maintenance(maintenance_data(3))
    assert storage.list_maintenance() == []


def test_equipment_under_maintenance_can_still_be_rented(customer, equipment):
    reconciliation.create_maintenance(maintenance_data(equipment.id))

    reconciliation.create_rental(rental_data(customer.id, equipment.id))

    assert _status(equipment.id) == "rented"


def test_maintenance_progresses_and_completes(equipment):
    record = reconciliation.create_maintenance(maintenance_data(equipment.id))

    record = reconciliation.update_maintenance(record.id, {"status": "in-progress"})
    assert record.completed_date is None
    assert _status(equipment.id) == "maintenance"

    record = reconciliation.update_maintenance(record.id, {"status": "completed"})
    assert record.completed_date is not None
    assert _status(equipment.id) == "available"


def test_other_pending_maintenance_keeps_equipment_in_maintenance(equipment):
    first = reconciliation.create_maintenance(maintenance_data(equipment.id))
    reconciliation.create_maintenance(maintenance_data(equipment.id, type="Emergency"))

    reconciliation.update_maintenance(first.id, {"status": "completed"})

    assert _status(equipment.id) == "maintenance"


def test_maintenance_status_never_regresses(equipment):
    record = reconciliation.create_maintenance(maintenance_data(equipment.id, status="in-progress"))

    with pytest.raises(ValidationError, match="cannot go back"):
        reconciliation.update_maintenance(record.id, {"status": "scheduled"})


def test_completed_date_requires_completed_status(equipment):
    with pytest.raises(ValidationError, match="completedDate"):
        reconciliation.create_maintenance(maintenance_data(equipment.id, completed_date=utcnow()))


def test_moving_maintenance_rederives_both_equipment(category, equipment):
    other = reconciliation.create_equipment({"name": "Excavator 2", "category_id": category.id})
    record = reconciliation.create_maintenance(maintenance_data(equipment.id))

    reconciliation.update_maintenance(record.id, {"equipment_id": other.id})

    assert _status(equipment.id) == "available"
    assert _status(other.id) == "maintenance"


def test_deleting_pending_maintenance_releases_equipment(equipment):
    record = reconciliation.create_maintenance(maintenance_data(equipment.id))

    reconciliation.delete_maintenance(record.id)

    assert _status(equipment.id) == "available"


# ============================================================
# Administrative status
# ============================================================

def test_unavailable_override_blocks_rentals(customer, equipment):
    reconciliation.update_equipment(equipment.id, {"status": "unavailable"})

    with pytest.raises(ConflictError, match="unavailable"):
        reconciliation.create_rental(rental_data(customer.id, equipment.id))


def test_unavailable_is_never_cleared_automatically(customer, equipment):
    rental = reconciliation.create_rental(rental_data(customer.id, equipment.id))
    reconciliation.update_equipment(equipment.id, {"status": "unavailable"})

    reconciliation.update_rental(rental.id, {"status": "completed"})

    assert _status(equipment.id) == "unavailable"


def test_clearing_override_rederives_status(equipment):
    reconciliation.create_maintenance(maintenance_data(equipment.id))
    reconciliation.update_equipment(equipment.id, {"status": "unavailable"})

    reconciliation.update_equipment(equipment.id, {"status": "available"})

    assert _status(equipment.id) == "maintenance"


@pytest.mark.parametrize("status", ["rented", "maintenance"])
def test_derived_statuses_cannot_be_set_directly(equipment, status):
    with pytest.raises(ValidationError, match="derived"):
        reconciliation.update_equipment(equipment.id, {"status": status})
    assert _status(equipment.id) == "available"


# ============================================================
# Units and counters
# ============================================================

def _assert_counters_match(equipment_id):
    equipment = storage.get_equipment(equipment_id)
    units = EquipmentUnit.query.filter_by(equipment_id=equipment_id).all()
    assert equipment.total_units == len(units)
    assert equipment.available_units == sum(1 for u in units if u.status == "available")


def test_unit_counters_follow_creation_and_deletion(equipment):
    first = reconciliation.create_unit({"equipment_id": equipment.id, "serial_number": "SN1"})
    reconciliation.create_unit({"equipment_id": equipment.id, "serial_number": "SN2", "status": "unavailable"})

    refreshed = storage.get_equipment(equipment.id)
    assert (refreshed.total_units, refreshed.available_units) == (2, 1)

    reconciliation.delete_unit(first.id)
    refreshed = storage.get_equipment(equipment.id)
    assert (refreshed.total_units, refreshed.available_units) == (1, 0)


def test_unit_status_changes_move_available_counter(equipment):
    unit = reconciliation.create_unit({"equipment_id": equipment.id})

    reconciliation.update_unit(unit.id, {"status": "unavailable"})
    assert storage.get_equipment(equipment.id).available_units == 0

    reconciliation.update_unit(unit.id, {"status": "unavailable"})
    assert storage.get_equipment(equipment.id).available_units == 0

    reconciliation.update_unit(unit.id, {"status": "available"})
    assert storage.get_equipment(equipment.id).available_units == 1


@pytest.mark.parametrize("status", ["rented", "maintenance"])
def test_derived_unit_statuses_cannot_be_set(equipment, status):
    with pytest.raises(ValidationError, match="derived"):
        reconciliation.create_unit({"equipment_id": equipment.id, "status": status})
    assert storage.list_units() == []

    unit = reconciliation.create_unit({"equipment_id": equipment.id})
    with pytest.raises(ValidationError, match="derived"):
        reconciliation.update_unit(unit.id, {"status": status})
    assert storage.get_unit(unit.id).status == "available"
    _assert_counters_match(equipment.id)


def test_unit_stays_in_maintenance_while_work_is_pending(equipment):
    unit = reconciliation.create_unit({"equipment_id": equipment.id})
    record = reconciliation.create_maintenance(maintenance_data(equipment.id, equipment_unit_id=unit.id))

    reconciliation.update_unit(unit.id, {"status": "available"})
    assert storage.get_unit(unit.id).status == "maintenance"
    _assert_counters_match(equipment.id)

    reconciliation.update_unit(unit.id, {"status": "unavailable"})
    reconciliation.update_maintenance(record.id, {"status": "completed"})
    assert storage.get_unit(unit.id).status == "unavailable"

    reconciliation.update_unit(unit.id, {"status": "available"})
    assert storage.get_unit(unit.id).status == "available"
    _assert_counters_match(equipment.id)


def test_unit_update_decides_on_the_stored_status(equipment):
    first = reconciliation.create_unit({"equipment_id": equipment.id, "serial_number": "SN1"})
    reconciliation.create_unit({"equipment_id": equipment.id, "serial_number": "SN2"})
    assert first.status == "available"

    # another writer takes the unit out of service after this session loaded it
    db.session.execute(
        update(EquipmentUnit).where(EquipmentUnit.id == first.id)
        .values(status="unavailable").execution_options(synchronize_session=False))
    db.session.execute(
        update(Equipment).where(Equipment.id == equipment.id)
        .values(available_units=1).execution_options(synchronize_session=False))
    assert first.status == "available"

    reconciliation.update_unit(first.id, {"status": "unavailable"})

    assert storage.get_unit(first.id).status == "unavailable"
    _assert_counters_match(equipment.id)
    assert storage.get_equipment(equipment.id).available_units == 1


def test_unit_delete_decides_on_the_stored_status(equipment):
    first = reconciliation.create_unit({"equipment_id": equipment.id, "serial_number": "SN1"})
    reconciliation.create_unit({"equipment_id": equipment.id, "serial_number": "SN2"})
    assert first.status == "available"

    db.session.execute(
        update(EquipmentUnit).where(EquipmentUnit.id == first.id)
        .values(status="unavailable").execution_options(synchronize_session=False))
    db.session.execute(
        update(Equipment).where(Equipment.id == equipment.id)
        .values(available_units=1).execution_options(synchronize_session=False))

    reconciliation.delete_unit(first.id)

    refreshed = storage.get_equipment(equipment.id)
    assert (refreshed.total_units, refreshed.available_units) == (1, 1)


def test_unit_counters_never_go_negative(equipment):
    unit = reconciliation.create_unit({"equipment_id": equipment.id})
    drifted = storage.get_equipment(equipment.id)
    drifted.total_units = 0
    drifted.available_units = 0
    db.session.commit()

    reconciliation.delete_unit(unit.id)

    refreshed = storage.get_equipment(equipment.id)
    assert (refreshed.total_units, refreshed.available_units) == (0, 0)


def test_unit_counters_survive_mixed_sequences(equipment):
    rng = random.Random(20240501)
    statuses = ["available", "unavailable"]
    unit_ids = []

    for step in range(60):
        action = rng.choice(["create", "update", "delete"]) if unit_ids else "create"
        if action == "create":
            unit = reconciliation.create_unit({
                "equipment_id": equipment.id, "serial_number": f"SN-{step}",
                "status": rng.choice(statuses),
            })
            unit_ids.append(unit.id)
        elif action == "update":
            reconciliation.update_unit(rng.choice(unit_ids), {"status": rng.choice(statuses)})
        else:
            unit_id = rng.choice(unit_ids)
            unit_ids.remove(unit_id)
            reconciliation.delete_unit(unit_id)
        _assert_counters_match(equipment.id)


def test_unit_must_belong_to_rented_equipment(customer, category, equipment):
    other = reconciliation.create_equipment({"name": "Excavator 2", "category_id": category.id})
    unit = reconciliation.create_unit({"equipment_id": other.id})

    with pytest.raises(ValidationError, match="does not belong"):
        reconciliation.create_rental(rental_data(customer.id, equipment.id, equipment_unit_id=unit.id))


def test_renting_a_unit_moves_it_through_its_lifecycle(customer, equipment):
    unit = reconciliation.create_unit({"equipment_id": equipment.id})
    rental = reconciliation.create_rental(rental_data(customer.id, equipment.id, equipment_unit_id=unit.id))

    assert storage.get_unit(unit.id).status == "rented"
    assert storage.get_equipment(equipment.id).available_units == 0

    with pytest.raises(ConflictError, match="active rental"):
        reconciliation.update_unit(unit.id, {"status": "available"})
    with pytest.raises(ConflictError):
        reconciliation.delete_unit(unit.id)

    reconciliation.update_rental(rental.id, {"status": "completed"})
    assert storage.get_unit(unit.id).status == "available"
    _assert_counters_match(equipment.id)


def test_unit_maintenance_takes_unit_out_of_stock(equipment):
    unit = reconciliation.create_unit({"equipment_id": equipment.id})
    record = reconciliation.create_maintenance(maintenance_data(equipment.id, equipment_unit_id=unit.id))

    assert storage.get_unit(unit.id).status == "maintenance"
    assert storage.get_equipment(equipment.id).available_units == 0

    reconciliation.update_maintenance(record.id, {"status": "completed"})
    assert storage.get_unit(unit.id).status == "available"
    _assert_counters_match(equipment.id)
