"""Entity store: CRUD over the rental tables.

Lookups, updates and deletes on an unknown id return ``None`` (or ``False``
for deletes) instead of raising; the API layer turns that into a 404.
Writes that would point at, or leave behind, a missing row raise
:class:`~equipment_rental.errors.ValidationError` /
:class:`~equipment_rental.errors.ConflictError` before anything is touched.

Equipment, units, maintenance and rentals carry derived state and are
written through :mod:`equipment_rental.reconciliation`; this module only
reads them.
"""
import logging

from sqlalchemy import func, select

from equipment_rental.database import db
from equipment_rental.errors import ConflictError, ValidationError
from equipment_rental.models import (Brand, Category, Contact, Customer,
                                     Equipment, EquipmentUnit, Maintenance,
                                     Rental, utcnow)

logger = logging.getLogger(__name__)


# ============================================================
# Generic helpers
# ============================================================

def get(model, entity_id, lock=False):
    """Fetch a row by id.

    With ``lock`` the row is re-read under ``SELECT ... FOR UPDATE`` even if
    the session already holds it, so callers decide on the current values.
    """
    if entity_id is None:
        return None
    if lock:
        return db.session.get(model, entity_id, with_for_update=True, populate_existing=True)
    return db.session.get(model, entity_id)


def list_all(model, *criteria):
    return db.session.scalars(select(model).filter(*criteria).order_by(model.id)).all()


def count(model, *criteria):
    return db.session.scalar(select(func.count(model.id)).filter(*criteria))


def require(model, entity_id, label, lock=False):
    """Fetch a referenced row or reject the write that names it."""
    entity = get(model, entity_id, lock=lock)
    if entity is None:
        logger.warning("Rejected write: %s %s does not exist", label, entity_id)
        raise ValidationError(f"{label} {entity_id} does not exist")
    return entity


def merge(entity, data):
    """Copy the supplied fields onto ``entity``; everything else stays as is."""
    for key, value in data.items():
        setattr(entity, key, value)
    return entity


def _insert(model, data):
    entity = model(**data)
    db.session.add(entity)
    db.session.commit()
    logger.info("Created %s %s", model.__name__, entity.id)
    return entity


def _update(model, entity_id, data):
    entity = get(model, entity_id)
    if entity is None:
        return None
    merge(entity, data)
    db.session.commit()
    return entity


def _delete(entity):
    label = repr(entity)
    db.session.delete(entity)
    db.session.commit()
    logger.info("Deleted %s", label)
    return True


def _check_unused(label, entity_id, model, *criteria):
    used = count(model, *criteria)
    if used:
        logger.warning("Rejected delete of %s %s: referenced by %d %s row(s)",
                       label, entity_id, used, model.__tablename__)
        raise ConflictError(
            f"{label} {entity_id} is referenced by {used} {model.__tablename__} record(s)"
        )


# ============================================================
# Customers
# ============================================================

def list_customers():
    return list_all(Customer)


def get_customer(customer_id):
    return get(Customer, customer_id)


def create_customer(data):
    return _insert(Customer, data)


def update_customer(customer_id, data):
    return _update(Customer, customer_id, data)


def delete_customer(customer_id):
    """Delete a customer and its contacts; refused while rentals reference it."""
    customer = get(Customer, customer_id)
    if customer is None:
        return False
    _check_unused("Customer", customer_id, Rental, Rental.customer_id == customer_id)
    return _delete(customer)


# ============================================================
# Contacts
# ============================================================

def list_contacts(customer_id=None):
    criteria = []
    if customer_id is not None:
        criteria.append(Contact.customer_id == customer_id)
    return list_all(Contact, *criteria)


def get_contact(contact_id):
    return get(Contact, contact_id)


def create_contact(data):
    require(Customer, data["customer_id"], "Customer")
    return _insert(Contact, data)


def update_contact(contact_id, data):
    contact = get(Contact, contact_id)
    if contact is None:
        return None
    if "customer_id" in data:
        require(Customer, data["customer_id"], "Customer")
    merge(contact, data)
    db.session.commit()
    return contact


def delete_contact(contact_id):
    contact = get(Contact, contact_id)
    if contact is None:
        return False
    return _delete(contact)


# ============================================================
# Brands / categories
# ============================================================

def list_brands():
    return list_all(Brand)


def get_brand(brand_id):
    return get(Brand, brand_id)


def create_brand(data):
    return _insert(Brand, data)


def update_brand(brand_id, data):
    return _update(Brand, brand_id, data)


def delete_brand(brand_id):
    brand = get(Brand, brand_id)
    if brand is None:
        return False
    _check_unused("Brand", brand_id, Equipment, Equipment.brand_id == brand_id)
    return _delete(brand)


def list_categories():
    return list_all(Category)


def get_category(category_id):
    return get(Category, category_id)


def create_category(data):
    return _insert(Category, data)


def update_category(category_id, data):
    return _update(Category, category_id, data)


def delete_category(category_id):
    category = get(Category, category_id)
    if category is None:
        return False
    _check_unused("Category", category_id, Equipment, Equipment.category_id == category_id)
    return _delete(category)


# ============================================================
# Read side of the reconciled tables
# ============================================================

def list_equipment(category_id=None, brand_id=None, status=None):
    criteria = []
    if category_id is not None:
        criteria.append(Equipment.category_id == category_id)
    if brand_id is not None:
        criteria.append(Equipment.brand_id == brand_id)
    if status:
        criteria.append(Equipment.status == status)
    return list_all(Equipment, *criteria)


def get_equipment(equipment_id):
    return get(Equipment, equipment_id)


def list_units(equipment_id=None, available_only=False):
    criteria = []
    if equipment_id is not None:
        criteria.append(EquipmentUnit.equipment_id == equipment_id)
    if available_only:
        criteria.append(EquipmentUnit.status == "available")
    return list_all(EquipmentUnit, *criteria)


def get_unit(unit_id):
    return get(EquipmentUnit, unit_id)


def list_maintenance(equipment_id=None, equipment_unit_id=None, pending_only=False):
    criteria = []
    if equipment_id is not None:
        criteria.append(Maintenance.equipment_id == equipment_id)
    if equipment_unit_id is not None:
        criteria.append(Maintenance.equipment_unit_id == equipment_unit_id)
    if pending_only:
        criteria.append(Maintenance.status != "completed")
    return list_all(Maintenance, *criteria)


def get_maintenance(maintenance_id):
    return get(Maintenance, maintenance_id)


def list_rentals(customer_id=None, equipment_id=None, equipment_unit_id=None,
                 active_only=False, overdue_only=False):
    criteria = []
    if customer_id is not None:
        criteria.append(Rental.customer_id == customer_id)
    if equipment_id is not None:
        criteria.append(Rental.equipment_id == equipment_id)
    if equipment_unit_id is not None:
        criteria.append(Rental.equipment_unit_id == equipment_unit_id)
    if active_only or overdue_only:
        criteria.append(Rental.status == "active")
    if overdue_only:
        criteria.append(Rental.end_date < utcnow())
    return list_all(Rental, *criteria)


def get_rental(rental_id):
    return get(Rental, rental_id)
