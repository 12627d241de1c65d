"""Dashboard aggregates.

Everything here is recomputed from the tables on each call; nothing is
cached, so a write is visible on the very next request.
"""
from sqlalchemy import case, distinct, func, select

from equipment_rental.database import db
from equipment_rental.models import Category, Equipment, Maintenance, Rental


def get_dashboard_stats():
    active_rentals = db.session.scalar(
        select(func.count(Rental.id)).filter(Rental.status == "active"))
    available_equipment = db.session.scalar(
        select(func.count(Equipment.id)).filter(Equipment.status == "available"))
    pending_maintenance = db.session.scalar(
        select(func.count(Maintenance.id)).filter(Maintenance.status != "completed"))
    active_customers = db.session.scalar(
        select(func.count(distinct(Rental.customer_id))).filter(Rental.status == "active"))

    return {
        "activeRentals": active_rentals,
        "availableEquipment": available_equipment,
        "pendingMaintenance": pending_maintenance,
        "activeCustomers": active_customers,
    }


def get_equipment_availability():
    """One entry per category, empty categories included as 0/0."""
    available = func.coalesce(
        func.sum(case((Equipment.status == "available", 1), else_=0)), 0)
    rows = db.session.execute(
        select(Category.name, func.count(Equipment.id), available)
        .outerjoin(Equipment, Equipment.category_id == Category.id)
        .group_by(Category.id, Category.name)
        .order_by(Category.id)
    ).all()

    return [
        {"categoryName": name, "available": int(available_count), "total": total}
        for name, total, available_count in rows
    ]
