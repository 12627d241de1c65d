"""Demo data for a fresh database (``flask seed-db``)."""
import logging
from datetime import date

from dateutil.relativedelta import relativedelta

from equipment_rental import reconciliation, storage
from equipment_rental.models import utcnow

logger = logging.getLogger(__name__)

CATEGORIES = [
    ("Excavators", "Earth moving equipment for digging"),
    ("Bulldozers", "Heavy equipment for earth moving and grading"),
    ("Loaders", "Equipment used for loading materials"),
    ("Generators", "Portable power generation equipment"),
    ("Concrete Equipment", "Equipment for concrete work"),
]

BRANDS = [
    ("Caterpillar", "American heavy equipment manufacturer"),
    ("John Deere", "American manufacturer of agricultural and construction equipment"),
    ("Komatsu", "Japanese multinational corporation that manufactures construction equipment"),
    ("Bobcat", "American manufacturer of farm and construction equipment"),
    ("Volvo", "Swedish multinational manufacturing company"),
]

CUSTOMERS = [
    {"name": "BuildWell Construction", "email": "info@buildwell.com", "phone": "555-123-4567",
     "address": "123 Builder Ave", "city": "Construction City", "state": "CA",
     "postal_code": "90210", "country": "USA", "notes": "Regular customer since 2020"},
    {"name": "Skyline Developers", "email": "contact@skylinedev.com", "phone": "555-987-6543",
     "address": "456 Skyline Blvd", "city": "Highland", "state": "NY",
     "postal_code": "10001", "country": "USA"},
    {"name": "Metro Engineering", "email": "engineering@metro.com", "phone": "555-246-8101",
     "address": "789 Metro St", "city": "Urbanville", "state": "IL",
     "postal_code": "60601", "country": "USA", "notes": "Prefers monthly billing"},
    {"name": "Foundation Experts", "email": "info@foundationexperts.com", "phone": "555-369-8520",
     "address": "101 Foundation Rd", "city": "Bedrock", "state": "TX",
     "postal_code": "75001", "country": "USA"},
    {"name": "Coastal Builders", "email": "info@coastalbuilders.com", "phone": "555-741-9630",
     "address": "202 Coastal Hwy", "city": "Oceanside", "state": "FL",
     "postal_code": "33101", "country": "USA", "notes": "Seasonal projects only"},
]

MAINTENANCE_TYPES = ["Scheduled", "Emergency", "Preventive"]


def seed_database():
    """Populate an empty database and return how many rows of each kind were added."""
    today = utcnow()

    categories = [storage.create_category({"name": n, "description": d}) for n, d in CATEGORIES]
    brands = [storage.create_brand({"name": n, "description": d}) for n, d in BRANDS]
    customers = [storage.create_customer(dict(c)) for c in CUSTOMERS]

    storage.create_contact({
        "customer_id": customers[0].id, "first_name": "John", "last_name": "Builder",
        "email": "john@buildwell.com", "phone": "555-111-2222",
        "position": "Project Manager", "is_primary": True,
    })
    storage.create_contact({
        "customer_id": customers[1].id, "first_name": "Sarah", "last_name": "Skyline",
        "email": "sarah@skylinedev.com", "phone": "555-333-4444",
        "position": "CEO", "is_primary": True,
    })

    equipment = []
    for i in range(12):
        category = categories[i % len(categories)]
        equipment.append(reconciliation.create_equipment({
            "name": f"{category.name} {i + 1}",
            "model": f"Model {chr(65 + i % 26)}",
            "brand_id": brands[i % len(brands)].id,
            "category_id": category.id,
            "daily_rate": 100 + i * 25,
            "notes": "Available for rental",
        }))

    units = []
    for i in range(24):
        item = equipment[i % len(equipment)]
        units.append(reconciliation.create_unit({
            "equipment_id": item.id,
            "serial_number": f"SN{item.id}-{i + 100}",
            "purchase_date": date(2022, i % 12 + 1, i % 28 + 1),
            "purchase_price": 10000 + i * 2000,
            "condition": "good",
            "notes": "Ready for rental",
        }))

    for i in range(5):
        item = equipment[i % len(equipment)]
        kind = MAINTENANCE_TYPES[i % len(MAINTENANCE_TYPES)]
        reconciliation.create_maintenance({
            "equipment_id": item.id,
            "equipment_unit_id": units[i].id,
            "type": kind,
            "description": f"{kind} maintenance for {item.name}",
            "scheduled_date": today + relativedelta(days=3 + i),
            "notes": "Regular maintenance check",
        })

    # units 18-21 belong to equipment[6:10], none of which has maintenance scheduled
    for i in range(4):
        unit = units[18 + i]
        start = today - relativedelta(days=10 + i)
        reconciliation.create_rental({
            "customer_id": customers[i % len(customers)].id,
            "equipment_id": unit.equipment_id,
            "equipment_unit_id": unit.id,
            "start_date": start,
            "end_date": start + relativedelta(days=30),
            "daily_rate": 100 + i * 50,
            "notes": "Regular rental agreement",
        })

    past_start = today - relativedelta(days=30)
    past_end = past_start + relativedelta(days=15)
    finished = reconciliation.create_rental({
        "customer_id": customers[4].id,
        "equipment_id": equipment[11].id,
        "equipment_unit_id": units[11].id,
        "start_date": past_start,
        "end_date": past_end,
        "daily_rate": 150,
        "notes": "Returned on time",
    })
    reconciliation.update_rental(finished.id, {"status": "completed", "return_date": past_end})

    summary = {
        "categories": len(categories),
        "brands": len(brands),
        "customers": len(customers),
        "contacts": 2,
        "equipment": len(equipment),
        "units": len(units),
        "maintenance": 5,
        "rentals": 5,
    }
    logger.info("Seeded database: %s", summary)
    return summary
