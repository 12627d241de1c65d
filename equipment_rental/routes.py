from flask import Blueprint, jsonify, request

from equipment_rental import reconciliation, schemas, stats, storage
from equipment_rental.errors import NotFoundError, ValidationError

routes = Blueprint('routes', __name__)


def _payload():
    # an empty body is an empty payload; anything else has to parse
    if not request.get_data():
        return {}
    return request.get_json(force=True)


def _id_arg(name):
    value = request.args.get(name)
    if value is None or value == '':
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"Validation error: {name}: must be an integer")


def _flag(name):
    return request.args.get(name, '').lower() == 'true'


def _found(entity, label):
    if entity is None:
        raise NotFoundError(f"{label} not found")
    return entity


def _deleted(result, label):
    if not result:
        raise NotFoundError(f"{label} not found")
    return '', 204


# ============================================================
# 🟢 CUSTOMERS
# ============================================================

@routes.route('/customers', methods=['GET'])
def list_customers():
    return jsonify([c.to_dict() for c in storage.list_customers()])


@routes.route('/customers/<int:id>', methods=['GET'])
def get_customer(id):
    return jsonify(_found(storage.get_customer(id), "Customer").to_dict())


@routes.route('/customers', methods=['POST'])
def create_customer():
    data = schemas.load(schemas.CustomerCreate, _payload())
    return jsonify(storage.create_customer(data).to_dict()), 201


@routes.route('/customers/<int:id>', methods=['PUT'])
def update_customer(id):
    data = schemas.load(schemas.CustomerUpdate, _payload(), partial=True)
    return jsonify(_found(storage.update_customer(id, data), "Customer").to_dict())


@routes.route('/customers/<int:id>', methods=['DELETE'])
def delete_customer(id):
    return _deleted(storage.delete_customer(id), "Customer")


# ============================================================
# 🟢 CONTACTS
# ============================================================

@routes.route('/contacts', methods=['GET'])
def list_contacts():
    contacts = storage.list_contacts(customer_id=_id_arg('customerId'))
    return jsonify([c.to_dict() for c in contacts])


@routes.route('/contacts/<int:id>', methods=['GET'])
def get_contact(id):
    return jsonify(_found(storage.get_contact(id), "Contact").to_dict())


@routes.route('/contacts', methods=['POST'])
def create_contact():
    data = schemas.load(schemas.ContactCreate, _payload())
    return jsonify(storage.create_contact(data).to_dict()), 201


@routes.route('/contacts/<int:id>', methods=['PUT'])
def update_contact(id):
    data = schemas.load(schemas.ContactUpdate, _payload(), partial=True)
    return jsonify(_found(storage.update_contact(id, data), "Contact").to_dict())


@routes.route('/contacts/<int:id>', methods=['DELETE'])
def delete_contact(id):
    return _deleted(storage.delete_contact(id), "Contact")


# ============================================================
# 🏷️ BRANDS
# ============================================================

@routes.route('/brands', methods=['GET'])
def list_brands():
    return jsonify([b.to_dict() for b in storage.list_brands()])


@routes.route('/brands/<int:id>', methods=['GET'])
def get_brand(id):
    return jsonify(_found(storage.get_brand(id), "Brand").to_dict())


@routes.route('/brands', methods=['POST'])
def create_brand():
    data = schemas.load(schemas.BrandCreate, _payload())
    return jsonify(storage.create_brand(data).to_dict()), 201


@routes.route('/brands/<int:id>', methods=['PUT'])
def update_brand(id):
    data = schemas.load(schemas.BrandUpdate, _payload(), partial=True)
    return jsonify(_found(storage.update_brand(id, data), "Brand").to_dict())


@routes.route('/brands/<int:id>', methods=['DELETE'])
def delete_brand(id):
    return _deleted(storage.delete_brand(id), "Brand")


# ============================================================
# 🏷️ CATEGORIES
# ============================================================

@routes.route('/categories', methods=['GET'])
def list_categories():
    return jsonify([c.to_dict() for c in storage.list_categories()])


@routes.route('/categories/<int:id>', methods=['GET'])
def get_category(id):
    return jsonify(_found(storage.get_category(id), "Category").to_dict())


@routes.route('/categories', methods=['POST'])
def create_category():
    data = schemas.load(schemas.CategoryCreate, _payload())
    return jsonify(storage.create_category(data).to_dict()), 201


@routes.route('/categories/<int:id>', methods=['PUT'])
def update_category(id):
    data = schemas.load(schemas.CategoryUpdate, _payload(), partial=True)
    return jsonify(_found(storage.update_category(id, data), "Category").to_dict())


@routes.route('/categories/<int:id>', methods=['DELETE'])
def delete_category(id):
    return _deleted(storage.delete_category(id), "Category")


# ============================================================
# 🚜 EQUIPMENT
# ============================================================

@routes.route('/equipment', methods=['GET'])
def list_equipment():
    equipment = storage.list_equipment(
        category_id=_id_arg('categoryId'),
        brand_id=_id_arg('brandId'),
        status=request.args.get('status'),
    )
    return jsonify([e.to_dict() for e in equipment])


@routes.route('/equipment/<int:id>', methods=['GET'])
def get_equipment(id):
    return jsonify(_found(storage.get_equipment(id), "Equipment").to_dict())


@routes.route('/equipment', methods=['POST'])
def create_equipment():
    data = schemas.load(schemas.EquipmentCreate, _payload())
    return jsonify(reconciliation.create_equipment(data).to_dict()), 201


@routes.route('/equipment/<int:id>', methods=['PUT'])
def update_equipment(id):
    data = schemas.load(schemas.EquipmentUpdate, _payload(), partial=True)
    return jsonify(_found(reconciliation.update_equipment(id, data), "Equipment").to_dict())


@routes.route('/equipment/<int:id>', methods=['DELETE'])
def delete_equipment(id):
    return _deleted(reconciliation.delete_equipment(id), "Equipment")


@routes.route('/equipment/<int:id>/units', methods=['GET'])
def list_equipment_units(id):
    _found(storage.get_equipment(id), "Equipment")
    units = storage.list_units(equipment_id=id, available_only=_flag('available'))
    return jsonify([u.to_dict() for u in units])


# ============================================================
# 🔩 EQUIPMENT UNITS
# ============================================================

@routes.route('/equipment-units', methods=['GET'])
def list_units():
    units = storage.list_units(
        equipment_id=_id_arg('equipmentId'),
        available_only=_flag('available'),
    )
    return jsonify([u.to_dict() for u in units])


@routes.route('/equipment-units/<int:id>', methods=['GET'])
def get_unit(id):
    return jsonify(_found(storage.get_unit(id), "Equipment unit").to_dict())


@routes.route('/equipment-units', methods=['POST'])
def create_unit():
    data = schemas.load(schemas.EquipmentUnitCreate, _payload())
    return jsonify(reconciliation.create_unit(data).to_dict()), 201


@routes.route('/equipment-units/<int:id>', methods=['PUT'])
def update_unit(id):
    data = schemas.load(schemas.EquipmentUnitUpdate, _payload(), partial=True)
    return jsonify(_found(reconciliation.update_unit(id, data), "Equipment unit").to_dict())


@routes.route('/equipment-units/<int:id>', methods=['DELETE'])
def delete_unit(id):
    return _deleted(reconciliation.delete_unit(id), "Equipment unit")


# ============================================================
# 🟣 MAINTENANCE
# ============================================================

@routes.route('/maintenance', methods=['GET'])
def list_maintenance():
    records = storage.list_maintenance(
        equipment_id=_id_arg('equipmentId'),
        equipment_unit_id=_id_arg('equipmentUnitId'),
        pending_only=_flag('pending'),
    )
    return jsonify([m.to_dict() for m in records])


@routes.route('/maintenance/<int:id>', methods=['GET'])
def get_maintenance(id):
    return jsonify(_found(storage.get_maintenance(id), "Maintenance record").to_dict())


@routes.route('/maintenance', methods=['POST'])
def create_maintenance():
    data = schemas.load(schemas.MaintenanceCreate, _payload())
    return jsonify(reconciliation.create_maintenance(data).to_dict()), 201


@routes.route('/maintenance/<int:id>', methods=['PUT'])
def update_maintenance(id):
    data = schemas.load(schemas.MaintenanceUpdate, _payload(), partial=True)
    record = reconciliation.update_maintenance(id, data)
    return jsonify(_found(record, "Maintenance record").to_dict())


@routes.route('/maintenance/<int:id>', methods=['DELETE'])
def delete_maintenance(id):
    return _deleted(reconciliation.delete_maintenance(id), "Maintenance record")


# ============================================================
# 📦 RENTALS
# ============================================================

@routes.route('/rentals', methods=['GET'])
def list_rentals():
    rentals = storage.list_rentals(
        customer_id=_id_arg('customerId'),
        equipment_id=_id_arg('equipmentId'),
        equipment_unit_id=_id_arg('equipmentUnitId'),
        active_only=_flag('active'),
        overdue_only=_flag('overdue'),
    )
    return jsonify([r.to_dict() for r in rentals])


@routes.route('/rentals/<int:id>', methods=['GET'])
def get_rental(id):
    return jsonify(_found(storage.get_rental(id), "Rental").to_dict())


@routes.route('/rentals', methods=['POST'])
def create_rental():
    data = schemas.load(schemas.RentalCreate, _payload())
    return jsonify(reconciliation.create_rental(data).to_dict()), 201


@routes.route('/rentals/<int:id>', methods=['PUT'])
def update_rental(id):
    data = schemas.load(schemas.RentalUpdate, _payload(), partial=True)
    return jsonify(_found(reconciliation.update_rental(id, data), "Rental").to_dict())


@routes.route('/rentals/<int:id>', methods=['DELETE'])
def delete_rental(id):
    return _deleted(reconciliation.delete_rental(id), "Rental")


# ============================
# 📊 DASHBOARD
# ============================

@routes.route('/dashboard/stats', methods=['GET'])
def dashboard_stats():
    return jsonify(stats.get_dashboard_stats()), 200


@routes.route('/dashboard/equipment-availability', methods=['GET'])
def dashboard_equipment_availability():
    return jsonify(stats.get_equipment_availability()), 200
