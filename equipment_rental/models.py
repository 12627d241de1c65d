from datetime import datetime, timezone

from equipment_rental.database import db

EQUIPMENT_STATUSES = ("available", "rented", "maintenance", "unavailable")
UNIT_STATUSES = EQUIPMENT_STATUSES
RENTAL_STATUSES = ("active", "completed")
MAINTENANCE_STATUSES = ("scheduled", "in-progress", "completed")

# never reuse ids of deleted rows
_AUTOINCREMENT = {"sqlite_autoincrement": True}


def utcnow():
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


class Customer(db.Model):
    __tablename__ = 'customers'
    __table_args__ = _AUTOINCREMENT

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(150))
    phone = db.Column(db.String(50))
    address = db.Column(db.String(255))
    city = db.Column(db.String(100))
    state = db.Column(db.String(100))
    postal_code = db.Column(db.String(20))
    country = db.Column(db.String(100))
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    contacts = db.relationship('Contact', backref='customer', lazy=True,
                               cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Customer {self.name}>'

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "postalCode": self.postal_code,
            "country": self.country,
            "notes": self.notes,
            "createdAt": _iso(self.created_at),
        }


class Contact(db.Model):
    __tablename__ = 'contacts'
    __table_args__ = _AUTOINCREMENT

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(150))
    phone = db.Column(db.String(50))
    position = db.Column(db.String(100))
    is_primary = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f'<Contact {self.first_name} {self.last_name}>'

    def to_dict(self):
        return {
            "id": self.id,
            "customerId": self.customer_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "position": self.position,
            "isPrimary": self.is_primary,
            "createdAt": _iso(self.created_at),
        }


class Brand(db.Model):
    __tablename__ = 'brands'
    __table_args__ = _AUTOINCREMENT

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(255))

    def __repr__(self):
        return f'<Brand {self.name}>'

    def to_dict(self):
        return {"id": self.id, "name": self.name, "description": self.description}


class Category(db.Model):
    __tablename__ = 'categories'
    __table_args__ = _AUTOINCREMENT

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(255))

    def __repr__(self):
        return f'<Category {self.name}>'

    def to_dict(self):
        return {"id": self.id, "name": self.name, "description": self.description}


class Equipment(db.Model):
    """A rentable equipment model.

    ``status`` is kept in sync with rentals and maintenance by
    :mod:`equipment_rental.reconciliation`; ``total_units`` and
    ``available_units`` are counters over its :class:`EquipmentUnit` rows.
    """
    __tablename__ = 'equipment'
    __table_args__ = _AUTOINCREMENT

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    model = db.Column(db.String(100))
    brand_id = db.Column(db.Integer, db.ForeignKey('brands.id'), index=True)
    category_id = db.Column(db.Integer, db.ForeignKey('categories.id'), index=True)
    daily_rate = db.Column(db.Float)
    status = db.Column(db.String(20), nullable=False, default='available')
    total_units = db.Column(db.Integer, nullable=False, default=0)
    available_units = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    brand = db.relationship('Brand', backref=db.backref('equipment', lazy=True))
    category = db.relationship('Category', backref=db.backref('equipment', lazy=True))
    units = db.relationship('EquipmentUnit', backref='equipment', lazy=True,
                            cascade='all, delete-orphan')
    maintenance = db.relationship('Maintenance', backref='equipment', lazy=True,
                                  cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Equipment {self.name}>'

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "model": self.model,
            "brandId": self.brand_id,
            "categoryId": self.category_id,
            "dailyRate": self.daily_rate,
            "status": self.status,
            "totalUnits": self.total_units,
            "availableUnits": self.available_units,
            "notes": self.notes,
            "createdAt": _iso(self.created_at),
        }


class EquipmentUnit(db.Model):
    __tablename__ = 'equipment_units'
    __table_args__ = _AUTOINCREMENT

    id = db.Column(db.Integer, primary_key=True)
    equipment_id = db.Column(db.Integer, db.ForeignKey('equipment.id'), nullable=False, index=True)
    serial_number = db.Column(db.String(100))
    purchase_date = db.Column(db.Date)
    purchase_price = db.Column(db.Float)
    status = db.Column(db.String(20), nullable=False, default='available')
    condition = db.Column(db.String(50))
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f'<EquipmentUnit {self.serial_number} - Equipment {self.equipment_id}>'

    def to_dict(self):
        return {
            "id": self.id,
            "equipmentId": self.equipment_id,
            "serialNumber": self.serial_number,
            "purchaseDate": _iso(self.purchase_date),
            "purchasePrice": self.purchase_price,
            "status": self.status,
            "condition": self.condition,
            "notes": self.notes,
            "createdAt": _iso(self.created_at),
        }


class Maintenance(db.Model):
    __tablename__ = 'maintenance'
    __table_args__ = _AUTOINCREMENT

    id = db.Column(db.Integer, primary_key=True)
    equipment_id = db.Column(db.Integer, db.ForeignKey('equipment.id'), nullable=False, index=True)
    equipment_unit_id = db.Column(db.Integer, db.ForeignKey('equipment_units.id'), index=True)
    type = db.Column(db.String(50), nullable=False)
    description = db.Column(db.Text, nullable=False)
    scheduled_date = db.Column(db.DateTime)
    completed_date = db.Column(db.DateTime)
    cost = db.Column(db.Float)
    notes = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default='scheduled')
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    unit = db.relationship('EquipmentUnit', backref=db.backref('maintenance', lazy=True))

    def __repr__(self):
        return f'<Maintenance {self.type} - Equipment {self.equipment_id}>'

    @property
    def is_pending(self):
        return self.status != 'completed'

    def to_dict(self):
        return {
            "id": self.id,
            "equipmentId": self.equipment_id,
            "equipmentUnitId": self.equipment_unit_id,
            "type": self.type,
            "description": self.description,
            "scheduledDate": _iso(self.scheduled_date),
            "completedDate": _iso(self.completed_date),
            "cost": self.cost,
            "notes": self.notes,
            "status": self.status,
            "createdAt": _iso(self.created_at),
        }


class Rental(db.Model):
    __tablename__ = 'rentals'
    __table_args__ = _AUTOINCREMENT

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)
    equipment_id = db.Column(db.Integer, db.ForeignKey('equipment.id'), nullable=False, index=True)
    equipment_unit_id = db.Column(db.Integer, db.ForeignKey('equipment_units.id'), index=True)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    return_date = db.Column(db.DateTime)
    daily_rate = db.Column(db.Float)
    status = db.Column(db.String(20), nullable=False, default='active')
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    customer = db.relationship('Customer', backref=db.backref('rentals', lazy=True))
    equipment = db.relationship('Equipment', backref=db.backref('rentals', lazy=True))
    unit = db.relationship('EquipmentUnit', backref=db.backref('rentals', lazy=True))

    def __repr__(self):
        return f'<Rental {self.id} - Equipment {self.equipment_id}>'

    @property
    def is_active(self):
        return self.status == 'active'

    def is_overdue(self, now=None):
        """Overdue is computed on read, never stored."""
        now = now or utcnow()
        return self.is_active and self.end_date is not None and self.end_date < now

    def to_dict(self):
        overdue = self.is_overdue()
        return {
            "id": self.id,
            "customerId": self.customer_id,
            "equipmentId": self.equipment_id,
            "equipmentUnitId": self.equipment_unit_id,
            "startDate": _iso(self.start_date),
            "endDate": _iso(self.end_date),
            "returnDate": _iso(self.return_date),
            "dailyRate": self.daily_rate,
            "status": self.status,
            "isOverdue": overdue,
            "displayStatus": "overdue" if overdue else self.status,
            "notes": self.notes,
            "createdAt": _iso(self.created_at),
        }
