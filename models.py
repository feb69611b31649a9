from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from datetime import datetime, timezone

db = SQLAlchemy()

REQUESTER = 'requester'
OPERATOR = 'operator'
ROLES = (REQUESTER, OPERATOR)

PENDING = 'Pending'
SCHEDULED = 'Scheduled'
COLLECTED = 'Collected'
STATUSES = (PENDING, SCHEDULED, COLLECTED)

OTHER = 'Other'
CATEGORIES = ('Laptop', 'Mobile', 'Tablet', 'Batteries', 'Accessories', OTHER)


def utcnow_iso():
    return datetime.now(timezone.utc).isoformat()


class DocumentRecord(db.Model):
    """One JSON document of the SQL-backed document store."""
    __tablename__ = 'documents'
    collection = db.Column(db.String(255), primary_key=True)
    key = db.Column(db.String(255), primary_key=True)
    body = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))


class Account(UserMixin):
    def __init__(self, email, name, role=REQUESTER, joined=None, uid=None, password_hash=None):
        self.email = email
        self.name = name
        self.role = role
        self.joined = joined or utcnow_iso()
        self.uid = uid
        self.password_hash = password_hash

    def get_id(self):
        return self.email

    def is_requester(self):
        return self.role == REQUESTER
    def is_operator(self):
        return self.role == OPERATOR

    def to_document(self):
        return {
            'uid': self.uid,
            'email': self.email,
            'name': self.name,
            'role': self.role,
            'passwordHash': self.password_hash,
            'joined': self.joined,
        }

    @classmethod
    def from_document(cls, data):
        return cls(
            email=data['email'],
            name=data.get('name') or data['email'].split('@')[0],
            role=data.get('role', REQUESTER),
            joined=data.get('joined'),
            uid=data.get('uid'),
            password_hash=data.get('passwordHash'),
        )

    def __repr__(self):
        return f"<Account {self.email} ({self.role})>"


class PickupRequest:
    def __init__(self, id, category, quantity, date, time, phone, address,
                 owner, owner_name, status=PENDING, created_at=None):
        self.id = id
        self.category = category
        self.quantity = quantity
        self.date = date
        self.time = time
        self.phone = phone
        self.address = address
        self.owner = owner
        self.owner_name = owner_name
        self.status = status
        self.created_at = utcnow_iso() if created_at is None else created_at

    def to_document(self):
        # field names are the ones the hosted store has always used
        return {
            'itemType': self.category,
            'quantity': self.quantity,
            'date': self.date,
            'time': self.time,
            'mobile': self.phone,
            'address': self.address,
            'userId': self.owner,
            'userName': self.owner_name,
            'status': self.status,
            'createdAt': self.created_at,
        }

    @classmethod
    def from_document(cls, key, data):
        return cls(
            id=key,
            category=data.get('itemType', OTHER),
            quantity=int(data.get('quantity', 1)),
            date=data.get('date', ''),
            time=data.get('time', ''),
            phone=data.get('mobile', ''),
            address=data.get('address', ''),
            owner=data.get('userId', ''),
            owner_name=data.get('userName', ''),
            status=data.get('status', PENDING),
            created_at=data.get('createdAt', ''),
        )

    def __repr__(self):
        return f"<PickupRequest {self.id} {self.quantity}x {self.category} {self.status}>"
