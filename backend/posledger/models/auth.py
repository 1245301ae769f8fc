from __future__ import annotations

from ..extensions import db

ROLE_CASHIER = "cashier"
ROLE_STAFF = "staff"
ROLE_OWNER = "owner"
ROLE_ADMINISTRATOR = "administrator"

ROLES = (ROLE_CASHIER, ROLE_STAFF, ROLE_OWNER, ROLE_ADMINISTRATOR)


class User(db.Model):
    """
    User accounts for attribution.

    Cashiers and staff are assigned to one store; owners hold stores through
    Store.owner_id; administrators run the SaaS side and are not store-bound.

    WHY: Every sale and movement must be attributable. No shared logins.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_store_active", "store_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=False)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(32), nullable=False, default=ROLE_CASHIER)

    # Store association (nullable for owners and administrators)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", foreign_keys=[store_id], backref=db.backref("users", lazy=True))

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role,
            "store_id": self.store_id,
            "is_active": self.is_active,
        }
