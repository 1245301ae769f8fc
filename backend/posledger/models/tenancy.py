from __future__ import annotations

from ..extensions import db
from posledger.time_utils import to_utc_z


class Store(db.Model):
    """
    Retail outlet and the unit of tenant isolation.

    MULTI-TENANT: Every store-owned row (products, sales, movements, cash flow,
    customers) carries store_id, and every read filters on it. A store is owned
    by exactly one user; the owner's subscription plan caps how many active
    stores they may hold (see quota_service).
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.Index("ix_stores_owner_active", "owner_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Stores and users reference each other; the owner FK is emitted after both tables exist
    owner_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", use_alter=True, name="fk_stores_owner_id_users"),
        nullable=False,
        index=True,
    )

    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.Text, nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)

    # Store-level configuration
    timezone = db.Column(db.String(64), nullable=False, default="UTC")
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)  # Basis points (e.g., 850 = 8.5%)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    owner = db.relationship("User", foreign_keys=[owner_id], backref=db.backref("owned_stores", lazy=True))

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r} owner_id={self.owner_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "description": self.description,
            "timezone": self.timezone,
            "tax_rate_bps": self.tax_rate_bps,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
