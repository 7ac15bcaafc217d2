from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from lbp.time_utils import to_utc_z
from lbp.validation import money_str


class Agency(db.Model):
    """
    Agency (branch office) owning parcels and cash registers.

    Only the fields the ledger reads are modelled here: the display name used
    by reconciliation reports and the currency inherited by invoices.
    """
    __tablename__ = "agencies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(20), nullable=False, unique=True, index=True)
    name = db.Column(db.String(100), nullable=False)
    currency = db.Column(db.String(10), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Agency id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "currency": self.currency,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Parcel(db.Model):
    """
    Parcel ("colis"): the unit being invoiced.

    Reference format: LBP-MMYY-NNN (generated by the intake module).
    """
    __tablename__ = "parcels"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    reference = db.Column(db.String(32), nullable=False, unique=True, index=True)
    agency_id = db.Column(db.Integer, db.ForeignKey("agencies.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    agency = db.relationship("Agency", backref=db.backref("parcels", lazy=True))
    lines = db.relationship("ParcelLine", backref="parcel", lazy=True, order_by="ParcelLine.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reference": self.reference,
            "agency_id": self.agency_id,
            "lines": [line.to_dict() for line in self.lines],
            "created_at": to_utc_z(self.created_at),
        }


class ParcelLine(db.Model):
    """Goods line ("marchandise") carried by a parcel, with its pricing."""
    __tablename__ = "parcel_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    parcel_id = db.Column(db.Integer, db.ForeignKey("parcels.id"), nullable=False, index=True)

    description = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    packaging_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    insurance_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    agency_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    @property
    def line_total(self) -> Decimal:
        return (
            Decimal(self.unit_price or 0) * int(self.quantity or 0)
            + Decimal(self.packaging_fee or 0)
            + Decimal(self.insurance_fee or 0)
            + Decimal(self.agency_fee or 0)
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "parcel_id": self.parcel_id,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "packaging_fee": money_str(self.packaging_fee),
            "insurance_fee": money_str(self.insurance_fee),
            "agency_fee": money_str(self.agency_fee),
            "line_total": money_str(self.line_total),
        }
