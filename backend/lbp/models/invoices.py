from __future__ import annotations

from decimal import Decimal
from enum import IntEnum

from ..extensions import db
from lbp.time_utils import to_utc_z, to_iso_date
from lbp.validation import money_str


class InvoiceState(IntEnum):
    PROFORMA = 0
    DEFINITIVE = 1
    CANCELLED = 2


class Invoice(db.Model):
    """
    Invoice ("facture") issued for a parcel.

    LIFECYCLE:
    - PROFORMA: created from the parcel lines, payments accepted
    - DEFINITIVE: validated explicitly, or reached automatically once fully paid
    - CANCELLED: terminal

    CONCURRENCY: version_id is an optimistic lock; two writers updating the
    same invoice cannot both commit.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_state_date", "state", "invoice_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable reference (FCO-MMYY-NNN)
    number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    # One invoice per parcel
    parcel_id = db.Column(db.Integer, db.ForeignKey("parcels.id"), nullable=False, unique=True)

    amount_ht = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    amount_ttc = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    state = db.Column(db.Integer, nullable=False, default=int(InvoiceState.PROFORMA), index=True)
    # True when DEFINITIVE was reached by a payment rather than by validation
    auto_finalized = db.Column(db.Boolean, nullable=False, default=False)

    currency = db.Column(db.String(10), nullable=False, default="XOF")
    exchange_rate = db.Column(db.Numeric(12, 4), nullable=False, default=1)

    invoice_date = db.Column(db.Date, nullable=False, index=True)
    user_code = db.Column(db.String(64), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    parcel = db.relationship("Parcel", backref=db.backref("invoice", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def invoice_state(self) -> InvoiceState:
        return InvoiceState(self.state)

    @property
    def remaining_amount(self) -> Decimal:
        return Decimal(self.amount_ttc or 0) - Decimal(self.paid_amount or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "parcel_id": self.parcel_id,
            "parcel_reference": self.parcel.reference if self.parcel else None,
            "amount_ht": money_str(self.amount_ht),
            "amount_ttc": money_str(self.amount_ttc),
            "paid_amount": money_str(self.paid_amount),
            "remaining_amount": money_str(self.remaining_amount),
            "state": self.state,
            "state_label": self.invoice_state.name,
            "auto_finalized": self.auto_finalized,
            "currency": self.currency,
            "exchange_rate": str(self.exchange_rate) if self.exchange_rate is not None else None,
            "invoice_date": to_iso_date(self.invoice_date),
            "user_code": self.user_code,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
