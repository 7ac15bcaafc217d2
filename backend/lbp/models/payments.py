from __future__ import annotations

from enum import Enum, IntEnum

from ..extensions import db
from lbp.time_utils import to_utc_z, to_iso_date
from lbp.validation import money_str


class PaymentMode(str, Enum):
    CASH = "comptant"
    TERMS_30 = "30j"
    TERMS_45 = "45j"
    TERMS_60 = "60j"
    TERMS_90 = "90j"
    CHECK = "cheque"
    TRANSFER = "virement"
    ORANGE_MONEY = "orange_money"
    WAVE = "wave"


class PaymentState(IntEnum):
    CANCELLED = 0
    VALIDATED = 1


class PaymentLinkStatus(str, Enum):
    PENDING = "en_attente"
    PAID = "paye"
    EXPIRED = "expire"
    CANCELLED = "annule"


class Payment(db.Model):
    """
    Payment recorded against an invoice.

    DESIGN: One invoice can receive several partial payments. A cancelled
    payment stays in the table (state = CANCELLED) for the audit trail.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_state_date", "state", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    change_given = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    mode = db.Column(db.String(32), nullable=False, default=PaymentMode.CASH.value, index=True)

    # Cheque number, transfer reference, mobile-money transaction id...
    reference = db.Column(db.String(128), nullable=True)

    payment_date = db.Column(db.Date, nullable=False, index=True)
    state = db.Column(db.Integer, nullable=False, default=int(PaymentState.VALIDATED), index=True)
    user_code = db.Column(db.String(64), nullable=True)

    cancelled_by = db.Column(db.String(64), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    invoice = db.relationship("Invoice", backref=db.backref("payments", lazy=True))

    @property
    def is_validated(self) -> bool:
        return self.state == PaymentState.VALIDATED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "amount": money_str(self.amount),
            "change_given": money_str(self.change_given),
            "mode": self.mode,
            "reference": self.reference,
            "payment_date": to_iso_date(self.payment_date),
            "state": self.state,
            "user_code": self.user_code,
            "cancelled_by": self.cancelled_by,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "created_at": to_utc_z(self.created_at),
        }


class PaymentLink(db.Model):
    """
    Tokenized mobile-money payment link for an invoice.

    LIFECYCLE: en_attente -> paye | expire | annule (all terminal).
    """
    __tablename__ = "payment_links"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    token = db.Column(db.String(64), nullable=False, unique=True, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=PaymentLinkStatus.PENDING.value, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    provider = db.Column(db.String(32), nullable=True)  # orange_money, wave...
    provider_metadata = db.Column(db.JSON, nullable=True)

    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    invoice = db.relationship("Invoice", backref=db.backref("payment_links", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "token": self.token,
            "invoice_id": self.invoice_id,
            "status": self.status,
            "amount": money_str(self.amount),
            "provider": self.provider,
            "provider_metadata": self.provider_metadata,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "expires_at": to_utc_z(self.expires_at),
            "payment_id": self.payment_id,
            "created_at": to_utc_z(self.created_at),
        }
