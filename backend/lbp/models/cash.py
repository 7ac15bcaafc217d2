from __future__ import annotations

from enum import Enum

from ..extensions import db
from lbp.time_utils import to_utc_z, to_iso_date
from lbp.validation import money_str


class Direction(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class MovementKind(str, Enum):
    """
    Kind of cash movement. The direction is carried by the kind itself;
    amounts are always stored non-negative.
    """
    APPRO = "APPRO"
    DISBURSEMENT = "DECAISSEMENT"
    INFLOW_CHECK = "ENTREE_CHEQUE"
    INFLOW_CASH = "ENTREE_ESPECE"
    INFLOW_TRANSFER = "ENTREE_VIREMENT"

    @property
    def direction(self) -> Direction:
        return Direction.DEBIT if self is MovementKind.DISBURSEMENT else Direction.CREDIT

    @property
    def is_inflow(self) -> bool:
        return self in INFLOW_KINDS


INFLOW_KINDS = frozenset({
    MovementKind.INFLOW_CHECK,
    MovementKind.INFLOW_CASH,
    MovementKind.INFLOW_TRANSFER,
})


class CashRegister(db.Model):
    """
    Cash register ("caisse").

    DESIGN: Registers are persistent (never deleted). The balance is not
    stored; it is always derived from the opening balance and the movement log.
    Only the active flag changes after creation.
    """
    __tablename__ = "cash_registers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    opening_balance = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    alert_threshold = db.Column(db.Numeric(12, 2), nullable=False, default=50000)
    agency_id = db.Column(db.Integer, db.ForeignKey("agencies.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    agency = db.relationship("Agency", backref=db.backref("cash_registers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "opening_balance": money_str(self.opening_balance),
            "alert_threshold": money_str(self.alert_threshold),
            "agency_id": self.agency_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CashMovement(db.Model):
    """
    Append-only cash movement ("mouvement de caisse").

    IMMUTABLE: Rows are never updated or deleted. Corrections are recorded as
    new offsetting movements (e.g. a DISBURSEMENT reversing a cancelled payment).
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.Index("ix_cash_movements_register_date", "register_id", "movement_date"),
        db.CheckConstraint("amount >= 0", name="ck_cash_movements_amount_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)

    kind = db.Column(db.String(32), nullable=False, index=True)
    label = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    movement_date = db.Column(db.Date, nullable=False, index=True)

    user_code = db.Column(db.String(64), nullable=True)
    details = db.Column(db.JSON, nullable=True)

    # Set when the movement was produced by a payment (inflow or its reversal)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    register = db.relationship("CashRegister", backref=db.backref("movements", lazy=True))

    @property
    def movement_kind(self) -> MovementKind:
        return MovementKind(self.kind)

    def to_dict(self) -> dict:
        kind = self.movement_kind
        return {
            "id": self.id,
            "register_id": self.register_id,
            "kind": kind.value,
            "direction": kind.direction.value,
            "label": self.label,
            "amount": money_str(self.amount),
            "movement_date": to_iso_date(self.movement_date),
            "user_code": self.user_code,
            "details": self.details,
            "payment_id": self.payment_id,
            "created_at": to_utc_z(self.created_at),
        }
