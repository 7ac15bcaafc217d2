# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Processing Service

WHY: Record what customers pay against their invoices and keep the cash
ledger in step with it.

DESIGN PRINCIPLES:
- Partial payments: an invoice can receive several payments
- No over-payment: a payment never exceeds the remaining balance
- Full payment finalizes a proforma automatically
- Payment, invoice update and cash movement commit together or not at all
- Cancelling a payment reverses all three (offsetting DISBURSEMENT movement)
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from ..errors import BadRequestError, NotFoundError
from ..extensions import db
from ..models import (
    CashMovement,
    Invoice,
    InvoiceState,
    MovementKind,
    Payment,
    PaymentMode,
    PaymentState,
)
from ..time_utils import today, utcnow
from ..validation import non_negative_money, parse_enum, positive_money, money_str
from .cash_service import _record_movement_locked, get_main_register, resolve_register
from .concurrency import atomic, lock_for_update
from .invoice_service import transition


# =============================================================================
# PAYMENT MODE -> CASH MOVEMENT KIND
# =============================================================================

MODE_MOVEMENT_KINDS: dict[PaymentMode, MovementKind] = {
    PaymentMode.CASH: MovementKind.INFLOW_CASH,
    PaymentMode.TERMS_30: MovementKind.INFLOW_CASH,
    PaymentMode.TERMS_45: MovementKind.INFLOW_CASH,
    PaymentMode.TERMS_60: MovementKind.INFLOW_CASH,
    PaymentMode.TERMS_90: MovementKind.INFLOW_CASH,
    PaymentMode.CHECK: MovementKind.INFLOW_CHECK,
    PaymentMode.TRANSFER: MovementKind.INFLOW_TRANSFER,
    PaymentMode.ORANGE_MONEY: MovementKind.INFLOW_TRANSFER,
    PaymentMode.WAVE: MovementKind.INFLOW_TRANSFER,
}


def movement_kind_for_mode(mode: PaymentMode | str) -> MovementKind:
    return MODE_MOVEMENT_KINDS[parse_enum(PaymentMode, mode, "mode_paiement")]


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def record_payment(
    invoice_id: int,
    amount: Any,
    mode: PaymentMode | str,
    user_code: str | None,
    payment_date: date | None = None,
    reference: str | None = None,
    change_given: Any = 0,
) -> Payment:
    """
    Record a payment against an invoice.

    Args:
        invoice_id: Invoice being paid
        amount: Amount paid (must not exceed the remaining balance)
        mode: comptant, 30j/45j/60j/90j, cheque, virement, orange_money, wave
        user_code: Recording user
        payment_date: Business date (today when omitted)
        reference: Cheque number, transfer or transaction reference (optional)
        change_given: Change handed back for cash over-tender (informational)

    Returns:
        Payment record

    Raises:
        NotFoundError: If the invoice or its register does not exist
        BadRequestError: If the invoice is settled/cancelled or the amount is invalid
        ConflictError: If the invoice was modified concurrently
    """
    payment_mode = parse_enum(PaymentMode, mode, "mode_paiement")
    amount = positive_money(amount)
    change_given = non_negative_money(change_given or 0, "monnaie_rendue")

    with atomic():
        payment = _record_payment_locked(
            invoice_id=invoice_id,
            amount=amount,
            mode=payment_mode,
            user_code=user_code,
            payment_date=payment_date or today(),
            reference=reference,
            change_given=change_given,
        )
    return payment


def _record_payment_locked(
    *,
    invoice_id: int,
    amount: Decimal,
    mode: PaymentMode,
    user_code: str | None,
    payment_date: date,
    reference: str | None,
    change_given: Decimal,
) -> Payment:
    """Payment steps inside the caller's transaction (no commit)."""
    invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
    if not invoice:
        raise NotFoundError(f"Facture #{invoice_id} introuvable")

    if invoice.invoice_state is InvoiceState.CANCELLED:
        raise BadRequestError(f"La facture {invoice.number} est annulée")

    remaining = invoice.remaining_amount
    if remaining <= 0:
        raise BadRequestError(f"La facture {invoice.number} est déjà entièrement payée")

    if amount > remaining:
        raise BadRequestError(
            f"Le montant {money_str(amount)} dépasse le solde restant ({money_str(remaining)})"
        )

    payment = Payment(
        invoice_id=invoice.id,
        amount=amount,
        change_given=change_given,
        mode=mode.value,
        reference=reference,
        payment_date=payment_date,
        state=int(PaymentState.VALIDATED),
        user_code=user_code,
    )
    db.session.add(payment)
    db.session.flush()  # Get payment ID

    invoice.paid_amount = Decimal(invoice.paid_amount or 0) + amount
    if invoice.paid_amount >= invoice.amount_ttc and invoice.invoice_state is InvoiceState.PROFORMA:
        transition(invoice, InvoiceState.DEFINITIVE, automatic=True)
    db.session.flush()  # Version check on the invoice

    parcel = invoice.parcel
    register = _register_for_invoice(invoice)
    _record_movement_locked(
        register=register,
        kind=MODE_MOVEMENT_KINDS[mode],
        amount=amount,
        label=f"Paiement facture {invoice.number} - colis {parcel.reference}",
        user_code=user_code,
        movement_date=payment_date,
        details={
            "invoice_number": invoice.number,
            "parcel_reference": parcel.reference,
            "payment_mode": mode.value,
            "payment_reference": reference,
        },
        payment_id=payment.id,
    )

    return payment


def _register_for_invoice(invoice: Invoice):
    agency_id = invoice.parcel.agency_id if invoice.parcel else None
    if agency_id is None:
        return get_main_register()
    return resolve_register(agency_id=agency_id)


# =============================================================================
# PAYMENT CANCELLATION / VALIDATION
# =============================================================================

def cancel_payment(payment_id: int, user_code: str | None) -> Payment:
    """
    Cancel a payment.

    WHY: Entry mistakes happen. Cancelling keeps the payment row for the audit
    trail and reverses its effects:
    - the amount is taken back out of the invoice's paid amount
    - an invoice finalized by payment returns to proforma once underpaid
    - an offsetting DISBURSEMENT is written on the register that received it

    Already cancelled payments are returned unchanged.
    """
    with atomic():
        payment = lock_for_update(db.session.query(Payment).filter_by(id=payment_id)).first()
        if not payment:
            raise NotFoundError(f"Paiement #{payment_id} introuvable")

        if payment.state == PaymentState.CANCELLED:
            return payment

        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=payment.invoice_id)).first()

        payment.state = int(PaymentState.CANCELLED)
        payment.cancelled_by = user_code
        payment.cancelled_at = utcnow()

        invoice.paid_amount = Decimal(invoice.paid_amount or 0) - Decimal(payment.amount)
        if (
            invoice.invoice_state is InvoiceState.DEFINITIVE
            and invoice.auto_finalized
            and invoice.paid_amount < invoice.amount_ttc
        ):
            transition(invoice, InvoiceState.PROFORMA, automatic=True)
        db.session.flush()

        inflow = db.session.query(CashMovement).filter(
            CashMovement.payment_id == payment.id,
            CashMovement.kind != MovementKind.DISBURSEMENT.value,
        ).order_by(CashMovement.id).first()
        register = inflow.register if inflow else _register_for_invoice(invoice)

        _record_movement_locked(
            register=register,
            kind=MovementKind.DISBURSEMENT,
            amount=payment.amount,
            label=f"Annulation paiement #{payment.id} facture {invoice.number}",
            user_code=user_code,
            details={
                "invoice_number": invoice.number,
                "reversed_movement_id": inflow.id if inflow else None,
            },
            payment_id=payment.id,
            allow_inactive=True,
        )

    return payment


def validate_payment(payment_id: int) -> Payment:
    """
    Confirm a payment. Cancelled payments cannot be brought back; record a
    new payment instead.
    """
    payment = get_payment(payment_id)
    if payment.state == PaymentState.CANCELLED:
        raise BadRequestError(f"Le paiement #{payment_id} est annulé et ne peut être revalidé")
    return payment


# =============================================================================
# QUERIES
# =============================================================================

def get_payment(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise NotFoundError(f"Paiement #{payment_id} introuvable")
    return payment


def list_payments(invoice_id: int | None = None, include_cancelled: bool = False) -> list[Payment]:
    query = db.session.query(Payment)
    if invoice_id is not None:
        query = query.filter(Payment.invoice_id == invoice_id)
    if not include_cancelled:
        query = query.filter(Payment.state == int(PaymentState.VALIDATED))
    return query.order_by(Payment.payment_date.desc(), Payment.id.desc()).all()


def get_invoice_payment_summary(invoice_id: int) -> dict:
    """
    Payment summary for an invoice.

    Returns:
        - amount_ttc: Invoice total
        - paid_amount: Amount paid so far
        - remaining_amount: Amount still owed
        - state: Invoice state
        - payments: Validated payments, newest first
    """
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError(f"Facture #{invoice_id} introuvable")

    return {
        "invoice_id": invoice.id,
        "number": invoice.number,
        "amount_ttc": money_str(invoice.amount_ttc),
        "paid_amount": money_str(invoice.paid_amount),
        "remaining_amount": money_str(invoice.remaining_amount),
        "state": invoice.state,
        "payments": [p.to_dict() for p in list_payments(invoice.id)],
    }
