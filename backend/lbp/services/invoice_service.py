"""
Invoice Ledger Service

WHY: Each parcel is billed by exactly one invoice. The invoice starts as a
proforma, becomes definitive when validated or fully paid, and can be
cancelled.

DESIGN PRINCIPLES:
- Amounts derive from the parcel lines (TTC = HT, no tax surcharge)
- References FCO-MMYY-NNN follow a per-month counter
- State changes go through the transition table below, never inline
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from flask import current_app

from ..errors import BadRequestError, ConflictError, NotFoundError
from ..extensions import db
from ..models import Invoice, InvoiceState, Parcel, Payment, PaymentState
from ..time_utils import today
from .concurrency import atomic, flush_or_raise, lock_for_update


REFERENCE_PREFIX = "FCO"

# target state -> states it may be reached from
ALLOWED_TRANSITIONS: dict[InvoiceState, frozenset[InvoiceState]] = {
    InvoiceState.DEFINITIVE: frozenset({InvoiceState.PROFORMA}),
    InvoiceState.CANCELLED: frozenset({InvoiceState.PROFORMA, InvoiceState.DEFINITIVE}),
    # Only reachable by undoing an automatic finalization (payment cancelled)
    InvoiceState.PROFORMA: frozenset({InvoiceState.DEFINITIVE}),
}


# =============================================================================
# STATE MACHINE
# =============================================================================

def transition(invoice: Invoice, target: InvoiceState, *, automatic: bool = False) -> None:
    """
    Move an invoice to ``target`` if the transition is allowed.

    Args:
        automatic: True when the change is a side effect of a payment
            (finalization on full payment, or its reversal)

    Raises:
        BadRequestError: If the transition is not allowed
    """
    current = invoice.invoice_state
    if current not in ALLOWED_TRANSITIONS[target]:
        raise BadRequestError(
            f"Transition impossible pour la facture {invoice.number}: "
            f"{current.name} -> {target.name}"
        )

    if target is InvoiceState.PROFORMA and not (automatic and invoice.auto_finalized):
        raise BadRequestError(
            f"La facture {invoice.number} a été validée manuellement et ne peut redevenir proforma"
        )

    invoice.state = int(target)
    if target is InvoiceState.DEFINITIVE:
        invoice.auto_finalized = automatic
    elif target is InvoiceState.PROFORMA:
        invoice.auto_finalized = False


# =============================================================================
# PROFORMA CREATION
# =============================================================================

def compute_amount_ht(parcel: Parcel) -> Decimal:
    """Σ(unit_price × quantity + packaging + insurance + agency fee) over the lines."""
    return sum((line.line_total for line in parcel.lines), Decimal("0")).quantize(Decimal("0.01"))


def generate_reference(on: date | None = None) -> str:
    """
    Next invoice reference for the month of ``on``.

    Scans existing references with the month's prefix and takes the highest
    numeric suffix + 1; the counter restarts at 001 each calendar month.
    """
    on = on or today()
    prefix = f"{REFERENCE_PREFIX}-{on:%m%y}-"

    numbers = db.session.query(Invoice.number).filter(Invoice.number.like(f"{prefix}%")).all()
    last = 0
    for (number,) in numbers:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            last = max(last, int(suffix))

    return f"{prefix}{last + 1:03d}"


def create_proforma(parcel_id: int, user_code: str | None, invoice_date: date | None = None) -> Invoice:
    """
    Create the proforma invoice of a parcel.

    Args:
        parcel_id: Parcel being invoiced
        user_code: Recording user
        invoice_date: Business date (today when omitted); drives the reference month

    Raises:
        NotFoundError: If the parcel does not exist
        BadRequestError: If the parcel already has an invoice
        ConflictError: If another proforma took the same number concurrently
    """
    invoice_date = invoice_date or today()

    with atomic():
        parcel = db.session.get(Parcel, parcel_id)
        if not parcel:
            raise NotFoundError(f"Colis #{parcel_id} introuvable")

        reference = parcel.reference
        if _existing_invoice_id(parcel.id):
            raise BadRequestError(f"Une facture existe déjà pour le colis {parcel.reference}")

        amount_ht = compute_amount_ht(parcel)
        currency = (parcel.agency.currency if parcel.agency else None) or current_app.config["DEFAULT_CURRENCY"]

        invoice = Invoice(
            number=generate_reference(invoice_date),
            parcel_id=parcel.id,
            amount_ht=amount_ht,
            amount_ttc=amount_ht,
            paid_amount=Decimal("0"),
            state=int(InvoiceState.PROFORMA),
            auto_finalized=False,
            currency=currency,
            exchange_rate=Decimal("1"),
            invoice_date=invoice_date,
            user_code=user_code,
        )
        db.session.add(invoice)

        # The unique constraints on parcel_id/number catch a concurrent creation
        flush_or_raise(lambda: _creation_clash(parcel_id, reference))

    return invoice


# =============================================================================
# VALIDATION / CANCELLATION
# =============================================================================

def validate_invoice(invoice_id: int) -> Invoice:
    """
    Explicitly turn a proforma into a definitive invoice.

    Validating an invoice that a payment already finalized confirms it: a
    later payment cancellation will no longer send it back to proforma.
    """
    with atomic():
        invoice = _get_invoice_locked(invoice_id)
        if invoice.invoice_state is InvoiceState.DEFINITIVE and invoice.auto_finalized:
            invoice.auto_finalized = False
        else:
            transition(invoice, InvoiceState.DEFINITIVE)
    return invoice


def cancel_invoice(invoice_id: int) -> Invoice:
    """
    Cancel an invoice.

    Refused while validated payments remain on it: cancel those first so the
    cash ledger is reversed with them.
    """
    with atomic():
        invoice = _get_invoice_locked(invoice_id)
        has_payments = db.session.query(Payment.id).filter(
            Payment.invoice_id == invoice.id,
            Payment.state == int(PaymentState.VALIDATED),
        ).first()
        if has_payments:
            raise BadRequestError(
                f"La facture {invoice.number} a des paiements validés; annulez-les d'abord"
            )
        transition(invoice, InvoiceState.CANCELLED)
    return invoice


# =============================================================================
# QUERIES
# =============================================================================

def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError(f"Facture #{invoice_id} introuvable")
    return invoice


def find_by_parcel_reference(reference: str) -> Invoice | None:
    return db.session.query(Invoice).join(Parcel, Invoice.parcel_id == Parcel.id).filter(
        Parcel.reference == reference
    ).first()


def list_invoices(state: InvoiceState | None = None) -> list[Invoice]:
    query = db.session.query(Invoice)
    if state is not None:
        query = query.filter(Invoice.state == int(state))
    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def _get_invoice_locked(invoice_id: int) -> Invoice:
    invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
    if not invoice:
        raise NotFoundError(f"Facture #{invoice_id} introuvable")
    return invoice


def _existing_invoice_id(parcel_id: int) -> int | None:
    row = db.session.query(Invoice.id).filter(Invoice.parcel_id == parcel_id).first()
    return row[0] if row else None


def _creation_clash(parcel_id: int, reference: str):
    """
    Error for a proforma insert rejected by a unique constraint.

    Another writer either invoiced the same parcel first (duplicate) or took
    the same monthly number for another parcel (resubmit).
    """
    if _existing_invoice_id(parcel_id):
        return BadRequestError(f"Une facture existe déjà pour le colis {reference}")
    return ConflictError("Numéro de facture attribué simultanément, veuillez réessayer")
