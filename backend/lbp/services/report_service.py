# Overview: Service-layer operations for reporting; read-only folds over movements and payments.

from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal

from ..errors import BadRequestError
from ..extensions import db
from ..models import Agency, CashMovement, Invoice, MovementKind, Parcel, Payment, PaymentState, INFLOW_KINDS
from ..time_utils import as_date, day_bounds, today, to_iso_date
from ..validation import money_str
from .cash_service import fold_balance, get_balance, get_register


ZERO = Decimal("0.00")


def _check_range(start, end) -> tuple[date, date]:
    start, end = as_date(start), as_date(end)
    if start is None or end is None:
        raise BadRequestError("date_debut et date_fin sont obligatoires")
    if end < start:
        raise BadRequestError("date_fin doit être postérieure ou égale à date_debut")
    return start, end


def point_de_caisse(register_id: int, day: date | None = None) -> dict:
    """
    Daily close for a register.

    entrees: every non-disbursement movement of the day
    sorties: disbursements of the day
    solde: the register's current running balance
    """
    register = get_register(register_id)
    day = as_date(day) or today()

    rows = db.session.query(CashMovement.kind, CashMovement.amount).filter(
        CashMovement.register_id == register.id,
        CashMovement.movement_date == day,
    ).all()

    entrees = sum((Decimal(a) for k, a in rows if k != MovementKind.DISBURSEMENT.value), ZERO)
    sorties = sum((Decimal(a) for k, a in rows if k == MovementKind.DISBURSEMENT.value), ZERO)
    start, end = day_bounds(day)

    return {
        "register_id": register.id,
        "date": to_iso_date(day),
        "from": start.isoformat(),
        "to": end.isoformat(timespec="milliseconds"),
        "entrees": money_str(entrees),
        "sorties": money_str(sorties),
        "solde": money_str(get_balance(register.id)),
        "mouvements_count": len(rows),
    }


def grandes_lignes(register_id: int, start: date, end: date) -> dict:
    """
    Period summary of a register, by movement kind.

    solde_initial folds every movement strictly before ``start`` over the
    opening balance; solde_final = solde_initial + appro - decaissement + entrees.
    """
    start, end = _check_range(start, end)
    register = get_register(register_id)

    before = db.session.query(CashMovement.kind, CashMovement.amount).filter(
        CashMovement.register_id == register.id,
        CashMovement.movement_date < start,
    ).all()
    solde_initial = fold_balance(register.opening_balance, before)

    totals = {kind: ZERO for kind in MovementKind}
    rows = db.session.query(CashMovement.kind, CashMovement.amount).filter(
        CashMovement.register_id == register.id,
        CashMovement.movement_date >= start,
        CashMovement.movement_date <= end,
    ).all()
    for kind, amount in rows:
        totals[MovementKind(kind)] += Decimal(amount)

    total_entrees = sum((totals[k] for k in INFLOW_KINDS), ZERO)
    solde_final = (
        solde_initial
        + totals[MovementKind.APPRO]
        - totals[MovementKind.DISBURSEMENT]
        + total_entrees
    )

    return {
        "register_id": register.id,
        "date_debut": to_iso_date(start),
        "date_fin": to_iso_date(end),
        "solde_initial": money_str(solde_initial),
        "total_appro": money_str(totals[MovementKind.APPRO]),
        "total_decaissement": money_str(totals[MovementKind.DISBURSEMENT]),
        "total_entrees_cheque": money_str(totals[MovementKind.INFLOW_CHECK]),
        "total_entrees_espece": money_str(totals[MovementKind.INFLOW_CASH]),
        "total_entrees_virement": money_str(totals[MovementKind.INFLOW_TRANSFER]),
        "total_entrees": money_str(total_entrees),
        "solde_final": money_str(solde_final),
        "mouvements_count": len(rows),
    }


def agency_reconciliation(start: date, end: date, agency_id: int | None = None) -> dict:
    """
    Validated payments over a period, grouped by the invoiced parcel's agency.

    Parcels without an agency are reported under "Sans agence".
    """
    start, end = _check_range(start, end)

    query = db.session.query(Agency.name, Payment.amount).select_from(Payment).join(
        Invoice, Payment.invoice_id == Invoice.id
    ).join(
        Parcel, Invoice.parcel_id == Parcel.id
    ).outerjoin(
        Agency, Parcel.agency_id == Agency.id
    ).filter(
        Payment.state == int(PaymentState.VALIDATED),
        Payment.payment_date >= start,
        Payment.payment_date <= end,
    )
    if agency_id is not None:
        query = query.filter(Parcel.agency_id == agency_id)

    amounts: dict[str, Decimal] = defaultdict(lambda: ZERO)
    counts: dict[str, int] = defaultdict(int)
    for agency_name, amount in query.all():
        name = agency_name or "Sans agence"
        amounts[name] += Decimal(amount)
        counts[name] += 1

    rows = [
        {
            "agence": name,
            "montant_total": money_str(amounts[name]),
            "nombre_paiements": counts[name],
        }
        for name in sorted(amounts)
    ]

    return {
        "date_debut": to_iso_date(start),
        "date_fin": to_iso_date(end),
        "agences": rows,
        "total_general": money_str(sum(amounts.values(), ZERO)),
        "nombre_paiements": sum(counts.values()),
    }
