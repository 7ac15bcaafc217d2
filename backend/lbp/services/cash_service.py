"""
Cash Register Ledger Service

WHY: Every coin entering or leaving an agency's cash register is a movement.
The register balance is never stored; it is folded from the movement log.

DESIGN PRINCIPLES:
- Movement log is append-only (no update/delete path)
- Amounts are non-negative; the movement kind carries the direction
- Missing registers are reported, never defaulted
- One register per agency, created by ensure_agency_registers()
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Iterable

from flask import current_app

from ..errors import BadRequestError, NotFoundError
from ..extensions import db
from ..models import Agency, CashMovement, CashRegister, Direction, MovementKind
from ..time_utils import today
from ..validation import non_negative_money, positive_money, to_money
from .concurrency import atomic


# =============================================================================
# REGISTER MANAGEMENT
# =============================================================================

def create_register(
    name: str,
    opening_balance: Any = 0,
    alert_threshold: Any = None,
    agency_id: int | None = None,
) -> CashRegister:
    """
    Create a cash register.

    Args:
        name: Display name
        opening_balance: Balance before the first movement
        alert_threshold: Low-balance alert level (config default if omitted)
        agency_id: Owning agency (optional)
    """
    if not name or not name.strip():
        raise BadRequestError("Le nom de la caisse est obligatoire")

    if agency_id is not None and db.session.get(Agency, agency_id) is None:
        raise NotFoundError(f"Agence #{agency_id} introuvable")

    if alert_threshold is None:
        alert_threshold = current_app.config["DEFAULT_ALERT_THRESHOLD"]

    register = CashRegister(
        name=name.strip(),
        opening_balance=non_negative_money(opening_balance, "solde_initial"),
        alert_threshold=non_negative_money(alert_threshold, "seuil_alerte"),
        agency_id=agency_id,
        is_active=True,
    )

    with atomic():
        db.session.add(register)

    return register


def ensure_agency_registers() -> list[CashRegister]:
    """
    Create one register for every agency that has none.

    When there is no agency and no register at all, a single default register
    is created so payments and movements always have somewhere to land.
    Safe to call repeatedly (idempotent).

    Returns:
        Registers created by this call
    """
    threshold = non_negative_money(current_app.config["DEFAULT_ALERT_THRESHOLD"], "seuil_alerte")
    covered = {
        agency_id
        for (agency_id,) in db.session.query(CashRegister.agency_id).filter(
            CashRegister.agency_id.isnot(None)
        )
    }

    created = []
    with atomic():
        for agency in db.session.query(Agency).order_by(Agency.id).all():
            if agency.id in covered:
                continue
            register = CashRegister(
                name=f"Caisse {agency.name}",
                agency_id=agency.id,
                opening_balance=Decimal("0"),
                alert_threshold=threshold,
                is_active=True,
            )
            db.session.add(register)
            created.append(register)

        if not created and db.session.query(CashRegister.id).first() is None:
            register = CashRegister(
                name=current_app.config["DEFAULT_REGISTER_NAME"],
                opening_balance=Decimal("0"),
                alert_threshold=threshold,
                is_active=True,
            )
            db.session.add(register)
            created.append(register)

    for register in created:
        current_app.logger.info("Cash register created: %s (agency=%s)", register.name, register.agency_id)

    return created


def get_register(register_id: int) -> CashRegister:
    register = db.session.get(CashRegister, register_id)
    if not register:
        raise NotFoundError(f"Caisse #{register_id} introuvable")
    return register


def list_registers(include_inactive: bool = False, agency_id: int | None = None) -> list[CashRegister]:
    query = db.session.query(CashRegister)
    if not include_inactive:
        query = query.filter(CashRegister.is_active.is_(True))
    if agency_id is not None:
        query = query.filter(CashRegister.agency_id == agency_id)
    return query.order_by(CashRegister.id).all()


def set_register_active(register_id: int, active: bool) -> CashRegister:
    """Toggle a register's active flag (the only mutation a register allows)."""
    with atomic():
        register = get_register(register_id)
        register.is_active = bool(active)
    return register


def resolve_register(register_id: int | None = None, agency_id: int | None = None) -> CashRegister:
    """
    Resolve the register a movement should be written to.

    Order: explicit register id, then the agency's active register.

    Raises:
        NotFoundError: If nothing resolves
    """
    if register_id is not None:
        return get_register(register_id)

    if agency_id is not None:
        register = db.session.query(CashRegister).filter(
            CashRegister.agency_id == agency_id,
            CashRegister.is_active.is_(True),
        ).order_by(CashRegister.id).first()
        if not register:
            raise NotFoundError(f"Aucune caisse active pour l'agence #{agency_id}")
        return register

    raise NotFoundError("Caisse non précisée et aucune agence pour la déterminer")


def get_main_register() -> CashRegister:
    """
    The active register not attached to any agency (head office register).

    Used for parcels that were registered without an agency.
    """
    register = db.session.query(CashRegister).filter(
        CashRegister.agency_id.is_(None),
        CashRegister.is_active.is_(True),
    ).order_by(CashRegister.id).first()
    if not register:
        raise NotFoundError("Aucune caisse principale (sans agence) n'est configurée")
    return register


# =============================================================================
# MOVEMENTS
# =============================================================================

def record_movement(
    kind: MovementKind,
    amount: Any,
    label: str,
    user_code: str | None,
    register_id: int | None = None,
    agency_id: int | None = None,
    movement_date: date | None = None,
    details: dict | None = None,
) -> CashMovement:
    """
    Append a movement to a register's log.

    Args:
        kind: APPRO, DISBURSEMENT or one of the INFLOW_* kinds
        amount: Strictly positive amount
        label: Free-text description
        user_code: Recording user
        register_id: Target register (resolved from agency_id when omitted)
        agency_id: Caller's agency
        movement_date: Business date (today when omitted)
        details: Optional JSON payload (dossier number, payment type...)

    Raises:
        NotFoundError: If the register does not resolve
        BadRequestError: If the amount or label is invalid
    """
    with atomic():
        register = resolve_register(register_id=register_id, agency_id=agency_id)
        movement = _record_movement_locked(
            register=register,
            kind=kind,
            amount=amount,
            label=label,
            user_code=user_code,
            movement_date=movement_date,
            details=details,
        )
    return movement


def _record_movement_locked(
    *,
    register: CashRegister,
    kind: MovementKind,
    amount: Any,
    label: str,
    user_code: str | None,
    movement_date: date | None = None,
    details: dict | None = None,
    payment_id: int | None = None,
    allow_inactive: bool = False,
) -> CashMovement:
    """
    Write a movement inside the caller's transaction (no commit).

    allow_inactive lets a reversal land on a register deactivated since the
    original movement.
    """
    if not isinstance(kind, MovementKind):
        raise BadRequestError(f"Type de mouvement invalide: {kind!r}")
    if not label or not label.strip():
        raise BadRequestError("Le libellé du mouvement est obligatoire")
    if not register.is_active and not allow_inactive:
        raise BadRequestError(f"La caisse #{register.id} est inactive")

    movement = CashMovement(
        register_id=register.id,
        kind=kind.value,
        label=label.strip()[:255],
        amount=positive_money(amount),
        movement_date=movement_date or today(),
        user_code=user_code,
        details=details,
        payment_id=payment_id,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def list_movements(
    register_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
    kind: MovementKind | None = None,
    limit: int | None = None,
) -> list[CashMovement]:
    """Movements matching the filters, newest first. Date bounds are inclusive."""
    query = db.session.query(CashMovement)
    if register_id is not None:
        query = query.filter(CashMovement.register_id == register_id)
    if kind is not None:
        query = query.filter(CashMovement.kind == kind.value)
    if start is not None:
        query = query.filter(CashMovement.movement_date >= start)
    if end is not None:
        query = query.filter(CashMovement.movement_date <= end)
    query = query.order_by(CashMovement.created_at.desc(), CashMovement.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


# =============================================================================
# BALANCE
# =============================================================================

def signed_amount(kind: MovementKind, amount: Any) -> Decimal:
    value = to_money(amount)
    return -value if kind.direction is Direction.DEBIT else value


def fold_balance(opening_balance: Any, movements: Iterable[tuple[str, Any]]) -> Decimal:
    """
    opening + credits - debits over (kind, amount) pairs.

    Order independent: the result is a plain sum of signed amounts.
    """
    balance = to_money(opening_balance or 0)
    for kind, amount in movements:
        balance += signed_amount(MovementKind(kind), amount)
    return balance


def get_balance(register_id: int) -> Decimal:
    """
    Current balance of a register, folded over its full movement history.

    Raises:
        NotFoundError: If the register does not exist
    """
    register = get_register(register_id)
    rows = db.session.query(CashMovement.kind, CashMovement.amount).filter(
        CashMovement.register_id == register.id
    ).all()
    return fold_balance(register.opening_balance, rows)
