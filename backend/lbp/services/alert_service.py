"""
Automatic alerts (low register balance, overdue unpaid invoices).

Run periodically from the CLI (see ``flask alerts``). Alerts are a
best-effort side channel: a failing notifier is logged and never aborts the
scan.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Optional

from flask import current_app

from ..extensions import db
from ..models import CashRegister, Invoice, InvoiceState
from ..time_utils import today
from ..validation import money_str
from .cash_service import get_balance


@dataclass(frozen=True)
class LowBalanceAlert:
    register_id: int
    register_name: str
    balance: Decimal
    threshold: Decimal


@dataclass(frozen=True)
class OverdueInvoice:
    invoice_id: int
    number: str
    days_overdue: int
    remaining_amount: Decimal


Notifier = Callable[[LowBalanceAlert], None]


def check_register_balances(notify: Optional[Notifier] = None) -> list[LowBalanceAlert]:
    """Compare every active register's balance with its alert threshold."""
    current_app.logger.info("Checking cash register balances...")

    alerts = []
    registers = db.session.query(CashRegister).filter(
        CashRegister.is_active.is_(True)
    ).order_by(CashRegister.id).all()

    for register in registers:
        balance = get_balance(register.id)
        threshold = Decimal(register.alert_threshold)
        if balance >= threshold:
            continue

        alert = LowBalanceAlert(register.id, register.name, balance, threshold)
        alerts.append(alert)
        current_app.logger.warning(
            "Low cash register balance - %s: %s (threshold %s)",
            register.name, money_str(balance), money_str(threshold),
        )

        if notify is None:
            continue
        try:
            notify(alert)
        except Exception:
            current_app.logger.exception("Low balance notification failed for register %s", register.id)

    if not registers:
        current_app.logger.info("No cash register to check")

    return alerts


def find_overdue_invoices(grace_days: int | None = None, on: date | None = None) -> list[OverdueInvoice]:
    """
    Definitive invoices not fully paid and older than ``grace_days``.
    """
    if grace_days is None:
        grace_days = current_app.config["OVERDUE_INVOICE_DAYS"]
    on = on or today()
    cutoff = on - timedelta(days=grace_days)

    invoices = db.session.query(Invoice).filter(
        Invoice.state == int(InvoiceState.DEFINITIVE),
        Invoice.paid_amount < Invoice.amount_ttc,
        Invoice.invoice_date < cutoff,
    ).order_by(Invoice.invoice_date, Invoice.id).all()

    current_app.logger.info("Found %d unpaid invoice(s) older than %d days", len(invoices), grace_days)

    overdue = []
    for invoice in invoices:
        item = OverdueInvoice(
            invoice_id=invoice.id,
            number=invoice.number,
            days_overdue=(on - invoice.invoice_date).days,
            remaining_amount=invoice.remaining_amount,
        )
        overdue.append(item)
        current_app.logger.warning(
            "Invoice %s overdue by %d days, remaining %s",
            item.number, item.days_overdue, money_str(item.remaining_amount),
        )
    return overdue
