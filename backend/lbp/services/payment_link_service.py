"""
Mobile-money payment links.

A link carries a random token the customer opens to pay an invoice through
a provider (Orange Money, Wave). The provider's callback turns a successful
payment into a regular payment, recorded as the online-payment system user.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Any

from flask import current_app

from ..errors import BadRequestError, NotFoundError
from ..extensions import db
from ..models import Invoice, InvoiceState, PaymentLink, PaymentLinkStatus, PaymentMode
from ..time_utils import today, utcnow
from ..validation import money_str, positive_money
from .concurrency import atomic, lock_for_update
from .payment_service import _record_payment_locked


SUCCESS_STATUS = "SUCCESS"


def provider_payment_mode(provider: str | None) -> PaymentMode:
    p = (provider or "").lower()
    if "orange" in p:
        return PaymentMode.ORANGE_MONEY
    if "wave" in p:
        return PaymentMode.WAVE
    return PaymentMode.CASH


def create_link(invoice_id: int, amount: Any = None, ttl_hours: int | None = None) -> PaymentLink:
    """
    Create a payment link for (part of) an invoice's remaining balance.

    Raises:
        NotFoundError: If the invoice does not exist
        BadRequestError: If the amount is not within (0, remaining]
    """
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError(f"Facture #{invoice_id} non trouvée")

    if invoice.invoice_state is InvoiceState.CANCELLED:
        raise BadRequestError(f"La facture {invoice.number} est annulée")

    remaining = invoice.remaining_amount
    if amount is None:
        if remaining <= 0:
            raise BadRequestError("Le montant du lien doit être supérieur à 0")
        link_amount = remaining
    else:
        link_amount = positive_money(amount)

    if link_amount > remaining:
        raise BadRequestError("Le montant dépasse le solde restant de la facture")

    if ttl_hours is None:
        ttl_hours = current_app.config["PAYMENT_LINK_TTL_HOURS"]

    link = PaymentLink(
        token=secrets.token_hex(32),
        invoice_id=invoice.id,
        status=PaymentLinkStatus.PENDING.value,
        amount=link_amount,
        expires_at=utcnow() + timedelta(hours=ttl_hours),
    )
    with atomic():
        db.session.add(link)
    return link


def get_pending_link(token: str, now: datetime | None = None) -> PaymentLink:
    """
    Resolve a link the customer can still pay.

    An expired link is marked as such before being rejected.
    """
    link = db.session.query(PaymentLink).filter_by(token=token).first()
    if not link:
        raise NotFoundError("Lien de paiement invalide")

    if link.status != PaymentLinkStatus.PENDING.value:
        raise BadRequestError(f"Ce lien est déjà {link.status}")

    if (now or utcnow()) > link.expires_at:
        with atomic():
            link.status = PaymentLinkStatus.EXPIRED.value
        raise BadRequestError("Ce lien a expiré")

    return link


def handle_callback(
    token: str,
    status: str,
    provider: str,
    transaction_id: str | None = None,
    customer_name: str | None = None,
    now: datetime | None = None,
) -> PaymentLink:
    """
    Apply a provider callback.

    SUCCESS records the payment (same transaction as the link update); any
    other status is logged and rejected, leaving the link pending.
    """
    now = now or utcnow()
    with atomic():
        link = lock_for_update(db.session.query(PaymentLink).filter_by(token=token)).first()
        if not link or link.status != PaymentLinkStatus.PENDING.value:
            raise BadRequestError("Lien invalide ou déjà traité")

        # An expired link is marked in this transaction, with no other write
        expired = now > link.expires_at
        if expired:
            link.status = PaymentLinkStatus.EXPIRED.value
        else:
            _apply_callback(link, status, provider, transaction_id, customer_name, now)

    if expired:
        raise BadRequestError("Ce lien a expiré")

    current_app.logger.info(
        "Mobile money payment received for invoice %s via %s (%s)",
        link.invoice.number, provider, money_str(link.amount),
    )
    return link


def _apply_callback(link, status, provider, transaction_id, customer_name, now) -> None:
    """Record the payment of a pending, unexpired link (no commit)."""
    if status != SUCCESS_STATUS:
        current_app.logger.warning("Payment failed for link %s: %s", link.token, status)
        raise BadRequestError("Le paiement n'a pas abouti")

    payment = _record_payment_locked(
        invoice_id=link.invoice_id,
        amount=link.amount,
        mode=provider_payment_mode(provider),
        user_code=current_app.config["ONLINE_PAYMENT_USER"],
        payment_date=today(),
        reference=transaction_id,
        change_given=0,
    )

    link.status = PaymentLinkStatus.PAID.value
    link.provider = provider
    link.provider_metadata = {
        "status": status,
        "provider": provider,
        "transaction_id": transaction_id,
        "customer_name": customer_name,
    }
    link.paid_at = now
    link.payment_id = payment.id


def cancel_link(token: str) -> PaymentLink:
    with atomic():
        link = lock_for_update(db.session.query(PaymentLink).filter_by(token=token)).first()
        if not link:
            raise NotFoundError("Lien de paiement invalide")
        if link.status != PaymentLinkStatus.PENDING.value:
            raise BadRequestError(f"Ce lien est déjà {link.status}")
        link.status = PaymentLinkStatus.CANCELLED.value
    return link
