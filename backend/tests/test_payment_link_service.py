from datetime import timedelta
from decimal import Decimal

import pytest
from lbp.errors import BadRequestError, NotFoundError
from lbp.models import Invoice, InvoiceState, Payment, PaymentLink, PaymentLinkStatus, PaymentMode
from lbp.services import payment_link_service, payment_service
from lbp.time_utils import utcnow


class TestCreateLink:
    def test_defaults_to_remaining_balance(self, db_session, invoice):
        payment_service.record_payment(invoice.id, "2500", "comptant", "AGT001")

        link = payment_link_service.create_link(invoice.id)
        assert Decimal(link.amount) == Decimal("7500")
        assert len(link.token) == 64
        assert link.status == PaymentLinkStatus.PENDING.value

        ttl = link.expires_at - utcnow()
        assert timedelta(hours=23) < ttl <= timedelta(hours=24)

    def test_tokens_are_unique(self, db_session, invoice):
        first = payment_link_service.create_link(invoice.id, amount="100")
        second = payment_link_service.create_link(invoice.id, amount="100")
        assert first.token != second.token

    @pytest.mark.parametrize("amount", ["0", "10000.01"])
    def test_amount_must_fit_remaining_balance(self, db_session, invoice, amount):
        with pytest.raises(BadRequestError):
            payment_link_service.create_link(invoice.id, amount=amount)
        assert db_session.query(PaymentLink).count() == 0

    def test_unknown_invoice(self, db_session):
        with pytest.raises(NotFoundError):
            payment_link_service.create_link(31337)


class TestCallback:
    def test_success_records_payment(self, db_session, invoice):
        link = payment_link_service.create_link(invoice.id)

        paid = payment_link_service.handle_callback(
            link.token, "SUCCESS", "orange_money", transaction_id="OM-123", customer_name="K. Traoré"
        )

        assert paid.status == PaymentLinkStatus.PAID.value
        assert paid.paid_at is not None
        assert paid.provider_metadata["transaction_id"] == "OM-123"

        payment = db_session.get(Payment, paid.payment_id)
        assert payment.mode == PaymentMode.ORANGE_MONEY.value
        assert payment.user_code == "SYSTEM_ONLINE"
        assert payment.reference == "OM-123"
        assert db_session.get(Invoice, invoice.id).invoice_state is InvoiceState.DEFINITIVE

    def test_wave_provider(self, db_session, invoice):
        link = payment_link_service.create_link(invoice.id, amount="500")
        paid = payment_link_service.handle_callback(link.token, "SUCCESS", "Wave")
        assert db_session.get(Payment, paid.payment_id).mode == PaymentMode.WAVE.value

    def test_failure_leaves_link_pending(self, db_session, invoice):
        link = payment_link_service.create_link(invoice.id)

        with pytest.raises(BadRequestError):
            payment_link_service.handle_callback(link.token, "FAILED", "wave")

        assert db_session.get(PaymentLink, link.id).status == PaymentLinkStatus.PENDING.value
        assert db_session.query(Payment).count() == 0

    def test_link_is_single_use(self, db_session, invoice):
        link = payment_link_service.create_link(invoice.id, amount="1000")
        payment_link_service.handle_callback(link.token, "SUCCESS", "wave")

        with pytest.raises(BadRequestError):
            payment_link_service.handle_callback(link.token, "SUCCESS", "wave")
        assert db_session.query(Payment).count() == 1

    def test_expired_link_is_marked_and_rejected(self, db_session, invoice):
        link = payment_link_service.create_link(invoice.id)
        later = utcnow() + timedelta(hours=25)

        with pytest.raises(BadRequestError):
            payment_link_service.handle_callback(link.token, "SUCCESS", "wave", now=later)

        assert db_session.get(PaymentLink, link.id).status == PaymentLinkStatus.EXPIRED.value
        assert db_session.query(Payment).count() == 0

    def test_expired_link_stays_expired_after_failed_callback(self, db_session, invoice):
        link = payment_link_service.create_link(invoice.id)
        later = utcnow() + timedelta(hours=25)

        with pytest.raises(BadRequestError, match="expiré"):
            payment_link_service.handle_callback(link.token, "FAILED", "orange", now=later)
        # A retried callback sees the link as already processed
        with pytest.raises(BadRequestError, match="déjà traité"):
            payment_link_service.handle_callback(link.token, "SUCCESS", "orange", now=later)

        assert db_session.get(PaymentLink, link.id).status == PaymentLinkStatus.EXPIRED.value
        assert Decimal(db_session.get(Invoice, invoice.id).paid_amount) == Decimal("0")

    def test_callback_exceeding_remaining_balance_fails(self, db_session, invoice):
        link = payment_link_service.create_link(invoice.id)
        payment_service.record_payment(invoice.id, "1", "comptant", "AGT001")

        with pytest.raises(BadRequestError):
            payment_link_service.handle_callback(link.token, "SUCCESS", "wave")
        assert db_session.get(PaymentLink, link.id).status == PaymentLinkStatus.PENDING.value


class TestPendingLink:
    def test_pending_link_resolves(self, db_session, invoice):
        link = payment_link_service.create_link(invoice.id)
        assert payment_link_service.get_pending_link(link.token).id == link.id

    def test_expiry_on_read(self, db_session, invoice):
        link = payment_link_service.create_link(invoice.id)

        with pytest.raises(BadRequestError):
            payment_link_service.get_pending_link(link.token, now=utcnow() + timedelta(days=2))
        assert db_session.get(PaymentLink, link.id).status == PaymentLinkStatus.EXPIRED.value

    def test_unknown_token(self, db_session):
        with pytest.raises(NotFoundError):
            payment_link_service.get_pending_link("nope")

    def test_cancel_link(self, db_session, invoice):
        link = payment_link_service.create_link(invoice.id)
        assert payment_link_service.cancel_link(link.token).status == PaymentLinkStatus.CANCELLED.value

        with pytest.raises(BadRequestError):
            payment_link_service.get_pending_link(link.token)
