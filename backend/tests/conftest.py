"""
Pytest fixtures for the LBP ledger backend tests.

Provides the in-memory test database, agencies, registers, parcels and a
test client.
"""

from datetime import date
from decimal import Decimal

import pytest
from lbp import create_app
from lbp.extensions import db
from lbp.models import Agency, CashRegister, Parcel, ParcelLine


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ENSURE_REGISTERS_ON_STARTUP': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.remove()


@pytest.fixture(scope='function')
def headers():
    """Caller identity headers expected by the API."""
    return {'X-User-Code': 'AGT001'}


@pytest.fixture(scope='function')
def agency(db_session):
    """Abidjan agency (XOF)."""
    agency = Agency(code="ABJ", name="Abidjan", currency="XOF", is_active=True)
    db_session.add(agency)
    db_session.commit()
    return agency


@pytest.fixture(scope='function')
def other_agency(db_session):
    """Dakar agency, no currency of its own."""
    agency = Agency(code="DKR", name="Dakar", currency=None, is_active=True)
    db_session.add(agency)
    db_session.commit()
    return agency


@pytest.fixture(scope='function')
def register(db_session, agency):
    """Abidjan register opened with 50 000."""
    register = CashRegister(
        name="Caisse Abidjan",
        opening_balance=Decimal("50000"),
        alert_threshold=Decimal("50000"),
        agency_id=agency.id,
        is_active=True,
    )
    db_session.add(register)
    db_session.commit()
    return register


@pytest.fixture(scope='function')
def other_register(db_session, other_agency):
    register = CashRegister(
        name="Caisse Dakar",
        opening_balance=Decimal("0"),
        alert_threshold=Decimal("10000"),
        agency_id=other_agency.id,
        is_active=True,
    )
    db_session.add(register)
    db_session.commit()
    return register


@pytest.fixture(scope='function')
def main_register(db_session):
    """Head office register (no agency)."""
    register = CashRegister(
        name="Caisse Principale",
        opening_balance=Decimal("0"),
        alert_threshold=Decimal("0"),
        agency_id=None,
        is_active=True,
    )
    db_session.add(register)
    db_session.commit()
    return register


@pytest.fixture(scope='function')
def make_parcel(db_session):
    """
    Factory for parcels with goods lines.

    Each line is (unit_price, quantity, packaging_fee, insurance_fee, agency_fee).
    """
    def _make(reference, agency=None, lines=((Decimal("10000"), 1, 0, 0, 0),)):
        parcel = Parcel(reference=reference, agency_id=agency.id if agency else None)
        db_session.add(parcel)
        db_session.flush()
        for unit_price, quantity, packaging, insurance, fee in lines:
            db_session.add(ParcelLine(
                parcel_id=parcel.id,
                description=f"Marchandise {reference}",
                quantity=quantity,
                unit_price=Decimal(unit_price),
                packaging_fee=Decimal(packaging),
                insurance_fee=Decimal(insurance),
                agency_fee=Decimal(fee),
            ))
        db_session.commit()
        return parcel

    return _make


@pytest.fixture(scope='function')
def invoice(db_session, agency, register, make_parcel):
    """10 000 proforma for a parcel of the Abidjan agency."""
    from lbp.services import invoice_service

    parcel = make_parcel("LBP-0124-001", agency=agency)
    return invoice_service.create_proforma(parcel.id, "AGT001", invoice_date=date(2024, 1, 15))
