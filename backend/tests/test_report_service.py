"""
Reporting tests: point de caisse, grandes lignes and agency reconciliation.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from lbp.errors import BadRequestError, NotFoundError
from lbp.models import MovementKind
from lbp.services import cash_service, invoice_service, payment_service, report_service


DAY = date(2024, 1, 29)


def _move(register, kind, amount, on):
    return cash_service.record_movement(kind, amount, f"{kind.value} {amount}", "AGT001",
                                        register_id=register.id, movement_date=on)


class TestPointDeCaisse:
    def test_daily_close(self, db_session, register):
        _move(register, MovementKind.APPRO, "20000", DAY)
        _move(register, MovementKind.DISBURSEMENT, "30000", DAY)
        _move(register, MovementKind.INFLOW_CASH, "10000", DAY)

        point = report_service.point_de_caisse(register.id, DAY)
        assert point["entrees"] == "30000.00"
        assert point["sorties"] == "30000.00"
        assert point["solde"] == "50000.00"
        assert point["mouvements_count"] == 3
        assert point["date"] == "2024-01-29"
        assert point["from"].startswith("2024-01-29T00:00:00")
        assert point["to"] == "2024-01-29T23:59:59.999"

    def test_other_days_only_count_in_balance(self, db_session, register):
        _move(register, MovementKind.APPRO, "1000", date(2024, 1, 28))
        _move(register, MovementKind.INFLOW_CHECK, "500", DAY)

        point = report_service.point_de_caisse(register.id, DAY)
        assert point["entrees"] == "500.00"
        assert point["sorties"] == "0.00"
        assert point["solde"] == "51500.00"
        assert point["mouvements_count"] == 1

    def test_unknown_register(self, db_session):
        with pytest.raises(NotFoundError):
            report_service.point_de_caisse(999999, DAY)


class TestGrandesLignes:
    def test_period_totals(self, db_session, register):
        _move(register, MovementKind.APPRO, "5000", date(2024, 1, 1))       # before
        _move(register, MovementKind.DISBURSEMENT, "1000", date(2024, 1, 10))
        _move(register, MovementKind.INFLOW_CHECK, "2000", date(2024, 1, 11))
        _move(register, MovementKind.INFLOW_CASH, "3000", date(2024, 1, 12))
        _move(register, MovementKind.INFLOW_TRANSFER, "400", date(2024, 1, 20))
        _move(register, MovementKind.APPRO, "700", date(2024, 1, 20))
        _move(register, MovementKind.APPRO, "9999", date(2024, 2, 1))       # after

        report = report_service.grandes_lignes(register.id, date(2024, 1, 10), date(2024, 1, 20))

        assert report["solde_initial"] == "55000.00"
        assert report["total_appro"] == "700.00"
        assert report["total_decaissement"] == "1000.00"
        assert report["total_entrees_cheque"] == "2000.00"
        assert report["total_entrees_espece"] == "3000.00"
        assert report["total_entrees_virement"] == "400.00"
        assert report["total_entrees"] == "5400.00"
        assert report["solde_final"] == "60100.00"
        assert report["mouvements_count"] == 5

    def test_final_balance_identity(self, db_session, register):
        _move(register, MovementKind.APPRO, "123.45", date(2024, 3, 1))
        _move(register, MovementKind.DISBURSEMENT, "23.40", date(2024, 3, 2))
        _move(register, MovementKind.INFLOW_TRANSFER, "0.05", date(2024, 3, 3))

        report = report_service.grandes_lignes(register.id, date(2024, 3, 1), date(2024, 3, 31))
        expected = (
            Decimal(report["solde_initial"])
            + Decimal(report["total_appro"])
            - Decimal(report["total_decaissement"])
            + Decimal(report["total_entrees"])
        )
        assert Decimal(report["solde_final"]) == expected
        assert Decimal(report["solde_final"]) == cash_service.get_balance(register.id)

    def test_datetime_bounds_cover_whole_days(self, db_session, register):
        _move(register, MovementKind.APPRO, "10", date(2024, 4, 2))
        report = report_service.grandes_lignes(
            register.id, datetime(2024, 4, 2, 15, 30), datetime(2024, 4, 2, 8, 0)
        )
        assert report["total_appro"] == "10.00"
        assert report["date_debut"] == "2024-04-02"

    def test_inverted_range_rejected(self, db_session, register):
        with pytest.raises(BadRequestError):
            report_service.grandes_lignes(register.id, date(2024, 2, 1), date(2024, 1, 1))


class TestAgencyReconciliation:
    def _pay(self, parcel_ref, agency, amount, on, make_parcel):
        parcel = make_parcel(parcel_ref, agency=agency, lines=[(Decimal("100000"), 1, 0, 0, 0)])
        invoice = invoice_service.create_proforma(parcel.id, "AGT001", invoice_date=on)
        return payment_service.record_payment(invoice.id, amount, "comptant", "AGT001", payment_date=on)

    def test_groups_validated_payments_by_agency(
        self, db_session, agency, register, other_agency, other_register, main_register, make_parcel
    ):
        self._pay("LBP-0124-201", agency, "1000", date(2024, 1, 5), make_parcel)
        self._pay("LBP-0124-202", agency, "2000", date(2024, 1, 31), make_parcel)
        self._pay("LBP-0124-203", other_agency, "500", date(2024, 1, 1), make_parcel)
        self._pay("LBP-0124-204", None, "50", date(2024, 1, 10), make_parcel)
        cancelled = self._pay("LBP-0124-205", agency, "7000", date(2024, 1, 6), make_parcel)
        payment_service.cancel_payment(cancelled.id, "SUP001")
        self._pay("LBP-0224-206", agency, "9000", date(2024, 2, 1), make_parcel)

        report = report_service.agency_reconciliation(date(2024, 1, 1), date(2024, 1, 31))

        rows = {row["agence"]: row for row in report["agences"]}
        assert rows["Abidjan"] == {"agence": "Abidjan", "montant_total": "3000.00", "nombre_paiements": 2}
        assert rows["Dakar"]["montant_total"] == "500.00"
        assert rows["Sans agence"]["montant_total"] == "50.00"
        assert report["total_general"] == "3550.00"
        assert report["nombre_paiements"] == 4

    def test_filter_by_agency(self, db_session, agency, register, other_agency, other_register, make_parcel):
        self._pay("LBP-0124-301", agency, "1000", DAY, make_parcel)
        self._pay("LBP-0124-302", other_agency, "500", DAY, make_parcel)

        report = report_service.agency_reconciliation(DAY, DAY, agency_id=other_agency.id)
        assert [row["agence"] for row in report["agences"]] == ["Dakar"]
        assert report["total_general"] == "500.00"

    def test_empty_period(self, db_session):
        report = report_service.agency_reconciliation(DAY, DAY)
        assert report["agences"] == []
        assert report["total_general"] == "0.00"

    def test_dates_are_required(self, db_session):
        with pytest.raises(BadRequestError):
            report_service.agency_reconciliation(None, DAY)
