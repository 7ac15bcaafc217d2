from datetime import date

from lbp.models import CashRegister, MovementKind
from lbp.services import cash_service


class TestCaisseCommands:
    def test_init_registers(self, app, db_session, agency):
        runner = app.test_cli_runner()

        result = runner.invoke(args=['caisse', 'init-registers'])
        assert result.exit_code == 0
        assert 'Created register: Caisse Abidjan' in result.output

        result = runner.invoke(args=['caisse', 'init-registers'])
        assert 'already has a register' in result.output
        assert db_session.query(CashRegister).count() == 1

    def test_balance_and_point(self, app, db_session, register):
        cash_service.record_movement(MovementKind.APPRO, "250", "Appro", "AGT001",
                                     register_id=register.id, movement_date=date(2024, 1, 29))
        runner = app.test_cli_runner()

        result = runner.invoke(args=['caisse', 'balance', str(register.id)])
        assert result.exit_code == 0
        assert result.output.strip() == '50250.00'

        result = runner.invoke(args=['caisse', 'point', str(register.id), '--date', '2024-01-29'])
        assert 'Entrees:   250.00' in result.output

    def test_unknown_register(self, app, db_session):
        result = app.test_cli_runner().invoke(args=['caisse', 'balance', '999999'])
        assert result.exit_code != 0

    def test_list(self, app, db_session, register):
        result = app.test_cli_runner().invoke(args=['caisse', 'list'])
        assert 'Caisse Abidjan' in result.output


class TestAlertCommands:
    def test_check_balances(self, app, db_session, register, other_register):
        result = app.test_cli_runner().invoke(args=['alerts', 'check-balances'])
        assert result.exit_code == 0
        assert 'WARN Caisse Dakar' in result.output
        assert 'Caisse Abidjan' not in result.output

    def test_overdue_invoices_none(self, app, db_session):
        result = app.test_cli_runner().invoke(args=['alerts', 'overdue-invoices', '--days', '3'])
        assert result.exit_code == 0
        assert 'No overdue invoice' in result.output
