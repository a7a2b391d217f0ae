from radstock.cli import init_system, list_warehouses_cmd, reconcile, set_stock, show_stock
from radstock.models import Warehouse


def test_init_seeds_warehouses_once(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(init_system, ["--warehouse", "wh1:Auckland", "--warehouse", "WH2"])
    assert result.exit_code == 0, result.output
    assert "2 warehouse(s) created" in result.output

    result = runner.invoke(init_system, ["--warehouse", "WH1:Auckland"])
    assert "SKIP  warehouse WH1" in result.output
    assert db_session.query(Warehouse).count() == 2

    listing = runner.invoke(list_warehouses_cmd)
    assert "Auckland" in listing.output


def test_set_show_and_reconcile_stock(app, db_session, radiator, warehouses):
    runner = app.test_cli_runner()

    result = runner.invoke(set_stock, [str(radiator.id), "wh1", "4", "--note", "count"])
    assert result.exit_code == 0, result.output
    assert "0 -> 4" in result.output

    shown = runner.invoke(show_stock, [str(radiator.id)])
    assert "WH1" in shown.output and "4" in shown.output

    result = runner.invoke(reconcile)
    assert result.exit_code == 0
    assert "1 pair(s) consistent" in result.output


def test_set_stock_unknown_warehouse_fails(app, db_session, radiator, warehouses):
    result = app.test_cli_runner().invoke(set_stock, [str(radiator.id), "NOPE", "1"])
    assert result.exit_code != 0
    assert "not found" in result.output
