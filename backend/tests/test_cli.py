from innkeep.services import catalog_service, sales_service, shift_service


def test_catalog_list_and_low_stock(app, db_session, stocked_item):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["catalog", "list"])
    assert result.exit_code == 0
    assert "Soap" in result.output

    catalog_service.adjust_stock(stocked_item.id, -4)
    result = runner.invoke(args=["catalog", "low-stock"])
    assert "WARN Soap: 1 on hand" in result.output


def test_shift_open_and_close(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["shifts", "open", "--operator", "1", "--start-cash", "100.00"])
    assert result.exit_code == 0, result.output

    result = runner.invoke(args=["shifts", "open", "--operator", "1", "--start-cash", "5"])
    assert result.exit_code == 1
    assert "shift_already_open" in result.output

    shift = shift_service.get_current_shift()
    result = runner.invoke(args=[
        "shifts", "close", "--shift-id", str(shift.id), "--operator", "1", "--actual-cash", "100.00",
    ])
    assert result.exit_code == 0, result.output
    assert "Difference" in result.output


def test_sales_pay_and_show(app, db_session):
    sale = sales_service.place_order(None, [{"name": "Dinner", "unit_price_cents": 2000, "quantity": 1}])
    runner = app.test_cli_runner()

    result = runner.invoke(args=["sales", "pay", str(sale.id), "--amount", "5.00"])
    assert result.exit_code == 0, result.output
    assert "balance 15.00" in result.output

    result = runner.invoke(args=["sales", "show", str(sale.id)])
    assert "Balance due" in result.output

    result = runner.invoke(args=["sales", "show", "99999"])
    assert result.exit_code == 1
