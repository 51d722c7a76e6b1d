import dataclasses
from datetime import date, datetime
from decimal import Decimal

import pytest

from lotledger.models.storage import Withdrawal, WithdrawalLine
from lotledger.models.warehouse import Commodity, Customer, Warehouse
from lotledger.services import notifications
from lotledger.services.notifications import EmailDeliveryError, build_withdrawal_receipt, send_withdrawal_receipt


def _receipt_parts(email: str | None = "ramesh@example.com"):
    warehouse = Warehouse(id=1, code="WH1", name="Main Cold Store")
    customer = Customer(id=3, warehouse_id=1, name="Ramesh Kumar", email=email)
    commodity = Commodity(id=2, warehouse_id=1, name="Potato", unit="bag")
    withdrawal = Withdrawal(
        id=11,
        warehouse_id=1,
        customer_id=3,
        commodity_id=2,
        invoice_number="OUT-WH1-00001",
        bags_withdrawn=120,
        total_rent=Decimal("1200.00"),
        withdrawn_on=date(2026, 1, 20),
        requested_at=datetime(2026, 1, 20, 10, 0),
    )
    lines = [
        WithdrawalLine(withdrawal_id=11, lot_id=1, quantity_taken=100, rent_charged=Decimal("1000.00")),
        WithdrawalLine(withdrawal_id=11, lot_id=2, quantity_taken=20, rent_charged=Decimal("200.00")),
    ]
    return withdrawal, lines, dict(warehouse=warehouse, customer=customer, commodity=commodity)


def test_receipt_lists_every_lot():
    withdrawal, lines, context = _receipt_parts()

    subject, text, html = build_withdrawal_receipt(withdrawal, lines, **context)

    assert subject == "Outflow receipt OUT-WH1-00001"
    assert "Lot #1: 100 bags, rent Rs.1000.00" in text
    assert "Lot #2: 20 bags, rent Rs.200.00" in text
    assert "Total rent: Rs.1200.00" in text
    assert "/outflow/receipt/11" in html


def test_receipt_skipped_without_email(monkeypatch):
    withdrawal, lines, context = _receipt_parts(email=None)
    calls = []
    monkeypatch.setattr(notifications, "send_email", lambda *args: calls.append(args))

    assert send_withdrawal_receipt(withdrawal, lines, **context) is False
    assert calls == []


def test_delivery_failure_is_reported_not_raised(monkeypatch):
    withdrawal, lines, context = _receipt_parts()

    def failing_send(*args):
        raise EmailDeliveryError("smtp down")

    monkeypatch.setattr(notifications, "send_email", failing_send)

    assert send_withdrawal_receipt(withdrawal, lines, **context) is False


def test_console_delivery(capsys):
    withdrawal, lines, context = _receipt_parts()

    assert send_withdrawal_receipt(withdrawal, lines, **context) is True
    out = capsys.readouterr().out
    assert "--- receipt for ramesh@example.com | Outflow receipt OUT-WH1-00001 ---" in out
    assert "Total rent: Rs.1200.00" in out


def test_unknown_provider_is_rejected(monkeypatch):
    monkeypatch.setattr(notifications, "settings", dataclasses.replace(notifications.settings, email_provider="pigeon"))

    with pytest.raises(EmailDeliveryError, match="'pigeon' is not one of: console, sendgrid, smtp"):
        notifications.send_email("ramesh@example.com", "Outflow receipt", "body")


def test_smtp_without_host_fails_receipt(monkeypatch):
    withdrawal, lines, context = _receipt_parts()
    monkeypatch.setattr(
        notifications,
        "settings",
        dataclasses.replace(notifications.settings, email_provider="smtp", smtp_host=""),
    )

    with pytest.raises(EmailDeliveryError, match="SMTP_HOST is not set"):
        notifications.send_email("ramesh@example.com", "Outflow receipt", "body")
    assert send_withdrawal_receipt(withdrawal, lines, **context) is False
