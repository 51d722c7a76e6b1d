"""Withdrawal receipts and the email providers that carry them.

EMAIL_PROVIDER picks the transport: ``console`` prints the receipt,
``smtp`` relays it and ``sendgrid`` posts it to the SendGrid API.
"""

import logging
import smtplib
from collections.abc import Callable
from dataclasses import dataclass
from email.message import EmailMessage

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from lotledger.core.config import settings
from lotledger.models.storage import Withdrawal, WithdrawalLine
from lotledger.models.warehouse import Commodity, Customer, Warehouse

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    pass


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    text: str
    html: str | None = None


def _deliver_to_console(email: OutgoingEmail) -> None:
    # Local development: the receipt lands in the server output.
    print(f"--- receipt for {email.to} | {email.subject} ---")
    print(email.text)
    if email.html:
        print(email.html)
    print("--- end of receipt ---")


def _smtp_client() -> smtplib.SMTP:
    client_class = smtplib.SMTP_SSL if settings.smtp_use_ssl else smtplib.SMTP
    return client_class(host=settings.smtp_host, port=settings.smtp_port, timeout=settings.smtp_timeout_seconds)


def _deliver_over_smtp(email: OutgoingEmail) -> None:
    if not settings.smtp_host:
        raise EmailDeliveryError("SMTP_HOST is not set; cannot deliver receipt")

    message = EmailMessage()
    message["From"] = settings.email_from
    message["To"] = email.to
    message["Subject"] = email.subject
    message.set_content(email.text)
    if email.html:
        message.add_alternative(email.html, subtype="html")

    try:
        with _smtp_client() as client:
            if settings.smtp_starttls and not settings.smtp_use_ssl:
                client.starttls()
            if settings.smtp_username:
                client.login(settings.smtp_username, settings.smtp_password)
            client.send_message(message)
    except (OSError, smtplib.SMTPException) as exc:
        raise EmailDeliveryError(f"SMTP relay rejected receipt for {email.to}: {exc}") from exc


def _deliver_via_sendgrid(email: OutgoingEmail) -> None:
    if not settings.sendgrid_api_key:
        raise EmailDeliveryError("SENDGRID_API_KEY is not set; cannot deliver receipt")

    message = Mail(
        from_email=settings.email_from,
        to_emails=email.to,
        subject=email.subject,
        plain_text_content=email.text,
        html_content=email.html,
    )
    try:
        response = SendGridAPIClient(settings.sendgrid_api_key).send(message)
    except Exception as exc:
        raise EmailDeliveryError(f"SendGrid request for {email.to} failed: {exc}") from exc
    if response.status_code >= 400:
        raise EmailDeliveryError(f"SendGrid refused receipt for {email.to} with status {response.status_code}")


PROVIDERS: dict[str, Callable[[OutgoingEmail], None]] = {
    "console": _deliver_to_console,
    "smtp": _deliver_over_smtp,
    "sendgrid": _deliver_via_sendgrid,
}


def send_email(to_email: str, subject: str, text_body: str, html_body: str | None = None) -> None:
    deliver = PROVIDERS.get(settings.email_provider)
    if deliver is None:
        raise EmailDeliveryError(
            f"EMAIL_PROVIDER {settings.email_provider!r} is not one of: {', '.join(sorted(PROVIDERS))}"
        )
    deliver(OutgoingEmail(to=to_email, subject=subject, text=text_body, html=html_body))


def build_withdrawal_receipt(
    withdrawal: Withdrawal,
    lines: list[WithdrawalLine],
    *,
    warehouse: Warehouse,
    customer: Customer,
    commodity: Commodity,
) -> tuple[str, str, str]:
    currency = settings.currency_symbol
    receipt_url = f"{settings.frontend_base_url.rstrip('/')}/outflow/receipt/{withdrawal.id}"
    subject = f"Outflow receipt {withdrawal.invoice_number}"
    breakdown = "\n".join(
        f"  Lot #{line.lot_id}: {line.quantity_taken} {commodity.unit}s, rent {currency}{line.rent_charged}"
        for line in lines
    )
    text = (
        f"Dear {customer.name},\n\n"
        f"{warehouse.name} has released {withdrawal.bags_withdrawn} {commodity.unit}s of {commodity.name} "
        f"on {withdrawal.withdrawn_on.isoformat()}.\n\n"
        f"{breakdown}\n\n"
        f"Total rent: {currency}{withdrawal.total_rent}\n"
        f"Receipt: {receipt_url}\n"
    )
    rows = "".join(
        f"<tr><td>#{line.lot_id}</td><td>{line.quantity_taken}</td><td>{currency}{line.rent_charged}</td></tr>"
        for line in lines
    )
    html = (
        f"<p>Dear {customer.name},</p>"
        f"<p>{warehouse.name} has released {withdrawal.bags_withdrawn} {commodity.unit}s of "
        f"{commodity.name} on {withdrawal.withdrawn_on.isoformat()}.</p>"
        f"<table><tr><th>Lot</th><th>Quantity</th><th>Rent</th></tr>{rows}</table>"
        f"<p>Total rent: <strong>{currency}{withdrawal.total_rent}</strong></p>"
        f"<p><a href=\"{receipt_url}\">View receipt</a></p>"
    )
    return subject, text, html


def send_withdrawal_receipt(
    withdrawal: Withdrawal,
    lines: list[WithdrawalLine],
    *,
    warehouse: Warehouse,
    customer: Customer,
    commodity: Commodity,
) -> bool:
    """Email the receipt after commit. Delivery problems never undo the withdrawal."""
    if not customer.email:
        logger.warning("Skipping receipt for %s: customer %s has no email", withdrawal.invoice_number, customer.id)
        return False
    subject, text, html = build_withdrawal_receipt(
        withdrawal,
        lines,
        warehouse=warehouse,
        customer=customer,
        commodity=commodity,
    )
    try:
        send_email(customer.email, subject, text, html)
    except EmailDeliveryError as exc:
        logger.error("Receipt delivery failed for %s: %s", withdrawal.invoice_number, exc)
        return False
    return True
