"""Customer-facing booking emails: cancellation notices and tax invoices."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from html import escape

from casual_lease.models.booking import RefundStatus
from casual_lease.services.email import EmailAttachment, send_email


BRAND_COLOUR = "#123047"


def format_money(cents: int) -> str:
    return f"${Decimal(cents) / 100:,.2f}"


def format_date(d: date) -> str:
    return d.strftime("%d %b %Y")


def format_long_date(d: date) -> str:
    return f"{d.strftime('%A')}, {d.day} {d.strftime('%B %Y')}"


def wrap_html(body: str) -> str:
    """Shared email chrome: fixed-width column, brand heading colour, footer."""
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      {body}
      <p style="margin-top: 30px;">Best regards,<br><strong>Casual Lease Team</strong></p>
      <hr style="border: none; border-top: 1px solid #e0e0e0; margin: 30px 0;">
      <p style="font-size: 12px; color: #666;">
        This is an automated message. If you have any questions, please contact us.
      </p>
    </div>
    """


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


@dataclass
class CancellationNotice:
    booking_number: str
    customer_name: str
    customer_email: str
    centre_name: str
    asset_label: str
    start_date: date
    end_date: date
    total_with_gst_cents: int
    refund_status: RefundStatus
    company_name: str | None = None
    trading_name: str | None = None
    cancellation_reason: str | None = None


def refund_statement(refund_status: RefundStatus, amount: str) -> str:
    if refund_status == RefundStatus.NOT_REQUIRED:
        return "No payment was received for this booking so no refund is applicable."
    if refund_status == RefundStatus.PROCESSED:
        return (
            f"A full refund of {amount} (including GST) has been initiated to your original payment method. "
            "Please allow 5-10 business days for the refund to appear."
        )
    # pending / manual
    return (
        "Your booking was paid and a refund is being arranged. "
        f"Our team will be in contact regarding the refund of {amount}."
    )


def render_cancellation_email(notice: CancellationNotice) -> tuple[str, str]:
    """Return (subject, html) for a booking cancellation notice."""
    amount = format_money(notice.total_with_gst_cents)
    business_name = notice.trading_name or notice.company_name

    business_row = f"<li><strong>Business:</strong> {escape(business_name)}</li>" if business_name else ""
    reason_block = (
        f"<h3>Reason for Cancellation</h3><p>{escape(notice.cancellation_reason)}</p>"
        if notice.cancellation_reason
        else ""
    )

    body = f"""
      <h2 style="color: {BRAND_COLOUR};">Booking Cancellation</h2>
      <p>Dear {escape(notice.customer_name)},</p>
      <p>We are writing to confirm that the following booking has been cancelled.</p>
      <h3>Booking Details</h3>
      <ul>
        <li><strong>Booking Number:</strong> {escape(notice.booking_number)}</li>
        {business_row}
        <li><strong>Location:</strong> {escape(notice.centre_name)} - {escape(notice.asset_label)}</li>
        <li><strong>Dates:</strong> {format_long_date(notice.start_date)} to {format_long_date(notice.end_date)}</li>
        <li><strong>Amount:</strong> {amount}</li>
      </ul>
      {reason_block}
      <h3>Refund</h3>
      <p>{refund_statement(notice.refund_status, amount)}</p>
    """
    return f"Booking Cancellation: {notice.booking_number}", wrap_html(body)


async def send_booking_cancellation_email(notice: CancellationNotice) -> bool:
    subject, html = render_cancellation_email(notice)
    return await send_email(notice.customer_email, subject, html)


# ---------------------------------------------------------------------------
# Tax invoice
# ---------------------------------------------------------------------------


@dataclass
class InvoiceNotice:
    booking_number: str
    customer_name: str
    customer_email: str
    centre_name: str
    asset_label: str
    start_date: date
    end_date: date
    total_amount_cents: int
    gst_amount_cents: int
    gst_percentage: float
    paid: bool
    due_date: date | None = None
    company_name: str | None = None
    abn: str | None = None


def render_invoice_email(notice: InvoiceNotice) -> tuple[str, str]:
    """Return (subject, html) for a tax invoice / receipt."""
    total_inc_gst = notice.total_amount_cents + notice.gst_amount_cents
    if notice.paid:
        status_line = "<p><strong>Status:</strong> PAID - thank you for your payment.</p>"
    elif notice.due_date:
        status_line = f"<p><strong>Payment due:</strong> {format_date(notice.due_date)}</p>"
    else:
        status_line = ""

    billed_to = escape(notice.company_name or notice.customer_name)
    abn_row = f"<p style=\"margin: 5px 0;\"><strong>ABN:</strong> {escape(notice.abn)}</p>" if notice.abn else ""

    body = f"""
      <h2 style="color: {BRAND_COLOUR};">Tax Invoice {escape(notice.booking_number)}</h2>
      <p>Dear {escape(notice.customer_name)},</p>
      <div style="background-color: #f5f7fa; padding: 20px; border-radius: 8px; margin: 20px 0;">
        <p style="margin: 5px 0;"><strong>Billed to:</strong> {billed_to}</p>
        {abn_row}
        <p style="margin: 5px 0;"><strong>Location:</strong> {escape(notice.centre_name)}</p>
        <p style="margin: 5px 0;"><strong>Asset:</strong> {escape(notice.asset_label)}</p>
        <p style="margin: 5px 0;"><strong>Dates:</strong> {format_date(notice.start_date)} - {format_date(notice.end_date)}</p>
        <p style="margin: 5px 0;"><strong>Subtotal:</strong> {format_money(notice.total_amount_cents)}</p>
        <p style="margin: 5px 0;"><strong>GST ({notice.gst_percentage:g}%):</strong> {format_money(notice.gst_amount_cents)}</p>
        <p style="margin: 5px 0;"><strong>Total (inc. GST):</strong> {format_money(total_inc_gst)}</p>
      </div>
      {status_line}
      <p>A PDF copy of this invoice is attached.</p>
    """
    return f"Tax Invoice: {notice.booking_number}", wrap_html(body)


async def send_invoice_email(notice: InvoiceNotice, attachments: list[EmailAttachment] | None = None) -> bool:
    subject, html = render_invoice_email(notice)
    return await send_email(notice.customer_email, subject, html, attachments)
