"""PDF tax invoice rendering."""

from datetime import date

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from casual_lease.services.notifications import InvoiceNotice, format_date, format_money

FONT = "Helvetica"
LINE = 7


def invoice_filename(booking_number: str) -> str:
    return f"Invoice-{booking_number}.pdf"


def _latin1(text: str) -> str:
    # Core PDF fonts only cover Latin-1
    return text.encode("latin-1", "replace").decode("latin-1")


def _line(pdf: FPDF, text: str, size: int = 10, style: str = "") -> None:
    pdf.set_font(FONT, style, size)
    pdf.cell(0, LINE, _latin1(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)


def _amount_row(pdf: FPDF, label: str, cents: int, style: str = "") -> None:
    pdf.set_font(FONT, style, 10)
    pdf.cell(140, LINE, _latin1(label))
    pdf.cell(0, LINE, format_money(cents), align="R", new_x=XPos.LMARGIN, new_y=YPos.NEXT)


def build_invoice_pdf(notice: InvoiceNotice, issued_on: date) -> bytes:
    """Render the tax invoice for a booking as PDF bytes."""
    pdf = FPDF()
    pdf.set_title(f"Tax Invoice {notice.booking_number}")
    pdf.add_page()

    _line(pdf, "Casual Lease", size=18, style="B")
    _line(pdf, "TAX INVOICE", size=14, style="B")
    _line(pdf, f"Invoice Number: {notice.booking_number}")
    _line(pdf, f"Date: {format_date(issued_on)}")
    if notice.paid:
        _line(pdf, "Status: PAID", style="B")
    elif notice.due_date:
        _line(pdf, f"Due Date: {format_date(notice.due_date)}")
    pdf.ln(LINE)

    _line(pdf, "Bill To:", style="B")
    if notice.company_name:
        _line(pdf, notice.company_name)
    if notice.abn:
        _line(pdf, f"ABN: {notice.abn}")
    _line(pdf, notice.customer_name)
    _line(pdf, notice.customer_email)
    pdf.ln(LINE)

    days = (notice.end_date - notice.start_date).days + 1
    _line(pdf, "Booking Details:", style="B")
    _line(pdf, f"Location: {notice.centre_name}")
    _line(pdf, f"Asset: {notice.asset_label}")
    _line(pdf, f"Dates: {format_date(notice.start_date)} - {format_date(notice.end_date)}")
    _line(pdf, f"Duration: {days} day{'s' if days != 1 else ''}")
    pdf.ln(LINE)

    _amount_row(pdf, f"Rental ({days} day{'s' if days != 1 else ''})", notice.total_amount_cents)
    _amount_row(pdf, f"GST ({notice.gst_percentage:g}%)", notice.gst_amount_cents)
    _amount_row(
        pdf,
        "TOTAL PAID" if notice.paid else "TOTAL DUE",
        notice.total_amount_cents + notice.gst_amount_cents,
        style="B",
    )
    pdf.ln(LINE)

    if not notice.paid:
        _line(pdf, "Payment Terms:", style="B")
        _line(pdf, "Payment is due within 14 days of invoice date (NET-14).")
        _line(pdf, "Please include the invoice number in your payment reference.")

    return bytes(pdf.output())
