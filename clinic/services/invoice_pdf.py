"""Render an invoice as a PDF document with reportlab."""
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from clinic.models import Invoice
from clinic.services.config import get_company_info, get_setting

HEADER_BG = colors.HexColor('#0b3d60')


def _fmt(amount, currency: str) -> str:
    return f'{currency} {amount:,.2f}'


def _letterhead(styles) -> list:
    info = get_company_info()
    if info is None:
        return [Paragraph(escape(get_setting('companyName', 'Hospital Management System')), styles['Heading2'])]
    lines = [info.address, f'{info.postal_code} {info.city}', info.country]
    lines += [x for x in (info.phone, info.email, info.website) if x]
    if info.tax_id:
        lines.append(f'Tax ID: {info.tax_id}')
    return [Paragraph(escape(info.name), styles['Heading2'])] + [Paragraph(escape(x), styles['Normal']) for x in lines]


def render_invoice_pdf(invoice: Invoice) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=f'Invoice {invoice.invoice_no}',
                            leftMargin=2 * cm, rightMargin=2 * cm, topMargin=2 * cm, bottomMargin=2 * cm)
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle('InvoiceTitle', parent=styles['Heading1'], textColor=HEADER_BG, spaceAfter=12)
    currency = invoice.currency
    elements = _letterhead(styles)
    elements.append(Spacer(1, 0.6 * cm))
    elements.append(Paragraph(escape(f'Invoice {invoice.invoice_no}'), title_style))

    patient = invoice.patient
    meta = [
        ['Patient:', f'{patient.full_name} ({patient.patient_no})'],
        ['Address:', patient.address or '-'],
        ['Issue date:', invoice.issue_date.strftime('%d.%m.%Y')],
        ['Due date:', invoice.due_date.strftime('%d.%m.%Y')],
        ['Status:', invoice.get_status_display()],
    ]
    meta_table = Table(meta, colWidths=[4 * cm, 12 * cm])
    meta_table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
    ]))
    elements += [meta_table, Spacer(1, 0.6 * cm)]

    rows = [['Description', 'Qty', 'Unit price', 'Total']]
    for item in invoice.items.all():
        rows.append([Paragraph(escape(item.description), styles['Normal']), f'{item.quantity:g}',
                     _fmt(item.unit_price, currency), _fmt(item.total, currency)])
    rows.append(['', '', 'Subtotal', _fmt(invoice.subtotal, currency)])
    rows.append(['', '', f'Tax ({invoice.tax_rate:g}%)', _fmt(invoice.tax_amount, currency)])
    rows.append(['', '', 'Total', _fmt(invoice.amount, currency)])
    rows.append(['', '', 'Balance due', _fmt(invoice.balance, currency)])
    lines = Table(rows, colWidths=[8.5 * cm, 1.5 * cm, 3 * cm, 3 * cm], repeatRows=1)
    n = len(rows)
    lines.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), HEADER_BG),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, n - 5), 0.5, colors.grey),
        ('LINEABOVE', (2, n - 4), (-1, n - 4), 0.5, colors.grey),
        ('FONTNAME', (2, n - 2), (-1, -1), 'Helvetica-Bold'),
    ]))
    elements.append(lines)

    payments = list(invoice.payments.all())
    if payments:
        elements += [Spacer(1, 0.6 * cm), Paragraph('Payments', styles['Heading3'])]
        prow = [['Date', 'Method', 'Reference', 'Amount']]
        prow += [[p.paid_at.strftime('%d.%m.%Y'), p.get_method_display(), p.reference or '-',
                  _fmt(p.amount, currency)] for p in payments]
        ptable = Table(prow, colWidths=[3 * cm, 3.5 * cm, 6.5 * cm, 3 * cm])
        ptable.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('ALIGN', (-1, 0), (-1, -1), 'RIGHT'),
            ('LINEBELOW', (0, 0), (-1, 0), 0.5, colors.grey),
        ]))
        elements.append(ptable)

    if invoice.notes:
        elements += [Spacer(1, 0.6 * cm), Paragraph(escape(invoice.notes), styles['Normal'])]

    doc.build(elements)
    return buffer.getvalue()
