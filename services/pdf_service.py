"""
PDF documents for the auto shop: estimates, work orders, invoices and
inspection reports, rendered in memory with reportlab.
"""

import io
import logging
from datetime import datetime
from typing import Dict
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

logger = logging.getLogger(__name__)

DOCUMENT_TITLES = {
    'estimate': 'ESTIMATE',
    'work_order': 'WORK ORDER',
    'invoice': 'INVOICE',
}
BRAND_COLOR = colors.HexColor('#1F2937')
ACCENT_COLOR = colors.HexColor('#2563EB')
CONDITION_COLORS = {
    'good': colors.HexColor('#16A34A'),
    'fair': colors.HexColor('#D97706'),
    'poor': colors.HexColor('#DC2626'),
}


def _money(value) -> str:
    return f"${(value or 0):,.2f}"


def _text(value) -> str:
    return escape(str(value)) if value not in (None, '') else ''


def _styles():
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'DocTitle',
        parent=styles['Heading1'],
        fontSize=20,
        textColor=BRAND_COLOR,
        spaceAfter=6
    )
    heading_style = ParagraphStyle(
        'DocHeading',
        parent=styles['Heading2'],
        fontSize=12,
        textColor=ACCENT_COLOR,
        spaceBefore=10,
        spaceAfter=6
    )
    return styles, title_style, heading_style


def _shop_header(story, shop, title_style, styles):
    story.append(Paragraph(_text(shop.name if shop else 'Repair Shop'), title_style))
    if shop:
        address = ', '.join(p for p in (shop.address, shop.city, shop.state, shop.zip) if p)
        contact = ' | '.join(p for p in (shop.phone, shop.email) if p)
        for line in (address, contact):
            if line:
                story.append(Paragraph(_text(line), styles['Normal']))
    story.append(Spacer(1, 0.2 * inch))


def _info_table(rows):
    table = Table(rows, colWidths=[1.6 * inch, 4.6 * inch])
    table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTNAME', (1, 0), (1, -1), 'Helvetica'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (0, -1), colors.HexColor('#666666')),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
    ]))
    return table


def render_repair_order_pdf(ctx: Dict, pdf_type: str) -> bytes:
    """
    Render an estimate, work order or invoice.

    Args:
        ctx: ``RepairOrderRepository.document_context`` output
        pdf_type: 'estimate', 'work_order' or 'invoice'

    Returns:
        PDF bytes
    """
    ro = ctx['repair_order']
    shop = ctx['shop']
    customer = ctx['customer']
    vehicle = ctx['vehicle']
    styles, title_style, heading_style = _styles()

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=letter, topMargin=0.6 * inch, bottomMargin=0.6 * inch)
    story = []

    _shop_header(story, shop, title_style, styles)
    story.append(Paragraph(DOCUMENT_TITLES[pdf_type], heading_style))

    info = [
        ['RO #:', ro.ro_number],
        ['Date:', (ro.created_at or datetime.utcnow()).strftime('%B %d, %Y')],
    ]
    if pdf_type == 'invoice' and ro.invoice_number:
        info.append(['Invoice #:', ro.invoice_number])
    if customer:
        info.append(['Customer:', customer.full_name])
        if customer.phone:
            info.append(['Phone:', customer.phone])
    if vehicle:
        info.append(['Vehicle:', vehicle.display_name or '-'])
        if vehicle.vin:
            info.append(['VIN:', vehicle.vin])
        if ro.mileage_in:
            info.append(['Mileage:', f"{ro.mileage_in:,}"])
    story.append(_info_table(info))

    if ro.customer_concern:
        story.append(Paragraph("Customer Concern", heading_style))
        story.append(Paragraph(_text(ro.customer_concern), styles['Normal']))

    story.append(Paragraph("Services", heading_style))
    show_prices = pdf_type != 'work_order'
    header = ['Type', 'Description', 'Qty']
    if show_prices:
        header += ['Cash', 'Card']
    rows = [header]
    for item in ctx['line_items']:
        row = [item.type.title(), Paragraph(_text(item.description), styles['Normal']), f"{item.quantity or 1:g}"]
        if show_prices:
            row += [_money(item.total_cash), _money(item.total_card)]
        rows.append(row)

    widths = [0.9 * inch, 3.4 * inch, 0.6 * inch] + ([1.0 * inch, 1.0 * inch] if show_prices else [])
    items_table = Table(rows, colWidths=widths, repeatRows=1)
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), BRAND_COLOR),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('ALIGN', (2, 0), (-1, -1), 'RIGHT'),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#D1D5DB')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#F9FAFB')]),
    ]))
    story.append(items_table)

    if show_prices:
        story.append(Spacer(1, 0.2 * inch))
        totals = [
            ['', 'Cash', 'Card'],
            ['Subtotal', _money(ro.subtotal_cash), _money(ro.subtotal_card)],
            ['Tax', _money(ro.tax_amount), _money(ro.tax_amount)],
            ['Total', _money(ro.total_cash), _money(ro.total_card)],
        ]
        if pdf_type == 'invoice':
            totals.append(['Paid', _money(ro.paid_amount), ''])
            totals.append(['Balance Due', _money(ro.balance_due), ''])
        totals_table = Table(totals, colWidths=[1.4 * inch, 1.1 * inch, 1.1 * inch], hAlign='RIGHT')
        totals_table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTNAME', (0, 1), (0, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 10),
            ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
            ('LINEABOVE', (0, 3), (-1, 3), 1, BRAND_COLOR),
        ]))
        story.append(totals_table)
        story.append(Spacer(1, 0.1 * inch))
        story.append(Paragraph(
            "Cash price shown alongside the card price. Card payments include the card fee.",
            styles['Italic']
        ))

    if pdf_type == 'invoice' and shop and shop.invoice_footer:
        story.append(Spacer(1, 0.3 * inch))
        story.append(Paragraph(_text(shop.invoice_footer), styles['Normal']))

    doc.build(story)
    logger.info(f"Rendered {pdf_type} PDF for {ro.ro_number}")
    return buffer.getvalue()


def render_inspection_pdf(ctx: Dict) -> bytes:
    """Inspection report grouped by category, with colored conditions."""
    inspection = ctx['inspection']
    styles, title_style, heading_style = _styles()

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=letter, topMargin=0.6 * inch, bottomMargin=0.6 * inch)
    story = []

    _shop_header(story, ctx['shop'], title_style, styles)
    story.append(Paragraph("VEHICLE INSPECTION REPORT", heading_style))

    info = [['Date:', (inspection.completed_at or inspection.created_at or datetime.utcnow()).strftime('%B %d, %Y')]]
    if ctx.get('repair_order'):
        info.append(['RO #:', ctx['repair_order'].ro_number])
    if ctx.get('customer'):
        info.append(['Customer:', ctx['customer'].full_name])
    if ctx.get('vehicle'):
        info.append(['Vehicle:', ctx['vehicle'].display_name or '-'])
    if ctx.get('technician'):
        info.append(['Technician:', ctx['technician'].full_name])
    if inspection.vehicle_mileage:
        info.append(['Mileage:', f"{inspection.vehicle_mileage:,}"])
    story.append(_info_table(info))

    categories = {}
    for item in ctx['items']:
        categories.setdefault(item.category_name, []).append(item)

    for category, items in categories.items():
        story.append(Paragraph(_text(category), heading_style))
        rows = [['Item', 'Condition', 'Notes']]
        row_styles = []
        for index, item in enumerate(items, start=1):
            rows.append([
                Paragraph(_text(item.item_name), styles['Normal']),
                (item.condition or '').upper(),
                Paragraph(_text(item.notes), styles['Normal']),
            ])
            color = CONDITION_COLORS.get(item.condition)
            if color:
                row_styles.append(('TEXTCOLOR', (1, index), (1, index), color))

        table = Table(rows, colWidths=[2.6 * inch, 1.0 * inch, 3.0 * inch], repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), BRAND_COLOR),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTNAME', (1, 1), (1, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#D1D5DB')),
        ] + row_styles))
        story.append(table)

    if inspection.notes:
        story.append(Paragraph("Technician Notes", heading_style))
        story.append(Paragraph(_text(inspection.notes), styles['Normal']))

    doc.build(story)
    logger.info(f"Rendered inspection PDF for inspection {inspection.id}")
    return buffer.getvalue()
