import io
from datetime import datetime

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from ..models.models import Quote

BRAND_COLOR = colors.HexColor("#1F4E79")


def money(value) -> str:
    """Brazilian currency format: R$ 1.234,56"""
    formatted = f"{value or 0:,.2f}"
    return "R$ " + formatted.replace(",", "_").replace(".", ",").replace("_", ".")


def _items_table(header, rows, col_widths):
    table = Table([header] + rows, colWidths=col_widths)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f0f0f0")),
        ("TEXTCOLOR", (0, 0), (-1, -1), colors.black),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("ALIGN", (0, 0), (0, -1), "LEFT"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING", (0, 0), (-1, 0), 6),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 6),
    ]))
    return table


def _footer(c, doc):
    c.saveState()
    c.setFont("Helvetica", 7)
    c.setFillColor(colors.grey)
    c.drawString(40, 25, f"Generated at {datetime.now().strftime('%d/%m/%Y %H:%M')}")
    c.drawRightString(A4[0] - 40, 25, f"Page {doc.page}")
    c.restoreState()


def build_quote_pdf(quote: Quote, workshop_name: str = "tGest") -> bytes:
    """Render a quote (customer, vehicle, line items, totals, validity) to PDF bytes."""
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=A4, rightMargin=40, leftMargin=40, topMargin=40, bottomMargin=50,
        title=f"Quote {quote.number}",
    )
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "QuoteTitle", parent=styles["Title"], fontName="Helvetica-Bold", fontSize=18, textColor=BRAND_COLOR,
    )
    section_style = ParagraphStyle(
        "Section", parent=styles["Heading3"], fontName="Helvetica-Bold", fontSize=11,
        textColor=BRAND_COLOR, spaceBefore=10, spaceAfter=4,
    )
    body = ParagraphStyle("Body", parent=styles["Normal"], fontName="Helvetica", fontSize=9, leading=12)

    story = [
        Paragraph(workshop_name, body),
        Paragraph(f"ORÇAMENTO {quote.number}", title_style),
        Paragraph(f"Issued: {quote.created_at.strftime('%d/%m/%Y') if quote.created_at else ''}", body),
    ]

    customer = quote.customer
    story.append(Paragraph("Customer", section_style))
    story.append(Paragraph(f"{customer.name}", body))
    story.append(Paragraph(" | ".join(x for x in (customer.phone, customer.email, customer.tax_id) if x), body))

    vehicle = quote.vehicle
    story.append(Paragraph("Vehicle", section_style))
    year = f" ({vehicle.year})" if vehicle.year else ""
    story.append(Paragraph(f"{vehicle.make} {vehicle.model}{year} - Plate {vehicle.plate}", body))

    if quote.reported_problem:
        story.append(Paragraph("Reported problem", section_style))
        story.append(Paragraph(quote.reported_problem, body))

    width = A4[0] - 80
    if quote.services:
        story.append(Paragraph("Services", section_style))
        rows = [
            [Paragraph(s.description, body), f"{s.quantity:g}", money(s.unit_price), money(s.line_total)]
            for s in quote.services
        ]
        story.append(_items_table(["Service", "Qty", "Unit price", "Total"], rows,
                                  [width * 0.55, width * 0.1, width * 0.175, width * 0.175]))
    if quote.parts:
        story.append(Paragraph("Parts", section_style))
        rows = [
            [Paragraph(f"{p.part.code + ' - ' if p.part.code else ''}{p.part.name}", body),
             str(p.quantity), money(p.unit_price), money(p.line_total)]
            for p in quote.parts
        ]
        story.append(_items_table(["Part", "Qty", "Unit price", "Total"], rows,
                                  [width * 0.55, width * 0.1, width * 0.175, width * 0.175]))

    story.append(Paragraph("Summary", section_style))
    summary = Table(
        [
            ["Services", money(quote.services_total)],
            ["Parts", money(quote.parts_total)],
            ["Discount", "- " + money(quote.discount)],
            ["TOTAL", money(quote.total)],
        ],
        colWidths=[width * 0.75, width * 0.25],
    )
    summary.setStyle(TableStyle([
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("FONTNAME", (0, 0), (-1, -2), "Helvetica"),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("LINEABOVE", (0, -1), (-1, -1), 1, BRAND_COLOR),
    ]))
    story.append(summary)

    if quote.valid_until:
        story.append(Spacer(1, 8))
        story.append(Paragraph(f"Valid until {quote.valid_until.strftime('%d/%m/%Y')}", body))
    if quote.notes:
        story.append(Paragraph("Notes", section_style))
        story.append(Paragraph(quote.notes, body))

    doc.build(story, onFirstPage=_footer, onLaterPages=_footer)
    return buf.getvalue()
