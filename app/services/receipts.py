# app/services/receipts.py
import io

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.models.transaction import Transaction


def build_receipt_pdf(transaction: Transaction, shop_name: str = "Code Shop") -> bytes:
    """Render a one-page PDF receipt for a paid transaction."""
    purchase = transaction.purchase
    product = purchase.product

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=f"Receipt #{transaction.id}")
    styles = getSampleStyleSheet()

    paid_on = purchase.purchased_at or transaction.updated_at or transaction.created_at
    amount = f"{transaction.amount:.2f} {transaction.currency.upper()}"

    story = [
        Paragraph(shop_name, styles["Title"]),
        Paragraph(f"Receipt #{transaction.id}", styles["Heading2"]),
        Spacer(1, 0.2 * inch),
    ]

    details = [
        ["Customer", purchase.user.username],
        ["Date", paid_on.strftime("%Y-%m-%d %H:%M UTC") if paid_on else "-"],
        ["Status", transaction.status],
        ["Payment reference", transaction.stripe_session_id or "-"],
    ]
    details_table = Table(details, colWidths=[2 * inch, 4 * inch])
    details_table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
    ]))
    story.append(details_table)
    story.append(Spacer(1, 0.3 * inch))

    items = [
        ["Item", "File", "Amount"],
        [product.title, purchase.file.original_name, amount],
        ["", "Total", amount],
    ]
    items_table = Table(items, colWidths=[2.5 * inch, 2.5 * inch, 1.2 * inch])
    items_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#1f2937")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTNAME", (1, -1), (-1, -1), "Helvetica-Bold"),
        ("LINEABOVE", (0, -1), (-1, -1), 1, colors.black),
        ("ALIGN", (2, 0), (2, -1), "RIGHT"),
        ("GRID", (0, 0), (-1, -2), 0.5, colors.grey),
    ]))
    story.append(items_table)

    doc.build(story)
    return buffer.getvalue()
