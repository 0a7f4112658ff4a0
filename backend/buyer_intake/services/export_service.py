"""
Buyer Export Service
Renders filtered buyers as CSV or Excel
"""
import csv
import io
import logging
from datetime import datetime
from typing import List, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

from buyer_intake.models import Buyer

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("csv", "xlsx")

EXPORT_COLUMNS = [
    "Full Name",
    "Email",
    "Phone",
    "City",
    "Property Type",
    "BHK",
    "Purpose",
    "Budget",
    "Timeline",
    "Source",
    "Status",
    "Notes",
    "Tags",
    "Created At",
    "Last Updated",
]

MEDIA_TYPES = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def format_inr(amount: int) -> str:
    """Group digits the Indian way: 1500000 -> 15,00,000."""
    sign = "-" if amount < 0 else ""
    digits = str(abs(int(amount)))
    if len(digits) <= 3:
        return sign + digits

    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return sign + ",".join(groups + [tail])


def format_budget(budget_min: Optional[int], budget_max: Optional[int]) -> str:
    if budget_min is not None and budget_max is not None:
        return f"{format_inr(budget_min)} - {format_inr(budget_max)}"
    if budget_min is not None:
        return f"Above {format_inr(budget_min)}"
    if budget_max is not None:
        return f"Below {format_inr(budget_max)}"
    return "Not specified"


def _format_datetime(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else ""


def buyer_row(buyer: Buyer) -> List[str]:
    """One export row, in EXPORT_COLUMNS order."""
    return [
        buyer.full_name,
        buyer.email or "",
        buyer.phone,
        buyer.city,
        buyer.property_type,
        buyer.bhk or "",
        buyer.purpose,
        format_budget(buyer.budget_min, buyer.budget_max),
        buyer.timeline,
        buyer.source,
        buyer.status,
        buyer.notes or "",
        ", ".join(buyer.tags),
        _format_datetime(buyer.created_at),
        _format_datetime(buyer.updated_at),
    ]


def generate_csv(buyers: List[Buyer]) -> bytes:
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL)
    writer.writerow(EXPORT_COLUMNS)
    for buyer in buyers:
        writer.writerow(buyer_row(buyer))

    logger.info(f"Generated CSV export with {len(buyers)} buyers")
    return output.getvalue().encode("utf-8")


def generate_excel(buyers: List[Buyer]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Buyers"

    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_alignment = Alignment(horizontal="left", vertical="center")

    for col_idx, header in enumerate(EXPORT_COLUMNS, start=1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = header_alignment

    rows = [buyer_row(buyer) for buyer in buyers]
    for row_idx, row in enumerate(rows, start=2):
        for col_idx, value in enumerate(row, start=1):
            ws.cell(row=row_idx, column=col_idx, value=value)

    # Width from the header and the first 100 rows, capped at 50
    for col_idx, header in enumerate(EXPORT_COLUMNS, start=1):
        max_length = len(header)
        for row in rows[:100]:
            max_length = max(max_length, len(row[col_idx - 1]))
        ws.column_dimensions[ws.cell(row=1, column=col_idx).column_letter].width = min(max_length + 2, 50)

    ws.freeze_panes = "A2"

    output = io.BytesIO()
    wb.save(output)
    logger.info(f"Generated Excel export with {len(buyers)} buyers")
    return output.getvalue()


def render_export(buyers: List[Buyer], format: str = "csv") -> bytes:
    if format == "xlsx":
        return generate_excel(buyers)
    return generate_csv(buyers)


def export_filename(format: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"buyers_{now.strftime('%Y-%m-%d')}.{format}"
