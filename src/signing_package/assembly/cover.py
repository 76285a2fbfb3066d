"""One-page info cover summarizing the deal for the closing file."""

from typing import Any, Mapping

import fitz  # PyMuPDF

from ..utils.coercion import lookup, normalize_value

COVER_TITLE = "Info Cover Page"
COVER_FILE_NAME = "Info Cover Page.pdf"

PAGE_WIDTH = 595
PAGE_HEIGHT = 842
MARGIN_LEFT = 40
VALUE_COLUMN = 200
TITLE_TOP = 42
LINE_HEIGHT = 18

ADDRESS_KEYS = ("Street", "City", "Province", "Postal_Code")


def _value(record: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = normalize_value(lookup(record, key)).strip()
        if value:
            return value
    return ""


def cover_rows(record: Mapping[str, Any]) -> list[tuple[str, str]]:
    """Label/value rows printed on the cover, in display order."""
    address = ", ".join(v for v in (_value(record, k) for k in ADDRESS_KEYS) if v)
    return [
        ("Deal / File Name:", _value(record, "Deal_Name", "Name")),
        ("Contact Name:", _value(record, "Contact_Name")),
        ("Lender:", _value(record, "Lender_Name")),
        ("Address:", address),
        ("Closing Date:", _value(record, "Closing_Date")),
        ("COF Date:", _value(record, "COF_Date")),
        ("Total Mtg Amt (incl. ins.):", _value(record, "Total_Mortgage_Amount_incl_Insurance")),
        ("Email (B1):", _value(record, "Email")),
        ("Email (B2):", _value(record, "Contact_Email_2")),
    ]


def render_info_cover(record: Mapping[str, Any]) -> bytes:
    """Render the cover page as a single A4 page."""
    pdf_doc = fitz.open()
    try:
        page = pdf_doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
        y = TITLE_TOP
        page.insert_text((MARGIN_LEFT, y), COVER_TITLE, fontname="hebo", fontsize=16)
        y += 28

        for label, value in cover_rows(record):
            page.insert_text((MARGIN_LEFT, y), label, fontname="hebo", fontsize=11)
            page.insert_text((VALUE_COLUMN, y), value, fontname="helv", fontsize=11)
            y += LINE_HEIGHT

        return pdf_doc.tobytes(garbage=3, deflate=True)
    finally:
        pdf_doc.close()
