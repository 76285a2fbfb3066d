"""Assembly pipeline: header extraction, flattening, merging and archiving.

Parts are concatenated in the order the sequencer produced them. There is
no reordering, deduplication or pagination.
"""

import io
import zipfile
from typing import Iterable

import fitz  # PyMuPDF
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from ..common.exceptions import MissingDocumentError, PackageBuildError
from ..common.models import NamedDocument, PackagePart
from ..common.safe_log import safe_log


def extract_page(content: bytes, page_number: int, reference: str = "") -> bytes:
    """Extract a single page from a PDF as a new PDF document.

    Args:
        content: Bytes of the full PDF
        page_number: 1-indexed page number to extract
        reference: Document name used in error messages

    Returns:
        Bytes of the single-page PDF

    Raises:
        MissingDocumentError: If the page is out of range or the PDF is unreadable
    """
    try:
        reader = PdfReader(io.BytesIO(content))
        total_pages = len(reader.pages)
    except PyPdfError as e:
        raise MissingDocumentError(reference, f"Unreadable document: {reference}", e) from e

    # Convert to 0-indexed
    page_index = page_number - 1

    if page_index < 0 or page_index >= total_pages:
        raise MissingDocumentError(
            reference,
            f"Page {page_number} of {reference} out of range (document has {total_pages} pages)",
        )

    writer = PdfWriter()
    writer.add_page(reader.pages[page_index])

    output = io.BytesIO()
    writer.write(output)
    output.seek(0)

    return output.read()


def flatten_document(content: bytes, label: str = "") -> bytes:
    """Bake form widgets and annotations into the page content."""
    try:
        pdf_doc = fitz.open(stream=content, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise PackageBuildError(f"Failed to open {label or 'document'} for flattening", label, e) from e

    try:
        pdf_doc.bake(annots=True, widgets=True)
        return pdf_doc.tobytes(garbage=3, deflate=True)
    finally:
        pdf_doc.close()


def merge_flattened(parts: Iterable[PackagePart]) -> bytes:
    """Flatten every part and concatenate all pages in order."""
    writer = PdfWriter()
    total_parts = 0

    for part in parts:
        flat = flatten_document(part.content, part.label)
        try:
            writer.append(PdfReader(io.BytesIO(flat)))
        except PyPdfError as e:
            raise PackageBuildError(f"Failed to merge {part.label}", part.label, e) from e
        total_parts += 1

    if total_parts == 0:
        raise PackageBuildError("Nothing to merge: the package has no documents")

    output = io.BytesIO()
    writer.write(output)
    output.seek(0)
    merged = output.read()

    safe_log("Merged package", parts=total_parts, pages=len(writer.pages), size=len(merged))
    return merged


def build_archive(documents: Iterable[NamedDocument]) -> bytes:
    """Zip editable documents; repeated names get a numeric suffix."""
    buffer = io.BytesIO()
    seen: dict[str, int] = {}

    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for document in documents:
            name = document.name
            count = seen.get(name, 0)
            seen[name] = count + 1
            if count:
                stem, dot, ext = name.rpartition(".")
                name = f"{stem} ({count + 1}).{ext}" if dot else f"{name} ({count + 1})"
            archive.writestr(name, document.content)

    return buffer.getvalue()
