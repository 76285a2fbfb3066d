"""Template form fields and record-to-field mapping."""

from .fields import FieldKind, FormDocument, FormField, PdfForm, read_inventory
from .mapper import (
    FieldOutcome,
    FieldWrite,
    FillResult,
    TemplateFiller,
    apply_field_map,
    fill_form,
    fill_template,
)

__all__ = [
    "FieldKind",
    "FormDocument",
    "FormField",
    "PdfForm",
    "read_inventory",
    "FieldOutcome",
    "FieldWrite",
    "FillResult",
    "TemplateFiller",
    "apply_field_map",
    "fill_form",
    "fill_template",
]
