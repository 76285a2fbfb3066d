"""AcroForm field inventory and writes.

A template's fields are read once into ``FormField`` values tagged with a
closed ``FieldKind``. Writers dispatch on that tag instead of re-inspecting
the PDF objects for every value.
"""

import io
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from ..common.exceptions import TemplateUnfillableError

OFF_STATE = "Off"

# /Ff flag bits for button fields (PDF 32000-1, table 226)
FLAG_RADIO = 1 << 15
FLAG_PUSHBUTTON = 1 << 16

MAX_PARENT_DEPTH = 32


class FieldKind(str, Enum):
    """Fillable field kinds."""
    TEXT = "text"
    CHOICE = "choice"
    CHECKBOX = "checkbox"
    RADIO = "radio"


@dataclass(frozen=True)
class FormField:
    """A fillable field in a template."""

    name: str  # Fully qualified field name
    kind: FieldKind
    options: tuple[str, ...] = ()  # Choice export values or radio states
    on_state: str = "Yes"  # Checkbox export value
    pages: tuple[int, ...] = ()  # 0-based pages hosting the field's widgets

    def match_option(self, value: str) -> Optional[str]:
        """Return the option matching ``value`` exactly, else case-insensitively."""
        if value in self.options:
            return value
        lowered = value.strip().lower()
        for option in self.options:
            if option.lower() == lowered:
                return option
        return None


class FormDocument(Protocol):
    """Writable form: the seam between field mapping and the PDF library."""

    def fields(self) -> dict[str, FormField]:
        ...

    def set_text(self, field: FormField, value: str) -> None:
        ...

    def select(self, field: FormField, option: str) -> None:
        ...

    def set_checked(self, field: FormField, checked: bool) -> None:
        ...

    def save(self) -> bytes:
        ...


def _resolve(obj: Any) -> Any:
    return obj.get_object() if obj is not None else None


def _parent(node: Any) -> Any:
    return _resolve(node.get("/Parent"))


def _inherited(node: Any, key: str) -> Any:
    depth = 0
    while node is not None and depth < MAX_PARENT_DEPTH:
        if key in node:
            return _resolve(node[key])
        node = _parent(node)
        depth += 1
    return None


def _qualified_name(node: Any) -> str:
    parts = []
    depth = 0
    while node is not None and depth < MAX_PARENT_DEPTH:
        if "/T" in node:
            parts.append(str(node["/T"]))
        node = _parent(node)
        depth += 1
    return ".".join(reversed(parts))


def _appearance_states(widget: Any) -> list[str]:
    appearance = _resolve(widget.get("/AP"))
    if appearance is None:
        return []
    normal = _resolve(appearance.get("/N"))
    if normal is None or not hasattr(normal, "keys"):
        return []
    return [str(key).lstrip("/") for key in normal.keys() if str(key).lstrip("/") != OFF_STATE]


def _choice_options(node: Any) -> list[str]:
    options = []
    for item in _inherited(node, "/Opt") or []:
        item = _resolve(item)
        if isinstance(item, list) and item:
            options.append(str(_resolve(item[0])))
        else:
            options.append(str(item))
    return options


def _classify(node: Any) -> Optional[FieldKind]:
    field_type = str(_inherited(node, "/FT") or "")
    flags = int(_inherited(node, "/Ff") or 0)
    if field_type == "/Tx":
        return FieldKind.TEXT
    if field_type == "/Ch":
        return FieldKind.CHOICE
    if field_type == "/Btn":
        if flags & FLAG_PUSHBUTTON:
            return None
        if flags & FLAG_RADIO:
            return FieldKind.RADIO
        return FieldKind.CHECKBOX
    return None  # signatures and unknown types are not fillable


def read_inventory(writer: PdfWriter) -> dict[str, FormField]:
    """Walk widget annotations page by page and build the field inventory."""
    found: dict[str, dict[str, Any]] = {}

    for page_index, page in enumerate(writer.pages):
        for annot_ref in _resolve(page.get("/Annots")) or []:
            widget = _resolve(annot_ref)
            if widget is None or widget.get("/Subtype") != "/Widget":
                continue
            node = widget if "/T" in widget else _parent(widget)
            if node is None:
                continue
            kind = _classify(node)
            name = _qualified_name(node)
            if kind is None or not name:
                continue

            entry = found.setdefault(name, {"kind": kind, "pages": [], "options": [], "on": None})
            if page_index not in entry["pages"]:
                entry["pages"].append(page_index)

            if kind == FieldKind.CHOICE and not entry["options"]:
                entry["options"] = _choice_options(node)
            elif kind == FieldKind.RADIO:
                for state in _appearance_states(widget):
                    if state not in entry["options"]:
                        entry["options"].append(state)
            elif kind == FieldKind.CHECKBOX and entry["on"] is None:
                states = _appearance_states(widget)
                entry["on"] = states[0] if states else None

    return {
        name: FormField(
            name=name,
            kind=entry["kind"],
            options=tuple(entry["options"]),
            on_state=entry["on"] or "Yes",
            pages=tuple(entry["pages"]),
        )
        for name, entry in found.items()
    }


class PdfForm:
    """pypdf-backed ``FormDocument`` over a template's bytes."""

    def __init__(self, content: bytes, reference: str = ""):
        self.reference = reference
        try:
            reader = PdfReader(io.BytesIO(content))
            self._writer = PdfWriter(clone_from=reader)
            self._fields = read_inventory(self._writer)
        except (PyPdfError, ValueError, KeyError, TypeError) as e:
            raise TemplateUnfillableError(
                f"Failed to parse template {reference or '<bytes>'}: {e}", reference, e
            ) from e

    def fields(self) -> dict[str, FormField]:
        return dict(self._fields)

    def _write(self, field: FormField, value: str) -> None:
        for page_index in field.pages:
            self._writer.update_page_form_field_values(
                self._writer.pages[page_index], {field.name: value}
            )

    def set_text(self, field: FormField, value: str) -> None:
        self._write(field, value)

    def select(self, field: FormField, option: str) -> None:
        if field.kind == FieldKind.RADIO:
            self._write(field, f"/{option}")
        else:
            self._write(field, option)

    def set_checked(self, field: FormField, checked: bool) -> None:
        self._write(field, f"/{field.on_state}" if checked else f"/{OFF_STATE}")

    def save(self) -> bytes:
        output = io.BytesIO()
        self._writer.write(output)
        output.seek(0)
        return output.read()
