"""
PDF Filler

Fills AcroForm fields in a PDF template by exact field name.

Fields are matched by their partial name (/T) or fully qualified name.
Fields that are absent, have a None value, or are not text/choice
fields are skipped. Checkbox groups are handled separately: every
option is cleared, then the selected option gets its own "on" state.
"""

import io
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from pypdf.generic import BooleanObject, DictionaryObject, NameObject, TextStringObject

from .exceptions import PDFFillError
from .types import CheckboxGroup

logger = logging.getLogger(__name__)

PDF_HEADER = b'%PDF-'

TEXT_FIELD_TYPES = {'/Tx', '/Ch'}
CHECKBOX_FIELD_TYPE = '/Btn'
OFF_STATE = '/Off'


def _resolve(obj):
    return obj.get_object() if hasattr(obj, 'get_object') else obj


def _field_of(annot: DictionaryObject) -> DictionaryObject:
    """The field dictionary that owns a widget (the widget itself when merged)."""
    if '/T' in annot:
        return annot
    parent = annot.get('/Parent')
    return _resolve(parent) if parent is not None else annot


def _field_type(annot: DictionaryObject) -> str:
    """Get field type, walking up the parent chain if needed."""
    node = annot
    while node is not None:
        node = _resolve(node)
        ft = node.get('/FT')
        if ft:
            return str(ft)
        node = node.get('/Parent')
    return ''


def _qualified_name(annot: DictionaryObject) -> str:
    """Build the fully qualified field name by walking the parent chain."""
    parts = []
    node = annot
    while node is not None:
        node = _resolve(node)
        name = node.get('/T')
        if name:
            parts.insert(0, str(name))
        node = node.get('/Parent')
    return '.'.join(parts)


def _checkbox_on_state(annot: DictionaryObject) -> str:
    """Find the 'on' state name from a checkbox's appearance dict."""
    appearance = annot.get('/AP')
    if appearance is None:
        return '/Yes'
    normal = _resolve(appearance).get('/N')
    if normal is not None:
        normal = _resolve(normal)
        if hasattr(normal, 'keys'):
            for key in normal.keys():
                if str(key) != OFF_STATE:
                    return str(key)
    return '/Yes'


class PDFFiller:
    """
    Fills PDF form fields.

    Usage:
        pdf_bytes = PDFFiller.fill(template_bytes, {'CustomerName': 'Jane Doe'})
        fields = PDFFiller.list_fields(template_bytes)
    """

    @staticmethod
    def _open(template_bytes: bytes) -> PdfReader:
        """
        Parse template bytes.

        Raises:
            PDFFillError: If the bytes are not a parseable PDF
        """
        if not template_bytes or not bytes(template_bytes[:1024]).lstrip().startswith(PDF_HEADER):
            raise PDFFillError("Invalid PDF file: PDF header not found")

        try:
            reader = PdfReader(io.BytesIO(template_bytes), strict=False)
            if reader.is_encrypted:
                reader.decrypt('')
            # Force page tree parsing so structural errors surface here
            len(reader.pages)
        except (PyPdfError, ValueError, TypeError, KeyError, AttributeError, IndexError) as e:
            logger.error(f"Cannot parse PDF document: {e}")
            raise PDFFillError(f"Cannot parse PDF document: {e}")

        return reader

    @classmethod
    def list_fields(cls, template_bytes: bytes) -> Dict[str, str]:
        """Return {qualified field name: field type} for every form field."""
        reader = cls._open(template_bytes)
        fields = reader.get_fields() or {}
        return {name: str(field.get('/FT', '')) for name, field in fields.items()}

    @staticmethod
    def _widgets(writer: PdfWriter) -> Iterator[Tuple[Any, DictionaryObject, str, str]]:
        """Yield (page, widget annotation, partial name, qualified name) for every widget."""
        for page in writer.pages:
            annots = page.get('/Annots')
            if annots is None:
                continue
            for annot_ref in _resolve(annots):
                annot = _resolve(annot_ref)
                if annot.get('/Subtype') != '/Widget':
                    continue
                field = _field_of(annot)
                yield page, annot, str(field.get('/T', '')), _qualified_name(annot)

    @staticmethod
    def _render_appearances(
        writer: PdfWriter,
        page,
        page_fields: Dict[str, str],
        annots: List[DictionaryObject]
    ) -> None:
        """
        Regenerate appearance streams for the filled text fields on one page.

        When pypdf cannot build them (no /AcroForm, unusable /DA), the stale
        appearances are dropped and viewers fall back to /NeedAppearances.
        """
        try:
            writer.update_page_form_field_values(page, page_fields)
        except (PyPdfError, ValueError, TypeError, KeyError, IndexError, AttributeError) as e:
            logger.warning(f"Could not generate field appearances, relying on NeedAppearances: {e}")
            for annot in annots:
                if '/AP' in annot:
                    del annot['/AP']

    @classmethod
    def fill(
        cls,
        template_bytes: bytes,
        values: Dict[str, Any],
        checkbox_group: Optional[CheckboxGroup] = None
    ) -> bytes:
        """
        Fill named form fields and return the new PDF bytes.

        Args:
            template_bytes: Source PDF
            values: PDF field name -> value; None values are skipped
            checkbox_group: Optional mutually exclusive checkbox group

        Raises:
            PDFFillError: If the template is not a parseable PDF
        """
        reader = cls._open(template_bytes)
        try:
            writer = PdfWriter(clone_from=reader)
        except (PyPdfError, ValueError, TypeError, KeyError) as e:
            raise PDFFillError(f"Cannot copy PDF document: {e}")

        fill_values = {name: value for name, value in values.items() if value is not None}
        group_fields = set(checkbox_group.field_names) if checkbox_group else set()
        selected_field = checkbox_group.selected_field if checkbox_group else None

        filled = set()
        found_checkboxes = set()
        page_values: Dict[int, Tuple[Any, Dict[str, str], List[DictionaryObject]]] = {}

        for page, annot, short_name, qualified in cls._widgets(writer):
            field = _field_of(annot)
            field_type = _field_type(annot)

            group_name = short_name if short_name in group_fields else (
                qualified if qualified in group_fields else None
            )
            if group_name:
                if field_type != CHECKBOX_FIELD_TYPE:
                    logger.debug(f"Field {group_name} is not a checkbox, skipping")
                    continue
                state = _checkbox_on_state(annot) if group_name == selected_field else OFF_STATE
                field[NameObject('/V')] = NameObject(state)
                annot[NameObject('/AS')] = NameObject(state)
                found_checkboxes.add(group_name)
                continue

            name = short_name if short_name in fill_values else (
                qualified if qualified in fill_values else None
            )
            if name is None:
                continue

            if field_type not in TEXT_FIELD_TYPES:
                logger.debug(f"Field {name} has type {field_type or 'unknown'}, skipping")
                continue

            text = str(fill_values[name])
            field[NameObject('/V')] = TextStringObject(text)
            page_values.setdefault(id(page), (page, {}, []))
            page_values[id(page)][1][short_name or name] = text
            page_values[id(page)][2].append(annot)
            filled.add(name)

        for page, page_fields, annots in page_values.values():
            cls._render_appearances(writer, page, page_fields, annots)

        missing = set(fill_values) - filled
        if missing:
            logger.debug(f"Fields not filled (absent or incompatible): {sorted(missing)}")
        if checkbox_group:
            missing_boxes = group_fields - found_checkboxes
            if missing_boxes:
                logger.debug(f"Checkboxes not found in PDF: {sorted(missing_boxes)}")
            if selected_field is None:
                logger.warning(f"Unknown checkbox option '{checkbox_group.selected}', all options cleared")

        # Force PDF viewers to re-render field appearances
        if '/AcroForm' in writer._root_object:
            _resolve(writer._root_object['/AcroForm'])[NameObject('/NeedAppearances')] = BooleanObject(True)

        buffer = io.BytesIO()
        writer.write(buffer)
        logger.info(f"Filled {len(filled)} of {len(fill_values)} field(s)")
        return buffer.getvalue()
