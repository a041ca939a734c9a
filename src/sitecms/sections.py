"""
Section shapes for CMS pages.

The shape of each known page section is configuration data kept in
sections.yaml. This module loads it and converts between flat editor form
fields and the stored section content.
"""

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from sitecms.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_SECTIONS_FILE = Path(__file__).parent / "sections.yaml"

SECTION_KINDS = ('fields', 'list', 'items', 'rows', 'documents')


@dataclass
class SectionSchema:
    """Expected shape of one page section."""

    page: str
    section: str
    kind: str = 'fields'
    fields: List[str] = field(default_factory=list)
    image_fields: List[str] = field(default_factory=list)
    item_fields: List[str] = field(default_factory=list)
    image_field: Optional[str] = None
    list_field: str = 'listItems'
    list_prefix: str = 'listItem'
    row_columns: List[str] = field(default_factory=list)
    row_key: Optional[str] = None
    document_fields: List[str] = field(default_factory=lambda: ['name', 'url', 'description'])
    max_items: int = 10
    slots: int = 5
    defaults: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, page: str, section: str, obj: Mapping[str, Any]) -> "SectionSchema":
        kind = obj.get('kind', 'fields')
        if kind not in SECTION_KINDS:
            raise ValueError(f"Unknown section kind for {page}/{section}: {kind}")

        return cls(
            page=page,
            section=section,
            kind=kind,
            fields=list(obj.get('fields', [])),
            image_fields=list(obj.get('image_fields', [])),
            item_fields=list(obj.get('item_fields', [])),
            image_field=obj.get('image_field'),
            list_field=obj.get('list_field', 'listItems'),
            list_prefix=obj.get('list_prefix', 'listItem'),
            row_columns=list(obj.get('row_columns', [])),
            row_key=obj.get('row_key'),
            document_fields=list(obj.get('document_fields', ['name', 'url', 'description'])),
            max_items=int(obj.get('max_items', 10)),
            slots=int(obj.get('slots', 5)),
            defaults=copy.deepcopy(obj.get('defaults') or {}),
        )


class SectionRegistry:
    """Lookup of section schemas by page and section."""

    def __init__(self, pages: Optional[Dict[str, Any]] = None):
        self._pages: Dict[str, Any] = pages or {}
        self._schemas: Dict[str, SectionSchema] = {}

        for page, page_def in self._pages.items():
            for section, section_def in (page_def.get('sections') or {}).items():
                self._schemas[f"{page}/{section}"] = SectionSchema.from_dict(page, section, section_def)

            documents_def = page_def.get('documents') or {'kind': 'documents'}
            for doc_id, doc_def in (page_def.get('document_sections') or {}).items():
                for subsection in doc_def.get('subsections', []):
                    section = document_section_key(doc_id, subsection)
                    self._schemas[f"{page}/{section}"] = SectionSchema.from_dict(page, section, documents_def)

    @classmethod
    def load(cls, path: Optional[str] = None) -> "SectionRegistry":
        """
        Load section shapes from a YAML file.

        Args:
            path: YAML file (uses the bundled sections.yaml if None)

        Returns:
            SectionRegistry instance
        """
        sections_path = Path(path) if path else DEFAULT_SECTIONS_FILE
        with open(sections_path, 'r') as f:
            raw = yaml.safe_load(f) or {}

        registry = cls(raw.get('pages') or {})
        logger.debug("Loaded %d section schemas from %s", len(registry._schemas), sections_path)
        return registry

    def pages(self) -> List[str]:
        return list(self._pages.keys())

    def sections(self, page: str) -> List[str]:
        prefix = f"{page}/"
        return [key[len(prefix):] for key in self._schemas if key.startswith(prefix)]

    def document_sections(self, page: str) -> Dict[str, Any]:
        """Document groups of a page with their titles and subsections."""
        return copy.deepcopy((self._pages.get(page) or {}).get('document_sections') or {})

    def has(self, page: str, section: str) -> bool:
        return f"{page}/{section}" in self._schemas

    def get(self, page: str, section: str) -> SectionSchema:
        """
        Get the schema for a section.

        Unknown sections get a schema-less 'fields' schema so their form
        values pass through unchanged.
        """
        schema = self._schemas.get(f"{page}/{section}")
        if schema is None:
            return SectionSchema(page=page, section=section)
        return schema


def document_section_key(group: str, subsection: str) -> str:
    """Section identifier for a document group subsection, e.g. annual-return_fy-2024-25."""
    return f"{group}_{subsection}"


def _trim(value: Any) -> Any:
    if value is None:
        return ''
    if isinstance(value, str):
        return value.strip()
    return value


def _text(form: Mapping[str, Any], key: str) -> str:
    value = form.get(key)
    if value is None:
        return ''
    return str(value).strip()


def build_payload(schema: SectionSchema, form: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Convert flat editor form values into stored section content.

    Args:
        schema: Section schema
        form: Flat form values (strings, or a 'documents' list for document sections)

    Returns:
        Section data ready to save
    """
    if schema.kind == 'items':
        return _build_items(schema, form)
    if schema.kind == 'list':
        return _build_list(schema, form)
    if schema.kind == 'rows':
        return _build_rows(schema, form)
    if schema.kind == 'documents':
        return _build_documents(schema, form)
    return {key: _trim(value) for key, value in form.items()}


def _build_items(schema: SectionSchema, form: Mapping[str, Any]) -> Dict[str, Any]:
    items = []
    for i in range(1, schema.max_items + 1):
        prefix = f"{schema.section}_{i}_"
        title = _text(form, prefix + 'title')
        description = _text(form, prefix + 'description')
        content = _text(form, prefix + 'content')
        icon = _text(form, prefix + 'icon')

        if title and (description or content):
            items.append({
                'icon': icon,
                'title': title,
                'description': description,
                'content': content or description,
            })

    payload: Dict[str, Any] = {'items': items, 'title': _text(form, 'title')}
    if schema.image_field:
        # Empty string explicitly removes a previously saved image
        payload[schema.image_field] = _text(form, schema.image_field)
    return payload


def _build_list(schema: SectionSchema, form: Mapping[str, Any]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {name: _text(form, name) for name in schema.fields}
    list_items = []
    for i in range(1, schema.max_items + 1):
        item = _text(form, f"{schema.list_prefix}_{i}")
        if item:
            list_items.append(item)
    payload[schema.list_field] = list_items
    return payload


def _build_rows(schema: SectionSchema, form: Mapping[str, Any]) -> Dict[str, Any]:
    key = schema.row_key or (schema.row_columns[0] if schema.row_columns else None)
    others = [c for c in schema.row_columns if c != key]
    rows = []

    for i in range(1, schema.max_items + 1):
        row = {column: _text(form, f"row_{i}_{column}") for column in schema.row_columns}
        if key and row.get(key) and any(row[c] for c in others):
            rows.append(row)

    return {'title': _text(form, 'title'), 'rows': rows}


def _build_documents(schema: SectionSchema, form: Mapping[str, Any]) -> Dict[str, Any]:
    raw_documents = form.get('documents')
    if raw_documents is None:
        raw_documents = []
        for i in range(1, schema.slots + 1):
            raw_documents.append({
                name: form.get(f"document_{i}_{name}", '') for name in schema.document_fields
            })

    documents = []
    for doc in raw_documents or []:
        if not isinstance(doc, Mapping):
            continue
        cleaned = {name: _text(doc, name) for name in schema.document_fields}
        if cleaned.get('name') and cleaned.get('url'):
            documents.append(cleaned)

    return {
        'title': _text(form, 'title'),
        'content': _text(form, 'content'),
        'documents': documents,
    }


def to_form(schema: SectionSchema, data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Flatten stored section content into editor form values.

    The inverse of build_payload for content that build_payload produced.
    """
    data = data if isinstance(data, Mapping) else {}
    form: Dict[str, Any] = {}

    if schema.kind == 'documents':
        form['title'] = data.get('title') or ''
        form['content'] = data.get('content') or ''
        form['documents'] = pad_documents(data.get('documents'), schema.slots)
        return form

    if schema.kind == 'items':
        form['title'] = data.get('title') or ''
        if schema.image_field:
            form[schema.image_field] = data.get(schema.image_field) or ''
        for i, item in enumerate(data.get('items') or [], start=1):
            if i > schema.max_items or not isinstance(item, Mapping):
                break
            for name in ('icon', 'title', 'description', 'content'):
                form[f"{schema.section}_{i}_{name}"] = item.get(name) or ''
        return form

    if schema.kind == 'list':
        for name in schema.fields:
            form[name] = data.get(name) or ''
        for i, item in enumerate(data.get(schema.list_field) or [], start=1):
            if i > schema.max_items:
                break
            form[f"{schema.list_prefix}_{i}"] = item
        return form

    if schema.kind == 'rows':
        form['title'] = data.get('title') or ''
        for i, row in enumerate(data.get('rows') or [], start=1):
            if i > schema.max_items or not isinstance(row, Mapping):
                break
            for column in schema.row_columns:
                form[f"row_{i}_{column}"] = row.get(column) or ''
        return form

    form.update({name: '' for name in schema.fields})
    form.update(copy.deepcopy(dict(data)))
    return form


def empty_document() -> Dict[str, str]:
    return {'name': '', 'url': '', 'description': ''}


def pad_documents(documents: Optional[List[Dict[str, Any]]], slots: int = 5) -> List[Dict[str, Any]]:
    """Pad (or cut) a document list to a fixed number of editor slots."""
    padded = [dict(doc) for doc in (documents or []) if isinstance(doc, Mapping)]
    padded.extend(empty_document() for _ in range(max(0, slots - len(padded))))
    return padded[:slots]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip()) or value == []


def merge_items(items: List[Dict[str, Any]], default_items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Fill missing item fields from the default item at the same position.

    An icon that is present but empty is kept empty; only a missing icon
    falls back to the default.
    """
    merged = []
    for index, item in enumerate(items):
        default = default_items[index] if index < len(default_items) else {}
        result = dict(item)

        icon = item.get('icon')
        result['icon'] = icon.strip() if isinstance(icon, str) else default.get('icon', '')

        for name in ('title', 'description'):
            value = item.get(name)
            if isinstance(value, str) and value.strip():
                result[name] = value.strip()
            else:
                result[name] = default.get(name, '')

        merged.append(result)
    return merged


def merge_defaults(schema: SectionSchema, data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Combine fetched section data with the section's display defaults.

    Blank values fall back to defaults; item lists are merged item by item
    when the fetched list is not empty.
    """
    result = copy.deepcopy(schema.defaults)
    if not isinstance(data, Mapping):
        return result

    for key, value in data.items():
        if key == 'items' and isinstance(value, list):
            if value:
                result['items'] = merge_items(value, schema.defaults.get('items') or [])
            continue
        if _is_blank(value) and key in schema.defaults:
            continue
        result[key] = copy.deepcopy(value)

    return result


def visible_items(items: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Drop items that have no icon, title, description or content."""
    visible = []
    for item in items or []:
        if not isinstance(item, Mapping):
            continue
        if any(isinstance(item.get(name), str) and item.get(name).strip()
               for name in ('icon', 'title', 'description', 'content')):
            visible.append(item)
    return visible
