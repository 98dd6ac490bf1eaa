"""
Contract Catalog

Loads and validates the static contract configuration from YAML:
the built-in template list, per-document-type extra inputs, and the
SignNow signature-field layouts. Fails fast if the file is invalid.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .exceptions import ConfigurationError, ValidationError
from .types import ContractTemplate, SignatureField

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / 'contract_config' / 'contracts.yml'

DEFAULT_SIGNER_ROLE = 'Signer 1'

SIGNNOW_FIELD_TYPES = {'signature', 'initials', 'text', 'checkbox'}

# Used when the YAML omits default_signature_fields
_FALLBACK_SIGNATURE_FIELD = SignatureField(
    type='signature', x=150, y=100, width=250, height=60, page_number=0
)


class ContractCatalog:
    """
    Static contract configuration.

    Usage:
        catalog = ContractCatalog.load()
        fields = catalog.signature_fields('hd-docs', 'spanish')
        templates = catalog.templates()
    """

    def __init__(
        self,
        templates: List[ContractTemplate],
        signature_layouts: Dict[str, List[SignatureField]],
        default_signature_fields: List[SignatureField],
        extra_fields: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        always_offered: Optional[List[str]] = None,
        signer_role: str = DEFAULT_SIGNER_ROLE
    ):
        self._templates = list(templates)
        self._layouts = dict(signature_layouts)
        self._default_fields = list(default_signature_fields) or [_FALLBACK_SIGNATURE_FIELD]
        self._extra_fields = dict(extra_fields or {})
        self._always_offered = list(always_offered or [])
        self.signer_role = signer_role

    @classmethod
    def load(cls, path: Union[str, Path, None] = None) -> 'ContractCatalog':
        """
        Load the catalog from a YAML file.

        Raises:
            ConfigurationError: If the file is missing or invalid
        """
        config_path = Path(path) if path else DEFAULT_CONFIG_PATH

        if not config_path.exists():
            raise ConfigurationError(f"Contract config not found: {config_path}")

        try:
            raw = yaml.safe_load(config_path.read_text())
        except yaml.YAMLError as e:
            raise ConfigurationError(f"{config_path.name}: YAML syntax error - {e}")

        catalog = cls.from_dict(raw, source=config_path.name)
        logger.info(
            f"Loaded contract catalog: {len(catalog._templates)} template(s), "
            f"{len(catalog._layouts)} signature layout(s)"
        )
        return catalog

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]], source: str = 'catalog') -> 'ContractCatalog':
        """Build a catalog from parsed YAML, collecting every error before failing."""
        if not raw:
            raise ConfigurationError(f"{source}: Empty contract configuration")

        errors = []

        templates = []
        always_offered = []
        seen_ids = set()
        for entry in raw.get('templates') or []:
            try:
                template = ContractTemplate.from_dict(entry)
            except (KeyError, TypeError) as e:
                errors.append(f"Template entry {entry!r} is missing {e}")
                continue
            if template.id in seen_ids:
                errors.append(f"Duplicate template id '{template.id}'")
                continue
            seen_ids.add(template.id)
            templates.append(template)
            if entry.get('always_offered'):
                always_offered.append(template.id)

        layouts = {}
        for key, entries in (raw.get('signature_layouts') or {}).items():
            try:
                layouts[key] = cls._parse_fields(entries, key)
            except ValidationError as e:
                errors.append(str(e))

        try:
            default_fields = cls._parse_fields(
                raw.get('default_signature_fields') or [], 'default_signature_fields'
            )
        except ValidationError as e:
            errors.append(str(e))
            default_fields = []

        if errors:
            error_msg = "Contract configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            logger.error(error_msg)
            raise ConfigurationError(error_msg)

        return cls(
            templates=templates,
            signature_layouts=layouts,
            default_signature_fields=default_fields,
            extra_fields=raw.get('extra_fields') or {},
            always_offered=always_offered,
            signer_role=raw.get('signer_role') or DEFAULT_SIGNER_ROLE
        )

    @staticmethod
    def _parse_fields(entries: List[Dict[str, Any]], key: str) -> List[SignatureField]:
        fields = []
        for index, entry in enumerate(entries or []):
            try:
                field = SignatureField.from_dict(entry)
            except (KeyError, TypeError, ValueError) as e:
                raise ValidationError(f"{key}[{index}]: invalid field definition ({e})")
            if field.type not in SIGNNOW_FIELD_TYPES:
                raise ValidationError(
                    f"{key}[{index}]: unknown field type '{field.type}'. "
                    f"Available types: {sorted(SIGNNOW_FIELD_TYPES)}"
                )
            fields.append(field)
        return fields

    @staticmethod
    def layout_key(document_type: str, language: str) -> str:
        return f"{document_type}_{language}"

    def signature_fields(self, document_type: str, language: str) -> List[SignatureField]:
        """Signature placement for a document; falls back to the default layout."""
        key = self.layout_key(document_type, language)
        fields = self._layouts.get(key)
        if fields:
            return list(fields)
        logger.debug(f"No signature layout for {key}, using default")
        return list(self._default_fields)

    def has_layout(self, document_type: str, language: str) -> bool:
        return self.layout_key(document_type, language) in self._layouts

    def templates(self) -> List[ContractTemplate]:
        """Built-in template list."""
        return list(self._templates)

    def get_template(self, template_id: str) -> Optional[ContractTemplate]:
        for template in self._templates:
            if template.id == template_id:
                return template
        return None

    def find_template(self, document_type: str, language: str = 'english') -> Optional[ContractTemplate]:
        """Find a built-in template by (document type, language)."""
        for template in self._templates:
            if template.document_type == document_type and template.language == language:
                return template
        return None

    def always_offered(self) -> List[ContractTemplate]:
        """Templates offered to every user regardless of permissions."""
        return [t for t in self._templates if t.id in self._always_offered]

    def extra_fields(self, document_type: str) -> List[Dict[str, Any]]:
        """Extra inputs collected for a document type (e.g. salesperson name)."""
        return list(self._extra_fields.get(document_type, []))
