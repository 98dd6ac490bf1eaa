"""
Contract System Type Definitions

Dataclasses representing customers, templates, signature placements and
workflow results. Customer input arrives in either camelCase (browser
forms) or snake_case (database rows); both are normalized here.
"""

import base64
import re
from dataclasses import dataclass, field, fields as dataclass_fields
from enum import Enum
from typing import Any, Dict, List, Optional

from .exceptions import ValidationError


class DocumentType(Enum):
    """Document types with hand-authored field maps."""
    HD_DOCS = "hd-docs"
    CHARGE_SLIP = "charge-slip"
    MEMBERSHIP_PLAN = "membership-plan"

    @classmethod
    def is_known(cls, value: str) -> bool:
        return value in {member.value for member in cls}


class DocumentStatus(Enum):
    """Lifecycle status of a dispatched document."""
    PENDING = "pending"
    SENT = "sent"
    SIGNED = "signed"
    FAILED = "failed"

    @classmethod
    def parse(cls, value: Any) -> 'DocumentStatus':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ', '.join(member.value for member in cls)
            raise ValidationError(
                f"Invalid status '{value}'. Use one of: {allowed}",
                field='status'
            )


class DeliveryMethod(Enum):
    """How the signing invite reaches the customer."""
    EMAIL = "email"
    SMS = "sms"

    @classmethod
    def parse(cls, value: Any) -> 'DeliveryMethod':
        if not value:
            return cls.EMAIL
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Invalid delivery method '{value}'. Use 'email' or 'sms'",
                field='deliveryMethod'
            )


class UserRole(Enum):
    ADMIN = "admin"
    SALES_REP = "sales_rep"

    @classmethod
    def parse(cls, value: Any) -> 'UserRole':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Invalid role '{value}'", field='role')


_CAMEL_BOUNDARY = re.compile(r'(?<!^)(?=[A-Z])')

# Alternate spellings seen in form submissions
_CUSTOMER_ALIASES = {
    'email_address': 'email',
    'zip': 'zip_code',
}

_IGNORED_CUSTOMER_KEYS = {'created_at', 'updated_at', 'documents'}


def to_snake_case(key: str) -> str:
    """
    Convert a camelCase key to snake_case.

    Examples:
        "firstName" -> "first_name"
        "totalEquipmentPrice" -> "total_equipment_price"
        "zip_code" -> "zip_code"
    """
    return _CAMEL_BOUNDARY.sub('_', key).lower()


@dataclass
class Customer:
    """
    A customer record with contact and financing details.

    Attributes outside the customers table (salesperson name, membership
    type, notes, ...) are kept in `extra` so the field mapper can still
    reach them.
    """
    id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    equipment: Optional[str] = None
    finance_company: Optional[str] = None
    interest_rate: Optional[Any] = None
    monthly_payment: Optional[Any] = None
    total_equipment_price: Optional[Any] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def column_names(cls) -> List[str]:
        """Columns stored in the customers table (excluding id)."""
        return [f.name for f in dataclass_fields(cls) if f.name not in ('id', 'extra')]

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Customer':
        """Build a Customer from camelCase or snake_case input."""
        columns = set(cls.column_names()) | {'id'}
        values: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}

        for key, value in (data or {}).items():
            name = to_snake_case(key)
            name = _CUSTOMER_ALIASES.get(name, name)
            if name in _IGNORED_CUSTOMER_KEYS:
                continue
            if name in columns:
                # camelCase and snake_case may both be present; keep the first non-empty
                if values.get(name) in (None, ''):
                    values[name] = value
            else:
                extra[name] = value

        if values.get('id') is not None:
            values['id'] = str(values['id'])

        return cls(extra=extra, **values)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up an attribute by camelCase or snake_case name."""
        name = to_snake_case(key)
        name = _CUSTOMER_ALIASES.get(name, name)
        if name in self.column_names() or name == 'id':
            value = getattr(self, name)
        else:
            value = self.extra.get(name)
        return default if value is None else value

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def to_record(self) -> Dict[str, Any]:
        """Row for the customers table (non-null columns only)."""
        record = {}
        for name in self.column_names():
            value = getattr(self, name)
            if value is not None:
                record[name] = value
        return record

    def to_dict(self) -> Dict[str, Any]:
        data = {'id': self.id, **self.to_record()}
        data.update(self.extra)
        return data


@dataclass(frozen=True)
class ContractTemplate:
    """
    A named PDF template keyed by (document type, language).

    Attributes:
        id: Template identifier (database UUID or catalog slug)
        document_type: e.g. "hd-docs", "charge-slip"
        language: "english" or "spanish"
        file_path: Path relative to the templates directory
    """
    id: str
    name: str
    document_type: str
    language: str
    file_path: str
    description: str = ''
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ContractTemplate':
        return cls(
            id=str(data.get('id') or data.get('contract_id') or ''),
            name=data.get('name') or data.get('contract_name') or '',
            document_type=data['document_type'],
            language=data.get('language') or 'english',
            file_path=data['file_path'],
            description=data.get('description') or '',
            is_active=bool(data.get('is_active', True))
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'document_type': self.document_type,
            'language': self.language,
            'file_path': self.file_path,
            'description': self.description,
            'is_active': self.is_active
        }


@dataclass(frozen=True)
class SignatureField:
    """
    A field placed on an uploaded document for the signer to complete.

    Coordinates are in PDF points on a zero-based page. `prefill`
    is only used for text fields; "today" means the dispatch date.
    """
    type: str
    x: int
    y: int
    width: int
    height: int
    page_number: int = 0
    required: bool = True
    label: Optional[str] = None
    prefill: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SignatureField':
        return cls(
            type=data.get('type', 'signature'),
            x=int(data['x']),
            y=int(data['y']),
            width=int(data['width']),
            height=int(data['height']),
            page_number=int(data.get('page_number', 0)),
            required=bool(data.get('required', True)),
            label=data.get('label'),
            prefill=data.get('prefill')
        )

    def to_signnow(self, role: str, prefilled_text: Optional[str] = None) -> Dict[str, Any]:
        """Convert to SignNow field payload format."""
        payload = {
            'type': self.type,
            'x': self.x,
            'y': self.y,
            'width': self.width,
            'height': self.height,
            'page_number': self.page_number,
            'role': role,
            'required': self.required
        }
        if self.label:
            payload['label'] = self.label
        if prefilled_text is not None:
            payload['prefilled_text'] = prefilled_text
        return payload


@dataclass(frozen=True)
class CheckboxGroup:
    """
    Mutually exclusive checkboxes, e.g. membership tiers.

    Attributes:
        options: Option key -> PDF checkbox field name
        selected: Option key to check; every other option is cleared
    """
    options: Dict[str, str]
    selected: str

    @property
    def selected_field(self) -> Optional[str]:
        return self.options.get(self.selected)

    @property
    def field_names(self) -> List[str]:
        return list(self.options.values())


@dataclass
class DispatchRequest:
    """What to send and how: document type, language and delivery channel."""
    document_type: str
    language: str = 'english'
    delivery_method: DeliveryMethod = DeliveryMethod.EMAIL
    sms_number: Optional[str] = None
    additional_fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DispatchRequest':
        document_type = data.get('documentType') or data.get('document_type')
        if not document_type:
            raise ValidationError("Document type is required", field='documentType')

        additional = data.get('additionalFields') or data.get('additional_fields') or {}

        return cls(
            document_type=document_type,
            language=data.get('language') or 'english',
            delivery_method=DeliveryMethod.parse(
                data.get('deliveryMethod') or data.get('delivery_method')
            ),
            sms_number=data.get('smsNumber') or data.get('sms_number'),
            additional_fields=dict(additional)
        )


@dataclass
class DispatchResult:
    """
    Outcome of a fill-and-dispatch run.

    `mock` is True whenever the provider was bypassed; `fallback_reason`
    tells the two cases apart ("unconfigured" or "provider_error").
    """
    success: bool
    document_id: str
    signature_url: str
    db_document: Optional[Dict[str, Any]] = None
    delivery_method: str = DeliveryMethod.EMAIL.value
    invite_id: Optional[str] = None
    mock: bool = False
    fallback_reason: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'success': self.success,
            'documentId': self.document_id,
            'signatureUrl': self.signature_url,
            'dbDocument': self.db_document,
            'deliveryMethod': self.delivery_method,
            'mock': self.mock
        }
        if self.invite_id:
            data['inviteId'] = self.invite_id
        if self.fallback_reason:
            data['fallbackReason'] = self.fallback_reason
        if self.error:
            data['error'] = self.error
        return data


@dataclass
class StatusCheckResult:
    """Result of checking one document's signing status with the provider."""
    provider_document_id: str
    status: str
    is_signed: bool = False
    changed: bool = False
    document_id: Optional[str] = None
    history: List[Dict[str, Any]] = field(default_factory=list)
    signed_document: Optional[bytes] = None
    signed_document_path: Optional[str] = None
    configured: bool = True
    error: Optional[str] = None

    def to_dict(self, include_document: bool = False) -> Dict[str, Any]:
        data = {
            'documentId': self.provider_document_id,
            'dbDocumentId': self.document_id,
            'status': self.status,
            'isSigned': self.is_signed,
            'changed': self.changed,
            'history': self.history,
            'configured': self.configured
        }
        if self.signed_document_path:
            data['signedDocumentPath'] = self.signed_document_path
        if include_document and self.signed_document:
            encoded = base64.b64encode(self.signed_document).decode('ascii')
            data['signedDocumentData'] = f"data:application/pdf;base64,{encoded}"
        if self.error:
            data['error'] = self.error
        return data
