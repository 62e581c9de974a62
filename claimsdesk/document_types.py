"""
Claims Desk - Document Types

The closed set of documents that can be sent out for signature, and the
JotForm form each one is filled in on.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from claimsdesk.exceptions import UnsupportedDocumentType


class DocumentType(str, Enum):
    """Document templates that can be sent for signature."""
    CLAIMS = "claims"
    NOT_AT_FAULT_RENTAL = "not-at-fault-rental"
    CERTIS_RENTAL = "certis-rental"
    AUTHORITY_TO_ACT = "authority-to-act"
    DIRECTION_TO_PAY = "direction-to-pay"


@dataclass(frozen=True)
class DocumentConfig:
    name: str
    description: str
    form_id: str


DOCUMENT_TYPES: Mapping[DocumentType, DocumentConfig] = MappingProxyType({
    DocumentType.CLAIMS: DocumentConfig(
        name="Claims Form",
        description="Submit your insurance claim details",
        form_id="232543267390861",
    ),
    DocumentType.NOT_AT_FAULT_RENTAL: DocumentConfig(
        name="Not At Fault Rental",
        description="Rental agreement for not-at-fault parties",
        form_id="233241680987464",
    ),
    DocumentType.CERTIS_RENTAL: DocumentConfig(
        name="Certis Rental",
        description="Certis rental agreement form",
        form_id="233238940095055",
    ),
    DocumentType.AUTHORITY_TO_ACT: DocumentConfig(
        name="Authority to Act",
        description="Authorization for legal representation",
        form_id="233183619631457",
    ),
    DocumentType.DIRECTION_TO_PAY: DocumentConfig(
        name="Direction to Pay",
        description="Payment direction authorization",
        form_id="233061493503046",
    ),
})

_FORM_ID_INDEX: Mapping[str, DocumentType] = MappingProxyType(
    {config.form_id: doc_type for doc_type, config in DOCUMENT_TYPES.items()}
)


def parse_document_type(value) -> DocumentType:
    """Coerce a raw string (or DocumentType) into a DocumentType."""
    try:
        return DocumentType(value)
    except ValueError:
        raise UnsupportedDocumentType(value) from None


def get_document_config(document_type) -> DocumentConfig:
    """Get the form configuration for a document type."""
    return DOCUMENT_TYPES[parse_document_type(document_type)]


def get_document_type_from_form_id(form_id) -> Optional[DocumentType]:
    """
    Resolve a JotForm form ID back to the document type it belongs to.

    Unknown form IDs return None so the webhook can decide what to do
    with forms it does not recognise.
    """
    if form_id is None:
        return None
    return _FORM_ID_INDEX.get(str(form_id).strip())
