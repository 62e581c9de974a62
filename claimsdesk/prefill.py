"""
Claims Desk - Prefilled Form URLs

Builds the JotForm link a client signs on. The link carries the signature
token so the completion webhook can be tied back to the request.
"""

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional
from urllib.parse import urlencode, urlsplit, parse_qsl

from claimsdesk.config import settings
from claimsdesk.document_types import get_document_config
from claimsdesk.field_mapping import map_case_fields, clean_value

SIGNATURE_TOKEN_PARAM = "signature_token"
CASE_NUMBER_PARAM = "case_number"

# Parameters the mapping tables may never emit
RESERVED_PARAMS = frozenset({SIGNATURE_TOKEN_PARAM})


def get_form_base_url(document_type) -> str:
    """Get the public JotForm URL for a document type's form."""
    config = get_document_config(document_type)
    return f"{settings.JOTFORM_FORM_URL.rstrip('/')}/{config.form_id}"


def build_form_url(
    document_type,
    case_data: Mapping[str, Any],
    signature_token: str,
    schema=None,
) -> str:
    """
    Build a prefilled JotForm URL for a case.

    The query string is ``signature_token`` first, then one parameter per
    mapped field, then ``case_number`` so even a sparse mapping carries a
    traceable reference. Values are form-encoded (spaces as ``+``).

    Raises:
        UnsupportedDocumentType: If the document type is not configured
    """
    base_url = get_form_base_url(document_type)
    case_data = case_data or {}

    params = [(SIGNATURE_TOKEN_PARAM, signature_token)]
    mapped = map_case_fields(document_type, case_data, schema=schema)
    params.extend(
        (key, value) for key, value in mapped.items() if key not in RESERVED_PARAMS
    )

    case_number = clean_value(case_data.get("caseNumber"))
    if case_number and CASE_NUMBER_PARAM not in mapped:
        params.append((CASE_NUMBER_PARAM, case_number))

    return f"{base_url}?{urlencode(params)}"


@dataclass
class FormUrlReport:
    """Result of checking a generated form URL."""
    is_valid: bool
    field_count: int
    has_signature_token: bool
    issues: List[str] = field(default_factory=list)


def validate_form_url(url: str, expected_token: Optional[str] = None) -> FormUrlReport:
    """
    Sanity-check a prefilled form URL before it is sent to a client.

    Flags URLs that are not on the form host, lack the signature token, or
    carry empty or placeholder ("undefined"/"null") values.
    """
    issues: List[str] = []
    parts = urlsplit(url)
    form_host = urlsplit(settings.JOTFORM_FORM_URL).netloc

    if parts.scheme not in ("http", "https") or not parts.netloc:
        issues.append("Invalid URL format")
    elif parts.netloc != form_host:
        issues.append(f"Not a form provider URL: {parts.netloc}")

    params = parse_qsl(parts.query, keep_blank_values=True)
    tokens = [value for key, value in params if key == SIGNATURE_TOKEN_PARAM]

    if not params:
        issues.append("No URL parameters found")
    if not tokens:
        issues.append("Missing signature_token parameter")
    elif len(tokens) > 1:
        issues.append("Duplicate signature_token parameter")
    elif expected_token is not None and tokens[0] != expected_token:
        issues.append("signature_token does not match the issued token")

    for key, value in params:
        if not value.strip():
            issues.append(f"Empty value for parameter: {key}")
        elif value.strip().lower() in ("undefined", "null", "none"):
            issues.append(f"Placeholder value for parameter: {key}")

    return FormUrlReport(
        is_valid=not issues,
        field_count=len(params),
        has_signature_token=bool(tokens),
        issues=issues,
    )
