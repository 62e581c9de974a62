"""
Claims Desk - JotForm Field Mapping

Translates a flat case record into JotForm prefill parameters.

Each document type has a static table of FieldSpec entries. A spec names the
JotForm field it fills (``provider_key``), the case-data keys the value may
live under (``sources``, primary first, then the historical aliases the case
screens have used over time), and the JotForm field names to fall back to
when a live form schema says the primary field is not on the form.

The claims form keys were taken from inspection of the live form; the four
smaller forms address questions by their bare numeric question IDs.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Set, Tuple

from claimsdesk.document_types import DocumentType, parse_document_type
from claimsdesk.exceptions import UnsupportedDocumentType

logger = logging.getLogger(__name__)

FIRST = "first"
LAST = "last"


@dataclass(frozen=True)
class FieldSpec:
    """One JotForm field and where its value comes from."""
    name: str
    provider_key: str
    sources: Tuple[str, ...]
    name_part: Optional[str] = None  # FIRST/LAST: value is split from a full name
    schema_fallbacks: Tuple[str, ...] = ()


CLAIMS_FIELDS: Tuple[FieldSpec, ...] = (
    # Panel shop
    FieldSpec("panelShopName", "q19_typeA19", ("panelShopName", "repairShop"),
              schema_fallbacks=("panelShop", "panel_shop", "shopName")),
    FieldSpec("panelShopContactFirst", "q3_contact[first]", ("panelShopContact", "repairContact"),
              name_part=FIRST, schema_fallbacks=("contact[first]",)),
    FieldSpec("panelShopContactLast", "q3_contact[last]", ("panelShopContact", "repairContact"),
              name_part=LAST, schema_fallbacks=("contact[last]",)),
    FieldSpec("panelShopPhone", "q26_phoneNumber[phone]", ("panelShopPhone", "repairPhone"),
              schema_fallbacks=("phoneNumber[phone]", "phone")),

    # Client / driver
    FieldSpec("clientNameFirst", "q41_driver[first]", ("clientName", "naf_name"),
              name_part=FIRST, schema_fallbacks=("driver[first]", "driverName", "name")),
    FieldSpec("clientNameLast", "q41_driver[last]", ("clientName", "naf_name"),
              name_part=LAST, schema_fallbacks=("driver[last]", "driver_last")),
    FieldSpec("clientPhone", "q15_mobileNo", ("clientPhone", "naf_phone"),
              schema_fallbacks=("mobileNo", "mobile_no", "phone", "client_phone")),
    FieldSpec("clientEmail", "q4_email", ("clientEmail", "naf_email"),
              schema_fallbacks=("email", "client_email", "driver_email")),
    FieldSpec("clientAddress", "q32_address[addr_line1]",
              ("clientStreetAddress", "clientAddress", "naf_address"),
              schema_fallbacks=("address[addr_line1]",)),
    FieldSpec("clientCity", "q32_address[city]", ("clientSuburb", "clientCity", "naf_suburb"),
              schema_fallbacks=("address[city]",)),
    FieldSpec("clientState", "q32_address[state]", ("clientState", "naf_state"),
              schema_fallbacks=("address[state]",)),
    FieldSpec("clientPostcode", "q32_address[postal]", ("clientPostcode", "naf_postcode"),
              schema_fallbacks=("address[postal]",)),

    # Client insurance and vehicle
    FieldSpec("insuranceCompany", "q51_insuranceCompany",
              ("clientInsuranceCompany", "insuranceCompany", "clientInsurer", "naf_insurer"),
              schema_fallbacks=("insurance", "insurer", "insurance_company")),
    FieldSpec("claimNumber", "q59_claimNumber59", ("clientClaimNumber", "claimNumber", "naf_claim"),
              schema_fallbacks=("claim", "claim_number", "claimNo")),
    FieldSpec("make", "q52_Make", ("make", "naf_make")),
    # Model/year/rego really are named claimNumberNN on the live form
    FieldSpec("model", "q56_claimNumber56", ("model", "naf_model")),
    FieldSpec("year", "q57_claimNumber57", ("year", "naf_year")),
    FieldSpec("rego", "q58_claimNumber58", ("rego", "naf_rego", "clientVehicleRego")),

    # At-fault driver
    FieldSpec("afDriverNameFirst", "q61_driver61[first]", ("atFaultPartyName", "af_name"),
              name_part=FIRST),
    FieldSpec("afDriverNameLast", "q61_driver61[last]", ("atFaultPartyName", "af_name"),
              name_part=LAST),
    FieldSpec("afDriverPhone", "q62_mobileNo62", ("atFaultPartyPhone", "af_phone")),
    FieldSpec("afDriverAddress", "q63_address63[addr_line1]",
              ("atFaultPartyStreetAddress", "af_address")),
    FieldSpec("afDriverEmail", "q65_email65", ("atFaultPartyEmail", "af_email")),
    FieldSpec("afInsuranceCompany", "q69_insuranceCompany69",
              ("atFaultPartyInsuranceCompany", "atFaultPartyInsurer", "af_insurer")),
    FieldSpec("afClaimNumber", "q70_claimNumber", ("atFaultPartyClaimNumber", "af_claim")),
    FieldSpec("afRego", "q74_regoNo", ("atFaultPartyVehicleRego", "af_rego")),

    # Accident
    FieldSpec("accidentDetails", "q75_accidentDetails",
              ("accidentDescription", "accident_description"),
              schema_fallbacks=("accident_details", "accident", "details")),
    FieldSpec("accidentLocation", "q76_accidentLocation",
              ("accidentLocation", "accident_location"),
              schema_fallbacks=("accident_location", "location")),
)

NOT_AT_FAULT_RENTAL_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("hirerName", "3", ("clientName", "naf_name")),
    FieldSpec("hirerEmail", "4", ("clientEmail", "naf_email")),
    FieldSpec("hirerPhone", "5", ("clientPhone", "naf_phone")),
    FieldSpec("hirerAddress", "6", ("clientStreetAddress", "clientAddress", "naf_address")),
    FieldSpec("rentalCaseNumber", "7", ("caseNumber",)),
    FieldSpec("rentalStartDate", "8", ("accidentDate",)),
)

CERTIS_RENTAL_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("certisHirerName", "3", ("clientName", "naf_name")),
    FieldSpec("certisHirerEmail", "4", ("clientEmail", "naf_email")),
    FieldSpec("certisCaseNumber", "5", ("caseNumber",)),
)

AUTHORITY_TO_ACT_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("principalName", "3", ("clientName", "naf_name")),
    FieldSpec("principalEmail", "4", ("clientEmail", "naf_email")),
    FieldSpec("authorityCaseNumber", "5", ("caseNumber",)),
    FieldSpec("authorizedRepresentative", "6", ("lawyer",)),
)

DIRECTION_TO_PAY_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("payerName", "3", ("clientName", "naf_name")),
    FieldSpec("payerEmail", "4", ("clientEmail", "naf_email")),
    FieldSpec("paymentCaseNumber", "5", ("caseNumber",)),
    FieldSpec("paymentAmount", "6", ("agreed", "settlement_amount")),
)

FIELD_MAPPINGS: Mapping[DocumentType, Tuple[FieldSpec, ...]] = MappingProxyType({
    DocumentType.CLAIMS: CLAIMS_FIELDS,
    DocumentType.NOT_AT_FAULT_RENTAL: NOT_AT_FAULT_RENTAL_FIELDS,
    DocumentType.CERTIS_RENTAL: CERTIS_RENTAL_FIELDS,
    DocumentType.AUTHORITY_TO_ACT: AUTHORITY_TO_ACT_FIELDS,
    DocumentType.DIRECTION_TO_PAY: DIRECTION_TO_PAY_FIELDS,
})


def get_field_specs(document_type) -> Tuple[FieldSpec, ...]:
    """Get the mapping table for a document type."""
    doc_type = parse_document_type(document_type)
    specs = FIELD_MAPPINGS.get(doc_type)
    if specs is None:
        raise UnsupportedDocumentType(document_type)
    return specs


def clean_value(value: Any) -> Optional[str]:
    """Stringify and trim a case value; blank values become None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def split_full_name(full_name: str) -> Tuple[str, str]:
    """
    Split a full name on the first whitespace.

    "Mary Jane Watson" -> ("Mary", "Jane Watson"). Lossy for multi-word
    first names, which is what the live forms have been prefilled with.
    """
    parts = full_name.strip().split(None, 1)
    if not parts:
        return "", ""
    first = parts[0]
    last = parts[1] if len(parts) > 1 else ""
    return first, last


def _base_field_name(key: str) -> str:
    """Strip a sub-field suffix: "q41_driver[first]" -> "q41_driver"."""
    return key.split("[", 1)[0]


def schema_field_names(schema) -> Set[str]:
    """
    Collect every name a prefill parameter may use for the questions in a
    JotForm schema: the question ID, the unique name and "q<id>_<name>".
    """
    questions: Iterable = schema.values() if isinstance(schema, Mapping) else schema
    names: Set[str] = set()
    for question in questions:
        if not isinstance(question, Mapping):
            continue
        qid = clean_value(question.get("qid"))
        name = clean_value(question.get("name"))
        if qid:
            names.add(qid)
        if name:
            names.add(name)
        if qid and name:
            names.add(f"q{qid}_{name}")
    return names


def _resolve_provider_key(spec: FieldSpec, known_fields: Optional[Set[str]]) -> str:
    if known_fields is None or _base_field_name(spec.provider_key) in known_fields:
        return spec.provider_key
    for fallback in spec.schema_fallbacks:
        if _base_field_name(fallback) in known_fields:
            logger.debug(f"{spec.name}: {spec.provider_key} not on form, using {fallback}")
            return fallback
    logger.warning(f"{spec.name}: {spec.provider_key} not found in form schema and no fallback matched")
    return spec.provider_key


def _resolve_value(spec: FieldSpec, case_data: Mapping[str, Any]) -> Optional[str]:
    # Already keyed by the provider field: use as-is, no name splitting
    direct = clean_value(case_data.get(spec.provider_key))
    if direct:
        return direct

    for source in spec.sources:
        value = clean_value(case_data.get(source))
        if not value:
            continue
        if spec.name_part is None:
            return value
        first, last = split_full_name(value)
        return clean_value(first if spec.name_part == FIRST else last)
    return None


def map_case_fields(
    document_type,
    case_data: Mapping[str, Any],
    schema=None,
) -> Dict[str, str]:
    """
    Map case data onto JotForm prefill parameters for a document type.

    Args:
        document_type: DocumentType (or its string value)
        case_data: Flat case record (camelCase keys plus legacy aliases)
        schema: Optional live question definitions from the JotForm API
            (``{qid: {"qid": ..., "name": ...}}`` or a list of questions)

    Returns:
        Ordered dict of JotForm field key -> trimmed string value. Blank
        values are never emitted.

    Raises:
        UnsupportedDocumentType: If the document type has no mapping table
    """
    specs = get_field_specs(document_type)
    case_data = case_data or {}
    known_fields = schema_field_names(schema) if schema is not None else None

    mapped: Dict[str, str] = {}
    for spec in specs:
        value = _resolve_value(spec, case_data)
        if value is None:
            continue
        key = _resolve_provider_key(spec, known_fields)
        if key in mapped:
            continue
        mapped[key] = value
        logger.debug(f"Mapped {spec.name} ({key}) = {value}")

    return mapped
