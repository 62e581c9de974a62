"""
Tests for document types, case field mapping and prefilled form URLs.
"""

from urllib.parse import urlsplit, parse_qsl

import pytest

from claimsdesk.document_types import (
    DocumentType,
    DOCUMENT_TYPES,
    parse_document_type,
    get_document_config,
    get_document_type_from_form_id,
)
from claimsdesk.exceptions import UnsupportedDocumentType
from claimsdesk.field_mapping import map_case_fields, split_full_name, schema_field_names, FIELD_MAPPINGS
from claimsdesk.prefill import build_form_url, validate_form_url


# =============================================================================
# DOCUMENT TYPES
# =============================================================================

class TestDocumentTypes:
    """The closed set of documents and their JotForm forms."""

    def test_every_type_has_a_form_and_mapping(self):
        for doc_type in DocumentType:
            assert DOCUMENT_TYPES[doc_type].form_id.isdigit()
            assert FIELD_MAPPINGS[doc_type]

    def test_form_ids_resolve_back_to_document_types(self):
        for doc_type, config in DOCUMENT_TYPES.items():
            assert get_document_type_from_form_id(config.form_id) == doc_type

    def test_not_at_fault_form_id(self):
        assert get_document_type_from_form_id("233241680987464") == DocumentType.NOT_AT_FAULT_RENTAL

    def test_unknown_form_id_is_none(self):
        assert get_document_type_from_form_id("000000000000000") is None
        assert get_document_type_from_form_id(None) is None

    def test_parse_accepts_string_values(self):
        assert parse_document_type("direction-to-pay") == DocumentType.DIRECTION_TO_PAY
        assert get_document_config("claims").name == "Claims Form"

    def test_parse_rejects_unknown_type(self):
        with pytest.raises(UnsupportedDocumentType):
            parse_document_type("lease-agreement")


# =============================================================================
# FIELD MAPPING
# =============================================================================

class TestNameSplitting:
    """Full names split on the first whitespace."""

    def test_two_part_name(self):
        assert split_full_name("John Smith") == ("John", "Smith")

    def test_multi_word_remainder_is_last_name(self):
        assert split_full_name("Mary Jane Watson") == ("Mary", "Jane Watson")

    def test_single_name_has_empty_last(self):
        assert split_full_name("Cher") == ("Cher", "")

    def test_blank_name(self):
        assert split_full_name("   ") == ("", "")


class TestMapCaseFields:
    """Case data is translated to JotForm prefill keys."""

    def test_claims_splits_client_name(self):
        mapped = map_case_fields("claims", {"clientName": "John Smith", "clientEmail": "a@b.com"})
        assert mapped["q41_driver[first]"] == "John"
        assert mapped["q41_driver[last]"] == "Smith"
        assert mapped["q4_email"] == "a@b.com"

    def test_single_word_name_emits_no_last_name(self):
        mapped = map_case_fields("claims", {"clientName": "Cher"})
        assert mapped["q41_driver[first]"] == "Cher"
        assert "q41_driver[last]" not in mapped

    def test_empty_and_missing_values_are_omitted(self):
        mapped = map_case_fields("claims", {
            "clientName": "John Smith",
            "clientEmail": "",
            "clientPhone": "   ",
            "make": None,
        })
        assert "q4_email" not in mapped
        assert "q15_mobileNo" not in mapped
        assert "q52_Make" not in mapped
        assert all(value.strip() for value in mapped.values())

    def test_alias_key_is_used_when_primary_missing(self):
        mapped = map_case_fields("claims", {"naf_email": "legacy@example.com", "naf_rego": "ABC123"})
        assert mapped["q4_email"] == "legacy@example.com"
        assert mapped["q58_claimNumber58"] == "ABC123"

    def test_primary_key_wins_over_alias(self):
        mapped = map_case_fields("claims", {"clientEmail": "new@example.com", "naf_email": "old@example.com"})
        assert mapped["q4_email"] == "new@example.com"

    def test_values_are_trimmed(self):
        mapped = map_case_fields("not-at-fault-rental", {"clientName": "  John Doe  "})
        assert mapped["3"] == "John Doe"

    def test_provider_keyed_value_is_used_verbatim(self):
        mapped = map_case_fields("claims", {"q41_driver[first]": "Mary Jane", "clientName": "Ignored Name"})
        assert mapped["q41_driver[first]"] == "Mary Jane"
        assert mapped["q41_driver[last]"] == "Name"

    def test_unknown_keys_are_ignored(self):
        mapped = map_case_fields("certis-rental", {"favouriteColour": "blue"})
        assert mapped == {}

    def test_unsupported_document_type(self):
        with pytest.raises(UnsupportedDocumentType):
            map_case_fields("lease-agreement", {"clientName": "John"})


class TestSchemaFallback:
    """A live form schema redirects fields the form no longer has."""

    def test_schema_names_include_qid_and_prefixed_name(self):
        schema = {"4": {"qid": "4", "name": "email"}}
        assert schema_field_names(schema) == {"4", "email", "q4_email"}

    def test_primary_key_kept_when_on_form(self):
        schema = {"4": {"qid": "4", "name": "email"}}
        mapped = map_case_fields("claims", {"clientEmail": "a@b.com"}, schema=schema)
        assert mapped["q4_email"] == "a@b.com"

    def test_fallback_used_when_primary_not_on_form(self):
        schema = {"7": {"qid": "7", "name": "email"}}
        mapped = map_case_fields("claims", {"clientEmail": "a@b.com"}, schema=schema)
        assert "q4_email" not in mapped
        assert mapped["email"] == "a@b.com"

    def test_primary_kept_when_no_fallback_matches(self):
        schema = {"1": {"qid": "1", "name": "somethingElse"}}
        mapped = map_case_fields("claims", {"clientEmail": "a@b.com"}, schema=schema)
        assert mapped["q4_email"] == "a@b.com"


# =============================================================================
# PREFILLED FORM URLS
# =============================================================================

class TestBuildFormUrl:
    """Prefilled JotForm links."""

    def test_not_at_fault_rental_url(self):
        url = build_form_url(
            "not-at-fault-rental",
            {"clientName": "John Doe", "clientEmail": "john@x.com"},
            "tok1",
        )
        parts = urlsplit(url)
        params = parse_qsl(parts.query)

        assert parts.path == "/233241680987464"
        assert params[0] == ("signature_token", "tok1")
        assert ("3", "John Doe") in params
        assert ("4", "john@x.com") in params
        assert len(params) == 3
        assert "undefined" not in url
        assert "null" not in url

    def test_spaces_are_form_encoded(self):
        url = build_form_url("not-at-fault-rental", {"clientName": "John Doe"}, "tok1")
        assert "3=John+Doe" in url

    def test_case_number_is_appended(self):
        url = build_form_url("claims", {"caseNumber": "WP-1", "clientName": "John Smith"}, "tok1")
        params = parse_qsl(urlsplit(url).query)
        assert params[-1] == ("case_number", "WP-1")

    def test_case_data_cannot_override_signature_token(self):
        url = build_form_url("claims", {"signature_token": "forged", "clientName": "John"}, "tok1")
        tokens = [v for k, v in parse_qsl(urlsplit(url).query) if k == "signature_token"]
        assert tokens == ["tok1"]

    def test_built_url_passes_validation(self):
        url = build_form_url("claims", {"clientName": "John Smith", "caseNumber": "WP-1"}, "tok1")
        report = validate_form_url(url, expected_token="tok1")
        assert report.is_valid, report.issues
        assert report.has_signature_token


class TestValidateFormUrl:
    """Checks applied to a form link before it is sent."""

    def test_placeholder_values_flagged(self):
        report = validate_form_url("https://form.jotform.com/1?signature_token=t&3=undefined")
        assert not report.is_valid
        assert any("Placeholder" in issue for issue in report.issues)

    def test_missing_token_flagged(self):
        report = validate_form_url("https://form.jotform.com/1?3=John")
        assert not report.has_signature_token
        assert "Missing signature_token parameter" in report.issues

    def test_token_mismatch_flagged(self):
        report = validate_form_url("https://form.jotform.com/1?signature_token=a", expected_token="b")
        assert not report.is_valid

    def test_other_host_flagged(self):
        report = validate_form_url("https://evil.example.com/1?signature_token=a")
        assert not report.is_valid
