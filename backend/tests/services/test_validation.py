# tests/services/test_validation.py
"""
Tests for the buyer validation engine

Coverage:
- Required fields and vocabularies
- BHK cross-field rule (required / forced to null)
- Budget ordering
- Blank-to-null normalization
- Update merge semantics
- CSV import coercions

Run with: pytest tests/services/test_validation.py -v
"""

import pytest

from buyer_intake.services.validation import ValidationMode, validate_buyer


def payload(**overrides):
    data = {
        "fullName": "Priya Verma",
        "phone": "9876543210",
        "city": "Chandigarh",
        "propertyType": "Villa",
        "bhk": "Three",
        "purpose": "Buy",
        "timeline": "ThreeToSix",
        "source": "Referral",
    }
    data.update(overrides)
    return data


def fields(result):
    return {e.field for e in result.errors}


# ============================================================================
# CREATE
# ============================================================================

@pytest.mark.unit
class TestCreate:

    def test_minimal_valid_record(self):
        result = validate_buyer(payload(), ValidationMode.CREATE)

        assert result.ok
        assert result.values["full_name"] == "Priya Verma"
        assert result.values["email"] is None
        assert result.values["tags"] == []

    def test_missing_required_fields_collected_together(self):
        result = validate_buyer({"fullName": "Priya Verma"}, ValidationMode.CREATE)

        assert not result.ok
        assert {"phone", "city", "propertyType", "purpose", "timeline", "source"} <= fields(result)

    @pytest.mark.parametrize("name", ["A", "x" * 81, "R2D2 Unit"])
    def test_invalid_full_name(self, name):
        result = validate_buyer(payload(fullName=name), ValidationMode.CREATE)
        assert fields(result) == {"fullName"}

    def test_name_allows_hyphen_and_apostrophe(self):
        result = validate_buyer(payload(fullName="Anne-Marie O'Neil"), ValidationMode.CREATE)
        assert result.ok

    @pytest.mark.parametrize("phone", ["12345", "1234567890123456", "98765abc10"])
    def test_invalid_phone(self, phone):
        result = validate_buyer(payload(phone=phone), ValidationMode.CREATE)
        assert fields(result) == {"phone"}

    def test_invalid_email(self):
        result = validate_buyer(payload(email="not-an-email"), ValidationMode.CREATE)
        assert fields(result) == {"email"}

    def test_email_lowercased(self):
        result = validate_buyer(payload(email="Priya@Example.COM"), ValidationMode.CREATE)
        assert result.values["email"] == "priya@example.com"

    def test_unknown_enum_value_rejected(self):
        result = validate_buyer(payload(city="Delhi"), ValidationMode.CREATE)
        assert fields(result) == {"city"}

    def test_csv_timeline_spelling_rejected_outside_import(self):
        result = validate_buyer(payload(timeline="0-3m"), ValidationMode.CREATE)
        assert fields(result) == {"timeline"}

    def test_notes_length_limit(self):
        result = validate_buyer(payload(notes="x" * 1001), ValidationMode.CREATE)
        assert fields(result) == {"notes"}

    def test_tag_length_limit(self):
        result = validate_buyer(payload(tags=["x" * 51]), ValidationMode.CREATE)
        assert fields(result) == {"tags"}

    def test_tags_deduplicated_in_order(self):
        result = validate_buyer(payload(tags=["hot", " vip ", "hot"]), ValidationMode.CREATE)
        assert result.values["tags"] == ["hot", "vip"]

    def test_negative_budget_rejected(self):
        result = validate_buyer(payload(budgetMin=-1), ValidationMode.CREATE)
        assert fields(result) == {"budgetMin"}

    def test_boolean_budget_rejected(self):
        result = validate_buyer(payload(budgetMin=True), ValidationMode.CREATE)
        assert fields(result) == {"budgetMin"}

    def test_non_object_payload(self):
        result = validate_buyer(["not", "a", "dict"], ValidationMode.CREATE)
        assert not result.ok


# ============================================================================
# CROSS-FIELD RULES
# ============================================================================

@pytest.mark.unit
class TestCrossFieldRules:

    @pytest.mark.parametrize("property_type", ["Apartment", "Villa"])
    def test_bhk_required_for_residential(self, property_type):
        data = payload(propertyType=property_type)
        del data["bhk"]

        result = validate_buyer(data, ValidationMode.CREATE)

        assert fields(result) == {"bhk"}

    @pytest.mark.parametrize("property_type", ["Plot", "Office", "Retail"])
    def test_bhk_forced_null_for_non_residential(self, property_type):
        result = validate_buyer(payload(propertyType=property_type, bhk="Two"), ValidationMode.CREATE)

        assert result.ok
        assert result.values["bhk"] is None

    def test_budget_max_below_min_rejected(self):
        result = validate_buyer(payload(budgetMin=500, budgetMax=100), ValidationMode.CREATE)

        assert fields(result) == {"budgetMax"}

    def test_equal_budgets_allowed(self):
        result = validate_buyer(payload(budgetMin=500, budgetMax=500), ValidationMode.CREATE)
        assert result.ok

    def test_blank_strings_become_null(self):
        result = validate_buyer(
            payload(email="", notes="  ", budgetMin="", budgetMax=""), ValidationMode.CREATE
        )

        assert result.ok
        assert result.values["email"] is None
        assert result.values["notes"] is None
        assert result.values["budget_min"] is None
        assert result.values["budget_max"] is None


# ============================================================================
# UPDATE
# ============================================================================

@pytest.mark.unit
class TestUpdate:

    @pytest.fixture
    def existing(self):
        return {
            "full_name": "Priya Verma",
            "property_type": "Apartment",
            "bhk": "Two",
            "budget_min": 1000,
            "budget_max": 2000,
        }

    def test_partial_update_only_returns_supplied_fields(self, existing):
        result = validate_buyer({"notes": "Call after 6pm"}, ValidationMode.UPDATE, existing=existing)

        assert result.ok
        assert result.values == {"notes": "Call after 6pm"}

    def test_budget_rule_checked_against_stored_value(self, existing):
        result = validate_buyer({"budgetMax": 500}, ValidationMode.UPDATE, existing=existing)
        assert fields(result) == {"budgetMax"}

    def test_switch_to_plot_clears_stored_bhk(self, existing):
        result = validate_buyer({"propertyType": "Plot"}, ValidationMode.UPDATE, existing=existing)

        assert result.ok
        assert result.values["bhk"] is None

    def test_clearing_bhk_on_apartment_rejected(self, existing):
        result = validate_buyer({"bhk": ""}, ValidationMode.UPDATE, existing=existing)
        assert fields(result) == {"bhk"}

    def test_required_field_cannot_be_nulled(self, existing):
        result = validate_buyer({"phone": None}, ValidationMode.UPDATE, existing=existing)
        assert fields(result) == {"phone"}


# ============================================================================
# IMPORT
# ============================================================================

@pytest.mark.unit
class TestImport:

    def test_csv_spellings_accepted(self):
        result = validate_buyer(
            payload(timeline="0-3m", source="Walk-in", budgetMin="10,00,000", tags="hot, vip"),
            ValidationMode.IMPORT,
        )

        assert result.ok
        assert result.values["timeline"] == "ZeroToThree"
        assert result.values["source"] == "WalkIn"
        assert result.values["budget_min"] == 1000000
        assert result.values["tags"] == ["hot", "vip"]

    def test_blank_cells_treated_as_absent(self):
        result = validate_buyer(payload(email="", notes="", tags=""), ValidationMode.IMPORT)

        assert result.ok
        assert result.values["email"] is None
        assert result.values["tags"] == []

    def test_blank_required_cell_is_missing(self):
        result = validate_buyer(payload(phone=""), ValidationMode.IMPORT)
        assert fields(result) == {"phone"}

    def test_name_charset_relaxed(self):
        result = validate_buyer(payload(fullName="Dr. R. Sharma (NRI)"), ValidationMode.IMPORT)
        assert result.ok

    def test_non_numeric_budget(self):
        result = validate_buyer(payload(budgetMin="fifty lakh"), ValidationMode.IMPORT)
        assert fields(result) == {"budgetMin"}
