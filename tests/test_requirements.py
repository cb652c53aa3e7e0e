"""
Tests for requirements validation.
"""
import pytest

from schemas.errors import ConfigInvalid, ErrorCode
from schemas.requirements import Requirements, page_slug, parse_requirements, slugify


class TestParseRequirements:
    """Validation of raw requirement payloads."""

    def test_camel_case(self, requirements_data):
        requirements = parse_requirements(requirements_data)

        assert requirements.business_name == "Acme Roasters"
        assert requirements.target_audiences == ["commuters", "remote workers"]
        assert requirements.page_slugs == ["index", "about", "contact"]
        assert requirements.project_slug == "acme-roasters"

    def test_snake_case(self):
        requirements = parse_requirements({
            "business_name": "Bright Smiles",
            "industry": "Dental Clinic",
            "target_audiences": ["families"],
        })

        assert requirements.business_name == "Bright Smiles"
        assert requirements.pages == ["Home"]

    def test_blank_entries_dropped_and_tone_lowered(self, requirements_data):
        requirements_data["services"] = ["Espresso bar", "  ", ""]
        requirements_data["tone"] = "Friendly"

        requirements = parse_requirements(requirements_data)

        assert requirements.services == ["Espresso bar"]
        assert requirements.tone == "friendly"

    def test_passthrough(self, requirements):
        assert parse_requirements(requirements) is requirements

    def test_frozen(self, requirements):
        with pytest.raises(ValueError):
            requirements.business_name = "Other"

    def test_to_dict_uses_camel_case(self, requirements):
        data = requirements.to_dict()

        assert data["businessName"] == "Acme Roasters"
        assert Requirements.model_validate(data) == requirements

    @pytest.mark.parametrize("change", [
        {"businessName": ""},
        {"industry": None},
        {"pages": []},
        {"pages": ["Home", "  "]},
        {"pages": ["Home", "Index"]},
        {"pages": ["About Us", "about-us"]},
    ])
    def test_invalid(self, requirements_data, change):
        requirements_data.update(change)

        with pytest.raises(ConfigInvalid) as exc_info:
            parse_requirements(requirements_data)

        assert exc_info.value.code == ErrorCode.CONFIG_INVALID
        assert exc_info.value.errors
        assert all("loc" in err and "msg" in err for err in exc_info.value.errors)

    def test_missing_fields(self):
        with pytest.raises(ConfigInvalid) as exc_info:
            parse_requirements({})

        locs = [err["loc"] for err in exc_info.value.errors]
        assert ["businessName"] in locs
        assert ["industry"] in locs

    @pytest.mark.parametrize("data", [None, "Acme", ["Acme"], 42])
    def test_non_object(self, data):
        with pytest.raises(ConfigInvalid):
            parse_requirements(data)


class TestSlugs:
    """Page and project slugs."""

    @pytest.mark.parametrize("name,expected", [
        ("Home", "index"),
        ("Home Page", "index"),
        ("About Us", "about-us"),
        ("Services & Pricing", "services-pricing"),
        ("!!!", "page"),
    ])
    def test_page_slug(self, name, expected):
        assert page_slug(name) == expected

    def test_slugify(self):
        assert slugify("Acme Roasters, LLC") == "acme-roasters-llc"
