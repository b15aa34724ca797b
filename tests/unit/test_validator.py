"""Unit tests for pageschema.validator."""

from __future__ import annotations

import copy

import pytest

from pageschema.models.schema import SCHEMA_CONTEXT, SchemaType
from pageschema.models.validation import SchemaFix
from pageschema.validator import TYPE_CHECKS, apply_fixes, summarize, validate_schema

COMPLETE_PRODUCT = {
    "@context": SCHEMA_CONTEXT,
    "@type": "Product",
    "name": "Wireless Headphones Pro",
    "url": "https://shop.example.com/p/headphones",
    "image": ["https://shop.example.com/img/headphones.jpg"],
    "brand": {"@type": "Brand", "name": "AudioTech"},
    "aggregateRating": {"@type": "AggregateRating", "ratingValue": 4.5, "reviewCount": 127},
    "offers": {
        "@type": "Offer",
        "price": "199.99",
        "priceCurrency": "USD",
        "availability": "https://schema.org/InStock",
    },
}

LONG_DESCRIPTION = "A very long description that goes on well past the fifty character cut"


class TestValidateSchema:
    def test_complete_product_scores_100(self) -> None:
        report = validate_schema(COMPLETE_PRODUCT)
        assert report.valid is True
        assert report.errors == report.warnings == report.suggestions == []
        assert report.score == 100

    @pytest.mark.parametrize("value", [None, "Product", ["a"], 42])
    def test_non_object(self, value: object) -> None:
        report = validate_schema(value)
        assert report.valid is False
        assert report.errors == ["Schema must be an object"]
        assert report.score == 0

    def test_score_formula(self) -> None:
        report = validate_schema({"@type": "WebPage"})
        assert report.errors == ["Missing required @context field"]
        assert report.warnings == ["Missing name or headline"]
        assert report.suggestions == ["Add a canonical URL for this content"]
        assert report.score == 100 - 20 - 10 - 2
        assert report.valid is False

    def test_score_floor(self) -> None:
        report = validate_schema({"@type": "Article"}, strict=True)
        assert report.score == 0

    def test_product_without_offers(self) -> None:
        schema = {k: v for k, v in COMPLETE_PRODUCT.items() if k != "offers"}
        report = validate_schema(schema)
        assert report.valid is False
        assert report.errors == ["Product: Missing required offers field"]

    def test_wrong_context_is_a_warning(self) -> None:
        report = validate_schema({**COMPLETE_PRODUCT, "@context": "http://schema.org"})
        assert report.valid is True
        assert report.warnings == ['@context should be "https://schema.org"']

    def test_strict_requires_description(self) -> None:
        assert validate_schema(COMPLETE_PRODUCT).warnings == []
        assert "Missing description" in validate_schema(COMPLETE_PRODUCT, strict=True).warnings

    def test_non_decimal_price(self) -> None:
        schema = copy.deepcopy(COMPLETE_PRODUCT)
        schema["offers"]["price"] = "$199"
        report = validate_schema(schema)
        assert 'Price should be in decimal format (e.g. "99.99")' in report.warnings

    def test_guidelines_can_be_skipped(self) -> None:
        report = validate_schema({"@type": "WebPage"}, check_search_guidelines=False)
        assert report.suggestions == []

    def test_article_guidelines(self) -> None:
        report = validate_schema(
            {
                "@context": SCHEMA_CONTEXT,
                "@type": "Article",
                "headline": "Post",
                "image": "https://example.com/a.jpg",
                "publisher": {"name": "Blog Co"},
            }
        )
        assert "Image should be structured as ImageObject" in report.suggestions
        assert 'Publisher should have @type "Organization"' in report.warnings
        assert "Article: Missing datePublished" in report.warnings

    def test_recipe_unstructured_steps(self) -> None:
        report = validate_schema(
            {"@type": "Recipe", "recipeInstructions": ["Mix", "Bake"], "recipeIngredient": ["x"]}
        )
        assert "Use structured HowToStep for recipe instructions" in report.suggestions

    def test_alias_uses_family_checks(self) -> None:
        report = validate_schema({"@context": SCHEMA_CONTEXT, "@type": "Restaurant", "name": "R"})
        assert "LocalBusiness: Missing required address" in report.errors

    def test_every_family_has_checks(self) -> None:
        assert set(TYPE_CHECKS) == set(SchemaType)


# ---------------------------------------------------------------------------
# Fixes
# ---------------------------------------------------------------------------


class TestFixes:
    def test_collected_fixes(self) -> None:
        report = validate_schema(
            {
                "@type": "Product",
                "description": LONG_DESCRIPTION,
                "offers": {"price": "10.00"},
            }
        )
        fields = {fix.field: fix.value for fix in report.fixes}
        assert fields["@context"] == SCHEMA_CONTEXT
        assert fields["name"] == LONG_DESCRIPTION[:50]
        assert fields["offers.@type"] == "Offer"

    def test_string_publisher_and_address(self) -> None:
        article = validate_schema({"@type": "Article", "headline": "H", "publisher": "Blog Co"})
        assert SchemaFix(
            field="publisher",
            value={"@type": "Organization", "name": "Blog Co"},
            reason="Convert publisher string to Organization",
        ) in article.fixes
        business = validate_schema({"@type": "LocalBusiness", "address": "1 Main St"})
        assert any(fix.field == "address" for fix in business.fixes)

    def test_fixes_disabled(self) -> None:
        assert validate_schema({"@type": "WebPage"}, suggest_fixes=False).fixes == []

    def test_apply_fixes_copies_and_nests(self) -> None:
        schema = {"@type": "Product", "offers": {"price": "10.00"}}
        fixed = apply_fixes(
            schema,
            [
                SchemaFix(field="@context", value=SCHEMA_CONTEXT, reason="r"),
                SchemaFix(field="offers.@type", value="Offer", reason="r"),
                SchemaFix(field="brand.name", value="Acme", reason="r"),
            ],
        )
        assert fixed["@context"] == SCHEMA_CONTEXT
        assert fixed["offers"] == {"price": "10.00", "@type": "Offer"}
        assert fixed["brand"] == {"name": "Acme"}
        assert schema == {"@type": "Product", "offers": {"price": "10.00"}}

    def test_applied_fixes_clear_errors(self) -> None:
        schema = {"@type": "WebPage", "description": "About our team"}
        report = validate_schema(schema)
        assert not report.valid
        assert validate_schema(apply_fixes(schema, report.fixes)).valid


class TestSummarize:
    def test_counts(self) -> None:
        text = summarize(validate_schema({"@type": "WebPage"}))
        assert text.splitlines()[0] == "Schema has validation issues"
        assert "Score: 68/100" in text
        assert "Errors: 1" in text
        assert "Auto-fixes available: 1" in text

    def test_valid(self) -> None:
        assert summarize(validate_schema(COMPLETE_PRODUCT)).startswith("Schema is valid")
