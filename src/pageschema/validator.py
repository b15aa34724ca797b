"""Best-effort structural validation of generated schemas.

Checks are grouped by severity. Errors mark a schema as invalid; warnings
and suggestions only lower the score:

    score = max(0, 100 - 20 * errors - 10 * warnings - 2 * suggestions)

This is not a schema.org conformance checker. It looks for the fields that
search engines' rich results most commonly require.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable
from typing import Any

from pageschema.models.schema import SCHEMA_CONTEXT, Schema, SchemaType, schema_family
from pageschema.models.validation import SchemaFix, ValidationReport

_DECIMAL_PRICE_RE = re.compile(r"^\d+(\.\d{1,2})?$")


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


# ---------------------------------------------------------------------------
# Type-specific checks
# ---------------------------------------------------------------------------


def _check_product(schema: Schema, report: ValidationReport) -> None:
    if not schema.get("offers"):
        report.errors.append("Product: Missing required offers field")
    else:
        offers = _mapping(schema["offers"])
        if not offers.get("price"):
            report.warnings.append("Product: Missing price in offers")
        if not offers.get("priceCurrency"):
            report.warnings.append("Product: Missing priceCurrency in offers")
        if not offers.get("availability"):
            report.suggestions.append("Product: Add availability status")
    if not schema.get("image"):
        report.warnings.append("Product: Missing image - highly recommended")
    if not schema.get("brand"):
        report.suggestions.append("Product: Add brand information")
    if not schema.get("aggregateRating") and not schema.get("review"):
        report.suggestions.append("Product: Consider adding customer ratings or reviews")


def _check_article(schema: Schema, report: ValidationReport) -> None:
    if not schema.get("headline") and not schema.get("name"):
        report.errors.append("Article: Missing required headline or name")
    if not schema.get("image"):
        report.warnings.append("Article: Missing image - required for rich results")
    if not schema.get("datePublished"):
        report.warnings.append("Article: Missing datePublished")
    if not schema.get("author"):
        report.warnings.append("Article: Missing author information")
    if not schema.get("publisher"):
        report.warnings.append("Article: Missing publisher - required for rich results")
    elif not _mapping(schema["publisher"]).get("logo"):
        report.suggestions.append("Article: Add publisher logo")


def _check_local_business(schema: Schema, report: ValidationReport) -> None:
    if not schema.get("address"):
        report.errors.append("LocalBusiness: Missing required address")
    else:
        address = _mapping(schema["address"])
        if not address.get("streetAddress"):
            report.warnings.append("LocalBusiness: Missing street address")
        if not address.get("addressLocality"):
            report.warnings.append("LocalBusiness: Missing city (addressLocality)")
        if not address.get("addressRegion"):
            report.suggestions.append("LocalBusiness: Add state/region")
        if not address.get("postalCode"):
            report.suggestions.append("LocalBusiness: Add postal code")
    if not schema.get("telephone"):
        report.warnings.append("LocalBusiness: Add telephone number")
    if not schema.get("openingHours") and not schema.get("openingHoursSpecification"):
        report.suggestions.append("LocalBusiness: Add opening hours")
    if not schema.get("geo"):
        report.suggestions.append("LocalBusiness: Add geographic coordinates")


def _check_event(schema: Schema, report: ValidationReport) -> None:
    if not schema.get("startDate"):
        report.errors.append("Event: Missing required startDate")
    if not schema.get("location"):
        report.errors.append("Event: Missing required location")
    else:
        location = _mapping(schema["location"])
        if not location.get("name") and not location.get("address"):
            report.warnings.append("Event: Location should have name or address")
    if not schema.get("offers"):
        report.suggestions.append("Event: Add ticket/pricing information if applicable")
    if not schema.get("eventStatus"):
        report.suggestions.append("Event: Add eventStatus")


def _check_recipe(schema: Schema, report: ValidationReport) -> None:
    if not schema.get("image"):
        report.warnings.append("Recipe: Missing image - highly recommended")
    if not schema.get("recipeIngredient"):
        report.errors.append("Recipe: Missing required ingredients list")
    if not schema.get("recipeInstructions"):
        report.errors.append("Recipe: Missing required instructions")
    if not schema.get("prepTime") and not schema.get("totalTime"):
        report.suggestions.append("Recipe: Add preparation/cooking time")
    if not schema.get("nutrition"):
        report.suggestions.append("Recipe: Add nutrition information if available")


def _check_video(schema: Schema, report: ValidationReport) -> None:
    if not schema.get("thumbnailUrl"):
        report.warnings.append("VideoObject: Missing thumbnail URL")
    if not schema.get("uploadDate"):
        report.warnings.append("VideoObject: Missing upload date")
    if not schema.get("description"):
        report.warnings.append("VideoObject: Missing description")
    if not schema.get("contentUrl") and not schema.get("embedUrl"):
        report.suggestions.append("VideoObject: Add contentUrl or embedUrl")
    if not schema.get("duration"):
        report.suggestions.append("VideoObject: Add duration in ISO 8601 format")


def _check_web_page(schema: Schema, report: ValidationReport) -> None:
    pass


TYPE_CHECKS: dict[SchemaType, Callable[[Schema, ValidationReport], None]] = {
    SchemaType.PRODUCT: _check_product,
    SchemaType.ARTICLE: _check_article,
    SchemaType.LOCAL_BUSINESS: _check_local_business,
    SchemaType.EVENT: _check_event,
    SchemaType.RECIPE: _check_recipe,
    SchemaType.VIDEO: _check_video,
    SchemaType.WEB_PAGE: _check_web_page,
}


# ---------------------------------------------------------------------------
# Cross-cutting checks
# ---------------------------------------------------------------------------


def _check_structure(schema: Schema, report: ValidationReport, strict: bool) -> None:
    context = schema.get("@context")
    if not context:
        report.errors.append("Missing required @context field")
    elif context != SCHEMA_CONTEXT:
        report.warnings.append(f'@context should be "{SCHEMA_CONTEXT}"')
    if not schema.get("@type"):
        report.errors.append("Missing required @type field")
    if not schema.get("name") and not schema.get("headline"):
        report.warnings.append("Missing name or headline")
    if strict and not schema.get("description"):
        report.warnings.append("Missing description")


def _check_search_guidelines(
    schema: Schema, family: SchemaType | None, report: ValidationReport
) -> None:
    if not schema.get("url"):
        report.suggestions.append("Add a canonical URL for this content")

    if family is SchemaType.PRODUCT:
        price = _mapping(schema.get("offers")).get("price")
        if price and not _DECIMAL_PRICE_RE.match(str(price)):
            report.warnings.append('Price should be in decimal format (e.g. "99.99")')
    elif family is SchemaType.ARTICLE:
        if isinstance(schema.get("image"), str):
            report.suggestions.append("Image should be structured as ImageObject")
        publisher = schema.get("publisher")
        if isinstance(publisher, dict) and not publisher.get("@type"):
            report.warnings.append('Publisher should have @type "Organization"')
    elif family is SchemaType.RECIPE:
        steps = schema.get("recipeInstructions")
        if isinstance(steps, list) and not any(
            isinstance(step, dict) and step.get("@type") for step in steps
        ):
            report.suggestions.append("Use structured HowToStep for recipe instructions")


def _collect_fixes(schema: Schema, family: SchemaType | None) -> list[SchemaFix]:
    fixes: list[SchemaFix] = []
    if not schema.get("@context"):
        fixes.append(
            SchemaFix(field="@context", value=SCHEMA_CONTEXT, reason="Required field missing")
        )
    description = schema.get("description")
    if not schema.get("name") and not schema.get("headline") and isinstance(description, str):
        fixes.append(
            SchemaFix(
                field="name",
                value=description[:50],
                reason="Use truncated description as name",
            )
        )

    offers = schema.get("offers")
    if family is SchemaType.PRODUCT and isinstance(offers, dict) and not offers.get("@type"):
        fixes.append(
            SchemaFix(field="offers.@type", value="Offer", reason='Offers should be an "Offer"')
        )
    publisher = schema.get("publisher")
    if family is SchemaType.ARTICLE and isinstance(publisher, str):
        fixes.append(
            SchemaFix(
                field="publisher",
                value={"@type": "Organization", "name": publisher},
                reason="Convert publisher string to Organization",
            )
        )
    address = schema.get("address")
    if family is SchemaType.LOCAL_BUSINESS and isinstance(address, str):
        fixes.append(
            SchemaFix(
                field="address",
                value={"@type": "PostalAddress", "streetAddress": address},
                reason="Convert address string to PostalAddress",
            )
        )
    return fixes


def _score(report: ValidationReport) -> int:
    penalty = 20 * len(report.errors) + 10 * len(report.warnings) + 2 * len(report.suggestions)
    return max(0, 100 - penalty)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_schema(
    schema: Any,
    *,
    strict: bool = False,
    check_search_guidelines: bool = True,
    suggest_fixes: bool = True,
) -> ValidationReport:
    """Validate one schema. Never raises."""
    if not isinstance(schema, dict):
        return ValidationReport(valid=False, errors=["Schema must be an object"], score=0)

    report = ValidationReport()
    _check_structure(schema, report, strict)

    family = schema_family(schema.get("@type"))
    if family is not None:
        TYPE_CHECKS[family](schema, report)
    if check_search_guidelines:
        _check_search_guidelines(schema, family, report)
    if suggest_fixes:
        report.fixes = _collect_fixes(schema, family)

    report.score = _score(report)
    report.valid = not report.errors
    return report


def apply_fixes(schema: Schema, fixes: list[SchemaFix]) -> Schema:
    """Return a copy of ``schema`` with each fix written at its dotted path."""
    fixed = copy.deepcopy(schema)
    for fix in fixes:
        *parents, leaf = fix.field.split(".")
        target = fixed
        for part in parents:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        target[leaf] = copy.deepcopy(fix.value)
    return fixed


def summarize(report: ValidationReport) -> str:
    lines = [
        "Schema is valid" if report.valid else "Schema has validation issues",
        f"Score: {report.score}/100",
    ]
    for label, items in (
        ("Errors", report.errors),
        ("Warnings", report.warnings),
        ("Suggestions", report.suggestions),
        ("Auto-fixes available", report.fixes),
    ):
        if items:
            lines.append(f"{label}: {len(items)}")
    return "\n".join(lines)
