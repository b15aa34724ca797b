"""Heuristic content analysis.

Everything here is pattern-based: keyword scoring is term frequency against a
small built-in stop/common word list, entities are capitalization patterns
and content types are matched by keyword signals. The results are hints for
the detector and the related-schema builder, not NLP output.
"""

from __future__ import annotations

import re
from collections import Counter

from pageschema.models.analysis import (
    ContentAnalysis,
    ContentMetadata,
    ContentType,
    Entities,
    Readability,
    Relationship,
)

MAX_ENTITIES_PER_KIND = 10

STOP_WORDS = frozenset(
    """
    a about above after again against all also am an and any are as at be because been
    before being below between both but by can could did do does doing down during each
    few for from further had has have having he her here hers herself him himself his
    how i if in into is it its itself just let me more most my myself no nor not now of
    off on once only or other our ours ourselves out over own same she should so some
    such than that the their theirs them themselves then there these they this those
    through to too under until up very was we were what when where which while who whom
    why will with would you your yours yourself yourselves
    """.split()
)

# Simplified inverse document frequency: frequent words score lower.
_VERY_COMMON = frozenset(
    "one get new see two way use make like time well back even want first".split()
)
_COMMON = frozenset(
    """
    people year good work know take come think look day find give tell ask seem feel
    try leave call great little world life hand part place case week company system
    program question number night point home water room mother area money story fact
    month lot right study book eye job word business issue side kind head house service
    """.split()
)

# Capitalized pairs that are almost never a person's name.
_NOT_PEOPLE = frozenset(
    {
        "Read More",
        "Learn More",
        "Click Here",
        "Contact Us",
        "About Us",
        "Privacy Policy",
        "Sign In",
        "Sign Up",
        "Log In",
        "Add To",
        "Buy Now",
        "New York",
        "United States",
        "United Kingdom",
        "Los Angeles",
        "San Francisco",
        "Terms Of",
    }
)
_NOT_PEOPLE_LEADING = frozenset(
    "The This That These Those Our Your With From For And But Its In On At By".split()
)

_TOKEN_STRIP_RE = re.compile(r"[^\w\s]")
_PERSON_RE = re.compile(r"\b([A-Z][a-z]+)[ \t]+([A-Z][a-z]+)\b")
_ORG_RE = re.compile(
    r"\b([A-Z][A-Za-z&]*(?:[ \t]+[A-Z&][A-Za-z&]*)*"
    r"[ \t]+(?:Inc|LLC|Corp|Company|Corporation|Ltd|Limited)\b\.?)"
)
_LOCATION_RE = re.compile(
    r"\b(?:in|at|from|to)[ \t]+([A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)?(?:,[ \t]*[A-Z]{2}\b)?)"
)
_PRODUCT_RE = re.compile(
    r"\b([A-Z][a-z]+)[ \t]+((?=[A-Za-z0-9\-]*\d)[A-Z0-9][A-Za-z0-9\-]*|[A-Z]{2,}[A-Za-z0-9\-]*)\b"
)

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")
_VOWEL_GROUP_RE = re.compile(r"[aeiouy]+")

_MONTHS = (
    "January|February|March|April|May|June|July|August|September|October|November|December"
)

# Each entry needs at least two of its patterns to match the lower-cased text.
_TYPE_SIGNALS: dict[ContentType, tuple[re.Pattern[str], ...]] = {
    ContentType.RECIPE: tuple(
        re.compile(p)
        for p in (
            r"\bingredients?\b",
            r"\binstructions?\b|\bdirections\b|\bmethod\b",
            r"\b(?:cups?|tbsp|tsp|tablespoons?|teaspoons?|grams?)\b",
            r"\b(?:prep|cook|cooking|baking)\s+time\b",
            r"\bserv(?:es|ings?)\b|\byield\b",
        )
    ),
    ContentType.PRODUCT: tuple(
        re.compile(p)
        for p in (
            r"\$\s?\d|\bprice\b",
            r"\badd to (?:cart|bag)\b|\bbuy now\b",
            r"\bin stock\b|\bout of stock\b|\bavailability\b",
            r"\bsku\b|\bmodel\b|\bbrand\b",
            r"\breviews?\b|\brating\b|\bstars?\b",
        )
    ),
    ContentType.EVENT: tuple(
        re.compile(p)
        for p in (
            r"\bevent\b|\bconference\b|\bconcert\b|\bfestival\b",
            r"\btickets?\b|\bregist(?:er|ration)\b",
            r"\bvenue\b|\blocation\b",
            r"\b(?:starts?|begins?|doors open)\b",
            r"\bspeakers?\b|\bperformers?\b|\bschedule\b|\bagenda\b",
        )
    ),
    ContentType.BUSINESS: tuple(
        re.compile(p)
        for p in (
            r"\b(?:opening )?hours\b|\bopen\b",
            r"\bphone\b|\bcall us\b|\bcontact\b",
            r"\baddress\b|\blocated\b",
            r"\b(?:street|st|avenue|ave|road|rd|boulevard|blvd)\b",
            r"\bvisit us\b|\bour location\b|\bdirections\b",
        )
    ),
    ContentType.HOWTO: tuple(
        re.compile(p, re.S)
        for p in (
            r"\bstep\s*\d|\bstep-by-step\b",
            r"\bhow to\b",
            r"\byou(?:'ll)? need\b|\bmaterials\b|\btools\b",
            r"\bfirst\b.*\bthen\b",
        )
    ),
}
_FAQ_MARKER_RE = re.compile(r"\b(?:Q|A|Question|Answer):", re.I)
_FAQ_HEADING_RE = re.compile(r"\bfaqs?\b|frequently asked|common questions")
_AUTHOR_BYLINE_RE = re.compile(r"\b[Bb]y\s+[A-Z][a-z]+\s+[A-Z][a-z]+")
_LONG_DATE_RE = re.compile(rf"\b(?:{_MONTHS})\s+\d{{1,2}},?\s+\d{{4}}\b")


def analyze(
    content: str | None,
    *,
    extract_keywords: bool = True,
    extract_entities: bool = True,
    detect_relationships: bool = True,
    max_keywords: int = 10,
) -> ContentAnalysis:
    """Summarize page text. ``None`` or empty input yields a zero-valued result."""
    if not content or not isinstance(content, str):
        return ContentAnalysis()

    entities = _extract_entities(content) if extract_entities else Entities()
    relationships = (
        _find_relationships(content, entities)
        if detect_relationships and extract_entities
        else []
    )
    return ContentAnalysis(
        keywords=extract_top_keywords(content, max_keywords) if extract_keywords else [],
        entities=entities,
        relationships=relationships,
        content_type=classify_content(content),
        readability=readability(content),
        metadata=_metadata(content),
    )


# ---------------------------------------------------------------------------
# Keywords
# ---------------------------------------------------------------------------


def _tokenize(text: str) -> list[str]:
    words = _TOKEN_STRIP_RE.sub(" ", text.lower()).split()
    return [w for w in words if len(w) > 2 and w not in STOP_WORDS]


def _idf(word: str) -> float:
    if word in _VERY_COMMON:
        return 0.1
    if word in _COMMON:
        return 0.5
    return 1.0


def extract_top_keywords(text: str, limit: int = 10) -> list[str]:
    """Top ``limit`` terms by TF x simplified IDF. Ties keep first-seen order."""
    tokens = _tokenize(text)
    if not tokens:
        return []
    total = len(tokens)
    counts = Counter(tokens)
    ranked = sorted(counts, key=lambda w: counts[w] / total * _idf(w), reverse=True)
    return ranked[:limit]


# ---------------------------------------------------------------------------
# Entities and relationships
# ---------------------------------------------------------------------------


def _unique(values: list[str], limit: int = MAX_ENTITIES_PER_KIND) -> list[str]:
    seen: list[str] = []
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen.append(value)
        if len(seen) == limit:
            break
    return seen


def _extract_entities(text: str) -> Entities:
    people = [
        f"{first} {last}"
        for first, last in _PERSON_RE.findall(text)
        if f"{first} {last}" not in _NOT_PEOPLE and first not in _NOT_PEOPLE_LEADING
    ]
    return Entities(
        people=_unique(people),
        organizations=_unique(_ORG_RE.findall(text)),
        locations=_unique(_LOCATION_RE.findall(text)),
        products=_unique([f"{name} {model}" for name, model in _PRODUCT_RE.findall(text)]),
    )


def _near(text: str, a: str, b: str, window: int) -> bool:
    pos_a, pos_b = text.find(a), text.find(b)
    return pos_a >= 0 and pos_b >= 0 and abs(pos_a - pos_b) < window


def _find_relationships(text: str, entities: Entities) -> list[Relationship]:
    relationships: list[Relationship] = []
    for person in entities.people:
        for org in entities.organizations:
            if _near(text, person, org, 200):
                relationships.append(
                    Relationship(subject=person, predicate="worksFor", object=org, confidence=0.7)
                )
    for product in entities.products:
        for org in entities.organizations:
            if _near(text, product, org, 150):
                relationships.append(
                    Relationship(
                        subject=product, predicate="manufacturer", object=org, confidence=0.6
                    )
                )
    return relationships


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def _matches(patterns: tuple[re.Pattern[str], ...], text: str) -> int:
    return sum(1 for p in patterns if p.search(text))


def classify_content(text: str) -> ContentType:
    """Return the first matching content type, falling back to ``general``."""
    lower = text.lower()

    for content_type in (
        ContentType.RECIPE,
        ContentType.PRODUCT,
        ContentType.EVENT,
        ContentType.BUSINESS,
    ):
        if _matches(_TYPE_SIGNALS[content_type], lower) >= 2:
            return content_type

    has_byline = bool(_AUTHOR_BYLINE_RE.search(text) or _LONG_DATE_RE.search(text))
    is_long_form = len(text) > 1000 or text.count("\n\n") > 3
    if has_byline and is_long_form:
        return ContentType.ARTICLE

    if _matches(_TYPE_SIGNALS[ContentType.HOWTO], lower) >= 2:
        return ContentType.HOWTO

    if (text.count("?") >= 3 and _FAQ_MARKER_RE.search(text)) or _FAQ_HEADING_RE.search(lower):
        return ContentType.FAQ

    return ContentType.GENERAL


# ---------------------------------------------------------------------------
# Readability and metadata
# ---------------------------------------------------------------------------


def _syllables(word: str) -> int:
    return max(1, len(_VOWEL_GROUP_RE.findall(word.lower())))


def _difficulty(score: float) -> str:
    for threshold, label in (
        (90, "very easy"),
        (80, "easy"),
        (70, "fairly easy"),
        (60, "standard"),
        (50, "fairly difficult"),
        (30, "difficult"),
    ):
        if score >= threshold:
            return label
    return "very difficult"


def _sentences(text: str) -> list[str]:
    return [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]


def readability(text: str) -> Readability:
    """Flesch Reading Ease (clamped to 0..100) and Flesch-Kincaid grade."""
    words = text.split()
    if not words:
        return Readability()
    sentence_count = max(1, len(_sentences(text)))
    words_per_sentence = len(words) / sentence_count
    syllables_per_word = sum(_syllables(w) for w in words) / len(words)

    score = 206.835 - 1.015 * words_per_sentence - 84.6 * syllables_per_word
    grade = 0.39 * words_per_sentence + 11.8 * syllables_per_word - 15.59
    return Readability(
        flesch_score=round(min(100.0, max(0.0, score)), 2),
        grade_level=round(max(0.0, grade), 2),
        difficulty=_difficulty(score),
    )


def _metadata(text: str) -> ContentMetadata:
    words = text.split()
    return ContentMetadata(
        word_count=len(words),
        sentence_count=len(_sentences(text)),
        paragraph_count=len([p for p in _PARAGRAPH_SPLIT_RE.split(text) if p.strip()]),
        average_word_length=round(sum(len(w) for w in words) / len(words), 2) if words else 0.0,
    )
