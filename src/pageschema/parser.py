"""Regex-based HTML extraction.

Turns raw HTML into a ``ParsedPage``. Extraction is deliberately forgiving:
every field falls back to an empty value on its own, so malformed markup
degrades the result instead of raising. Perfect parsing is not a goal; the
downstream extractors only need reasonable text and metadata.
"""

from __future__ import annotations

import json
import re
from html import unescape
from urllib.parse import urljoin

import structlog

from pageschema.models.page import MicrodataItem, ParsedPage

log = structlog.get_logger()

MAX_CONTENT_LENGTH = 5000

_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title\s*>", re.I | re.S)
_H1_RE = re.compile(r"<h1\b[^>]*>(.*?)</h1\s*>", re.I | re.S)
_META_RE = re.compile(r"<meta\b[^>]*>", re.I)
_IMG_RE = re.compile(r"<img\b[^>]*>", re.I)
_ATTR_RE = re.compile(
    r"""([a-zA-Z_:][-a-zA-Z0-9_:.]*)\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+))"""
)
_LD_JSON_RE = re.compile(
    r"<script\b[^>]*type\s*=\s*[\"']?application/ld\+json[\"']?[^>]*>(.*?)</script\s*>",
    re.I | re.S,
)
_ITEMTYPE_RE = re.compile(r"<[a-z][a-z0-9]*\b[^>]*\bitemtype\s*=\s*[\"']([^\"']+)[\"']", re.I)

_COMMENT_RE = re.compile(r"<!--.*?-->", re.S)
_NON_TEXT_RE = re.compile(r"<(script|style|noscript|template)\b[^>]*>.*?</\1\s*>", re.I | re.S)
_MAIN_CANDIDATES = (
    re.compile(r"<main\b[^>]*>(.*?)</main\s*>", re.I | re.S),
    re.compile(r"<article\b[^>]*>(.*?)</article\s*>", re.I | re.S),
    re.compile(
        r"<div\b[^>]*class\s*=\s*[\"'][^\"']*content[^\"']*[\"'][^>]*>(.*?)</div\s*>",
        re.I | re.S,
    ),
)
_LINE_BREAK_RE = re.compile(r"<br\s*/?>", re.I)
_BLOCK_TAG_RE = re.compile(
    r"</?(?:p|div|li|ul|ol|h[1-6]|tr|table|section|article|header|footer|blockquote|dd|dt)\b[^>]*>",
    re.I,
)
_TAG_RE = re.compile(r"<[^>]+>")
_INLINE_SPACE_RE = re.compile(r"[^\S\n]+")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def parse_html(html: str | None, url: str = "") -> ParsedPage:
    """Extract title, description, text, images and metadata from HTML.

    Never raises. Empty or non-string input yields an empty ``ParsedPage``.
    """
    if not isinstance(html, str) or not html.strip():
        return ParsedPage(url=url)

    meta = _extract_meta(html)
    open_graph = {key[3:]: value for key, value in meta.items() if key.startswith("og:")}
    twitter_card = {
        key[8:]: value for key, value in meta.items() if key.startswith("twitter:")
    }

    return ParsedPage(
        url=url,
        title=_extract_title(html, open_graph),
        description=meta.get("description") or open_graph.get("description", ""),
        content=extract_content(html),
        images=_extract_images(html, url, open_graph),
        meta=meta,
        open_graph=open_graph,
        twitter_card=twitter_card,
        existing=_extract_json_ld(html),
        structured=[MicrodataItem(itemtype=t) for t in _ITEMTYPE_RE.findall(html)],
    )


def clean_text(text: str) -> str:
    """Decode HTML entities and collapse all whitespace to single spaces."""
    return " ".join(unescape(text).split())


def extract_content(html: str) -> str:
    """Return the visible main text, one block element per paragraph."""
    body = _NON_TEXT_RE.sub(" ", _COMMENT_RE.sub(" ", html))
    for pattern in _MAIN_CANDIDATES:
        match = pattern.search(body)
        if match:
            body = match.group(1)
            break

    text = _LINE_BREAK_RE.sub("\n", body)
    text = _BLOCK_TAG_RE.sub("\n\n", text)
    text = unescape(_TAG_RE.sub(" ", text))
    lines = [_INLINE_SPACE_RE.sub(" ", line).strip() for line in text.split("\n")]
    text = _BLANK_RUN_RE.sub("\n\n", "\n".join(lines)).strip()
    return text[:MAX_CONTENT_LENGTH].strip()


# ---------------------------------------------------------------------------
# Element extraction
# ---------------------------------------------------------------------------


def _parse_attrs(tag: str) -> dict[str, str]:
    attrs: dict[str, str] = {}
    for match in _ATTR_RE.finditer(tag):
        name = match.group(1).lower()
        value = next((g for g in match.groups()[1:] if g is not None), "")
        attrs.setdefault(name, value)
    return attrs


def _extract_title(html: str, open_graph: dict[str, str]) -> str:
    match = _TITLE_RE.search(html)
    if match:
        title = clean_text(_TAG_RE.sub(" ", match.group(1)))
        if title:
            return title
    if open_graph.get("title"):
        return open_graph["title"]
    match = _H1_RE.search(html)
    if match:
        return clean_text(_TAG_RE.sub(" ", match.group(1)))
    return ""


def _extract_meta(html: str) -> dict[str, str]:
    """Map lower-cased ``name``/``property`` to ``content``. First occurrence wins."""
    meta: dict[str, str] = {}
    for tag in _META_RE.findall(html):
        attrs = _parse_attrs(tag)
        key = attrs.get("name") or attrs.get("property") or attrs.get("itemprop")
        content = attrs.get("content")
        if key and content is not None:
            meta.setdefault(key.strip().lower(), clean_text(content))
    return meta


def _extract_images(html: str, url: str, open_graph: dict[str, str]) -> list[str]:
    candidates: list[str] = []
    if open_graph.get("image"):
        candidates.append(open_graph["image"])
    for tag in _IMG_RE.findall(html):
        src = _parse_attrs(tag).get("src", "").strip()
        if src and not src.startswith("data:"):
            candidates.append(src)

    images: list[str] = []
    for src in candidates:
        try:
            resolved = urljoin(url, unescape(src)) if url else unescape(src)
        except ValueError:
            log.debug("image_url_invalid", src=src)
            continue
        if resolved not in images:
            images.append(resolved)
    return images


def _extract_json_ld(html: str) -> list:
    blocks: list = []
    for raw in _LD_JSON_RE.findall(html):
        try:
            blocks.append(json.loads(raw.strip()))
        except ValueError:
            log.debug("ld_json_invalid", length=len(raw))
    return blocks
