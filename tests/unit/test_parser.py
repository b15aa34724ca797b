"""Unit tests for pageschema.parser."""

from __future__ import annotations

from pageschema.parser import clean_text, extract_content, parse_html

PAGE_URL = "https://shop.example.com/p/headphones"


class TestParseHtml:
    def test_product_page_fields(self, product_html: str) -> None:
        page = parse_html(product_html, PAGE_URL)
        assert page.url == PAGE_URL
        assert page.title == "Wireless Headphones Pro"
        assert page.description == "Premium noise-cancelling headphones & more"
        assert page.open_graph["type"] == "product"
        assert "Price: $199.99" in page.content
        assert "<" not in page.content

    def test_images_resolved_and_og_first(self, product_html: str) -> None:
        page = parse_html(product_html, PAGE_URL)
        assert page.images == [
            "https://shop.example.com/img/headphones.jpg",
            "https://shop.example.com/img/side.jpg",
        ]

    def test_duplicate_images_collapsed(self) -> None:
        html = '<img src="/a.png"><img src="/a.png"><img src="data:image/png;base64,xx">'
        page = parse_html(html, "https://example.com/")
        assert page.images == ["https://example.com/a.png"]

    def test_malformed_image_url_skipped(self) -> None:
        html = '<title>Ok</title><img src="http://[oops/x.png"><img src="/b.png">'
        page = parse_html(html, "https://example.com/")
        assert page.title == "Ok"
        assert page.images == ["https://example.com/b.png"]

    def test_empty_input_yields_empty_page(self) -> None:
        page = parse_html("", PAGE_URL)
        assert page.url == PAGE_URL
        assert page.title == ""
        assert page.content == ""
        assert page.images == []

    def test_non_string_input_yields_empty_page(self) -> None:
        assert parse_html(None).title == ""

    def test_title_falls_back_to_og_then_h1(self) -> None:
        og = parse_html('<meta property="og:title" content="From OG"><h1>Heading</h1>')
        assert og.title == "From OG"
        h1 = parse_html("<h1>Only <em>Heading</em></h1>")
        assert h1.title == "Only Heading"

    def test_meta_keys_lowercased_first_wins(self) -> None:
        html = (
            '<meta name="Description" content="first">'
            '<meta name="description" content="second">'
            '<meta name="twitter:card" content="summary">'
        )
        page = parse_html(html)
        assert page.meta["description"] == "first"
        assert page.description == "first"
        assert page.twitter_card == {"card": "summary"}

    def test_json_ld_blocks_decoded_and_invalid_skipped(self) -> None:
        html = (
            '<script type="application/ld+json">{"@type": "Product"}</script>'
            '<script type="application/ld+json">{not json</script>'
        )
        page = parse_html(html)
        assert page.existing == [{"@type": "Product"}]

    def test_microdata_itemtypes(self) -> None:
        html = '<div itemscope itemtype="https://schema.org/Recipe"><span>x</span></div>'
        page = parse_html(html)
        assert [item.itemtype for item in page.structured] == ["https://schema.org/Recipe"]


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


class TestExtractContent:
    def test_scripts_and_styles_removed(self) -> None:
        html = "<body><script>var x = 1;</script><style>p{}</style><p>Visible</p></body>"
        assert extract_content(html) == "Visible"

    def test_prefers_main_element(self) -> None:
        html = "<nav>Menu</nav><main><p>Body text</p></main><footer>Foot</footer>"
        assert extract_content(html) == "Body text"

    def test_block_elements_become_paragraphs(self) -> None:
        text = extract_content("<article><p>One</p><p>Two</p></article>")
        assert text == "One\n\nTwo"

    def test_content_is_capped(self) -> None:
        html = "<p>" + "word " * 3000 + "</p>"
        assert len(extract_content(html)) <= 5000


class TestCleanText:
    def test_entities_and_whitespace(self) -> None:
        assert clean_text("  Fish &amp;\n\tChips  ") == "Fish & Chips"
