"""
Unit tests for the HTML sanitizer (sanitizer.py).

Tests cover:
- Script-capable elements, event handlers and dangerous URL schemes
- Obfuscated vectors (entities, whitespace, case, nested tags)
- Fidelity for ordinary report markup
- Idempotence and the removal report
- Degenerate input (None, empty, malformed, large)
- Time bounds on megabyte-sized input
"""

import time

import pytest

from report_versioning.sanitization.sanitizer import (
    SANITIZER_VERSION,
    HtmlSanitizer,
    sanitize_html,
)

# Vectors adapted from the OWASP XSS filter evasion cheat sheet
XSS_CORPUS = [
    "<script>alert(1)</script>",
    "<SCRIPT SRC=http://xss.example/xss.js></SCRIPT>",
    "<img src=x onerror=alert(1)>",
    "<IMG SRC=\"jav&#x0A;ascript:alert('XSS');\">",
    '<a href="javascript:alert(1)">click</a>',
    '<a href="  JaVaScRiPt:alert(1)">click</a>',
    '<a href="jav&#x09;ascript:alert(1)">click</a>',
    '<a href="vbscript:msgbox(1)">click</a>',
    '<a href="data:text/html;base64,PHNjcmlwdD5hbGVydCgxKTwvc2NyaXB0Pg==">click</a>',
    '<iframe src="https://evil.example"></iframe>',
    '<object data="evil.swf"></object>',
    '<embed src="evil.swf">',
    '<meta http-equiv="refresh" content="0;url=javascript:alert(1)">',
    '<link rel="stylesheet" href="https://evil.example/x.css">',
    '<base href="https://evil.example/">',
    "<svg onload=alert(1)>",
    "<body onload=alert(1)>",
    '<div title="a"onmouseover="alert(1)">x</div>',
    '<div style="width: expression(alert(1))">x</div>',
    '<div style="background:url(javascript:alert(1))">x</div>',
    "<style>body{background:url('javascript:alert(1)')}</style>",
    "<style>@import 'https://evil.example/x.css';</style>",
    '<form action="javascript:alert(1)"><button formaction="javascript:alert(1)">go</button></form>',
    "<scr<script>ipt>alert(1)</script>",
    "<script>alert(1)",
    '<div srcdoc="&lt;script&gt;alert(1)&lt;/script&gt;">x</div>',
]

SAFE_REPORT = (
    "<h1>Incident 3167</h1>\n"
    '<p class="lead">Initial access via <strong>phishing</strong> on <em>Oct 19</em>.</p>\n'
    '<p>See <a href="https://intel.example/case?id=1&amp;src=2">the advisory</a>.</p>\n'
    "<ul><li>Host A</li><li>Host B</li></ul>\n"
    "<table><tr><th>IOC</th></tr><tr><td>198.51.100.7</td></tr></table>\n"
    '<img src="https://evidence.example/screenshot.png" alt="Screenshot">\n'
    '<img src="data:image/png;base64,iVBORw0KGgo=" alt="Inline">\n'
    '<p style="color: red">Critical</p>\n'
    '<p title="one">Ongoing</p>'
)


def _is_dangerous(html: str) -> bool:
    lowered = html.lower()
    markers = ["<script", "<iframe", "<object", "<embed", "<meta", "<link", "<base",
               "javascript:", "vbscript:", "onerror", "onload", "onmouseover",
               "expression(", "@import", "data:text/html"]
    return any(marker in lowered for marker in markers)


class TestDangerousMarkup:
    """Tests for removal of script-capable markup."""

    @pytest.mark.unit
    @pytest.mark.parametrize("payload", XSS_CORPUS)
    def test_corpus_payload_is_neutralized(self, payload):
        """Test that no XSS vector survives sanitization."""
        result = sanitize_html(payload)

        assert not _is_dangerous(result.sanitized), result.sanitized
        assert result.removed > 0
        assert result.is_clean is False

    @pytest.mark.unit
    def test_script_removed_with_content(self):
        """Test that script elements disappear together with their body."""
        result = sanitize_html("<script>alert(1)</script><p>ok</p>")

        assert result.sanitized == "<p>ok</p>"
        assert result.removed == 1
        assert result.removals == {"script": 1}

    @pytest.mark.unit
    def test_event_handler_removed_other_attributes_kept(self):
        """Test that only the on* attribute is stripped from a tag."""
        result = sanitize_html("<img src=x onerror=alert(1)>")

        assert result.sanitized == "<img src=x>"
        assert result.removals == {"event_handler": 1}

    @pytest.mark.unit
    def test_dangerous_href_removed_link_text_kept(self):
        """Test that a javascript: link keeps its text."""
        result = sanitize_html('<a href="javascript:alert(1)">click</a>')

        assert result.sanitized == "<a>click</a>"
        assert result.removals == {"dangerous_url": 1}

    @pytest.mark.unit
    def test_behavior_style_element_removed(self):
        """Test that a style element carrying behavior is dropped."""
        result = sanitize_html("<style>p{behavior:url(x.htc)}</style><p>a</p>")

        assert result.sanitized == "<p>a</p>"
        assert result.removals == {"style": 1}

    @pytest.mark.unit
    def test_plain_style_element_kept(self):
        """Test that ordinary CSS in a style element is preserved."""
        html = "<style>p { color: #333; }</style><p>a</p>"
        result = sanitize_html(html)

        assert result.sanitized == html
        assert result.is_clean

    @pytest.mark.unit
    def test_nested_tag_trick_does_not_reassemble(self):
        """Test that removing an inner tag cannot form a new script tag."""
        result = sanitize_html("<scr<script>ipt>alert(1)</script>")

        assert "<script" not in result.sanitized.lower()

    @pytest.mark.unit
    def test_unclosed_script_tag_removed(self):
        """Test that an opening script tag without a closing tag is removed."""
        result = sanitize_html("<p>a</p><script>alert(1)")

        assert result.sanitized == "<p>a</p>alert(1)"
        assert result.removals == {"script": 1}

    @pytest.mark.unit
    def test_unclosed_style_loses_opening_tag_only(self):
        """Test that CSS after an unclosed style tag is kept as inert text."""
        result = sanitize_html("<p>a</p><style>p{color:red}")

        assert result.sanitized == "<p>a</p>p{color:red}"
        assert result.removals == {"style": 1}

    @pytest.mark.unit
    def test_unclosed_container_next_to_closed_one(self):
        """Test that an unclosed iframe does not pair with a later script's closing tag."""
        result = sanitize_html("<iframe>a<script>x</script>b")

        assert result.sanitized == "ab"
        assert result.removals == {"iframe": 1, "script": 1}

    @pytest.mark.unit
    def test_removal_counts_accumulate(self):
        """Test that removed counts every discrete violation."""
        result = sanitize_html(
            "<script>a</script><script>b</script><img src=x onerror=y>"
        )

        assert result.removed == 3
        assert result.removals == {"script": 2, "event_handler": 1}

    @pytest.mark.unit
    def test_case_insensitive_elements(self):
        """Test that element matching ignores case."""
        result = sanitize_html("<ScRiPt>alert(1)</sCrIpT>text")

        assert result.sanitized == "text"


class TestFidelity:
    """Tests that ordinary report markup passes through untouched."""

    @pytest.mark.unit
    def test_safe_report_unchanged(self):
        """Test that allowed vocabulary is preserved byte for byte."""
        result = sanitize_html(SAFE_REPORT)

        assert result.sanitized == SAFE_REPORT
        assert result.removed == 0
        assert result.is_clean is True
        assert result.original_length == len(SAFE_REPORT)

    @pytest.mark.unit
    def test_plain_text_unchanged(self):
        """Test that text mentioning dangerous words is not altered."""
        text = "The attacker typed javascript: alert(1) into the search box"
        result = sanitize_html(text)

        assert result.sanitized == text
        assert result.is_clean


class TestIdempotence:
    """Tests that sanitized output is a fixed point."""

    @pytest.mark.unit
    @pytest.mark.parametrize("payload", XSS_CORPUS + [SAFE_REPORT])
    def test_second_pass_removes_nothing(self, payload):
        """Test sanitize(sanitize(x)) removes nothing and changes nothing."""
        first = sanitize_html(payload)
        second = sanitize_html(first.sanitized)

        assert second.removed == 0
        assert second.sanitized == first.sanitized


class TestDegenerateInput:
    """Tests for empty, malformed and large input."""

    @pytest.mark.unit
    @pytest.mark.parametrize("value", [None, ""])
    def test_empty_input(self, value):
        """Test that None and empty string yield an empty clean result."""
        result = sanitize_html(value)

        assert result.sanitized == ""
        assert result.removed == 0
        assert result.is_clean

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "html",
        [
            "<p><b>unclosed <i>tags",
            "</div></div><p>",
            "<<<>>>",
            '<a href="unterminated>text',
            "<p class=>empty value</p>",
        ],
    )
    def test_malformed_markup_never_raises(self, html):
        """Test that malformed markup is handled without errors."""
        result = sanitize_html(html)

        assert isinstance(result.sanitized, str)

    @pytest.mark.unit
    def test_large_document(self):
        """Test that a large report is sanitized completely."""
        html = "<p>Timeline entry</p>\n" * 20000 + "<script>alert(1)</script>"
        result = sanitize_html(html)

        assert result.removed == 1
        assert result.sanitized == "<p>Timeline entry</p>\n" * 20000


class TestConfiguration:
    """Tests for custom sanitizer vocabularies."""

    @pytest.mark.unit
    def test_custom_container_element(self):
        """Test that additional container elements can be blocked."""
        sanitizer = HtmlSanitizer(container_elements=("script", "marquee"))
        result = sanitizer.sanitize("<marquee>spin</marquee><p>a</p>")

        assert result.sanitized == "<p>a</p>"
        assert result.removals == {"marquee": 1}

    @pytest.mark.unit
    def test_version_constant(self):
        """Test that the rule set carries a version identifier."""
        assert SANITIZER_VERSION.startswith("html-sanitize-")


class TestPerformance:
    """Time bounds on large reports, including unbalanced markup."""

    MEGABYTE = 1024 * 1024

    @pytest.mark.slow
    def test_benign_megabyte_report(self):
        """Test that a 1 MB clean report is sanitized quickly and unchanged."""
        html = SAFE_REPORT * (self.MEGABYTE // len(SAFE_REPORT) + 1)

        started = time.perf_counter()
        result = sanitize_html(html)
        elapsed = time.perf_counter() - started

        assert result.sanitized == html
        assert elapsed < 2.0

    @pytest.mark.slow
    @pytest.mark.parametrize(
        "chunk,expected_chunk,removals",
        [
            ("<script>a\n", "a\n", {"script": 1}),
            ("<style>a{}\n", "a{}\n", {"style": 1}),
            ("<script>a\n<style>b{}\n", "a\nb{}\n", {"script": 1, "style": 1}),
        ],
    )
    def test_megabyte_of_unclosed_tags(self, chunk, expected_chunk, removals):
        """Test that unclosed container tags do not slow sanitization down quadratically."""
        count = self.MEGABYTE // len(chunk)

        started = time.perf_counter()
        result = sanitize_html(chunk * count)
        elapsed = time.perf_counter() - started

        assert result.sanitized == expected_chunk * count
        assert result.removals == {name: n * count for name, n in removals.items()}
        assert elapsed < 3.0

    @pytest.mark.slow
    def test_unclosed_tags_before_a_closed_element(self):
        """Test many unclosed iframes followed by one closed script."""
        count = self.MEGABYTE // 10
        html = "<iframe>a\n" * count + "<script>x</script>"

        started = time.perf_counter()
        result = sanitize_html(html)
        elapsed = time.perf_counter() - started

        assert result.sanitized == "a\n" * count
        assert result.removals == {"iframe": count, "script": 1}
        assert elapsed < 3.0
