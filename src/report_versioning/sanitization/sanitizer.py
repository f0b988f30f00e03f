"""
Pattern-based HTML sanitizer.

Every piece of HTML that reaches the renderer or the version store passes
through this module. It strips markup capable of executing script:

- script-like container elements together with their content
  (script, iframe, object, applet, frameset, noembed)
- stray or unclosed tags of those elements and of the void elements
  embed, meta, link, base and frame
- style elements whose CSS smuggles behavior (expression(), behavior:,
  -moz-binding, @import, javascript: URLs), and the opening tag of an
  unclosed style element
- on* event-handler attributes, dangerous URL schemes in URL-carrying
  attributes, srcdoc documents that would themselves need sanitizing and
  inline style attributes carrying the same CSS vectors

Filtering is regex based rather than a DOM-tree allowlist. That keeps the
sanitizer dependency free and its cost linear in the input size, at the price
of weaker guarantees than a parser-based sanitizer: markup the patterns do not
recognize is passed through. Opening tags are paired with closing tags by
looking up the last closing tag of each element once per pass, so unclosed
elements never trigger a scan to the end of the input. Callers depend only on
``sanitize(html) -> SanitizationResult``, so the internals can be swapped for a
parse-tree filter without touching them.

The rules are applied repeatedly until a pass changes nothing. Every rule only
ever deletes text, so the loop terminates, and the output is a fixed point:
sanitizing it again removes nothing.
"""

import html as html_module
import re
from collections import Counter
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import structlog

from ..models.sanitization import SanitizationResult

logger = structlog.get_logger(__name__)

# Version constant
SANITIZER_VERSION = "html-sanitize-1.0.0"

CONTAINER_ELEMENTS = ("script", "iframe", "object", "applet", "frameset", "noembed")
VOID_ELEMENTS = ("embed", "meta", "link", "base", "frame")

URL_ATTRIBUTES = frozenset(
    {
        "href",
        "src",
        "action",
        "formaction",
        "background",
        "poster",
        "data",
        "dynsrc",
        "lowsrc",
        "codebase",
        "xlink:href",
        # SVG animation targets can rewrite href at runtime
        "to",
        "from",
        "values",
    }
)

DANGEROUS_SCHEMES = (
    "javascript:",
    "vbscript:",
    "data:text/html",
    "data:text/javascript",
    "data:application/javascript",
)

# CSS constructs that execute script or load active content
_CSS_BEHAVIOR = re.compile(
    r"expression\s*\(|javascript\s*:|vbscript\s*:|behavior\s*:|-moz-binding|@import",
    re.IGNORECASE,
)
_CSS_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_CSS_ESCAPE = re.compile(r"\\([0-9a-fA-F]{1,6})\s?")

# Whitespace and control characters browsers ignore inside URL schemes
_URL_IGNORED_CHARS = re.compile(r"[\x00-\x20]+")

# Quote-aware tag with attributes: attribute values may contain '>'
_QUOTED_TAG = re.compile(r"""<([a-zA-Z][^\s/<>]*)([\s/](?:[^<>"']|"[^"]*"|'[^']*')*)>""")
# Quote-agnostic tag: catches tags whose stray quotes defeat the pattern above
_PLAIN_TAG = re.compile(r"<([a-zA-Z][^\s/<>]*)([\s/][^<>]*)>")

_STYLE_OPEN = re.compile(r"<(style)\b[^>]*>", re.IGNORECASE)
_STYLE_CLOSE = re.compile(r"</(style)\s*>", re.IGNORECASE)

# Attributes are separated by whitespace or '/', or follow a closing quote directly
_ATTRIBUTE = re.compile(
    r"""([\s/]+|(?<=["']))([^\s"'<>/=]+)(?:\s*=\s*("[^"]*"|'[^']*'|[^\s>]+))?"""
)

# Cheap pre-check: a tag without any of these cannot carry a dangerous attribute
_ATTRIBUTE_HINT = re.compile(r"""[\s/"']on|[:&\\]""", re.IGNORECASE)


def _normalize_url(value: str) -> str:
    """Decode entities and drop characters browsers ignore before a scheme."""
    return _URL_IGNORED_CHARS.sub("", html_module.unescape(value)).lower()


def _normalize_css(value: str) -> str:
    """Strip comments and resolve hex escapes so obfuscated CSS is recognized."""
    value = _CSS_COMMENT.sub("", value)

    def _unescape(match: re.Match) -> str:
        try:
            return chr(int(match.group(1), 16))
        except (ValueError, OverflowError):
            return ""

    return _CSS_ESCAPE.sub(_unescape, value).replace("\\", "")


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def _pair_elements(
    text: str,
    opening: re.Pattern,
    closing: re.Pattern,
    closing_by_name: Dict[str, re.Pattern],
    include_unpaired: bool = True,
) -> Iterator[Tuple[re.Match, Optional[re.Match]]]:
    """
    Yield each opening tag with the first closing tag of the same name after it.

    Element bodies are skipped, so an opening tag inside a paired body is not
    reported. Openings with no closing tag anywhere after them yield None
    without scanning ahead (or are not searched for at all when
    ``include_unpaired`` is False), and no search runs past the last '>'.
    """
    last_closing = {match.group(1).lower(): match.start() for match in closing.finditer(text)}
    end = text.rfind(">") + 1
    if not include_unpaired:
        end = min(end, max(last_closing.values(), default=0))
    pos = 0
    while True:
        start = opening.search(text, pos, end)
        if start is None:
            return
        name = start.group(1).lower()
        if start.end() <= last_closing.get(name, -1):
            stop = closing_by_name[name].search(text, start.end())
            yield start, stop
            pos = stop.end()
        else:
            if include_unpaired:
                yield start, None
            pos = start.end()


def _cut(text: str, spans: List[Tuple[int, int]]) -> str:
    """Remove ordered, non-overlapping ``(start, end)`` spans."""
    if not spans:
        return text
    pieces = []
    pos = 0
    for start, end in spans:
        pieces.append(text[pos:start])
        pos = end
    pieces.append(text[pos:])
    return "".join(pieces)


class HtmlSanitizer:
    """
    Regex-based HTML sanitizer with a removal report.

    The element, attribute and scheme vocabularies are configurable; the
    defaults cover the vectors listed in the module docstring. Instances are
    stateless and safe to share.
    """

    def __init__(
        self,
        container_elements: Iterable[str] = CONTAINER_ELEMENTS,
        void_elements: Iterable[str] = VOID_ELEMENTS,
        url_attributes: Iterable[str] = URL_ATTRIBUTES,
        dangerous_schemes: Iterable[str] = DANGEROUS_SCHEMES,
    ):
        self.container_elements = tuple(e.lower() for e in container_elements)
        self.void_elements = tuple(e.lower() for e in void_elements)
        self.url_attributes = frozenset(a.lower() for a in url_attributes)
        self.dangerous_schemes = tuple(s.lower() for s in dangerous_schemes)

        containers = "|".join(map(re.escape, self.container_elements))
        blocked = "|".join(map(re.escape, self.container_elements + self.void_elements))

        self._container_open = re.compile(rf"<({containers})\b[^>]*>", re.IGNORECASE)
        self._container_close = re.compile(rf"</({containers})\s*>", re.IGNORECASE)
        self._closing_tags = {
            name: re.compile(rf"</{re.escape(name)}\s*>", re.IGNORECASE)
            for name in self.container_elements
        }
        # Opening or closing tag left over after pairing, including one cut off at EOF
        self._stray_tag = re.compile(rf"</?({blocked})\b[^>]*(?:>|$)", re.IGNORECASE)

    def sanitize(self, html: Optional[str]) -> SanitizationResult:
        """
        Sanitize HTML and report what was removed.

        Never raises: malformed or unbalanced markup degrades to best-effort
        stripping.

        Args:
            html: Raw, untrusted HTML (None and "" are accepted)

        Returns:
            SanitizationResult with the sanitized HTML and removal counts
        """
        if not html:
            return SanitizationResult(sanitized="", removed=0, original_length=0)

        removals: Counter = Counter()
        current = html
        while True:
            cleaned = self._apply_rules(current, removals)
            if cleaned == current:
                break
            current = cleaned

        return SanitizationResult(
            sanitized=current,
            removed=sum(removals.values()),
            original_length=len(html),
            removals=dict(removals),
        )

    def _apply_rules(self, text: str, removals: Counter) -> str:
        """Run every rule once, in order."""
        text = self._drop_containers(text, removals)

        def drop_element(match: re.Match) -> str:
            removals[match.group(1).lower()] += 1
            return ""

        text = self._stray_tag.sub(drop_element, text)
        text = self._drop_styles(text, removals)

        text = _QUOTED_TAG.sub(lambda m: self._clean_tag(m, removals), text)
        text = _PLAIN_TAG.sub(lambda m: self._clean_tag(m, removals), text)
        return text

    def _drop_containers(self, text: str, removals: Counter) -> str:
        """Remove paired container elements with their bodies; unpaired tags are left as strays."""
        spans = []
        for opening, closing in _pair_elements(
            text,
            self._container_open,
            self._container_close,
            self._closing_tags,
            include_unpaired=False,
        ):
            removals[opening.group(1).lower()] += 1
            spans.append((opening.start(), closing.end()))
        return _cut(text, spans)

    def _drop_styles(self, text: str, removals: Counter) -> str:
        """Remove style elements carrying behavior, and the opening tag of unclosed ones."""
        spans = []
        for opening, closing in _pair_elements(
            text, _STYLE_OPEN, _STYLE_CLOSE, {"style": _STYLE_CLOSE}
        ):
            if closing is None:
                # The CSS after an unclosed tag stays behind as inert text
                spans.append((opening.start(), opening.end()))
            elif _CSS_BEHAVIOR.search(_normalize_css(text[opening.end() : closing.start()])):
                spans.append((opening.start(), closing.end()))
            else:
                continue
            removals["style"] += 1
        return _cut(text, spans)

    def _clean_tag(self, match: re.Match, removals: Counter) -> str:
        name, attributes = match.group(1), match.group(2)
        if not _ATTRIBUTE_HINT.search(attributes):
            return match.group(0)

        def drop_attribute(attr: re.Match) -> str:
            category = self._classify_attribute(attr.group(2), attr.group(3))
            if category is None:
                return attr.group(0)
            removals[category] += 1
            return ""

        cleaned = _ATTRIBUTE.sub(drop_attribute, attributes)
        if cleaned == attributes:
            return match.group(0)
        return f"<{name}{cleaned}>"

    def _classify_attribute(self, name: str, raw_value: Optional[str]) -> Optional[str]:
        """Return the violation category for an attribute, or None if it is safe."""
        lname = name.lower()
        if len(lname) > 2 and lname.startswith("on"):
            return "event_handler"
        if raw_value is None:
            return None

        value = _strip_quotes(raw_value)
        if lname in self.url_attributes or lname.endswith(":href"):
            if _normalize_url(value).startswith(self.dangerous_schemes):
                return "dangerous_url"
        if lname == "style":
            if _CSS_BEHAVIOR.search(_normalize_css(html_module.unescape(value))):
                return "css_behavior"
        if lname == "srcdoc" and self.sanitize(html_module.unescape(value)).removed:
            return "srcdoc"
        return None


_default_sanitizer = HtmlSanitizer()


def sanitize_html(html: Optional[str]) -> SanitizationResult:
    """
    Sanitize HTML with the default rule set.

    Args:
        html: Raw HTML string (None or empty allowed)

    Returns:
        SanitizationResult; ``is_clean`` is True when nothing was removed

    Examples:
        >>> result = sanitize_html("<script>alert(1)</script><p>ok</p>")
        >>> result.sanitized
        '<p>ok</p>'
        >>> result.removed
        1
    """
    return _default_sanitizer.sanitize(html)


def log_sanitization_event(source: str, result: SanitizationResult) -> None:
    """
    Emit a security log event when sanitization removed something.

    The sanitizer itself performs no I/O; call sites report their own
    identity through ``source``.

    Args:
        source: Call-site identifier (component, route or job name)
        result: Result returned by sanitize_html
    """
    if result.removed == 0:
        return

    logger.warning(
        "sanitization_event",
        source=source,
        removed=result.removed,
        removals=result.removals,
        original_length=result.original_length,
        sanitized_length=len(result.sanitized),
        sanitizer_version=SANITIZER_VERSION,
    )
