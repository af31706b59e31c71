"""Theme engine — re-themes generated markup without regenerating it.

The override is a single `<style id="theme-override">` element. Applying a
theme removes any previous override element and inserts the new one, so
repeated applications never accumulate and applying the same theme twice is
byte-identical to applying it once.

Markup is tokenised with the standard HTML tokenizer rather than searched as
raw text: tag-like text inside `<script>`/`<style>` bodies, comments and
attribute values is never mistaken for a real tag.
"""

from html.parser import HTMLParser

from vibe.config import get_config
from vibe.state import IconOption, Theme, normalize_hex

OVERRIDE_ID = "theme-override"

_OVERRIDE_TEMPLATE = """\
<style id="{marker}">
    :root {{
        --primary: {primary};
        --secondary: {secondary};
        --accent: {accent};
        --bg: {bg};
    }}
    body {{ background: linear-gradient(135deg, {primary}, {bg}) !important; }}
    button, .btn, [class*="button"] {{ background: {primary} !important; }}
    a, .link {{ color: {accent} !important; }}
    h1, h2, h3, .title {{ color: white !important; }}
    .card, .panel, [class*="card"] {{
        border-color: {secondary} !important;
        box-shadow: 0 0 20px {primary}33 !important;
    }}
</style>"""


def render_override(theme: Theme) -> str:
    """Return the style fragment that applies `theme` to a generated app."""
    return _OVERRIDE_TEMPLATE.format(
        marker=OVERRIDE_ID,
        primary=normalize_hex(theme.primary),
        secondary=normalize_hex(theme.secondary),
        accent=normalize_hex(theme.accent),
        bg=normalize_hex(theme.background),
    )


class _MarkupScanner(HTMLParser):
    """Record character offsets of the tags the theme engine cares about."""

    def __init__(self, markup: str):
        super().__init__(convert_charrefs=True)
        self._markup = markup
        self._line_starts = [0]
        for i, ch in enumerate(markup):
            if ch == "\n":
                self._line_starts.append(i + 1)
        self.head_open_end: int | None = None
        self.body_open_start: int | None = None
        self.override_spans: list[tuple[int, int]] = []
        self._override_start: int | None = None
        self._override_tag_end: int | None = None

    def _offset(self) -> int:
        lineno, col = self.getpos()
        return self._line_starts[lineno - 1] + col

    def handle_starttag(self, tag, attrs):
        start = self._offset()
        end = start + len(self.get_starttag_text() or "")
        if tag == "head" and self.head_open_end is None:
            self.head_open_end = end
        elif tag == "body" and self.body_open_start is None:
            self.body_open_start = start
        elif tag == "style" and dict(attrs).get("id") == OVERRIDE_ID:
            self._override_start = start
            self._override_tag_end = end

    def handle_startendtag(self, tag, attrs):
        # <head/> and <body/> still mark the document sections.
        self.handle_starttag(tag, attrs)
        if self._override_start is not None:
            self.override_spans.append((self._override_start, self._override_tag_end))
            self._override_start = None

    def handle_endtag(self, tag):
        if tag != "style" or self._override_start is None:
            return
        start = self._offset()
        close = self._markup.find(">", start)
        end = len(self._markup) if close == -1 else close + 1
        self.override_spans.append((self._override_start, end))
        self._override_start = None

    def scan(self) -> "_MarkupScanner":
        self.feed(self._markup)
        self.close()
        if self._override_start is not None:
            # Unterminated override: drop the opening tag only.
            self.override_spans.append((self._override_start, self._override_tag_end))
            self._override_start = None
        return self


def strip_override(markup: str) -> str:
    """Remove every previously injected override element from `markup`."""
    spans = _MarkupScanner(markup).scan().override_spans
    for start, end in reversed(spans):
        markup = markup[:start] + markup[end:]
    return markup


def apply_theme(markup: str, theme: Theme) -> str:
    """Return `markup` with any old override replaced by one for `theme`.

    The fragment goes right after the first `<head>` tag, else right before
    the first `<body>` tag, else at the very end.
    """
    stripped = strip_override(markup)
    fragment = render_override(theme)
    scanner = _MarkupScanner(stripped).scan()

    if scanner.head_open_end is not None:
        at = scanner.head_open_end
    elif scanner.body_open_start is not None:
        at = scanner.body_open_start
    else:
        at = len(stripped)
    return stripped[:at] + fragment + stripped[at:]


def load_theme_catalog(config: dict | None = None) -> list[Theme]:
    """Return the ordered theme catalog from config.

    Raises ValueError if the catalog is empty or a colour code is invalid.
    """
    config = config if config is not None else get_config()
    themes = [Theme.from_dict(entry) for entry in config.get("themes", [])]
    if not themes:
        raise ValueError("Config must define at least one theme.")
    return themes


def icon_options_for(theme: Theme, config: dict | None = None) -> list[IconOption]:
    """Icon choices for the naming step, tinted with the theme's primary colour."""
    config = config if config is not None else get_config()
    return [IconOption(symbol=s, color=theme.primary) for s in config.get("icon_symbols", [])]
