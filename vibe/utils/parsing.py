"""Shared parsing utilities for provider responses."""

import re

from vibe.errors import GenerationError, GenerationErrorKind

_FENCE_RE = re.compile(r"```(?:html|HTML)?\s*\n?(.*?)\n?\s*```", re.DOTALL)
_DOCUMENT_RE = re.compile(r"<!DOCTYPE\s+html.*?</html\s*>", re.DOTALL | re.IGNORECASE)
_BARE_PREFIXES = ("<!doctype", "<html")


def strip_fences(text: str) -> str:
    """Strip markdown code fences from LLM output if present."""
    match = _FENCE_RE.search(text)
    return match.group(1).strip() if match else text.strip()


def _looks_like_document(text: str) -> bool:
    return text.lower().startswith(_BARE_PREFIXES)


def extract_markup(text: str) -> str:
    """Pull a complete HTML document out of a model response.

    Accepts bare markup, markup wrapped in a fenced code block, or markup
    embedded among other text (first `<!DOCTYPE html>` … `</html>` span).
    Raises GenerationError(MALFORMED_RESPONSE) when no document is found.
    """
    if not isinstance(text, str) or not text.strip():
        raise GenerationError(GenerationErrorKind.MALFORMED_RESPONSE, "Empty response.")

    trimmed = text.strip()
    if _looks_like_document(trimmed):
        return trimmed

    fenced = strip_fences(text)
    if fenced != trimmed and _looks_like_document(fenced):
        return fenced

    match = _DOCUMENT_RE.search(text)
    if match:
        return match.group(0)

    raise GenerationError(
        GenerationErrorKind.MALFORMED_RESPONSE,
        "Response does not contain an HTML document.",
    )
