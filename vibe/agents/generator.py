"""Generation provider — turns an app idea into one complete single-file web app.

Each call is stateless: one prompt, one variation index, one best-effort model
request. The model is asked for raw HTML; the generation round extracts the
document when the model wraps it in fences or commentary anyway.

Every failure leaves this module as a `GenerationError` whose kind is one of
invalid endpoint, transport failure or malformed response.
"""

import asyncio
import random
from typing import Optional, Protocol

import httpx
from langchain_anthropic import ChatAnthropic
from langchain_google_genai import ChatGoogleGenerativeAI

from vibe.config import get_config
from vibe.errors import GenerationError, GenerationErrorKind
from vibe.state import Theme


class GenerationProvider(Protocol):
    async def generate(
        self, prompt: str, variation_index: int, theme_hint: Optional[Theme] = None
    ) -> str: ...


# Default colour sets when no theme is requested, indexed by variation.
_COLOR_SETS = [
    ("#3B82F6", "#1E40AF", "#60A5FA"),
    ("#8B5CF6", "#6D28D9", "#A78BFA"),
    ("#10B981", "#047857", "#34D399"),
]

AESTHETICS = [
    "Bento box grid layout with asymmetric card sizes",
    "Flowing organic shapes with blob morphing animations",
    "Brutalist typography with oversized bold headlines",
    "Neomorphic soft UI with subtle shadows and insets",
    "Retro-futuristic with scanlines and CRT glow effects",
    "Minimalist with dramatic whitespace and single accent",
    "Gradient mesh backgrounds with floating elements",
    "Isometric 3D-style cards with perspective transforms",
    "Magazine editorial layout with mixed media feel",
    "Terminal/hacker aesthetic with monospace and green accents",
]

ANIMATIONS = [
    "Elements fade-scale in with staggered delays",
    "Smooth parallax scrolling effects",
    "Hover states with spring-bounce physics",
    "Subtle floating/breathing animations on key elements",
    "Typewriter text reveal on headings",
    "Cards flip or rotate on interaction",
    "Ripple effects on button clicks",
    "Elastic rubber-band pull interactions",
]

LAYOUTS = [
    "Full-screen hero section with scroll-reveal content",
    "Dashboard with multiple interactive widgets",
    "Card-based interface with swipe/drag capability",
    "Split-screen layout with contrasting sections",
    "Vertical timeline or step-by-step flow",
    "Masonry grid with varied content types",
    "Single column focus with floating action buttons",
]

SYSTEM_PROMPT = """\
You are Flash UI - an ELITE creative web app designer. Generate a COMPLETE, \
production-quality web application.

**CREATIVE DIRECTION FOR VARIATION {variation}:**
- Visual Style: {aesthetic}
- Animation Approach: {animation}
- Layout Pattern: {layout}

**CRITICAL REQUIREMENTS:**
1. Return ONLY raw HTML - no markdown, no code fences, no explanations
2. Start with <!DOCTYPE html> and end with </html>
3. All CSS in <style> tag, all JS in <script> tag
4. MUST be fully functional with REAL interactive JavaScript:
   - Buttons must DO something when clicked
   - Forms must handle input
   - Include at least one dynamic/interactive feature
5. **JAVASCRIPT MUST WORK:** Use DOMContentLoaded, proper event listeners, no syntax errors
6. Mobile-first, responsive design (use viewport meta tag)
7. Import a Google Font that matches your aesthetic
8. Include micro-animations and hover states

{colors}

**MAKE IT UNIQUE:**
- This is variation {variation} of {total} - it must look COMPLETELY DIFFERENT from standard templates
- Be bold and creative with the visual design
- Surprise the user with interesting interactions
- Avoid generic bootstrap-style layouts

Start with <!DOCTYPE html> and end with </html>. NO other text.
"""


def _color_directive(theme_hint: Optional[Theme], variation_index: int) -> str:
    if theme_hint is not None:
        return (
            "Use these colors for the design:\n"
            f"- Primary: {theme_hint.primary}\n"
            f"- Secondary: {theme_hint.secondary}\n"
            f"- Accent: {theme_hint.accent}"
        )
    primary, secondary, accent = _COLOR_SETS[(variation_index - 1) % len(_COLOR_SETS)]
    return f"Use these colors: Primary: {primary}, Secondary: {secondary}, Accent: {accent}"


def build_system_prompt(
    variation_index: int,
    theme_hint: Optional[Theme] = None,
    total: int = 3,
    rng: Optional[random.Random] = None,
) -> str:
    """Build the system prompt for one variation.

    The creative direction is offset by the variation index and jittered by
    `rng`, so variations differ from each other and from run to run.
    """
    rng = rng or random.Random()
    aesthetic = AESTHETICS[(variation_index * 3 + rng.randrange(len(AESTHETICS))) % len(AESTHETICS)]
    animation = ANIMATIONS[(variation_index * 5 + rng.randrange(len(ANIMATIONS))) % len(ANIMATIONS)]
    layout = LAYOUTS[(variation_index * 7 + rng.randrange(len(LAYOUTS))) % len(LAYOUTS)]
    return SYSTEM_PROMPT.format(
        variation=variation_index,
        total=total,
        aesthetic=aesthetic,
        animation=animation,
        layout=layout,
        colors=_color_directive(theme_hint, variation_index),
    )


def _classify(exc: BaseException) -> GenerationErrorKind:
    """Map a client/SDK exception to a generation failure kind."""
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return GenerationErrorKind.TRANSPORT_FAILURE
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
    else:
        # SDK errors (anthropic, google) expose the HTTP status differently.
        status = getattr(exc, "status_code", None) or getattr(exc, "code", None)
    if status in (401, 403, 404):
        return GenerationErrorKind.INVALID_ENDPOINT
    return GenerationErrorKind.TRANSPORT_FAILURE


def _response_text(content) -> str:
    """Flatten a chat model response's content into plain text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type", "text") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    raise GenerationError(
        GenerationErrorKind.MALFORMED_RESPONSE,
        f"Unexpected response content type: {type(content).__name__}",
    )


class LLMGenerationProvider:
    """GenerationProvider backed by a LangChain chat model.

    `provider: google` uses Gemini through langchain-google-genai,
    `provider: anthropic` uses Claude through langchain-anthropic.
    """

    def __init__(self, config: Optional[dict] = None, rng: Optional[random.Random] = None):
        self._config = config
        self._rng = rng or random.Random()

    @property
    def config(self) -> dict:
        return self._config if self._config is not None else get_config()

    def _build_llm(self):
        config = self.config
        provider = config.get("provider", "google")
        model_name = config.get("generation_model")
        if not model_name:
            raise GenerationError(GenerationErrorKind.INVALID_ENDPOINT, "No generation_model configured.")
        temperature = config.get("temperature", 1.0)

        if provider == "google":
            return ChatGoogleGenerativeAI(model=model_name, temperature=temperature)
        if provider == "anthropic":
            return ChatAnthropic(model=model_name, temperature=temperature, max_tokens=16000)
        raise GenerationError(
            GenerationErrorKind.INVALID_ENDPOINT, f"Unknown provider '{provider}'."
        )

    async def generate(
        self, prompt: str, variation_index: int, theme_hint: Optional[Theme] = None
    ) -> str:
        """Generate one app variation and return its HTML document."""
        config = self.config
        try:
            llm = self._build_llm()
        except GenerationError:
            raise
        except Exception as exc:
            # Client construction fails on a missing or rejected API key.
            raise GenerationError(
                GenerationErrorKind.INVALID_ENDPOINT,
                f"Could not create the chat model: {type(exc).__name__}: {exc}",
            ) from exc

        messages = [
            {
                "role": "system",
                "content": build_system_prompt(
                    variation_index,
                    theme_hint,
                    total=config.get("variation_count", 3),
                    rng=self._rng,
                ),
            },
            {"role": "user", "content": f"Create a web app for: {prompt}"},
        ]
        timeout = config.get("request_timeout_seconds")

        try:
            if timeout:
                response = await asyncio.wait_for(llm.ainvoke(messages), timeout=timeout)
            else:
                response = await llm.ainvoke(messages)
        except GenerationError:
            raise
        except Exception as exc:
            raise GenerationError(_classify(exc), f"{type(exc).__name__}: {exc}") from exc

        return _response_text(response.content)
