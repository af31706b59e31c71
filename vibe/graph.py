"""LangGraph StateGraph for one generation round.

START fans out to one node per variation; every variation node joins into
`collect`. Variation nodes run concurrently, share nothing but the read-only
prompt, and convert their own failures into "no result" so a sibling's
failure never aborts the round.
"""

import sys
from typing import Optional

from langgraph.graph import END, START, StateGraph

from vibe.agents.generator import GenerationProvider
from vibe.config import get_config
from vibe.errors import GenerationError
from vibe.state import Candidate, GenerationRequest, RoundState, Theme
from vibe.themes import load_theme_catalog
from vibe.utils.parsing import extract_markup

FAILURE_NOTICE = "Failed to generate apps. Please try again."

# Placeholder candidates used when every variation fails: (title, gradient colour).
_FALLBACK_VARIANTS = [
    ("Version A", "#3B82F6"),
    ("Version B", "#8B5CF6"),
    ("Version C", "#10B981"),
]

_FALLBACK_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head>
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <style>
        * {{ margin: 0; padding: 0; box-sizing: border-box; }}
        body {{
            font-family: -apple-system, system-ui, sans-serif;
            background: linear-gradient(135deg, {color}, #1F2937);
            min-height: 100vh;
            display: flex;
            flex-direction: column;
            align-items: center;
            justify-content: center;
            color: white;
            padding: 20px;
        }}
        h1 {{ font-size: 2rem; margin-bottom: 1rem; }}
        p {{ opacity: 0.8; text-align: center; }}
        .card {{
            background: rgba(255,255,255,0.1);
            backdrop-filter: blur(10px);
            border-radius: 16px;
            padding: 24px;
            margin-top: 24px;
            width: 100%;
            max-width: 300px;
        }}
    </style>
</head>
<body>
    <h1>{title}</h1>
    <p>Your vibe-coded app is ready!</p>
    <div class="card">
        <p>This is a preview of your generated application.</p>
    </div>
</body>
</html>"""


def fallback_candidates(catalog: list[Theme]) -> list[Candidate]:
    """Deterministic local placeholders so the review step is never empty."""
    return [
        Candidate(
            ordinal=i,
            markup=_FALLBACK_TEMPLATE.format(title=title, color=color),
            theme=catalog[(i - 1) % len(catalog)],
        )
        for i, (title, color) in enumerate(_FALLBACK_VARIANTS, 1)
    ]


def _variation_node(provider: GenerationProvider, ordinal: int):
    """Build the node that requests a single variation."""

    async def _generate_variation(state: RoundState) -> dict:
        request = GenerationRequest(
            prompt_text=state["prompt"],
            variation_index=ordinal,
            theme_hint=state.get("theme_hint"),
        )
        try:
            raw = await provider.generate(request.prompt_text, request.variation_index, request.theme_hint)
            markup = extract_markup(raw)
        except GenerationError as exc:
            print(
                f"[Vibe] Generation error for variation {ordinal} "
                f"({exc.kind.value}): {exc}",
                file=sys.stderr,
            )
            return {"results": []}
        except Exception as exc:
            # Any provider fault costs this ordinal only, never its siblings.
            print(
                f"[Vibe] Unexpected error for variation {ordinal}: "
                f"{type(exc).__name__}: {exc}",
                file=sys.stderr,
            )
            return {"results": []}
        return {"results": [{"ordinal": ordinal, "markup": markup}]}

    return _generate_variation


def _collect_node(catalog: list[Theme]):
    """Build the fan-in node: order by ordinal, assign themes, fall back if empty."""

    def _collect(state: RoundState) -> dict:
        # Completion order is arbitrary; only the ordinal decides position.
        ordered = sorted(state["results"], key=lambda r: r["ordinal"])
        hint = state.get("theme_hint")
        candidates = [
            Candidate(
                ordinal=r["ordinal"],
                markup=r["markup"],
                theme=hint if hint is not None else catalog[(r["ordinal"] - 1) % len(catalog)],
            )
            for r in ordered
        ]
        if not candidates:
            return {"candidates": fallback_candidates(catalog), "notice": FAILURE_NOTICE}
        return {"candidates": candidates, "notice": None}

    return _collect


def build_round_graph(
    provider: GenerationProvider,
    catalog: list[Theme],
    variation_count: int = 3,
):
    """Compile the fan-out/fan-in graph for `variation_count` variations."""
    if variation_count < 1:
        raise ValueError("variation_count must be at least 1.")

    workflow = StateGraph(RoundState)

    variation_nodes = []
    for ordinal in range(1, variation_count + 1):
        name = f"variation_{ordinal}"
        workflow.add_node(name, _variation_node(provider, ordinal))
        workflow.add_edge(START, name)
        variation_nodes.append(name)

    workflow.add_node("collect", _collect_node(catalog))
    # Join: collect runs once, after every variation node has finished.
    workflow.add_edge(variation_nodes, "collect")
    workflow.add_edge("collect", END)

    return workflow.compile()


async def run_round(
    provider: GenerationProvider,
    prompt: str,
    session_id: int,
    theme_hint: Optional[Theme] = None,
    catalog: Optional[list[Theme]] = None,
    variation_count: Optional[int] = None,
) -> RoundState:
    """Run one generation round and return the final round state."""
    config = get_config()
    catalog = catalog or load_theme_catalog()
    if variation_count is None:
        variation_count = config.get("variation_count", 3)

    graph = build_round_graph(provider, catalog, variation_count)
    initial: RoundState = {
        "prompt": prompt,
        "theme_hint": theme_hint,
        "session_id": session_id,
        "results": [],
        "candidates": [],
        "notice": None,
    }
    return await graph.ainvoke(initial)
