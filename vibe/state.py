"""Flow state — phases, value objects and the per-round graph state."""

import operator
import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Optional, TypedDict

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{6})$")


def normalize_hex(value: str) -> str:
    """Return `value` as an upper-case `#RRGGBB` code.

    Raises ValueError if it is not a 6-digit hex colour.
    """
    match = _HEX_RE.match(str(value).strip())
    if not match:
        raise ValueError(f"Invalid colour code: {value!r}")
    return "#" + match.group(1).upper()


class Phase(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    BUILDING = "building"
    REVIEWING = "reviewing"
    THEMING = "theming"
    NAMING = "naming"
    SAVED = "saved"


@dataclass(frozen=True)
class Theme:
    name: str
    primary: str
    secondary: str
    accent: str
    background: str

    @classmethod
    def from_dict(cls, data: dict) -> "Theme":
        return cls(
            name=data["name"],
            primary=normalize_hex(data["primary"]),
            secondary=normalize_hex(data["secondary"]),
            accent=normalize_hex(data["accent"]),
            background=normalize_hex(data["background"]),
        )


@dataclass(frozen=True)
class IconOption:
    symbol: str
    color: str


@dataclass(frozen=True)
class GenerationRequest:
    prompt_text: str
    variation_index: int
    theme_hint: Optional[Theme] = None


@dataclass(frozen=True)
class Candidate:
    ordinal: int
    markup: str
    theme: Theme

    @property
    def name(self) -> str:
        return f"Variation {self.ordinal}"

    def rethemed(self, markup: str, theme: Theme) -> "Candidate":
        """Return a copy with markup and theme replaced together."""
        return replace(self, markup=markup, theme=theme)


@dataclass
class Session:
    """Transient working state for one generate → review → theme → save cycle.

    Owned and mutated exclusively by FlowController.
    """

    session_id: int
    selected_theme: Theme
    chosen_name: str
    prompt: str = ""
    typed_prompt: Optional[str] = None
    theme_hint: Optional[Theme] = None
    candidates: list[Candidate] = field(default_factory=list)
    selected_index: int = 0
    selected_icon: Optional[IconOption] = None

    def set_candidates(self, candidates: list[Candidate]) -> None:
        self.candidates = list(candidates)
        self.clamp_selection()

    def clamp_selection(self) -> None:
        if not self.candidates:
            self.selected_index = 0
            return
        self.selected_index = max(0, min(self.selected_index, len(self.candidates) - 1))

    @property
    def current_candidate(self) -> Optional[Candidate]:
        if not self.candidates:
            return None
        return self.candidates[self.selected_index]


@dataclass(frozen=True)
class Artifact:
    name: str
    icon_ref: str
    color_ref: str
    markup: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "icon_ref": self.icon_ref,
            "color_ref": self.color_ref,
            "markup": self.markup,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Artifact":
        return cls(
            id=data["id"],
            name=data["name"],
            icon_ref=data["icon_ref"],
            color_ref=data["color_ref"],
            markup=data["markup"],
            created_at=datetime.fromisoformat(data["created_at"]),
        )


class RoundState(TypedDict):
    prompt: str  # Validated prompt shared by every variation. Immutable.
    theme_hint: Optional[Theme]  # Explicit theme for all variations, or None.
    session_id: int  # Session the round was issued for.
    results: Annotated[list[dict], operator.add]  # {"ordinal", "markup"} per success, any order.
    candidates: list[Candidate]  # Ordinal-sorted output of the collect node.
    notice: Optional[str]  # User-visible failure notice, set on total failure.
