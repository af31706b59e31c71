"""Flow controller — the single owner of the app-building phase and session.

Phases move strictly along declared edges:

    IDLE → LISTENING → BUILDING → REVIEWING ⇄ THEMING → NAMING → SAVED → IDLE

and `cancel()` returns to IDLE from anywhere. An action invoked from a phase
that does not declare it raises InvalidTransition and changes nothing.

Every session gets a fresh id from a monotonically increasing counter. A
generation round remembers the id it was issued for; when it finishes after
the session was cancelled or replaced, its results are dropped.
"""

import sys
from typing import Optional

from vibe.agents.generator import GenerationProvider
from vibe.config import get_config
from vibe.errors import CommitRejected, InvalidTransition, PersistenceError
from vibe.graph import run_round
from vibe.state import Artifact, Candidate, IconOption, Phase, Session, Theme
from vibe.themes import apply_theme, icon_options_for, load_theme_catalog
from vibe.transcription import TranscriptionSource
from vibe.utils.store import JsonArtifactStore
from vibe.utils.validator import validate_prompt

PERMISSION_DENIED_NOTICE = "Speech recognition not authorized"


class FlowController:
    def __init__(
        self,
        provider: GenerationProvider,
        transcriber: TranscriptionSource,
        store: JsonArtifactStore,
        catalog: Optional[list[Theme]] = None,
        config: Optional[dict] = None,
    ):
        self.provider = provider
        self.transcriber = transcriber
        self.store = store
        self._config = config
        self.catalog = catalog or load_theme_catalog(self.config)

        self.phase = Phase.IDLE
        self.session: Optional[Session] = None
        self.notice: Optional[str] = None
        self.warnings: list[str] = []
        self.last_saved: Optional[Artifact] = None
        self._session_counter = 0

    @property
    def config(self) -> dict:
        return self._config if self._config is not None else get_config()

    # --- Helpers ---

    def _require(self, action: str, *phases: Phase) -> None:
        if self.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise InvalidTransition(
                f"'{action}' is not allowed in phase '{self.phase.value}' (allowed: {allowed})."
            )

    def _next_session_id(self) -> int:
        self._session_counter += 1
        return self._session_counter

    def _reset(self) -> None:
        """Drop the session and return to IDLE."""
        self.session = None
        self.phase = Phase.IDLE

    @property
    def candidates(self) -> list[Candidate]:
        return list(self.session.candidates) if self.session else []

    @property
    def selected_index(self) -> int:
        return self.session.selected_index if self.session else 0

    @property
    def current_candidate(self) -> Optional[Candidate]:
        return self.session.current_candidate if self.session else None

    # --- Listening ---

    async def start_listening(self) -> None:
        """IDLE → LISTENING. Permission denial keeps the flow in IDLE."""
        self._require("start", Phase.IDLE)
        self._reset()
        self.notice = None
        session_id = self._next_session_id()

        granted = await self.transcriber.request_permission()
        if session_id != self._session_counter:
            return  # cancelled while waiting for permission
        if not granted:
            self.notice = PERMISSION_DENIED_NOTICE
            return

        self.session = Session(
            session_id=session_id,
            selected_theme=self.catalog[0],
            chosen_name=self.config.get("default_app_name", "My App"),
        )
        self.transcriber.start()
        self.phase = Phase.LISTENING

    def set_prompt(self, text: str) -> None:
        """Record a typed prompt; it takes precedence over the transcript."""
        self._require("set_prompt", Phase.LISTENING)
        self.session.typed_prompt = text

    def request_theme(self, theme: Optional[Theme]) -> None:
        """Ask the round to generate every variation in `theme`. None clears it."""
        self._require("request_theme", Phase.LISTENING)
        self.session.theme_hint = theme

    async def stop_listening(self) -> None:
        """LISTENING → BUILDING → REVIEWING, or → IDLE on an empty prompt."""
        self._require("stop", Phase.LISTENING)
        self.transcriber.stop()

        typed = self.session.typed_prompt
        text = typed if typed and typed.strip() else self.transcriber.current_text
        try:
            prompt = validate_prompt(text)
        except ValueError:
            self._reset()
            return

        self.session.prompt = prompt
        self.phase = Phase.BUILDING
        await self.generate()

    # --- Building ---

    async def generate(self) -> None:
        """Run the generation round for the current session, then REVIEWING."""
        self._require("generate", Phase.BUILDING)
        session = self.session
        session_id = session.session_id

        result = await run_round(
            self.provider,
            session.prompt,
            session_id,
            theme_hint=session.theme_hint,
            catalog=self.catalog,
            variation_count=self.config.get("variation_count", 3),
        )

        if self.session is None or self.session.session_id != session_id or self.phase != Phase.BUILDING:
            print(f"[Vibe] Discarding results of superseded round {session_id}", file=sys.stderr)
            return

        session.set_candidates(result["candidates"])
        session.selected_index = 0
        if session.theme_hint is not None:
            session.selected_theme = session.theme_hint
        self.notice = result["notice"]
        self.phase = Phase.REVIEWING

    # --- Reviewing / Theming ---

    def select(self, index: int) -> None:
        """Move the selection cursor, clamped to the candidate list."""
        self._require("select", Phase.REVIEWING, Phase.THEMING)
        self.session.selected_index = index
        self.session.clamp_selection()

    def customize(self) -> None:
        self._require("customize", Phase.REVIEWING)
        self.phase = Phase.THEMING

    def back(self) -> None:
        self._require("back", Phase.THEMING)
        self.phase = Phase.REVIEWING

    def select_theme(self, theme: Theme) -> None:
        """Re-theme every candidate in place. No provider call is made."""
        self._require("select_theme", Phase.THEMING)
        rethemed = [c.rethemed(apply_theme(c.markup, theme), theme) for c in self.session.candidates]
        self.session.set_candidates(rethemed)
        self.session.selected_theme = theme

    def confirm_selection(self) -> None:
        """REVIEWING/THEMING → NAMING, defaulting the icon from the theme."""
        self._require("confirm", Phase.REVIEWING, Phase.THEMING)
        if self.session.selected_icon is None:
            options = self.icon_options()
            self.session.selected_icon = options[0] if options else None
        self.phase = Phase.NAMING

    # --- Naming ---

    def icon_options(self) -> list[IconOption]:
        theme = self.session.selected_theme if self.session else self.catalog[0]
        return icon_options_for(theme, self.config)

    def select_icon(self, icon: Optional[IconOption]) -> None:
        self._require("select_icon", Phase.NAMING)
        self.session.selected_icon = icon

    def set_name(self, name: str) -> None:
        self._require("set_name", Phase.NAMING)
        self.session.chosen_name = name

    def save(self) -> Artifact:
        """Commit the selected candidate as an Artifact and return to IDLE.

        Raises CommitRejected (state unchanged) without an icon or candidate.
        A failed write is recorded in `warnings`; the app is still listed.
        """
        self._require("save", Phase.NAMING)
        session = self.session
        icon = session.selected_icon
        if icon is None:
            raise CommitRejected("Select an icon before saving.")
        candidate = session.current_candidate
        if candidate is None:
            raise CommitRejected("There is no selected app to save.")

        name = session.chosen_name.strip() or self.config.get("default_app_name", "My App")
        artifact = Artifact(
            name=name,
            icon_ref=icon.symbol,
            color_ref=icon.color,
            markup=candidate.markup,
        )

        self.phase = Phase.SAVED
        try:
            self.store.append(artifact)
        except PersistenceError as exc:
            self.warnings.append(str(exc))
            print(f"[Vibe] Warning: {exc}", file=sys.stderr)

        self.last_saved = artifact
        self.notice = None
        self._reset()
        return artifact

    # --- Cancel & saved apps ---

    def cancel(self) -> None:
        """Abandon the current session from any phase without committing."""
        if self.phase == Phase.LISTENING:
            self.transcriber.stop()
        # Supersede any round or permission request still in flight.
        self._next_session_id()
        self.notice = None
        self._reset()

    def saved_apps(self) -> list[Artifact]:
        return self.store.list()

    def delete_app(self, artifact_id: str) -> bool:
        """Remove a saved app. Returns False if no app has that id.

        The store only raises PersistenceError after the app was removed from
        its list, so a failed write is a warning and still counts as deleted.
        """
        try:
            return self.store.remove(artifact_id)
        except PersistenceError as exc:
            self.warnings.append(str(exc))
            print(f"[Vibe] Warning: {exc}", file=sys.stderr)
            return True
