"""Vibe App Builder — Streamlit UI for building and saving generated mini apps."""

import sys
from pathlib import Path

# Add project root to path so 'vibe' package is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

import asyncio

import streamlit as st
import streamlit.components.v1 as components

from vibe.agents.generator import LLMGenerationProvider
from vibe.config import get_config
from vibe.controller import FlowController
from vibe.errors import FlowError
from vibe.state import Artifact, Phase
from vibe.transcription import TypedTranscriptionSource
from vibe.utils.exporter import export_artifact
from vibe.utils.store import JsonArtifactStore

PREVIEW_HEIGHT = 560

st.set_page_config(page_title="Vibe App Builder", layout="wide")
st.title("Vibe App Builder")
st.markdown(
    "Describe an app idea and get three self-contained web apps to choose from. "
    "Pick one, restyle it with a theme, give it a name and an icon, and it is "
    "saved as a launchable HTML app."
)

st.divider()


def _controller() -> FlowController:
    """One controller per browser session."""
    if "vibe_controller" not in st.session_state:
        config = get_config()
        st.session_state["vibe_controller"] = FlowController(
            provider=LLMGenerationProvider(),
            transcriber=TypedTranscriptionSource(),
            store=JsonArtifactStore(config.get("store_path")),
        )
    return st.session_state["vibe_controller"]


def _swatch(color: str) -> str:
    return f'<span style="display:inline-block;width:14px;height:14px;border-radius:3px;background:{color}"></span>'


# ---------------------------------------------------------------------------
# Phase renderers
# ---------------------------------------------------------------------------


def _render_idle(controller: FlowController) -> None:
    idea = st.text_area(
        "Describe your app:",
        height=140,
        placeholder="A habit tracker with streaks and a weekly chart...",
    )
    catalog = controller.catalog
    hint_index = st.selectbox(
        "Theme",
        [None, *range(len(catalog))],
        format_func=lambda i: "Mixed (one per variation)" if i is None else catalog[i].name,
    )

    if controller.notice:
        st.info(controller.notice)

    if st.button("Build it", type="primary"):
        if not idea or not idea.strip():
            st.error("Please describe the app you want to create.")
            st.stop()

        with st.status("Generating variations...", expanded=False) as status_widget:
            asyncio.run(controller.start_listening())
            if controller.phase != Phase.LISTENING:
                status_widget.update(label="Could not start", state="error")
                st.rerun()
            controller.set_prompt(idea)
            controller.request_theme(None if hint_index is None else catalog[hint_index])
            asyncio.run(controller.stop_listening())
            status_widget.update(label="Variations ready", state="complete")
        st.rerun()


def _render_review(controller: FlowController) -> None:
    if controller.notice:
        st.warning(controller.notice)

    candidates = controller.candidates
    labels = [f"{c.name} · {c.theme.name}" for c in candidates]
    choice = st.radio(
        "Variation",
        range(len(candidates)),
        index=controller.selected_index,
        format_func=lambda i: labels[i],
        horizontal=True,
    )
    if choice != controller.selected_index:
        controller.select(choice)
        st.rerun()

    left, right = st.columns([3, 1])
    with left:
        components.html(controller.current_candidate.markup, height=PREVIEW_HEIGHT, scrolling=True)

    with right:
        if controller.phase == Phase.THEMING:
            _render_theme_picker(controller)
        elif st.button("Customize theme"):
            controller.customize()
            st.rerun()

        if st.button("Use this app", type="primary"):
            controller.confirm_selection()
            st.rerun()

        if st.button("Start over"):
            controller.cancel()
            st.rerun()


def _render_theme_picker(controller: FlowController) -> None:
    catalog = controller.catalog
    current = controller.session.selected_theme
    index = st.selectbox(
        "Theme",
        range(len(catalog)),
        index=catalog.index(current) if current in catalog else 0,
        format_func=lambda i: catalog[i].name,
    )
    theme = catalog[index]
    st.markdown(
        " ".join(_swatch(c) for c in (theme.primary, theme.secondary, theme.accent, theme.background)),
        unsafe_allow_html=True,
    )

    if theme != current:
        controller.select_theme(theme)
        st.rerun()

    if st.button("Back to variations"):
        controller.back()
        st.rerun()


def _render_naming(controller: FlowController) -> None:
    options = controller.icon_options()
    selected = controller.session.selected_icon

    with st.form("naming_form"):
        name = st.text_input("App name", value=controller.session.chosen_name)
        icon_index = st.radio(
            "Icon",
            range(len(options)),
            index=options.index(selected) if selected in options else 0,
            format_func=lambda i: options[i].symbol,
            horizontal=True,
        )
        submitted = st.form_submit_button("Save app", type="primary")

    if st.button("Cancel"):
        controller.cancel()
        st.rerun()

    if submitted:
        controller.set_name(name)
        controller.select_icon(options[icon_index] if options else None)
        try:
            artifact = controller.save()
        except FlowError as exc:
            st.error(str(exc))
            st.stop()
        st.session_state["vibe_last_export"] = str(export_artifact(artifact))
        st.rerun()


# ---------------------------------------------------------------------------
# Saved apps
# ---------------------------------------------------------------------------


def _render_saved_app(controller: FlowController, app: Artifact) -> None:
    label = f"{app.name} · {app.icon_ref} · {app.created_at:%Y-%m-%d %H:%M}"
    with st.expander(label):
        st.markdown(_swatch(app.color_ref) + f" `{app.id}`", unsafe_allow_html=True)
        components.html(app.markup, height=PREVIEW_HEIGHT, scrolling=True)
        col_download, col_delete = st.columns(2)
        with col_download:
            st.download_button(
                label="Download HTML",
                data=app.markup,
                file_name=f"{app.name}.html",
                mime="text/html",
                key=f"download_{app.id}",
            )
        with col_delete:
            if st.button("Delete", key=f"delete_{app.id}"):
                controller.delete_app(app.id)
                st.rerun()


def _render_saved_apps(controller: FlowController) -> None:
    st.subheader("Your apps")

    last_export = st.session_state.pop("vibe_last_export", None)
    if last_export:
        st.success(f"Saved. Launchable copy written to `{last_export}`.")
    for warning in controller.warnings:
        st.warning(warning)
    controller.warnings.clear()

    apps = controller.saved_apps()
    if not apps:
        st.markdown("*No saved apps yet. Describe one above to get started.*")
        return
    for app in apps:
        _render_saved_app(controller, app)


# ---------------------------------------------------------------------------
# Page logic: driven by the controller phase
# ---------------------------------------------------------------------------

controller = _controller()
phase = controller.phase

if phase in (Phase.REVIEWING, Phase.THEMING):
    _render_review(controller)
elif phase == Phase.NAMING:
    _render_naming(controller)
else:
    # LISTENING/BUILDING only last for the duration of one button press.
    if phase != Phase.IDLE:
        controller.cancel()
    _render_idle(controller)

st.divider()
_render_saved_apps(controller)
