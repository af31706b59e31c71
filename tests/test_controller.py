"""Tests for FlowController: phase transitions, generation, theming, commit, cancel."""

import asyncio
import os
from unittest.mock import patch

import pytest

from vibe.agents.generator import LLMGenerationProvider
from vibe.controller import PERMISSION_DENIED_NOTICE
from vibe.errors import CommitRejected, GenerationError, GenerationErrorKind, InvalidTransition
from vibe.graph import FAILURE_NOTICE, fallback_candidates
from vibe.state import Phase
from vibe.themes import OVERRIDE_ID, apply_theme
from vibe.transcription import TypedTranscriptionSource
from vibe.utils.store import JsonArtifactStore

from conftest import FakeProvider, html_doc


def _fail():
    return GenerationError(GenerationErrorKind.TRANSPORT_FAILURE, "offline")


async def _build(controller, prompt="todo list app"):
    """Drive IDLE → LISTENING → BUILDING → REVIEWING with a typed prompt."""
    await controller.start_listening()
    controller.set_prompt(prompt)
    await controller.stop_listening()


def _reviewing(controller):
    asyncio.run(_build(controller))
    assert controller.phase == Phase.REVIEWING
    return controller


async def _wait_for(predicate, attempts=200):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("condition never became true")


class TestListening:
    def test_start_enters_listening_with_empty_session(self, make_controller):
        transcriber = TypedTranscriptionSource()
        controller = make_controller(transcriber=transcriber)
        asyncio.run(controller.start_listening())

        assert controller.phase == Phase.LISTENING
        assert transcriber.is_recording
        assert controller.session.prompt == ""
        assert controller.candidates == []

    def test_permission_denied_returns_to_idle(self, make_controller):
        controller = make_controller(transcriber=TypedTranscriptionSource(granted=False))
        asyncio.run(controller.start_listening())

        assert controller.phase == Phase.IDLE
        assert controller.session is None
        assert controller.notice == PERMISSION_DENIED_NOTICE

    def test_transcript_becomes_prompt(self, make_controller):
        transcriber = TypedTranscriptionSource()
        provider = FakeProvider()
        controller = make_controller(provider=provider, transcriber=transcriber)

        async def scenario():
            await controller.start_listening()
            transcriber.feed("  weather dashboard ")
            await controller.stop_listening()

        asyncio.run(scenario())
        assert controller.session.prompt == "weather dashboard"
        assert {prompt for prompt, _, _ in provider.calls} == {"weather dashboard"}
        assert not transcriber.is_recording

    def test_typed_prompt_wins_over_transcript(self, make_controller):
        transcriber = TypedTranscriptionSource()
        controller = make_controller(transcriber=transcriber)

        async def scenario():
            await controller.start_listening()
            transcriber.feed("something misheard")
            controller.set_prompt("todo list app")
            await controller.stop_listening()

        asyncio.run(scenario())
        assert controller.session.prompt == "todo list app"

    def test_empty_transcript_goes_idle_without_generation(self, make_controller):
        provider = FakeProvider()
        controller = make_controller(provider=provider)

        async def scenario():
            await controller.start_listening()
            await controller.stop_listening()

        asyncio.run(scenario())
        assert controller.phase == Phase.IDLE
        assert controller.session is None
        assert provider.calls == []

    def test_start_twice_rejected(self, make_controller):
        controller = make_controller()
        asyncio.run(controller.start_listening())
        with pytest.raises(InvalidTransition):
            asyncio.run(controller.start_listening())
        assert controller.phase == Phase.LISTENING


class TestGeneration:
    def test_all_succeed_shows_three_in_order(self, make_controller):
        controller = _reviewing(make_controller(provider=FakeProvider(delays={1: 0.04, 2: 0.02})))

        assert [c.ordinal for c in controller.candidates] == [1, 2, 3]
        assert [c.markup for c in controller.candidates] == [html_doc(f"App {i}") for i in (1, 2, 3)]
        assert controller.selected_index == 0
        assert controller.notice is None

    def test_all_fail_shows_fallback_with_notice(self, make_controller):
        provider = FakeProvider(outcomes={i: _fail() for i in (1, 2, 3)})
        controller = _reviewing(make_controller(provider=provider))

        assert len(controller.candidates) == 3
        assert controller.notice == FAILURE_NOTICE
        assert controller.selected_index == 0

    def test_partial_failure_no_notice(self, make_controller):
        controller = _reviewing(make_controller(provider=FakeProvider(outcomes={1: _fail()})))

        assert [c.ordinal for c in controller.candidates] == [2, 3]
        assert controller.notice is None

    def test_unexpected_provider_error_still_reaches_review(self, make_controller):
        controller = _reviewing(make_controller(provider=FakeProvider(outcomes={2: RuntimeError("boom")})))

        assert [c.ordinal for c in controller.candidates] == [1, 3]
        assert controller.notice is None

    @patch("vibe.agents.generator.ChatGoogleGenerativeAI")
    def test_missing_api_key_falls_back_with_notice(self, MockLLM, make_controller, mock_config):
        MockLLM.side_effect = ValueError("API key required for Gemini Developer API.")

        with patch.dict(os.environ, {}, clear=True):
            controller = _reviewing(make_controller(provider=LLMGenerationProvider(config=mock_config)))

        assert controller.candidates == fallback_candidates(controller.catalog)
        assert controller.notice == FAILURE_NOTICE

    def test_generate_outside_building_rejected(self, make_controller):
        controller = make_controller()
        with pytest.raises(InvalidTransition):
            asyncio.run(controller.generate())


class TestCancel:
    def test_cancel_while_listening_stops_transcription(self, make_controller):
        transcriber = TypedTranscriptionSource()
        controller = make_controller(transcriber=transcriber)

        async def scenario():
            await controller.start_listening()
            transcriber.feed("half a sentence")
            controller.cancel()

        asyncio.run(scenario())
        assert controller.phase == Phase.IDLE
        assert controller.session is None
        assert not transcriber.is_recording

    def test_cancel_mid_building_discards_superseded_round(self, make_controller):
        async def scenario():
            gate = asyncio.Event()
            provider = FakeProvider(gate=gate)
            controller = make_controller(provider=provider)
            await controller.start_listening()
            controller.set_prompt("todo list app")

            task = asyncio.create_task(controller.stop_listening())
            await _wait_for(lambda: len(provider.calls) == 3)
            assert controller.phase == Phase.BUILDING

            controller.cancel()
            gate.set()
            await task
            return controller, provider

        controller, provider = asyncio.run(scenario())
        assert provider.completed and len(provider.completed) == 3
        assert controller.phase == Phase.IDLE
        assert controller.session is None
        assert controller.candidates == []

    def test_stale_round_does_not_touch_new_session(self, make_controller):
        async def scenario():
            gate = asyncio.Event()
            provider = FakeProvider(gate=gate)
            controller = make_controller(provider=provider)
            await controller.start_listening()
            controller.set_prompt("todo list app")

            task = asyncio.create_task(controller.stop_listening())
            await _wait_for(lambda: len(provider.calls) == 3)
            controller.cancel()
            await controller.start_listening()
            new_session = controller.session

            gate.set()
            await task
            return controller, new_session

        controller, new_session = asyncio.run(scenario())
        assert controller.phase == Phase.LISTENING
        assert controller.session is new_session
        assert controller.candidates == []

    def test_cancel_from_reviewing_clears_session(self, make_controller):
        store = JsonArtifactStore()
        controller = _reviewing(make_controller(store=store))
        controller.cancel()

        assert controller.phase == Phase.IDLE
        assert controller.session is None
        assert store.list() == []

    def test_cancel_from_idle_is_harmless(self, make_controller):
        controller = make_controller()
        controller.cancel()
        assert controller.phase == Phase.IDLE


class TestReviewingAndTheming:
    def test_select_moves_cursor(self, make_controller):
        controller = _reviewing(make_controller())
        controller.select(2)
        assert controller.selected_index == 2
        assert controller.current_candidate.ordinal == 3

    @pytest.mark.parametrize("index, expected", [(-4, 0), (99, 2)])
    def test_select_clamps(self, make_controller, index, expected):
        controller = _reviewing(make_controller())
        controller.select(index)
        assert controller.selected_index == expected

    def test_selection_clamped_to_shorter_list(self, make_controller):
        provider = FakeProvider(outcomes={2: _fail(), 3: _fail()})
        controller = _reviewing(make_controller(provider=provider))
        controller.select(5)
        assert controller.selected_index == 0

    def test_customize_and_back_round_trip(self, make_controller):
        controller = _reviewing(make_controller())
        controller.select(1)
        before = controller.candidates

        controller.customize()
        assert controller.phase == Phase.THEMING
        controller.back()

        assert controller.phase == Phase.REVIEWING
        assert controller.candidates == before
        assert controller.selected_index == 1

    def test_select_theme_rewrites_every_candidate(self, make_controller, catalog):
        controller = _reviewing(make_controller())
        originals = controller.candidates
        controller.customize()
        controller.select_theme(catalog[1])

        for original, rethemed in zip(originals, controller.candidates):
            assert rethemed.ordinal == original.ordinal
            assert rethemed.theme == catalog[1]
            assert rethemed.markup == apply_theme(original.markup, catalog[1])
        assert controller.session.selected_theme == catalog[1]

    def test_select_theme_makes_no_provider_calls(self, make_controller, catalog):
        provider = FakeProvider()
        controller = _reviewing(make_controller(provider=provider))
        calls = len(provider.calls)
        controller.customize()
        controller.select_theme(catalog[2])
        assert len(provider.calls) == calls

    def test_switching_themes_leaves_one_override(self, make_controller, catalog):
        controller = _reviewing(make_controller())
        controller.customize()
        controller.select_theme(catalog[1])
        controller.select_theme(catalog[3])
        controller.select_theme(catalog[3])

        for candidate in controller.candidates:
            assert candidate.markup.count(f'id="{OVERRIDE_ID}"') == 1
            assert catalog[3].primary in candidate.markup

    def test_select_theme_outside_theming_rejected(self, make_controller, catalog):
        controller = _reviewing(make_controller())
        with pytest.raises(InvalidTransition):
            controller.select_theme(catalog[1])

    def test_back_from_reviewing_rejected(self, make_controller):
        controller = _reviewing(make_controller())
        with pytest.raises(InvalidTransition):
            controller.back()
        assert controller.phase == Phase.REVIEWING

    def test_customize_from_idle_rejected(self, make_controller):
        controller = make_controller()
        with pytest.raises(InvalidTransition):
            controller.customize()
        assert controller.phase == Phase.IDLE


class TestNamingAndSave:
    def test_confirm_assigns_default_icon_from_theme(self, make_controller, catalog):
        controller = _reviewing(make_controller())
        controller.customize()
        controller.select_theme(catalog[2])
        controller.confirm_selection()

        assert controller.phase == Phase.NAMING
        assert controller.session.selected_icon.symbol == "app.fill"
        assert controller.session.selected_icon.color == catalog[2].primary

    def test_confirm_from_reviewing(self, make_controller, catalog):
        controller = _reviewing(make_controller())
        controller.confirm_selection()
        assert controller.phase == Phase.NAMING
        assert controller.session.selected_icon.color == catalog[0].primary

    def test_save_commits_selected_candidate(self, make_controller):
        store = JsonArtifactStore()
        controller = _reviewing(make_controller(store=store))
        controller.select(1)
        selected = controller.current_candidate
        controller.confirm_selection()
        icon = controller.icon_options()[2]
        controller.select_icon(icon)
        controller.set_name("Chores")

        artifact = controller.save()

        assert store.list() == [artifact]
        assert artifact.name == "Chores"
        assert artifact.icon_ref == icon.symbol
        assert artifact.color_ref == icon.color
        assert artifact.markup == selected.markup
        assert controller.phase == Phase.IDLE
        assert controller.session is None
        assert controller.last_saved is artifact

    def test_save_blank_name_uses_default(self, make_controller):
        controller = _reviewing(make_controller())
        controller.confirm_selection()
        controller.set_name("   ")
        assert controller.save().name == "My App"

    def test_save_without_icon_rejected(self, make_controller):
        store = JsonArtifactStore()
        controller = _reviewing(make_controller(store=store))
        controller.confirm_selection()
        controller.select_icon(None)

        with pytest.raises(CommitRejected):
            controller.save()
        assert store.list() == []
        assert controller.phase == Phase.NAMING
        assert controller.session is not None

    def test_save_outside_naming_rejected(self, make_controller):
        controller = _reviewing(make_controller())
        with pytest.raises(InvalidTransition):
            controller.save()

    def test_saved_artifact_keeps_theme(self, make_controller, catalog):
        controller = _reviewing(make_controller())
        controller.customize()
        controller.select_theme(catalog[1])
        controller.confirm_selection()
        artifact = controller.save()
        assert catalog[1].primary in artifact.markup

    def test_persistence_failure_is_a_warning(self, make_controller, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = JsonArtifactStore(blocker / "apps.json")
        controller = _reviewing(make_controller(store=store))
        controller.confirm_selection()

        artifact = controller.save()

        assert controller.phase == Phase.IDLE
        assert controller.saved_apps() == [artifact]
        assert len(controller.warnings) == 1

    def test_fresh_session_after_save(self, make_controller):
        controller = _reviewing(make_controller())
        controller.confirm_selection()
        controller.save()

        asyncio.run(_build(controller, "habit tracker"))
        assert controller.phase == Phase.REVIEWING
        assert controller.session.prompt == "habit tracker"
        assert controller.session.selected_icon is None


class TestSavedApps:
    def test_delete_app(self, make_controller):
        controller = _reviewing(make_controller())
        controller.confirm_selection()
        artifact = controller.save()

        assert controller.delete_app(artifact.id) is True
        assert controller.saved_apps() == []
        assert controller.delete_app(artifact.id) is False

    def test_delete_with_failed_write_still_removes(self, make_controller, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        controller = _reviewing(make_controller(store=JsonArtifactStore(blocker / "apps.json")))
        controller.confirm_selection()
        artifact = controller.save()
        controller.warnings.clear()

        assert controller.delete_app(artifact.id) is True
        assert controller.saved_apps() == []
        assert len(controller.warnings) == 1


class TestThemeHint:
    def test_requested_theme_reaches_provider_and_candidates(self, make_controller, catalog):
        provider = FakeProvider()
        controller = make_controller(provider=provider)

        async def scenario():
            await controller.start_listening()
            controller.set_prompt("todo list app")
            controller.request_theme(catalog[1])
            await controller.stop_listening()

        asyncio.run(scenario())
        assert controller.phase == Phase.REVIEWING
        assert {hint for _, _, hint in provider.calls} == {catalog[1]}
        assert {c.theme for c in controller.candidates} == {catalog[1]}
        assert controller.session.selected_theme == catalog[1]

        controller.confirm_selection()
        assert controller.session.selected_icon.color == catalog[1].primary

    def test_no_request_assigns_catalog_by_ordinal(self, make_controller, catalog):
        provider = FakeProvider()
        controller = _reviewing(make_controller(provider=provider))

        assert {hint for _, _, hint in provider.calls} == {None}
        assert [c.theme for c in controller.candidates] == catalog[:3]

    def test_request_theme_outside_listening_rejected(self, make_controller, catalog):
        controller = make_controller()
        with pytest.raises(InvalidTransition):
            controller.request_theme(catalog[0])
        assert controller.phase == Phase.IDLE
