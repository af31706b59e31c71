"""Shared fixtures for the Vibe test suite."""

import asyncio
from unittest.mock import patch

import pytest

from vibe.controller import FlowController
from vibe.state import Theme
from vibe.transcription import TypedTranscriptionSource
from vibe.utils.store import JsonArtifactStore

TEST_CONFIG = {
    "provider": "google",
    "generation_model": "test-model",
    "temperature": 1.0,
    "variation_count": 3,
    "request_timeout_seconds": None,
    "default_app_name": "My App",
    "store_path": None,
    "export_dir": None,
    "themes": [
        {"name": "Ocean", "primary": "#007AFF", "secondary": "#32ADE6", "accent": "#30B0C7", "background": "#1A1A1A"},
        {"name": "Sunset", "primary": "#FF9500", "secondary": "#FF2D55", "accent": "#FF3B30", "background": "#1A1A1A"},
        {"name": "Forest", "primary": "#34C759", "secondary": "#00C7BE", "accent": "#30B0C7", "background": "#1A1A1A"},
        {"name": "Midnight", "primary": "#5856D6", "secondary": "#AF52DE", "accent": "#007AFF", "background": "#0D0D0D"},
    ],
    "icon_symbols": ["app.fill", "star.fill", "bolt.fill"],
}


def html_doc(title: str) -> str:
    """Minimal complete HTML document, as a provider would return it."""
    return (
        "<!DOCTYPE html>\n<html>\n<head>\n<title>" + title + "</title>\n</head>\n"
        "<body>\n<h1>" + title + "</h1>\n</body>\n</html>"
    )


class FakeProvider:
    """GenerationProvider double.

    `outcomes` maps variation index to markup text or an exception to raise.
    `delays` maps variation index to seconds to sleep before answering.
    `gate`, when set, holds every request until the event is set.
    """

    def __init__(self, outcomes=None, delays=None, gate=None):
        self.outcomes = outcomes or {}
        self.delays = delays or {}
        self.gate = gate
        self.calls = []
        self.completed = []

    async def generate(self, prompt, variation_index, theme_hint=None):
        self.calls.append((prompt, variation_index, theme_hint))
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(self.delays.get(variation_index, 0))
        self.completed.append(variation_index)
        outcome = self.outcomes.get(variation_index, html_doc(f"App {variation_index}"))
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def mock_config():
    """Patch the config singleton with test-friendly values."""
    test_config = dict(TEST_CONFIG)
    with patch("vibe.config._config", test_config):
        yield test_config


@pytest.fixture
def catalog():
    return [Theme.from_dict(t) for t in TEST_CONFIG["themes"]]


@pytest.fixture
def make_controller(mock_config, catalog):
    """Factory for a FlowController wired to fakes and an in-memory store."""

    def _make(provider=None, transcriber=None, store=None):
        return FlowController(
            provider=provider or FakeProvider(),
            transcriber=transcriber or TypedTranscriptionSource(),
            store=store or JsonArtifactStore(),
            catalog=catalog,
        )

    return _make
