"""Tests for the launchable HTML exporter."""

from vibe.state import Artifact
from vibe.utils.exporter import export_artifact, slugify


class TestSlugify:
    def test_basic(self):
        assert slugify("My Todo App!") == "my-todo-app"

    def test_empty_falls_back(self):
        assert slugify("???") == "app"


class TestExportArtifact:
    def test_writes_markup(self, tmp_path):
        artifact = Artifact(name="Chores", icon_ref="star.fill", color_ref="#007AFF",
                            markup="<!DOCTYPE html><html></html>", id="0123456789abcdef")
        path = export_artifact(artifact, tmp_path / "apps")

        assert path == tmp_path / "apps" / "chores-01234567.html"
        assert path.read_text(encoding="utf-8") == "<!DOCTYPE html><html></html>"

    def test_default_directory_from_config(self, mock_config, tmp_path):
        mock_config["export_dir"] = str(tmp_path / "exported")
        artifact = Artifact(name="X", icon_ref="globe", color_ref="#000000", markup="<html></html>")
        path = export_artifact(artifact)
        assert path.parent == tmp_path / "exported"
