"""Exporter — writes a saved artifact as a standalone, launchable HTML file."""

import re
from pathlib import Path
from typing import Optional

from vibe.config import get_config
from vibe.state import Artifact

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Lower-case, dash-separated file stem for an app name."""
    slug = _SLUG_RE.sub("-", name.lower()).strip("-")
    return slug or "app"


def export_artifact(artifact: Artifact, directory: Optional[str | Path] = None) -> Path:
    """Write the artifact's markup to `<directory>/<slug>-<id8>.html`.

    Returns the path written. Directory defaults to config `export_dir`.
    """
    if directory is None:
        directory = get_config().get("export_dir", "./output/apps")
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)

    path = out_dir / f"{slugify(artifact.name)}-{artifact.id[:8]}.html"
    path.write_text(artifact.markup, encoding="utf-8")
    return path
