"""Persist human-editable intermediate output between pipeline stages."""

from __future__ import annotations

import logging
from pathlib import Path

from ..models import RunManifest

logger = logging.getLogger(__name__)

OUTLINE_FILE = "outline.md"
PARTIAL_SCRIPT_FILE = "script.partial.md"
SCRIPT_FILE = "script.md"
MANIFEST_FILE = "manifest.json"


class CheckpointStore:
    """Writes outline, script and manifest files into one output directory."""

    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)

    def _write(self, name: str, content: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / name
        path.write_text(content, encoding="utf-8")
        logger.debug("Wrote %s (%d chars)", path, len(content))
        return path

    def save_outline(self, text: str) -> Path:
        return self._write(OUTLINE_FILE, text.rstrip() + "\n")

    def save_partial_script(self, sections: list[str]) -> Path:
        return self._write(PARTIAL_SCRIPT_FILE, "\n\n".join(sections).rstrip() + "\n")

    def save_script(self, text: str) -> Path:
        path = self._write(SCRIPT_FILE, text.rstrip() + "\n")
        partial = self.output_dir / PARTIAL_SCRIPT_FILE
        if partial.exists():
            partial.unlink()
        return path

    def save_manifest(self, manifest: RunManifest) -> Path:
        return self._write(MANIFEST_FILE, manifest.model_dump_json(indent=2))
