"""
Artifact store - per-project persistence of stage artifacts and site files.

Layout (one directory per project):
    design-strategy.json, layout.json, style.json, copy.json,
    image-plan.json, seo-metadata.json, quality-report.json, metadata.json,
    pages/*.html, styles.css, script.js

Artifacts are append-only per key: every put() adds a new version and the
JSON file on disk always holds the latest one. Each key is owned by the first
stage that writes it; a write from any other owner is rejected.
"""
import json
import re
import threading
from pathlib import Path
from typing import Any, Optional

import structlog

logger = structlog.get_logger()

ARTIFACT_FILES = {
    "design-strategy": "design-strategy.json",
    "layout": "layout.json",
    "style": "style.json",
    "copy": "copy.json",
    "image-plan": "image-plan.json",
    "seo-metadata": "seo-metadata.json",
    "quality-report": "quality-report.json",
    "metadata": "metadata.json",
}

SITE_FILE_SUFFIXES = (".html", ".css", ".js")

# Project ids become directory names under the artifacts root.
PROJECT_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{0,127}$")


class ArtifactOwnershipError(ValueError):
    """A stage tried to write an artifact key owned by another stage."""


class ArtifactStore:
    """
    Append-only artifact store for one project.

    Keys listed in ARTIFACT_FILES are mirrored to disk; other keys (for
    example the image asset set) are kept in memory and summarised in
    metadata.json.
    """

    def __init__(self, base_dir: str | Path, project_id: str):
        if not PROJECT_ID_PATTERN.match(project_id or ""):
            raise ValueError(f"Invalid project id: {project_id!r}")
        self.project_id = project_id
        self.root = Path(base_dir) / project_id
        self.root.mkdir(parents=True, exist_ok=True)

        self._versions: dict[str, list[Any]] = {}
        self._owners: dict[str, str] = {}
        self._lock = threading.Lock()

    def put(self, key: str, value: dict, owner: Optional[str] = None) -> int:
        """
        Append a new version of an artifact.

        Args:
            key: Artifact key (e.g. "layout")
            value: JSON-serialisable artifact
            owner: Stage writing the key

        Returns:
            The 1-based version number written.
        """
        with self._lock:
            owner = owner or key
            current_owner = self._owners.setdefault(key, owner)
            if current_owner != owner:
                raise ArtifactOwnershipError(
                    f"Artifact '{key}' is owned by '{current_owner}', not '{owner}'"
                )

            versions = self._versions.setdefault(key, [])
            versions.append(value)
            version = len(versions)

        filename = ARTIFACT_FILES.get(key)
        if filename:
            self._write_json(self.root / filename, value)

        logger.debug(
            "Artifact stored",
            project_id=self.project_id,
            artifact_key=key,
            version=version,
            owner=owner,
        )
        return version

    def get(self, key: str) -> Optional[Any]:
        """Latest version of an artifact, or None."""
        versions = self._versions.get(key)
        return versions[-1] if versions else None

    def history(self, key: str) -> list[Any]:
        return list(self._versions.get(key, []))

    def version(self, key: str) -> int:
        return len(self._versions.get(key, []))

    def keys(self) -> list[str]:
        return sorted(self._versions.keys())

    def write_site(self, files: dict[str, str]) -> Path:
        """
        Write generated site files (pages/*.html, styles.css, script.js).

        Stale pages from an earlier assembly are removed so the directory
        always mirrors the latest package.
        """
        pages_dir = self.root / "pages"
        if pages_dir.exists():
            for stale in pages_dir.glob("*.html"):
                if f"pages/{stale.name}" not in files:
                    stale.unlink()

        for rel_path, content in sorted(files.items()):
            if not rel_path.endswith(SITE_FILE_SUFFIXES):
                raise ValueError(f"Unexpected site file: {rel_path}")
            target = (self.root / rel_path).resolve()
            if self.root.resolve() not in target.parents:
                raise ValueError(f"Site file escapes project directory: {rel_path}")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")

        logger.info("Site files written", project_id=self.project_id, files=len(files))
        return self.root

    def read_artifact(self, key: str) -> Optional[dict]:
        """Read an artifact JSON file from disk (used by the API)."""
        filename = ARTIFACT_FILES.get(key)
        if not filename:
            return None
        path = self.root / filename
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    @staticmethod
    def _write_json(path: Path, value: Any) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(value, indent=2, default=str), encoding="utf-8")
        tmp.replace(path)
