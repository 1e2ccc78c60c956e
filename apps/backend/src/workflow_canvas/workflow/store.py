"""File based storage for abandoned editor sessions."""

import json
import re
import uuid
from pathlib import Path

from .schema import CanvasState

_DRAFT_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class DraftStore:
    """Stores canvas snapshots as JSON files, one file per draft."""

    def __init__(self, base_dir: Path):
        self.base_dir = base_dir

    def save(self, state: CanvasState, draft_id: str | None = None) -> str:
        """Save a snapshot and return its draft ID."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        draft_id = draft_id or uuid.uuid4().hex[:12]
        filepath = self._path(draft_id)
        filepath.write_text(state.model_dump_json(indent=2))
        return draft_id

    def load(self, draft_id: str) -> CanvasState | None:
        filepath = self._path(draft_id)
        if not filepath.exists():
            return None
        data = json.loads(filepath.read_text())
        return CanvasState.model_validate(data)

    def list_ids(self) -> list[str]:
        if not self.base_dir.exists():
            return []
        return sorted(p.stem for p in self.base_dir.glob("*.json"))

    def delete(self, draft_id: str) -> bool:
        """Delete a draft. Returns True if it existed."""
        filepath = self._path(draft_id)
        if filepath.exists():
            filepath.unlink()
            return True
        return False

    def _path(self, draft_id: str) -> Path:
        if not _DRAFT_ID.match(draft_id):
            raise ValueError(f"Invalid draft id: {draft_id!r}")
        return self.base_dir / f"{draft_id}.json"
