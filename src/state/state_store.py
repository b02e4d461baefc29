# src/state/state_store.py
"""JSON persistence for exported engine state."""

import json
import logging
import os
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

COLLECTIONS = (
    "evaluators",
    "consumer_weight_profiles",
    "scored_entities",
    "feedback_log",
    "leaderboard_snapshots",
    "score_history",
)


class JsonStateStore:
    """Stores an exported engine state as a single JSON document.

    The document holds the six logical collections plus a saved_at stamp.
    The engine never calls the store; the hosting application exports state
    from the engine and hands it here.
    """

    def __init__(self, path: Path = Path("data/state/engine_state.json")):
        """Initialize the store.

        Args:
            path: JSON file to read and write.
        """
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def save(self, state: dict) -> None:
        """Write state, replacing any previous document.

        The document is written to a temporary file first and moved into
        place, so a crash mid-write never leaves a truncated file.

        Args:
            state: JSON-safe dict with the six collections.

        Raises:
            ValueError: If a collection is missing.
        """
        missing = [name for name in COLLECTIONS if name not in state]
        if missing:
            raise ValueError(f"State is missing collections: {', '.join(missing)}")

        document = {name: state[name] for name in COLLECTIONS}
        document["saved_at"] = datetime.now().isoformat()

        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(document, f, indent=2)
        os.replace(tmp_path, self._path)
        logger.info(f"Saved engine state to {self._path}")

    def load(self) -> dict | None:
        """Read the stored state.

        Returns:
            The state dict, or None if nothing has been saved yet. Collections
            absent from the file come back empty.
        """
        if not self._path.exists():
            return None

        with open(self._path) as f:
            data = json.load(f)

        state = {name: data.get(name, []) for name in COLLECTIONS}
        logger.info(f"Loaded engine state from {self._path}")
        return state
