"""Persistence for the routing strategy."""

import json
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

STRATEGY_KEY = "llm-strategy"


class StrategyStore:
    """Keeps the strategy name under a well-known key in a JSON state file.

    Other keys in the file are preserved on write.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Failed to read router state", extra={"path": str(self.path), "error": str(e)})
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> Optional[str]:
        """Return the stored strategy name, or None if absent."""
        value = self._read().get(STRATEGY_KEY)
        return value if isinstance(value, str) else None

    def save(self, strategy: str) -> None:
        """Write the strategy name, keeping any other stored keys."""
        data = self._read()
        data[STRATEGY_KEY] = strategy
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self.path)
