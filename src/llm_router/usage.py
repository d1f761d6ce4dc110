"""Token usage tracking for generations."""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1000


@runtime_checkable
class UsageTracker(Protocol):
    """Receives one report per successful generation that used tokens."""

    def record_usage(
        self,
        backend_name: str,
        tokens: int,
        cost: Optional[float] = None,
        model: Optional[str] = None,
    ) -> None: ...


@dataclass
class UsageEntry:
    """Individual usage entry."""

    backend: str
    tokens: int
    cost: Optional[float] = None
    model: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "backend": self.backend,
            "tokens": self.tokens,
            "cost": self.cost,
            "model": self.model,
            "timestamp": self.timestamp,
        }


class InMemoryUsageTracker:
    """Keeps the most recent usage entries plus running per-backend totals."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._entries: deque[UsageEntry] = deque(maxlen=max_entries)
        self.tokens_by_backend: dict[str, int] = {}
        self.cost_by_backend: dict[str, float] = {}

    def record_usage(
        self,
        backend_name: str,
        tokens: int,
        cost: Optional[float] = None,
        model: Optional[str] = None,
    ) -> None:
        self._entries.append(UsageEntry(backend=backend_name, tokens=tokens, cost=cost, model=model))
        self.tokens_by_backend[backend_name] = self.tokens_by_backend.get(backend_name, 0) + tokens
        if cost is not None:
            self.cost_by_backend[backend_name] = self.cost_by_backend.get(backend_name, 0.0) + cost

        logger.debug(
            "Usage recorded",
            extra={"backend": backend_name, "tokens": tokens, "model": model},
        )

    @property
    def entries(self) -> list[UsageEntry]:
        return list(self._entries)

    @property
    def total_tokens(self) -> int:
        return sum(self.tokens_by_backend.values())

    def summary(self) -> dict:
        return {
            "total_tokens": self.total_tokens,
            "tokens_by_backend": dict(self.tokens_by_backend),
            "cost_by_backend": {k: round(v, 4) for k, v in self.cost_by_backend.items()},
            "entries": len(self._entries),
        }

    def reset(self) -> None:
        self._entries.clear()
        self.tokens_by_backend.clear()
        self.cost_by_backend.clear()
