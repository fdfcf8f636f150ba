"""Registry mapping backend names to media engine implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Dict, Iterable

from .base import MediaEngine

if TYPE_CHECKING:  # pragma: no cover - import guard for type checkers
    from audio_splitter.config import EngineSettings

EngineFactory = Callable[["EngineSettings"], MediaEngine]


class EngineRegistry:
    def __init__(self) -> None:
        self._registry: Dict[str, EngineFactory] = {}

    def register(self, name: str, factory: EngineFactory) -> None:
        key = name.lower()
        if key in self._registry:
            raise ValueError(f"Engine already registered for {key}")
        self._registry[key] = factory

    def create(self, name: str, settings: "EngineSettings") -> MediaEngine:
        key = name.lower()
        if key not in self._registry:
            raise KeyError(f"No engine registered for {name}")
        return self._registry[key](settings)

    def names(self) -> Iterable[str]:
        return list(self._registry)


ENGINES = EngineRegistry()
