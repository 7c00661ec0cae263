from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any


class Provider(ABC):
    """A deployment stage: `plan()` describes it, `apply()` performs it."""

    @abstractmethod
    def plan(self) -> str: ...

    @abstractmethod
    def apply(self) -> Any: ...
