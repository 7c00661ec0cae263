from __future__ import annotations
from typing import Optional


class DockshipError(Exception):
    """Base class for every fatal condition of a run."""

    exit_code = 1

    def __init__(self, message: str, context: Optional[str] = None):
        self.message = message
        self.context = context
        super().__init__(self.format_message())

    def format_message(self) -> str:
        if self.context:
            return f"{self.message}\nContext: {self.context}"
        return self.message


class InputError(DockshipError):
    """Empty or malformed deployment parameter."""

    exit_code = 2


class SyncError(DockshipError):
    """Clone/pull failure or missing build manifest."""

    exit_code = 3


class ProvisionError(DockshipError):
    """Remote host unreachable, OS undetectable/unsupported, or package install failed."""

    exit_code = 4


class TransferError(DockshipError):
    exit_code = 5


class LaunchError(DockshipError):
    exit_code = 6


class ProxyError(DockshipError):
    exit_code = 7


class LockError(DockshipError):
    """Another run holds the workdir lock."""

    exit_code = 8
