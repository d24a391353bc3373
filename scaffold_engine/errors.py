"""Error types raised by the scaffolding engine.

Only two families of failures propagate to callers as exceptions: manifest
loading (``ManifestError``) and source resolution (``SourceNotFound``).
Everything else -- schema violations, unreadable files, busy targets -- is
reported through ``ScaffoldResult`` instead.
"""

from __future__ import annotations

from typing import Any


class ErrorCodes:
    """Machine-readable error codes attached to every ``ScaffoldError``."""

    MANIFEST_MISSING = "MANIFEST_MISSING"
    MANIFEST_MALFORMED = "MANIFEST_MALFORMED"
    SOURCE_NOT_FOUND = "SOURCE_NOT_FOUND"
    LEASE_TIMEOUT = "LEASE_TIMEOUT"
    GENERATOR_NOT_FOUND = "GENERATOR_NOT_FOUND"


class ScaffoldError(Exception):
    """Base class for engine errors.

    Usage::

        raise SourceNotFound(source="/templates/app/src/index.ts")
    """

    code: str = "SCAFFOLD_ERROR"

    def __init__(self, message: str = "", **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.message:
            return f"[{self.code}] {self.message}"
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.code}] {ctx_str}" if ctx_str else f"[{self.code}]"

    def to_dict(self) -> dict[str, Any]:
        """Serialise for logs and JSON payloads."""
        return {"code": self.code, "message": self.message, **self.context}


class ManifestError(ScaffoldError):
    """``scaffold.yaml`` is missing or unusable."""

    code = "MANIFEST_ERROR"


class ManifestMissing(ManifestError):
    code = ErrorCodes.MANIFEST_MISSING


class ManifestMalformed(ManifestError):
    code = ErrorCodes.MANIFEST_MALFORMED


class SourceNotFound(ScaffoldError):
    """Neither ``X`` nor ``X.liquid`` exists in the template directory."""

    code = ErrorCodes.SOURCE_NOT_FOUND


class LeaseTimeout(ScaffoldError):
    """Another scaffold operation holds the target root."""

    code = ErrorCodes.LEASE_TIMEOUT


class GeneratorNotFound(ScaffoldError):
    code = ErrorCodes.GENERATOR_NOT_FOUND

