"""
Error taxonomy for llm_doc_grader.

Provider and chunking failures are fatal for the evaluation that raised them;
ParseError never reaches callers because score extraction recovers with a
documented fallback default.
"""
from typing import Optional


class GraderError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(GraderError):
    """Malformed configuration or a missing API key."""


class UnknownProviderError(GraderError, ValueError):
    """Provider id is not one of the supported/configured services."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"Unsupported provider: {provider!r}")


class ProviderError(GraderError):
    """
    Non-success outcome of a provider call.

    kind is one of "transport", "http" or "timeout".
    """

    KINDS = ("transport", "http", "timeout")

    def __init__(
        self,
        kind: str,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
    ) -> None:
        if kind not in self.KINDS:
            raise ValueError(f"Invalid ProviderError kind: {kind}")
        self.kind = kind
        self.provider = provider
        self.status_code = status_code
        detail = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"[{provider}] {kind} error{detail}: {message}")


class ParseError(GraderError):
    """No numeric score could be read from a model response."""


class ChunkingError(GraderError):
    """Text produced no usable chunks."""


class RewriteError(GraderError):
    """The provider returned an empty rewrite."""
