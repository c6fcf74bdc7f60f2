"""
Error types for lexicon code generation.

Provides structured exceptions for parsing and generation failures.
Per-document errors (ParseError, GenerationError) are recoverable: the
driver records them as skips and moves on to the next document.
"""

from typing import Any, Dict, Optional


class LexgenError(Exception):
    """Base exception for all lexgen errors."""

    def __init__(
        self,
        message: str,
        code: str = "LEX000",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to structured dictionary."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


class ParseError(LexgenError):
    """A lexicon document does not match the expected structure."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        nsid: Optional[str] = None,
    ):
        super().__init__(
            message,
            code="LEX001",
            details={"source": source, "nsid": nsid},
        )
        self.source = source
        self.nsid = nsid

    def __str__(self) -> str:
        origin = self.nsid or self.source
        if origin:
            return f"{origin}: {self.message}"
        return self.message


class GenerationError(LexgenError):
    """The generator met a construct it has no mapping for."""

    def __init__(
        self,
        message: str,
        nsid: Optional[str] = None,
        definition: Optional[str] = None,
    ):
        super().__init__(
            message,
            code="LEX002",
            details={"nsid": nsid, "definition": definition},
        )
        self.nsid = nsid
        self.definition = definition


class ConfigurationError(LexgenError):
    """Invalid or missing generator configuration."""

    def __init__(self, message: str, setting: Optional[str] = None):
        super().__init__(
            message,
            code="LEX003",
            details={"setting": setting},
        )
        self.setting = setting


__all__ = [
    "LexgenError",
    "ParseError",
    "GenerationError",
    "ConfigurationError",
]
