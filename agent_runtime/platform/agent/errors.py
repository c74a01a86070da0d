"""Error taxonomy for the agent runtime.

Every failure that reaches a caller of the runtime is an ``AgentError`` with a
``type`` drawn from ``ErrorType``, a human-readable message, and a ``details``
mapping carrying the structured data needed to handle it programmatically.
"""

from enum import StrEnum
from typing import Any


class ErrorType(StrEnum):
    """Category of an ``AgentError``."""

    CONFIG = "config_error"
    PROMPT = "prompt_error"
    SCHEMA = "schema_error"
    LLM = "llm_error"
    PARSE = "parse_error"
    HOOK = "hook_error"
    VALIDATION = "validation_error"
    BUDGET = "budget_error"


class AgentError(Exception):
    """Base exception for all runtime errors.

    Attributes:
        type: Error category
        message: Human-readable description
        details: Structured data describing the failure
    """

    def __init__(
        self,
        type: ErrorType,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.type = ErrorType(type)
        self.message = message
        self.details = dict(details or {})
        super().__init__(f"{self.type}: {message}")

    def __repr__(self) -> str:
        return f"AgentError(type={self.type.value!r}, message={self.message!r})"

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        error_type: ErrorType = ErrorType.LLM,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> "AgentError":
        """Wrap an arbitrary exception, keeping it in ``details["exception"]``.

        An ``AgentError`` is returned unchanged so that errors raised deeper in
        the stack keep their original type.
        """
        if isinstance(exc, AgentError):
            return exc
        error = cls(
            error_type,
            message or str(exc) or type(exc).__name__,
            {**(details or {}), "exception": exc},
        )
        error.__cause__ = exc
        return error


def config_error(message: str, details: dict[str, Any] | None = None) -> AgentError:
    return AgentError(ErrorType.CONFIG, message, details)


def prompt_error(message: str, details: dict[str, Any] | None = None) -> AgentError:
    return AgentError(ErrorType.PROMPT, message, details)


def schema_error(message: str, details: dict[str, Any] | None = None) -> AgentError:
    return AgentError(ErrorType.SCHEMA, message, details)


def llm_error(message: str, details: dict[str, Any] | None = None) -> AgentError:
    return AgentError(ErrorType.LLM, message, details)


def parse_error(message: str, details: dict[str, Any] | None = None) -> AgentError:
    return AgentError(ErrorType.PARSE, message, details)


def hook_error(message: str, details: dict[str, Any] | None = None) -> AgentError:
    return AgentError(ErrorType.HOOK, message, details)


def validation_error(message: str, details: dict[str, Any] | None = None) -> AgentError:
    return AgentError(ErrorType.VALIDATION, message, details)


def budget_error(message: str, details: dict[str, Any] | None = None) -> AgentError:
    return AgentError(ErrorType.BUDGET, message, details)
