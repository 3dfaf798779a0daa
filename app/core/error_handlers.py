# app/core/error_handlers.py

from __future__ import annotations
import logging
import traceback
from typing import Any, Dict

logger = logging.getLogger(__name__)


class MarkupEngineError(Exception):
    """Base class for markup engine errors that carry a user-facing message."""

    status_code: int = 500
    user_message: str = "Something went wrong. Please try again."


class ConfigurationLoadError(MarkupEngineError):
    """Raised when a configuration blob cannot be read from the store."""

    status_code = 503
    user_message = "Could not load your saved configuration."


class ConfigurationSaveError(MarkupEngineError):
    """Raised when a configuration blob cannot be written to the store."""

    status_code = 503
    user_message = "Could not save your configuration. Please try again."


class ReservedScenarioError(MarkupEngineError):
    status_code = 409
    user_message = "The sub-recipe markup is read-only."


class ScenarioNotFoundError(MarkupEngineError):
    status_code = 404
    user_message = "Markup block not found."


class CostRecordNotFoundError(MarkupEngineError):
    status_code = 404
    user_message = "Cost record not found."


def sanitize_error_message(err: Exception, *, expose: bool = False) -> str:
    """
    Returns a user-safe error message.
    - expose=False: generic message (production), or the error's own
      user message for markup engine errors
    - expose=True : includes actual error text (debug)
    """
    if expose:
        return f"{type(err).__name__}: {err}"
    if isinstance(err, MarkupEngineError):
        return err.user_message
    return "Something went wrong. Please try again."


def build_error_payload(err: Exception, *, expose: bool = False) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "success": False,
        "message": sanitize_error_message(err, expose=expose),
    }
    if expose:
        payload["trace"] = traceback.format_exc()
    return payload


def status_code_for(err: Exception) -> int:
    if isinstance(err, MarkupEngineError):
        return err.status_code
    return 500
