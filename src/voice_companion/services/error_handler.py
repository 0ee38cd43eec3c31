"""
Error categorization and user-facing status messages.

This module maps recognition error codes and engine exceptions to categories
and one-line, non-fatal messages suitable for the status indicator.
"""

import logging
import re
import traceback
from enum import Enum
from typing import Any

import httpx

from voice_companion.core.errors import ElementNotFound
from voice_companion.core.errors import ProviderUnavailable
from voice_companion.core.errors import RecognitionError

# Configure logging
logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Error category enum."""

    PERMISSION = "permission"  # Microphone access denied
    NETWORK = "network"  # Network errors
    AUDIO_CAPTURE = "audio_capture"  # No usable microphone
    PROVIDER = "provider"  # Generation/synthesis backend errors
    PAGE = "page"  # Page action errors
    BENIGN = "benign"  # Expected recognition noise, not worth surfacing
    UNKNOWN = "unknown"  # Unknown errors


# Platform recognition error codes (Web Speech naming)
RECOGNITION_CODES: dict[str, ErrorCategory] = {
    "not-allowed": ErrorCategory.PERMISSION,
    "service-not-allowed": ErrorCategory.PERMISSION,
    "network": ErrorCategory.NETWORK,
    "audio-capture": ErrorCategory.AUDIO_CAPTURE,
    "no-speech": ErrorCategory.BENIGN,
    "aborted": ErrorCategory.BENIGN,
}


class ErrorHandler:
    """Categorizes errors and produces one-line messages for the status stream."""

    def __init__(self):
        """Initialize the error handler."""
        # Error patterns for categorization of untyped exceptions
        self.error_patterns = {
            ErrorCategory.PERMISSION: [
                r"permission.*denied",
                r"not.*allowed",
                r"unauthorized",
                r"forbidden",
            ],
            ErrorCategory.NETWORK: [
                r"connection.*refused",
                r"network.*error",
                r"timeout",
                r"timed out",
            ],
            ErrorCategory.AUDIO_CAPTURE: [
                r"microphone",
                r"audio.*capture",
                r"no.*input.*device",
            ],
        }

        # One-line status messages
        self.user_messages = {
            ErrorCategory.PERMISSION: "Microphone permission denied. Allow access and toggle voice mode again.",
            ErrorCategory.NETWORK: "Speech service unreachable. Check your connection and toggle voice mode again.",
            ErrorCategory.AUDIO_CAPTURE: "No microphone found. Connect one and toggle voice mode again.",
            ErrorCategory.PROVIDER: "The AI service is unavailable right now.",
            ErrorCategory.PAGE: "That element is not on this page.",
            ErrorCategory.BENIGN: "",
            ErrorCategory.UNKNOWN: "Something went wrong. Please try again.",
        }

    def categorize_recognition_code(self, code: str) -> ErrorCategory:
        return RECOGNITION_CODES.get(code, ErrorCategory.UNKNOWN)

    def is_benign_recognition_code(self, code: str) -> bool:
        return self.categorize_recognition_code(code) == ErrorCategory.BENIGN

    def recognition_status(self, code: str) -> str:
        """One-line status for a recognition error code."""
        category = self.categorize_recognition_code(code)
        if category == ErrorCategory.UNKNOWN:
            return f"Speech recognition stopped ({code}). Toggle voice mode to retry."
        return self.user_messages[category]

    def categorize_error(self, error: Exception) -> ErrorCategory:
        """
        Categorize an error based on its type and message.

        Args:
            error: The exception to categorize

        Returns:
            ErrorCategory: The error category
        """
        if isinstance(error, RecognitionError):
            return self.categorize_recognition_code(error.code)
        if isinstance(error, ProviderUnavailable):
            return ErrorCategory.PROVIDER
        if isinstance(error, ElementNotFound):
            return ErrorCategory.PAGE
        if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
            return ErrorCategory.NETWORK
        if isinstance(error, PermissionError):
            return ErrorCategory.PERMISSION

        error_str = str(error).lower()
        for category, patterns in self.error_patterns.items():
            for pattern in patterns:
                if re.search(pattern, error_str):
                    return category

        return ErrorCategory.UNKNOWN

    def get_user_message(self, error: Exception) -> str:
        """
        Get a user-friendly message for an exception.

        Args:
            error: The exception

        Returns:
            str: One-line message
        """
        if isinstance(error, RecognitionError):
            return self.recognition_status(error.code)
        return self.user_messages[self.categorize_error(error)]

    def log_error(
        self, error: BaseException, context: dict[str, Any] | None = None, level: int = logging.ERROR
    ) -> None:
        """
        Log an error with context information.

        Args:
            error: The exception
            context: Additional context information (never credentials)
            level: Logging level
        """
        category = (
            self.categorize_error(error) if isinstance(error, Exception) else ErrorCategory.UNKNOWN
        )
        message = f"Error [{category.value}]: {type(error).__name__}: {error}"

        if context:
            context_str = ", ".join(f"{k}={v}" for k, v in context.items())
            message += f" (Context: {context_str})"

        logger.log(level, message)
        logger.debug(f"Traceback for {message}:\n{''.join(traceback.format_exception(error))}")


# Global error handler instance
error_handler = ErrorHandler()
