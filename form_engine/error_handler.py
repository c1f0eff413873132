"""
Error handling utilities for the issue form app.
Logs errors and shows user-friendly messages with recovery suggestions.
"""

import streamlit as st
import logging
from typing import Any, Callable, Optional

from .exceptions import (
    ConfigurationLoadError,
    CycleError,
    FormEngineError,
    FormValidationError,
    PersistenceError,
    SchemaReferenceError,
)

logger = logging.getLogger(__name__)


class ErrorType:
    """Error type constants."""
    SCHEMA = "schema"
    VALIDATION = "validation"
    PERSISTENCE = "persistence"
    CONFIGURATION = "configuration"
    SYSTEM = "system"


_ERROR_TYPES = [
    (FormValidationError, ErrorType.VALIDATION),
    (PersistenceError, ErrorType.PERSISTENCE),
    (SchemaReferenceError, ErrorType.SCHEMA),
    (CycleError, ErrorType.SCHEMA),
    (ConfigurationLoadError, ErrorType.CONFIGURATION),
]

_DEFAULT_MESSAGES = {
    ErrorType.SCHEMA: "📋 The form schema has an invalid reference. Please review the form editor.",
    ErrorType.VALIDATION: "✅ Please fill in all required fields.",
    ErrorType.PERSISTENCE: "💾 Could not reach storage. Your input was kept, please try again.",
    ErrorType.CONFIGURATION: "⚙️ Configuration could not be loaded, defaults are in use.",
    ErrorType.SYSTEM: "💻 Something went wrong. Please try again or contact support.",
}


class ErrorHandler:
    """Error display for the Streamlit pages."""

    @staticmethod
    def classify(error: Exception) -> str:
        for error_class, error_type in _ERROR_TYPES:
            if isinstance(error, error_class):
                return error_type
        return ErrorType.SYSTEM

    @staticmethod
    def get_user_message(error: Exception) -> str:
        """Message shown to the user; form engine errors carry their own."""
        if isinstance(error, FormEngineError):
            return error.message
        return _DEFAULT_MESSAGES[ErrorHandler.classify(error)]

    @staticmethod
    def handle_error(error: Exception, context: str, user_message: Optional[str] = None,
                     show_details: bool = False) -> None:
        """
        Log an error and display it.

        Args:
            error: The exception that occurred
            context: Where the error occurred, for the log
            user_message: Overrides the derived message
            show_details: Also show the exception type and context
        """
        error_type = ErrorHandler.classify(error)
        if error_type == ErrorType.VALIDATION:
            logger.info(f"Validation failed in {context}: {error}")
        else:
            logger.error(f"Error in {context}: {error}", exc_info=True)

        st.error(user_message or ErrorHandler.get_user_message(error))

        if isinstance(error, FormEngineError) and error.recovery_suggestions:
            for suggestion in error.recovery_suggestions:
                st.caption(f"• {suggestion}")

        if show_details:
            with st.expander("🔍 Technical Details"):
                st.write(f"**Context:** {context}")
                if isinstance(error, FormEngineError):
                    st.json(error.get_full_details())
                else:
                    st.write(f"**Error Type:** {type(error).__name__}")
                    st.write(f"**Error Message:** {str(error)}")

    @staticmethod
    def with_error_handling(func: Callable[[], Any], context: str,
                            default_return: Any = None, show_details: bool = False) -> Any:
        """
        Run ``func`` and display any exception it raises.

        Returns:
            Function result or default_return on error
        """
        try:
            return func()
        except Exception as e:
            ErrorHandler.handle_error(e, context, show_details=show_details)
            return default_return
