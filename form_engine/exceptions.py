"""
Custom exception classes for the dynamic issue form.

This module provides specialized exception classes for the failures the
form engine, schema editor and stores can surface, with a shared base that
carries context and recovery suggestions for display.
"""

import logging
from typing import Optional, Dict, Any, List
from pathlib import Path

logger = logging.getLogger(__name__)


class FormEngineError(Exception):
    """
    Base exception for form engine errors.

    Attributes:
        message: Error message
        context: Additional context information
        recovery_suggestions: List of suggested recovery actions
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None,
                 recovery_suggestions: Optional[List[str]] = None):
        self.message = message
        self.context = context or {}
        self.recovery_suggestions = recovery_suggestions or []
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def get_full_details(self) -> Dict[str, Any]:
        """Get complete error details including context and suggestions."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'context': self.context,
            'recovery_suggestions': self.recovery_suggestions
        }


class SchemaReferenceError(FormEngineError):
    """
    A conditional or option-set condition points at a field id that is not
    in the schema.

    Resolvers never raise this; they fail closed. The schema editor raises
    it when validating before a save.
    """

    def __init__(self, field_label: str, missing_id: str, message: Optional[str] = None):
        self.field_label = field_label
        self.missing_id = missing_id

        if message is None:
            message = f"Field '{field_label}' references unknown field id '{missing_id}'"

        context = {
            'field_label': field_label,
            'missing_id': missing_id
        }

        recovery_suggestions = [
            "Pick an existing dropdown field in the condition",
            "Remove the condition to always show the field"
        ]

        super().__init__(message, context, recovery_suggestions)


class FormValidationError(FormEngineError):
    """
    Raised when form input or a schema edit fails validation.

    ``fields`` lists the offending field names (or labels) so the caller can
    report all of them at once.
    """

    def __init__(self, message: str, fields: Optional[List[str]] = None,
                 context: Optional[Dict[str, Any]] = None):
        self.fields = list(fields or [])

        merged_context = {'fields': self.fields}
        if context:
            merged_context.update(context)

        super().__init__(message, merged_context, ["Fill in or correct the listed fields and try again"])


class PersistenceError(FormEngineError):
    """
    Raised when the schema store or the ticket sink fails to read or write.

    Nothing in the caller's local state is cleared when this is raised.
    """

    def __init__(self, operation: str, original_error: Optional[Exception] = None,
                 message: Optional[str] = None, path: Optional[Path] = None):
        self.operation = operation
        self.original_error = original_error
        self.path = path

        if message is None:
            if original_error is not None:
                message = f"Failed to {operation}: {original_error}"
            else:
                message = f"Failed to {operation}"

        context = {
            'operation': operation,
            'path': str(path) if path else None,
            'original_error_type': type(original_error).__name__ if original_error else None,
            'original_error_message': str(original_error) if original_error else None
        }

        recovery_suggestions = [
            "Your changes are still in the form, retry when the store is available",
            "Check that the data directory exists and is writable"
        ]

        super().__init__(message, context, recovery_suggestions)


class CycleError(FormEngineError):
    """
    Conditional visibility rules that loop back on themselves.

    The visibility resolver treats such fields as hidden; the editor uses
    this type to report the loop as a warning.
    """

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        message = "Conditional visibility cycle: " + " -> ".join(self.cycle)
        super().__init__(message, {'cycle': self.cycle},
                         ["Remove one of the conditions in the loop"])


class ConfigurationLoadError(FormEngineError):
    """
    Exception raised when configuration file loading fails.

    This includes YAML parsing errors, permission issues, etc.
    """

    def __init__(self, config_path: Path, original_error: Exception,
                 message: Optional[str] = None):
        self.config_path = config_path
        self.original_error = original_error

        if message is None:
            message = f"Failed to load configuration from {config_path}: {str(original_error)}"

        context = {
            'config_path': str(config_path),
            'original_error_type': type(original_error).__name__,
            'original_error_message': str(original_error)
        }

        recovery_suggestions = [
            "Check if config.yaml exists and is readable",
            "Verify YAML syntax is correct",
            "Application will use default configuration as fallback"
        ]

        super().__init__(message, context, recovery_suggestions)
