"""
Session state management for the issue form app.
Owns the in-progress answers, the schema snapshot they were entered
against, the acting user and the schema editor's working copy.
"""

import streamlit as st
from typing import Dict, Any, List, Optional
from datetime import datetime
import logging

from .consistency_engine import merge_value_set, new_value_set, on_field_change
from .field_model import FieldDefinition, FormValueSet
from .schema_editor import SchemaEditor
from .schema_store import SchemaStore

logger = logging.getLogger(__name__)

# Default values
DEFAULT_USER = "student"
DEFAULT_ROLE = "student"
DEFAULT_PAGE = "report"

# Session keys of the ticket form widgets, one per field name
FORM_WIDGET_PREFIX = "ticket_field_"


class SessionManager:
    """Manages Streamlit session state for the issue form app."""

    @staticmethod
    def initialize(default_user: str = DEFAULT_USER, default_role: str = DEFAULT_ROLE):
        """Initialize session keys that are not set yet."""
        defaults = {
            'current_page': DEFAULT_PAGE,
            'current_user': default_user,
            'current_role': default_role,
            'form_values': {},
            'form_fields': [],
            'form_schema_version': None,
            'form_errors': [],
            'last_submission': None,
            'schema_editor': None,
            'session_id': None,
        }

        for key, default_value in defaults.items():
            if key not in st.session_state:
                st.session_state[key] = default_value

        if not st.session_state.session_id:
            st.session_state.session_id = f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
            logger.info(f"Session initialized: {st.session_state.session_id}")

    @staticmethod
    def get_current_page() -> str:
        return st.session_state.get('current_page', DEFAULT_PAGE)

    @staticmethod
    def set_current_page(page: str):
        old_page = st.session_state.get('current_page')
        if old_page != page:
            logger.info(f"Page transition: {old_page} -> {page}")
            st.session_state.current_page = page

    @staticmethod
    def get_current_user() -> str:
        return st.session_state.get('current_user', DEFAULT_USER)

    @staticmethod
    def get_current_role() -> str:
        return st.session_state.get('current_role', DEFAULT_ROLE)

    @staticmethod
    def set_current_identity(user: str, role: str):
        """Switch the acting user; an in-progress report does not carry over."""
        if user != st.session_state.get('current_user') or role != st.session_state.get('current_role'):
            logger.info(f"Identity changed to {user} ({role})")
            st.session_state.current_user = user
            st.session_state.current_role = role
            SessionManager.clear_form_values()
            SessionManager.reset_schema_editor()

    @staticmethod
    def get_form_fields() -> List[FieldDefinition]:
        return st.session_state.get('form_fields', [])

    @staticmethod
    def get_form_values() -> FormValueSet:
        return dict(st.session_state.get('form_values', {}))

    @staticmethod
    def set_form_values(values: FormValueSet):
        st.session_state.form_values = dict(values)

    @staticmethod
    def clear_form_values():
        """Reset every answer, and the widgets showing them, to empty."""
        fields = SessionManager.get_form_fields()
        st.session_state.form_values = new_value_set(fields)
        for field in fields:
            st.session_state[f"{FORM_WIDGET_PREFIX}{field.name}"] = ''
        st.session_state.form_errors = []

    @staticmethod
    def apply_schema_snapshot(fields: List[FieldDefinition], version: Any) -> bool:
        """
        Adopt a schema snapshot for the ticket form.

        When the version differs from the one the answers were entered
        against, answers are merged onto the new schema.

        Returns:
            True if the snapshot replaced the previous one
        """
        if st.session_state.get('form_schema_version') == version and st.session_state.get('form_fields'):
            return False

        st.session_state.form_fields = list(fields)
        st.session_state.form_values = merge_value_set(st.session_state.get('form_values', {}), fields)
        st.session_state.form_schema_version = version
        logger.info(f"Ticket form using schema version {version} ({len(fields)} fields)")
        return True

    @staticmethod
    def change_field(name: str, value: str) -> FormValueSet:
        """Apply one answer change and store the cleaned result."""
        values = on_field_change(name, value, SessionManager.get_form_values(), SessionManager.get_form_fields())
        SessionManager.set_form_values(values)
        return values

    @staticmethod
    def get_form_errors() -> List[str]:
        return st.session_state.get('form_errors', [])

    @staticmethod
    def set_form_errors(errors: List[str]):
        st.session_state.form_errors = list(errors)

    @staticmethod
    def get_last_submission() -> Optional[Dict[str, Any]]:
        return st.session_state.get('last_submission')

    @staticmethod
    def set_last_submission(submission: Optional[Dict[str, Any]]):
        st.session_state.last_submission = submission

    @staticmethod
    def get_schema_editor(store: SchemaStore) -> SchemaEditor:
        """Return this session's editor, loading it from the store the first time."""
        editor = st.session_state.get('schema_editor')
        if editor is None or editor.store is not store:
            editor = SchemaEditor(store)
            editor.load()
            st.session_state.schema_editor = editor
        return editor

    @staticmethod
    def reset_schema_editor():
        st.session_state.schema_editor = None
