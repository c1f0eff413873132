"""
Ticket form view for the issue form app.
Renders the admin-defined form, keeps answers consistent on every change
and submits the visible answers as a ticket.
"""

import streamlit as st
import logging
from typing import List

from .error_handler import ErrorHandler
from .exceptions import FormValidationError, PersistenceError
from .field_model import FieldDefinition, FieldType, FormValueSet, dedupe_by_name
from .option_resolver import resolve_options
from .schema_store import SchemaStore
from .session_manager import FORM_WIDGET_PREFIX, SessionManager
from .submission_handler import STATUS_APPROVED, TicketSubmissionHandler
from .ui_feedback import Notify, show_validation_results
from .visibility_resolver import visible_fields

logger = logging.getLogger(__name__)

def _widget_key(field: FieldDefinition) -> str:
    return f"{FORM_WIDGET_PREFIX}{field.name}"


class TicketFormView:
    """Report Issue page."""

    @staticmethod
    def render(store: SchemaStore, handler: TicketSubmissionHandler, title: str = "Report an Issue") -> None:
        st.subheader(title)

        try:
            store.poll()
            fields = dedupe_by_name(store.load_schema())
        except PersistenceError as e:
            ErrorHandler.handle_error(e, "loading form schema")
            return

        before = SessionManager.get_form_values()
        if SessionManager.apply_schema_snapshot(fields, store.version):
            after = SessionManager.get_form_values()
            TicketFormView._sync_widgets(after, fields)
            TicketFormView._notify_cleared_answers(before, after, store.version)

        if not fields:
            st.info("The issue form has no fields yet. Ask an administrator to set it up.")
            return

        values = SessionManager.get_form_values()
        for field in visible_fields(values, fields):
            TicketFormView._render_field(field, values, fields)

        show_validation_results(SessionManager.get_form_errors())

        st.button(
            "Submit Ticket",
            type="primary",
            key="ticket_submit",
            on_click=TicketFormView._handle_submit,
            args=(handler,),
        )

        last = SessionManager.get_last_submission()
        if last:
            st.caption(f"Last ticket: {last['ticket_id']} ({last['status']})")

    @staticmethod
    def _render_field(field: FieldDefinition, values: FormValueSet, all_fields: List[FieldDefinition]) -> None:
        key = _widget_key(field)
        current = values.get(field.name, '')
        if key not in st.session_state:
            st.session_state[key] = current

        label = f"{field.label} *"
        callback_args = (field.name, key)

        if field.type == FieldType.SELECT:
            options = [''] + list(resolve_options(field, values, all_fields))
            if st.session_state[key] not in options:
                st.session_state[key] = ''
            st.selectbox(
                label,
                options,
                key=key,
                format_func=lambda option, _label=field.label: option or f"Select {_label}",
                on_change=TicketFormView._handle_change,
                args=callback_args,
            )
        elif field.type == FieldType.TEXTAREA:
            st.text_area(label, key=key, on_change=TicketFormView._handle_change, args=callback_args)
        else:
            st.text_input(label, key=key, on_change=TicketFormView._handle_change, args=callback_args)

    @staticmethod
    def _handle_change(name: str, key: str) -> None:
        """Widget callback: apply the change and push cleared answers back into widgets."""
        new_value = st.session_state.get(key, '') or ''
        values = SessionManager.change_field(name, new_value)
        TicketFormView._sync_widgets(values, SessionManager.get_form_fields())
        SessionManager.set_form_errors([])

    @staticmethod
    def _notify_cleared_answers(before: FormValueSet, after: FormValueSet, version: int) -> None:
        """Tell the user once per schema version if the new form dropped answers they had given."""
        cleared = [name for name, value in before.items() if value and after.get(name, '') != value]
        if cleared:
            Notify.once(
                "The issue form was updated while you were filling it in. "
                f"Please check: {', '.join(cleared)}",
                notification_type='warning',
                key=f"ticket_form_schema_notice_{version}",
            )

    @staticmethod
    def _sync_widgets(values: FormValueSet, fields: List[FieldDefinition]) -> None:
        for field in fields:
            st.session_state[_widget_key(field)] = values.get(field.name, '')

    @staticmethod
    def _handle_submit(handler: TicketSubmissionHandler) -> None:
        fields = SessionManager.get_form_fields()
        values = SessionManager.get_form_values()

        try:
            result = handler.submit(
                values,
                fields,
                user_id=SessionManager.get_current_user(),
                role=SessionManager.get_current_role(),
            )
        except FormValidationError as e:
            labels = [f.label for f in fields if f.name in e.fields]
            SessionManager.set_form_errors([f"{label} is required" for label in labels])
            Notify.error("Please fill in all required fields")
            return
        except PersistenceError as e:
            logger.error(f"Ticket submission failed: {e}")
            SessionManager.set_form_errors([str(e)])
            Notify.error("Failed to submit ticket")
            return

        SessionManager.set_last_submission({'ticket_id': result.ticket_id, 'status': result.status})
        SessionManager.clear_form_values()

        if result.status == STATUS_APPROVED:
            Notify.success("Ticket created and automatically approved!")
        else:
            Notify.success("Ticket submitted successfully! Sent to Class Representative for approval.")
