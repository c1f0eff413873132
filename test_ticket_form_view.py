"""
Unit tests for ticket_form_view module.
"""

from unittest.mock import MagicMock

import pytest

import form_engine.error_handler as error_handler
import form_engine.session_manager as session_manager
import form_engine.ticket_form_view as ticket_form_view
import form_engine.ui_feedback as ui_feedback
from form_engine.schema_store import InMemorySchemaStore, SchemaBatch
from form_engine.session_manager import SessionManager
from form_engine.submission_handler import TicketSubmissionHandler
from form_engine.ticket_form_view import TicketFormView
from test_fixtures import FormFixtures, mock_streamlit


@pytest.fixture
def st(monkeypatch):
    fake = mock_streamlit()
    for module in (ticket_form_view, session_manager, ui_feedback, error_handler):
        monkeypatch.setattr(module, "st", fake)
    return fake


@pytest.fixture
def store():
    return InMemorySchemaStore(FormFixtures.issue_schema_documents())


@pytest.fixture
def sink():
    fake = MagicMock()
    fake.submit.return_value = "ticket-9"
    return fake


def _rendered_labels(widget):
    return [call.args[0] for call in widget.call_args_list]


class TestRender:
    """Test which widgets the form renders."""

    def test_renders_visible_fields_only(self, st, store, sink):
        SessionManager.initialize()

        TicketFormView.render(store, TicketSubmissionHandler(sink), "Report an Issue")

        st.subheader.assert_called_once_with("Report an Issue")
        assert _rendered_labels(st.selectbox) == ["Classroom *", "Issue Type *"]
        assert _rendered_labels(st.text_area) == ["Issue Description *"]
        assert st.session_state["ticket_field_classroom"] == ""

    def test_dependent_field_appears_with_resolved_options(self, st, store, sink):
        SessionManager.initialize()
        TicketFormView.render(store, TicketSubmissionHandler(sink))
        SessionManager.change_field("issue-type", "hardware")
        st.selectbox.reset_mock()

        TicketFormView.render(store, TicketSubmissionHandler(sink))

        subtype_call = st.selectbox.call_args_list[2]
        assert subtype_call.args[0] == "Issue Subtype *"
        assert subtype_call.args[1] == ["", "Other", "Mouse", "Monitor"]

    def test_empty_schema(self, st, sink):
        SessionManager.initialize()

        TicketFormView.render(InMemorySchemaStore([]), TicketSubmissionHandler(sink))

        st.info.assert_called_once()
        st.button.assert_not_called()

    def test_duplicate_names_render_once(self, st, sink):
        documents = FormFixtures.issue_schema_documents()
        documents.append({'id': 'dup', 'label': 'Classroom', 'type': 'text', 'order': 9})
        SessionManager.initialize()

        TicketFormView.render(InMemorySchemaStore(documents), TicketSubmissionHandler(sink))

        assert _rendered_labels(st.text_input) == []
        assert "dup" not in [f.id for f in SessionManager.get_form_fields()]


class TestCallbacks:
    """Test widget change and submit callbacks."""

    def _prepare(self, st, store):
        SessionManager.initialize()
        TicketFormView.render(store, TicketSubmissionHandler(MagicMock()))

    def _set(self, st, name, value):
        key = f"ticket_field_{name}"
        st.session_state[key] = value
        TicketFormView._handle_change(name, key)

    def test_change_clears_invalid_dependents(self, st, store):
        self._prepare(st, store)
        self._set(st, "issue-type", "hardware")
        self._set(st, "issue-subtype", "Mouse")

        self._set(st, "issue-type", "software")

        assert SessionManager.get_form_values()["issue-subtype"] == ""
        assert st.session_state["ticket_field_issue-subtype"] == ""

    def test_change_keeps_option_still_offered(self, st, store):
        self._prepare(st, store)
        self._set(st, "issue-type", "hardware")
        self._set(st, "issue-subtype", "Other")

        self._set(st, "issue-type", "software")

        assert SessionManager.get_form_values()["issue-subtype"] == "Other"

    def test_submit_with_missing_fields(self, st, store, sink):
        self._prepare(st, store)
        self._set(st, "classroom", "Comlab 201")

        TicketFormView._handle_submit(TicketSubmissionHandler(sink))

        assert SessionManager.get_form_errors() == [
            "Issue Type is required", "Issue Description is required"
        ]
        sink.submit.assert_not_called()
        st.toast.assert_called_once()

    def _fill(self, st):
        self._set(st, "classroom", "Comlab 202")
        self._set(st, "issue-type", "software")
        self._set(st, "issue-subtype", "Driver")
        self._set(st, "issue-description", "Printer driver missing")

    def test_submit_failure_keeps_answers(self, st, store, sink):
        self._prepare(st, store)
        self._fill(st)
        sink.submit.side_effect = ConnectionError("offline")

        TicketFormView._handle_submit(TicketSubmissionHandler(sink))

        assert SessionManager.get_form_values()["issue-description"] == "Printer driver missing"
        assert SessionManager.get_last_submission() is None
        assert len(SessionManager.get_form_errors()) == 1

    def test_successful_submit_clears_form(self, st, store, sink):
        self._prepare(st, store)
        self._fill(st)
        st.session_state["current_role"] = "class-representative"

        TicketFormView._handle_submit(TicketSubmissionHandler(sink))

        assert SessionManager.get_last_submission() == {'ticket_id': 'ticket-9', 'status': 'approved'}
        assert set(SessionManager.get_form_values().values()) == {""}
        assert st.session_state["ticket_field_issue-description"] == ""
        assert "approved" in st.toast.call_args.args[0]

    def test_identity_switch_empties_widgets(self, st, store):
        self._prepare(st, store)
        self._set(st, "classroom", "Comlab 201")
        assert st.session_state["ticket_field_classroom"] == "Comlab 201"

        SessionManager.set_current_identity("rep01", "class-representative")
        TicketFormView.render(store, TicketSubmissionHandler(MagicMock()))

        assert SessionManager.get_form_values()["classroom"] == ""
        assert st.session_state["ticket_field_classroom"] == ""

    def test_schema_change_reports_dropped_answers_once(self, st, store):
        self._prepare(st, store)
        self._set(st, "issue-type", "hardware")
        self._set(st, "issue-subtype", "Mouse")

        store.apply_batch(SchemaBatch(deletes=['sub']))
        TicketFormView.render(store, TicketSubmissionHandler(MagicMock()))
        TicketFormView.render(store, TicketSubmissionHandler(MagicMock()))

        st.toast.assert_called_once()
        message = st.toast.call_args.args[0]
        assert message.endswith("Please check: issue-subtype")
        assert st.toast.call_args.kwargs['icon'] == "⚠️"
        assert st.session_state["ticket_field_issue-type"] == "hardware"
