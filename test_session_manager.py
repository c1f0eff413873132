"""
Unit tests for session_manager module.
"""

import pytest

import form_engine.session_manager as session_manager
from form_engine.schema_store import InMemorySchemaStore
from form_engine.session_manager import SessionManager
from test_fixtures import FormFixtures, mock_streamlit


@pytest.fixture
def st(monkeypatch):
    fake = mock_streamlit()
    monkeypatch.setattr(session_manager, "st", fake)
    return fake


class TestInitialization:
    """Test default session keys."""

    def test_initialize_sets_defaults(self, st):
        SessionManager.initialize(default_role="admin")

        assert st.session_state.current_page == "report"
        assert st.session_state.current_role == "admin"
        assert st.session_state.form_values == {}
        assert st.session_state.session_id.startswith("session_")

    def test_initialize_keeps_existing_values(self, st):
        st.session_state['current_page'] = "editor"
        st.session_state['session_id'] = "session_x"

        SessionManager.initialize()

        assert SessionManager.get_current_page() == "editor"
        assert st.session_state.session_id == "session_x"

    def test_page_transition(self, st):
        SessionManager.initialize()
        SessionManager.set_current_page("editor")
        assert SessionManager.get_current_page() == "editor"


class TestFormState:
    """Test answers, schema snapshots and identity switching."""

    def setup_method(self):
        self.fields = FormFixtures.cascade_schema()

    def test_snapshot_starts_empty_answers(self, st):
        SessionManager.initialize()

        assert SessionManager.apply_schema_snapshot(self.fields, 1)
        assert SessionManager.get_form_values() == {"a": "", "b": "", "c": ""}
        assert st.session_state["ticket_field_a"] == ""
        assert not SessionManager.apply_schema_snapshot(self.fields, 1)

    def test_new_version_merges_answers(self, st):
        SessionManager.initialize()
        SessionManager.apply_schema_snapshot(self.fields, 1)
        SessionManager.set_form_values({"a": "1", "b": "b1", "c": "c1"})

        a, b, _ = self.fields
        assert SessionManager.apply_schema_snapshot([a, b], 2)

        assert SessionManager.get_form_values() == {"a": "1", "b": "b1"}
        assert st.session_state.form_schema_version == 2

    def test_change_field_cascades(self, st):
        SessionManager.initialize()
        SessionManager.apply_schema_snapshot(self.fields, 1)
        SessionManager.set_form_values({"a": "1", "b": "b1", "c": "c1"})

        values = SessionManager.change_field("a", "2")

        assert values == {"a": "2", "b": "", "c": ""}
        assert SessionManager.get_form_values() == values

    def test_get_form_values_returns_copy(self, st):
        SessionManager.initialize()
        SessionManager.set_form_values({"a": "1"})

        SessionManager.get_form_values()["a"] = "2"

        assert SessionManager.get_form_values() == {"a": "1"}

    def test_identity_change_clears_form(self, st):
        SessionManager.initialize()
        SessionManager.apply_schema_snapshot(self.fields, 1)
        SessionManager.set_form_values({"a": "1", "b": "", "c": ""})
        SessionManager.set_form_errors(["A is required"])
        st.session_state["ticket_field_a"] = "1"

        SessionManager.set_current_identity("student", "student")
        assert SessionManager.get_form_values()["a"] == "1"

        SessionManager.set_current_identity("rep01", "class-representative")
        assert SessionManager.get_form_values() == {"a": "", "b": "", "c": ""}
        assert SessionManager.get_form_errors() == []
        assert SessionManager.get_current_role() == "class-representative"

    def test_last_submission(self, st):
        SessionManager.initialize()
        assert SessionManager.get_last_submission() is None

        SessionManager.set_last_submission({'ticket_id': 't1', 'status': 'pending'})
        assert SessionManager.get_last_submission()['ticket_id'] == 't1'


class TestSchemaEditorState:
    """Test the per-session editor."""

    def test_editor_loaded_once_per_store(self, st):
        SessionManager.initialize()
        store = InMemorySchemaStore(FormFixtures.issue_schema_documents())

        editor = SessionManager.get_schema_editor(store)
        editor.delete_field('desc')

        assert SessionManager.get_schema_editor(store) is editor
        assert editor.has_changes

        SessionManager.reset_schema_editor()
        fresh = SessionManager.get_schema_editor(store)
        assert fresh is not editor
        assert not fresh.has_changes

    def test_identity_change_drops_editor(self, st):
        SessionManager.initialize()
        store = InMemorySchemaStore(FormFixtures.issue_schema_documents())
        editor = SessionManager.get_schema_editor(store)
        editor.delete_field('desc')

        SessionManager.set_current_identity("admin01", "admin")

        assert SessionManager.get_schema_editor(store) is not editor
        assert not SessionManager.get_schema_editor(store).has_changes
