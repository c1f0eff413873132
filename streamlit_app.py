"""
Main Streamlit application for the lab issue tracker.
Students report computer/lab equipment issues through an admin-configurable
form; administrators maintain that form in the Form Editor.
"""

import streamlit as st
from pathlib import Path
import logging

from form_engine.config_loader import get_config_value, get_logging_level, load_config, validate_config
from form_engine.error_handler import ErrorHandler
from form_engine.schema_editor_view import SchemaEditorView
from form_engine.schema_store import YamlSchemaStore
from form_engine.session_manager import SessionManager
from form_engine.submission_handler import JsonlTicketSink, TicketSubmissionHandler
from form_engine.ticket_form_view import TicketFormView

config = load_config()

logging.basicConfig(level=get_logging_level(get_config_value(config, 'logging', 'level', 'INFO')))
logger = logging.getLogger(__name__)
logger.info(f"Starting {get_config_value(config, 'app', 'name')} {get_config_value(config, 'app', 'version')}")

for problem in validate_config(config):
    logger.warning(f"Configuration problem: {problem}")

st.set_page_config(
    page_title=get_config_value(config, 'ui', 'page_title', 'Lab Issue Tracker'),
    page_icon="🛠️",
    layout="wide",
)


@st.cache_resource
def get_schema_store(schema_path: str) -> YamlSchemaStore:
    return YamlSchemaStore(Path(schema_path))


@st.cache_resource
def get_submission_handler(tickets_path: str, auto_approve_roles: tuple) -> TicketSubmissionHandler:
    return TicketSubmissionHandler(JsonlTicketSink(Path(tickets_path)), auto_approve_roles)


def render_sidebar(roles, editor_roles):
    """Identity selection and navigation."""
    with st.sidebar:
        st.title("🛠️ Lab Issues")

        user = st.text_input("User", value=SessionManager.get_current_user())
        current_role = SessionManager.get_current_role()
        role = st.selectbox("Role", roles, index=roles.index(current_role) if current_role in roles else 0)
        SessionManager.set_current_identity(user.strip() or "anonymous", role)

        pages = {"report": "📝 Report Issue"}
        if role in editor_roles:
            pages["editor"] = "🧩 Form Editor"

        page = st.radio("Navigation", list(pages), format_func=pages.get)
        SessionManager.set_current_page(page)


def main():
    """Main application entry point."""
    roles = get_config_value(config, 'workflow', 'roles', ['student'])
    editor_roles = get_config_value(config, 'workflow', 'editor_roles', ['admin'])
    auto_approve_roles = tuple(get_config_value(config, 'workflow', 'auto_approve_roles', []))

    SessionManager.initialize(default_role=roles[0])

    store = get_schema_store(get_config_value(config, 'store', 'schema_path'))
    handler = get_submission_handler(get_config_value(config, 'store', 'tickets_path'), auto_approve_roles)

    render_sidebar(roles, editor_roles)

    if SessionManager.get_current_page() == "editor" and SessionManager.get_current_role() in editor_roles:
        ErrorHandler.with_error_handling(lambda: SchemaEditorView.render(store), "rendering form editor")
    else:
        title = get_config_value(config, 'ui', 'form_title', 'Report an Issue')
        ErrorHandler.with_error_handling(lambda: TicketFormView.render(store, handler, title), "rendering issue form")


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        ErrorHandler.handle_error(e, "application startup", show_details=True)
