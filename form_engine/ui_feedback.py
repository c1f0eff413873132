"""
UI feedback utilities for the issue form app.
Toast notifications and validation summaries.
"""

import streamlit as st
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

# kind -> (icon, inline element used when toasts are unavailable)
_KINDS = {
    'success': ('✅', 'success'),
    'info': ('ℹ️', 'info'),
    'warning': ('⚠️', 'warning'),
    'error': ('❌', 'error'),
}


class Notify:
    """
    Non-blocking notifications for form and editor actions.

    Messages go to ``st.toast``; if the toast cannot be shown the same text
    is rendered inline with the matching status element.

    Usage:
    Notify.success("Form saved")
    Notify.once("The form changed while you were editing", key="schema_changed_notice")
    """

    @staticmethod
    def _show(message: str, kind: str = 'info') -> None:
        icon, inline = _KINDS.get(kind, _KINDS['info'])

        try:
            st.toast(message, icon=icon)
        except Exception as e:
            logger.error(f"Toast unavailable, showing inline {kind}: {e}", exc_info=True)
            getattr(st, inline)(f"{icon} {message}")

    @staticmethod
    def success(message: str) -> None:
        Notify._show(message, 'success')

    @staticmethod
    def info(message: str) -> None:
        Notify._show(message, 'info')

    @staticmethod
    def warn(message: str) -> None:
        Notify._show(message, 'warning')

    @staticmethod
    def error(message: str) -> None:
        Notify._show(message, 'error')

    @staticmethod
    def once(message: str, notification_type: str = 'info', key: str = 'default_once') -> bool:
        """
        Show a message at most once per session for ``key``.

        Returns:
            False if the key was already used
        """
        if st.session_state.get(key):
            return False
        st.session_state[key] = True
        Notify._show(message, notification_type)
        return True


def show_validation_results(errors: List[str], warnings: Optional[List[str]] = None) -> None:
    """Render errors and warnings inline below a form."""
    for message in errors:
        st.error(f"• {message}")
    for message in warnings or []:
        st.warning(f"• {message}")
