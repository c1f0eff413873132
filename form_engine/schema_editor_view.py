"""
Schema Editor View for the issue form app.
Lets an administrator add, edit, reorder and delete form fields, including
conditional visibility and conditional option sets, then save them as one
batch.
"""

import streamlit as st
import logging
from typing import List, Optional

from .error_handler import ErrorHandler
from .exceptions import FormValidationError, PersistenceError
from .field_model import ANY_VALUE, Condition, FieldDefinition, FieldType, OptionSet
from .option_resolver import condition_value_choices, find_field
from .schema_editor import SchemaEditor
from .schema_store import SchemaStore
from .session_manager import SessionManager
from .ui_feedback import Notify, show_validation_results

logger = logging.getLogger(__name__)

DRAFT_PREFIX = "schema_draft_"
EDITING_KEY = "schema_editor_editing_id"

TYPE_LABELS = {
    FieldType.TEXT: "Text",
    FieldType.SELECT: "Dropdown",
    FieldType.TEXTAREA: "Text Area",
}


def _lines(text: str) -> List[str]:
    return [line.strip() for line in (text or '').splitlines() if line.strip()]


def describe_condition(condition: Optional[Condition], fields: List[FieldDefinition]) -> str:
    """Human-readable form of a condition for the field list."""
    if condition is None or not condition.field:
        return "Always shown"
    target = find_field(condition.field, fields)
    target_label = target.label if target else f"<missing {condition.field}>"
    value = "any value" if condition.value == ANY_VALUE else f"'{condition.value}'"
    return f"Shown if {target_label} is {value}"


class SchemaEditorView:
    """Form Editor page."""

    @staticmethod
    def render(store: SchemaStore) -> None:
        st.subheader("Report Issue Form Editor")

        try:
            editor = SessionManager.get_schema_editor(store)
        except PersistenceError as e:
            ErrorHandler.handle_error(e, "loading schema for editing")
            return

        SchemaEditorView._check_for_newer_schema(store, editor)
        SchemaEditorView._render_toolbar(editor)

        errors, warnings = editor.validate()
        show_validation_results(errors, warnings)

        SchemaEditorView._render_field_list(editor)
        st.divider()
        SchemaEditorView._render_add_field(editor)

    @staticmethod
    def _check_for_newer_schema(store: SchemaStore, editor: SchemaEditor) -> None:
        """Follow saves made by another admin or process since this editor loaded."""
        try:
            store.poll()
            if not editor.is_stale:
                return
            if not editor.has_changes:
                editor.load()
        except PersistenceError as e:
            logger.warning(f"Could not check for schema changes: {e}")
            return

        if editor.has_changes:
            st.warning("The form was changed by someone else. Reload before saving, "
                       "your unsaved changes will be lost.")
        else:
            SchemaEditorView._clear_drafts()
            Notify.warn("The form was changed by someone else and has been reloaded")

    @staticmethod
    def _render_toolbar(editor: SchemaEditor) -> None:
        col_status, col_save, col_discard, col_reload = st.columns([3, 1, 1, 1])

        with col_status:
            if editor.has_changes:
                st.warning("Unsaved changes")
            else:
                st.caption(f"{len(editor.edited)} fields, all changes saved")

        with col_save:
            if st.button("💾 Save", disabled=not editor.has_changes, key="schema_save"):
                SchemaEditorView._save(editor)

        with col_discard:
            if st.button("↩️ Discard", disabled=not editor.has_changes, key="schema_discard"):
                editor.discard()
                SchemaEditorView._clear_drafts()
                Notify.info("Changes discarded")
                st.rerun()

        with col_reload:
            if st.button("🔄 Reload", key="schema_reload"):
                try:
                    editor.load()
                except PersistenceError as e:
                    ErrorHandler.handle_error(e, "reloading schema")
                    return
                SchemaEditorView._clear_drafts()
                st.rerun()

    @staticmethod
    def _save(editor: SchemaEditor) -> None:
        try:
            batch = editor.save()
        except (FormValidationError, PersistenceError) as e:
            ErrorHandler.handle_error(e, "saving schema")
            return

        SchemaEditorView._clear_drafts()
        Notify.success(
            f"Form saved: {len(batch.inserts)} added, {len(batch.updates)} updated, "
            f"{len(batch.deletes)} removed"
        )
        st.rerun()

    @staticmethod
    def _clear_drafts() -> None:
        for key in [k for k in st.session_state.keys() if str(k).startswith(DRAFT_PREFIX)]:
            del st.session_state[key]
        st.session_state[EDITING_KEY] = None

    @staticmethod
    def _render_field_list(editor: SchemaEditor) -> None:
        if not editor.edited:
            st.info("No fields yet. Add the first one below.")
            return

        editing_id = st.session_state.get(EDITING_KEY)
        for index, field in enumerate(editor.edited):
            with st.container(border=True):
                if field.id == editing_id:
                    SchemaEditorView._render_field_editor(editor, field)
                else:
                    SchemaEditorView._render_field_row(editor, index, field)

    @staticmethod
    def _render_field_row(editor: SchemaEditor, index: int, field: FieldDefinition) -> None:
        col_info, col_up, col_down, col_edit, col_delete = st.columns([6, 1, 1, 1, 1])

        with col_info:
            st.markdown(f"**{field.label}** · {TYPE_LABELS.get(field.type, field.type)} · `{field.name}`")
            st.caption(describe_condition(field.conditional, editor.edited))

        with col_up:
            if st.button("⬆️", key=f"up_{field.id}", disabled=index == 0):
                editor.move_field_up(index)
                st.rerun()

        with col_down:
            if st.button("⬇️", key=f"down_{field.id}", disabled=index == len(editor.edited) - 1):
                editor.move_field_down(index)
                st.rerun()

        with col_edit:
            if st.button("✏️", key=f"edit_{field.id}"):
                draft = field.model_copy(deep=True)
                if draft.is_select and not draft.option_sets:
                    draft.option_sets = [OptionSet(options=list(draft.options or []))]
                st.session_state[f"{DRAFT_PREFIX}{field.id}"] = draft
                st.session_state[EDITING_KEY] = field.id
                st.rerun()

        with col_delete:
            if st.button("🗑️", key=f"delete_{field.id}"):
                editor.delete_field(field.id)
                Notify.info(f"Removed field: {field.label}")
                st.rerun()

    @staticmethod
    def _condition_editor(editor: SchemaEditor, key: str, condition: Optional[Condition],
                          exclude_id: str, none_label: str) -> Optional[Condition]:
        """Pick a controlling dropdown and the value it must have."""
        candidates = editor.select_fields(exclude_id=exclude_id)
        field_ids = [''] + [f.id for f in candidates]
        labels = {f.id: f.label for f in candidates}

        current_field = condition.field if condition else ''
        if current_field not in field_ids:
            current_field = ''

        col_field, col_value = st.columns(2)
        with col_field:
            chosen_field = st.selectbox(
                "Depends on",
                field_ids,
                index=field_ids.index(current_field),
                format_func=lambda fid: labels.get(fid, none_label),
                key=f"{key}_field",
            )

        if not chosen_field:
            return None

        values = ['', ANY_VALUE] + condition_value_choices(chosen_field, editor.edited)
        current_value = condition.value if condition and condition.field == chosen_field else ''
        if current_value not in values:
            current_value = ''

        with col_value:
            chosen_value = st.selectbox(
                "Has value",
                values,
                index=values.index(current_value),
                format_func=lambda v: {'': 'Select Value...', ANY_VALUE: 'Any value'}.get(v, v),
                key=f"{key}_value",
            )

        return Condition(field=chosen_field, value=chosen_value)

    @staticmethod
    def _render_field_editor(editor: SchemaEditor, field: FieldDefinition) -> None:
        draft_key = f"{DRAFT_PREFIX}{field.id}"
        draft: FieldDefinition = st.session_state.get(draft_key) or field.model_copy(deep=True)
        prefix = f"fe_{field.id}"

        label = st.text_input("Label", value=draft.label, key=f"{prefix}_label")
        types = list(TYPE_LABELS)
        field_type = st.selectbox(
            "Type",
            types,
            index=types.index(draft.type),
            format_func=lambda t: TYPE_LABELS[t],
            key=f"{prefix}_type",
        )

        option_sets: Optional[List[OptionSet]] = None
        if field_type == FieldType.SELECT:
            st.markdown("**Conditional Options**")
            option_sets = []
            for set_index, option_set in enumerate(draft.option_sets or [OptionSet()]):
                set_key = f"{prefix}_set_{set_index}"
                if option_set.is_default:
                    st.caption("Default Options")
                    condition = None
                else:
                    condition = SchemaEditorView._condition_editor(
                        editor, set_key, option_set.condition, field.id, "Select Field..."
                    ) or Condition()
                options_text = st.text_area(
                    "Options (one per line)",
                    value="\n".join(option_set.options),
                    key=f"{set_key}_options",
                )
                if not option_set.is_default and st.button("Remove option set", key=f"{set_key}_remove"):
                    draft.option_sets = [s for i, s in enumerate(draft.option_sets or []) if i != set_index]
                    st.session_state[draft_key] = draft
                    st.rerun()
                option_sets.append(OptionSet(options=_lines(options_text), condition=condition))

            if st.button("➕ Add Conditional Option Set", key=f"{prefix}_add_set"):
                draft.option_sets = option_sets + [OptionSet(condition=Condition())]
                st.session_state[draft_key] = draft
                st.rerun()

        st.markdown("**Field Visibility**")
        conditional = SchemaEditorView._condition_editor(
            editor, f"{prefix}_visibility", draft.conditional, field.id, "Always show"
        )

        col_apply, col_cancel = st.columns(2)
        with col_apply:
            if st.button("Apply", type="primary", key=f"{prefix}_apply"):
                try:
                    updated = draft.model_copy(update={
                        'label': label,
                        'type': FieldType(field_type),
                        'option_sets': option_sets,
                        'conditional': conditional,
                    })
                    if not label.strip():
                        raise FormValidationError("Label cannot be empty", fields=['label'])
                    editor.update_field(updated)
                except FormValidationError as e:
                    ErrorHandler.handle_error(e, "updating field")
                    return
                del st.session_state[draft_key]
                st.session_state[EDITING_KEY] = None
                st.rerun()
        with col_cancel:
            if st.button("Cancel", key=f"{prefix}_cancel"):
                st.session_state.pop(draft_key, None)
                st.session_state[EDITING_KEY] = None
                st.rerun()

    @staticmethod
    def _render_add_field(editor: SchemaEditor) -> None:
        st.markdown("**Add New Field**")
        prefix = "new_field"

        label = st.text_input("Label", key=f"{prefix}_label")
        types = list(TYPE_LABELS)
        field_type = st.selectbox("Type", types, format_func=lambda t: TYPE_LABELS[t], key=f"{prefix}_type")

        options: List[str] = []
        if field_type == FieldType.SELECT:
            options = _lines(st.text_area("Options (one per line)", key=f"{prefix}_options"))

        conditional = SchemaEditorView._condition_editor(
            editor, f"{prefix}_visibility", None, exclude_id='', none_label="Always show"
        )

        if st.button("➕ Add Field", key=f"{prefix}_add"):
            try:
                field = editor.add_field(label, field_type, options=options, conditional=conditional)
            except FormValidationError as e:
                Notify.error(e.message)
                return
            Notify.success(f"Added field: {field.label}")
            st.rerun()
