"""
Schema editor controller for the issue form.

Keeps the last persisted field list (``original``) next to a working copy
(``edited``). Every mutation renumbers ``order`` so it stays contiguous;
``save`` diffs the two lists into one batch for the store.
"""

import copy
import logging
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import CycleError, FormValidationError, PersistenceError, SchemaReferenceError
from .field_model import (
    Condition,
    FieldDefinition,
    FieldType,
    OptionSet,
    condition_is_complete,
    derive_field_name,
    new_placeholder_id,
    renumber,
)
from .option_resolver import find_field
from .schema_store import SchemaBatch, SchemaStore
from .visibility_resolver import find_conditional_cycles

logger = logging.getLogger(__name__)


def sanitize_field_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Clean a field document before it is written.

    - drops a ``conditional`` whose field or value is empty
    - drops option sets whose condition is incomplete
    - drops conditional option sets without options (the default set stays)
    - removes legacy ``options`` once ``optionSets`` is non-empty

    Args:
        document: Field document as produced by ``FieldDefinition.to_document``

    Returns:
        Cleaned copy of the document
    """
    data = copy.deepcopy(document)

    conditional = data.get('conditional')
    if conditional is not None and not (conditional.get('field') and conditional.get('value')):
        del data['conditional']

    if 'optionSets' in data:
        option_sets = []
        for option_set in data['optionSets'] or []:
            condition = option_set.get('condition')
            if condition is not None and not (condition.get('field') and condition.get('value')):
                continue
            if condition is not None and not option_set.get('options'):
                continue
            option_sets.append(option_set)
        data['optionSets'] = option_sets

        if option_sets:
            data.pop('options', None)

    return data


def _content(document: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in document.items() if key != 'order'}


class SchemaEditor:
    """Working copy of the form schema with diff-based saving."""

    def __init__(self, store: SchemaStore):
        self.store = store
        self.original: List[FieldDefinition] = []
        self.edited: List[FieldDefinition] = []
        self.loaded_version: Optional[int] = None

    def load(self) -> List[FieldDefinition]:
        """Pull the current schema from the store, discarding local edits."""
        fields = self.store.load_schema()
        self.loaded_version = self.store.version
        self.original = list(fields)
        self.edited = list(fields)
        logger.info(f"Schema editor loaded {len(fields)} fields")
        return self.edited

    def is_unsaved(self, field: FieldDefinition) -> bool:
        """True for a field the store does not hold yet, whatever its id looks like."""
        return field.id not in {f.id for f in self.original}

    def _fingerprint(self, fields: List[FieldDefinition]) -> List[Dict[str, Any]]:
        result = []
        for field in fields:
            dumped = field.model_dump(mode='json')
            if self.is_unsaved(field):
                dumped['id'] = ''
            result.append(dumped)
        return result

    @property
    def has_changes(self) -> bool:
        return self._fingerprint(self.original) != self._fingerprint(self.edited)

    @property
    def is_stale(self) -> bool:
        """True once the store holds a newer schema than the one loaded here."""
        return self.loaded_version is not None and self.store.version != self.loaded_version

    def get_field(self, field_id: str) -> Optional[FieldDefinition]:
        return find_field(field_id, self.edited)

    def select_fields(self, exclude_id: Optional[str] = None) -> List[FieldDefinition]:
        """Dropdown fields usable as a condition trigger, optionally excluding one field."""
        return [f for f in self.edited if f.is_select and f.id != exclude_id]

    def add_field(self, label: str, field_type: FieldType = FieldType.TEXT,
                  options: Optional[List[str]] = None,
                  conditional: Optional[Condition] = None) -> FieldDefinition:
        """
        Append a new, unsaved field.

        Args:
            label: Display label, required
            field_type: Input type
            options: Default options for a select field; blank entries are dropped
            conditional: Visibility rule, attached only when complete

        Returns:
            The new field

        Raises:
            FormValidationError: If the label is empty
        """
        if not label or not label.strip():
            raise FormValidationError("Please enter a label for the new field.", fields=['label'])

        field_type = FieldType(field_type)
        field = FieldDefinition(
            id=new_placeholder_id(),
            label=label,
            name=derive_field_name(label),
            type=field_type,
            order=len(self.edited),
        )

        if field_type == FieldType.SELECT:
            field.option_sets = [OptionSet(options=[o for o in (options or []) if o.strip()])]

        if condition_is_complete(conditional):
            field.conditional = conditional

        self.edited = self.edited + [field]
        logger.info(f"Added field '{field.label}' ({field.type.value}) at position {field.order}")
        return field

    def update_field(self, field: FieldDefinition) -> FieldDefinition:
        """
        Replace a field's definition in place.

        The name is re-derived from the label and the order is kept. Non-select
        fields lose any options.

        Raises:
            FormValidationError: If no field with that id is being edited
        """
        index = next((i for i, f in enumerate(self.edited) if f.id == field.id), None)
        if index is None:
            raise FormValidationError(f"Unknown field id '{field.id}'", fields=[field.id])

        update: Dict[str, Any] = {'name': derive_field_name(field.label), 'order': index}
        if not field.is_select:
            update['options'] = None
            update['option_sets'] = None
        elif not field.option_sets and field.options is None:
            update['option_sets'] = [OptionSet()]

        replacement = field.model_copy(update=update, deep=True)
        edited = list(self.edited)
        edited[index] = replacement
        self.edited = edited
        logger.debug(f"Updated field '{replacement.label}' ({replacement.id})")
        return replacement

    def delete_field(self, field_id: str) -> bool:
        """Remove a field and renumber the rest. Returns False if the id is unknown."""
        remaining = [f for f in self.edited if f.id != field_id]
        if len(remaining) == len(self.edited):
            logger.warning(f"delete_field: unknown field id '{field_id}'")
            return False

        self.edited = renumber(remaining)
        logger.info(f"Deleted field {field_id}")
        return True

    def reorder(self, source_index: int, destination_index: int) -> None:
        """Move the field at ``source_index`` to ``destination_index`` and renumber."""
        count = len(self.edited)
        if not (0 <= source_index < count and 0 <= destination_index < count):
            raise IndexError(f"Cannot move field {source_index} -> {destination_index} in a {count}-field form")

        items = list(self.edited)
        moved = items.pop(source_index)
        items.insert(destination_index, moved)
        self.edited = renumber(items)

    def move_field_up(self, index: int) -> None:
        if index > 0:
            self.reorder(index, index - 1)

    def move_field_down(self, index: int) -> None:
        if index < len(self.edited) - 1:
            self.reorder(index, index + 1)

    def discard(self) -> None:
        """Throw away local edits."""
        self.edited = list(self.original)
        logger.info("Discarded schema edits")

    def _reference_errors(self, field: FieldDefinition, condition: Condition, where: str) -> List[str]:
        if not condition_is_complete(condition):
            return []
        if condition.field == field.id:
            return [f"Field '{field.label}' {where} cannot depend on itself"]
        target = find_field(condition.field, self.edited)
        if target is None:
            return [str(SchemaReferenceError(field.label, condition.field))]
        if not target.is_select:
            return [f"Field '{field.label}' {where} depends on '{target.label}', which is not a dropdown"]
        return []

    def validate(self) -> Tuple[List[str], List[str]]:
        """
        Check the working copy before saving.

        Returns:
            Tuple of (errors, warnings). Errors block saving; conditional
            cycles are only warnings because hidden-on-cycle is safe.
        """
        errors = []
        warnings = []

        name_counts = Counter(field.name for field in self.edited)
        for name, count in name_counts.items():
            if count > 1:
                errors.append(f"{count} fields share the name '{name}'; labels must be unique")

        for field in self.edited:
            if field.conditional is not None:
                errors.extend(self._reference_errors(field, field.conditional, "visibility"))
            for option_set in field.option_sets or []:
                if option_set.condition is not None:
                    errors.extend(self._reference_errors(field, option_set.condition, "option set"))

        for cycle in find_conditional_cycles(self.edited):
            warnings.append(str(CycleError(cycle)))

        return errors, warnings

    def build_batch(self) -> SchemaBatch:
        """
        Diff the working copy against the persisted snapshot.

        New fields become inserts, changed fields become full updates, fields
        that only moved get a reorder, and fields missing from the working
        copy are deleted.
        """
        batch = SchemaBatch()
        original_docs = {
            field.id: sanitize_field_document(field.to_document()) for field in self.original
        }

        for index, field in enumerate(self.edited):
            document = sanitize_field_document({**field.to_document(), 'order': index})

            if self.is_unsaved(field):
                batch.inserts.append(document)
                batch.insert_ids.append(field.id)
                continue

            before = original_docs.get(field.id)
            if before is None or _content(before) != _content(document):
                batch.updates[field.id] = document
            elif before.get('order') != index:
                batch.reorders[field.id] = index

        edited_ids = {field.id for field in self.edited}
        batch.deletes = [field.id for field in self.original if field.id not in edited_ids]
        return batch

    def save(self) -> SchemaBatch:
        """
        Persist the working copy as one atomic batch and reload.

        Returns:
            The batch that was written

        Raises:
            FormValidationError: If validation finds errors
            PersistenceError: If the store rejects the batch; ``edited`` is left as is
        """
        errors, warnings = self.validate()
        for warning in warnings:
            logger.warning(f"Saving schema with warning: {warning}")
        if errors:
            raise FormValidationError("Cannot save schema with validation errors: " + "; ".join(errors))

        batch = self.build_batch()
        if batch.is_empty():
            logger.info("No schema changes to save")
            return batch

        try:
            self.store.apply_batch(batch)
        except PersistenceError:
            logger.error("Schema save failed, keeping local edits", exc_info=True)
            raise
        except Exception as e:
            logger.error(f"Schema save failed, keeping local edits: {e}", exc_info=True)
            raise PersistenceError("save schema", e)

        self.load()
        return batch
