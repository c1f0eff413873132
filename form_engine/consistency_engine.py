"""
Consistency engine for in-progress issue reports.

After any edit, answers that became invalid are cleared: answers to fields
that are now hidden, and select answers that are no longer among the
field's resolved options. Clearing one answer can invalidate another
further down the chain, so passes repeat until nothing changes.
"""

import logging
from typing import Dict, List

from .exceptions import FormValidationError
from .field_model import FieldDefinition, FormValueSet
from .option_resolver import resolve_options
from .visibility_resolver import is_visible, visible_fields

logger = logging.getLogger(__name__)


def _run_fixpoint(candidate: FormValueSet, all_fields: List[FieldDefinition]) -> int:
    """
    Clear invalid answers in place until a pass changes nothing.

    Passes only ever clear answers, so at most one pass per field can make
    progress; the loop is capped one beyond that.

    Returns:
        Number of passes performed, including the final unchanged pass
    """
    max_passes = len(all_fields) + 1
    passes = 0

    while passes < max_passes:
        passes += 1
        changed = False

        for field in all_fields:
            current = candidate.get(field.name, '')
            if not current:
                continue

            if not is_visible(field, candidate, all_fields):
                logger.debug(f"Clearing hidden field '{field.name}' (was '{current}')")
                candidate[field.name] = ''
                changed = True
            elif field.is_select and current not in resolve_options(field, candidate, all_fields):
                logger.debug(f"Clearing '{field.name}': '{current}' is no longer an option")
                candidate[field.name] = ''
                changed = True

        if not changed:
            break
    else:
        logger.warning(f"Consistency pass limit ({max_passes}) reached")

    return passes


def clean_values(values: FormValueSet, all_fields: List[FieldDefinition]) -> FormValueSet:
    """Return a copy of the values with every invalid answer cleared."""
    candidate = dict(values)
    _run_fixpoint(candidate, all_fields)
    return candidate


def on_field_change(changed_name: str, new_value: str, values: FormValueSet,
                    all_fields: List[FieldDefinition]) -> FormValueSet:
    """
    Apply one edit and propagate its consequences.

    Args:
        changed_name: Name of the field the user edited
        new_value: The new answer ('' to unset)
        values: Current form values; not modified
        all_fields: Full schema in display order

    Returns:
        New value set with the edit applied and invalidated answers cleared
    """
    if not any(field.name == changed_name for field in all_fields):
        logger.warning(f"Change to unknown field '{changed_name}'")

    candidate = dict(values)
    candidate[changed_name] = new_value
    passes = _run_fixpoint(candidate, all_fields)
    logger.debug(f"on_field_change({changed_name!r}) settled after {passes} pass(es)")
    return candidate


def new_value_set(all_fields: List[FieldDefinition]) -> FormValueSet:
    """Empty answers for every field in the schema."""
    return {field.name: '' for field in all_fields}


def merge_value_set(values: FormValueSet, all_fields: List[FieldDefinition]) -> FormValueSet:
    """
    Carry answers over to a new schema snapshot.

    Answers for names that still exist are kept, answers for removed fields
    are dropped, new fields start empty, then invalid answers are cleared.
    """
    merged = {field.name: values.get(field.name, '') for field in all_fields}
    dropped = set(values) - set(merged)
    if dropped:
        logger.info(f"Schema update dropped answers for: {', '.join(sorted(dropped))}")
    return clean_values(merged, all_fields)


def missing_required_fields(values: FormValueSet, all_fields: List[FieldDefinition]) -> List[FieldDefinition]:
    """Visible fields without an answer, in schema order."""
    return [field for field in visible_fields(values, all_fields) if not values.get(field.name, '')]


def validate_for_submission(values: FormValueSet, all_fields: List[FieldDefinition]) -> None:
    """
    Check that every visible field has an answer.

    Raises:
        FormValidationError: Listing every visible field left empty
    """
    missing = missing_required_fields(values, all_fields)
    if missing:
        labels = ', '.join(field.label for field in missing)
        raise FormValidationError(
            f"Required fields missing: {labels}",
            fields=[field.name for field in missing]
        )


def build_submission_record(values: FormValueSet, all_fields: List[FieldDefinition]) -> Dict[str, str]:
    """Flatten the answers of the currently visible fields into a ticket record."""
    return {field.name: values.get(field.name, '') for field in visible_fields(values, all_fields)}
