"""
Option resolution for select fields.

A select field offers the options of its default option set plus the options
of every conditional set whose condition currently holds. Everything here is
a pure function of the schema and the current form values.
"""

import logging
from typing import Dict, List, Optional

from .field_model import ANY_VALUE, Condition, FieldDefinition, FormValueSet

logger = logging.getLogger(__name__)


def find_field(field_id: str, all_fields: List[FieldDefinition]) -> Optional[FieldDefinition]:
    """Locate a field by id, or None if it is not in the schema."""
    for field in all_fields:
        if field.id == field_id:
            return field
    return None


def value_matches(expected: str, actual: str) -> bool:
    """
    Compare an answer against a condition value.

    "any" matches every non-empty answer; anything else must match exactly
    (case-sensitive).
    """
    if expected == ANY_VALUE:
        return bool(actual)
    return actual == expected


def condition_matches(condition: Condition, values: FormValueSet,
                      all_fields: List[FieldDefinition]) -> bool:
    """
    Evaluate a condition against the current values.

    A condition pointing at a field that is not in the schema never matches.
    """
    controlling = find_field(condition.field, all_fields)
    if controlling is None:
        logger.debug(f"Condition references unknown field id '{condition.field}'")
        return False
    return value_matches(condition.value, values.get(controlling.name, ''))


def resolve_options(field: FieldDefinition, values: FormValueSet,
                    all_fields: List[FieldDefinition]) -> Dict[str, None]:
    """
    Compute the options currently valid for a select field.

    Args:
        field: Field to resolve options for
        values: Current form values keyed by field name
        all_fields: Full schema, used to look up condition targets

    Returns:
        Insertion-ordered set (dict keys) of option strings, empty for
        non-select fields
    """
    resolved: Dict[str, None] = {}

    if not field.is_select:
        return resolved

    if field.option_sets:
        # unconditional sets first so their options lead the list
        for option_set in field.option_sets:
            if option_set.is_default:
                resolved.update(dict.fromkeys(option_set.options))

        for option_set in field.option_sets:
            if not option_set.is_default and condition_matches(option_set.condition, values, all_fields):
                resolved.update(dict.fromkeys(option_set.options))
        return resolved

    return dict.fromkeys(field.options or [])


def condition_value_choices(field_id: str, all_fields: List[FieldDefinition]) -> List[str]:
    """
    Every option a select field could ever offer.

    Used by the schema editor to list the values a condition on that field
    can test for. Legacy ``options`` win over option sets when both exist.
    """
    field = find_field(field_id, all_fields)
    if field is None or not field.is_select:
        return []

    choices: Dict[str, None] = {}
    if field.options:
        choices.update(dict.fromkeys(field.options))
    elif field.option_sets:
        for option_set in field.option_sets:
            choices.update(dict.fromkeys(option_set.options))

    return list(choices)
