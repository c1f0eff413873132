"""
Visibility resolution for conditional fields.

A field with a ``conditional`` is shown only when the controlling field's
answer satisfies the condition and the controlling field is itself shown.
Chains are followed for at most as many hops as there are fields, so a
circular rule hides every field on the loop instead of recursing forever.
"""

import logging
from typing import List, Optional

from .field_model import FieldDefinition, FormValueSet
from .option_resolver import find_field, value_matches

logger = logging.getLogger(__name__)


def is_visible(field: FieldDefinition, values: FormValueSet,
               all_fields: List[FieldDefinition], _depth: Optional[int] = None) -> bool:
    """
    Decide whether a field is currently shown.

    Args:
        field: Field to check
        values: Current form values keyed by field name
        all_fields: Full schema

    Returns:
        True if the field is visible. Dangling references and cycles yield False.
    """
    if field.conditional is None:
        return True

    if _depth is None:
        _depth = len(all_fields)
    if _depth <= 0:
        logger.debug(f"Visibility chain for '{field.name}' exceeds schema size, treating as hidden")
        return False

    controlling = find_field(field.conditional.field, all_fields)
    if controlling is None:
        return False

    if not value_matches(field.conditional.value, values.get(controlling.name, '')):
        return False

    return is_visible(controlling, values, all_fields, _depth - 1)


def visible_fields(values: FormValueSet, all_fields: List[FieldDefinition]) -> List[FieldDefinition]:
    """Fields currently shown, in schema order."""
    return [field for field in all_fields if is_visible(field, values, all_fields)]


def find_conditional_cycles(all_fields: List[FieldDefinition]) -> List[List[str]]:
    """
    Find visibility rules that loop back on themselves.

    Returns:
        One list of field labels per distinct cycle, in dependency order
        with the first label repeated at the end
    """
    cycles = []
    reported = set()

    for start in all_fields:
        path = [start]
        current = start
        while current.conditional is not None:
            nxt = find_field(current.conditional.field, all_fields)
            if nxt is None:
                break
            path_ids = [f.id for f in path]
            if nxt.id in path_ids:
                loop = path[path_ids.index(nxt.id):]
                key = frozenset(f.id for f in loop)
                if key not in reported:
                    reported.add(key)
                    cycles.append([f.label for f in loop] + [nxt.label])
                break
            path.append(nxt)
            current = nxt

    return cycles
