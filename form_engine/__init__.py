"""
Dynamic issue-report form engine: field definitions, option and visibility
resolution, answer consistency, and the schema editor.
"""

from .consistency_engine import (
    build_submission_record,
    clean_values,
    merge_value_set,
    new_value_set,
    on_field_change,
    validate_for_submission,
)
from .field_model import Condition, FieldDefinition, FieldType, FormValueSet, OptionSet
from .option_resolver import resolve_options
from .schema_editor import SchemaEditor
from .visibility_resolver import is_visible

__version__ = "1.0.0"
