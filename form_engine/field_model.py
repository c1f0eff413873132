"""
Field definition model for the dynamic issue form.
Pydantic models for admin-defined form fields, their conditional visibility
rule and their conditional option sets.
"""

import logging
import re
import uuid
from enum import Enum
from typing import Dict, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

# Condition value that matches any non-empty answer
ANY_VALUE = "any"

# Prefix marking fields that exist only in the editor's working copy
PLACEHOLDER_PREFIX = "new-"

_WHITESPACE = re.compile(r"\s")

# Values of a single in-progress submission: field name -> answer ('' = unset)
FormValueSet = Dict[str, str]


class FieldType(str, Enum):
    """Supported input types."""
    TEXT = "text"
    SELECT = "select"
    TEXTAREA = "textarea"


class Condition(BaseModel):
    """Rule of the form "field <id> has value <value>" (or "any" value)."""

    model_config = ConfigDict(extra='ignore')

    field: str = ""
    value: str = ""

    def is_complete(self) -> bool:
        return bool(self.field) and bool(self.value)


class OptionSet(BaseModel):
    """Options offered by a select field, optionally only under a condition."""

    model_config = ConfigDict(extra='ignore')

    options: List[str] = Field(default_factory=list)
    condition: Optional[Condition] = None

    @property
    def is_default(self) -> bool:
        return self.condition is None


class FieldDefinition(BaseModel):
    """One question in the issue form."""

    model_config = ConfigDict(extra='ignore', populate_by_name=True, use_enum_values=False)

    id: str
    label: str
    name: str = ""
    type: FieldType = FieldType.TEXT
    order: int = 0
    options: Optional[List[str]] = None
    option_sets: Optional[List[OptionSet]] = Field(default=None, alias='optionSets')
    conditional: Optional[Condition] = None

    @field_validator('label')
    @classmethod
    def _label_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("label must not be empty")
        return value

    def model_post_init(self, __context: Any) -> None:
        if not self.name:
            self.name = derive_field_name(self.label)

    @property
    def is_select(self) -> bool:
        return self.type == FieldType.SELECT

    def to_document(self) -> Dict[str, Any]:
        """Store document for this field: camelCase keys, no id, unset members omitted."""
        return self.model_dump(by_alias=True, exclude_none=True, exclude={'id'}, mode='json')


def derive_field_name(label: str) -> str:
    """
    Derive the machine key for a label.

    Lowercases the label and replaces every whitespace character with '-',
    e.g. "Issue Type" -> "issue-type".
    """
    return _WHITESPACE.sub('-', label.lower())


def new_placeholder_id() -> str:
    """Generate an id for a field that has not been persisted yet."""
    return f"{PLACEHOLDER_PREFIX}{uuid.uuid4().hex}"


def condition_is_complete(condition: Optional[Condition]) -> bool:
    return condition is not None and condition.is_complete()


def parse_field_definition(field_id: str, document: Dict[str, Any]) -> FieldDefinition:
    """
    Build a FieldDefinition from a stored document.

    Raises:
        pydantic.ValidationError: If the document does not describe a valid field
    """
    data = dict(document)
    data['id'] = field_id
    return FieldDefinition.model_validate(data)


def parse_field_definitions(documents: List[Dict[str, Any]]) -> List[FieldDefinition]:
    """
    Validate stored field documents, skipping the ones that are malformed.

    Each document must carry its ``id``. Order is preserved as given.

    Args:
        documents: Raw documents as read from the store

    Returns:
        List of valid field definitions
    """
    fields = []
    for index, document in enumerate(documents):
        if not isinstance(document, dict):
            logger.error(f"Field document #{index} is not a mapping, skipping")
            continue

        field_id = str(document.get('id') or '')
        if not field_id:
            logger.error(f"Field document #{index} has no id, skipping")
            continue

        try:
            fields.append(parse_field_definition(field_id, document))
        except ValidationError as e:
            logger.error(f"Invalid field document '{field_id}': {e}")

    return fields


def dedupe_by_name(fields: List[FieldDefinition]) -> List[FieldDefinition]:
    """Keep the first field for each derived name, dropping later duplicates."""
    seen = set()
    unique = []
    for field in fields:
        if field.name in seen:
            logger.warning(f"Dropping field '{field.label}' ({field.id}): name '{field.name}' already used")
            continue
        seen.add(field.name)
        unique.append(field)
    return unique


def renumber(fields: List[FieldDefinition]) -> List[FieldDefinition]:
    """Return copies of the fields with contiguous zero-based order matching list position."""
    return [field.model_copy(update={'order': index}) for index, field in enumerate(fields)]
