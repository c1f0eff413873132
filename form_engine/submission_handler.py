"""
Submission handler for issue reports.
Handles validation of the in-progress answers, building the ticket record,
and writing it through the configured sink.
"""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, date, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .consistency_engine import build_submission_record, validate_for_submission
from .exceptions import PersistenceError
from .field_model import FieldDefinition, FormValueSet

logger = logging.getLogger(__name__)

STATUS_APPROVED = "approved"
STATUS_PENDING = "pending"
DEFAULT_AUTO_APPROVE_ROLES = ("class-representative",)


def _sanitize_for_json(obj: Any) -> Any:
    """Recursively convert dates and datetimes to ISO strings."""
    if isinstance(obj, dict):
        return {k: _sanitize_for_json(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_sanitize_for_json(item) for item in obj]
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    else:
        return obj


def derive_ticket_status(role: Optional[str], auto_approve_roles: Iterable[str] = DEFAULT_AUTO_APPROVE_ROLES) -> str:
    """Tickets from auto-approving roles skip review; everyone else's wait for it."""
    return STATUS_APPROVED if role in set(auto_approve_roles) else STATUS_PENDING


@dataclass
class SubmissionResult:
    ticket_id: str
    status: str
    record: Dict[str, str]


class SubmissionSink(ABC):
    """Destination for finished ticket records."""

    @abstractmethod
    def submit(self, record: Dict[str, str], meta: Dict[str, Any]) -> str:
        """
        Persist one ticket.

        Returns:
            The id assigned to the ticket
        """


class JsonlTicketSink(SubmissionSink):
    """Appends tickets to a JSONL file, one JSON object per line."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def submit(self, record: Dict[str, str], meta: Dict[str, Any]) -> str:
        ticket_id = uuid.uuid4().hex
        entry = _sanitize_for_json({'id': ticket_id, **record, **meta})

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'a', encoding='utf-8') as f:
                json.dump(entry, f, ensure_ascii=False)
                f.write('\n')
        except OSError as e:
            logger.error(f"Failed to write ticket to {self.path}: {e}")
            raise PersistenceError("submit ticket", e, path=self.path)

        logger.info(f"Stored ticket {ticket_id} ({meta.get('status')}) in {self.path}")
        return ticket_id

    def read_tickets(self) -> List[Dict[str, Any]]:
        """Read every stored ticket; malformed lines are skipped."""
        if not self.path.exists():
            return []

        tickets = []
        with open(self.path, 'r', encoding='utf-8') as f:
            for line_no, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    tickets.append(json.loads(line))
                except json.JSONDecodeError as e:
                    logger.warning(f"Skipping malformed ticket line {line_no} in {self.path}: {e}")
        return tickets


class TicketSubmissionHandler:
    """Validates answers and hands the visible ones to the sink."""

    def __init__(self, sink: SubmissionSink,
                 auto_approve_roles: Iterable[str] = DEFAULT_AUTO_APPROVE_ROLES):
        self.sink = sink
        self.auto_approve_roles = tuple(auto_approve_roles)

    def submit(self, values: FormValueSet, all_fields: List[FieldDefinition],
               user_id: str, role: Optional[str] = None) -> SubmissionResult:
        """
        Validate and submit one issue report.

        Args:
            values: Current answers; never modified
            all_fields: Schema the answers were entered against
            user_id: Submitting user
            role: Submitting user's role, used for the initial status

        Returns:
            SubmissionResult with the stored ticket id, status and record

        Raises:
            FormValidationError: If a visible field is empty
            PersistenceError: If the sink fails
        """
        validate_for_submission(values, all_fields)

        record = build_submission_record(values, all_fields)
        status = derive_ticket_status(role, self.auto_approve_roles)
        meta = {
            'user_id': user_id,
            'status': status,
            'created_at': datetime.now(timezone.utc),
        }

        try:
            ticket_id = self.sink.submit(dict(record), meta)
        except PersistenceError:
            raise
        except Exception as e:
            logger.error(f"Ticket submission failed for {user_id}: {e}", exc_info=True)
            raise PersistenceError("submit ticket", e)

        logger.info(f"Ticket {ticket_id} submitted by {user_id} with status {status}")
        return SubmissionResult(ticket_id=ticket_id, status=status, record=record)
