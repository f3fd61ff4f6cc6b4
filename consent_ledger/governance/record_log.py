"""
Record Log Module
=================
Per-subject append-only sequences of data records.

Records are addressed by a zero-based index that is never reused or
reordered. The only lifecycle transition is Active -> Redacted, which is
one-way. No update, remove or truncate method exists.
"""

from collections import defaultdict
from typing import Dict, List
import structlog

from consent_ledger.core.models import DataRecord, Principal
from consent_ledger.core.exceptions import IndexOutOfBoundsError
from consent_ledger.core.utils import short_id

logger = structlog.get_logger(__name__)


class RecordLog:
    """Append-only record sequences keyed by subject."""

    def __init__(self):
        self._records: Dict[Principal, List[DataRecord]] = defaultdict(list)

    def append(self, subject: Principal, record: DataRecord) -> int:
        """
        Append a record to ``subject``'s sequence.

        Args:
            subject: Owner of the record.
            record: The record to store. Must not already be redacted.

        Returns:
            Zero-based index of the new record.
        """
        if record.redacted:
            raise ValueError("New records cannot be stored as redacted")

        sequence = self._records[subject]
        sequence.append(record)
        index = len(sequence) - 1

        logger.info(
            "Record appended",
            subject=short_id(subject),
            index=index,
            category=record.category.value,
        )
        return index

    def check_index(self, subject: Principal, index: int) -> None:
        """
        Raise unless ``index`` addresses an existing record.

        Raises:
            IndexOutOfBoundsError: If the index is negative or past the end.
        """
        length = self.count(subject)
        if not 0 <= index < length:
            logger.warning(
                "Record index out of bounds",
                subject=short_id(subject),
                index=index,
                length=length,
            )
            raise IndexOutOfBoundsError(subject, index, length)

    def redact(self, subject: Principal, index: int) -> DataRecord:
        """
        Flag a record as redacted. Idempotent and irreversible.

        Content fields are left untouched; only ``redacted`` changes.

        Args:
            subject: Owner of the record.
            index: Record position.

        Returns:
            The redacted record.

        Raises:
            IndexOutOfBoundsError: If no such record exists.
        """
        self.check_index(subject, index)
        sequence = self._records[subject]
        if not sequence[index].redacted:
            sequence[index] = sequence[index].model_copy(update={"redacted": True})

        logger.info("Record redacted", subject=short_id(subject), index=index)
        return sequence[index]

    def count(self, subject: Principal) -> int:
        """Number of records, redacted ones included."""
        records = self._records.get(subject)
        return len(records) if records else 0

    def get(self, subject: Principal, index: int) -> DataRecord:
        """
        Return a record by index.

        Raises:
            IndexOutOfBoundsError: If no such record exists.
        """
        self.check_index(subject, index)
        return self._records[subject][index]

    def subjects(self) -> List[Principal]:
        """Subjects with at least one record."""
        return [subject for subject, records in self._records.items() if records]
