"""
Change Notification Module
==========================
Structured notifications for every state mutation of the registry.

The notifier keeps an append-only, sequence-ordered journal and fans each
notification out to subscribed sinks (audit trails, indexers). The journal
is the only place where past consent and approval states survive, since
the stores themselves hold current state only.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple
import structlog

from consent_ledger.core.models import NOTIFICATION_TYPES, Notification, NotificationKind
from consent_ledger.core.exceptions import JournalError

logger = structlog.get_logger(__name__)


def notification_from_dict(data: Dict[str, Any]) -> Notification:
    """
    Rebuild a typed notification from its JSON form.

    Args:
        data: Dict produced by ``Notification.to_log_entry()``.

    Returns:
        The matching notification subclass instance.

    Raises:
        JournalError: If the kind is missing or unknown, or fields are invalid.
    """
    try:
        kind = NotificationKind(data.get("kind"))
    except ValueError:
        raise JournalError(
            f"Unknown notification kind: {data.get('kind')!r}", notification=data
        )
    try:
        return NOTIFICATION_TYPES[kind].model_validate(data)
    except ValueError as e:
        raise JournalError(f"Malformed {kind.value} notification: {e}", notification=data)


class ChangeNotifier:
    """
    Append-only notification journal with subscriber fan-out.

    Sinks are external collaborators: any object with a
    ``write(notification)`` method. A failing sink is logged and counted
    but does not undo the mutation that produced the notification and does
    not stop delivery to the other sinks.
    """

    def __init__(self):
        self._journal: List[Notification] = []
        self._sinks: List[Any] = []
        self.failed_deliveries = 0

    # -------------------------------------------------------------------------
    # Subscribers
    # -------------------------------------------------------------------------

    def subscribe(self, sink: Any) -> None:
        if not callable(getattr(sink, "write", None)):
            raise TypeError("Notification sinks must provide a write() method")
        self._sinks.append(sink)
        logger.debug("Notification sink subscribed", sink=type(sink).__name__)

    def unsubscribe(self, sink: Any) -> bool:
        if sink in self._sinks:
            self._sinks.remove(sink)
            return True
        return False

    @property
    def sinks(self) -> Tuple[Any, ...]:
        return tuple(self._sinks)

    def close(self) -> None:
        """
        Flush and close every sink that supports it.

        Raises:
            JournalError: If a buffered sink cannot write its tail.
        """
        for sink in self._sinks:
            flush = getattr(sink, "flush", None)
            if callable(flush):
                flush()
            close = getattr(sink, "close", None)
            if callable(close):
                close()
        logger.debug("Notification sinks closed", sinks=len(self._sinks))

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    @property
    def next_sequence(self) -> int:
        return len(self._journal)

    def publish(self, notification: Notification) -> Notification:
        """
        Sequence a notification, append it to the journal and deliver it.

        Args:
            notification: Unsequenced notification.

        Returns:
            The sequenced notification as stored in the journal.
        """
        published = notification.model_copy(update={"sequence": self.next_sequence})
        self._journal.append(published)

        for sink in self._sinks:
            try:
                sink.write(published)
            except Exception as e:
                self.failed_deliveries += 1
                logger.error(
                    "Notification delivery failed",
                    sink=type(sink).__name__,
                    sequence=published.sequence,
                    kind=published.kind.value,
                    error=str(e),
                )

        logger.debug(
            "Notification published",
            sequence=published.sequence,
            kind=published.kind.value,
        )
        return published

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def journal(self) -> Tuple[Notification, ...]:
        """Snapshot of every published notification, in sequence order."""
        return tuple(self._journal)

    def since(self, sequence: int) -> List[Notification]:
        """Notifications with a sequence at or after ``sequence``."""
        return self._journal[max(sequence, 0):]

    def __len__(self) -> int:
        return len(self._journal)


class JsonlJournal:
    """
    File sink writing one JSON object per notification line.

    Writes are buffered; ``buffer_size=1`` writes through on every
    notification.
    """

    def __init__(self, path: str, buffer_size: int = 1):
        """
        Initialize JSON-lines journal.

        Args:
            path: Journal file; parent directories are created.
            buffer_size: Notifications held in memory before a write.
        """
        if buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.buffer_size = buffer_size
        self._buffer: List[Notification] = []

    def write(self, notification: Notification) -> None:
        self._buffer.append(notification)
        if len(self._buffer) >= self.buffer_size:
            self.flush()

    def flush(self) -> None:
        """Write any buffered notifications to the file."""
        if not self._buffer:
            return

        try:
            with open(self.path, "a", encoding="utf-8") as f:
                for notification in self._buffer:
                    f.write(json.dumps(notification.to_log_entry()) + "\n")
        except OSError as e:
            raise JournalError(
                f"Failed to write journal {self.path}: {e}",
                notification=self._buffer[0].to_log_entry(),
            )

        logger.debug("Journal flushed", path=str(self.path), count=len(self._buffer))
        self._buffer.clear()

    def read(self) -> Iterator[Notification]:
        """
        Iterate the notifications stored in the file.

        Raises:
            JournalError: If the file is missing or a line is not valid JSON.
        """
        if not self.path.is_file():
            raise JournalError(f"Journal file not found: {self.path}")

        with open(self.path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError as e:
                    raise JournalError(
                        f"Invalid JSON on line {line_number} of {self.path}: {e}"
                    )
                yield notification_from_dict(data)

    def close(self) -> None:
        self.flush()


def open_journal(
    backend: str, path: Optional[str] = None, buffer_size: int = 1
) -> Optional[Any]:
    """
    Build the journal sink for a configured backend.

    Returns ``None`` for the in-memory backend, which needs no sink.
    """
    if backend == "memory":
        return None
    if not path:
        raise JournalError(f"Journal backend '{backend}' requires a path")
    if backend == "jsonl":
        return JsonlJournal(path, buffer_size=buffer_size)
    if backend == "sqlite":
        from .persistence import LedgerDB

        return LedgerDB(path)
    raise JournalError(f"Unknown journal backend: {backend}")
