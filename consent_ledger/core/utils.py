"""
Consent Ledger Utility Functions
================================
Common utility functions used throughout the consent ledger.
"""

import hashlib
import json
import logging
import time
from typing import Any, Dict, Optional, Union

import structlog
from pydantic import TypeAdapter


BYTES32_LENGTH = 32
ZERO_BYTES32 = "0x" + "00" * BYTES32_LENGTH


# =============================================================================
# Logging Setup
# =============================================================================


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
) -> structlog.BoundLogger:
    """
    Configure structured logging for the ledger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_format: Output format (json, console).
        log_file: Optional file path for log output.

    Returns:
        Configured logger instance.
    """
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        handlers=[
            logging.StreamHandler(),
            *(
                [logging.FileHandler(log_file)]
                if log_file
                else []
            ),
        ],
    )

    return structlog.get_logger()


_BOOL = TypeAdapter(bool)


def as_bool(value: Any) -> bool:
    """
    Validate a flag the same way the pydantic models do.

    ``"false"``, ``"0"`` and ``0`` read as False; values such as ``"maybe"``
    raise ``ValueError`` instead of being coerced by truthiness.
    """
    return _BOOL.validate_python(value)


def short_id(principal: Any) -> str:
    """Shorten a principal handle for log lines."""
    text = str(principal)
    return text if len(text) <= 8 else text[:8] + "..."


# =============================================================================
# Fingerprints and Hashing
# =============================================================================


def to_bytes32(value: Union[bytes, bytearray, str, int]) -> str:
    """
    Normalise a fixed-size fingerprint to a 0x-prefixed 32-byte hex string.

    Shorter inputs are right-padded with zero bytes, so ``0xAA`` and
    ``b"\\xaa"`` both become ``0xaa`` followed by 31 zero bytes. The integer
    ``0`` is accepted as shorthand for the all-zero fingerprint.

    Args:
        value: Raw bytes, a hex string (with or without ``0x``), or ``0``.

    Returns:
        Lowercase hex string of exactly 66 characters.

    Raises:
        ValueError: If the value is not hex, or is longer than 32 bytes.
    """
    if isinstance(value, bool):
        raise ValueError("Fingerprint must be bytes or a hex string, not bool")
    if isinstance(value, int):
        if value != 0:
            raise ValueError("Only 0 is accepted as an integer fingerprint")
        return ZERO_BYTES32

    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        digits = value[2:] if value[:2].lower() == "0x" else value
        if len(digits) % 2:
            raise ValueError(f"Fingerprint has an odd number of hex digits: {value!r}")
        try:
            raw = bytes.fromhex(digits)
        except ValueError:
            raise ValueError(f"Fingerprint is not valid hex: {value!r}")
    else:
        raise ValueError(f"Unsupported fingerprint type: {type(value).__name__}")

    if len(raw) > BYTES32_LENGTH:
        raise ValueError(
            f"Fingerprint longer than {BYTES32_LENGTH} bytes ({len(raw)} bytes)"
        )
    return "0x" + raw.ljust(BYTES32_LENGTH, b"\x00").hex()


def compute_hash(data: Union[str, bytes, Dict], algorithm: str = "sha256") -> str:
    """
    Compute cryptographic hash of data.

    Args:
        data: Data to hash (string, bytes, or dictionary).
        algorithm: Hash algorithm (sha256, sha512, ...).

    Returns:
        Hexadecimal hash string.
    """
    if isinstance(data, dict):
        data = json.dumps(data, sort_keys=True)
    if isinstance(data, str):
        data = data.encode("utf-8")

    hasher = hashlib.new(algorithm)
    hasher.update(data)
    return hasher.hexdigest()


def fingerprint(data: Union[str, bytes, Dict]) -> str:
    """SHA-256 of ``data`` as a bytes32 fingerprint, e.g. for a terms document."""
    return "0x" + compute_hash(data, "sha256")


def verify_fingerprint(data: Union[str, bytes, Dict], expected: str) -> bool:
    """Check a document against a stored fingerprint."""
    return fingerprint(data) == to_bytes32(expected)


# =============================================================================
# Clocks
# =============================================================================


class SystemClock:
    """Wall clock returning integer Unix seconds."""

    def __call__(self) -> int:
        return int(time.time())


class ManualClock:
    """Clock that only moves when told to. Used by tests and replays."""

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError("Clock cannot start before the epoch")
        self._now = int(start)

    def __call__(self) -> int:
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < 0:
            raise ValueError("Timestamp must be non-negative")
        self._now = int(timestamp)

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        self._now += int(seconds)
        return self._now
