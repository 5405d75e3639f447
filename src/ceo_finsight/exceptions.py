# CEO FinSight - Financial computation core for executive dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Error taxonomy for CEO FinSight.

Only structural problems are raised to the caller:

- InvalidWindowError: the requested window is empty or inverted.
- ConfigMissingError: a required business assumption is not configured.

MalformedRecordError is raised by record validation but is always caught
by the collaborator that validates a batch, which turns it into a
RecordWarning so that a single bad record never blanks out a report.

Undefined ratios are not exceptions at all: ratio helpers return None and
indicator snapshots expose an explicit zero with an "undefined_ratio" flag.
"""


class FinsightError(Exception):
    """Base class for all CEO FinSight errors."""


class InvalidWindowError(FinsightError, ValueError):
    """Raised when a reporting window has end <= start."""


class MalformedRecordError(FinsightError, ValueError):
    """Raised when an input record misses a required field or holds an invalid value."""

    def __init__(
        self, record_id: str, field: str, message: str = "", code: str = ""
    ) -> None:
        self.record_id = record_id
        self.field = field
        self.code = code or f"missing_{field}"
        super().__init__(message or f"Record {record_id!r} is missing {field!r}.")


class ConfigMissingError(FinsightError, KeyError):
    """Raised when a required assumption has no value and no default."""

    def __init__(self, key: str, message: str = "") -> None:
        self.key = key
        super().__init__(message or f"Missing required configuration value: {key}")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message instead.
        return str(self.args[0])
