"""
CapCompare — Error Taxonomy & Tagged Outcomes

Fatal conditions are exceptions deriving from CapCompareError. Recoverable
conditions travel as fields on result rows and as Outcome warnings.
"""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")


class CapCompareError(Exception):
    """Base class for fatal errors that abort a computation."""


class MissingRatesError(CapCompareError):
    """No exchange rates could be resolved for the anchor date."""

    def __init__(self, anchor_date: date, currencies: Sequence[str] = ()):
        self.anchor_date = anchor_date
        self.currencies = sorted(set(currencies))
        needed = ", ".join(self.currencies) or "none"
        super().__init__(
            f"No exchange rates available on or before {anchor_date.isoformat()} "
            f"(currencies needing conversion: {needed})"
        )


class MissingSnapshotError(CapCompareError):
    """A requested snapshot date has no market-cap records."""

    def __init__(self, snapshot_date: date):
        self.snapshot_date = snapshot_date
        super().__init__(f"No market cap snapshot for {snapshot_date.isoformat()}")


class NoSnapshotsError(CapCompareError):
    """The snapshot store holds no dates at all."""

    def __init__(self):
        super().__init__("No market cap snapshots are stored")


class NormalizerStateError(CapCompareError):
    """Normalizer operation called from the wrong state."""


class OutcomeStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Success, success-with-warnings, or hard failure of one computation."""
    status: OutcomeStatus
    value: Optional[T] = None
    warnings: List[str] = field(default_factory=list)
    error: Optional[CapCompareError] = None

    @classmethod
    def ok(cls, value: T) -> "Outcome[T]":
        return cls(status=OutcomeStatus.OK, value=value)

    @classmethod
    def warning(cls, value: T, warnings: Sequence[str]) -> "Outcome[T]":
        return cls(status=OutcomeStatus.WARNING, value=value, warnings=list(warnings))

    @classmethod
    def failed(cls, error: CapCompareError) -> "Outcome[T]":
        return cls(status=OutcomeStatus.FAILED, error=error)

    @classmethod
    def from_warnings(cls, value: T, warnings: Sequence[str]) -> "Outcome[T]":
        """ok() when there is nothing to report, warning() otherwise."""
        if warnings:
            return cls.warning(value, warnings)
        return cls.ok(value)

    @property
    def succeeded(self) -> bool:
        return self.status != OutcomeStatus.FAILED

    def unwrap(self) -> T:
        """Return the value, re-raising the fatal error of a failed outcome."""
        if self.error is not None:
            raise self.error
        return self.value
