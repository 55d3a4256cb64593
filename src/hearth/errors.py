"""Error taxonomy shared by the codec, the state engine and the graph store.

Only ``PersistenceError`` and ``SyncError`` are meant to propagate out of a
sync cycle. ``ValidationError`` is returned at the meta-event decode boundary
and ``UnknownReferenceError`` is logged and dropped by the fold.
"""

from __future__ import annotations


class HearthError(RuntimeError):
    """Base class for all Hearth failures."""


class ValidationError(HearthError):
    """A payload was malformed, oversized or of an unknown type.

    Attributes:
        reason: Short human-readable description of the first violation.
        field: Dotted location of the offending field, when known.
    """

    def __init__(self, reason: str, field: str | None = None) -> None:
        self.reason = reason
        self.field = field
        super().__init__(f"{field}: {reason}" if field else reason)


class UnknownReferenceError(HearthError):
    """An event targets a channel or message that is not known locally."""

    def __init__(self, kind: str, ref: str) -> None:
        self.kind = kind
        self.ref = ref
        super().__init__(f"Unknown {kind}: {ref}")


class PersistenceError(HearthError):
    """The transaction for a single event failed and was rolled back."""


class SyncError(HearthError):
    """A sync cycle could not retrieve events from the transport."""
