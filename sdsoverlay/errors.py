"""
Error and warning classes for overlay operations.

Schema-level problems (missing attributes) fail fast. Geometry- and
pair-level problems are collected and returned alongside partial results.
AGR warnings are advisory and never abort an operation.
"""
from __future__ import annotations

from typing import Iterable, Optional, Sequence, Set


class OverlayError(ValueError):
    """Base class for overlay errors."""


class InvalidGeometryError(OverlayError):
    """
    A source or target geometry is not polygonal or is invalid.

    Attributes:
        index: Position of the offending feature in its collection
        role: "source" or "target"
        reason: Geometry type or shapely validity reason
        target_indices: For source errors, the targets the skipped source
            overlaps; their values are computed without it
    """

    def __init__(self, index: int, role: str, reason: str, target_indices: Iterable[int] = ()):
        self.index = index
        self.role = role
        self.reason = reason
        self.target_indices: Set[int] = set(target_indices)
        super().__init__(f"{role} geometry {index} is unusable: {reason}")


class DegenerateAreaError(OverlayError):
    """
    A zero-area source feature is needed for extensive weighting.

    Attributes:
        source_index: Position of the zero-area source
        target_index: Target it touches, if known
        attributes: Extensive attributes whose value at the target is affected;
            intensive attributes of the same call are not
    """

    def __init__(
        self,
        source_index: int,
        target_index: Optional[int] = None,
        attributes: Sequence[str] = (),
    ):
        self.source_index = source_index
        self.target_index = target_index
        self.attributes = tuple(attributes)
        where = f" (target {target_index})" if target_index is not None else ""
        what = f" {list(self.attributes)}" if self.attributes else ""
        super().__init__(
            f"source geometry {source_index} has zero area; "
            f"cannot apportion extensive values{what}{where}"
        )


class MissingAttributeError(OverlayError, KeyError):
    """A requested attribute is not part of the collection schema."""

    def __init__(self, missing, available=None):
        self.missing = set(missing)
        self.available = set(available or ())
        msg = f"Missing required attributes: {sorted(self.missing)}"
        if available is not None:
            msg += f". Found attributes: {sorted(self.available)}"
        super().__init__(msg)

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class AGRWarning(UserWarning):
    """Advisory attribute-geometry relationship diagnostic."""


class UnresolvedAGRWarning(AGRWarning):
    """An attribute without an AGR tag went through a geometry-changing operation."""


class AggregateSubsetWarning(AGRWarning):
    """An aggregate attribute was carried onto a reduced or subset geometry."""
