"""
Attribute-geometry relationships (AGR).

Each attribute of a collection can be tagged with how its value relates to
the feature geometry:

- constant:  holds at every point of the geometry; survives sub-setting
- aggregate: a summary over the whole geometry; not valid for parts
- identity:  names the geometry as a whole; degrades to constant on sub-setting

Untagged attributes are allowed, but every geometry-changing operation warns
about them because the result silently assumes they are constant.
"""
from __future__ import annotations

import logging
import warnings
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Union

from ..errors import AggregateSubsetWarning, UnresolvedAGRWarning

logger = logging.getLogger(__name__)


class AGR(str, Enum):
    CONSTANT = "constant"
    AGGREGATE = "aggregate"
    IDENTITY = "identity"

    def __str__(self) -> str:
        return self.value


# Operations that produce new geometries for existing attribute values
GEOMETRY_CHANGING_OPERATIONS = frozenset({
    "centroid",
    "point_on_surface",
    "interpolate",
    "join",
    "aggregate",
    "summarise",
    "intersection",
})

# Operations whose output geometry is a part of (or a point inside) the input
SUBSETTING_OPERATIONS = frozenset({
    "centroid",
    "point_on_surface",
    "intersection",
})


def parse_agr(tag: Union[AGR, str, None]) -> Optional[AGR]:
    """
    Convert a tag given as enum member, string or None.

    Raises:
        ValueError: for unknown tag names
    """
    if tag is None or isinstance(tag, AGR):
        return tag
    try:
        return AGR(str(tag).strip().lower())
    except ValueError:
        valid = ", ".join(a.value for a in AGR)
        raise ValueError(f"Unknown AGR tag '{tag}', expected one of: {valid}") from None


def normalize_agr(
    agr: Optional[Mapping[str, Union[AGR, str, None]]],
    attributes: Iterable[str]
) -> Dict[str, Optional[AGR]]:
    """
    Build a full tag map for a schema: every attribute present, unset ones as None.

    Raises:
        ValueError: if a tag names an attribute outside the schema
    """
    attributes = list(attributes)
    agr = dict(agr or {})
    unknown = set(agr) - set(attributes)
    if unknown:
        raise ValueError(f"AGR given for unknown attributes: {sorted(unknown)}")
    return {a: parse_agr(agr.get(a)) for a in attributes}


def check_agr(collection, operation: str, attributes: Optional[Iterable[str]] = None) -> List[str]:
    """
    Warn about attributes whose pairing with a new geometry cannot be guaranteed.

    Never raises for AGR problems; messages are emitted on the warnings
    channel, logged, and returned so callers can attach them to results.

    Args:
        collection: FeatureCollection about to go through the operation
        operation: Operation name (see GEOMETRY_CHANGING_OPERATIONS)
        attributes: Attributes carried into the result (default: all)

    Returns:
        List of warning messages, empty if nothing to report
    """
    if operation not in GEOMETRY_CHANGING_OPERATIONS:
        return []

    tags = collection.agr
    names = list(attributes) if attributes is not None else list(tags)
    messages: List[str] = []

    unresolved = [a for a in names if tags.get(a) is None]
    if unresolved:
        msg = (
            f"{operation}: attributes without an AGR tag are assumed constant "
            f"over the new geometries: {unresolved}"
        )
        warnings.warn(msg, UnresolvedAGRWarning, stacklevel=3)
        logger.warning(msg)
        messages.append(msg)

    if operation in SUBSETTING_OPERATIONS:
        summaries = [a for a in names if tags.get(a) is AGR.AGGREGATE]
        if summaries:
            msg = (
                f"{operation}: aggregate attributes describe whole geometries and "
                f"are not valid for the reduced ones: {summaries}"
            )
            warnings.warn(msg, AggregateSubsetWarning, stacklevel=3)
            logger.warning(msg)
            messages.append(msg)

    return messages


def propagate_agr(agr: Mapping[str, Optional[AGR]], operation: str) -> Dict[str, Optional[AGR]]:
    """
    Tags of the result of an operation.

    Geometry-changing operations downgrade identity to constant: the value
    still describes the original geometry but no longer names the new one.
    """
    if operation not in GEOMETRY_CHANGING_OPERATIONS:
        return dict(agr)
    return {
        name: (AGR.CONSTANT if tag is AGR.IDENTITY else tag)
        for name, tag in agr.items()
    }
