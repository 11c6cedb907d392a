"""
Spatial join of two feature collections.

Pairs every left feature with the right features satisfying a binary
predicate. Output geometries are always the left geometries, in left order;
right attributes are attached to them.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import geopandas as gpd

from ..config import JOIN_PREDICATES, JOIN_SUFFIXES, PREDICATE_ALIASES
from ..features.agr import check_agr, propagate_agr
from ..features.schema import FeatureCollection
from ..geometry_utils import intersect
from ..validation import validate_same_crs

logger = logging.getLogger(__name__)


def normalize_predicate(predicate: str) -> str:
    """
    Resolve aliases and check the predicate is supported.

    Raises:
        ValueError: for unknown predicates
    """
    name = PREDICATE_ALIASES.get(predicate, predicate)
    if name not in JOIN_PREDICATES:
        raise ValueError(
            f"Unsupported predicate '{predicate}', expected one of: {sorted(JOIN_PREDICATES)}"
        )
    return name


def match_pairs(
    left: FeatureCollection,
    right: FeatureCollection,
    predicate: str = "intersects",
    distance: Optional[float] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Positions of (left, right) pairs satisfying predicate(left, right).

    Returns:
        Two aligned integer arrays, sorted by left then right position
    """
    predicate = normalize_predicate(predicate)
    if predicate == "dwithin" and distance is None:
        raise ValueError("predicate 'dwithin' requires a distance")
    if len(left) == 0 or len(right) == 0:
        empty = np.array([], dtype=np.intp)
        return empty, empty

    kwargs = {"predicate": predicate}
    if predicate == "dwithin":
        kwargs["distance"] = distance
    pairs = right.frame.sindex.query(left.geometry.values, **kwargs)
    left_idx = np.asarray(pairs[0], dtype=np.intp)
    right_idx = np.asarray(pairs[1], dtype=np.intp)
    order = np.lexsort((right_idx, left_idx))
    return left_idx[order], right_idx[order]


def _overlap_size(a, b) -> float:
    piece = intersect(a, b)
    if piece.is_empty:
        return 0.0
    if piece.area > 0:
        return float(piece.area)
    return float(piece.length)


def _keep_largest(
    left: FeatureCollection,
    right: FeatureCollection,
    left_idx: np.ndarray,
    right_idx: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """Keep, per left feature, the right match with the largest overlap (first on ties)."""
    lg = left.geometry.values
    rg = right.geometry.values
    best: dict = {}
    for li, ri in zip(left_idx, right_idx):
        size = _overlap_size(lg[li], rg[ri])
        current = best.get(int(li))
        if current is None or size > current[1]:
            best[int(li)] = (int(ri), size)
    keys = sorted(best)
    return (
        np.array(keys, dtype=np.intp),
        np.array([best[k][0] for k in keys], dtype=np.intp),
    )


def _suffix_columns(
    left_cols: Sequence[str],
    right_cols: Sequence[str],
    suffixes: Tuple[str, str],
) -> Tuple[dict, dict]:
    shared = set(left_cols) & set(right_cols)
    left_map = {c: f"{c}{suffixes[0]}" for c in left_cols if c in shared}
    right_map = {c: f"{c}{suffixes[1]}" for c in right_cols if c in shared}
    return left_map, right_map


def spatial_join(
    left: FeatureCollection,
    right: FeatureCollection,
    predicate: str = "intersects",
    *,
    distance: Optional[float] = None,
    largest: bool = False,
    inner: bool = False,
    suffixes: Tuple[str, str] = JOIN_SUFFIXES,
) -> FeatureCollection:
    """
    Join right attributes onto left features by a spatial predicate.

    Args:
        left: Collection whose geometries are kept
        right: Collection whose attributes are attached
        predicate: Binary predicate evaluated as predicate(left, right)
        distance: Distance for the 'dwithin' predicate
        largest: Keep only the right feature with the largest overlap per left feature
        inner: Drop left features without a match
        suffixes: Appended to attribute names present on both sides

    Returns:
        FeatureCollection with left geometries; one row per matched pair,
        plus unmatched left rows (missing right attributes) unless inner=True

    Raises:
        ValueError: for CRS mismatch, unknown predicate or missing distance
    """
    validate_same_crs(left.crs, right.crs, "left and right")
    check_agr(right, "join")

    left_idx, right_idx = match_pairs(left, right, predicate, distance)
    if largest and len(left_idx):
        left_idx, right_idx = _keep_largest(left, right, left_idx, right_idx)

    if not inner:
        unmatched = np.setdiff1d(np.arange(len(left), dtype=np.intp), left_idx)
        if len(unmatched):
            left_idx = np.concatenate([left_idx, unmatched])
            right_idx = np.concatenate([right_idx, np.full(len(unmatched), -1, dtype=np.intp)])
            order = np.lexsort((right_idx, left_idx))
            left_idx, right_idx = left_idx[order], right_idx[order]

    left_map, right_map = _suffix_columns(left.attributes, right.attributes, suffixes)

    left_part = pd.DataFrame(left.frame.iloc[left_idx]).reset_index(drop=True)
    left_part = left_part.rename(columns=left_map)
    right_attrs = pd.DataFrame(right.frame[right.attributes]).reset_index(drop=True)
    # -1 is not a label of the RangeIndex, so unmatched rows come back as missing
    right_part = right_attrs.reindex(right_idx).reset_index(drop=True).rename(columns=right_map)

    combined = pd.concat([left_part, right_part], axis=1)
    geometry_name = left.geometry_name
    columns = [c for c in combined.columns if c != geometry_name] + [geometry_name]
    frame = gpd.GeoDataFrame(combined[columns], geometry=geometry_name, crs=left.crs)

    agr = {}
    for name, tag in left.agr.items():
        agr[left_map.get(name, name)] = tag
    for name, tag in propagate_agr(right.agr, "join").items():
        agr[right_map.get(name, name)] = tag

    matched = int((right_idx >= 0).sum())
    logger.info(
        f"Joined {len(left)} left and {len(right)} right features on '{predicate}': "
        f"{matched} matched pairs, {len(frame)} rows"
    )
    return FeatureCollection(frame, agr=agr)
