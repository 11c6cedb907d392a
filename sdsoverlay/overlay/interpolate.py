"""
Area-weighted interpolation between polygon collections.

Transfers numeric attributes from a source set of polygons onto a target set
of polygons, weighting each source feature by the area it shares with each
target:

- extensive (counts, totals):  value(t) = sum(v_s * area(s & t) / area(s))
- intensive (densities, means): value(t) = sum(v_s * area(s & t)) / sum(area(s & t))

Targets that no source overlaps get a missing value, never zero. Invalid
geometries and zero-area sources are reported next to the partial result
instead of aborting the batch (unless strict=True).
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Set, Tuple, Union

import numpy as np
import geopandas as gpd
from shapely.errors import GEOSException
from shapely.geometry import box
from shapely.geometry.base import BaseGeometry

from ..config import AREA_TOLERANCE, MAX_WORKERS_DEFAULT, STRICT_DEFAULT
from ..errors import DegenerateAreaError, InvalidGeometryError
from ..features.agr import AGR, check_agr
from ..features.schema import GEOMETRY_COLUMN, FeatureCollection
from ..geometry_utils import area, feature_areas, intersect, polygon_problems
from ..validation import (
    enforce_float_types,
    resolve_extensive,
    validate_attribute_schema,
    validate_numeric,
    validate_same_crs,
)

logger = logging.getLogger(__name__)

TargetLike = Union[FeatureCollection, gpd.GeoDataFrame, gpd.GeoSeries, Sequence[BaseGeometry]]


class OverlapRecord(NamedTuple):
    """One non-empty source/target overlap; lives only while a target is computed."""

    source_index: int
    target_index: int
    geometry: BaseGeometry
    area: float


@dataclass
class InterpolationResult:
    """
    Interpolated collection plus the problems met on the way.

    Attributes:
        collection: One feature per target geometry, in target order
        errors: InvalidGeometryError / DegenerateAreaError instances
        warnings: AGR and degenerate-area messages
    """

    collection: FeatureCollection
    errors: List[Exception] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def failed_targets(self) -> Set[int]:
        """
        Targets whose values are affected by an error.

        A target counts as failed when it is itself unusable, when it overlaps
        a skipped source, or when it touches a zero-area source. In the last
        case only the extensive attributes named on the DegenerateAreaError
        are affected; intensive values of the same target are complete.
        """
        failed: Set[int] = set()
        for err in self.errors:
            if isinstance(err, InvalidGeometryError):
                if err.role == "target":
                    failed.add(err.index)
                failed.update(err.target_indices)
            elif isinstance(err, DegenerateAreaError) and err.target_index is not None:
                failed.add(err.target_index)
        return failed

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class _SourceTable:
    # Read-only view of the source shared by every worker
    geoms: np.ndarray
    areas: np.ndarray
    values: Dict[str, np.ndarray]
    usable: np.ndarray
    degenerate: np.ndarray
    sindex: Optional[object]
    extensive: Tuple[str, ...]
    problems: Dict[int, InvalidGeometryError]


def _target_geometries(target: TargetLike) -> Tuple[List[Optional[BaseGeometry]], object]:
    if isinstance(target, FeatureCollection):
        return list(target.geometry.values), target.crs
    if isinstance(target, gpd.GeoDataFrame):
        return list(target.geometry.values), target.crs
    if isinstance(target, gpd.GeoSeries):
        return list(target.values), target.crs
    return list(target), None


def _prepare_source(
    source: FeatureCollection,
    attributes: Sequence[str],
    flags: Mapping[str, bool],
    use_index: bool,
    errors: List[Exception],
) -> _SourceTable:
    geoms = np.asarray(source.geometry.values, dtype=object)
    usable = np.ones(len(geoms), dtype=bool)
    problems: Dict[int, InvalidGeometryError] = {}
    for i, reason in polygon_problems(geoms):
        usable[i] = False
        problems[i] = InvalidGeometryError(i, "source", reason)
        errors.append(problems[i])
        logger.warning(f"Skipping source feature {i}: {reason}")

    areas = feature_areas(source.frame)
    numeric = enforce_float_types(source.frame, set(attributes))
    values = {a: numeric[a].to_numpy() for a in attributes}
    # Build the index before any worker touches it
    sindex = source.frame.sindex if use_index and len(geoms) else None
    return _SourceTable(
        geoms=geoms,
        areas=areas,
        values=values,
        usable=usable,
        degenerate=areas <= AREA_TOLERANCE,
        sindex=sindex,
        extensive=tuple(a for a in attributes if flags[a]),
        problems=problems,
    )


def _candidates(table: _SourceTable, target_geom: BaseGeometry) -> np.ndarray:
    """Source positions whose bounding boxes can touch the target, skipped sources included."""
    if table.sindex is not None:
        return np.sort(np.asarray(table.sindex.query(target_geom), dtype=np.intp))
    return np.arange(len(table.geoms), dtype=np.intp)


def _overlaps_skipped(source_geom, target_geom: BaseGeometry) -> bool:
    """Whether a skipped source shares interior with the target."""
    if not isinstance(source_geom, BaseGeometry) or source_geom.is_empty:
        return False
    try:
        return bool(target_geom.intersects(source_geom) and not target_geom.touches(source_geom))
    except GEOSException:
        # Predicates can fail on broken rings; the bounding box decides then
        return bool(target_geom.intersects(box(*source_geom.bounds)))


def overlap_records(
    table: _SourceTable,
    target_index: int,
    target_geom: BaseGeometry,
) -> Tuple[List[OverlapRecord], List[Exception], List[int]]:
    """
    Intersect one target against its candidate sources.

    Returns:
        Tuple of (records with positive overlap area, pair-level errors,
        positions of skipped sources overlapping the target)
    """
    records: List[OverlapRecord] = []
    errors: List[Exception] = []
    skipped: List[int] = []
    for s in _candidates(table, target_geom):
        s = int(s)
        source_geom = table.geoms[s]
        if not table.usable[s]:
            if _overlaps_skipped(source_geom, target_geom):
                skipped.append(s)
            continue
        try:
            if table.degenerate[s]:
                # No area to apportion from; only an error when it actually touches
                if (
                    table.extensive
                    and not source_geom.is_empty
                    and target_geom.intersects(source_geom.boundary)
                ):
                    errors.append(DegenerateAreaError(s, target_index, table.extensive))
                continue
            piece = intersect(source_geom, target_geom)
        except GEOSException as exc:
            errors.append(
                InvalidGeometryError(
                    s, "source", f"overlay with target {target_index} failed: {exc}",
                    target_indices=[target_index],
                )
            )
            continue
        piece_area = area(piece)
        if piece_area <= 0.0:
            continue
        records.append(OverlapRecord(s, target_index, piece, piece_area))
    return records, errors, skipped


def _weighted_values(
    records: Sequence[OverlapRecord],
    table: _SourceTable,
    attributes: Sequence[str],
    flags: Mapping[str, bool],
    na_rm: bool,
) -> Dict[str, float]:
    if not records:
        return {a: np.nan for a in attributes}

    idx = np.fromiter((r.source_index for r in records), dtype=np.intp, count=len(records))
    overlap = np.fromiter((r.area for r in records), dtype="float64", count=len(records))

    out: Dict[str, float] = {}
    for a in attributes:
        v = table.values[a][idx]
        if flags[a]:
            weights = overlap / table.areas[idx]
        else:
            weights = overlap
        present = ~np.isnan(v)
        if not present.all():
            if not na_rm or not present.any():
                out[a] = np.nan
                continue
            v = v[present]
            weights = weights[present]
        if flags[a]:
            out[a] = float(np.sum(v * weights))
        else:
            out[a] = float(np.sum(v * weights) / np.sum(weights))
    return out


def _interpolate_target(table, target_index, target_geom, attributes, flags, na_rm):
    records, errors, skipped = overlap_records(table, target_index, target_geom)
    return _weighted_values(records, table, attributes, flags, na_rm), errors, skipped


def interpolate(
    source: FeatureCollection,
    target: TargetLike,
    attributes: Iterable[str],
    extensive: Union[bool, Mapping[str, bool]],
    *,
    strict: Optional[bool] = None,
    na_rm: bool = False,
    use_index: bool = True,
    max_workers: Optional[int] = None,
) -> InterpolationResult:
    """
    Area-weighted interpolation of source attributes onto target polygons.

    Args:
        source: Polygon collection carrying the attributes
        target: Target polygons (collection, GeoDataFrame, GeoSeries or plain
            sequence of shapely geometries); target attributes are ignored
        attributes: Source attributes to transfer
        extensive: True/False for all attributes, or a mapping per attribute
        strict: Raise the first geometry or degenerate-area error instead of
            collecting it (default: config.STRICT_DEFAULT)
        na_rm: Drop sources with a missing value instead of propagating it
        use_index: Pre-filter candidate sources with the spatial index
        max_workers: Threads for the per-target loop (default: config.MAX_WORKERS_DEFAULT)

    Returns:
        InterpolationResult; its collection has one feature per target in the
        same order, carrying exactly the requested attributes

    Raises:
        MissingAttributeError: if a requested attribute is not in the source
        ValueError: for non-numeric attributes, incomplete flags or CRS mismatch
    """
    attributes = list(dict.fromkeys(attributes))
    strict = STRICT_DEFAULT if strict is None else strict
    max_workers = MAX_WORKERS_DEFAULT if max_workers is None else max(1, int(max_workers))

    # Schema-level checks fail before any geometry work
    validate_attribute_schema(source.frame, attributes, source="source")
    validate_numeric(source.frame, attributes)
    flags = resolve_extensive(attributes, extensive)
    target_geoms, target_crs = _target_geometries(target)
    if target_crs is not None:
        validate_same_crs(source.crs, target_crs, "source and target")

    messages = check_agr(source, "interpolate", attributes)

    errors: List[Exception] = []
    table = _prepare_source(source, attributes, flags, use_index, errors)

    skip: Set[int] = set()
    for i, reason in polygon_problems(target_geoms):
        skip.add(i)
        errors.append(InvalidGeometryError(i, "target", reason))
        logger.warning(f"Skipping target feature {i}: {reason}")
    if strict and errors:
        raise errors[0]

    n = len(target_geoms)
    rows: List[Optional[Dict[str, float]]] = [None] * n
    pair_errors: List[List[Exception]] = [[] for _ in range(n)]
    skipped: List[List[int]] = [[] for _ in range(n)]
    missing_row = {a: np.nan for a in attributes}
    work = [i for i in range(n) if i not in skip]
    for i in skip:
        rows[i] = missing_row

    logger.info(
        f"Interpolating {len(attributes)} attributes from {len(source)} sources "
        f"onto {n} targets (workers={max_workers})"
    )
    if max_workers > 1 and len(work) > 1:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(work))) as ex:
            futures = {
                ex.submit(_interpolate_target, table, i, target_geoms[i], attributes, flags, na_rm): i
                for i in work
            }
            for fut in as_completed(futures):
                i = futures[fut]
                rows[i], pair_errors[i], skipped[i] = fut.result()
    else:
        for i in work:
            rows[i], pair_errors[i], skipped[i] = _interpolate_target(
                table, i, target_geoms[i], attributes, flags, na_rm
            )

    for i in range(n):
        for s in skipped[i]:
            table.problems[s].target_indices.add(i)
        for err in pair_errors[i]:
            errors.append(err)
            msg = str(err)
            logger.warning(msg)
            if isinstance(err, DegenerateAreaError):
                messages.append(msg)
    if strict and errors:
        raise errors[0]

    data = {a: np.array([rows[i][a] for i in range(n)], dtype="float64") for a in attributes}
    data[GEOMETRY_COLUMN] = target_geoms
    frame = gpd.GeoDataFrame(data, geometry=GEOMETRY_COLUMN, crs=source.crs)
    collection = FeatureCollection(frame, agr={a: AGR.AGGREGATE for a in attributes})

    missing = sum(1 for i in range(n) if all(np.isnan(rows[i][a]) for a in attributes)) if attributes else 0
    logger.info(f"Interpolated {n} targets; {missing} without overlap, {len(errors)} errors")
    return InterpolationResult(collection, errors, messages)
