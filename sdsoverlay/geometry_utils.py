"""
Geometry overlay provider and hygiene checks on top of Shapely 2.x.

The overlay passes only ever need three primitives (intersection, area and
union) plus a way to tell usable polygons from unusable ones. Nothing here
repairs geometries; problems are reported back to the caller.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import shapely
from shapely.geometry.base import BaseGeometry
import geopandas as gpd

from .config import AREA_TOLERANCE, POLYGONAL_TYPES


def intersect(a: BaseGeometry, b: BaseGeometry) -> BaseGeometry:
    """Intersection of two geometries; an empty geometry when they do not overlap."""
    return shapely.intersection(a, b)


def area(geom: Optional[BaseGeometry]) -> float:
    """Planar area, 0.0 for None or empty geometries."""
    if geom is None or geom.is_empty:
        return 0.0
    return float(shapely.area(geom))


def union(geoms: Iterable[BaseGeometry]) -> BaseGeometry:
    """Union of a sequence of geometries, dissolving shared boundaries."""
    parts = [g for g in geoms if g is not None and not g.is_empty]
    if not parts:
        return shapely.Polygon()
    return shapely.union_all(parts)


def is_polygonal(geom: Optional[BaseGeometry]) -> bool:
    return isinstance(geom, BaseGeometry) and geom.geom_type in POLYGONAL_TYPES


def is_degenerate(geom: Optional[BaseGeometry], tolerance: float = AREA_TOLERANCE) -> bool:
    """True when a polygon has no usable area."""
    return area(geom) <= tolerance


def is_collapsed(geom: Optional[BaseGeometry], tolerance: float = AREA_TOLERANCE) -> bool:
    """
    True when a geometry has no extent in two dimensions (all vertices on a line or a point).

    Unlike is_degenerate this does not trust the ring area: a self-crossing
    ring can have lobes whose signed areas cancel to zero.
    """
    if geom is None or geom.is_empty:
        return True
    return float(shapely.area(shapely.convex_hull(geom))) <= tolerance


def polygon_problem(geom: Optional[BaseGeometry]) -> Optional[str]:
    """
    Describe why a geometry cannot take part in a polygon overlay.

    Collapsed polygons (no two-dimensional extent) are not reported here;
    they are handled separately because they are only a problem for
    extensive weighting. Self-crossing rings are always reported, whatever
    their computed area.

    Args:
        geom: Geometry to check

    Returns:
        None if the geometry is usable, otherwise a short reason
    """
    if geom is None or not isinstance(geom, BaseGeometry):
        return "missing geometry"
    if not is_polygonal(geom):
        return f"{geom.geom_type} is not polygonal"
    if geom.is_empty:
        return None
    if not geom.is_valid and not is_collapsed(geom):
        return shapely.is_valid_reason(geom)
    return None


def polygon_problems(geoms: Sequence[Optional[BaseGeometry]]) -> List[Tuple[int, str]]:
    """Return (position, reason) for every unusable geometry in a sequence."""
    problems = []
    for i, geom in enumerate(geoms):
        reason = polygon_problem(geom)
        if reason is not None:
            problems.append((i, reason))
    return problems


def feature_areas(gdf: gpd.GeoDataFrame) -> np.ndarray:
    """Areas of every geometry in a frame, 0.0 for missing ones."""
    values = np.asarray(gdf.geometry.values, dtype=object)
    out = np.zeros(len(values), dtype="float64")
    present = np.array([g is not None for g in values], dtype=bool)
    if present.any():
        out[present] = shapely.area(values[present])
    return out


def clean_geoms(
    gdf: gpd.GeoDataFrame,
    types: Optional[List[str]] = None
) -> gpd.GeoSeries:
    """
    Drop null, empty and non-geometry entries, optionally filtering by type.

    Args:
        gdf: GeoDataFrame with potentially problematic geometries
        types: Optional list of allowed geometry types (e.g. ["Polygon", "MultiPolygon"])

    Returns:
        GeoSeries with the surviving geometries, original index kept

    Usage:
        polys = clean_geoms(gdf, ["Polygon", "MultiPolygon"])
    """
    g = gdf.geometry

    g = g[g.notna()]
    g = g[~g.is_empty]
    g = g[g.apply(lambda x: isinstance(x, BaseGeometry))]

    if types is not None:
        g = g[g.apply(lambda x: x.geom_type in types)]

    return g
