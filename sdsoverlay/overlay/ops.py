"""
Geometry-changing operations that keep attributes.

Each operation checks the AGR of the attributes it carries over, then tags
the result: identity attributes become constant because the new geometry is
no longer the one they named.
"""
from __future__ import annotations

import logging

import pandas as pd
import geopandas as gpd

from ..features.agr import check_agr, propagate_agr
from ..features.schema import FeatureCollection
from ..geometry_utils import feature_areas
from ..validation import validate_same_crs

logger = logging.getLogger(__name__)


def centroid(collection: FeatureCollection) -> FeatureCollection:
    """Replace every geometry by its centroid."""
    check_agr(collection, "centroid")
    result = collection.with_geometry(collection.geometry.centroid)
    return result.with_agr(propagate_agr(collection.agr, "centroid"))


def point_on_surface(collection: FeatureCollection) -> FeatureCollection:
    """Replace every geometry by a point guaranteed to lie inside it."""
    check_agr(collection, "point_on_surface")
    result = collection.with_geometry(collection.geometry.representative_point())
    return result.with_agr(propagate_agr(collection.agr, "point_on_surface"))


def areas(collection: FeatureCollection) -> pd.Series:
    """Area of every feature (0.0 for missing or empty geometries)."""
    return pd.Series(feature_areas(collection.frame), index=collection.frame.index, name="area")


def intersection(
    x: FeatureCollection,
    y: FeatureCollection,
    keep_geom_type: bool = True,
) -> FeatureCollection:
    """
    Pairwise intersections between the features of two collections.

    Every non-empty intersection becomes a feature carrying the attributes of
    both parents. Names present on both sides get the suffixes `_1` and `_2`
    (geopandas overlay convention).

    Args:
        x: First collection
        y: Second collection
        keep_geom_type: Drop lower-dimensional pieces (e.g. shared edges of polygons)

    Returns:
        FeatureCollection of intersection pieces
    """
    validate_same_crs(x.crs, y.crs, "intersection inputs")
    check_agr(x, "intersection")
    check_agr(y, "intersection")

    shared = set(x.attributes) & set(y.attributes)
    agr = {}
    for name, tag in propagate_agr(x.agr, "intersection").items():
        agr[f"{name}_1" if name in shared else name] = tag
    for name, tag in propagate_agr(y.agr, "intersection").items():
        agr[f"{name}_2" if name in shared else name] = tag

    if len(x) == 0 or len(y) == 0:
        empty = gpd.GeoDataFrame(
            {c: pd.Series(dtype="object") for c in agr},
            geometry=gpd.GeoSeries([], crs=x.crs),
        )
        return FeatureCollection(empty, agr=agr)

    pieces = gpd.overlay(x.frame, y.frame, how="intersection", keep_geom_type=keep_geom_type)
    pieces = pieces[~pieces.geometry.is_empty].reset_index(drop=True)
    agr = {k: v for k, v in agr.items() if k in pieces.columns}

    logger.info(f"Intersected {len(x)} x {len(y)} features into {len(pieces)} pieces")
    return FeatureCollection(pieces, agr=agr)
