"""
Aggregation and summarising of feature collections.

- summarise: group features by attribute values, reduce each attribute and
  union the geometries of each group (shared boundaries dissolve)
- aggregate: group features by a second polygon collection, reduce each
  attribute, and keep the grouping polygons as output geometries
"""
from __future__ import annotations

import logging
from typing import Callable, Mapping, Sequence, Union

import pandas as pd
import geopandas as gpd

from ..config import COUNT_REDUCERS
from ..features.agr import AGR, check_agr
from ..features.schema import GEOMETRY_COLUMN, FeatureCollection
from ..validation import validate_attribute_schema, validate_same_crs
from .join import match_pairs

logger = logging.getLogger(__name__)

Reducer = Union[str, Callable]


def summarise(
    collection: FeatureCollection,
    by: Union[str, Sequence[str]],
    funs: Mapping[str, Reducer],
) -> FeatureCollection:
    """
    Group by attribute values, reduce attributes and dissolve geometries.

    Args:
        collection: Features to group
        by: Grouping attribute name(s)
        funs: attribute -> reducer (pandas aggregation name or callable)

    Returns:
        One feature per group, sorted by group key; the geometry is the union
        of the group's geometries

    Raises:
        MissingAttributeError: if a grouping or reduced attribute is missing
    """
    by_cols = [by] if isinstance(by, str) else list(by)
    validate_attribute_schema(collection.frame, by_cols + list(funs))
    overlap = set(by_cols) & set(funs)
    if overlap:
        raise ValueError(f"Attributes cannot be both grouping keys and reduced: {sorted(overlap)}")
    check_agr(collection, "summarise", list(funs))

    geometry_name = collection.geometry_name
    frame = collection.frame[by_cols + list(funs) + [geometry_name]]
    if funs:
        dissolved = frame.dissolve(by=by_cols, aggfunc=dict(funs), as_index=False, dropna=False)
    else:
        dissolved = frame.dissolve(by=by_cols, as_index=False, dropna=False)
    dissolved = dissolved[by_cols + list(funs) + [geometry_name]].reset_index(drop=True)

    agr = {c: AGR.IDENTITY for c in by_cols}
    agr.update({a: AGR.AGGREGATE for a in funs})
    logger.info(f"Summarised {len(collection)} features into {len(dissolved)} groups by {by_cols}")
    return FeatureCollection(dissolved, agr=agr)


def aggregate(
    collection: FeatureCollection,
    by: FeatureCollection,
    funs: Mapping[str, Reducer],
    *,
    predicate: str = "intersects",
) -> FeatureCollection:
    """
    Reduce attributes of the features related to each polygon of `by`.

    Args:
        collection: Features carrying the attributes
        by: Grouping polygons; their geometries become the output geometries
        funs: attribute -> reducer (pandas aggregation name or callable)
        predicate: Relation evaluated as predicate(by, feature)

    Returns:
        One feature per `by` feature, in `by` order. Groups without members
        carry missing values, except count-like reducers which report 0.
    """
    validate_same_crs(by.crs, collection.crs, "collection and grouping polygons")
    validate_attribute_schema(collection.frame, list(funs))
    check_agr(collection, "aggregate", list(funs))

    by_idx, member_idx = match_pairs(by, collection, predicate)
    members = pd.DataFrame(collection.frame[list(funs)]).iloc[member_idx].reset_index(drop=True)
    members["_group"] = by_idx

    if funs:
        reduced = members.groupby("_group").agg(dict(funs))
    else:
        reduced = pd.DataFrame(index=pd.Index([], name="_group"))
    reduced = reduced.reindex(range(len(by)))
    for name, fn in funs.items():
        if isinstance(fn, str) and fn in COUNT_REDUCERS:
            reduced[name] = reduced[name].fillna(0).astype("int64")

    reduced = reduced.reset_index(drop=True)
    reduced[GEOMETRY_COLUMN] = list(by.geometry.values)
    frame = gpd.GeoDataFrame(reduced, geometry=GEOMETRY_COLUMN, crs=by.crs)

    empty = len(by) - len(set(by_idx.tolist()))
    logger.info(
        f"Aggregated {len(collection)} features onto {len(by)} polygons "
        f"({empty} without members)"
    )
    return FeatureCollection(frame, agr={a: AGR.AGGREGATE for a in funs})
