"""
Feature and FeatureCollection

A collection is a GeoDataFrame (one geometry column, one CRS) plus an AGR tag
per attribute column. Collections are treated as immutable: every operation
returns a new one.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd
import geopandas as gpd
from shapely.geometry.base import BaseGeometry

from .agr import AGR, normalize_agr

GEOMETRY_COLUMN = "geometry"

Record = Tuple[Optional[BaseGeometry], Dict[str, Any]]


@dataclass(frozen=True)
class Feature:
    """One geometry plus its attribute values."""

    geometry: Optional[BaseGeometry]
    attributes: Dict[str, Any] = field(default_factory=dict)

    def with_geometry(self, geometry: Optional[BaseGeometry]) -> "Feature":
        return replace(self, geometry=geometry)

    def with_attributes(self, attributes: Mapping[str, Any]) -> "Feature":
        return replace(self, attributes=dict(attributes))


def _missing_to_none(value):
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if value is pd.NA or value is pd.NaT:
        return None
    return value


class FeatureCollection:
    """
    Ordered features sharing an attribute schema and a CRS.

    >>> from shapely.geometry import box
    >>> fc = FeatureCollection.from_records(
    ...     [(box(0, 0, 1, 1), {"NAME": "a", "pop": 10})],
    ...     crs="EPSG:3857",
    ...     agr={"NAME": "identity", "pop": "aggregate"},
    ... )
    >>> len(fc), fc.attributes
    (1, ['NAME', 'pop'])
    >>> fc.agr["NAME"]
    <AGR.IDENTITY: 'identity'>
    """

    def __init__(
        self,
        frame: gpd.GeoDataFrame,
        agr: Optional[Mapping[str, Union[AGR, str, None]]] = None,
    ):
        if not isinstance(frame, gpd.GeoDataFrame):
            raise TypeError(f"Expected a GeoDataFrame, got {type(frame).__name__}")
        try:
            frame.geometry
        except AttributeError:
            raise ValueError("GeoDataFrame must have an active geometry column") from None
        self.frame = frame
        self._agr = normalize_agr(agr, self.attributes)

    @classmethod
    def from_records(
        cls,
        records: Iterable[Record],
        crs=None,
        agr: Optional[Mapping[str, Union[AGR, str, None]]] = None,
        attributes: Optional[Sequence[str]] = None,
    ) -> "FeatureCollection":
        """
        Build a collection from (geometry, attribute-map) pairs.

        Args:
            records: Iterable of (geometry, {name: value}) pairs
            crs: CRS shared by every geometry
            agr: Optional AGR tag per attribute
            attributes: Column order; defaults to first-seen order. Attributes
                absent from a record are missing for that feature.

        Returns:
            FeatureCollection
        """
        records = list(records)
        if attributes is None:
            seen: Dict[str, None] = {}
            for _, attrs in records:
                for name in attrs:
                    seen.setdefault(name, None)
            attributes = list(seen)
        if GEOMETRY_COLUMN in attributes:
            raise ValueError(f"'{GEOMETRY_COLUMN}' is reserved for the geometry column")

        data = {name: [attrs.get(name) for _, attrs in records] for name in attributes}
        data[GEOMETRY_COLUMN] = [geom for geom, _ in records]
        frame = gpd.GeoDataFrame(data, geometry=GEOMETRY_COLUMN, crs=crs)
        return cls(frame, agr=agr)

    @classmethod
    def from_features(
        cls,
        features: Iterable[Feature],
        crs=None,
        agr: Optional[Mapping[str, Union[AGR, str, None]]] = None,
    ) -> "FeatureCollection":
        return cls.from_records(((f.geometry, f.attributes) for f in features), crs=crs, agr=agr)

    @property
    def crs(self):
        return self.frame.crs

    @property
    def geometry(self) -> gpd.GeoSeries:
        return self.frame.geometry

    @property
    def geometry_name(self) -> str:
        return self.frame.geometry.name

    @property
    def attributes(self) -> List[str]:
        return [c for c in self.frame.columns if c != self.geometry_name]

    @property
    def agr(self) -> Dict[str, Optional[AGR]]:
        return dict(self._agr)

    def __len__(self) -> int:
        return len(self.frame)

    def __iter__(self) -> Iterator[Feature]:
        for i in range(len(self)):
            yield self[i]

    def __getitem__(self, index: int) -> Feature:
        row = self.frame.iloc[index]
        attrs = {name: _missing_to_none(row[name]) for name in self.attributes}
        return Feature(row[self.geometry_name], attrs)

    def __repr__(self) -> str:
        return f"FeatureCollection(n={len(self)}, attributes={self.attributes}, crs={self.crs})"

    def to_records(self) -> List[Record]:
        """Return (geometry, attribute-map) pairs with missing values as None."""
        return [(f.geometry, f.attributes) for f in self]

    def with_agr(self, agr: Optional[Mapping[str, Union[AGR, str, None]]] = None, **tags) -> "FeatureCollection":
        """
        Return a collection sharing this frame with updated AGR tags.

        Tags not mentioned are kept; pass None to unset one.
        """
        merged = dict(self._agr)
        merged.update(agr or {})
        merged.update(tags)
        return FeatureCollection(self.frame, agr=merged)

    def with_geometry(self, geometry: Union[gpd.GeoSeries, Sequence[BaseGeometry]]) -> "FeatureCollection":
        """
        Replace geometries, keeping attribute values and AGR tags.

        Raises:
            ValueError: if the number of geometries does not match
        """
        if len(geometry) != len(self):
            raise ValueError(f"Expected {len(self)} geometries, got {len(geometry)}")
        crs = geometry.crs if isinstance(geometry, gpd.GeoSeries) and geometry.crs is not None else self.crs
        values = list(geometry.values) if isinstance(geometry, gpd.GeoSeries) else list(geometry)
        frame = self.frame.copy()
        frame[self.geometry_name] = gpd.GeoSeries(values, index=frame.index, crs=crs)
        return FeatureCollection(frame, agr=self._agr)

    def select(self, attributes: Sequence[str]) -> "FeatureCollection":
        """Keep only the given attributes (and the geometry)."""
        from ..validation import validate_attribute_schema

        validate_attribute_schema(self.frame, attributes)
        frame = self.frame[list(attributes) + [self.geometry_name]]
        return FeatureCollection(frame, agr={a: self._agr[a] for a in attributes})
