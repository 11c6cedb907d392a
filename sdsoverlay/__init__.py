from .features import AGR, Feature, FeatureCollection, check_agr, propagate_agr
from .errors import (
    AGRWarning,
    AggregateSubsetWarning,
    DegenerateAreaError,
    InvalidGeometryError,
    MissingAttributeError,
    OverlayError,
    UnresolvedAGRWarning,
)
from .overlay import (
    InterpolationResult,
    aggregate,
    areas,
    centroid,
    interpolate,
    intersection,
    point_on_surface,
    spatial_join,
    summarise,
)
from .io import read_collection, write_collection

__all__ = [
    "AGR",
    "AGRWarning",
    "AggregateSubsetWarning",
    "DegenerateAreaError",
    "Feature",
    "FeatureCollection",
    "InterpolationResult",
    "InvalidGeometryError",
    "MissingAttributeError",
    "OverlayError",
    "UnresolvedAGRWarning",
    "aggregate",
    "areas",
    "centroid",
    "check_agr",
    "interpolate",
    "intersection",
    "point_on_surface",
    "propagate_agr",
    "read_collection",
    "spatial_join",
    "summarise",
    "write_collection",
]

__version__ = "0.1.0"
