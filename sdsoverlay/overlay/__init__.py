"""
Overlay operations: area-weighted interpolation, spatial join, aggregation
and geometry-changing operations with AGR bookkeeping.
"""
from .interpolate import InterpolationResult, OverlapRecord, interpolate
from .join import spatial_join
from .aggregate import aggregate, summarise
from .ops import areas, centroid, intersection, point_on_surface

__all__ = [
    "InterpolationResult",
    "OverlapRecord",
    "aggregate",
    "areas",
    "centroid",
    "interpolate",
    "intersection",
    "point_on_surface",
    "spatial_join",
    "summarise",
]
