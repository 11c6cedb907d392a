import os

# Sources with an area at or below this are treated as degenerate
AREA_TOLERANCE = float(os.environ.get("SDS_AREA_TOLERANCE", "0.0"))

# Default for interpolate(strict=...): raise on the first per-feature error
STRICT_DEFAULT = os.environ.get("SDS_STRICT", "0").strip().lower() in ("1", "true", "yes")

# Worker threads for the per-target interpolation loop
MAX_WORKERS_DEFAULT = max(1, int(os.environ.get("SDS_MAX_WORKERS", "1")))

# Geometry types accepted by the area-weighted engine
POLYGONAL_TYPES = ("Polygon", "MultiPolygon")

# Spatial join
JOIN_SUFFIXES = (".x", ".y")
JOIN_PREDICATES = {
    "intersects",
    "contains",
    "within",
    "touches",
    "covers",
    "covered_by",
    "crosses",
    "overlaps",
    "contains_properly",
    "dwithin",
}
# Aliases accepted on the command line and in spatial_join()
PREDICATE_ALIASES = {
    "is_within_distance": "dwithin",
    "within_distance": "dwithin",
    "coveredby": "covered_by",
}

# Reducers whose empty-group result is 0 rather than missing
COUNT_REDUCERS = {"count", "size"}

# File suffixes written as GeoParquet; everything else goes through GDAL
PARQUET_SUFFIXES = {".parquet", ".geoparquet"}
GDAL_DRIVERS = {
    ".gpkg": "GPKG",
    ".geojson": "GeoJSON",
    ".json": "GeoJSON",
    ".shp": "ESRI Shapefile",
}
