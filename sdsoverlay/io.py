"""
Reading and writing feature collections.

GeoParquet goes through pyarrow (GeoDataFrame.to_parquet / read_parquet);
every other suffix goes through GDAL via geopandas. AGR tags are not stored
in the files and are supplied when reading.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Mapping, Optional, Union

import geopandas as gpd

from .config import GDAL_DRIVERS, PARQUET_SUFFIXES
from .features.agr import AGR
from .features.schema import FeatureCollection
from .geometry_utils import clean_geoms

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def read_collection(
    path: PathLike,
    agr: Optional[Mapping[str, Union[AGR, str, None]]] = None,
    layer: Optional[str] = None,
    geom_types: Optional[List[str]] = None,
    crs=None,
) -> FeatureCollection:
    """
    Load a vector file as a FeatureCollection.

    Args:
        path: GeoParquet or any GDAL-readable vector file
        agr: Optional AGR tag per attribute
        layer: Layer name for multi-layer sources (e.g. GeoPackage)
        geom_types: Keep only these geometry types; null and empty geometries
            are dropped as well when given
        crs: CRS to assign when the file has none

    Returns:
        FeatureCollection

    Raises:
        FileNotFoundError: if the path does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing input at {path}")

    logger.info(f"Loading features from {path}")
    if path.suffix.lower() in PARQUET_SUFFIXES:
        gdf = gpd.read_parquet(path)
    elif layer is not None:
        gdf = gpd.read_file(path, layer=layer)
    else:
        gdf = gpd.read_file(path)

    if gdf.crs is None and crs is not None:
        gdf = gdf.set_crs(crs)

    if geom_types is not None:
        kept = clean_geoms(gdf, geom_types)
        dropped = len(gdf) - len(kept)
        if dropped:
            logger.warning(f"Dropped {dropped} features without a {'/'.join(geom_types)} geometry from {path}")
        gdf = gdf.loc[kept.index]

    gdf = gdf.reset_index(drop=True)
    logger.info(f"Loaded {len(gdf)} features from {path}")
    return FeatureCollection(gdf, agr=agr)


def write_collection(collection: FeatureCollection, path: PathLike) -> Path:
    """
    Write a collection to GeoParquet or a GDAL format chosen by suffix.

    Raises:
        ValueError: for unsupported suffixes
    """
    path = Path(path)
    os.makedirs(path.parent if str(path.parent) else ".", exist_ok=True)
    suffix = path.suffix.lower()
    if suffix in PARQUET_SUFFIXES:
        collection.frame.to_parquet(path, index=False)
    elif suffix in GDAL_DRIVERS:
        collection.frame.to_file(path, driver=GDAL_DRIVERS[suffix])
    else:
        supported = sorted(PARQUET_SUFFIXES | set(GDAL_DRIVERS))
        raise ValueError(f"Unsupported output format '{suffix}', expected one of: {supported}")
    logger.info(f"Wrote {len(collection)} features to {path}")
    return path
