"""
Shared validation utilities for overlay operations.

Schema-level checks run before any geometry work starts so that
configuration mistakes fail fast instead of surfacing halfway through a
batch.
"""
from __future__ import annotations

from typing import Iterable, Mapping, Optional, Set, Union

import pandas as pd

from .errors import MissingAttributeError


def validate_attribute_schema(
    df: pd.DataFrame,
    required_columns: Iterable[str],
    source: Optional[str] = None
) -> None:
    """
    Validate that a frame has all required attribute columns.

    Args:
        df: DataFrame to validate
        required_columns: Column names that must be present
        source: Optional label for the frame (for error messages)

    Raises:
        MissingAttributeError: if any required columns are missing
    """
    geometry_name = getattr(df, "_geometry_column_name", None)
    available = {c for c in df.columns if c != geometry_name}
    missing = set(required_columns) - available
    if missing:
        err = MissingAttributeError(missing, available)
        if source:
            err.args = (f"{err.args[0]} (in {source})",)
        raise err


def validate_numeric(df: pd.DataFrame, columns: Iterable[str]) -> None:
    """
    Validate that columns hold numeric values (missing values allowed).

    Raises:
        ValueError: if a column is not numeric
    """
    bad = []
    for col in columns:
        series = df[col]
        if pd.api.types.is_bool_dtype(series):
            bad.append(col)
        elif pd.api.types.is_numeric_dtype(series):
            continue
        else:
            # object columns of numbers and None are fine
            converted = pd.to_numeric(series, errors="coerce")
            if converted.isna().sum() != series.isna().sum():
                bad.append(col)
    if bad:
        raise ValueError(f"Attributes must be numeric, got non-numeric values in: {sorted(bad)}")


def validate_same_crs(left_crs, right_crs, what: str = "collections") -> None:
    """
    Validate that two CRS definitions agree.

    A missing CRS on both sides is accepted; a missing CRS on one side only is not.

    Raises:
        ValueError: if the CRS differ
    """
    if left_crs is None and right_crs is None:
        return
    if left_crs is None or right_crs is None or left_crs != right_crs:
        raise ValueError(f"CRS mismatch between {what}: {left_crs} != {right_crs}")


def resolve_extensive(
    attributes: Iterable[str],
    extensive: Union[bool, Mapping[str, bool]]
) -> dict:
    """
    Expand the per-call intensive/extensive flag to one bool per attribute.

    Args:
        attributes: Requested attribute names
        extensive: A single bool for all attributes, or a mapping per attribute

    Returns:
        dict of attribute -> bool

    Raises:
        ValueError: if the mapping does not cover every requested attribute
    """
    attributes = list(attributes)
    if isinstance(extensive, bool):
        return {a: extensive for a in attributes}
    missing = set(attributes) - set(extensive)
    if missing:
        raise ValueError(f"No intensive/extensive flag given for: {sorted(missing)}")
    return {a: bool(extensive[a]) for a in attributes}


def enforce_float_types(df: pd.DataFrame, columns: Set[str]) -> pd.DataFrame:
    """
    Cast the given columns to float64, returning a copy only if needed.

    Missing values become NaN.
    """
    result = df
    for col in columns:
        if col in df.columns and df[col].dtype != "float64":
            if result is df:
                result = df.copy()
            result[col] = pd.to_numeric(result[col], errors="coerce").astype("float64")
    return result
