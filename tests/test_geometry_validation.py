"""
Test Geometry Provider and Validation Helpers

Validates the shapely-backed primitives (intersect, area, union), the
polygon hygiene checks, and the schema checks run before overlays.
"""
import pandas as pd
import pytest
from shapely.geometry import LineString, Point, Polygon, box

from sdsoverlay import MissingAttributeError
from sdsoverlay.geometry_utils import (
    area,
    intersect,
    is_collapsed,
    is_degenerate,
    polygon_problem,
    polygon_problems,
    union,
)
from sdsoverlay.validation import (
    enforce_float_types,
    resolve_extensive,
    validate_attribute_schema,
    validate_numeric,
    validate_same_crs,
)


class TestOverlayProvider:

    def test_intersect_and_area(self):
        piece = intersect(box(0, 0, 2, 2), box(1, 1, 3, 3))
        assert area(piece) == pytest.approx(1.0)
        assert intersect(box(0, 0, 1, 1), box(5, 5, 6, 6)).is_empty

    def test_area_of_nothing(self):
        assert area(None) == 0.0
        assert area(Polygon()) == 0.0

    def test_union_dissolves(self):
        merged = union([box(0, 0, 1, 1), box(1, 0, 2, 1), None])
        assert merged.geom_type == "Polygon"
        assert merged.area == pytest.approx(2.0)
        assert union([]).is_empty


class TestPolygonChecks:

    def test_usable(self):
        assert polygon_problem(box(0, 0, 1, 1)) is None

    def test_missing_and_non_polygonal(self):
        assert polygon_problem(None) == "missing geometry"
        assert "Point" in polygon_problem(Point(0, 0))
        assert "LineString" in polygon_problem(LineString([(0, 0), (1, 1)]))

    def test_invalid(self):
        crossed = Polygon([(0, 0), (2, 2), (2, 0), (0, 1), (0, 0)])
        reason = polygon_problem(crossed)
        assert reason is not None and "Self-intersection" in reason

    def test_cancelling_lobes_are_invalid(self):
        bowtie = Polygon([(0, 0), (1, 1), (1, 0), (0, 1), (0, 0)])
        assert bowtie.area == pytest.approx(0.0)
        assert not is_collapsed(bowtie)
        assert "Self-intersection" in polygon_problem(bowtie)

    def test_degenerate_left_to_caller(self):
        flat = Polygon([(0, 0), (1, 0), (0.5, 0), (0, 0)])
        assert is_degenerate(flat)
        assert is_collapsed(flat)
        assert polygon_problem(flat) is None

    def test_positions(self):
        geoms = [box(0, 0, 1, 1), Point(0, 0), None]
        assert [i for i, _ in polygon_problems(geoms)] == [1, 2]


class TestValidation:

    def test_missing_attributes(self):
        df = pd.DataFrame({"a": [1], "b": [2]})
        validate_attribute_schema(df, ["a"])
        with pytest.raises(MissingAttributeError) as exc:
            validate_attribute_schema(df, ["a", "c"], source="source")
        assert "c" in str(exc.value) and "source" in str(exc.value)
        assert isinstance(exc.value, KeyError)

    def test_numeric(self):
        df = pd.DataFrame({
            "x": [1.0, None],
            "o": pd.Series([1, None], dtype="object"),
            "s": ["a", "b"],
            "flag": [True, False],
        })
        validate_numeric(df, ["x", "o"])
        with pytest.raises(ValueError):
            validate_numeric(df, ["s"])
        with pytest.raises(ValueError):
            validate_numeric(df, ["flag"])

    def test_same_crs(self):
        validate_same_crs(None, None)
        with pytest.raises(ValueError):
            validate_same_crs("EPSG:3857", None)

    def test_resolve_extensive(self):
        assert resolve_extensive(["a", "b"], True) == {"a": True, "b": True}
        assert resolve_extensive(["a"], {"a": False, "z": True}) == {"a": False}
        with pytest.raises(ValueError):
            resolve_extensive(["a", "b"], {"a": True})

    def test_enforce_float_types(self):
        df = pd.DataFrame({"x": [1.0], "i": [1]})
        assert enforce_float_types(df, {"x"}) is df
        cast = enforce_float_types(df, {"i"})
        assert cast["i"].dtype == "float64"
        assert df["i"].dtype == "int64"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
