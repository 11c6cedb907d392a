"""
Test Spatial Join, Summarise, Aggregate and Intersection

Validates the attribute-carrying overlay helpers:
- join keeps left geometries in left order, left/inner semantics, largest overlap
- colliding names get suffixes, right AGR tags are propagated
- summarise dissolves shared boundaries of each group
- aggregate reports one feature per grouping polygon, counts of 0 for empty groups
"""
import math

import pytest
from shapely.geometry import Point, box

from sdsoverlay import (
    AGR,
    FeatureCollection,
    MissingAttributeError,
    UnresolvedAGRWarning,
    aggregate,
    areas,
    intersection,
    spatial_join,
    summarise,
)

CRS = "EPSG:3857"


def squares(**agr) -> FeatureCollection:
    """Squares A=[0,1]x[0,1] and B=[1,2]x[0,1]."""
    tags = {"name": AGR.IDENTITY, "pop": AGR.AGGREGATE}
    tags.update(agr)
    return FeatureCollection.from_records(
        [
            (box(0, 0, 1, 1), {"name": "A", "pop": 100}),
            (box(1, 0, 2, 1), {"name": "B", "pop": 40}),
        ],
        crs=CRS,
        agr=tags,
    )


def points(records) -> FeatureCollection:
    return FeatureCollection.from_records(
        [(Point(x, y), attrs) for (x, y), attrs in records],
        crs=CRS,
        agr={name: AGR.CONSTANT for _, attrs in records for name in attrs},
    )


def column(fc: FeatureCollection, name: str) -> list:
    return [attrs[name] for _, attrs in fc.to_records()]


class TestSpatialJoin:
    """Predicate joins between two collections."""

    def test_left_join_keeps_unmatched(self):
        left = points([((0.5, 0.5), {"pid": 1}), ((5, 5), {"pid": 2}), ((1.5, 0.5), {"pid": 3})])
        joined = spatial_join(left, squares(), "within")
        assert column(joined, "pid") == [1, 2, 3]
        assert column(joined, "name") == ["A", None, "B"]
        assert joined.geometry.iloc[1].equals(Point(5, 5))

    def test_inner_join_drops_unmatched(self):
        left = points([((0.5, 0.5), {"pid": 1}), ((5, 5), {"pid": 2})])
        joined = spatial_join(left, squares(), "within", inner=True)
        assert column(joined, "pid") == [1]
        assert column(joined, "pop") == [100]

    def test_one_row_per_match_in_right_order(self):
        left = FeatureCollection.from_records([(box(0.5, 0, 1.5, 1), {"t": "x"})], crs=CRS, agr={"t": "identity"})
        joined = spatial_join(left, squares())
        assert len(joined) == 2
        assert column(joined, "name") == ["A", "B"]
        assert all(g.equals(box(0.5, 0, 1.5, 1)) for g in joined.geometry)

    def test_largest_overlap(self):
        left = FeatureCollection.from_records(
            [(box(0.2, 0, 1.5, 1), {"t": "x"}), (box(0.8, 0, 2, 1), {"t": "y"})],
            crs=CRS,
            agr={"t": "identity"},
        )
        joined = spatial_join(left, squares(), largest=True)
        assert column(joined, "t") == ["x", "y"]
        assert column(joined, "name") == ["A", "B"]

    def test_largest_tie_keeps_first(self):
        left = FeatureCollection.from_records([(box(0.5, 0, 1.5, 1), {"t": "x"})], crs=CRS, agr={"t": "identity"})
        joined = spatial_join(left, squares(), largest=True)
        assert column(joined, "name") == ["A"]

    def test_suffixes_on_collision(self):
        left = FeatureCollection.from_records([(box(0.2, 0.2, 0.4, 0.4), {"name": "small"})], crs=CRS, agr={"name": "identity"})
        joined = spatial_join(left, squares())
        assert joined.attributes == ["name.x", "name.y", "pop"]
        assert column(joined, "name.x") == ["small"]
        assert column(joined, "name.y") == ["A"]
        custom = spatial_join(left, squares(), suffixes=("_l", "_r"))
        assert "name_l" in custom.attributes and "name_r" in custom.attributes

    def test_agr_of_right_side_propagated(self):
        left = points([((0.5, 0.5), {"pid": 1})])
        joined = spatial_join(left, squares())
        assert joined.agr["pid"] is AGR.CONSTANT
        assert joined.agr["name"] is AGR.CONSTANT
        assert joined.agr["pop"] is AGR.AGGREGATE

    def test_untagged_right_attribute_warns(self):
        left = points([((0.5, 0.5), {"pid": 1})])
        with pytest.warns(UnresolvedAGRWarning):
            spatial_join(left, squares(pop=None))

    def test_dwithin(self):
        left = points([((2.5, 0.5), {"pid": 1})])
        with pytest.raises(ValueError):
            spatial_join(left, squares(), "dwithin")
        joined = spatial_join(left, squares(), "dwithin", distance=1.0)
        assert column(joined, "name") == ["B"]

    def test_unknown_predicate(self):
        with pytest.raises(ValueError):
            spatial_join(points([((0, 0), {"pid": 1})]), squares(), "near")

    def test_crs_mismatch(self):
        left = FeatureCollection.from_records([(Point(0, 0), {"pid": 1})], crs="EPSG:4326", agr={"pid": "constant"})
        with pytest.raises(ValueError):
            spatial_join(left, squares())


class TestSummarise:
    """Grouping by attribute values with dissolve."""

    def regions(self, **agr) -> FeatureCollection:
        tags = {"state": AGR.IDENTITY, "pop": AGR.AGGREGATE}
        tags.update(agr)
        return FeatureCollection.from_records(
            [
                (box(0, 0, 1, 1), {"state": "A", "pop": 1}),
                (box(1, 0, 2, 1), {"state": "A", "pop": 2}),
                (box(5, 5, 6, 6), {"state": "B", "pop": 7}),
            ],
            crs=CRS,
            agr=tags,
        )

    def test_adjacent_squares_dissolve(self):
        out = summarise(self.regions(), "state", {"pop": "sum"})
        assert column(out, "state") == ["A", "B"]
        assert column(out, "pop") == [3, 7]
        merged = out.geometry.iloc[0]
        assert merged.geom_type == "Polygon"
        assert merged.area == pytest.approx(2.0)
        assert list(areas(out)) == [pytest.approx(2.0), pytest.approx(1.0)]

    def test_tags(self):
        out = summarise(self.regions(), "state", {"pop": "max"})
        assert out.agr == {"state": AGR.IDENTITY, "pop": AGR.AGGREGATE}
        assert column(out, "pop") == [2, 7]

    def test_callable_reducer(self):
        out = summarise(self.regions(), ["state"], {"pop": lambda s: s.max() - s.min()})
        assert column(out, "pop") == [1, 0]

    def test_untagged_warns(self):
        with pytest.warns(UnresolvedAGRWarning):
            summarise(self.regions(pop=None), "state", {"pop": "sum"})

    def test_missing_attribute(self):
        with pytest.raises(MissingAttributeError):
            summarise(self.regions(), "county", {"pop": "sum"})


class TestAggregate:
    """Grouping by a second polygon collection."""

    def sample(self) -> FeatureCollection:
        return points([
            ((0.2, 0.5), {"v": 2.0, "sid": 1}),
            ((0.7, 0.5), {"v": 4.0, "sid": 2}),
            ((1.5, 0.5), {"v": 9.0, "sid": 3}),
        ])

    def grid(self) -> FeatureCollection:
        return FeatureCollection.from_records(
            [(box(0, 0, 1, 1), {}), (box(1, 0, 2, 1), {}), (box(3, 0, 4, 1), {})],
            crs=CRS,
        )

    def test_one_feature_per_polygon(self):
        out = aggregate(self.sample(), self.grid(), {"v": "mean", "sid": "count"})
        assert len(out) == 3
        assert column(out, "v")[:2] == [pytest.approx(3.0), pytest.approx(9.0)]
        assert column(out, "v")[2] is None
        assert column(out, "sid") == [2, 1, 0]
        assert out.geometry.iloc[2].equals(box(3, 0, 4, 1))
        assert out.agr == {"v": AGR.AGGREGATE, "sid": AGR.AGGREGATE}

    def test_empty_group_is_missing(self):
        out = aggregate(self.sample(), self.grid(), {"v": "sum"})
        assert math.isnan(out.frame["v"].iloc[2])

    def test_missing_attribute(self):
        with pytest.raises(MissingAttributeError):
            aggregate(self.sample(), self.grid(), {"nope": "sum"})


class TestIntersection:
    """Pairwise intersections keep the attributes of both sides."""

    def test_pieces_and_attributes(self):
        x = FeatureCollection.from_records([(box(0, 0, 2, 2), {"a": 1})], crs=CRS, agr={"a": "identity"})
        y = FeatureCollection.from_records(
            [(box(1, 1, 3, 3), {"b": 2}), (box(5, 5, 6, 6), {"b": 3})],
            crs=CRS,
            agr={"b": "constant"},
        )
        out = intersection(x, y)
        assert len(out) == 1
        assert out.geometry.iloc[0].area == pytest.approx(1.0)
        assert out.to_records()[0][1] == {"a": 1, "b": 2}
        assert out.agr == {"a": AGR.CONSTANT, "b": AGR.CONSTANT}

    def test_shared_names_suffixed(self):
        x = FeatureCollection.from_records([(box(0, 0, 2, 2), {"id": 1})], crs=CRS, agr={"id": "identity"})
        y = FeatureCollection.from_records([(box(1, 1, 3, 3), {"id": 2})], crs=CRS, agr={"id": "identity"})
        out = intersection(x, y)
        assert out.attributes == ["id_1", "id_2"]

    def test_empty_input(self):
        x = FeatureCollection.from_records([(box(0, 0, 2, 2), {"a": 1})], crs=CRS, agr={"a": "identity"})
        y = FeatureCollection.from_records([], crs=CRS)
        out = intersection(x, y)
        assert len(out) == 0

    def test_empty_input_keeps_schema_and_tags(self):
        x = FeatureCollection.from_records([(box(0, 0, 2, 2), {"id": 1, "a": 1})], crs=CRS, agr={"id": "identity", "a": "constant"})
        y = FeatureCollection.from_records([(box(1, 1, 3, 3), {"id": 2})], crs=CRS, agr={"id": "identity"})
        full = intersection(x, y)
        empty = intersection(x, FeatureCollection(y.frame.iloc[0:0], agr=y.agr))
        assert len(empty) == 0
        assert empty.attributes == full.attributes
        assert empty.agr == full.agr == {"id_1": AGR.CONSTANT, "a": AGR.CONSTANT, "id_2": AGR.CONSTANT}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
