"""
Feature data model and attribute-geometry relationships.
"""
from .agr import AGR, check_agr, propagate_agr
from .schema import Feature, FeatureCollection

__all__ = ["AGR", "Feature", "FeatureCollection", "check_agr", "propagate_agr"]
