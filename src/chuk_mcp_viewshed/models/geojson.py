"""
GeoJSON models for coverage export.

Positions are [longitude, latitude]; polygon rings are closed.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class PolygonGeometry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["Polygon"] = "Polygon"
    coordinates: list[list[list[float]]] = Field(
        ..., description="Linear rings of [lon, lat] positions, first == last"
    )


class Feature(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["Feature"] = "Feature"
    geometry: PolygonGeometry
    properties: dict = Field(default_factory=dict)


class FeatureCollection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["FeatureCollection"] = "FeatureCollection"
    features: list[Feature] = Field(default_factory=list)
