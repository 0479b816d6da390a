from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Coordinate(BaseModel):
    """Geographic point in degrees. Ranges are not validated."""
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class MarkerStyle(BaseModel):
    color: str
    label: str = ""


class PolylineStyle(BaseModel):
    color: str
    line_width: int = 4


class WalkLeg(BaseModel):
    kind: Literal["walk"] = "walk"
    distance_km: float = 0.0
    duration_min: float = 0.0


class RideLeg(BaseModel):
    kind: Literal["ride"] = "ride"
    path: list[Coordinate]
    display_name: str
    route_id: Optional[str] = None
    color: Optional[str] = None  # hex, e.g. "#DA291C"
    distance_km: float = 0.0
    duration_min: float = 0.0


Leg = Annotated[Union[WalkLeg, RideLeg], Field(discriminator="kind")]


class Itinerary(BaseModel):
    legs: list[Leg] = Field(default_factory=list)
    duration_min: float = 0.0
    start_time: Optional[str] = None  # "HH:MM"
    end_time: Optional[str] = None

    @property
    def ride_legs(self) -> list[RideLeg]:
        return [leg for leg in self.legs if isinstance(leg, RideLeg)]


class Viewport(BaseModel):
    """Visible map area as reported by the client."""
    center: Coordinate
    zoom: float
    width: int
    height: int
