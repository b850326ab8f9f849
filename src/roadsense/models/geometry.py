"""
Geometry Models
===============

Road network geometry consumed by the segment matcher.

Design Philosophy:
    Road segments are EXPLICITLY DECLARED polylines, drawn by hand or
    imported from an external catalog. The analysis core never edits
    them; it only reads the coordinates and the bounding box stored
    alongside them.

Supported Geometries:
    - GeoPoint: WGS84 latitude/longitude pair
    - BoundingBox: Axis-aligned box in degrees
    - RoadSegment: Polyline of (lon, lat) pairs with its bounding box

Example Segment (GeoJSON-style coordinates):
    {
        "id": "main_st_north",
        "name": "Main St (northbound)",
        "coordinates": [[-122.4194, 37.7749], [-122.4190, 37.7760]]
    }

Note:
    Coordinates are in GeoJSON order: (longitude, latitude). Points
    passed to the matcher use named fields to avoid mixing the two up.
"""

from typing import Any, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator


Coordinate = Tuple[float, float]


class GeoPoint(BaseModel):
    """
    WGS84 point.

    Attributes:
        latitude: Degrees north
        longitude: Degrees east
    """

    latitude: float = Field(..., description="Latitude in degrees")
    longitude: float = Field(..., description="Longitude in degrees")


class BoundingBox(BaseModel):
    """
    Axis-aligned bounding box in degrees.

    Containment is inclusive on every edge.
    """

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    class Config:
        """Pydantic model configuration."""

        frozen = True

    def contains(self, latitude: float, longitude: float) -> bool:
        """Check whether a point lies inside the box, edges included."""
        return (
            self.min_lat <= latitude <= self.max_lat
            and self.min_lon <= longitude <= self.max_lon
        )


def compute_bounding_box(coordinates: Sequence[Coordinate]) -> BoundingBox:
    """
    Compute the bounding box of a (lon, lat) coordinate list.

    Args:
        coordinates: Ordered (longitude, latitude) pairs

    Returns:
        BoundingBox exactly bounding the coordinates

    Raises:
        ValueError: If coordinates is empty
    """
    if not coordinates:
        raise ValueError("Cannot compute bounding box of empty coordinates")

    lons = [c[0] for c in coordinates]
    lats = [c[1] for c in coordinates]

    return BoundingBox(
        min_lat=min(lats),
        max_lat=max(lats),
        min_lon=min(lons),
        max_lon=max(lons),
    )


class RoadSegment(BaseModel):
    """
    Immutable road segment polyline.

    The bounding box is derived from the coordinates when the segment is
    built. A bounding box supplied by the caller must match the one
    computed from the coordinates, otherwise the segment is rejected.

    Attributes:
        id: Unique segment identifier
        name: Optional human-readable name
        coordinates: Ordered (lon, lat) pairs, at least two
        bbox: Bounding box of the coordinates
    """

    id: str = Field(..., min_length=1, description="Unique segment identifier")

    name: Optional[str] = Field(default=None, description="Human-readable name")

    coordinates: List[Coordinate] = Field(
        ...,
        min_length=2,
        description="Ordered (longitude, latitude) pairs (minimum 2)",
    )

    bbox: BoundingBox = Field(..., description="Bounding box of the coordinates")

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @model_validator(mode="before")
    @classmethod
    def derive_bbox(cls, data: Any) -> Any:
        """Fill in the bounding box from the coordinates when missing."""
        if isinstance(data, dict) and data.get("bbox") is None:
            coordinates = data.get("coordinates")
            try:
                pairs = [(float(c[0]), float(c[1])) for c in coordinates or []]
            except (TypeError, ValueError, IndexError):
                # Malformed coordinates are reported by field validation
                return data
            if pairs:
                data = dict(data)
                data["bbox"] = compute_bounding_box(pairs)
        return data

    @field_validator("coordinates")
    @classmethod
    def validate_coordinates(cls, v: List[Coordinate]) -> List[Coordinate]:
        """Ensure every coordinate is within WGS84 range."""
        if len(v) < 2:
            raise ValueError("Segment geometry must have at least 2 coordinates")
        for lon, lat in v:
            if not (-180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0):
                raise ValueError(f"Coordinate out of range: ({lon}, {lat})")
        return v

    @model_validator(mode="after")
    def check_bbox(self) -> "RoadSegment":
        """Ensure the stored bounding box exactly bounds the coordinates."""
        expected = compute_bounding_box(self.coordinates)
        if self.bbox != expected:
            raise ValueError(
                f"Bounding box {self.bbox} does not bound coordinates of "
                f"segment {self.id} (expected {expected})"
            )
        return self

    @classmethod
    def from_geojson(
        cls,
        segment_id: str,
        geometry: dict,
        name: Optional[str] = None,
    ) -> "RoadSegment":
        """
        Build a segment from a GeoJSON LineString geometry.

        Raises:
            ValueError: If the geometry is not a valid LineString
        """
        if not is_valid_line_string(geometry):
            raise ValueError(f"Invalid LineString geometry for segment {segment_id}")
        return cls(
            id=segment_id,
            name=name,
            coordinates=[(c[0], c[1]) for c in geometry["coordinates"]],
        )

    def with_coordinates(self, coordinates: Sequence[Coordinate]) -> "RoadSegment":
        """Return a copy with new geometry and a recomputed bounding box."""
        return RoadSegment(id=self.id, name=self.name, coordinates=list(coordinates))

    def to_geojson(self) -> dict:
        """Export the geometry as a GeoJSON LineString."""
        return {
            "type": "LineString",
            "coordinates": [[lon, lat] for lon, lat in self.coordinates],
        }


def is_valid_line_string(geometry: Any) -> bool:
    """
    Check that an object is a valid GeoJSON LineString.

    Requires at least two positions, each with numeric longitude in
    [-180, 180] and latitude in [-90, 90].
    """
    if not isinstance(geometry, dict):
        return False
    if geometry.get("type") != "LineString":
        return False

    coordinates = geometry.get("coordinates")
    if not isinstance(coordinates, (list, tuple)) or len(coordinates) < 2:
        return False

    for coord in coordinates:
        if not isinstance(coord, (list, tuple)) or len(coord) < 2:
            return False
        lon, lat = coord[0], coord[1]
        if isinstance(lon, bool) or isinstance(lat, bool):
            return False
        if not isinstance(lon, (int, float)) or not isinstance(lat, (int, float)):
            return False
        if lon < -180 or lon > 180 or lat < -90 or lat > 90:
            return False

    return True
