"""
Geodesic Distance Helpers
=========================

Point-to-polyline distance in metres for GPS matching.

Method:
    Vertices are projected onto a local equirectangular plane centred on
    the query point:

        x = R · Δλ · cos(φ₀)
        y = R · Δφ

    and the nearest point is found edge by edge in that plane. Over the
    tens-of-metres distances the matcher cares about, the projection
    error is far below GPS noise.

    Polyline length and point-to-point distances use the haversine
    formula.

Note:
    Segments crossing the antimeridian are not supported.
"""

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np


# Mean Earth radius (metres)
EARTH_RADIUS_METERS = 6371008.8


@dataclass(frozen=True, slots=True)
class PolylineProjection:
    """
    Nearest point on a polyline to a query point.

    Attributes:
        distance_meters: Distance from the query point to the polyline
        position_fraction: Position of the nearest point along the
            polyline's cumulative length, in [0, 1]
        edge_index: Index of the polyline edge holding the nearest point
    """

    distance_meters: float
    position_fraction: float
    edge_index: int


def haversine_meters(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """
    Great-circle distance between two WGS84 points.

    Returns:
        Distance in metres
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(a)))


def polyline_length_meters(coordinates: Sequence[Tuple[float, float]]) -> float:
    """Total haversine length of a (lon, lat) polyline."""
    total = 0.0
    for (lon1, lat1), (lon2, lat2) in zip(coordinates, coordinates[1:]):
        total += haversine_meters(lat1, lon1, lat2, lon2)
    return total


def project_onto_polyline(
    latitude: float,
    longitude: float,
    coordinates: Sequence[Tuple[float, float]],
) -> PolylineProjection:
    """
    Find the nearest point on a polyline to a GPS point.

    Args:
        latitude: Query point latitude
        longitude: Query point longitude
        coordinates: Polyline (lon, lat) pairs, at least two

    Returns:
        PolylineProjection with distance and fractional position

    Raises:
        ValueError: If fewer than two coordinates are given
    """
    if len(coordinates) < 2:
        raise ValueError("Polyline must have at least 2 coordinates")

    coords = np.asarray(coordinates, dtype=float)
    cos_lat = math.cos(math.radians(latitude))

    # Local plane in metres, query point at the origin
    xs = EARTH_RADIUS_METERS * np.radians(coords[:, 0] - longitude) * cos_lat
    ys = EARTH_RADIUS_METERS * np.radians(coords[:, 1] - latitude)

    ax, ay = xs[:-1], ys[:-1]
    dx, dy = xs[1:] - ax, ys[1:] - ay

    edge_len_sq = dx * dx + dy * dy
    edge_len = np.sqrt(edge_len_sq)

    # Parameter of the foot of the perpendicular from the origin, clamped
    # to the edge; zero-length edges collapse to their start vertex
    with np.errstate(divide="ignore", invalid="ignore"):
        t = np.where(edge_len_sq > 0, -(ax * dx + ay * dy) / edge_len_sq, 0.0)
    t = np.clip(t, 0.0, 1.0)

    distances = np.hypot(ax + t * dx, ay + t * dy)
    best = int(np.argmin(distances))

    cumulative = np.concatenate(([0.0], np.cumsum(edge_len)))
    total_length = float(cumulative[-1])
    along = float(cumulative[best] + t[best] * edge_len[best])

    position = along / total_length if total_length > 0 else 0.0

    return PolylineProjection(
        distance_meters=float(distances[best]),
        position_fraction=min(1.0, max(0.0, position)),
        edge_index=best,
    )
