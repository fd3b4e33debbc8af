"""Great-circle distance helpers"""

from typing import Iterable, Tuple

from geopy.distance import great_circle


def distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Spherical (Haversine) distance in meters between two coordinates"""
    return great_circle((lat1, lng1), (lat2, lng2)).meters


def centroid(points: Iterable[Tuple[float, float]]) -> Tuple[float, float]:
    """Arithmetic mean of (lat, lng) pairs; fine over city-sized areas"""
    pts = list(points)
    if not pts:
        raise ValueError("centroid of empty point set")
    return sum(p[0] for p in pts) / len(pts), sum(p[1] for p in pts) / len(pts)
