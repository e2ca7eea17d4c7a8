"""
Geo Service - distance between candidates and stores.

Coordinates are dicts {"lat": float, "lng": float}.

Max commute by shift:
- Noche / Rotativo: 8 km
- any other turno: 15 km
"""

import math
import numpy as np
from typing import Dict, List, Optional, Tuple

EARTH_RADIUS_KM = 6371.0
NIGHT_SHIFTS = ("Noche", "Rotativo")
NIGHT_MAX_KM = 8
DAY_MAX_KM = 15
DEFAULT_TURNO = "Mañana"


def calculate_distance_km(point1: Dict[str, float], point2: Dict[str, float]) -> float:
    """Haversine distance in kilometers."""
    lat1, lat2 = math.radians(point1["lat"]), math.radians(point2["lat"])
    d_lat = lat2 - lat1
    d_lng = math.radians(point2["lng"] - point1["lng"])

    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distances_km(origin: Dict[str, float], points: List[Dict[str, float]]) -> np.ndarray:
    """Vectorized haversine from one origin to many points."""
    if not points:
        return np.array([])

    lat1 = np.radians(origin["lat"])
    lng1 = np.radians(origin["lng"])
    lat2 = np.radians(np.array([p["lat"] for p in points], dtype=float))
    lng2 = np.radians(np.array([p["lng"] for p in points], dtype=float))

    a = np.sin((lat2 - lat1) / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin((lng2 - lng1) / 2) ** 2
    return EARTH_RADIUS_KM * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def get_max_distance_for_turno(turno: Optional[str]) -> int:
    return NIGHT_MAX_KM if turno in NIGHT_SHIFTS else DAY_MAX_KM


def is_within_acceptable_distance(candidate_coords: Dict[str, float],
                                  store_coords: Dict[str, float],
                                  turno: Optional[str]) -> Tuple[bool, float, int]:
    """Returns (is_acceptable, distance_km rounded to 0.1, max_distance_km)."""
    distance = calculate_distance_km(candidate_coords, store_coords)
    max_distance = get_max_distance_for_turno(turno)
    return distance <= max_distance, round(distance, 1), max_distance


def get_distance_category(distance_km: float, turno: Optional[str]) -> str:
    """'perfect' within half the max, 'acceptable' within the max, else 'far'."""
    max_distance = get_max_distance_for_turno(turno)
    if distance_km <= max_distance * 0.5:
        return "perfect"
    if distance_km <= max_distance:
        return "acceptable"
    return "far"


def sort_vacancies_by_distance(vacancies: List[dict], candidate_coords: Dict[str, float]) -> Dict[str, List[dict]]:
    """
    Split vacancies into near / acceptable / far buckets, closest first.

    Each vacancy may carry `storeCoordinates`; vacancies without them go to
    `far` (after every located vacancy). Adds `distanceKm` to located ones.
    """
    located = [v for v in vacancies if v.get("storeCoordinates")]
    unlocated = [v for v in vacancies if not v.get("storeCoordinates")]

    buckets = {"near": [], "acceptable": [], "far": []}
    distances = distances_km(candidate_coords, [v["storeCoordinates"] for v in located])

    for index in np.argsort(distances, kind="stable"):
        vacancy = located[int(index)]
        distance = float(distances[index])
        category = get_distance_category(distance, vacancy.get("turno") or DEFAULT_TURNO)
        vacancy = {**vacancy, "distanceKm": round(distance, 1)}
        buckets["near" if category == "perfect" else category].append(vacancy)

    buckets["far"].extend(unlocated)
    return buckets


def format_distance(distance_km: float) -> str:
    """0.45 -> '450 m', 3.27 -> '3.3 km'"""
    if distance_km < 1:
        return f"{round(distance_km * 1000)} m"
    return f"{round(distance_km, 1)} km"
