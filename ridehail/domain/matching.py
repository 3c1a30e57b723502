"""
Radius Dispatch Matching
========================

1. **Spatial Binning**   -- every driver location ping stores the H3 cell
   (resolution 7, ~5.16 km²) of the new position.
2. **Coarse Prefilter**  -- at request time the pickup cell is expanded
   into a k-ring that fully covers the search radius; only drivers in
   those cells are loaded.
3. **Exact Filter**      -- online, location known, haversine distance to
   the pickup <= radius (boundary inclusive), vehicle class compatible.

The k-ring is sized from the average hexagon edge with a 2x margin, so
it over-covers the circle; the prefilter can only add false positives,
which step 3 removes.

Complexity
----------
Let D = drivers in the k-ring cells.

* Prefilter:  O(k^2) cells, one indexed IN query
* Filter:     O(D)
"""

from __future__ import annotations

import math
from typing import Optional

import h3

from .distance import haversine_km
from .enums import VehicleType


def location_h3_cell(lat: float, lng: float, resolution: int = 7) -> str:
    """Map a geo-point to an H3 hexagonal cell index.  O(1)."""
    return h3.latlng_to_cell(lat, lng, resolution)


def ring_size_for_radius(radius_km: float, resolution: int = 7) -> int:
    """Smallest k whose k-ring safely covers *radius_km* around a cell."""
    edge_km = h3.average_hexagon_edge_length(resolution, unit="km")
    # neighbouring centres are sqrt(3) * edge apart; halve it for distortion
    step_km = math.sqrt(3) * edge_km / 2
    return max(1, math.ceil(radius_km / step_km) + 1)


def search_cells(
    lat: float, lng: float, radius_km: float, resolution: int = 7
) -> set[str]:
    origin = location_h3_cell(lat, lng, resolution)
    return set(h3.grid_disk(origin, ring_size_for_radius(radius_km, resolution)))


def is_candidate(
    *,
    is_online: Optional[bool],
    driver_lat: Optional[float],
    driver_lng: Optional[float],
    driver_vehicle_type: Optional[VehicleType],
    pickup_lat: float,
    pickup_lng: float,
    radius_km: float,
    vehicle_type: Optional[VehicleType] = None,
) -> bool:
    """Exact candidate predicate applied after the H3 prefilter."""
    if not is_online:
        return False
    if driver_lat is None or driver_lng is None:
        return False
    if vehicle_type is not None and driver_vehicle_type != vehicle_type:
        return False
    distance = haversine_km(
        pickup_lat, pickup_lng, float(driver_lat), float(driver_lng)
    )
    return distance <= radius_km
