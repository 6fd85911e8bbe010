"""
Scooter Spatial Index
=====================

1. **Spatial Binning** -- every scooter is filed under the H3 hexagon
   (default resolution 9, ~0.1 km² cells) containing its parking spot.
2. **Ring Cover**      -- a radius query looks up the k-ring of cells
   around the caller that is guaranteed to contain the search circle.
3. **Exact Filter**    -- the ledger measures only the candidates with
   the Haversine formula; the index never decides membership itself.

Ring size
---------
With R = circumradius of the caller's cell, any scooter within ``radius``
sits in a cell whose centre is at most ``radius + 2R`` from the caller's
cell centre.  A k-ring covers every centre closer than ``1.5 x k x R``,
so ``k = ceil((radius + 2R) / 1.5R) + 1`` (one ring of slack for cell
size distortion).

Complexity
----------
* add / move:           O(1)
* candidates:           O(k² + m) -- m = scooters in the covered cells

When the ring would exceed ``max_ring`` (or the radius is infinite) the
index gives up and the caller scans the whole fleet.
"""

from __future__ import annotations

import math
import threading
from collections import defaultdict
from typing import Optional

import h3

from .distance import haversine_km
from .entities import Location


def location_cell(location: Location, resolution: int = 9) -> str:
    """Map a geo-point to an H3 hexagonal cell index.  O(1)."""
    return h3.latlng_to_cell(location.latitude, location.longitude, resolution)


def cell_circumradius_m(cell: str) -> float:
    """Largest centre-to-vertex distance of *cell*, in metres."""
    c_lat, c_lng = h3.cell_to_latlng(cell)
    return max(
        haversine_km(c_lat, c_lng, v_lat, v_lng) * 1_000.0
        for v_lat, v_lng in h3.cell_to_boundary(cell)
    )


def covering_ring_size(radius_m: float, circumradius_m: float) -> int:
    return math.ceil((radius_m + 2 * circumradius_m) / (1.5 * circumradius_m)) + 1


class ScooterGrid:
    def __init__(self, resolution: int = 9, max_ring: int = 40):
        self.resolution = resolution
        self.max_ring = max_ring
        self._cells: dict[str, set[str]] = defaultdict(set)
        self._cell_of: dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._cell_of)

    def add(self, scooter_id: str, location: Location) -> None:
        cell = location_cell(location, self.resolution)
        with self._lock:
            self._discard(scooter_id)
            self._cells[cell].add(scooter_id)
            self._cell_of[scooter_id] = cell

    # re-filing is identical to adding
    move = add

    def candidates(self, location: Location, radius_m: float) -> Optional[set[str]]:
        """Scooter ids that may lie within *radius_m*, or None for "all"."""
        if not math.isfinite(radius_m):
            return None
        origin = location_cell(location, self.resolution)
        k = covering_ring_size(max(radius_m, 0.0), cell_circumradius_m(origin))
        if k > self.max_ring:
            return None

        found: set[str] = set()
        with self._lock:
            for cell in h3.grid_disk(origin, k):
                found.update(self._cells.get(cell, ()))
        return found

    def _discard(self, scooter_id: str) -> None:
        previous = self._cell_of.pop(scooter_id, None)
        if previous is None:
            return
        members = self._cells[previous]
        members.discard(scooter_id)
        if not members:
            del self._cells[previous]
