# nav_config.py
# All tuneable constants in one place.
# Pass a NavConfig instance to every module that needs settings.

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from .models import TransportType


# ---------------------------------------------------------------------------
# Speed constants (used for straight-line estimates)
# ---------------------------------------------------------------------------

WALKING_SPEED_KMH: float = 5.0
BICYCLE_SPEED_KMH: float = 15.0
DRIVING_SPEED_KMH: float = 40.0

DEFAULT_SPEEDS_KMH: Dict[TransportType, float] = {
    TransportType.WALKING:    WALKING_SPEED_KMH,
    TransportType.BICYCLE:    BICYCLE_SPEED_KMH,
    TransportType.AUTOMOBILE: DRIVING_SPEED_KMH,
}


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class NavConfig:
    transport_type: TransportType = TransportType.AUTOMOBILE
    speeds_kmh: Dict[TransportType, float] = field(
        default_factory=lambda: dict(DEFAULT_SPEEDS_KMH)
    )

    # Off-route detection
    off_route_threshold_m: float = 50.0
    off_route_confirm_samples: int = 3          # consecutive samples to confirm
    off_route_confirm_s: Optional[float] = None # or sustained seconds (>= 2 samples)

    # Arrival
    arrival_threshold_m: float = 40.0
    auto_continue: bool = True                  # advance to next leg after arrival
    arrival_dwell_s: float = 0.0

    # Route computation
    route_timeout_s: float = 10.0
    route_max_attempts: int = 3
    route_retry_base_delay_s: float = 0.5
    route_retry_multiplier: float = 2.0
    route_retry_max_delay_s: float = 8.0
    compute_overview: bool = True               # all legs, for summary use

    # Location feed
    location_stale_after_s: Optional[float] = 30.0
    location_retry_delay_s: float = 1.0
    max_fix_accuracy_m: Optional[float] = None  # drop fixes worse than this

    # Route provider
    osrm_base_url: str = "http://localhost:5000"

    # Logging
    log_dir: str = "."                          # directory for saved JSON files
    route_filename: str = "active_route.json"
    journal_filename: str = "nav_session.jsonl"

    @property
    def speed_mps(self) -> float:
        """Assumed average speed for the current transport type."""
        return self.speeds_kmh[self.transport_type] * 1000 / 3600

    @property
    def route_filepath(self) -> str:
        return os.path.join(self.log_dir, self.route_filename)

    @property
    def journal_filepath(self) -> str:
        return os.path.join(self.log_dir, self.journal_filename)
