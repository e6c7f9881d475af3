# nav_logger.py
# Handles all file I/O for the navigation engine.
# Saves the active route as JSON and journals every snapshot as JSONL.

import json
import os
import logging
from datetime import datetime
from typing import Callable, Optional

from .models import NavigationState, Route
from .nav_config import NavConfig

# Standard Python logger; configured at the app entry point
logger = logging.getLogger(__name__)


class NavLogger:
    """
    Persists route data and navigation snapshots to JSON files.

    Attach it to a session to record a journal of the drive:

        nav_log = NavLogger(config)
        nav_log.attach(session)

    Args:
        config: NavConfig instance for file paths and directories.
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        os.makedirs(self.config.log_dir, exist_ok=True)
        self._saved_route: Optional[Route] = None

    def attach(self, session) -> Callable[[], None]:
        """Journal every snapshot a NavigationSession publishes."""
        return session.add_listener(self.on_state)

    def on_state(self, state: NavigationState) -> None:
        route = state.current_route
        if route is not None and route is not self._saved_route:
            self.save_route(route)
            self._saved_route = route
        self.log_event(state)

    # ------------------------------------------------------------------
    # Route persistence
    # ------------------------------------------------------------------

    def save_route(self, route: Route) -> bool:
        """
        Serialize a route to JSON.

        Args:
            route: Route of the active leg.

        Returns:
            True on success, False on failure.
        """
        filepath = self.config.route_filepath
        try:
            data = {
                "saved_at": datetime.now().isoformat(),
                "maneuver_count": len(route.maneuvers),
                "route": route.to_dict(),
            }
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            logger.info(f"Route saved to {filepath} ({route.distance_m:.0f} m).")
            return True
        except IOError as e:
            logger.error(f"Failed to save route to {filepath}: {e}")
            return False

    def load_route(self, filepath: Optional[str] = None) -> Optional[Route]:
        """
        Load a previously saved route from JSON.

        Args:
            filepath: Path override; uses config default if omitted.

        Returns:
            Route, or None if loading failed.
        """
        path = filepath or self.config.route_filepath
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            route = Route.from_dict(data["route"])
            logger.info(f"Route loaded from {path} ({len(route.path)} points).")
            return route
        except (IOError, KeyError, ValueError) as e:
            logger.error(f"Failed to load route from {path}: {e}")
            return None

    # ------------------------------------------------------------------
    # Session event logging
    # ------------------------------------------------------------------

    def log_event(self, state: NavigationState) -> None:
        """
        Append a single snapshot to the session journal.

        Args:
            state: Published NavigationState.
        """
        entry = {"logged_at": datetime.now().isoformat()}
        entry.update(state.to_dict())
        try:
            with open(self.config.journal_filepath, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except IOError as e:
            logger.error(f"Failed to write event log: {e}")
