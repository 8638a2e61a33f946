# nav_logger.py
# Handles all file I/O for the navigation system.
# Saves routes and navigation events as JSON.

import json
import os
import logging
from datetime import datetime
from typing import Optional

from .models import ProgressResult, Route
from .nav_config import NavConfig

# Standard Python logger: configure at app entry point if needed
logger = logging.getLogger(__name__)


class NavLogger:
    """
    Persists the active route and guidance events to JSON files.

    Args:
        config: NavConfig instance for file paths and directories.
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        os.makedirs(self.config.log_dir, exist_ok=True)

    # ------------------------------------------------------------------
    # Route persistence
    # ------------------------------------------------------------------

    def save_route(self, route: Route) -> bool:
        """
        Serialize a route to JSON.

        Args:
            route: Route to save.

        Returns:
            True on success, False on failure.
        """
        filepath = self.config.route_filepath
        try:
            data = {
                "saved_at": datetime.now().isoformat(),
                "step_count": len(route.steps),
                "route": route.to_dict(),
            }
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            logger.info(f"Route saved to {filepath} ({len(route.steps)} steps).")
            return True
        except OSError as e:
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
            logger.info(f"Route loaded from {path} ({len(route.steps)} steps).")
            return route
        except (OSError, KeyError, ValueError, TypeError) as e:
            logger.error(f"Failed to load route from {path}: {e}")
            return None

    # ------------------------------------------------------------------
    # Session event logging
    # ------------------------------------------------------------------

    def log_event(self, result: ProgressResult) -> None:
        """
        Append a single guidance event to the session log file.

        Args:
            result: ProgressResult published by the navigator.
        """
        entry = {"timestamp": datetime.now().isoformat()}
        if result.position is not None:
            entry["lat"] = result.position.lat
            entry["lon"] = result.position.lon
        entry.update(result.to_dict())
        try:
            with open(self.config.events_filepath, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.error(f"Failed to write event log: {e}")
