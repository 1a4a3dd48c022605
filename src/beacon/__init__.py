"""Beacon.

Runs multi-stage prompt workflows against the `claude` CLI with:
- configuration loaded from `.env`
- structured logging
- SQLite persistence of runs, stages and notes
"""

__version__ = "0.1.0"

from beacon.config import BeaconSettings

__all__ = ["__version__", "BeaconSettings"]
