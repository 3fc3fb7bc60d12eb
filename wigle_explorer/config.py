"""
Pipeline configuration.

Defaults live in DEFAULT_SETTINGS; an optional JSON settings file (argument
or WIGLE_EXPLORER_SETTINGS) is deep-merged over them.
"""

import copy
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

SETTINGS_ENV = "WIGLE_EXPLORER_SETTINGS"

DEFAULT_SETTINGS = {
    "limits": {
        "chunk_size": 2000,
        "max_observation_samples": 30000,
        "max_heatmap_points": 100000,
        "max_markers": 200000
    },
    "analysis": {
        "grid_size_deg": 0.01,
        "sighting_epsilon_deg": 0.001,
        "top_signal_count": 10,
        "top_sightings_count": 8,
        "max_patterns": 6,
        "max_findings": 5
    }
}


def _deep_update(dst: dict, src: dict) -> dict:
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            _deep_update(dst[k], v)
        else:
            dst[k] = v
    return dst


@dataclass
class ExplorerConfig:
    """Tunable limits and analysis parameters"""
    chunk_size: int = 2000
    max_observation_samples: int = 30000
    max_heatmap_points: int = 100000
    max_markers: int = 200000
    grid_size_deg: float = 0.01
    sighting_epsilon_deg: float = 0.001
    top_signal_count: int = 10
    top_sightings_count: int = 8
    max_patterns: int = 6
    max_findings: int = 5

    def __post_init__(self):
        for name in ('chunk_size', 'max_observation_samples', 'max_heatmap_points', 'max_markers'):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.grid_size_deg <= 0 or self.sighting_epsilon_deg <= 0:
            raise ValueError("Grid size and sighting epsilon must be positive")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the nested settings layout"""
        return {
            "limits": {
                "chunk_size": self.chunk_size,
                "max_observation_samples": self.max_observation_samples,
                "max_heatmap_points": self.max_heatmap_points,
                "max_markers": self.max_markers
            },
            "analysis": {
                "grid_size_deg": self.grid_size_deg,
                "sighting_epsilon_deg": self.sighting_epsilon_deg,
                "top_signal_count": self.top_signal_count,
                "top_sightings_count": self.top_sightings_count,
                "max_patterns": self.max_patterns,
                "max_findings": self.max_findings
            }
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExplorerConfig':
        """Create from a (possibly partial) nested settings dict"""
        merged = _deep_update(copy.deepcopy(DEFAULT_SETTINGS), data or {})
        limits = merged.get('limits', {})
        analysis = merged.get('analysis', {})
        return cls(
            chunk_size=int(limits['chunk_size']),
            max_observation_samples=int(limits['max_observation_samples']),
            max_heatmap_points=int(limits['max_heatmap_points']),
            max_markers=int(limits['max_markers']),
            grid_size_deg=float(analysis['grid_size_deg']),
            sighting_epsilon_deg=float(analysis['sighting_epsilon_deg']),
            top_signal_count=int(analysis['top_signal_count']),
            top_sightings_count=int(analysis['top_sightings_count']),
            max_patterns=int(analysis['max_patterns']),
            max_findings=int(analysis['max_findings'])
        )


def load_config(path: Optional[str] = None) -> ExplorerConfig:
    """Load settings from `path` (or $WIGLE_EXPLORER_SETTINGS) merged over the defaults"""
    path = path or os.getenv(SETTINGS_ENV)
    if not path:
        return ExplorerConfig()

    settings_path = Path(path)
    if not settings_path.exists():
        logger.warning(f"Settings file not found: {settings_path} - using defaults")
        return ExplorerConfig()

    try:
        data = json.loads(settings_path.read_text(encoding='utf-8'))
        if not isinstance(data, dict):
            raise ValueError("settings root must be an object")
        config = ExplorerConfig.from_dict(data)
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.warning(f"Failed to load settings from {settings_path}: {e} - using defaults")
        return ExplorerConfig()

    logger.info(f"Loaded settings from {settings_path}")
    return config
