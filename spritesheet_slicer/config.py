"""
Tunable parameters of the frame extraction pipeline.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

from spritesheet_slicer.errors import ConfigError

DECISION_NAMES = ("WHOLE", "TWO", "MANY")


@dataclass(frozen=True)
class ExtractorConfig:
    """
    Read-only settings for one run.

    Attributes:
        alpha_threshold: Pixels with alpha strictly above this are opaque
        padding: Transparent margin added around refined frames
        min_area: Components smaller than this (in pixels) are ignored
        eps: Centroid distance within which a small component may join a larger one
        soft_link_area_ratio: A centroid link needs the smaller area to be at most this share of the larger
        min_samples: Minimum group size for centroid-linked grouping
        merge_gap: Bounding boxes this close (in pixels) always share a frame
        valley_window: Width of the moving average applied to alpha projections
        whole_coverage: Largest-component share of opaque area that makes a sheet WHOLE
        two_gap_iou_max: Maximum IoU between the two main clusters of a TWO sheet
        clear_valley_min: Valley score above which a projection gap counts as clear
        frame_duration: Seconds per frame of produced clips
        clean_mask: Apply morphological close/open before labelling
        decision_overrides: File name pattern -> WHOLE/TWO/MANY, first match wins
        clip_overrides: File name pattern -> clip name, first match wins
    """
    alpha_threshold: int = 8
    padding: int = 2
    min_area: int = 40
    eps: float = 26.0
    soft_link_area_ratio: float = 0.25
    min_samples: int = 3
    merge_gap: int = 1
    valley_window: int = 7
    whole_coverage: float = 0.90
    two_gap_iou_max: float = 0.05
    clear_valley_min: float = 0.35
    frame_duration: float = 0.08
    clean_mask: bool = True
    decision_overrides: dict[str, str] = field(default_factory=dict)
    clip_overrides: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0 <= self.alpha_threshold <= 255:
            raise ConfigError(f"alpha_threshold must be in 0..255, got {self.alpha_threshold}")
        for name in ("padding", "min_area", "min_samples", "merge_gap"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must not be negative, got {getattr(self, name)}")
        if self.valley_window < 1:
            raise ConfigError(f"valley_window must be at least 1, got {self.valley_window}")
        if not 0.0 <= self.soft_link_area_ratio <= 1.0:
            raise ConfigError(f"soft_link_area_ratio must be in 0..1, got {self.soft_link_area_ratio}")
        if self.frame_duration <= 0:
            raise ConfigError(f"frame_duration must be positive, got {self.frame_duration}")

        normalized = {}
        for pattern, decision in self.decision_overrides.items():
            name = str(decision).strip().upper()
            if name not in DECISION_NAMES:
                raise ConfigError(f"Unknown decision {decision!r} for pattern {pattern!r}")
            normalized[pattern] = name
        object.__setattr__(self, "decision_overrides", normalized)
        object.__setattr__(self, "clip_overrides", dict(self.clip_overrides))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExtractorConfig":
        """Build a config from a mapping such as a parsed JSON file; unknown keys are an error."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigError(str(e)) from e

    def with_overrides(
        self,
        decision_overrides: Mapping[str, str] | None = None,
        clip_overrides: Mapping[str, str] | None = None,
        **values: Any
    ) -> "ExtractorConfig":
        """
        Copy of this config with some values replaced.

        New override entries are placed before the existing ones, so they take priority.
        Values given as None are ignored.
        """
        merged_decisions = dict(decision_overrides or {})
        for pattern, decision in self.decision_overrides.items():
            merged_decisions.setdefault(pattern, decision)
        merged_clips = dict(clip_overrides or {})
        for pattern, clip in self.clip_overrides.items():
            merged_clips.setdefault(pattern, clip)

        changes = {k: v for k, v in values.items() if v is not None}
        return replace(self, decision_overrides=merged_decisions, clip_overrides=merged_clips, **changes)


def parse_override(entry: str) -> tuple[str, str]:
    """
    Split a "pattern=value" override entry.

    Raises:
        ConfigError: If the entry has no '=' or an empty side.
    """
    pattern, sep, value = entry.partition("=")
    pattern, value = pattern.strip(), value.strip()
    if not sep or not pattern or not value:
        raise ConfigError(f"Override must look like PATTERN=VALUE, got {entry!r}")
    return pattern, value


def load_config(path: str | Path) -> ExtractorConfig:
    """
    Load a config from a JSON file.

    Raises:
        ConfigError: If the file cannot be read or parsed, or holds invalid values.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read config {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must contain a JSON object")
    return ExtractorConfig.from_dict(data)
