"""Caller-supplied analysis options and benchmark norm tables."""

import json
import logging
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from fitassess.config import Settings

logger = logging.getLogger(__name__)

ANY = "any"


class NormThresholds(BaseModel):
    """Lower threshold of each rating tier for one test/age/gender."""
    model_config = ConfigDict(frozen=True)

    poor: float
    average: float
    good: float
    excellent: float

    @model_validator(mode="after")
    def check_monotonic(self) -> "NormThresholds":
        values = [self.poor, self.average, self.good, self.excellent]
        increasing = all(a < b for a, b in zip(values, values[1:]))
        decreasing = all(a > b for a, b in zip(values, values[1:]))
        if not (increasing or decreasing):
            raise ValueError(f"tier thresholds must be strictly monotonic, got {values}")
        return self

    @property
    def lower_is_better(self) -> bool:
        """True for timed tests where a smaller score is a better result."""
        return self.excellent < self.poor


class NormsTable(BaseModel):
    """
    Benchmark norms keyed by test kind, age group and gender.

    Shape: ``{test_kind: {age_group: {gender: thresholds}}}``. ``"any"`` may
    be used for age group or gender as a fallback entry.
    """
    model_config = ConfigDict(frozen=True)

    norms: Dict[str, Dict[str, Dict[str, NormThresholds]]]

    def lookup(self, test_kind: str, age_group: str, gender: str) -> Optional[NormThresholds]:
        by_age = self.norms.get(test_kind)
        if not by_age:
            return None
        for age_key, gender_key in (
            (age_group, gender),
            (age_group, ANY),
            (ANY, gender),
            (ANY, ANY),
        ):
            entry = by_age.get(age_key, {}).get(gender_key)
            if entry is not None:
                return entry
        return None

    @classmethod
    def load(cls, path: Union[str, Path]) -> "NormsTable":
        """Load a norms table from a JSON file."""
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        logger.info(f"Loaded norms table from {path} ({len(data)} test kinds)")
        return cls(norms=data)

    @classmethod
    def default(cls) -> "NormsTable":
        """The packaged reference norms."""
        return _default_norms()


@lru_cache
def _default_norms() -> NormsTable:
    text = resources.files("fitassess").joinpath("data/default_norms.json").read_text(encoding="utf-8")
    return NormsTable(norms=json.loads(text))


class AnalysisOptions(BaseModel):
    """
    Options for one analysis invocation.

    Identical frames + identical options always give an identical result;
    environment-driven defaults only enter through ``from_settings``.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    sampling_rate: Optional[float] = Field(None, gt=0.0)  # Target frames per second
    debounce_frames: int = Field(3, ge=1)
    cheat_threshold: float = Field(0.7, ge=0.0, le=1.0)
    norms_table: Optional[NormsTable] = None  # Packaged default norms when None
    device_profile: Optional[str] = None
    min_frame_count: int = Field(10, ge=2)
    smoothing_window: int = Field(0, ge=0)
    min_keypoint_confidence: float = Field(0.3, ge=0.0, le=1.0)
    max_missing_signal_ratio: float = Field(0.5, ge=0.0, le=1.0)
    frame_timing_variance_ms2: float = Field(50.0, ge=0.0)
    edge_density_floor: float = Field(0.05, ge=0.0)
    environment_drift_threshold: float = Field(0.5, ge=0.0)
    environment_window_frames: int = Field(5, ge=1)
    base_confidence: float = Field(0.8, ge=0.0, le=1.0)
    max_buffered_frames: int = Field(3600, ge=1)  # Frame budget before the buffer halves its sampling

    @field_validator("device_profile")
    @classmethod
    def validate_device_profile(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().lower()
        valid = ["high", "medium", "low"]
        if v not in valid:
            raise ValueError(f"device_profile must be one of: {valid}")
        return v

    @field_validator("smoothing_window")
    @classmethod
    def validate_smoothing_window(cls, v: int) -> int:
        if v and (v < 5 or v % 2 == 0):
            raise ValueError("smoothing_window must be 0 (off) or an odd number >= 5")
        return v

    def resolved_norms(self) -> NormsTable:
        return self.norms_table if self.norms_table is not None else NormsTable.default()

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "AnalysisOptions":
        """Build options from application settings, with explicit overrides."""
        norms_table = NormsTable.load(settings.norms_path) if settings.norms_path else None
        values = dict(
            debounce_frames=settings.debounce_frames,
            cheat_threshold=settings.cheat_threshold,
            norms_table=norms_table,
            device_profile=settings.device_profile,
            min_frame_count=settings.min_frame_count,
            smoothing_window=settings.smoothing_window,
            min_keypoint_confidence=settings.min_keypoint_confidence,
            max_missing_signal_ratio=settings.max_missing_signal_ratio,
            frame_timing_variance_ms2=settings.frame_timing_variance_ms2,
            edge_density_floor=settings.edge_density_floor,
            environment_drift_threshold=settings.environment_drift_threshold,
            environment_window_frames=settings.environment_window_frames,
            base_confidence=settings.base_confidence,
            max_buffered_frames=settings.max_buffered_frames,
        )
        values.update(overrides)
        return cls(**values)


AGE_GROUPS: Tuple[str, ...] = ("under-13", "13-15", "16-18", "19-24", "25-plus")
