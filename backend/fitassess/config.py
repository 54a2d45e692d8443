"""Analysis configuration."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Analysis defaults loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FITASSESS_",
        env_file=".env",
        extra="ignore",
    )

    # Segmentation
    min_frame_count: int = 10  # Below this the sequence is a single UNKNOWN phase
    debounce_frames: int = 3  # ~100ms at 30fps
    min_keypoint_confidence: float = 0.3
    max_missing_signal_ratio: float = 0.5  # More frames than this without the driving angle = estimation gap
    smoothing_window: int = 0  # 0 = no Savitzky-Golay smoothing

    # Integrity
    cheat_threshold: float = 0.7
    frame_timing_variance_ms2: float = 50.0
    edge_density_floor: float = 0.05
    environment_drift_threshold: float = 0.5
    environment_window_frames: int = 5

    # Result compilation
    base_confidence: float = 0.8

    # Resource policy
    device_profile: Optional[str] = None  # "high", "medium", "low" or None (no scaling)
    max_buffered_frames: int = 3600  # ~2 minutes at 30fps

    # Benchmarking
    norms_path: Optional[str] = None  # JSON norms table; packaged default when unset


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
