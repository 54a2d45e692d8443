"""
Savitzky-Golay smoothing of derived signals.

Savitzky-Golay is used over a moving average because it keeps the peaks and
valleys (deepest crouch, lowest push-up) at their true height and adds no
phase lag, so phase boundaries stay on the right frame.

Undefined frames are never filled in: each contiguous run of defined values
is smoothed separately, and runs shorter than the window are left as-is.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np
from scipy.signal import savgol_filter

logger = logging.getLogger(__name__)


class SignalSmoother:
    """Gap-aware Savitzky-Golay smoother for one-dimensional signals."""

    POLY_ORDER = 2  # Quadratic fit

    def __init__(self, window_size: int):
        """
        Args:
            window_size: Odd number of frames >= 5. 0 disables smoothing.
        """
        if window_size and (window_size < 5 or window_size % 2 == 0):
            raise ValueError("window_size must be 0 or an odd number >= 5")
        self.window_size = window_size

    @property
    def enabled(self) -> bool:
        return self.window_size > 0

    def smooth(self, values: Sequence[Optional[float]]) -> List[Optional[float]]:
        if not self.enabled:
            return list(values)

        result: List[Optional[float]] = list(values)
        for start, end in _defined_runs(values):
            if end - start < self.window_size:
                continue
            segment = np.array(values[start:end], dtype=float)
            smoothed = savgol_filter(segment, self.window_size, self.POLY_ORDER)
            result[start:end] = [float(v) for v in smoothed]

        logger.debug(f"Smoothed {len(values)} samples with window {self.window_size}")
        return result


def _defined_runs(values: Sequence[Optional[float]]):
    """Yield (start, end) slices of consecutive non-None values."""
    start = None
    for i, v in enumerate(values):
        if v is None:
            if start is not None:
                yield start, i
                start = None
        elif start is None:
            start = i
    if start is not None:
        yield start, len(values)
