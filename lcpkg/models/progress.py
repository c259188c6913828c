"""
Progress events emitted by downloads and exports.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """A single `{phase, fraction}` update. `fraction` is always within [0, 1]."""

    phase: str
    fraction: float


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressReporter:
    """
    Wraps a progress callback so that reported fractions are clamped to [0, 1]
    and never decrease. Once 1.0 has been delivered the callback is released
    and later reports are dropped.
    """

    def __init__(self, callback: ProgressCallback | None):
        self._callback = callback
        self.fraction = 0.0

    @property
    def attached(self) -> bool:
        return self._callback is not None

    def report(self, phase: str, fraction: float) -> None:
        if self._callback is None:
            return
        fraction = min(max(fraction, 0.0), 1.0)
        if fraction < self.fraction:
            log.debug(f"Ignoring regressing progress {fraction:.3f} for '{phase}'")
            return
        self.fraction = fraction
        callback = self._callback
        if fraction >= 1.0:
            self._callback = None
        callback(ProgressEvent(phase, fraction))

    def detach(self) -> None:
        self._callback = None
