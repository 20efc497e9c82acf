"""Exceptions raised by the UHI pipeline."""

from __future__ import annotations

__all__ = [
    "UHIError",
    "EmptySceneSet",
    "AggregationLimitExceeded",
    "UndefinedRegionMean",
]


class UHIError(Exception):
    """Base class for failures that make a statistic undefined."""


class EmptySceneSet(UHIError):
    """No scene matched the space/time/cloud filters."""


class AggregationLimitExceeded(UHIError):
    def __init__(self, requested: float, max_pixels: float) -> None:
        self.requested = requested
        self.max_pixels = max_pixels
        super().__init__(
            f"Region mean would sample ~{requested:.3g} pixels, above the cap of {max_pixels:.3g}."
        )


class UndefinedRegionMean(UHIError):
    """The masked raster has no valid pixel inside the geometry."""
