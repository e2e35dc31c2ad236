"""
Geometry normalization between rendered page content and fractions.

Positions are stored as fractions of the *full scrollable content size* of
a rendered page (top-left origin), never of the visible viewport, so a field
keeps its place across zoom levels and window sizes.
"""

import math
from dataclasses import dataclass

from ..exceptions import GeometryNotReady


@dataclass(frozen=True)
class ContentSize:
    """Full scrollable width/height of a rendered page surface, in pixels."""
    width: float
    height: float

    @property
    def is_measured(self) -> bool:
        return (
            math.isfinite(self.width) and math.isfinite(self.height)
            and self.width > 0 and self.height > 0
        )


@dataclass(frozen=True)
class FractionalPoint:
    x: float
    y: float


@dataclass(frozen=True)
class PixelPoint:
    x: float
    y: float


class GeometryNormalizer:
    """Pure conversions between content pixels and fractional coordinates."""

    @staticmethod
    def clamp_fraction(value: float) -> float:
        return min(1.0, max(0.0, value))

    @staticmethod
    def _require_measured(content: ContentSize) -> None:
        if content is None or not content.is_measured:
            raise GeometryNotReady()

    @staticmethod
    def capture(pointer_x: float, pointer_y: float, content: ContentSize) -> FractionalPoint:
        """
        Convert a content-relative pointer position to a fractional coordinate.

        Args:
            pointer_x, pointer_y: pixels from the content origin, scroll offset included
            content: full content size at capture time

        Returns:
            FractionalPoint clamped to [0, 1] on both axes

        Raises:
            GeometryNotReady: content has no valid measurement
            ValueError: pointer coordinates are not finite
        """
        GeometryNormalizer._require_measured(content)
        if not (math.isfinite(pointer_x) and math.isfinite(pointer_y)):
            raise ValueError(f'Pointer position must be finite, got ({pointer_x}, {pointer_y})')

        return FractionalPoint(
            x=GeometryNormalizer.clamp_fraction(pointer_x / content.width),
            y=GeometryNormalizer.clamp_fraction(pointer_y / content.height),
        )

    @staticmethod
    def display(point: FractionalPoint, content: ContentSize) -> PixelPoint:
        """Convert a fractional coordinate back to pixels for the current content size."""
        GeometryNormalizer._require_measured(content)
        return PixelPoint(x=point.x * content.width, y=point.y * content.height)

    @staticmethod
    def rescale(pixel: PixelPoint, from_content: ContentSize, to_content: ContentSize) -> PixelPoint:
        """Move a pixel position from one content size (zoom level) to another."""
        point = GeometryNormalizer.capture(pixel.x, pixel.y, from_content)
        return GeometryNormalizer.display(point, to_content)


def capture(pointer_x, pointer_y, content):
    return GeometryNormalizer.capture(pointer_x, pointer_y, content)


def display(point, content):
    return GeometryNormalizer.display(point, content)
