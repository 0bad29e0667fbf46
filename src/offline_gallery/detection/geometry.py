"""Box geometry shared by the detection decoder and the face pipeline."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Box:
    """Axis-aligned pixel-space rectangle."""

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_corners(cls, x1: float, y1: float, x2: float, y2: float) -> "Box":
        return cls(x=x1, y=y1, width=x2 - x1, height=y2 - y1)

    @property
    def left(self) -> float:
        return self.x

    @property
    def top(self) -> float:
        return self.y

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        if self.width <= 0 or self.height <= 0:
            return 0.0
        return self.width * self.height


def iou(a: Box, b: Box) -> float:
    """Intersection over union of two boxes. 0.0 when they do not overlap."""
    inter_w = min(a.right, b.right) - max(a.left, b.left)
    inter_h = min(a.bottom, b.bottom) - max(a.top, b.top)
    if inter_w <= 0 or inter_h <= 0:
        return 0.0
    intersection = inter_w * inter_h
    union = a.area + b.area - intersection
    if union <= 0:
        return 0.0
    return intersection / union


def clamp_box(box: Box, image_size: tuple[int, int]) -> Box:
    """Clip a box to ``[0, width] x [0, height]``."""
    width, height = image_size
    x1 = min(max(box.left, 0.0), width)
    y1 = min(max(box.top, 0.0), height)
    x2 = min(max(box.right, 0.0), width)
    y2 = min(max(box.bottom, 0.0), height)
    return Box.from_corners(x1, y1, max(x1, x2), max(y1, y2))


def scale_center_box(
    cx: float,
    cy: float,
    w: float,
    h: float,
    image_size: tuple[int, int],
    model_size: tuple[float, float],
) -> Box:
    """Map a model-space (center, size) box to a clamped pixel-space box.

    Args:
        cx, cy, w, h: Box center and size in model input coordinates.
        image_size: Original image (width, height) in pixels.
        model_size: Model input (width, height) the coordinates refer to.
            Use (1, 1) for coordinates normalized to [0, 1].
    """
    scale_x = image_size[0] / model_size[0]
    scale_y = image_size[1] / model_size[1]
    box = Box.from_corners(
        (cx - w / 2) * scale_x,
        (cy - h / 2) * scale_y,
        (cx + w / 2) * scale_x,
        (cy + h / 2) * scale_y,
    )
    return clamp_box(box, image_size)


def to_pixel_rect(box: Box) -> tuple[int, int, int, int]:
    """Truncate a box to integer (x, y, width, height)."""
    x1, y1 = int(box.left), int(box.top)
    x2, y2 = int(box.right), int(box.bottom)
    return x1, y1, x2 - x1, y2 - y1
