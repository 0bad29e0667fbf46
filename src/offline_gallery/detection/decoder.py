"""Turn raw detector tensors into deduplicated, labeled pixel-space boxes.

The decoder is model-agnostic: every detector output is first normalized to
:class:`RawDetections` (per-candidate center/size box in model input
coordinates plus per-class scores). From there the steps are the same for
objects and faces:

1. pick the best-scoring class of each candidate,
2. drop candidates under the confidence threshold,
3. map the box to clamped pixel coordinates of the original image,
4. run greedy non-maximum suppression independently per class.

Decoding is pure and deterministic, so identical input always yields an
identical list (same boxes, same order).
"""

from dataclasses import dataclass

import numpy as np

from offline_gallery.detection.geometry import Box, iou, scale_center_box, to_pixel_rect
from offline_gallery.detection.labels import COCO_LABELS, label_for
from offline_gallery.models import DetectionBox


@dataclass(frozen=True)
class DecoderThresholds:
    """Confidence cut-off and NMS IoU threshold."""

    confidence: float = 0.25
    iou: float = 0.5


OBJECT_THRESHOLDS = DecoderThresholds(confidence=0.25, iou=0.5)
FACE_THRESHOLDS = DecoderThresholds(confidence=0.75, iou=0.5)


@dataclass
class RawDetections:
    """Detector output normalized to the decoder's input contract.

    Attributes:
        boxes: (N, 4) array of (cx, cy, w, h) in model input coordinates.
        scores: (N, C) array of per-class scores.
        model_size: (width, height) of the model input the boxes refer to.
    """

    boxes: np.ndarray
    scores: np.ndarray
    model_size: tuple[float, float]

    def __post_init__(self) -> None:
        self.boxes = np.asarray(self.boxes, dtype=np.float32).reshape(-1, 4)
        scores = np.asarray(self.scores, dtype=np.float32)
        if scores.ndim == 1:
            scores = scores.reshape(-1, 1)
        self.scores = scores
        if self.scores.shape[0] != self.boxes.shape[0]:
            raise ValueError(
                f"boxes and scores disagree on candidate count: "
                f"{self.boxes.shape[0]} vs {self.scores.shape[0]}"
            )

    def __len__(self) -> int:
        return self.boxes.shape[0]


@dataclass(frozen=True)
class _Candidate:
    index: int
    label: str
    confidence: float
    box: Box


def from_yolo_output(
    output: np.ndarray, model_size: tuple[float, float] = (640, 640)
) -> RawDetections:
    """Adapt a YOLOv8-style ``(1, 4 + C, N)`` tensor."""
    arr = np.asarray(output, dtype=np.float32)
    if arr.ndim == 3:
        arr = arr[0]
    return RawDetections(boxes=arr[:4].T, scores=arr[4:].T, model_size=model_size)


def from_corner_output(boxes: np.ndarray, scores: np.ndarray) -> RawDetections:
    """Adapt normalized ``(ymin, xmin, ymax, xmax)`` boxes (BlazeFace layout)."""
    corners = np.asarray(boxes, dtype=np.float32).reshape(-1, 4)
    ymin, xmin, ymax, xmax = corners.T
    centers = np.stack(
        [(xmin + xmax) / 2, (ymin + ymax) / 2, xmax - xmin, ymax - ymin], axis=1
    )
    flat_scores = np.asarray(scores, dtype=np.float32)
    if len(corners) == 0:
        flat_scores = flat_scores.reshape(0, 1)
    else:
        flat_scores = flat_scores.reshape(len(corners), -1)
    return RawDetections(boxes=centers, scores=flat_scores, model_size=(1.0, 1.0))


def decode(
    raw: RawDetections,
    image_size: tuple[int, int],
    thresholds: DecoderThresholds = OBJECT_THRESHOLDS,
    labels: tuple[str, ...] = COCO_LABELS,
    max_detections: int | None = None,
) -> list[DetectionBox]:
    """Decode raw detections for an image of ``image_size`` (width, height).

    With ``max_detections`` only the most confident boxes surviving NMS are
    returned, in their usual output position.
    """
    if len(raw) == 0 or raw.scores.shape[1] == 0:
        return []

    class_ids = np.argmax(raw.scores, axis=1)
    confidences = raw.scores[np.arange(len(raw)), class_ids]

    candidates: list[_Candidate] = []
    for i in np.flatnonzero(confidences >= thresholds.confidence):
        cx, cy, w, h = (float(v) for v in raw.boxes[i])
        scaled = scale_center_box(cx, cy, w, h, image_size, raw.model_size)
        x, y, width, height = to_pixel_rect(scaled)
        if width <= 0 or height <= 0:
            continue
        candidates.append(
            _Candidate(
                index=int(i),
                label=label_for(int(class_ids[i]), labels),
                confidence=float(confidences[i]),
                box=Box(x, y, width, height),
            )
        )

    kept = non_max_suppression(candidates, thresholds.iou)
    if max_detections is not None and len(kept) > max_detections:
        ranked = sorted(kept, key=lambda c: (-c.confidence, c.index))
        top = {c.index for c in ranked[: max(max_detections, 0)]}
        kept = [c for c in kept if c.index in top]
    return [
        DetectionBox(
            x=int(c.box.x),
            y=int(c.box.y),
            width=int(c.box.width),
            height=int(c.box.height),
            label=c.label,
            confidence=c.confidence,
        )
        for c in kept
    ]


def non_max_suppression(candidates: list[_Candidate], iou_threshold: float) -> list[_Candidate]:
    """Greedy per-class NMS.

    Classes are visited in order of first appearance; within a class the most
    confident box is kept and every remaining box overlapping it with
    IoU >= ``iou_threshold`` is dropped.
    """
    groups: dict[str, list[_Candidate]] = {}
    for cand in candidates:
        groups.setdefault(cand.label, []).append(cand)

    kept: list[_Candidate] = []
    for group in groups.values():
        remaining = sorted(group, key=lambda c: (-c.confidence, c.index))
        while remaining:
            best = remaining.pop(0)
            kept.append(best)
            remaining = [c for c in remaining if iou(best.box, c.box) < iou_threshold]
    return kept
