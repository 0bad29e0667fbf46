"""Tests for raw detection decoding and non-maximum suppression."""

import numpy as np
import pytest
from conftest import yolo_tensor

from offline_gallery.detection.decoder import (
    FACE_THRESHOLDS,
    OBJECT_THRESHOLDS,
    DecoderThresholds,
    RawDetections,
    decode,
    from_corner_output,
    from_yolo_output,
)
from offline_gallery.detection.labels import COCO_LABELS, FACE_LABELS, UNKNOWN_LABEL

DOG = COCO_LABELS.index("dog")
CAT = COCO_LABELS.index("cat")


def _decode_rows(rows, image_size=(640, 640), thresholds=OBJECT_THRESHOLDS):
    return decode(from_yolo_output(yolo_tensor(rows)), image_size, thresholds)


def test_yolo_adapter_shapes():
    raw = from_yolo_output(np.zeros((1, 84, 8400), dtype=np.float32))
    assert raw.boxes.shape == (8400, 4)
    assert raw.scores.shape == (8400, 80)
    assert raw.model_size == (640, 640)


def test_decode_keeps_best_class_and_maps_to_pixels():
    boxes = _decode_rows([(100, 100, 50, 50, DOG, 0.9)])
    assert len(boxes) == 1
    box = boxes[0]
    assert box.label == "dog"
    assert box.confidence == pytest.approx(0.9)
    assert (box.x, box.y, box.width, box.height) == (75, 75, 50, 50)


def test_decode_scales_to_image_size():
    boxes = _decode_rows([(320, 320, 100, 100, DOG, 0.9)], image_size=(1280, 960))
    assert (boxes[0].x, boxes[0].y, boxes[0].width, boxes[0].height) == (540, 405, 200, 150)


def test_decode_drops_low_confidence():
    boxes = _decode_rows([(100, 100, 50, 50, DOG, 0.2), (300, 300, 50, 50, CAT, 0.25)])
    # Exactly at the threshold is kept.
    assert [b.label for b in boxes] == ["cat"]


def test_decode_clamps_to_image():
    boxes = _decode_rows([(10, 10, 40, 40, DOG, 0.9)])
    assert (boxes[0].x, boxes[0].y, boxes[0].width, boxes[0].height) == (0, 0, 30, 30)


def test_decode_drops_boxes_outside_image():
    assert _decode_rows([(900, 900, 40, 40, DOG, 0.9)]) == []


def test_nms_suppresses_overlapping_same_class():
    boxes = _decode_rows(
        [
            (100, 100, 50, 50, DOG, 0.8),
            (102, 100, 50, 50, DOG, 0.9),
            (102, 100, 50, 50, CAT, 0.7),
        ]
    )
    assert [(b.label, round(b.confidence, 2)) for b in boxes] == [("dog", 0.9), ("cat", 0.7)]


def test_nms_suppresses_at_exact_threshold():
    # IoU of these two boxes is exactly 0.5.
    boxes = _decode_rows([(50, 50, 100, 100, DOG, 0.9), (25, 50, 50, 100, DOG, 0.8)])
    assert len(boxes) == 1
    boxes = _decode_rows(
        [(50, 50, 100, 100, DOG, 0.9), (25, 50, 50, 100, DOG, 0.8)],
        thresholds=DecoderThresholds(confidence=0.25, iou=0.6),
    )
    assert len(boxes) == 2


def test_nms_keeps_distant_boxes():
    boxes = _decode_rows([(100, 100, 50, 50, DOG, 0.9), (400, 400, 50, 50, DOG, 0.6)])
    assert len(boxes) == 2


def test_no_two_boxes_of_a_class_overlap_above_threshold():
    rng = np.random.default_rng(42)
    rows = [
        (
            float(rng.uniform(50, 590)),
            float(rng.uniform(50, 590)),
            float(rng.uniform(20, 120)),
            float(rng.uniform(20, 120)),
            int(rng.choice([DOG, CAT])),
            float(rng.uniform(0.3, 1.0)),
        )
        for _ in range(60)
    ]
    from offline_gallery.detection.geometry import Box, iou

    boxes = _decode_rows(rows)
    for i, a in enumerate(boxes):
        for b in boxes[i + 1 :]:
            if a.label == b.label:
                assert iou(Box(a.x, a.y, a.width, a.height), Box(b.x, b.y, b.width, b.height)) < 0.5


def test_decode_is_deterministic():
    rows = [(100, 100, 50, 50, DOG, 0.9), (110, 100, 50, 50, DOG, 0.9), (300, 300, 60, 40, CAT, 0.5)]
    assert _decode_rows(rows) == _decode_rows(rows)


def test_decode_max_detections_keeps_most_confident_in_output_order():
    rows = [
        (100, 100, 50, 50, DOG, 0.6),
        (400, 400, 50, 50, CAT, 0.9),
        (300, 100, 50, 50, DOG, 0.8),
    ]
    raw = from_yolo_output(yolo_tensor(rows))
    boxes = decode(raw, (640, 640), OBJECT_THRESHOLDS, max_detections=2)
    assert [(b.label, round(b.confidence, 2)) for b in boxes] == [("dog", 0.8), ("cat", 0.9)]
    assert len(decode(raw, (640, 640), OBJECT_THRESHOLDS, max_detections=5)) == 3
    assert decode(raw, (640, 640), OBJECT_THRESHOLDS, max_detections=0) == []


def test_decode_unknown_class_label():
    raw = RawDetections(
        boxes=np.array([[50, 50, 20, 20]], dtype=np.float32),
        scores=np.array([[0.1, 0.2, 0.9]], dtype=np.float32),
        model_size=(100, 100),
    )
    boxes = decode(raw, (100, 100), OBJECT_THRESHOLDS, labels=("a", "b"))
    assert boxes[0].label == UNKNOWN_LABEL


def test_decode_empty_input():
    raw = RawDetections(boxes=np.zeros((0, 4)), scores=np.zeros((0, 80)), model_size=(640, 640))
    assert decode(raw, (640, 480)) == []


def test_raw_detections_rejects_mismatched_counts():
    with pytest.raises(ValueError):
        RawDetections(boxes=np.zeros((3, 4)), scores=np.zeros((2, 80)), model_size=(640, 640))


def test_corner_adapter_and_face_decode():
    raw = from_corner_output(
        np.array([[0.25, 0.125, 0.75, 0.625], [0.0, 0.0, 0.5, 0.5]], dtype=np.float32),
        np.array([0.9, 0.5], dtype=np.float32),
    )
    boxes = decode(raw, (256, 128), FACE_THRESHOLDS, labels=FACE_LABELS)
    assert len(boxes) == 1
    assert boxes[0].label == "face"
    assert (boxes[0].x, boxes[0].y, boxes[0].width, boxes[0].height) == (32, 32, 128, 64)


def test_corner_adapter_empty():
    raw = from_corner_output(np.zeros((0, 4)), np.zeros((0,)))
    assert len(raw) == 0
    assert decode(raw, (100, 100), FACE_THRESHOLDS, labels=FACE_LABELS) == []
