"""Class label tables for the detection models."""

UNKNOWN_LABEL = "unknown"
FACE_LABEL = "face"

COCO_LABELS: tuple[str, ...] = (
    "person", "bicycle", "car", "motorcycle", "aeroplane", "bus", "train", "truck", "boat",
    "traffic light", "fire hydrant", "stop sign", "parking meter", "bench", "bird", "cat",
    "dog", "horse", "sheep", "cow", "elephant", "bear", "zebra", "giraffe", "backpack",
    "umbrella", "handbag", "tie", "suitcase", "frisbee", "skis", "snowboard", "sports ball",
    "kite", "baseball bat", "baseball glove", "skateboard", "surfboard", "tennis racket",
    "bottle", "wine glass", "cup", "fork", "knife", "spoon", "bowl", "banana", "apple",
    "sandwich", "orange", "broccoli", "carrot", "hot dog", "pizza", "donut", "cake",
    "chair", "sofa", "potted plant", "bed", "dining table", "toilet", "tv", "laptop",
    "mouse", "remote", "keyboard", "mobile phone", "microwave", "oven", "toaster", "sink",
    "refrigerator", "book", "clock", "vase", "scissors", "teddy bear", "hair drier", "toothbrush",
)

FACE_LABELS: tuple[str, ...] = (FACE_LABEL,)


def label_for(class_id: int, labels: tuple[str, ...] = COCO_LABELS) -> str:
    """Return the label of ``class_id``, or ``"unknown"`` outside the table."""
    if 0 <= class_id < len(labels):
        return labels[class_id]
    return UNKNOWN_LABEL
