"""Indexing CLI: scan folders, detect objects and faces, and store annotations."""

import argparse


def main() -> None:
    """CLI entry point for indexing operations."""
    parser = argparse.ArgumentParser(description="Offline gallery indexer")
    parser.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")
    subparsers = parser.add_subparsers(dest="command")

    # scan
    scan_parser = subparsers.add_parser(
        "scan", help="Scan a directory and annotate every image found"
    )
    scan_parser.add_argument("directory", help="Directory to scan")
    scan_parser.add_argument(
        "--no-recursive", action="store_true", help="Do not descend into subdirectories"
    )
    scan_parser.add_argument("--device", default="cpu", help="Device: cuda or cpu (default: cpu)")
    scan_parser.add_argument(
        "--force", action="store_true", help="Re-annotate images that were already processed"
    )
    scan_parser.add_argument(
        "--no-faces", action="store_true", help="Skip face detection and identity resolution"
    )
    scan_parser.add_argument(
        "--describe",
        action="store_true",
        help="Enhance descriptions with the local language model",
    )
    scan_parser.add_argument(
        "--limit", type=int, default=None, help="Max number of images to process (default: all)"
    )

    # reannotate
    re_parser = subparsers.add_parser("reannotate", help="Re-run annotation for one image")
    re_parser.add_argument("image_id", type=int, help="Image ID")
    re_parser.add_argument("--device", default="cpu", help="Device: cuda or cpu (default: cpu)")

    # status
    subparsers.add_parser("status", help="Show indexing status")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    from offline_gallery.logging_config import setup_logging

    setup_logging(args.log_level)

    if args.command == "scan":
        _cmd_scan(args)
    elif args.command == "reannotate":
        _cmd_reannotate(args)
    elif args.command == "status":
        _cmd_status()


def _build_annotator(conn, device: str, faces: bool = True, describe: bool = False):
    """Load the models and wire them into an ImageAnnotator."""
    from offline_gallery.config import EngineConfig
    from offline_gallery.detection.annotator import ImageAnnotator
    from offline_gallery.detection.describe import TransformersLanguageProvider
    from offline_gallery.detection.face_pipeline import FaceAnnotationPipeline
    from offline_gallery.detection.insightface_embedder import InsightFaceEmbedder
    from offline_gallery.detection.onnx_detector import OnnxFaceDetector, OnnxObjectDetector

    config = EngineConfig.from_env()

    print(f"Loading object detector on {device}...")
    object_detector = OnnxObjectDetector(device=device)
    object_detector.load()

    face_pipeline = None
    if faces:
        print(f"Loading face models on {device}...")
        face_detector = OnnxFaceDetector(device=device)
        face_detector.load()
        embedder = InsightFaceEmbedder(device=device)
        embedder.load()
        face_pipeline = FaceAnnotationPipeline(face_detector, embedder, config)

    language = None
    if describe:
        print("Loading language model...")
        language = TransformersLanguageProvider(device=device)
        language.load()

    return ImageAnnotator(
        conn,
        config,
        object_detector,
        face_pipeline=face_pipeline,
        language=language,
    )


def _cmd_scan(args: argparse.Namespace) -> None:
    """Scan a directory and annotate the images in it."""
    import threading

    from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

    from offline_gallery.db import get_connection
    from offline_gallery.detection.scanner import scan_directory

    cancel = threading.Event()
    try:
        paths = scan_directory(args.directory, recursive=not args.no_recursive, cancel_event=cancel)
    except FileNotFoundError as exc:
        print(exc)
        return

    if args.limit is not None:
        paths = paths[: args.limit]
    if not paths:
        print("No images found.")
        return
    print(f"Found {len(paths)} images.")

    conn = get_connection()
    annotator = _build_annotator(
        conn, args.device, faces=not args.no_faces, describe=args.describe
    )

    failed = 0
    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TextColumn("{task.completed}/{task.total}"),
    ) as progress:
        task = progress.add_task("Annotating images", total=len(paths))

        def on_done(path, record) -> None:
            nonlocal failed
            if record is None:
                failed += 1
            progress.advance(task)

        try:
            processed = annotator.process_many(
                paths, force=args.force, cancel_event=cancel, on_done=on_done
            )
        except KeyboardInterrupt:
            cancel.set()
            processed = []
            print("Interrupted.")

    conn.close()
    print(f"Done. Processed {len(processed)} images, {failed} failed.")


def _cmd_reannotate(args: argparse.Namespace) -> None:
    """Re-run annotation for a single image."""
    from offline_gallery.db import get_connection

    conn = get_connection()
    annotator = _build_annotator(conn, args.device)
    record = annotator.reannotate(args.image_id)
    conn.close()
    if record is None:
        print(f"Image {args.image_id} could not be re-annotated.")
        return
    print(f"[{record.id}] {record.file_path}")
    print(f"  {record.description}")
    print(f"  faces: {record.face_count}")


def _cmd_status() -> None:
    """Show indexing status."""
    from offline_gallery.db import get_connection
    from offline_gallery.manager.person_repository import count_persons
    from offline_gallery.manager.repository import get_gallery_stats

    conn = get_connection()
    total, processed, tags, faces = get_gallery_stats(conn)
    persons = count_persons(conn)
    conn.close()
    print(f"Processed: {processed}/{total} images")
    if total > 0:
        print(f"Progress: {processed / total * 100:.1f}%")
    print(f"Tags: {tags}")
    print(f"Faces: {faces}")
    print(f"Persons: {persons}")
