"""Gallery management CLI: database setup, images and people."""

import argparse


def main() -> None:
    """CLI entry point for gallery management."""
    parser = argparse.ArgumentParser(description="Offline gallery manager")
    subparsers = parser.add_subparsers(dest="command")

    # init-db
    subparsers.add_parser("init-db", help="Initialize the database schema")

    # list
    list_parser = subparsers.add_parser("list", help="List images in DB")
    list_parser.add_argument("--directory", help="Filter by directory path")

    # show
    show_parser = subparsers.add_parser("show", help="Show the annotations of one image")
    show_parser.add_argument("image_id", type=int, help="Image ID")

    # people
    subparsers.add_parser("people", help="List known persons")

    # rename-person
    rename_parser = subparsers.add_parser("rename-person", help="Give a person a name")
    rename_parser.add_argument("person_id", type=int, help="Person ID")
    rename_parser.add_argument("name", help="New display name")

    # assign-face
    assign_parser = subparsers.add_parser(
        "assign-face", help="Attribute a stored face to another person"
    )
    assign_parser.add_argument("face_id", type=int, help="Face ID")
    assign_parser.add_argument("person_id", type=int, help="Person ID")

    # stats
    subparsers.add_parser("stats", help="Show gallery statistics")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    if args.command == "init-db":
        from offline_gallery.db import get_connection

        conn = get_connection()
        conn.close()
        print("Database initialized successfully.")

    elif args.command == "list":
        from offline_gallery.db import get_connection
        from offline_gallery.manager.repository import list_images

        conn = get_connection()
        images = list_images(conn, directory=args.directory)
        conn.close()
        for img in images:
            status = "done" if img.processed_at else "pending"
            print(f"[{img.id}] ({status}) {img.file_path}")

    elif args.command == "show":
        _cmd_show(args)

    elif args.command == "people":
        _cmd_people()

    elif args.command == "rename-person":
        _cmd_rename_person(args)

    elif args.command == "assign-face":
        _cmd_assign_face(args)

    elif args.command == "stats":
        _cmd_stats()


def _cmd_show(args: argparse.Namespace) -> None:
    """Print the description, tags and faces of one image."""
    from offline_gallery.db import get_connection
    from offline_gallery.manager.repository import get_annotations, get_image_by_id

    conn = get_connection()
    image = get_image_by_id(conn, args.image_id)
    if image is None:
        conn.close()
        print(f"Image {args.image_id} not found.")
        return
    annotations = get_annotations(conn, args.image_id)
    conn.close()

    print(f"[{image.id}] {image.file_path} ({image.width}x{image.height})")
    print(f"  {annotations.description or '(not processed)'}")
    for tag in annotations.tags:
        print(f"  tag  {tag.label:<16} {tag.confidence:.2f}  {tag.corners}")
    for face in annotations.faces:
        who = f"person {face.person_id}" if face.person_id is not None else "unassigned"
        print(f"  face {who:<16} {face.confidence:.2f}  {face.box.corners}")


def _cmd_people() -> None:
    """List persons with the number of images they appear in."""
    from offline_gallery.db import get_connection
    from offline_gallery.manager.person_repository import (
        get_image_ids_for_person,
        list_persons,
    )

    conn = get_connection()
    persons = list_persons(conn)
    for person in persons:
        count = len(get_image_ids_for_person(conn, person.id))
        print(f"[{person.id}] {person.name} ({count} images)")
    conn.close()
    if not persons:
        print("No persons yet.")


def _cmd_rename_person(args: argparse.Namespace) -> None:
    """Rename a person."""
    from offline_gallery.db import get_connection
    from offline_gallery.manager.person_repository import rename_person

    conn = get_connection()
    renamed = rename_person(conn, args.person_id, args.name)
    conn.close()
    if renamed:
        print(f"Person {args.person_id} renamed to {args.name!r}.")
    else:
        print(f"Person {args.person_id} not found.")


def _cmd_assign_face(args: argparse.Namespace) -> None:
    """Point a stored face at a person."""
    from offline_gallery.db import get_connection
    from offline_gallery.manager.person_repository import assign_face_to_person, get_person

    conn = get_connection()
    if get_person(conn, args.person_id) is None:
        conn.close()
        print(f"Person {args.person_id} not found.")
        return
    assigned = assign_face_to_person(conn, args.face_id, args.person_id)
    conn.close()
    if assigned:
        print(f"Face {args.face_id} assigned to person {args.person_id}.")
    else:
        print(f"Face {args.face_id} not found.")


def _cmd_stats() -> None:
    """Show gallery statistics."""
    from offline_gallery.db import get_connection
    from offline_gallery.manager.person_repository import count_persons
    from offline_gallery.manager.repository import get_gallery_stats

    conn = get_connection()
    total, processed, tags, faces = get_gallery_stats(conn)
    persons = count_persons(conn)
    conn.close()
    print(f"Images: {total} ({processed} processed)")
    print(f"Tags: {tags}")
    print(f"Faces: {faces}")
    print(f"Persons: {persons}")
