# scripts/bulk_assign_tickets.py
# Usage: bulk_assign_tickets.py <folder> [--category NAME] [--auto-assign]
import argparse
import os, sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT)

from db import OrderStore
from models import UploadFile
from services.storage import build_storage
from services.ticket_matching import assign_ticket_files
from logger import get_logger, log_marker

log = get_logger("bulk_assign")

TICKET_EXTENSIONS = (".pdf", ".jpg", ".jpeg", ".png")


def load_folder(folder: str) -> list[UploadFile]:
    uploads = []
    # sorted so the fallback pairing follows filename order
    for name in sorted(os.listdir(folder)):
        path = os.path.join(folder, name)
        if not os.path.isfile(path) or not name.lower().endswith(TICKET_EXTENSIONS):
            continue
        with open(path, "rb") as f:
            uploads.append(UploadFile(filename=name, content=f.read()))
    return uploads


def main(argv=None, store=None, storage=None) -> int:
    parser = argparse.ArgumentParser(description="Attach a folder of ticket files to approved orders.")
    parser.add_argument("folder")
    parser.add_argument("--category", default="all")
    parser.add_argument(
        "--auto-assign",
        action="store_true",
        help="pair files left after booking-ID matching with remaining orders, in order",
    )
    args = parser.parse_args(argv)

    if not os.path.isdir(args.folder):
        print(f"ERROR: {args.folder} is not a folder")
        return 2

    log_marker(log, "BULK ASSIGN", "START", args.folder)
    uploads = load_folder(args.folder)

    summary = assign_ticket_files(
        store or OrderStore(),
        storage or build_storage(),
        uploads,
        category=args.category,
        auto_assign=args.auto_assign,
    )

    print(summary.message)
    if not summary.nothing_to_do:
        print(f"ID matches:     {summary.matched_by_ref}")
        print(f"Auto-assigned:  {summary.auto_assigned}")
        print(f"Unresolved:     {summary.unresolved} file(s), {summary.unmatched_orders} order(s) still without ticket")
        for name in summary.unmatched_filenames:
            print(f"LEFT OVER: {name}")
        if summary.fallback_offered and not args.auto_assign:
            print("Re-run with --auto-assign to pair the files left over with the remaining orders, in order.")
        for w in summary.warnings:
            print(f"WARNING: {w}")
        for f in summary.failures:
            print(f"FAILED: {f['filename']} (order {f['order_id']}): {f['reason']}")

    log_marker(log, "BULK ASSIGN", "END", summary.message)
    return 1 if summary.failures else 0


if __name__ == "__main__":
    sys.exit(main())
