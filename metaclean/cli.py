import argparse
import logging
import sys

from metaclean.batch import clean_many, summarize

DEFAULT_OUTPUT_FOLDER = "cleaned"


def setup_logging(level=logging.INFO):
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s: %(message)s")


def build_parser():
    p = argparse.ArgumentParser(
        prog="metaclean",
        description="Strip author/creation metadata from .docx, .xlsx, .pptx and .pdf files (GUI by default)",
    )
    p.add_argument("--nogui", action="store_true", help="Clean the given files without opening the GUI")
    p.add_argument("-o", "--output", default=None,
                   help=f"Folder for the cleaned copies (default: ./{DEFAULT_OUTPUT_FOLDER} in CLI mode)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("paths", nargs="*", help="Files to clean")
    return p


def main_cli(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    if not args.nogui:
        from metaclean import gui
        gui.run(args.paths, output_folder=args.output)
        return 0
    if not args.paths:
        print("Provide at least one file in --nogui mode.", file=sys.stderr)
        return 2
    results = clean_many(args.paths, args.output or DEFAULT_OUTPUT_FOLDER)
    print(summarize(results))
    return 0 if all(r.ok for r in results) else 1
