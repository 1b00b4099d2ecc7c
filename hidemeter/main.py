"""Command-line entry point for the Hide Area Meter."""

import argparse
import logging
import sys
from typing import List, Optional

import numpy as np

from .config.settings import Config, load_config
from .core.constants import APP_NAME, VERSION
from .core.entities import MeasurementResult
from .core.exceptions import ApplicationError
from .core.logging_config import configure_logging
from .services.editor import VertexEditor
from .services.measurement_service import MeasurementService
from .services.report import build_report_rows

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hidemeter",
        description=f"{APP_NAME}: measure hide area against an A4 reference sheet",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("--config", default="config.json", help="Path to config.json")
    parser.add_argument("--env-file", default=None, help="Path to .env file")
    parser.add_argument("--no-log-file", action="store_true", help="Log to the console only")

    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Detect hide and A4 sheet automatically")
    analyze.add_argument("image")
    analyze.add_argument("--save", action="store_true", help="Store the result in history")
    analyze.add_argument("--edit", action="store_true", help="Adjust vertices before saving")

    trace = sub.add_parser("trace", help="Trace A4 sheet and hide by hand")
    trace.add_argument("image")

    edit = sub.add_parser("edit", help="Adjust the vertices of a stored measurement")
    edit.add_argument("record_id", help="Record id (a unique prefix is enough)")
    edit.add_argument("--image", default=None, help="Photo to show under the polygons")

    sub.add_parser("history", help="List stored measurements")

    export = sub.add_parser("export", help="Write the history report as CSV")
    export.add_argument("path")

    delete = sub.add_parser("delete", help="Delete one measurement")
    delete.add_argument("record_id")

    clear = sub.add_parser("clear", help="Delete all measurements and the learning reference")
    clear.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    return parser


def print_result(result: MeasurementResult) -> None:
    print(f"Area:        {result.area_m2:.4f} m²")
    print(f"Confidence:  {result.confidence:g}%")
    print(f"A4 sheet:    {'OK' if result.detected_reference else 'not found'}")
    print(f"Hide:        {'OK' if result.detected_target else 'not found'}")
    print(f"Vertices:    {len(result.target)}")
    if result.explanation:
        print(f"Explanation: {result.explanation}")


def run_editor(editor: VertexEditor, image: Optional[np.ndarray], title: str) -> bool:
    """Open the editor dialog on a hidden Tk root; True if the operator saved."""
    import tkinter as tk
    from .ui.dialogs.polygon_editor_dialog import PolygonEditorDialog

    root = tk.Tk()
    root.withdraw()
    try:
        return PolygonEditorDialog(root, editor, image, title=title).show()
    finally:
        root.destroy()


def cmd_analyze(service: MeasurementService, args) -> int:
    result = service.analyze_image(args.image)
    print_result(result)
    if result.is_detection_error:
        print("Warning: the A4 sheet or the hide was not detected; consider 'trace'.", file=sys.stderr)

    if args.edit:
        editor = service.start_edit(result)
        if not run_editor(editor, service.current_image, f"Adjust - {service.current_image_name}"):
            print("Edit cancelled; nothing saved.")
            return 0
        record = service.save(editor)
        print(f"Saved {record.id} ({record.area_m2:.4f} m²)")
    elif args.save:
        record = service.save(result)
        print(f"Saved {record.id}")
    return 0


def cmd_trace(service: MeasurementService, args) -> int:
    image = service.open_image(args.image)
    editor = service.start_manual()
    if not run_editor(editor, image, f"Manual trace - {service.current_image_name}"):
        print("Trace cancelled; nothing saved.")
        return 0
    record = service.save(editor)
    print(f"Saved {record.id} ({record.area_m2:.4f} m²)")
    return 0


def cmd_edit(service: MeasurementService, args) -> int:
    record = service.get_record(args.record_id)
    image = service.open_image(args.image) if args.image else None
    editor = service.start_edit(record)
    if not run_editor(editor, image, f"Adjust - {record.image_name}"):
        print("Edit cancelled; nothing saved.")
        return 0
    new_record = service.save(editor)
    print(f"Saved {new_record.id} ({new_record.area_m2:.4f} m²)")
    return 0


def cmd_history(service: MeasurementService, args) -> int:
    records = service.history()
    if not records:
        print("No measurements stored.")
        return 0
    rows = build_report_rows(records)
    print(f"{'ID':<10} {'Data':<10} {'Área (m²)':>12} {'Conf.':>6} {'A4':<4} Arquivo")
    for record, row in zip(records, rows):
        print(f"{record.id[:8]:<10} {row['Data']:<10} {row['Área (m²)']:>12} "
              f"{row['Confiança']:>6} {row['Status A4']:<4} {row['Arquivo']}")
    return 0


def cmd_export(service: MeasurementService, args) -> int:
    count = service.export_csv(args.path)
    print(f"Exported {count} measurements to {args.path}")
    return 0


def cmd_delete(service: MeasurementService, args) -> int:
    record = service.get_record(args.record_id)
    if not service.delete_record(record.id):
        print(f"Could not delete {record.id}", file=sys.stderr)
        return 1
    print(f"Deleted {record.id}")
    return 0


def cmd_clear(service: MeasurementService, args) -> int:
    if not args.yes:
        answer = input("Delete all measurements? [y/N] ")
        if answer.strip().lower() not in ("y", "yes", "s", "sim"):
            print("Aborted.")
            return 0
    service.clear_history()
    print("History cleared.")
    return 0


COMMANDS = {
    "analyze": cmd_analyze,
    "trace": cmd_trace,
    "edit": cmd_edit,
    "history": cmd_history,
    "export": cmd_export,
    "delete": cmd_delete,
    "clear": cmd_clear,
}


def setup_logging(config: Config, console_only: bool) -> None:
    configure_logging(
        log_level=config.log_level,
        log_dir=config.log_dir,
        enable_file_logging=not console_only,
        structured_logging=config.structured_logging,
    )


def main(argv: Optional[List[str]] = None, service: Optional[MeasurementService] = None) -> int:
    """Run a CLI command; returns the process exit code."""
    args = build_parser().parse_args(argv)
    try:
        if service is None:
            config = load_config(args.config, args.env_file)
            setup_logging(config, args.no_log_file)
            service = MeasurementService(config)
        return COMMANDS[args.command](service, args)
    except ApplicationError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
