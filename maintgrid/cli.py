from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any

from maintgrid import __version__ as TOOL_VERSION
from maintgrid.contracts import build_contract, build_run_summary
from maintgrid.errors import ERROR_HINTS, ErrorKind, classify_exception
from maintgrid.field_mapper import best_mapping_per_field
from maintgrid.importer import UploadedFile, generate_preview_data, process_file
from maintgrid.integration import apply_facts, find_similar_facts, validate_fact
from maintgrid.models import fact_from_dict, fact_to_dict, tree_from_dicts, tree_to_dicts
from maintgrid.recommender import KeywordRecommender
from maintgrid.settings import DEFAULT_SETTINGS, load_settings, settings_to_dict

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_IMPORT_ERRORS = 3
EXIT_APPLY_PARTIAL = 4

logger = logging.getLogger("maintgrid")


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class MaintgridArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json_dumps(payload), encoding="utf-8")


def configure_logging(args: argparse.Namespace) -> None:
    level = logging.WARNING
    if getattr(args, "verbose", False):
        level = logging.DEBUG
    elif getattr(args, "quiet", False):
        level = logging.ERROR
    logging.basicConfig(level=level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")


def read_json_file(path: Path, label: str) -> Any:
    if not path.exists():
        raise CliError(f"{label} not found: {path}", EXIT_COMMAND_ERROR)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise CliError(f"Could not read {label.lower()}: {exc}", EXIT_PARSE_FAILED) from exc


def load_tree(path: Path):
    payload = read_json_file(path, "Tree")
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        raise CliError("Tree root must be a JSON array of nodes or a single node object.", EXIT_PARSE_FAILED)
    return tree_from_dicts(payload)


def load_facts(path: Path):
    payload = read_json_file(path, "Facts")
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        raise CliError("Facts root must be a JSON array or a single fact object.", EXIT_PARSE_FAILED)
    return [fact_from_dict(item) for item in payload]


def classify_backend_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    kind = classify_exception(exc)
    if kind in {ErrorKind.FILE_PROCESSING, ErrorKind.VALIDATION}:
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def report_exception(exc: Exception) -> int:
    eprint(str(exc))
    if not isinstance(exc, CliError):
        for hint in ERROR_HINTS[classify_exception(exc)]:
            eprint(f"- {hint}")
    return classify_backend_exception(exc)


# ══════════════════════════════════════════════════════════════════════════════
# RENDERING
# ══════════════════════════════════════════════════════════════════════════════

def render_import_text(payload: dict[str, Any]) -> str:
    result = payload["result"]
    lines = [
        "maintgrid import",
        f"File: {payload['input']}",
        f"Format: {result.get('detectedFormat') or '[unknown]'}",
        f"Success: {result['success']}",
        f"Processed rows: {result['processedRows']}",
        f"Errors: {payload['error_count']}",
        f"Warnings: {payload['warning_count']}",
    ]
    if result.get("sheetName"):
        lines.append(f"Sheet: {result['sheetName']}")
    if payload["best_mappings"]:
        lines.append("Column mappings:")
        for field_id, mapping in payload["best_mappings"].items():
            lines.append(f"- {mapping['sourceColumn']} -> {field_id} ({mapping['confidence']:.2f})")
    if result["errors"]:
        lines.append("Issues:")
        for issue in result["errors"]:
            lines.append(f"- row {issue['row']} [{issue['severity']}] {issue['column']}: {issue['message']}")
    for warning in result.get("warnings", []):
        lines.append(f"Note: {warning}")
    return "\n".join(lines) + "\n"


def render_apply_text(payload: dict[str, Any]) -> str:
    lines = [
        "maintgrid apply",
        f"Tree: {payload['tree_input']}",
        payload["message"],
    ]
    if payload["errors"]:
        lines.append("Failures:")
        lines.extend(f"- {error}" for error in payload["errors"])
    for fact_id, warnings in payload["validation_warnings"].items():
        for warning in warnings:
            lines.append(f"Warning ({fact_id}): {warning}")
    return "\n".join(lines) + "\n"


def render_facts_text(title: str, facts: list[dict[str, Any]]) -> str:
    lines = [title, f"Facts: {len(facts)}"]
    for fact in facts:
        cost = f", cost {fact['cost']}" if "cost" in fact else ""
        lines.append(
            f"- {fact['equipmentId']} {fact['timeHeader']} {fact['action']}"
            f" ({fact['confidence']:.2f}{cost}): {fact['reason']}"
        )
    return "\n".join(lines) + "\n"


# ══════════════════════════════════════════════════════════════════════════════
# COMMANDS
# ══════════════════════════════════════════════════════════════════════════════

def run_import(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    if not input_path.exists():
        eprint(f"File not found: {input_path}")
        return EXIT_COMMAND_ERROR

    try:
        settings = load_settings(Path(args.config) if args.config else None)
        upload = UploadedFile.from_path(input_path)
        result = asyncio.run(process_file(upload, settings))
        result_dict = result.to_dict()
        contract = build_contract("maintgrid.import_result")
        payload: dict[str, Any] = {
            "contract": contract,
            "schema_version": contract["version"],
            "tool_version": TOOL_VERSION,
            "input": input_path.name,
            "result": result_dict,
            "error_count": result.error_count,
            "warning_count": result.warning_count,
            "best_mappings": {
                field_id: mapping.to_dict()
                for field_id, mapping in best_mapping_per_field(result.suggestions).items()
            },
            "run_summary": build_run_summary(
                command="import",
                input_paths=[input_path],
                status="ok" if result.success else "errors",
                warnings=result.warnings,
                metrics={
                    "processed_rows": result.processed_rows,
                    "error_count": result.error_count,
                    "warning_count": result.warning_count,
                    "mapping_suggestions": len(result.suggestions),
                },
            ),
        }
        if args.preview:
            payload["preview"] = asyncio.run(generate_preview_data(upload, result.suggestions, settings))
        if args.output:
            write_json(Path(args.output), payload)
            emit_human(f"Import report: {args.output}", quiet=args.quiet)
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_import_text(payload).rstrip(), quiet=args.quiet)
        if result.success:
            return EXIT_SUCCESS
        # row 0 marks a file-level rejection rather than a row issue
        if any(issue.row == 0 for issue in result.errors):
            return EXIT_PARSE_FAILED
        return EXIT_IMPORT_ERRORS
    except Exception as exc:
        return report_exception(exc)


def run_apply(args: argparse.Namespace) -> int:
    try:
        tree_path = Path(args.tree)
        tree = load_tree(tree_path)
        facts = load_facts(Path(args.facts))
        validation_warnings = {
            f"{fact.equipment_id}@{fact.time_header}": list(validate_fact(fact, tree).warnings)
            for fact in facts
        }
        applied_on = date.fromisoformat(args.date) if args.date else None
        result = apply_facts(tree, facts, applied_on=applied_on)
        contract = build_contract("maintgrid.apply_result")
        output_path = Path(args.output) if args.output else None
        payload = {
            "contract": contract,
            "schema_version": contract["version"],
            "tool_version": TOOL_VERSION,
            "tree_input": tree_path.name,
            "success": result.success,
            "message": result.message,
            "applied_count": result.applied_count,
            "errors": list(result.errors),
            "validation_warnings": {key: value for key, value in validation_warnings.items() if value},
            "tree": tree_to_dicts(result.tree),
            "run_summary": build_run_summary(
                command="apply",
                input_paths=[tree_path, Path(args.facts)],
                status="ok" if not result.errors else "partial",
                output_path=output_path,
                warnings=list(result.errors),
                metrics={"facts": len(facts), "applied": result.applied_count},
            ),
        }
        if output_path is not None:
            write_json(output_path, tree_to_dicts(result.tree))
            emit_human(f"Updated tree: {output_path}", quiet=args.quiet)
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_apply_text(payload).rstrip(), quiet=args.quiet)
        return EXIT_APPLY_PARTIAL if result.errors else EXIT_SUCCESS
    except Exception as exc:
        return report_exception(exc)


def run_similar(args: argparse.Namespace) -> int:
    try:
        tree = load_tree(Path(args.tree))
        facts = load_facts(Path(args.fact))
        similar = [fact_to_dict(item) for fact in facts for item in find_similar_facts(fact, tree)]
        contract = build_contract("maintgrid.similar_facts")
        payload = {
            "contract": contract,
            "schema_version": contract["version"],
            "tool_version": TOOL_VERSION,
            "facts": similar,
        }
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_facts_text("maintgrid similar", similar).rstrip(), quiet=args.quiet)
        return EXIT_SUCCESS
    except Exception as exc:
        return report_exception(exc)


def run_suggest(args: argparse.Namespace) -> int:
    facts = [fact_to_dict(fact) for fact in KeywordRecommender().recommend(args.text)]
    contract = build_contract("maintgrid.recommendations")
    payload = {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        "facts": facts,
    }
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        print(render_facts_text("maintgrid suggest", facts), end="")
    return EXIT_SUCCESS


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    write_json(config_path, settings_to_dict(DEFAULT_SETTINGS))
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = MaintgridArgumentParser(prog="maintgrid", description="Maintenance grid import and rollup tools.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_cmd = subparsers.add_parser("import", help="Map, validate and report on a spreadsheet or CSV.")
    import_cmd.add_argument("input", help="Input file path (.xlsx, .xls, .csv)")
    import_cmd.add_argument("--config", help="JSON settings file")
    import_cmd.add_argument("--output", help="Write the JSON report to this path")
    import_cmd.add_argument("--preview", action="store_true", help="Include the first rows keyed by mapped field")
    import_cmd.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    import_cmd.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    import_cmd.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    apply_cmd = subparsers.add_parser("apply", help="Apply maintenance facts to an equipment tree.")
    apply_cmd.add_argument("tree", help="Equipment tree JSON")
    apply_cmd.add_argument("facts", help="Fact or list of facts JSON")
    apply_cmd.add_argument("--output", help="Write the updated tree JSON to this path")
    apply_cmd.add_argument("--date", help="ISO date recorded in the provenance note")
    apply_cmd.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    apply_cmd.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    apply_cmd.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    similar = subparsers.add_parser("similar", help="Propose the same fact for other open periods.")
    similar.add_argument("tree", help="Equipment tree JSON")
    similar.add_argument("fact", help="Fact or list of facts JSON")
    similar.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    similar.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    similar.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    suggest = subparsers.add_parser("suggest", help="Canned keyword recommendations.")
    suggest.add_argument("text", help="Free text to match against keyword groups")
    suggest.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a default settings file.")
    config_init.add_argument("path", help="Settings output path")

    subparsers.add_parser("version", help="Print the maintgrid version.")
    return parser


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        configure_logging(args)
        if args.command == "import":
            return run_import(args)
        if args.command == "apply":
            return run_apply(args)
        if args.command == "similar":
            return run_similar(args)
        if args.command == "suggest":
            return run_suggest(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
