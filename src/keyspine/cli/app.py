"""
Root Typer application for the keyspine CLI.

Commands work on a single pattern given on the command line; reading
definitions from files is left to the tools that embed keyspine.

    keyspine inspect "ORDER#{tenant}#{id}"
    keyspine check "TS#{ts:unix}" --field ts=datetime --sort-key
    keyspine derive "USER#{user.id}" --attr user.id=42
"""

from __future__ import annotations

import base64
import re

import typer

from keyspine.cli.output import console, fail, parse_assignments, print_json, print_mapping, print_rows
from keyspine.core.errors import KeySpineError, UnknownFieldError
from keyspine.core.logging import configure_logging
from keyspine.core.result import collect_all_errors, try_result
from keyspine.core.settings import get_settings
from keyspine.keys.compiler import compile_ref
from keyspine.keys.extract import build_extractor
from keyspine.keys.kinds import AttributeKind
from keyspine.keys.pattern import FieldRef, LiteralSegment, PatternSpec, parse_pattern
from keyspine.keys.sortability import check_sort_safety

app = typer.Typer(
    name="keyspine",
    help="keyspine: sortable composite keys for key-value stores.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

EXIT_ERROR = 1
EXIT_UNSORTABLE = 2


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from keyspine import __version__

        typer.echo(f"keyspine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Inspect, check and derive storage keys."""
    try:
        settings = get_settings()
    except KeySpineError as e:
        fail(e)
    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")


def _kind(kind: str | None) -> AttributeKind:
    if kind is None:
        return get_settings().default_kind
    try:
        return AttributeKind(kind.upper())
    except ValueError:
        raise typer.BadParameter(f"kind must be S, N or B, got {kind!r}", param_hint="--kind") from None


def _parse(pattern: str, kind: AttributeKind, as_json: bool) -> PatternSpec:
    try:
        return parse_pattern(pattern, kind)
    except KeySpineError as e:
        fail(e, as_json=as_json)


def _segment_rows(spec: PatternSpec) -> list[dict[str, str | None]]:
    rows = []
    for segment in spec.segments:
        if isinstance(segment, LiteralSegment):
            rows.append({"type": "literal", "value": segment.value, "modifiers": None, "width": None})
        else:
            rows.append(
                {
                    "type": "field",
                    "value": segment.path,
                    "modifiers": ":".join(segment.modifiers) or None,
                    "width": segment.width_spec,
                }
            )
    return rows


# ── inspect ──────────────────────────────────────────────────────────────


@app.command("inspect")
def inspect_pattern(
    pattern: str = typer.Argument(..., help="Key pattern, e.g. 'USER#{id}'"),
    kind: str | None = typer.Option(None, "--kind", "-k", help="Attribute kind: S, N or B"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Parse a pattern and show its segments."""
    spec = _parse(pattern, _kind(kind), as_json)
    summary = {
        "pattern": spec.raw,
        "kind": spec.kind.value,
        "constant": spec.is_constant,
        "literal_prefix": spec.literal_prefix,
        "field_paths": spec.field_paths(),
    }

    if as_json:
        print_json({**summary, "segments": _segment_rows(spec)})
        return

    print_mapping({**summary, "field_paths": ", ".join(summary["field_paths"]) or "-"}, title="Pattern")
    print_rows(_segment_rows(spec), title="Segments")


# ── check ────────────────────────────────────────────────────────────────


@app.command("check")
def check_pattern(
    pattern: str = typer.Argument(..., help="Key pattern, e.g. 'TS#{ts:unix}'"),
    field: list[str] | None = typer.Option(None, "--field", "-f", help="Field type as PATH=TYPE (repeatable)"),
    sort_key: bool = typer.Option(False, "--sort-key", "-s", help="Check sort-key safety"),
    entity: str = typer.Option("Entity", "--entity", "-e", help="Entity label for diagnostics"),
    kind: str | None = typer.Option(None, "--kind", "-k", help="Attribute kind: S, N or B"),
    strict: bool = typer.Option(False, "--strict", help="Exit 2 when sort-key diagnostics exist"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Compile every field reference of a pattern for its field type."""
    field_types = parse_assignments(field, option="--field")
    spec = _parse(pattern, _kind(kind), as_json)
    refs = spec.field_refs()

    def compile_one(ref: FieldRef):
        if ref.path not in field_types:
            raise UnknownFieldError(ref.path).with_context(pattern=pattern)
        return compile_ref(ref, field_types[ref.path])

    outcome = collect_all_errors([try_result(lambda ref=ref: compile_one(ref)) for ref in refs])
    if outcome.is_err():
        fail(outcome.error, as_json=as_json, code=EXIT_ERROR)
    params = outcome.unwrap()

    diagnostics = []
    if sort_key:
        for ref in refs:
            found = check_sort_safety(ref, field_types[ref.path], entity)
            if found is not None:
                diagnostics.append(found)

    if as_json:
        print_json(
            {
                "pattern": spec.raw,
                "params": [p.to_dict() for p in params],
                "diagnostics": [d.to_dict() for d in diagnostics],
            }
        )
    else:
        print_rows(
            [
                {
                    "field": p.field_path,
                    "type": p.semantic_type.value,
                    "param": p.param.describe(),
                    "entity": p.entity.describe(),
                }
                for p in params
            ],
            title=f"Conversions for {spec.raw}",
        )
        if sort_key and not diagnostics:
            console.print("[green]Sort-key safe.[/green]")
        for diagnostic in diagnostics:
            console.print(f"[yellow]warning[/yellow] {diagnostic.field_path}: {diagnostic.cause}")
            console.print(f"  fix: {diagnostic.suggestion}")

    if diagnostics and (strict or get_settings().strict_sortability):
        raise typer.Exit(code=EXIT_UNSORTABLE)


# ── derive ───────────────────────────────────────────────────────────────


_NUMBER = re.compile(r"-?\d+(\.\d+)?([eE][-+]?\d+)?")


def _attribute(value: str) -> dict:
    if _NUMBER.fullmatch(value):
        return {"N": value}
    return {"S": value}


def _record(attrs: dict[str, str]) -> dict:
    """Build an attribute map; numeric values are stored as N, dotted names as M maps."""
    record: dict = {}
    for name, value in attrs.items():
        *parents, leaf = name.split(".")
        current = record
        for i, parent in enumerate(parents):
            node = current.setdefault(parent, {"M": {}})
            if "M" not in node:
                prefix = ".".join(parents[: i + 1])
                raise typer.BadParameter(
                    f"{name!r} nests under {prefix!r}, which is already a value", param_hint="--attr"
                )
            current = node["M"]
        if leaf in current:
            raise typer.BadParameter(f"{name!r} is already a map of nested attributes", param_hint="--attr")
        current[leaf] = _attribute(value)
    return record


def _json_value(value: dict) -> dict:
    tag, raw = next(iter(value.items()))
    if isinstance(raw, bytes):
        return {tag: base64.b64encode(raw).decode("ascii")}
    return value


@app.command("derive")
def derive_key(
    pattern: str = typer.Argument(..., help="Key pattern, e.g. 'USER#{user.id}'"),
    attr: list[str] | None = typer.Option(
        None, "--attr", "-a", help="Record attribute as NAME=VALUE (repeatable; numbers are stored as N)"
    ),
    kind: str | None = typer.Option(None, "--kind", "-k", help="Attribute kind: S, N or B"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Derive a key value from a record given as attributes."""
    key_kind = _kind(kind)
    spec = _parse(pattern, key_kind, as_json)
    record = _record(parse_assignments(attr, option="--attr"))

    result = build_extractor(spec).try_apply(record)
    if result.is_err():
        fail(result.error, as_json=as_json)
    value = result.unwrap()

    if as_json:
        print_json({"pattern": spec.raw, "value": _json_value(value)})
        return
    tag, raw = next(iter(value.items()))
    text = raw.decode("utf-8", errors="backslashreplace") if isinstance(raw, bytes) else raw
    typer.echo(f"{tag}: {text}")


if __name__ == "__main__":
    app()
