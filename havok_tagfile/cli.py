"""Command line inspection of Havok packfiles."""
from __future__ import annotations

import argparse
import logging
from collections import Counter
from typing import Optional, Sequence

from rich.console import Console
from rich.table import Table

from . import config
from .config import DecoderOptions
from .errors import TagfileError
from .havok_file import HavokFile
from .io.objects import Animation, Skeleton

console = Console()


def _load(args: argparse.Namespace) -> HavokFile:
    options = DecoderOptions(
        max_array_count=args.max_array_count,
        strict_classes=args.strict,
    )
    return HavokFile.from_path(args.file, options)


def cmd_summary(args: argparse.Namespace) -> int:
    hk = _load(args)
    header = hk.header
    console.print(f"[bold]File:[/bold] {args.file}")
    console.print(f"[bold]Version:[/bold] {header.contents_version} (file version {header.file_version})")
    console.print(f"[bold]Classes:[/bold] {len(hk.class_names)}   [bold]Fixups:[/bold] {len(hk.fixups.fixups)}")

    st = Table(title="Sections")
    st.add_column("Name")
    st.add_column("Data start", justify="right")
    st.add_column("End", justify="right")
    for section in header.sections:
        st.add_row(section.tag, f"0x{section.absolute_data_start:X}", f"0x{section.end_offset:X}")
    console.print(st)

    ot = Table(title="Objects")
    ot.add_column("Type")
    ot.add_column("Count", justify="right")
    counts = Counter(type(obj).__name__ for obj in hk.objects.values())
    for name, count in sorted(counts.items()):
        ot.add_row(name, str(count))
    for name, count in sorted(Counter(hk.skipped_classes.values()).items()):
        ot.add_row(f"{name or '(unnamed)'} (skipped)", str(count))
    if not counts and not hk.skipped_classes:
        ot.add_row("(none found)", "-")
    console.print(ot)
    return 0


def cmd_skeletons(args: argparse.Namespace) -> int:
    hk = _load(args)
    found = False
    for address, skeleton in hk.iter_objects(Skeleton):
        found = True
        t = Table(title=f"{skeleton.name} @ 0x{address:X}")
        t.add_column("#", justify="right")
        t.add_column("Bone", overflow="fold")
        t.add_column("Parent", justify="right")
        t.add_column("Position")
        t.add_column("Locked", justify="center")
        for index, bone in enumerate(skeleton.bones):
            t.add_row(
                str(index),
                bone.name,
                str(bone.parent_index),
                "({:.3f}, {:.3f}, {:.3f})".format(*bone.position),
                "x" if bone.translation_locked else "",
            )
        console.print(t)
    if not found:
        console.print("[yellow]No skeletons found.[/yellow]")
    return 0


def cmd_animations(args: argparse.Namespace) -> int:
    hk = _load(args)
    t = Table(title="Animations")
    t.add_column("Address", justify="right")
    t.add_column("Duration", justify="right")
    t.add_column("Tracks", justify="right")
    t.add_column("Blocks", justify="right")
    t.add_column("Frames", justify="right")
    t.add_column("Annotated bones", justify="right")
    rows = 0
    for address, animation in hk.iter_objects(Animation):
        rows += 1
        t.add_row(
            f"0x{address:X}",
            f"{animation.duration:.3f}",
            str(animation.num_transform_tracks),
            str(animation.num_blocks),
            str(animation.num_frames),
            str(len(animation.bone_to_track)),
        )
    if not rows:
        t.add_row("(none found)", "-", "-", "-", "-", "-")
    console.print(t)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="havok-tagfile")
    p.add_argument("-v", "--verbose", action="store_true", help="Log per-object decoding")
    p.add_argument("--strict", action="store_true", help="Fail on classes without a decoder")
    p.add_argument(
        "--max-array-count",
        type=int,
        default=config.dMaxArrayCount,
        help="Reject arrays declaring more elements than this",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("summary", help="Print sections and decoded object counts")
    s.add_argument("file")
    s.set_defaults(fn=cmd_summary)

    k = sub.add_parser("skeletons", help="List the bones of every skeleton")
    k.add_argument("file")
    k.set_defaults(fn=cmd_skeletons)

    a = sub.add_parser("animations", help="List spline compressed animations")
    a.add_argument("file")
    a.set_defaults(fn=cmd_animations)

    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger("havok_tagfile").setLevel(logging.DEBUG)
    try:
        return int(args.fn(args))
    except (OSError, TagfileError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
