from __future__ import annotations

import argparse
import sys
import traceback
from pathlib import Path

from . import __version__
from .aggregate import aggregate_dashboard_data
from .config import DEFAULT_NOTES_REF, DEFAULT_OUTPUT
from .dashboard import render_dashboard_html
from .git import get_repo_toplevel, list_notes_refs


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="git-ai-report",
        description="Generate an HTML dashboard of AI authorship from git notes.",
    )
    p.add_argument("-o", "--output", type=Path, default=Path(DEFAULT_OUTPUT), help=f"Output HTML file (default: {DEFAULT_OUTPUT}).")
    p.add_argument("-n", "--notes-ref", type=str, default=DEFAULT_NOTES_REF, help=f"Git notes ref to read (default: {DEFAULT_NOTES_REF}).")
    p.add_argument("-s", "--since", type=str, default="", help='Only include commits after this date, e.g. "2024-01-01" or "30 days ago".')
    p.add_argument("-r", "--repo-name", type=str, default="", help="Repository name shown in the dashboard header.")
    p.add_argument("--debug", action="store_true", help="Print a traceback on failure.")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def generate_dashboard(args: argparse.Namespace, cwd: Path | None = None) -> int:
    print("🤖 AI Authorship Dashboard Generator")
    print("")
    print("📋 Configuration:")
    print(f"   Output file: {args.output}")
    print(f"   Notes ref: {args.notes_ref}")
    if args.since:
        print(f"   Since: {args.since}")
    if args.repo_name:
        print(f"   Repository: {args.repo_name}")
    print("")

    root = get_repo_toplevel(cwd or Path.cwd())
    if root is None:
        print("❌ Error: Not a git repository. Run this command inside a git repository.", file=sys.stderr)
        return 1

    print("📊 Aggregating data from git notes...")
    data = aggregate_dashboard_data(args.notes_ref, since=args.since or None, cwd=root)
    print(f"✅ Found {data.total_commits} commits with AI authorship data")
    print(f"   {data.total_files} files modified")
    print(f"   {data.total_lines:,.0f} total lines")
    print(f"   {data.ai_percentage:.1f}% AI contribution")
    print("")

    if data.total_commits == 0:
        print("⚠️  No commits with AI authorship data found.", file=sys.stderr)
        print("   Make sure:")
        print("   1. You have git notes attached to commits")
        print("   2. Notes are in the Git AI authorship format")
        print(f'   3. The notes ref "{args.notes_ref}" exists')
        refs = list_notes_refs(cwd=root)
        if refs:
            print("   Available notes refs: " + ", ".join(refs))
        print("")
        print("   Run: git log --show-notes to check for notes")
        return 1

    print("🎨 Generating HTML dashboard...")
    html = render_dashboard_html(data, repo_name=args.repo_name or None)
    out = Path(args.output)
    if not out.is_absolute():
        out = (cwd or Path.cwd()) / out
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(html, encoding="utf-8")

    print("✅ Dashboard generated successfully!")
    print(f"   File: {out}")
    print(f"   Size: {len(html.encode('utf-8')) / 1024:.2f} KB")
    print("")
    print(f"🌐 Open file://{out} in your browser to view the dashboard.")
    return 0


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    if argv and argv[0] == "action":
        from .action import main as action_main

        return action_main(argv[1:])

    args = _build_parser().parse_args(argv)
    try:
        return generate_dashboard(args)
    except Exception as e:
        print("❌ Error generating dashboard:", file=sys.stderr)
        print(f"   {e}", file=sys.stderr)
        if args.debug:
            print("", file=sys.stderr)
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
