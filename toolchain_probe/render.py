"""
Output rendering and formatting.

Tables are aligned by terminal display width (``wcwidth``) so emoji status
icons and colored cells line up.
"""

from __future__ import annotations

import os
import re
from typing import Any, Iterable, Sequence, TextIO

from wcwidth import wcswidth, wcwidth

from .catalog import CatalogResult
from .probe import ToolProbeResult
from .resolver import ExecutableHandle


# Environment options
USE_EMOJI = os.environ.get("TOOLCHAIN_PROBE_EMOJI", "1") == "1"
USE_COLOR = os.environ.get("TOOLCHAIN_PROBE_COLOR", "1") == "1"

# ANSI color codes
GREEN = "\033[32m"
BOLD_GREEN = "\033[1;32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"
RED = "\033[31m"
RESET = "\033[0m"

CSI_RE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]")

STATUS_OK = "ok"
STATUS_OUTDATED = "outdated"
STATUS_WARNING = "warning"
STATUS_MISSING = "missing"

_STATUS_COLORS = {
    STATUS_OK: GREEN,
    STATUS_OUTDATED: YELLOW,
    STATUS_WARNING: YELLOW,
    STATUS_MISSING: RED,
}


def status_icon(status: str) -> str:
    """Get status icon for a doctor row.

    Args:
        status: ok, outdated, warning or missing

    Returns:
        Status icon string
    """
    if not USE_EMOJI:
        return {STATUS_OK: "✓", STATUS_OUTDATED: "↑", STATUS_WARNING: "⚠", STATUS_MISSING: "x"}.get(status, "?")
    return {STATUS_OK: "✅", STATUS_OUTDATED: "⬆", STATUS_WARNING: "⚠️", STATUS_MISSING: "❌"}.get(status, "❓")


def colorize(text: str, color: str) -> str:
    """Apply color to text.

    Returns:
        Colored text or plain text if colors disabled
    """
    if not USE_COLOR or not text:
        return text
    return f"{color}{text}{RESET}"


def display_width(text: str) -> int:
    """Terminal cell width of text, ignoring ANSI escapes."""
    plain = CSI_RE.sub("", text)
    width = wcswidth(plain)
    if width >= 0:
        return width
    # Non-printable characters make wcswidth give up; count the printable ones
    return sum(max(wcwidth(ch), 0) for ch in plain)


def pad(text: str, width: int) -> str:
    return text + " " * max(width - display_width(text), 0)


def align_table(headers: Sequence[str], rows: Iterable[Sequence[str]]) -> list[str]:
    """Lay out rows as space-aligned columns.

    Returns:
        Lines (header, separator, rows) without trailing whitespace
    """
    table = [list(headers)] + [[str(c) for c in row] for row in rows]
    widths = [max(display_width(row[i]) for row in table) for i in range(len(headers))]

    lines = []
    for index, row in enumerate(table):
        cells = [pad(cell, widths[i]) for i, cell in enumerate(row)]
        lines.append("  ".join(cells).rstrip())
        if index == 0:
            lines.append("  ".join("-" * w for w in widths))
    return lines


def render_doctor(rows: Sequence[dict[str, Any]], out: TextIO) -> None:
    """Render doctor rows (component, status, version, detail)."""
    body = []
    for row in rows:
        status = row.get("status", "")
        body.append((
            status_icon(status),
            row.get("component", ""),
            colorize(row.get("version") or "-", _STATUS_COLORS.get(status, BLUE)),
            row.get("detail") or "",
        ))
    for line in align_table(("", "component", "version", "detail"), body):
        print(line, file=out)

    missing = sum(1 for r in rows if r.get("status") == STATUS_MISSING)
    outdated = sum(1 for r in rows if r.get("status") == STATUS_OUTDATED)
    print(f"\n{len(rows)} checks, {outdated} outdated, {missing} missing", file=out)


def render_probe(package: str, result: ToolProbeResult, out: TextIO) -> None:
    if not result.installed:
        print(f"{status_icon(STATUS_MISSING)} {package}: not installed ({result.source_strategy})", file=out)
        return
    kind = result.install_kind.value if result.install_kind else "unknown"
    print(f"{status_icon(STATUS_OK)} {package} {result.version} [{kind}] via {result.source_strategy}", file=out)
    if result.location:
        print(f"   {result.location}", file=out)


def render_handle(handle: ExecutableHandle, out: TextIO) -> None:
    print(f"{handle.tool.value}: {' '.join(handle.argv)} ({handle.source.value})", file=out)
    if handle.warning:
        print(colorize(f"   warning: {handle.warning}", YELLOW), file=out)


def render_catalog(result: CatalogResult, out: TextIO) -> None:
    rows = [(e.id, e.name, e.version, e.category, e.status) for e in result.entries]
    for line in align_table(("id", "name", "version", "category", "status"), rows):
        print(line, file=out)
    print(f"\n{len(result.entries)} modules (source: {result.source})", file=out)
