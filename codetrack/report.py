"""On-demand metrics report."""

from typing import Optional
from urllib.parse import unquote, urlparse

from .state import StateStore
from .sync.metrics import DiffStats

__all__ = ["build_report", "format_duration"]


def format_duration(seconds: float) -> str:
    """Format seconds as e.g. "1h 02m 05s"."""
    total = int(round(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


def _document_label(key: str) -> str:
    if key.startswith("file://"):
        return unquote(urlparse(key).path)
    return key


def _format_stats(stats: Optional[DiffStats]) -> str:
    if stats is None:
        return "n/a"
    return f"+{stats.added} / −{stats.removed} ({stats.files_changed} files)"


def build_report(
    state: StateStore,
    tracking_stats: Optional[DiffStats] = None,
    workspace_stats: Optional[DiffStats] = None,
) -> str:
    """Plain-text report of language saves, session times and diffs."""
    lines = ["Coding metrics", ""]

    lines.append("Saves by language:")
    if state.language_counts:
        ranked = sorted(state.language_counts.items(), key=lambda kv: (-kv[1], kv[0]))
        for language, count in ranked:
            lines.append(f"  {language}: {count}")
    else:
        lines.append("  (none yet)")

    lines.append("")
    lines.append("Time with files open:")
    if state.session_durations:
        ranked = sorted(state.session_durations.items(), key=lambda kv: (-kv[1], kv[0]))
        for key, seconds in ranked:
            lines.append(f"  {_document_label(key)}: {format_duration(seconds)}")
    else:
        lines.append("  (none yet)")

    lines.append("")
    lines.append(f"Commits recorded: {state.commit_count}")
    lines.append(f"Tracking repo diff: {_format_stats(tracking_stats)}")
    lines.append(f"Workspace diff: {_format_stats(workspace_stats)}")
    return "\n".join(lines)
