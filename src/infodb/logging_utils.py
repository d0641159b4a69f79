"""Multi-line log messages for store and redo summaries."""

from __future__ import annotations

from collections.abc import Mapping

INDENT = "    "


def render_fields_block(title: str, fields: Mapping[str, object], *, pad_top: bool = True) -> str:
    """Render ``title`` over aligned ``label: value`` lines.

    Example:
        render_fields_block("Negative Entry Redo", {"Upgraded": 2, "Failed": 0}, pad_top=False)
        # Negative Entry Redo
        # -------------------
        #     Upgraded: 2
        #     Failed  : 0
    """
    lines = [""] if pad_top else []
    lines.append(title)
    lines.append("-" * len(title))

    width = max((len(label) for label in fields), default=0)
    for label, value in fields.items():
        text = "" if value is None else str(value)
        lines.append(f"{INDENT}{label:<{width}}: {text}".rstrip())
    return "\n".join(lines)
