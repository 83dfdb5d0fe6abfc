"""Output truncation — bound tool output before it reaches the LLM."""

from __future__ import annotations

import os
import tempfile

MAX_LINES = 2000
MAX_BYTES = 50 * 1024  # 50KB
OVERFLOW_DIR = "~/.clawloop/tool-output"


def truncate_output(
    text: str,
    max_lines: int = MAX_LINES,
    max_bytes: int = MAX_BYTES,
    overflow_dir: str | None = None,
) -> str:
    """Truncate tool output to fit within the context budget.

    The tail of the output is kept, since errors tend to be at the end.
    When ``overflow_dir`` is given the full text is saved there and the
    notice names the file.

    Args:
        text: Raw tool output.
        max_lines: Maximum number of lines to keep.
        max_bytes: Maximum bytes to keep.
        overflow_dir: Directory for the untruncated output, or None.

    Returns:
        The output, with a one-line notice prepended if anything was cut.
    """
    if not text:
        return text

    lines = text.split("\n")
    byte_count = len(text.encode("utf-8", errors="replace"))

    if len(lines) <= max_lines and byte_count <= max_bytes:
        return text

    full_path = _save_overflow(text, overflow_dir) if overflow_dir else None

    skipped_lines = max(0, len(lines) - max_lines)
    kept = lines[-max_lines:] if skipped_lines else lines

    result = "\n".join(kept)
    result_bytes = result.encode("utf-8", errors="replace")
    skipped_bytes = 0
    if len(result_bytes) > max_bytes:
        # Cut at a safe UTF-8 boundary, keeping the tail
        result = result_bytes[-max_bytes:].decode("utf-8", errors="ignore")
        skipped_bytes = len(result_bytes) - max_bytes

    notice_parts = []
    if skipped_lines:
        notice_parts.append(f"{skipped_lines} lines skipped")
    if skipped_bytes:
        notice_parts.append(f"{skipped_bytes} bytes skipped")

    notice = (
        f"[Output truncated: {', '.join(notice_parts)}. "
        f"Total: {len(lines)} lines, {byte_count} bytes]"
    )
    if full_path:
        notice += f"\n[Full output saved to: {full_path}]"

    return f"{notice}\n{result}"


def _save_overflow(text: str, directory: str) -> str:
    directory = os.path.expanduser(directory)
    os.makedirs(directory, exist_ok=True)
    fd, path = tempfile.mkstemp(prefix="clawloop-", suffix=".txt", dir=directory)
    with os.fdopen(fd, "w") as f:
        f.write(text)
    return path
