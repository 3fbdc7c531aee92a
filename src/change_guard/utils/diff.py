"""Line-oriented diffing.

:class:`LineDiffEngine` implements a greedy two-cursor walk that is cheap and
predictable but not guaranteed to be minimal. It feeds human-readable diffs
and the sequential merge resolver. :func:`unified_diff` wraps ``difflib`` for
git-style output in the CLI.
"""

import difflib
import logging
from dataclasses import dataclass
from enum import Enum

from .text import join_lines, split_lines

logger = logging.getLogger(__name__)


class DiffKind(str, Enum):
    """Kind of a single diff operation."""

    EQUAL = "equal"
    DELETE = "delete"
    INSERT = "insert"


@dataclass(frozen=True, slots=True)
class DiffOp:
    """One diff operation.

    Attributes:
        kind: equal, delete or insert.
        old_index: 0-based index into the old lines. For inserts this is the
            old-side cursor position the line is inserted before.
        new_index: 0-based index into the new lines. For deletes this is the
            new-side cursor position at the time of the delete.
        text: The line content.
    """

    kind: DiffKind
    old_index: int
    new_index: int
    text: str


_RENDER_PREFIX = {DiffKind.EQUAL: "  ", DiffKind.DELETE: "- ", DiffKind.INSERT: "+ "}


class LineDiffEngine:
    """Greedy line diff.

    Walks both line lists with two cursors. Matching lines are emitted as
    equal. On a mismatch the engine looks ahead (unbounded) in the old lines
    for the current new line and in the new lines for the current old line,
    then takes the side that skips fewer lines; a tie favours deleting. When
    neither side has a future match, the current pair becomes one delete
    plus one insert.
    """

    def diff(self, old_lines: list[str], new_lines: list[str]) -> list[DiffOp]:
        """Compute the operations turning ``old_lines`` into ``new_lines``."""
        ops: list[DiffOp] = []
        i = j = 0
        n_old, n_new = len(old_lines), len(new_lines)

        while i < n_old or j < n_new:
            if i >= n_old:
                ops.append(DiffOp(DiffKind.INSERT, i, j, new_lines[j]))
                j += 1
                continue
            if j >= n_new:
                ops.append(DiffOp(DiffKind.DELETE, i, j, old_lines[i]))
                i += 1
                continue
            if old_lines[i] == new_lines[j]:
                ops.append(DiffOp(DiffKind.EQUAL, i, j, old_lines[i]))
                i += 1
                j += 1
                continue

            match_in_old = self._find(old_lines, new_lines[j], i + 1)
            match_in_new = self._find(new_lines, old_lines[i], j + 1)

            if match_in_old is not None and (
                match_in_new is None or match_in_old - i <= match_in_new - j
            ):
                for k in range(i, match_in_old):
                    ops.append(DiffOp(DiffKind.DELETE, k, j, old_lines[k]))
                i = match_in_old
            elif match_in_new is not None:
                for k in range(j, match_in_new):
                    ops.append(DiffOp(DiffKind.INSERT, i, k, new_lines[k]))
                j = match_in_new
            else:
                ops.append(DiffOp(DiffKind.DELETE, i, j, old_lines[i]))
                ops.append(DiffOp(DiffKind.INSERT, i + 1, j, new_lines[j]))
                i += 1
                j += 1

        return ops

    def diff_text(self, old_text: str, new_text: str) -> list[DiffOp]:
        """Diff two texts split on newlines."""
        return self.diff(split_lines(old_text), split_lines(new_text))

    def apply(self, lines: list[str], ops: list[DiffOp], offset: int = 0) -> list[str]:
        """Replay the delete/insert operations of ``ops`` onto ``lines``.

        Operation positions are shifted by ``offset``. Deletes only ever target
        lines of the input; those outside it are skipped. Inserts past the end
        are appended.

        Returns:
            A new list; ``lines`` is not modified.
        """
        result = list(lines)
        edits = [op for op in ops if op.kind is not DiffKind.EQUAL]
        # Replay back to front so earlier positions stay valid.
        for op in reversed(edits):
            position = op.old_index + offset
            if op.kind is DiffKind.DELETE:
                if 0 <= position < min(len(lines), len(result)):
                    del result[position]
                else:
                    logger.debug(f"Skipping out-of-range delete at line {position}")
            else:
                result.insert(min(max(position, 0), len(result)), op.text)
        return result

    def apply_text(self, text: str, old_text: str, new_text: str, offset: int = 0) -> str:
        """Replay the diff between ``old_text`` and ``new_text`` onto ``text``."""
        return join_lines(self.apply(split_lines(text), self.diff_text(old_text, new_text), offset))

    @staticmethod
    def _find(lines: list[str], target: str, start: int) -> int | None:
        for k in range(start, len(lines)):
            if lines[k] == target:
                return k
        return None


def render_diff(old_text: str, new_text: str, engine: LineDiffEngine | None = None) -> str:
    """Render a readable diff with two-character prefixes (``"  "``, ``"- "``, ``"+ "``)."""
    ops = (engine or LineDiffEngine()).diff_text(old_text, new_text)
    return "\n".join(f"{_RENDER_PREFIX[op.kind]}{op.text}" for op in ops)


def unified_diff(old_text: str, new_text: str, path: str = "unit") -> str:
    """Generate a git-compatible unified diff.

    Returns:
        Unified diff string with a/ b/ prefixes. Empty string if no changes.
    """
    if old_text == new_text:
        return ""
    diff_gen = difflib.unified_diff(
        old_text.splitlines(),
        new_text.splitlines(),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
        lineterm="",
    )
    return "\n".join(diff_gen)
