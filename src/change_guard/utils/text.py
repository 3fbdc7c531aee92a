"""Text utility functions shared by the diff engine and the merge resolvers."""


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, keeping a trailing empty line if the text ends with one.

    ``join_lines(split_lines(text)) == text`` holds for every input.
    """
    return text.split("\n")


def join_lines(lines: list[str]) -> str:
    """Inverse of :func:`split_lines`."""
    return "\n".join(lines)
