"""Text helpers for terminal output."""


def wrap_text(text: str, width: int = 80) -> str:
    """
    Greedy word wrap.

    Whitespace runs (newlines included) collapse to single spaces. Words longer
    than ``width`` stay on a line of their own.

    Args:
        text: Text to wrap
        width: Maximum line width

    Returns:
        The wrapped text, or an empty string for blank input
    """
    if not text or not isinstance(text, str):
        return ""

    words = text.split()
    if not words:
        return ""

    lines = [words[0]]
    space_left = width - len(words[0])
    for word in words[1:]:
        if len(word) + 1 > space_left:
            lines.append(word)
            space_left = width - len(word)
        else:
            lines[-1] += " " + word
            space_left -= len(word) + 1

    return "\n".join(lines)
