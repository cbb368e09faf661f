"""Pull program code out of raw generation output."""

import re

# Opening fence with an optional info line (language tag), then the body up to
# the closing fence. A one-line block has no info line. The line break before
# the closing fence, LF or CRLF, is not part of the body.
_FENCED_BLOCK = re.compile(r"```(?:[^\n`]*\n)?(.*?)\r?\n?```", re.DOTALL)


def extract_code(text: str) -> str:
    """Return the interior of the first fenced block, or the whole text.

    This is a heuristic: output that mentions a fence inside prose will be
    cut at the first block.
    """
    match = _FENCED_BLOCK.search(text)
    if match is None:
        return text
    return match.group(1)
