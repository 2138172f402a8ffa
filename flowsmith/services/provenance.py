"""Provenance headers for externalized content files.

Rendering and stripping live together so the compiler removes exactly what
the externalizer wrote. A header is only stripped when it starts with the
generator marker line; anything else in a content file is left untouched.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

GENERATOR_MARKER = "generator: flowsmith (do not edit this header)"
SENTINEL_WIDTH = 50

# Close tokens of block comment styles, removed from header values
_CLOSE_TOKENS = ("*/", '"""', "-->")


@dataclass(frozen=True)
class HeaderStyle:
    """Comment syntax used for one file extension."""

    prefix: str
    close: str
    open: str | None = None


STYLES: dict[str, HeaderStyle] = {
    "js": HeaderStyle(open="/**", prefix=" * ", close=" */"),
    "py": HeaderStyle(open='"""', prefix="", close='"""'),
    "md": HeaderStyle(open="---", prefix="", close="---"),
    "html": HeaderStyle(open="<!--", prefix="  ", close="-->"),
    "sql": HeaderStyle(prefix="-- ", close="--" + "-" * SENTINEL_WIDTH),
    "txt": HeaderStyle(prefix="# ", close="#" + "-" * SENTINEL_WIDTH),
}


def _clean(value: str) -> str:
    value = " ".join(str(value).splitlines())
    for token in _CLOSE_TOKENS:
        value = value.replace(token, "")
    return value.strip()


def style_for(extension: str) -> HeaderStyle:
    try:
        return STYLES[extension.lstrip(".").lower()]
    except KeyError:
        raise ValueError(f"No header style for extension '{extension}'") from None


def render_header(extension: str, values: dict[str, str]) -> str:
    """Render a provenance header, including the blank line that separates it from content.

    Args:
        extension: Content file extension (``js``, ``md``, ...).
        values: Ordered header entries, e.g. node, workflow and subtype.
    """
    style = style_for(extension)
    lines = [style.open] if style.open else []
    lines.append(f"{style.prefix}{GENERATOR_MARKER}")
    lines.extend(f"{style.prefix}{_clean(key)}: {_clean(val)}" for key, val in values.items())
    lines.append(style.close)
    return "\n".join(lines) + "\n\n"


def with_header(extension: str, values: dict[str, str], content: str) -> str:
    return render_header(extension, values) + content


def strip_header(extension: str, text: str) -> str:
    """Remove a header written by render_header, returning the content unchanged otherwise."""
    style = style_for(extension)
    lines = text.split("\n")
    index = 0
    if style.open:
        if not lines or lines[0] != style.open:
            return text
        index = 1
    if index >= len(lines) or lines[index] != f"{style.prefix}{GENERATOR_MARKER}":
        return text
    index += 1
    entry_prefix = style.prefix.rstrip()
    while index < len(lines) and lines[index] != style.close:
        if not lines[index].startswith(entry_prefix):
            return text
        index += 1
    if index >= len(lines):
        logger.debug("Provenance header is not closed, keeping file content as-is")
        return text
    index += 1
    if index < len(lines) and lines[index] == "":
        index += 1
    return "\n".join(lines[index:])
