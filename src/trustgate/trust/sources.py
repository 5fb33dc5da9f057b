"""
Trust source readers.

Each reader turns one configured source into a set of normalized digests.
Note and external file sources share the same line-oriented format:

    # comment lines start with '#'
    <blank lines are ignored>
    7d1a54127b222502f5b79b5fb0803061152a44f92b37e23c6527baf665d4da9a

Every other line is trimmed and taken literally. Values are not checked
for digest shape; a malformed line simply never matches.
"""

from pathlib import Path

import aiofiles

from trustgate.documents import DocumentStore
from trustgate.errors import SourceUnavailableError
from trustgate.hashing import normalize_entry
from trustgate.schema import ExternalFileSource, ManualSource, NoteSource

COMMENT_MARKER = "#"


def parse_trust_lines(text: str) -> set[str]:
    """
    Parse a line-oriented trust list into normalized digests.

    Example:
        >>> parse_trust_lines("# comment\\n\\nABCD\\nABCD\\n")
        {'abcd'}
    """
    entries = set()
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith(COMMENT_MARKER):
            continue
        entries.add(normalize_entry(line))
    return entries


async def read_source(
    source: ManualSource | NoteSource | ExternalFileSource,
    documents: DocumentStore | None,
) -> set[str]:
    """
    Read the digests contributed by one source.

    Raises:
        SourceUnavailableError: If the note or file cannot be read
    """
    if isinstance(source, ManualSource):
        return {source.digest}

    if isinstance(source, NoteSource):
        if documents is None:
            raise SourceUnavailableError(
                source=source.describe(),
                underlying_error="no document store configured",
            )
        try:
            text = await documents.read_text(source.path)
        except SourceUnavailableError:
            raise
        except (OSError, UnicodeDecodeError) as e:
            raise SourceUnavailableError(
                source=source.describe(),
                underlying_error=str(e),
            ) from e
        return parse_trust_lines(text)

    path = Path(source.path).expanduser()
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            text = await f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise SourceUnavailableError(
            source=source.describe(),
            underlying_error=str(e),
        ) from e
    return parse_trust_lines(text)
