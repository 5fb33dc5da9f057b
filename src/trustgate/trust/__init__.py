"""
Trust module for trustgate.

The trust store aggregates trusted digests from three kinds of source:
    - ManualSource: a digest stored in configuration
    - NoteSource: a note in the host's document corpus
    - ExternalFileSource: a file outside the corpus

Note and file sources are parsed line by line (see parse_trust_lines).
A source that cannot be read contributes nothing; it never fails a refresh.
"""

from trustgate.trust.sources import COMMENT_MARKER, parse_trust_lines, read_source
from trustgate.trust.store import TrustStore

__all__ = [
    "COMMENT_MARKER",
    "TrustStore",
    "parse_trust_lines",
    "read_source",
]
