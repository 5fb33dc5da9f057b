"""
Content digests for trustgate.

Every trust comparison is based on digest(). Changing DIGEST_ALGORITHM
invalidates every previously trusted entry, so it is a breaking
configuration change and is recorded in saved settings.
"""

import hashlib

DIGEST_ALGORITHM = "sha256"


def digest(content: str | bytes) -> str:
    """
    Compute the lowercase hex SHA-256 digest of a script fragment.

    Text is encoded as UTF-8 before hashing, so the digest matches
    what `sha256sum` prints for the same file.

    Args:
        content: Source text (or raw bytes) of the fragment

    Returns:
        64-character lowercase hexadecimal digest
    """
    if isinstance(content, str):
        data = content.encode("utf-8")
    else:
        data = content
    return hashlib.new(DIGEST_ALGORITHM, data).hexdigest()


def normalize_entry(value: str) -> str:
    """Normalize a configured trust entry for comparison (trim, lowercase)."""
    return value.strip().lower()
