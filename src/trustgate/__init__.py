"""
trustgate - Hash allow-list gate for embedded script execution.

trustgate sits between a document-rendering host and the third-party engines
that execute script fragments embedded in documents. It provides:
- A trust store aggregating SHA-256 digests from config, notes and files
- Interception of foreign execution entry points with exact restoration
- Deny-by-default verdicts with per-integration and global overrides
- Clearly labelled placeholders for blocked fragments

Example usage:
    $ trustgate digest snippet.js
    $ trustgate check snippet.js --settings trustgate.yaml
    $ trustgate trust <digest> --settings trustgate.yaml
"""

__version__ = "0.1.0"
__author__ = "trustgate Contributors"

__all__ = [
    "__version__",
    "__author__",
]
