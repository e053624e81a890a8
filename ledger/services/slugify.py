# ledger/services/slugify.py
#
# File Name Slugs
# Turns an uploaded file name into the safe name it is stored and served under.

import re

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def slugify(filename: str) -> str:
    """
    Normalize a file name for storage, keeping its extension.

    "My File (1).PDF" -> "my-file-1.pdf"

    The part after the last dot is treated as the extension: it is only
    lowercased. The base name is lowercased, every run of characters outside
    [a-z0-9] collapses to one "-", and leading/trailing dashes are dropped.
    Applying slugify to its own output returns the same string.
    """
    base, dot, ext = filename.rpartition(".")
    if not dot:
        # no extension: rpartition puts everything in the last slot
        base, ext = ext, ""
    else:
        ext = dot + ext

    slug = _NON_ALNUM_RE.sub("-", base.lower()).strip("-")
    return slug + ext.lower()
