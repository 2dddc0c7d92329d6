# Overview: Prefixed string identifiers for users, items, requests and audit entries.

import secrets
import time


def make_id(prefix: str) -> str:
    """
    Build an identifier such as "REQ-1718000000000-04217".

    Identifiers are strings so backups can be restored with their original ids.
    """
    millis = int(time.time() * 1000)
    rand = secrets.randbelow(100000)
    return f"{prefix}-{millis}-{rand:05d}"
