import hashlib
import logging
from typing import Any

# Create the library logger
logger = logging.getLogger("pagecursor")

# Add NullHandler to prevent "No handlers could be found" warnings
# if the application doesn't configure logging.
logger.addHandler(logging.NullHandler())


def redact_key(key: Any) -> str:
    """
    Renders a boundary key resolution for logging.
    Row ids are hashed to allow correlation without revealing them.
    """
    try:
        row_id = getattr(key, "row_id", None)
        if row_id is None:
            # NONE / UNKNOWN markers are safe to log verbatim
            return str(getattr(key, "name", key))
        return hashlib.sha256(str(row_id).encode("utf-8")).hexdigest()[:8]
    except Exception:
        return "<redaction_failed>"
