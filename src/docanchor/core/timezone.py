"""UTC timezone enforcement.

Importing this module pins the process TZ to UTC so that timestamps written by the
database layer and by the logging pipeline agree across environments.
"""

import os
from datetime import datetime, timezone

os.environ["TZ"] = "UTC"


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime (database column convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
