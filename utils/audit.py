# =============================================================================
# utils/audit.py - Write-only audit files
# =============================================================================

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable

IDENTITY_DUMP = "identity_dump.log"


def home_listing_name(username: str) -> str:
    return f"{username}_home_listing.log"


class AuditLog:
    """Appends timestamped sections to files in the operational log directory"""

    def __init__(self, log_dir: str):
        self.log_dir = Path(log_dir)
        self.logger = logging.getLogger(__name__)

    def path_for(self, filename: str) -> Path:
        return self.log_dir / filename

    def append(self, filename: str, title: str, lines: Iterable[str]) -> Path:
        """Append one section; the file and directory are created on demand"""
        self.log_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(filename)
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        count = 0
        with open(path, "a", encoding="utf-8") as file:
            file.write(f"=== {timestamp} {title}\n")
            for line in lines:
                file.write(f"{line}\n")
                count += 1

        self.logger.debug(f"Wrote {count} audit lines to {path}")
        return path
