# =============================================================================
# utils/config.py - Configuration management
# =============================================================================

import math
import os
import shutil
from dataclasses import dataclass
from typing import Optional, List, Tuple, Dict
from dotenv import load_dotenv

from core.errors import ToolNotFoundError

# Fixed macOS locations searched in addition to PATH
SYSTEM_TOOL_DIRS = ("/usr/bin", "/usr/sbin", "/bin", "/sbin")

REQUIRED_TOOLS = ("dscl", "dseditgroup", "dsconfigad", "killall", "chown", "chgrp", "find", "sw_vers", "id")


@dataclass(frozen=True)
class ToolPaths:
    """Absolute locations of every external tool, resolved once"""
    dscl: str
    dseditgroup: str
    dsconfigad: str
    killall: str
    chown: str
    chgrp: str
    find: str
    sw_vers: str
    id: str


@dataclass(frozen=True)
class MigrationSettings:
    """Immutable settings handed to every component"""
    tools: ToolPaths
    log_dir: str
    uid_threshold: int = 1000
    excluded_users: Tuple[str, ...] = ()
    settle_delay: float = 20.0
    excluded_mount: str = "/Volumes"
    admin_fact: Optional[str] = None
    admin_fact_file: Optional[str] = None
    ad_domain: Optional[str] = None
    unbind_username: str = "none"
    unbind_password: str = "none"


def resolve_tool(name: str) -> str:
    """Locate a tool on PATH or in the fixed system directories"""
    found = shutil.which(name)
    if found:
        return found
    for directory in SYSTEM_TOOL_DIRS:
        candidate = os.path.join(directory, name)
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return candidate
    raise ToolNotFoundError(name)


def resolve_tools() -> ToolPaths:
    """Resolve all required tools, failing on the first missing one"""
    return ToolPaths(**{name: resolve_tool(name) for name in REQUIRED_TOOLS})


class Config:
    """Configuration management"""

    def __init__(self):
        load_dotenv()

    @property
    def log_dir(self) -> str:
        return os.getenv("MIGRATION_LOG_DIR", "/Library/Logs/MobileAccountConverter")

    @property
    def uid_threshold(self) -> Optional[str]:
        return os.getenv("MIGRATION_UID_THRESHOLD", "1000")

    @property
    def excluded_users(self) -> List[str]:
        raw = os.getenv("MIGRATION_EXCLUDED_USERS", "")
        return [name.strip() for name in raw.split(",") if name.strip()]

    @property
    def settle_delay(self) -> Optional[str]:
        return os.getenv("MIGRATION_SETTLE_DELAY", "20")

    @property
    def excluded_mount(self) -> str:
        return os.getenv("MIGRATION_EXCLUDED_MOUNT", "/Volumes")

    @property
    def admin_fact(self) -> Optional[str]:
        return os.getenv("MIGRATION_ADMIN_FACT")

    @property
    def admin_fact_file(self) -> Optional[str]:
        return os.getenv("MIGRATION_ADMIN_FACT_FILE")

    @property
    def ad_domain(self) -> Optional[str]:
        return os.getenv("MIGRATION_AD_DOMAIN")

    @property
    def unbind_username(self) -> str:
        return os.getenv("MIGRATION_UNBIND_USERNAME", "none")

    @property
    def unbind_password(self) -> str:
        return os.getenv("MIGRATION_UNBIND_PASSWORD", "none")

    def validate(self) -> bool:
        """Validate that numeric settings parse and are finite"""
        return not self.get_invalid_vars()

    def get_invalid_vars(self) -> List[str]:
        """Get list of configuration variables with unusable values"""
        checks: Dict[str, Tuple[Optional[str], type]] = {
            "MIGRATION_UID_THRESHOLD": (self.uid_threshold, int),
            "MIGRATION_SETTLE_DELAY": (self.settle_delay, float),
        }
        invalid = []
        for name, (value, cast) in checks.items():
            try:
                number = cast(value)
                if not math.isfinite(number) or number < 0:
                    invalid.append(name)
            except (TypeError, ValueError):
                invalid.append(name)
        return invalid

    def resolve_settings(self, admin_fact: Optional[str] = None,
                         tools: Optional[ToolPaths] = None) -> MigrationSettings:
        """Build the immutable settings object, resolving tools if not given"""
        return MigrationSettings(
            tools=tools or resolve_tools(),
            log_dir=self.log_dir,
            uid_threshold=int(self.uid_threshold),
            excluded_users=tuple(self.excluded_users),
            settle_delay=float(self.settle_delay),
            excluded_mount=self.excluded_mount,
            admin_fact=admin_fact if admin_fact is not None else self.admin_fact,
            admin_fact_file=self.admin_fact_file,
            ad_domain=self.ad_domain,
            unbind_username=self.unbind_username,
            unbind_password=self.unbind_password,
        )
