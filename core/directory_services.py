# =============================================================================
# core/directory_services.py - Group membership, cache refresh and unbind
# =============================================================================

import logging
import re
import time
from typing import Callable, List, Tuple

from core.errors import EnvironmentProbeError
from core.record_store import DsclRecordStore
from utils.commands import CommandRunner
from utils.config import MigrationSettings

STAFF_GROUP = "staff"
ADMIN_GROUP = "admin"

MODERN_DAEMON = "opendirectoryd"
LEGACY_DAEMON = "DirectoryService"

SEARCH_NODES = ("/Search", "/Search/Contacts")
DOMAIN_NODE_PREFIX = "/Active Directory/"
CUSTOM_SEARCH_POLICY = "dsAttrTypeStandard:CSPSearchPath"
AUTOMATIC_SEARCH_POLICY = "dsAttrTypeStandard:NSPSearchPath"


def parse_os_version(text: str) -> Tuple[int, int]:
    """Parse ``sw_vers -productVersion`` output into (major, minor)"""
    match = re.match(r"\s*(\d+)(?:\.(\d+))?", text or "")
    if not match:
        raise EnvironmentProbeError(f"Unrecognised OS version: {text!r}")
    return int(match.group(1)), int(match.group(2) or 0)


def directory_daemon_for(version: Tuple[int, int]) -> str:
    """Directory daemon name for an OS version; 10.7 replaced DirectoryService"""
    major, minor = version
    if major > 10 or (major == 10 and minor >= 7):
        return MODERN_DAEMON
    return LEGACY_DAEMON


def probe_os_version(runner: CommandRunner, sw_vers_path: str) -> Tuple[int, int]:
    """Ask the host for its OS version"""
    result = runner.run([sw_vers_path, "-productVersion"])
    if not result.ok:
        raise EnvironmentProbeError(f"sw_vers failed with exit code {result.returncode}: "
                                    f"{result.stderr.strip()}")
    return parse_os_version(result.stdout)


class GroupMembership:
    """Local group membership via dseditgroup"""

    def __init__(self, runner: CommandRunner, dseditgroup_path: str):
        self.runner = runner
        self.dseditgroup_path = dseditgroup_path
        self.logger = logging.getLogger(self.__class__.__name__)

    def is_member(self, username: str, group: str) -> bool:
        result = self.runner.run([self.dseditgroup_path, "-o", "checkmember", "-m", username, group])
        return result.ok

    def add_member(self, username: str, group: str) -> bool:
        result = self.runner.run([self.dseditgroup_path, "-o", "edit", "-a", username, "-t", "user", group])
        if not result.ok:
            self.logger.warning(f"Could not add {username} to {group}: {result.stderr.strip()}")
        return result.ok

    def ensure_member(self, username: str, group: str) -> bool:
        """Add the user to the group unless already a member"""
        if self.is_member(username, group):
            self.logger.debug(f"{username} is already a member of {group}")
            return True
        self.logger.info(f"Adding {username} to the {group} group")
        return self.add_member(username, group)


class CacheRefresher:
    """Restarts the directory daemon and waits a fixed settle delay"""

    def __init__(self, runner: CommandRunner, killall_path: str, daemon: str,
                 settle_delay: float, sleep: Callable[[float], None] = time.sleep):
        self.runner = runner
        self.killall_path = killall_path
        self.daemon = daemon
        self.settle_delay = settle_delay
        self.sleep = sleep
        self.logger = logging.getLogger(self.__class__.__name__)

    def refresh(self) -> None:
        """Signal the daemon and block; its restart is not observable"""
        self.logger.info(f"Refreshing directory services ({self.daemon})")
        result = self.runner.run([self.killall_path, self.daemon])
        if not result.ok:
            self.logger.warning(f"killall {self.daemon} exited {result.returncode}: {result.stderr.strip()}")
        self.logger.info(f"Waiting {self.settle_delay:g}s for directory services to settle")
        self.sleep(self.settle_delay)


class DomainUnbindService:
    """Force-removes the domain binding and normalises the search policy"""

    def __init__(self, runner: CommandRunner, settings: MigrationSettings):
        self.runner = runner
        self.settings = settings
        self.logger = logging.getLogger(self.__class__.__name__)

    def is_bound(self) -> bool:
        # dsconfigad -show exits 0 either way; output is empty when unbound
        result = self.runner.run([self.settings.tools.dsconfigad, "-show"])
        return result.ok and bool(result.stdout.strip())

    def unbind(self) -> None:
        """Remove the binding (if any), then clean every search node"""
        if self.is_bound():
            self.force_unbind()
        else:
            self.logger.info("Host is not bound to a domain; skipping unbind")

        for node in SEARCH_NODES:
            self.normalize_search_path(node)

    def force_unbind(self) -> bool:
        self.logger.info("Force-removing domain binding")
        result = self.runner.run(
            [self.settings.tools.dsconfigad, "-remove", "-force",
             "-username", self.settings.unbind_username,
             "-password", self.settings.unbind_password],
            redact=(self.settings.unbind_password,)
        )
        if not result.ok:
            self.logger.error(f"Domain unbind failed ({result.returncode}): {result.stderr.strip()}")
        return result.ok

    def domain_entries(self, store: DsclRecordStore) -> List[str]:
        """Domain nodes currently present in the custom search path"""
        entries = [entry for entry in store.read_attribute("/", "CSPSearchPath") or []
                   if entry.startswith(DOMAIN_NODE_PREFIX)]
        if self.settings.ad_domain:
            configured = f"{DOMAIN_NODE_PREFIX}{self.settings.ad_domain}/All Domains"
            if configured not in entries:
                entries.append(configured)
        return entries

    def normalize_search_path(self, node: str) -> None:
        store = DsclRecordStore(self.runner, self.settings.tools.dscl, node=node)
        for entry in self.domain_entries(store):
            self.logger.info(f"Removing {entry} from {node} search path")
            self.runner.run([self.settings.tools.dscl, node, "-delete", "/", "CSPSearchPath", entry])

        if store.read_first("/", "SearchPolicy") != CUSTOM_SEARCH_POLICY:
            return
        if store.change_attribute("/", "SearchPolicy", CUSTOM_SEARCH_POLICY, AUTOMATIC_SEARCH_POLICY):
            self.logger.info(f"{node} search policy set to automatic")
