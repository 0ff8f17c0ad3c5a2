# =============================================================================
# core/reconciler.py - Home directory and group ownership reconciliation
# =============================================================================

import logging
import os
from typing import List

from core.directory_services import STAFF_GROUP
from core.record_store import RecordStore, user_path, group_path
from utils.audit import AuditLog, home_listing_name
from utils.commands import CommandRunner
from utils.config import MigrationSettings

DEFAULT_STAFF_GID = 20
SCAN_ROOT = "/"


def list_tree(root: str) -> List[str]:
    """Recursive listing of a directory tree as 'mode uid:gid path' lines"""
    lines = []

    def describe(path: str) -> str:
        try:
            info = os.lstat(path)
        except OSError as e:
            return f"?????????? ?:? {path} ({e.strerror})"
        return f"{info.st_mode & 0o7777:04o} {info.st_uid}:{info.st_gid} {path}"

    lines.append(describe(root))
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in dirnames + sorted(filenames):
            lines.append(describe(os.path.join(dirpath, name)))
    return lines


class HomeDirectoryReconciler:
    """Re-owns a converted account's files onto the local staff group"""

    def __init__(self, store: RecordStore, runner: CommandRunner,
                 settings: MigrationSettings, audit: AuditLog):
        self.store = store
        self.runner = runner
        self.settings = settings
        self.audit = audit
        self.logger = logging.getLogger(self.__class__.__name__)

    def reconcile(self, username: str, old_group_id: int) -> None:
        """Run every reconciliation step for one converted account"""
        self.reown_home(username)
        staff_gid = self.staff_group_id()
        self.reassign_primary_group(username, old_group_id, staff_gid)
        self.regroup_filesystem(old_group_id)

    def reown_home(self, username: str) -> bool:
        home = self.store.read_first(user_path(username), "NFSHomeDirectory")
        if not home:
            self.logger.warning(f"{username} has no NFSHomeDirectory; skipping home ownership")
            return False

        self.logger.info(f"Home directory location: {home}")
        if not os.path.isdir(home):
            self.logger.warning(f"Home directory {home} does not exist on disk")
            return False

        listing_path = self.audit.append(home_listing_name(username), f"{home} before ownership change",
                                         list_tree(home))
        self.logger.info(f"Home directory listing for {username} written to {listing_path}")

        self.logger.info(f"Updating home folder permissions for the {username} account")
        result = self.runner.run([self.settings.tools.chown, "-R", f"{username}:{STAFF_GROUP}", home])
        if not result.ok:
            self.logger.error(f"chown of {home} failed ({result.returncode}): {result.stderr.strip()}")
        return result.ok

    def staff_group_id(self) -> int:
        raw = self.store.read_first(group_path(STAFF_GROUP), "PrimaryGroupID")
        try:
            return int(raw)
        except (TypeError, ValueError):
            self.logger.warning(f"Could not read {STAFF_GROUP} group id ({raw!r}); using {DEFAULT_STAFF_GID}")
            return DEFAULT_STAFF_GID

    def reassign_primary_group(self, username: str, old_group_id: int, staff_gid: int) -> bool:
        if old_group_id == staff_gid:
            self.logger.debug(f"{username} already has primary group {staff_gid}")
            return True
        self.logger.info(f"Changing {username} PrimaryGroupID from {old_group_id} to {staff_gid}")
        return self.store.change_attribute(user_path(username), "PrimaryGroupID",
                                           str(old_group_id), str(staff_gid))

    def regroup_filesystem(self, old_group_id: int) -> bool:
        """
        Re-group every object still owned by the old domain group.

        This walks the whole filesystem (minus the excluded mount) in one
        uninterrupted find invocation and can take a long time. Symlinks are
        re-grouped themselves (chgrp -h), never the files they point to.
        """
        self.logger.info(f"Scanning {SCAN_ROOT} for files with group {old_group_id} "
                         f"(excluding {self.settings.excluded_mount}); this can take a while")
        result = self.runner.run([
            self.settings.tools.find, SCAN_ROOT,
            "-path", self.settings.excluded_mount, "-prune",
            "-o", "-group", str(old_group_id),
            "-exec", self.settings.tools.chgrp, "-h", STAFF_GROUP, "{}", "+"
        ])
        if not result.ok:
            # find exits non-zero on unreadable paths even when chgrp succeeded
            self.logger.warning(f"Group ownership scan exited {result.returncode}: "
                                f"{result.stderr.strip()[:500]}")
        else:
            self.logger.info("Group ownership scan complete")
        return result.ok
