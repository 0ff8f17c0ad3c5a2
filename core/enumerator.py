# =============================================================================
# core/enumerator.py - Candidate account enumeration
# =============================================================================

import logging
from typing import Iterable, List, Optional

from core.models import UserRecord
from core.record_store import RecordStore
from utils.audit import AuditLog, IDENTITY_DUMP
from utils.commands import CommandRunner

SYSTEM_ACCOUNTS = frozenset({"root", "daemon", "nobody", "Guest"})


class AccountEnumerator:
    """Lists local user records above the UID threshold"""

    def __init__(self, store: RecordStore, uid_threshold: int,
                 excluded_users: Iterable[str] = ()):
        self.store = store
        self.uid_threshold = uid_threshold
        self.excluded_users = set(excluded_users)
        self.logger = logging.getLogger(self.__class__.__name__)

    def is_service_account(self, username: str) -> bool:
        # Service accounts on macOS are underscore-prefixed
        return username.startswith("_") or username in SYSTEM_ACCOUNTS

    def candidates(self, only: Optional[Iterable[str]] = None) -> List[UserRecord]:
        """Return candidate records sorted by username"""
        wanted = set(only) if only else None
        records = []

        for username, raw_uid in self.store.list_attribute("/Users", "UniqueID").items():
            try:
                uid = int(raw_uid)
            except ValueError:
                self.logger.debug(f"Ignoring {username} with non-numeric UniqueID {raw_uid!r}")
                continue

            if uid <= self.uid_threshold:
                continue
            if self.is_service_account(username) or username in self.excluded_users:
                self.logger.debug(f"Excluding {username}")
                continue
            if wanted is not None and username not in wanted:
                continue
            records.append(UserRecord(username=username, unique_id=uid))

        records.sort(key=lambda record: record.username)
        self.logger.info(f"Found {len(records)} candidate accounts above UID {self.uid_threshold}")
        return records


def dump_identities(records: List[UserRecord], runner: CommandRunner,
                    id_path: str, audit: AuditLog) -> None:
    """Record ``id`` output for every candidate before anything is changed"""
    lines = []
    for record in records:
        result = runner.run([id_path, record.username])
        identity = result.stdout.strip() if result.ok else f"<id failed: {result.stderr.strip()}>"
        lines.append(f"{record.username} ({record.unique_id}): {identity}")
    audit.append(IDENTITY_DUMP, "candidate identities", lines)
