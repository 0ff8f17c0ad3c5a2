# =============================================================================
# core/engine.py - Mobile account conversion engine
# =============================================================================

import logging
from typing import List, Optional

from core.admin_policy import AdminPolicy
from core.classifier import AccountClassifier, AUTHENTICATION_AUTHORITY, extract_shadow_hash
from core.directory_services import GroupMembership, CacheRefresher, STAFF_GROUP, ADMIN_GROUP
from core.errors import IntegrityViolation, VerificationFailure, MigrationAbort
from core.models import (AccountClassification, AdminSignal, ConversionResult,
                         ConversionState, RunSummary, UserRecord)
from core.reconciler import HomeDirectoryReconciler
from core.record_store import RecordStore, user_path

# Attributes linking a mobile account back to its domain
DOMAIN_ATTRIBUTES = (
    "cached_groups",
    "cached_auth_policy",
    "CopyTimestamp",
    "AltSecurityIdentities",
    "SMBPrimaryGroupSID",
    "OriginalAuthenticationAuthority",
    "OriginalNodeName",
    AUTHENTICATION_AUTHORITY,
    "SMBSID",
    "SMBScriptPath",
    "SMBPasswordLastSet",
    "SMBGroupRID",
    "PrimaryNTDomain",
    "AppleMetaRecordName",
    "MCXSettings",
    "MCXFlags",
)


class ConversionEngine:
    """Converts cached domain mobile accounts into local accounts, one at a time"""

    def __init__(self, store: RecordStore, classifier: AccountClassifier,
                 groups: GroupMembership, cache: CacheRefresher,
                 admin_policy: AdminPolicy,
                 reconciler: Optional[HomeDirectoryReconciler] = None):
        self.store = store
        self.classifier = classifier
        self.groups = groups
        self.cache = cache
        self.admin_policy = admin_policy
        self.reconciler = reconciler
        self.logger = logging.getLogger(self.__class__.__name__)

    def process_accounts(self, candidates: List[UserRecord],
                         summary: Optional[RunSummary] = None) -> RunSummary:
        """Process every candidate in order; a fatal check stops the run"""
        summary = summary if summary is not None else RunSummary()
        self.logger.info(f"Starting conversion of {len(candidates)} candidate accounts")

        for record in candidates:
            try:
                result = self.process_account(record.username)
            except MigrationAbort as e:
                self.logger.critical(f"Aborting run at {e.username}: {e.check} failed ({e.detail})")
                summary.results.append(e.result or ConversionResult(
                    username=record.username, state=ConversionState.FAILED, message=str(e)
                ))
                raise
            summary.results.append(result)

            if result.converted and self.reconciler:
                self.reconciler.reconcile(record.username, result.old_group_id)

        self.log_summary(summary)
        return summary

    def process_account(self, username: str) -> ConversionResult:
        """Drive one account through the conversion states"""
        result = ConversionResult(username=username)
        self.logger.info(f"Processing {username}")
        try:
            return self.run_states(username, result)
        except MigrationAbort as e:
            result.state = ConversionState.FAILED
            result.message = str(e)
            e.result = result
            raise

    def run_states(self, username: str, result: ConversionResult) -> ConversionResult:
        """Steps from staff membership through verification; fatal checks raise"""
        self.groups.ensure_member(username, STAFF_GROUP)
        result.state = ConversionState.STAFF_MEMBERSHIP_ENSURED

        classification = self.classifier.classify(username)
        result.classification = classification
        if not classification.is_convertible:
            return self.skip(result, classification)

        self.read_group_id(username, result)

        result.admin_granted = self.grant_admin(username)
        if result.admin_granted:
            result.state = ConversionState.ADMIN_GRANTED

        shadow_hash = self.backup_shadow_hash(username)
        result.state = ConversionState.HASH_BACKED_UP

        self.strip_domain_attributes(username)
        result.state = ConversionState.ATTRIBUTES_STRIPPED

        result.hash_restored = self.restore_authority(username, shadow_hash)
        result.state = ConversionState.AUTHORITY_RESTORED

        self.cache.refresh()
        result.state = ConversionState.CACHE_REFRESHED

        self.verify(username, result)
        result.state = ConversionState.DONE
        result.message = "converted to local account"
        self.logger.info(f"Conversion process was successful for {username}")
        return result

    def skip(self, result: ConversionResult, classification: AccountClassification) -> ConversionResult:
        result.state = ConversionState.SKIPPED
        result.message = classification.reason or f"{classification.describe()} is not a conversion target"
        self.logger.info(f"Skipping {result.username}: {result.message}")
        return result

    def read_group_id(self, username: str, result: ConversionResult) -> int:
        """Record the domain primary group id on the result, refusing the root group"""
        raw = self.store.read_first(user_path(username), "PrimaryGroupID")
        try:
            group_id = int(raw)
        except (TypeError, ValueError):
            raise IntegrityViolation(username, f"PrimaryGroupID is unreadable ({raw!r})")

        result.old_group_id = group_id
        if group_id == 0:
            raise IntegrityViolation(username, "PrimaryGroupID is 0 (root group)")

        self.logger.debug(f"{username} domain primary group id is {group_id}")
        return group_id

    def grant_admin(self, username: str) -> bool:
        signal = self.admin_policy.signal()
        if signal is not AdminSignal.GRANT:
            self.logger.debug(f"Admin rights for {username} not granted (signal: {signal.value})")
            return False

        self.logger.info(f"Admin policy grants {username} administrative rights")
        return self.groups.add_member(username, ADMIN_GROUP)

    def backup_shadow_hash(self, username: str) -> str:
        shadow_hash = extract_shadow_hash(self.classifier.read_authority(username))
        if not shadow_hash:
            self.logger.warning(f"{username} has no shadow hash in {AUTHENTICATION_AUTHORITY}; "
                                f"the converted account may have no usable password")
        return shadow_hash

    def strip_domain_attributes(self, username: str) -> None:
        self.logger.info(f"Removing domain attributes from {username}")
        for attribute in DOMAIN_ATTRIBUTES:
            self.store.delete_attribute(user_path(username), attribute)

    def restore_authority(self, username: str, shadow_hash: str) -> bool:
        if not shadow_hash:
            self.logger.warning(f"Not restoring {AUTHENTICATION_AUTHORITY} for {username}: no backup")
            return False
        restored = self.store.create_attribute(user_path(username), AUTHENTICATION_AUTHORITY, shadow_hash)
        if not restored:
            self.logger.error(f"Could not restore {AUTHENTICATION_AUTHORITY} for {username}")
        return restored

    def verify(self, username: str, result: ConversionResult) -> None:
        result.state = ConversionState.VERIFIED
        classification = self.classifier.classify(username)
        if classification.is_domain_backed:
            result.state = ConversionState.FAILED
            result.message = "account is still a domain mobile account"
            raise VerificationFailure(username, f"{username} is still an AD mobile account")

    def log_summary(self, summary: RunSummary) -> None:
        self.logger.info(f"Conversion summary: {summary.converted} converted, "
                         f"{summary.skipped} skipped, {summary.total_candidates} candidates")
