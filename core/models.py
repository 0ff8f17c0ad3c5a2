# =============================================================================
# core/models.py - Account and conversion data models
# =============================================================================

from dataclasses import dataclass, field
from typing import List, Optional
from enum import Enum


class AccountKind(Enum):
    """Enumeration of account kinds derived from AuthenticationAuthority"""
    LOCAL = "local"
    DOMAIN_MOBILE = "domain_mobile"
    UNKNOWN = "unknown"


class ConversionState(Enum):
    """States of the per-account conversion"""
    START = "start"
    STAFF_MEMBERSHIP_ENSURED = "staff_membership_ensured"
    SKIPPED = "skipped"
    ADMIN_GRANTED = "admin_granted"
    HASH_BACKED_UP = "hash_backed_up"
    ATTRIBUTES_STRIPPED = "attributes_stripped"
    AUTHORITY_RESTORED = "authority_restored"
    CACHE_REFRESHED = "cache_refreshed"
    VERIFIED = "verified"
    DONE = "done"
    FAILED = "failed"


class AdminSignal(Enum):
    """Outcome of the administrative-rights policy fact"""
    GRANT = "grant"
    DENY = "deny"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class AccountClassification:
    """Classification of a single user record"""
    kind: AccountKind
    sub_kind: str = ""
    reason: str = ""

    @property
    def is_domain_backed(self) -> bool:
        return self.kind is AccountKind.DOMAIN_MOBILE

    @property
    def is_convertible(self) -> bool:
        """Only cached mobile accounts can be converted in place"""
        return self.is_domain_backed and self.cached

    @property
    def cached(self) -> bool:
        return self.sub_kind == "LocalCachedUser"

    def describe(self) -> str:
        if self.kind is AccountKind.DOMAIN_MOBILE:
            return f"DomainMobileAccount(cached={self.cached})"
        if self.kind is AccountKind.LOCAL:
            return "LocalAccount"
        return "Unknown"


@dataclass
class UserRecord:
    """Candidate user record as listed from the local node"""
    username: str
    unique_id: int


@dataclass
class ConversionResult:
    """Outcome of processing one candidate"""
    username: str
    classification: Optional[AccountClassification] = None
    state: ConversionState = ConversionState.START
    old_group_id: Optional[int] = None
    admin_granted: bool = False
    hash_restored: bool = False
    message: str = ""

    @property
    def converted(self) -> bool:
        return self.state is ConversionState.DONE


@dataclass
class RunSummary:
    """Statistics for a whole conversion run"""
    results: List[ConversionResult] = field(default_factory=list)

    @property
    def total_candidates(self) -> int:
        return len(self.results)

    @property
    def converted(self) -> int:
        return sum(1 for result in self.results if result.converted)

    @property
    def skipped(self) -> int:
        return sum(1 for result in self.results if result.state is ConversionState.SKIPPED)
