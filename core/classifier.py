# =============================================================================
# core/classifier.py - Account classification from AuthenticationAuthority
# =============================================================================

import logging
import re
from typing import List, Optional

from core.models import AccountClassification, AccountKind
from core.record_store import RecordStore, user_path

AUTHENTICATION_AUTHORITY = "AuthenticationAuthority"
DOMAIN_AUTHORITY = "Active Directory"
CACHED_SUB_KIND = "LocalCachedUser"
SHADOW_HASH_MARKER = ";ShadowHash;HASHLIST:"
# A bare authority tag such as ";ShadowHash;" or ";Kerberosv5;"
AUTHORITY_TAG = re.compile(r"^;[A-Za-z0-9]+;")


def classify_authority(values: Optional[List[str]]) -> AccountClassification:
    """
    Classify a record from its AuthenticationAuthority values.

    The first value is split on ``/``. The second token names the authority
    (``Active Directory`` for domain accounts); the first token, stripped of
    its ``;`` separators, names the sub-kind, e.g. ``;LocalCachedUser;``.
    A value without a directory part is local only when it starts with an
    authority tag; anything else is Unknown. Malformed input never raises.
    """
    if not values:
        return AccountClassification(AccountKind.UNKNOWN, reason="AuthenticationAuthority is absent")

    tokens = values[0].split("/")
    if len(tokens) < 2:
        if AUTHORITY_TAG.match(values[0].strip()):
            return AccountClassification(AccountKind.LOCAL, reason="no directory authority in first value")
        return AccountClassification(AccountKind.UNKNOWN, reason=f"unparsable authority value {values[0]!r}")

    if tokens[1].strip() != DOMAIN_AUTHORITY:
        return AccountClassification(AccountKind.LOCAL, reason=f"authority is '{tokens[1].strip()}'")

    sub_kind = tokens[0].strip().strip(";")
    classification = AccountClassification(AccountKind.DOMAIN_MOBILE, sub_kind=sub_kind)
    if not classification.cached:
        return AccountClassification(
            AccountKind.DOMAIN_MOBILE,
            sub_kind=sub_kind,
            reason=f"domain account of kind '{sub_kind or 'unspecified'}' is not a cached mobile account"
        )
    return classification


def extract_shadow_hash(values: Optional[List[str]]) -> str:
    """Return the value carrying the shadow-hash descriptor, or ''"""
    for value in values or []:
        if SHADOW_HASH_MARKER in value:
            return value.strip()
    return ""


class AccountClassifier:
    """Reads and classifies user records; results are never cached"""

    def __init__(self, store: RecordStore):
        self.store = store
        self.logger = logging.getLogger(self.__class__.__name__)

    def read_authority(self, username: str) -> Optional[List[str]]:
        return self.store.read_attribute(user_path(username), AUTHENTICATION_AUTHORITY)

    def classify(self, username: str) -> AccountClassification:
        """Classify the current state of a user record"""
        classification = classify_authority(self.read_authority(username))
        self.logger.debug(f"{username} classified as {classification.describe()}")
        return classification
