from core.classifier import AccountClassifier, classify_authority, extract_shadow_hash
from core.models import AccountKind
from fakes import InMemoryRecordStore, MOBILE_AUTHORITY, SHADOW_HASH


def test_cached_mobile_account():
    classification = classify_authority(MOBILE_AUTHORITY)
    assert classification.kind is AccountKind.DOMAIN_MOBILE
    assert classification.sub_kind == "LocalCachedUser"
    assert classification.cached
    assert classification.is_convertible
    assert classification.describe() == "DomainMobileAccount(cached=True)"


def test_non_cached_domain_account_is_not_a_target():
    classification = classify_authority([";NetLogon;/Active Directory/CORP/All Domains:jdoe"])
    assert classification.kind is AccountKind.DOMAIN_MOBILE
    assert classification.sub_kind == "NetLogon"
    assert not classification.is_convertible
    assert "NetLogon" in classification.reason


def test_local_account_with_only_shadow_hash():
    classification = classify_authority([SHADOW_HASH])
    assert classification.kind is AccountKind.LOCAL
    assert not classification.is_domain_backed


def test_other_directory_authority_is_local():
    classification = classify_authority([";LocalCachedUser;/LDAPv3/ldap.example.com:jdoe"])
    assert classification.kind is AccountKind.LOCAL


def test_missing_or_empty_attribute_is_unknown():
    assert classify_authority(None).kind is AccountKind.UNKNOWN
    assert classify_authority([]).kind is AccountKind.UNKNOWN


def test_malformed_values_never_raise():
    for values in (["/"], [";;/ /"]):
        assert classify_authority(values).kind is AccountKind.LOCAL


def test_unparsable_values_are_unknown():
    for values in (["garbage"], [""], ["   "], [";;"]):
        classification = classify_authority(values)
        assert classification.kind is AccountKind.UNKNOWN
        assert not classification.is_convertible
        assert classification.describe() == "Unknown"


def test_bare_authority_tag_is_local():
    assert classify_authority([";Kerberosv5;"]).kind is AccountKind.LOCAL
    assert classify_authority([" " + SHADOW_HASH]).kind is AccountKind.LOCAL


def test_extract_shadow_hash():
    assert extract_shadow_hash(MOBILE_AUTHORITY) == SHADOW_HASH
    assert extract_shadow_hash([" " + SHADOW_HASH]) == SHADOW_HASH
    assert extract_shadow_hash([MOBILE_AUTHORITY[0]]) == ""
    assert extract_shadow_hash(None) == ""


def test_classifier_reads_current_record_each_time():
    store = InMemoryRecordStore()
    store.add_user("jdoe", AuthenticationAuthority=MOBILE_AUTHORITY)
    classifier = AccountClassifier(store)

    assert classifier.classify("jdoe").is_convertible
    store.user("jdoe")["AuthenticationAuthority"] = [SHADOW_HASH]
    assert classifier.classify("jdoe").kind is AccountKind.LOCAL
