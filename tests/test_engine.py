import pytest

from core.admin_policy import AdminPolicy
from core.classifier import AccountClassifier
from core.directory_services import CacheRefresher, GroupMembership
from core.engine import ConversionEngine, DOMAIN_ATTRIBUTES
from core.errors import IntegrityViolation, VerificationFailure
from core.models import AccountKind, ConversionState, RunSummary, UserRecord
from fakes import FakeRunner, InMemoryRecordStore, MOBILE_AUTHORITY, SHADOW_HASH
from utils.commands import CommandResult


class FakeReconciler:
    def __init__(self):
        self.calls = []

    def reconcile(self, username, old_group_id):
        self.calls.append((username, old_group_id))


def mobile_attributes(**overrides):
    attributes = {
        "UniqueID": "1205",
        "PrimaryGroupID": "1876543210",
        "NFSHomeDirectory": "/Users/jdoe",
        "AuthenticationAuthority": MOBILE_AUTHORITY,
        "OriginalNodeName": "/Active Directory/CORP/All Domains",
        "SMBSID": "S-1-5-21-1004336348-1177238915-682003330-512",
        "PrimaryNTDomain": "CORP",
        "CopyTimestamp": "2024-01-10T08:15:00Z",
        "cached_groups": "<plist/>",
        "MCXFlags": "<data/>",
    }
    attributes.update(overrides)
    return attributes


def make_engine(store, admin_fact=None, runner=None):
    runner = runner or FakeRunner()
    waits = []
    engine = ConversionEngine(
        store=store,
        classifier=AccountClassifier(store),
        groups=GroupMembership(runner, "dseditgroup"),
        cache=CacheRefresher(runner, "killall", "opendirectoryd", 20, sleep=waits.append),
        admin_policy=AdminPolicy(admin_fact),
        reconciler=FakeReconciler(),
    )
    return engine, runner, waits


def test_converts_cached_mobile_account(store):
    store.add_user("jdoe", **mobile_attributes())
    engine, runner, waits = make_engine(store)

    result = engine.process_account("jdoe")

    assert result.state is ConversionState.DONE
    assert result.old_group_id == 1876543210
    assert result.hash_restored
    user = store.user("jdoe")
    assert user["AuthenticationAuthority"] == [SHADOW_HASH]
    assert not any("Active Directory" in value for value in user["AuthenticationAuthority"])
    for attribute in DOMAIN_ATTRIBUTES:
        if attribute != "AuthenticationAuthority":
            assert attribute not in user
    assert user["UniqueID"] == ["1205"]
    assert ["killall", "opendirectoryd"] in runner.calls
    assert waits == [20]
    assert AccountClassifier(store).classify("jdoe").kind is AccountKind.LOCAL


def test_every_linkage_attribute_is_deleted(store):
    store.add_user("jdoe", **mobile_attributes())
    engine, _, _ = make_engine(store)
    engine.process_account("jdoe")

    deleted = {attribute for op, _, attribute in store.mutations if op == "delete"}
    assert deleted == set(DOMAIN_ATTRIBUTES)
    assert store.mutations[-1] == ("create", "/Users/jdoe", "AuthenticationAuthority")


def test_staff_membership_is_ensured_even_for_skipped_accounts(store):
    store.add_user("svc_acct", UniqueID="1300", PrimaryGroupID="20")
    engine, runner, _ = make_engine(store)

    result = engine.process_account("svc_acct")

    assert result.state is ConversionState.SKIPPED
    assert result.classification.kind is AccountKind.UNKNOWN
    assert ["dseditgroup", "-o", "checkmember", "-m", "svc_acct", "staff"] in runner.calls
    assert store.mutations == []
    assert not any(call[0] == "killall" for call in runner.calls)


def test_non_cached_domain_account_is_left_untouched(store):
    store.add_user("kiosk", **mobile_attributes(
        AuthenticationAuthority=[";NetLogon;/Active Directory/CORP/All Domains:kiosk"]))
    engine, _, _ = make_engine(store)

    result = engine.process_account("kiosk")

    assert result.state is ConversionState.SKIPPED
    assert store.mutations == []


def test_already_converted_account_is_skipped(store):
    store.add_user("jdoe", **mobile_attributes())
    engine, _, _ = make_engine(store)
    engine.process_account("jdoe")
    mutations = list(store.mutations)

    result = engine.process_account("jdoe")

    assert result.state is ConversionState.SKIPPED
    assert result.classification.kind is AccountKind.LOCAL
    assert store.mutations == mutations


def test_zero_group_id_aborts_before_any_deletion(store):
    store.add_user("jdoe", **mobile_attributes(PrimaryGroupID="0"))
    engine, _, _ = make_engine(store)

    with pytest.raises(IntegrityViolation) as excinfo:
        engine.process_account("jdoe")

    assert excinfo.value.username == "jdoe"
    assert excinfo.value.exit_code == 1
    assert store.mutations == []


def test_unreadable_group_id_is_an_integrity_violation(store):
    attributes = mobile_attributes()
    del attributes["PrimaryGroupID"]
    store.add_user("jdoe", **attributes)
    engine, _, _ = make_engine(store)

    with pytest.raises(IntegrityViolation):
        engine.process_account("jdoe")
    assert store.mutations == []


def test_zero_group_id_halts_the_batch(store):
    store.add_user("adam", **mobile_attributes(PrimaryGroupID="0"))
    store.add_user("zoe", **mobile_attributes())
    engine, _, _ = make_engine(store)
    candidates = [UserRecord("adam", 1400), UserRecord("zoe", 1500)]

    with pytest.raises(IntegrityViolation):
        engine.process_accounts(candidates)

    assert store.mutations == []
    assert store.user("zoe")["AuthenticationAuthority"] == MOBILE_AUTHORITY
    assert engine.reconciler.calls == []


def test_missing_shadow_hash_is_not_fatal(store):
    store.add_user("jdoe", **mobile_attributes(AuthenticationAuthority=MOBILE_AUTHORITY[:2]))
    engine, _, _ = make_engine(store)

    result = engine.process_account("jdoe")

    assert result.state is ConversionState.DONE
    assert not result.hash_restored
    assert "AuthenticationAuthority" not in store.user("jdoe")


def test_admin_granted_only_on_truthy_fact(store):
    store.add_user("jdoe", **mobile_attributes())
    engine, runner, _ = make_engine(store, admin_fact="true")
    result = engine.process_account("jdoe")
    assert result.admin_granted
    assert ["dseditgroup", "-o", "edit", "-a", "jdoe", "-t", "user", "admin"] in runner.calls

    store.add_user("asmith", **mobile_attributes())
    engine, runner, _ = make_engine(store, admin_fact="false")
    result = engine.process_account("asmith")
    assert not result.admin_granted
    assert not any("admin" in call for call in runner.calls)


def test_admin_grant_failure_does_not_stop_conversion(store):
    store.add_user("jdoe", **mobile_attributes())

    def handler(args):
        if args[-1] == "admin":
            return CommandResult(args, 64, "", "permission denied")
        return None

    engine, _, _ = make_engine(store, admin_fact="true", runner=FakeRunner(handler))
    result = engine.process_account("jdoe")
    assert result.state is ConversionState.DONE
    assert not result.admin_granted


class StaleCacheStore(InMemoryRecordStore):
    """Keeps serving the domain authority after it was rewritten"""

    def create_attribute(self, record_path, attribute, value):
        super().create_attribute(record_path, attribute, value)
        self.records[record_path][attribute] = list(MOBILE_AUTHORITY)
        return True


def test_verification_failure_aborts_run():
    store = StaleCacheStore()
    store.add_user("jdoe", **mobile_attributes())
    store.add_user("zoe", **mobile_attributes())
    engine, _, _ = make_engine(store)

    with pytest.raises(VerificationFailure) as excinfo:
        engine.process_accounts([UserRecord("jdoe", 1205), UserRecord("zoe", 1500)])

    assert excinfo.value.username == "jdoe"
    assert not any(path == "/Users/zoe" for _, path, _ in store.mutations)
    assert engine.reconciler.calls == []


def test_batch_reconciles_converted_accounts_only(store):
    store.add_user("jdoe", **mobile_attributes())
    store.add_user("svc_acct", UniqueID="1300")
    engine, _, _ = make_engine(store)

    summary = engine.process_accounts([UserRecord("jdoe", 1205), UserRecord("svc_acct", 1300)])

    assert summary.total_candidates == 2
    assert summary.converted == 1
    assert summary.skipped == 1
    assert engine.reconciler.calls == [("jdoe", 1876543210)]


def test_aborted_account_keeps_its_partial_result():
    store = StaleCacheStore()
    store.add_user("jdoe", **mobile_attributes())
    engine, _, _ = make_engine(store)
    summary = RunSummary()

    with pytest.raises(VerificationFailure) as excinfo:
        engine.process_accounts([UserRecord("jdoe", 1205)], summary)

    result = summary.results[0]
    assert result is excinfo.value.result
    assert result.state is ConversionState.FAILED
    assert result.classification.is_convertible
    assert result.old_group_id == 1876543210
    assert result.hash_restored


def test_zero_group_id_result_records_the_group(store):
    store.add_user("jdoe", **mobile_attributes(PrimaryGroupID="0"))
    engine, _, _ = make_engine(store)

    with pytest.raises(IntegrityViolation) as excinfo:
        engine.process_account("jdoe")

    assert excinfo.value.result.old_group_id == 0
    assert excinfo.value.result.state is ConversionState.FAILED
