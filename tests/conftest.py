"""Shared fixtures for the conversion tests."""

import pytest

from fakes import FakeRunner, InMemoryRecordStore
from utils.config import MigrationSettings, ToolPaths


@pytest.fixture
def tools():
    return ToolPaths(
        dscl="/usr/bin/dscl",
        dseditgroup="/usr/sbin/dseditgroup",
        dsconfigad="/usr/sbin/dsconfigad",
        killall="/usr/bin/killall",
        chown="/usr/sbin/chown",
        chgrp="/usr/bin/chgrp",
        find="/usr/bin/find",
        sw_vers="/usr/bin/sw_vers",
        id="/usr/bin/id",
    )


@pytest.fixture
def settings(tools, tmp_path):
    return MigrationSettings(tools=tools, log_dir=str(tmp_path / "logs"), settle_delay=0)


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def store():
    store = InMemoryRecordStore()
    store.records["/Groups/staff"] = {"PrimaryGroupID": ["20"]}
    return store
