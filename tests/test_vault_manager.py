# Tests for the VaultManager facade used by the UI layer

import pytest

from loginvault.errors import InvalidSecret
from loginvault.paths import VaultPaths, get_default_data_dir
from loginvault.storage import Account
from loginvault.vault_manager import VaultManager

from .conftest import RFC_SECRET


@pytest.fixture
def vault(paths, totp):
    return VaultManager(paths, totp=totp)


def make_account(name="Main", secret=RFC_SECRET):
    return Account(name=name, username="hero", password="pw", otp_secret=secret)


def test_starts_empty(vault):
    assert vault.accounts() == []
    assert not vault.is_degraded


def test_current_totp(vault):
    # fake clock at t=150 -> counter 5
    assert vault.current_totp(make_account()) == "254676"
    assert vault.time_remaining() == 30


def test_current_totp_waits_when_expiring(vault, clock):
    clock.now = 179
    assert vault.current_totp(make_account(), wait_if_expiring=True) == "287922"
    assert clock.slept


def test_current_totp_invalid_secret(vault):
    with pytest.raises(InvalidSecret):
        vault.current_totp(make_account(secret="0189"))


def test_find_by_id_or_name(vault):
    stored = vault.upsert(make_account("Alt"))
    assert vault.find(stored.id).name == "Alt"
    assert vault.find("Alt").id == stored.id
    assert vault.find("missing") is None


def test_observer_receives_snapshots(vault):
    snapshots = []
    unsubscribe = vault.subscribe(snapshots.append)
    account = vault.upsert(make_account())
    vault.touch_last_used(account.id)
    vault.delete("missing")
    vault.delete(account.id)
    unsubscribe()
    vault.upsert(make_account("After"))

    assert [len(s) for s in snapshots] == [1, 1, 0]
    assert isinstance(snapshots[0], tuple)
    assert snapshots[1][0].has_been_used


def test_failing_observer_does_not_break_mutation(vault):
    def boom(_):
        raise RuntimeError("ui gone")
    vault.subscribe(boom)
    vault.upsert(make_account())
    assert len(vault.accounts()) == 1


def test_import_batch(vault):
    result = vault.import_batch(f"A|u|p|{RFC_SECRET}\nbad\nB|u|p|{RFC_SECRET}|Farm")
    assert len(result.accounts) == 2
    assert len(result.errors) == 1
    assert sorted(a.name for a in vault.accounts()) == ["A", "B"]


def test_settings_cached_and_saved(vault, paths, totp):
    settings = vault.settings()
    settings.hotkey = "F2"
    vault.save_settings(settings)
    assert VaultManager(paths, totp=totp).settings().hotkey == "F2"


def test_backup_and_restore_reloads(vault, tmp_path):
    vault.upsert(make_account("Keep"))
    destination = str(tmp_path / "b.backup")
    vault.backup(destination)

    vault.upsert(make_account("Later"))
    snapshots = []
    vault.subscribe(snapshots.append)
    restored = vault.restore(destination)

    assert [a.name for a in restored] == ["Keep"]
    assert [a.name for a in snapshots[-1]] == ["Keep"]


def test_degraded_flag(paths, totp):
    paths.ensure_data_dir()
    VaultManager(paths, totp=totp).upsert(make_account())
    with open(paths.accounts_file, "wb") as f:
        f.write(b"garbage")
    vault = VaultManager(paths, totp=totp)
    assert vault.is_degraded
    assert vault.accounts() == []


def test_default_paths(monkeypatch, tmp_path):
    monkeypatch.setenv("LOGINVAULT_HOME", str(tmp_path / "home"))
    assert get_default_data_dir() == str(tmp_path / "home")
    assert VaultPaths.default().key_file.endswith("key.dat")
