# Tests for Account serialization and the encrypted AccountStore

import datetime
import glob
import json
import os
import threading

import pytest

from loginvault import config
from loginvault.crypto import CryptoManager
from loginvault.errors import IOFailure, KeyCorrupt
from loginvault.keys import KeyManager
from loginvault.storage import NEVER_USED, Account, AccountStore, parse_datetime


def make_account(**overrides):
    values = dict(name="Main", username="hero", password="pw1", otp_secret="JBSWY3DPEHPK3PXP")
    values.update(overrides)
    return Account(**values)


def read_plaintext(paths, key_manager):
    with open(paths.accounts_file, "rb") as f:
        blob = f.read()
    return json.loads(CryptoManager().decrypt_text(blob, key_manager.get_or_create_key()))


class TestAccount:
    def test_defaults(self):
        account = Account()
        assert account.group == config.DEFAULT_GROUP
        assert account.last_used == NEVER_USED
        assert not account.has_been_used
        assert account.id

    def test_ids_are_unique(self):
        assert Account().id != Account().id

    def test_empty_group_uses_default(self):
        assert Account(group="").group == config.DEFAULT_GROUP

    def test_json_field_names(self):
        data = make_account().to_dict()
        assert set(data) == {
            "Id", "Name", "Username", "Password", "OtpSecret", "Group", "Server", "Character",
            "LastCharacter", "AutoSelectServer", "AutoSelectCharacter", "CreatedAt", "LastUsed",
        }
        assert data["LastUsed"] == "0001-01-01T00:00:00"

    def test_from_dict_round_trip(self):
        account = make_account(server=3, character=7, auto_select_server=True)
        assert Account.from_dict(account.to_dict()) == account

    def test_unknown_fields_preserved(self):
        data = make_account().to_dict()
        data["AutoAssistBattle"] = True
        account = Account.from_dict(data)
        assert account.extra == {"AutoAssistBattle": True}
        assert account.to_dict()["AutoAssistBattle"] is True

    def test_from_dict_tolerates_missing_fields(self):
        account = Account.from_dict({"Id": "abc", "Name": "Old", "Group": None})
        assert account.id == "abc"
        assert account.group == config.DEFAULT_GROUP
        assert account.server == config.DEFAULT_SERVER
        assert account.last_used == NEVER_USED

    def test_from_dict_rejects_non_object(self):
        with pytest.raises(ValueError):
            Account.from_dict(["not", "a", "dict"])

    def test_copy_is_independent(self):
        account = make_account()
        account.extra["x"] = 1
        clone = account.copy()
        clone.password = "changed"
        clone.extra["x"] = 2
        assert account.password == "pw1"
        assert account.extra["x"] == 1


class TestParseDatetime:
    def test_python_isoformat(self):
        value = datetime.datetime(2024, 5, 1, 12, 34, 56, 123456)
        assert parse_datetime(value.isoformat()) == value

    def test_seven_fractional_digits(self):
        assert parse_datetime("2024-05-01T12:34:56.1234567") == datetime.datetime(2024, 5, 1, 12, 34, 56, 123456)

    def test_short_fraction(self):
        assert parse_datetime("2024-05-01T12:34:56.5").microsecond == 500000

    def test_offset_becomes_naive_local(self):
        parsed = parse_datetime("2024-05-01T12:34:56.789+08:00")
        assert parsed.tzinfo is None
        expected = datetime.datetime(2024, 5, 1, 4, 34, 56, 789000, tzinfo=datetime.timezone.utc)
        assert parsed == expected.astimezone().replace(tzinfo=None)

    @pytest.mark.parametrize("value", [None, "", "0001-01-01T00:00:00", "0001-01-01T00:00:00+08:00"])
    def test_never_used_sentinel(self, value):
        assert parse_datetime(value) == NEVER_USED


class TestLoad:
    def test_missing_file_is_empty_and_not_degraded(self, store):
        assert store.load() == []
        assert not store.is_degraded

    def test_missing_file_does_not_create_key(self, store, paths):
        store.load()
        assert not os.path.exists(paths.key_file)

    def test_truncated_file_fails_open(self, store, paths, key_manager):
        key_manager.get_or_create_key()
        with open(paths.accounts_file, "wb") as f:
            f.write(b"short")
        assert store.load() == []
        assert store.is_degraded

    def test_wrong_key_fails_open(self, store, paths, key_manager):
        key_manager.get_or_create_key()
        other_key = os.urandom(32)
        with open(paths.accounts_file, "wb") as f:
            f.write(CryptoManager().encrypt(b'[{"Id": "x"}]' * 4, other_key))
        assert store.load() == []
        assert store.is_degraded

    def test_non_list_json_fails_open(self, store, paths, key_manager):
        blob = CryptoManager().encrypt(b'{"Id": "x"}', key_manager.get_or_create_key())
        with open(paths.accounts_file, "wb") as f:
            f.write(blob)
        assert store.load() == []
        assert store.is_degraded

    def test_null_json_is_empty(self, store, paths, key_manager):
        blob = CryptoManager().encrypt(b"null", key_manager.get_or_create_key())
        with open(paths.accounts_file, "wb") as f:
            f.write(blob)
        assert store.load() == []
        assert not store.is_degraded

    def test_corrupt_key_propagates(self, store, paths):
        store.upsert(make_account())
        with open(paths.key_file, "w") as f:
            f.write("broken")
        store.key_manager.reset()
        with pytest.raises(KeyCorrupt):
            store.load()

    def test_duplicate_ids_dropped(self, store, paths, key_manager):
        record = make_account().to_dict()
        blob = CryptoManager().encrypt(json.dumps([record, record]).encode(), key_manager.get_or_create_key())
        with open(paths.accounts_file, "wb") as f:
            f.write(blob)
        assert len(store.load()) == 1

    def test_decrypted_plaintext_is_zeroed(self, store, monkeypatch):
        store.upsert(make_account(password="very-secret"))
        cleared = []
        real_clear = CryptoManager.clear_bytes

        def spy(self, data):
            real_clear(self, data)
            cleared.append(bytes(data))

        monkeypatch.setattr(CryptoManager, "clear_bytes", spy)
        assert store.load()[0].password == "very-secret"
        assert len(cleared) == 1
        assert cleared[0] and not any(cleared[0])


class TestCrud:
    def test_upsert_new_then_load(self, store, paths, key_manager):
        account = make_account()
        store.upsert(account)
        fresh = AccountStore(paths.accounts_file, KeyManager(paths.key_file))
        assert fresh.load() == [account]

    def test_upsert_existing_updates_in_place(self, store):
        account = make_account()
        store.upsert(account)
        changed = account.copy()
        changed.password = "pw2"
        changed.created_at = datetime.datetime(2000, 1, 1)
        store.upsert(changed)

        loaded = store.load()
        assert len(loaded) == 1
        assert loaded[0].password == "pw2"
        assert loaded[0].id == account.id
        assert loaded[0].created_at == account.created_at

    def test_upsert_keeps_order(self, store):
        first, second = make_account(name="A"), make_account(name="B")
        store.upsert(first)
        store.upsert(second)
        edited = first.copy()
        edited.name = "A2"
        store.upsert(edited)
        assert [a.name for a in store.load()] == ["A2", "B"]

    def test_delete(self, store):
        account = make_account()
        store.upsert(account)
        assert store.delete(account.id)
        assert store.load() == []

    def test_delete_missing_is_noop(self, store, paths):
        assert store.delete("nope") is False
        assert not os.path.exists(paths.accounts_file)

    def test_touch_last_used_changes_only_last_used(self, paths, key_manager):
        now = datetime.datetime(2025, 1, 2, 3, 4, 5)
        store = AccountStore(paths.accounts_file, key_manager, clock=lambda: now)
        account = make_account()
        store.upsert(account)
        before = store.load()[0].to_dict()

        assert store.touch_last_used(account.id)
        after = store.load()[0].to_dict()

        assert after.pop("LastUsed") == now.isoformat()
        before.pop("LastUsed")
        assert after == before

    def test_touch_missing(self, store):
        assert store.touch_last_used("nope") is False

    def test_get_returns_copy(self, store):
        account = make_account()
        store.upsert(account)
        got = store.get(account.id)
        got.password = "mutated"
        assert store.get(account.id).password == "pw1"
        assert store.get("missing") is None

    def test_save_rejects_duplicate_ids(self, store):
        account = make_account()
        with pytest.raises(ValueError):
            store.save([account, account.copy()])

    def test_add_all(self, store):
        accounts = [make_account(name=str(i)) for i in range(3)]
        store.add_all(accounts)
        assert [a.name for a in store.load()] == ["0", "1", "2"]
        with pytest.raises(ValueError):
            store.add_all([accounts[0]])


class TestPersistence:
    def test_file_is_iv_plus_ciphertext(self, store, paths):
        store.upsert(make_account(password="very-secret"))
        with open(paths.accounts_file, "rb") as f:
            blob = f.read()
        assert len(blob) > 16 and (len(blob) - 16) % 16 == 0
        assert b"very-secret" not in blob

    def test_plaintext_is_json_array(self, store, paths, key_manager):
        store.upsert(make_account())
        records = read_plaintext(paths, key_manager)
        assert isinstance(records, list)
        assert records[0]["Username"] == "hero"

    def test_reads_file_written_by_legacy_format(self, store, paths, key_manager):
        legacy = [{
            "Id": "7f1c", "Name": "Alt", "Username": "u", "Password": "p",
            "OtpSecret": "JBSWY3DPEHPK3PXP", "Group": "預設", "Server": 2, "Character": 3,
            "LastCharacter": 3, "AutoSelectServer": True, "AutoSelectCharacter": False,
            "AutoAssistBattle": False,
            "CreatedAt": "2024-03-01T10:00:00.1234567+08:00", "LastUsed": "0001-01-01T00:00:00",
        }]
        blob = CryptoManager().encrypt(json.dumps(legacy, ensure_ascii=False).encode("utf-8"),
                                       key_manager.get_or_create_key())
        with open(paths.accounts_file, "wb") as f:
            f.write(blob)
        account = store.load()[0]
        assert account.id == "7f1c"
        assert account.group == "預設"
        assert account.server == 2
        assert not account.has_been_used

    def test_no_temp_file_left(self, store, paths):
        store.upsert(make_account())
        assert not os.path.exists(paths.accounts_file + config.TEMP_SUFFIX)

    def test_save_after_degraded_load_keeps_unreadable_copy(self, store, paths, key_manager):
        key_manager.get_or_create_key()
        with open(paths.accounts_file, "wb") as f:
            f.write(b"\x01" * 40)
        store.load()
        store.upsert(make_account())

        kept = glob.glob(paths.accounts_file + config.UNREADABLE_SUFFIX + "-*")
        assert len(kept) == 1
        with open(kept[0], "rb") as f:
            assert f.read() == b"\x01" * 40
        assert not store.is_degraded
        assert len(store.load()) == 1

    def test_failed_save_rolls_back_memory(self, store, monkeypatch):
        account = make_account()
        store.upsert(account)

        def fail(*args, **kwargs):
            raise IOFailure("disk full")

        monkeypatch.setattr("loginvault.storage.atomic_write_bytes", fail)
        changed = account.copy()
        changed.password = "new"
        with pytest.raises(IOFailure):
            store.upsert(changed)
        assert store.get(account.id).password == "pw1"


def test_concurrent_mutations_are_not_lost(store):
    accounts = [make_account(name=f"acc{i}") for i in range(8)]
    store.add_all(accounts)

    def worker(account):
        for _ in range(3):
            store.touch_last_used(account.id)
            edited = store.get(account.id)
            edited.password = f"pw-{account.name}"
            store.upsert(edited)

    threads = [threading.Thread(target=worker, args=(a,)) for a in accounts]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    loaded = {a.name: a for a in store.load()}
    assert len(loaded) == 8
    for name, account in loaded.items():
        assert account.password == f"pw-{name}"
        assert account.has_been_used
