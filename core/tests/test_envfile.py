from __future__ import annotations

import threading
from pathlib import Path

import pytest

from setupgate_core.envfile import (
    EnvFileStore,
    apply_updates,
    coerce_env_value,
    parse_env_text,
)
from setupgate_core.errors import CorruptDataError, InvalidEntryError, StorageError

SAMPLE = """# Host application settings
NODE_ENV=production

# Twilio
TWILIO_ACCOUNT_SID=AC123
DATABASE_URL=postgres://u:p@db/app?sslmode=require
not a pair
PORT = 3000
"""


def _store(tmp_path: Path, text: str | None = SAMPLE, **kwargs) -> EnvFileStore:
    path = tmp_path / ".env"
    if text is not None:
        path.write_text(text, encoding="utf-8")
    return EnvFileStore(path, **kwargs)


def test_parse_classifies_lines() -> None:
    doc = parse_env_text(SAMPLE)
    kinds = [line.kind for line in doc.lines]
    assert kinds == [
        "comment",
        "entry",
        "blank",
        "comment",
        "entry",
        "entry",
        "opaque",
        "entry",
    ]
    assert doc.render() == SAMPLE


def test_read_all_skips_comments_and_splits_on_first_equals(tmp_path: Path) -> None:
    cfg = _store(tmp_path).read_all()
    assert cfg == {
        "NODE_ENV": "production",
        "TWILIO_ACCOUNT_SID": "AC123",
        "DATABASE_URL": "postgres://u:p@db/app?sslmode=require",
        "PORT": "3000",
    }


def test_read_all_last_occurrence_wins(tmp_path: Path) -> None:
    cfg = _store(tmp_path, "A=1\nA=2\n").read_all()
    assert cfg == {"A": "2"}


def test_read_all_missing_file_is_storage_error(tmp_path: Path) -> None:
    with pytest.raises(StorageError):
        _store(tmp_path, None).read_all()


def test_read_all_rejects_non_utf8(tmp_path: Path) -> None:
    path = tmp_path / ".env"
    path.write_bytes(b"KEY=\xff\xfe\n")
    with pytest.raises(CorruptDataError):
        EnvFileStore(path).read_all()


def test_upsert_replaces_in_place_and_keeps_comments(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.upsert_many({"TWILIO_ACCOUNT_SID": "AC999"})

    assert store.path.read_text(encoding="utf-8") == SAMPLE.replace(
        "TWILIO_ACCOUNT_SID=AC123", "TWILIO_ACCOUNT_SID=AC999"
    )


def test_upsert_appends_new_keys_in_order(tmp_path: Path) -> None:
    store = _store(tmp_path, "A=1\n")
    store.upsert_many({"B": "2", "C": "3"})
    assert store.path.read_text(encoding="utf-8") == "A=1\nB=2\nC=3\n"


def test_upsert_on_file_without_trailing_newline(tmp_path: Path) -> None:
    store = _store(tmp_path, "A=1")
    store.upsert_many({"B": "2"})
    assert store.path.read_text(encoding="utf-8") == "A=1\nB=2\n"


def test_upsert_creates_missing_file(tmp_path: Path) -> None:
    store = _store(tmp_path, None)
    store.upsert_many({"DOMAIN": "x.com"})
    assert store.read_all() == {"DOMAIN": "x.com"}


def test_upsert_with_no_updates_still_creates_file(tmp_path: Path) -> None:
    store = _store(tmp_path, None)
    store.upsert_many({})
    assert store.path.exists()
    assert store.read_all() == {}


def test_upsert_is_idempotent(tmp_path: Path) -> None:
    store = _store(tmp_path)
    updates = {"NODE_ENV": "staging", "NEW_KEY": "v"}

    store.upsert_many(updates)
    first = store.path.read_bytes()
    store.upsert_many(updates)

    assert store.path.read_bytes() == first


def test_upsert_does_not_touch_other_keys(tmp_path: Path) -> None:
    store = _store(tmp_path)
    before = store.read_all()

    store.upsert_many({"PORT": "8080"})
    after = store.read_all()

    assert after["PORT"] == "8080"
    for key, value in before.items():
        if key != "PORT":
            assert after[key] == value


@pytest.mark.parametrize(
    "key",
    ["A.B", "A*", "KEY+", "(X)", "[Y]", "Z$", "^W", "a|b", "Q?", "back\\slash"],
)
def test_keys_with_pattern_metacharacters_match_only_themselves(tmp_path: Path, key: str) -> None:
    # "AxB" would match an unescaped "A.B" pattern.
    store = _store(tmp_path, "AxB=keep\nAAAA=keep\nKEYY=keep\n")
    store.upsert_many({key: "new"})
    store.upsert_many({key: "newer"})

    cfg = store.read_all()
    assert cfg[key] == "newer"
    assert cfg["AxB"] == "keep"
    assert cfg["AAAA"] == "keep"
    assert cfg["KEYY"] == "keep"
    assert store.path.read_text(encoding="utf-8").count(f"{key}=") == 1


def test_duplicate_keys_first_policy_rewrites_only_first(tmp_path: Path) -> None:
    store = _store(tmp_path, "A=1\nB=x\nA=2\n")
    store.upsert_many({"A": "9"})
    assert store.path.read_text(encoding="utf-8") == "A=9\nB=x\nA=2\n"


def test_duplicate_keys_all_policy_rewrites_every_occurrence(tmp_path: Path) -> None:
    store = _store(tmp_path, "A=1\nB=x\nA=2\n", duplicates="all")
    store.upsert_many({"A": "9"})
    assert store.path.read_text(encoding="utf-8") == "A=9\nB=x\nA=9\n"
    assert store.read_all()["A"] == "9"


def test_round_trip_values_with_equals_and_hash(tmp_path: Path) -> None:
    store = _store(tmp_path, None)
    store.upsert_many({"URL": "https://x.com/?a=b#frag", "EMPTY": "", "GREETING": "hello  world"})
    cfg = store.read_all()
    assert cfg["URL"] == "https://x.com/?a=b#frag"
    assert cfg["EMPTY"] == ""
    assert cfg["GREETING"] == "hello  world"


def test_crlf_line_endings_are_kept(tmp_path: Path) -> None:
    path = tmp_path / ".env"
    path.write_bytes(b"# c\r\nA=1\r\nB=2\r\n")
    store = EnvFileStore(path)

    store.upsert_many({"B": "3", "C": "4"})

    assert path.read_bytes() == b"# c\r\nA=1\r\nB=3\r\nC=4\r\n"
    assert store.read_all() == {"A": "1", "B": "3", "C": "4"}


def test_concurrent_upserts_do_not_lose_updates(tmp_path: Path) -> None:
    store = _store(tmp_path)
    errors: list[BaseException] = []

    def _worker(n: int) -> None:
        try:
            for i in range(10):
                store.upsert_many({f"KEY_{n}_{i}": str(i)})
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=_worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    cfg = store.read_all()
    for n in range(8):
        for i in range(10):
            assert cfg[f"KEY_{n}_{i}"] == str(i)
    assert cfg["NODE_ENV"] == "production"


@pytest.mark.parametrize(
    "updates",
    [
        {"": "v"},
        {"A=B": "v"},
        {"#A": "v"},
        {" A": "v"},
        {"A\nB": "v"},
        {"A": "line1\nline2"},
        {"A": "x\r"},
        {"A": " padded"},
        {"A": "padded "},
        {"A": {"nested": True}},
        {"A": [1, 2]},
    ],
)
def test_invalid_entries_are_rejected_before_writing(tmp_path: Path, updates) -> None:
    store = _store(tmp_path)
    with pytest.raises(InvalidEntryError):
        store.upsert_many({"NODE_ENV": "changed", **updates})
    assert store.path.read_text(encoding="utf-8") == SAMPLE


def test_coerce_env_value() -> None:
    assert coerce_env_value("x") == "x"
    assert coerce_env_value(3000) == "3000"
    assert coerce_env_value(1.5) == "1.5"
    assert coerce_env_value(True) == "true"
    assert coerce_env_value(False) == "false"
    assert coerce_env_value(None) == ""


def test_apply_updates_is_pure() -> None:
    doc = parse_env_text("A=1\n")
    patched = apply_updates(doc, {"A": "2"})
    assert doc.render() == "A=1\n"
    assert patched.render() == "A=2\n"


def test_write_leaves_no_temp_files(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.upsert_many({"A": "1"})
    assert sorted(p.name for p in tmp_path.iterdir()) == [".env"]


def test_write_failure_is_storage_error_and_keeps_file(tmp_path: Path, monkeypatch) -> None:
    store = _store(tmp_path)

    def _boom(src, dst):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr("setupgate_core.fileio.os.replace", _boom)

    with pytest.raises(StorageError):
        store.upsert_many({"NODE_ENV": "changed"})
    assert store.path.read_text(encoding="utf-8") == SAMPLE
    assert sorted(p.name for p in tmp_path.iterdir()) == [".env"]
