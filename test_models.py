"""登录文件解析与用户认证"""

import bcrypt

from models import FileEntry, PermissionLevel, UserStore, sort_entries


def test_parse_credentials_file():
    store = UserStore.parse(
        "# comment\n"
        "\n"
        "alice:secret:readonly\n"
        "  carol : pencil : readwrite  \n"
        "bob:builder:all\n"
    )
    assert len(store) == 3
    assert store.get("alice").permission is PermissionLevel.READONLY
    assert store.get("carol").password == "pencil"
    assert store.get("bob").is_admin


def test_malformed_lines_are_skipped():
    store = UserStore.parse(
        "too:few\n"
        "too:many:fields:here\n"
        "dave:pw:superuser\n"
        "erin:pw:readwrite\n"
    )
    assert len(store) == 1
    assert "erin" in store
    assert "dave" not in store


def test_last_duplicate_wins():
    store = UserStore.parse("alice:one:readonly\nalice:two:all\n")
    assert store.get("alice").password == "two"
    assert store.get("alice").permission is PermissionLevel.ALL


def test_authenticate_exact_match():
    store = UserStore.parse("alice:secret:readonly\n")
    assert store.authenticate("alice", "secret").username == "alice"
    assert store.authenticate("alice", "wrong") is None
    assert store.authenticate("Alice", "secret") is None
    assert store.authenticate("alice", "secret ") is None
    assert store.authenticate("nobody", "secret") is None
    assert store.authenticate(None, None) is None


def test_authenticate_bcrypt_hash():
    hashed = bcrypt.hashpw(b"hunter2", bcrypt.gensalt(rounds=4)).decode("utf-8")
    store = UserStore.parse(f"frank:{hashed}:all\n")
    assert store.authenticate("frank", "hunter2") is not None
    assert store.authenticate("frank", "hunter3") is None


def test_load_from_file(tmp_path):
    path = tmp_path / "logins.txt"
    path.write_text("alice:secret:readonly\n")
    store = UserStore.load(str(path))
    assert len(store) == 1


def test_entries_sort_directories_first_case_insensitive():
    entries = [
        FileEntry("b.txt", "/b.txt", False, 1, 0),
        FileEntry("A", "/A/", True, 0, 0),
        FileEntry("a.txt", "/a.txt", False, 1, 0),
    ]
    assert [entry.name for entry in sort_entries(entries)] == ["A", "a.txt", "b.txt"]
