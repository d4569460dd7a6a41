import json
import threading
from pathlib import Path

import pytest

from settings import Config, ConfigStore, ConfigStoreError


def test_load_returns_defaults_when_file_missing(store: ConfigStore):
    assert not store.exists()

    config = store.load()

    assert config == Config()
    assert config.server_url == ""
    assert config.api_key == ""
    assert config.preferences == {}
    # Loading must not create anything on disk
    assert not store.path.exists()


def test_save_then_load_roundtrip(store: ConfigStore):
    saved = Config(
        server_url="https://chat.example.com",
        api_key="sk-test-1234567890",
        preferences={"theme": "dark", "default_model_id": "gpt-4o", "pinned": [1, 2]},
    )

    store.save(saved)

    assert store.exists()
    assert store.load() == saved


@pytest.mark.parametrize("api_key", ["", "ключ-🔑-秘密", "  padded  ", 'quote"and\\slash'])
def test_roundtrip_preserves_unusual_values(store: ConfigStore, api_key: str):
    saved = Config(server_url="", api_key=api_key)

    store.save(saved)

    assert store.load() == saved


def test_save_replaces_record_wholesale(store: ConfigStore):
    store.save(Config(server_url="https://a.example", api_key="k1", preferences={"theme": "dark"}))
    store.save(Config(server_url="https://b.example", api_key="k2"))

    loaded = store.load()
    assert loaded.server_url == "https://b.example"
    assert loaded.api_key == "k2"
    assert loaded.preferences == {}


def test_file_layout_is_versioned_json(store: ConfigStore):
    store.save(Config(server_url="https://chat.example.com", api_key="ключ"))

    raw = store.path.read_text(encoding="utf-8")
    data = json.loads(raw)
    assert data == {
        "version": 1,
        "server_url": "https://chat.example.com",
        "api_key": "ключ",
        "preferences": {},
    }
    # Non-ASCII is stored as-is
    assert "ключ" in raw


def test_save_creates_missing_directories(tmp_path: Path):
    store = ConfigStore(directory=tmp_path / "a" / "b" / "c")

    store.save(Config(server_url="https://x.example"))

    assert (tmp_path / "a" / "b" / "c" / "config.json").is_file()


def test_save_leaves_no_temporary_files(store: ConfigStore):
    for i in range(3):
        store.save(Config(api_key=f"key-{i}"))

    assert sorted(p.name for p in store.directory.iterdir()) == ["config.json"]


def test_corrupt_file_is_an_error(store: ConfigStore):
    store.directory.mkdir(parents=True)
    store.path.write_text("{not valid json", encoding="utf-8")

    with pytest.raises(ConfigStoreError) as exc_info:
        store.load()

    assert "Failed to parse config file" in str(exc_info.value)
    assert str(store.path) in str(exc_info.value)


def test_non_object_root_is_an_error(store: ConfigStore):
    store.directory.mkdir(parents=True)
    store.path.write_text('["server_url"]', encoding="utf-8")

    with pytest.raises(ConfigStoreError, match="Failed to parse config file"):
        store.load()


def test_wrong_field_type_is_an_error(store: ConfigStore):
    store.directory.mkdir(parents=True)
    store.path.write_text('{"server_url": 42}', encoding="utf-8")

    with pytest.raises(ConfigStoreError, match="server_url"):
        store.load()


def test_unreadable_path_is_an_error(store: ConfigStore):
    # A directory where the file should be cannot be read as text
    store.path.mkdir(parents=True)

    with pytest.raises(ConfigStoreError, match="Failed to read config file"):
        store.load()


def test_unwritable_target_is_an_error(store: ConfigStore):
    # os.replace cannot put a file over a non-empty directory
    store.path.mkdir(parents=True)
    (store.path / "blocker").write_text("x", encoding="utf-8")

    with pytest.raises(ConfigStoreError, match="Failed to write config file"):
        store.save(Config(api_key="k"))

    leftovers = [p.name for p in store.directory.iterdir() if p.name.endswith(".tmp")]
    assert leftovers == []


def test_file_without_optional_fields_loads_with_defaults(store: ConfigStore):
    store.directory.mkdir(parents=True)
    store.path.write_text('{"server_url": "https://x.example"}', encoding="utf-8")

    assert store.load() == Config(server_url="https://x.example")


def test_concurrent_saves_are_last_write_wins(store: ConfigStore):
    configs = [Config(server_url=f"https://host{i}.example", api_key=f"key-{i}") for i in range(16)]
    errors = []

    def save(config):
        try:
            store.save(config)
        except Exception as e:  # pragma: no cover - surfaced by the assertion below
            errors.append(e)

    threads = [threading.Thread(target=save, args=(c,)) for c in configs]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    # Whole record from exactly one writer, never a mix
    assert store.load() in configs
    assert sorted(p.name for p in store.directory.iterdir()) == ["config.json"]
