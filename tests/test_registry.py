import json
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from jab.base import RegistryStore
from jab.errors import ConfigIOError, ConfigParseError, ProjectConfigDoesNotExistError
from jab.impl.memory import MemoryRegistryData, MemoryRegistryStore
from jab.impl.sql import SqlRegistryStore
from jab.registry import JsonRegistryStore, ProjectConfig, ProjectRegistry


class StoreProvider:
    def create(self, path: Path) -> RegistryStore:
        raise NotImplementedError()

    def cleanup(self) -> None:
        pass


class JsonStoreProvider(StoreProvider):
    def create(self, path: Path) -> RegistryStore:
        return JsonRegistryStore(path / "config")


class MemoryStoreProvider(StoreProvider):
    def __init__(self):
        self.data: MemoryRegistryData = {}

    def create(self, path: Path) -> RegistryStore:
        return MemoryRegistryStore(self.data)


class SqlStoreProvider(StoreProvider):
    def __init__(self):
        self.engine = None

    def create(self, path: Path) -> RegistryStore:
        if self.engine:
            self.engine.dispose()

        self.engine = create_engine(f"sqlite:///{path / 'registry.db'}")
        return SqlRegistryStore(sessionmaker(bind=self.engine))

    def cleanup(self) -> None:
        if self.engine:
            self.engine.dispose()


PROVIDERS = [JsonStoreProvider, MemoryStoreProvider, SqlStoreProvider]
PROVIDER_IDS = ["json", "memory", "sql"]


def test_registry_upsert():
    registry = ProjectRegistry.empty()
    registry.register_project_config(ProjectConfig(name="a", db_uri="x"))
    registry.register_project_config(ProjectConfig(name="a", db_uri="y"))

    assert registry.project_names() == ["a"]
    assert registry.project_config("a").db_uri == "y"


def test_registry_missing_project():
    registry = ProjectRegistry.empty()

    with pytest.raises(ProjectConfigDoesNotExistError) as exc_info:
        registry.project_config("missing")
    assert exc_info.value.name == "missing"


@pytest.mark.parametrize("provider_cls", PROVIDERS, ids=PROVIDER_IDS)
def test_store_round_trip(tmp_path: Path, provider_cls: type[StoreProvider]):
    provider = provider_cls()
    try:
        store = provider.create(tmp_path)
        store.ensure()
        assert store.read().projects == {}

        registry = store.read()
        registry.register_project_config(ProjectConfig(name="shop", db_uri="u:p@h/db"))
        registry.register_project_config(ProjectConfig(name="blog", db_uri="u@h/blog"))
        store.persist(registry)

        # Simulate a new process reading the same store
        reread = provider.create(tmp_path).read()
        assert sorted(reread.project_names()) == ["blog", "shop"]
        assert reread.project_config("shop").db_uri == "u:p@h/db"
    finally:
        provider.cleanup()


@pytest.mark.parametrize("provider_cls", PROVIDERS, ids=PROVIDER_IDS)
def test_store_ensure_is_idempotent(tmp_path: Path, provider_cls: type[StoreProvider]):
    provider = provider_cls()
    try:
        store = provider.create(tmp_path)
        store.ensure()
        registry = store.read()
        registry.register_project_config(ProjectConfig(name="a", db_uri="x"))
        store.persist(registry)

        store.ensure()
        assert store.read().project_names() == ["a"], "ensure must not reset data"
    finally:
        provider.cleanup()


def test_json_empty_registry_format(tmp_path: Path):
    path = tmp_path / "config"
    JsonRegistryStore(path).ensure()

    assert json.loads(path.read_text()) == {"projects": {}}
    assert path.read_text().startswith("{\n  "), "Registry should be pretty-printed"


def test_json_registry_schema(tmp_path: Path):
    path = tmp_path / "config"
    store = JsonRegistryStore(path)
    registry = ProjectRegistry.empty()
    registry.register_project_config(ProjectConfig(name="shop", db_uri="u:p@host/db"))
    store.persist(registry)

    assert json.loads(path.read_text()) == {
        "projects": {"shop": {"name": "shop", "db_uri": "u:p@host/db"}}
    }
    assert list(tmp_path.iterdir()) == [path], "No temp files should be left behind"


def test_json_registry_malformed(tmp_path: Path):
    path = tmp_path / "config"
    path.write_text("{not json")

    with pytest.raises(ConfigParseError):
        JsonRegistryStore(path).read()

    path.write_text('{"projects": {"a": {"name": "a"}}}')
    with pytest.raises(ConfigParseError):
        JsonRegistryStore(path).read()


def test_json_registry_unreadable(tmp_path: Path):
    with pytest.raises(ConfigIOError):
        JsonRegistryStore(tmp_path / "missing" / "config").read()
