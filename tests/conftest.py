from pathlib import Path
from typing import Callable

import pytest

from kanuka.common.config import Config
from kanuka.common.models import ProjectConfig
from kanuka.secrets.filesystem import MemoryFileSystem
from kanuka.secrets.keys import KeyPair, generate_key_pair
from kanuka.secrets.project import EngineContext, create_project

ROOT = Path("/project")


@pytest.fixture(scope="session")
def alice_keys() -> KeyPair:
    return generate_key_pair()


@pytest.fixture(scope="session")
def bob_keys() -> KeyPair:
    return generate_key_pair()


@pytest.fixture(scope="session")
def carol_keys() -> KeyPair:
    return generate_key_pair()


@pytest.fixture
def config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Config:
    monkeypatch.setenv("KANUKA_KEYS_DIR", str(tmp_path / "keys"))
    return Config()


@pytest.fixture
def memfs() -> MemoryFileSystem:
    return MemoryFileSystem()


@pytest.fixture
def make_ctx(
    memfs: MemoryFileSystem, config: Config
) -> Callable[[str, KeyPair | None], EngineContext]:
    """Build a context for another user sharing the same in-memory project."""

    def _make(user_id: str, keys: KeyPair | None = None) -> EngineContext:
        return EngineContext(
            project_root=ROOT,
            user_id=user_id,
            config=config,
            fs=memfs,
            private_key_data=keys.private_pem() if keys else None,
        )

    return _make


@pytest.fixture
def alice_ctx(make_ctx, alice_keys: KeyPair) -> EngineContext:
    return make_ctx("alice", alice_keys)


@pytest.fixture
def project(alice_ctx: EngineContext, alice_keys: KeyPair) -> ProjectConfig:
    """A project created by alice, who is its only active user."""
    return create_project(alice_ctx, "demo", alice_keys, user_name="Alice")
