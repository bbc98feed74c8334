import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from kanuka.cli import cli


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "proj"
    path.mkdir()
    return path


def _env(tmp_path: Path, user: str) -> dict[str, str]:
    return {"KANUKA_KEYS_DIR": str(tmp_path / f"{user}-keys"), "KANUKA_USER_ID": user}


def _invoke(project_dir: Path, env: dict[str, str], *args: str, stdin: bytes | None = None):
    runner = CliRunner()
    return runner.invoke(
        cli, ["--project-dir", str(project_dir), *args], env=env, input=stdin
    )


def _snapshot(project_dir: Path) -> dict[Path, bytes]:
    return {
        path.relative_to(project_dir): path.read_bytes()
        for path in project_dir.rglob("*")
        if path.is_file()
    }


def _private_key_path(tmp_path: Path, project_dir: Path, user: str) -> Path:
    project_uuid = json.loads((project_dir / ".kanuka" / "project.json").read_text())["uuid"]
    return tmp_path / f"{user}-keys" / project_uuid / "privkey"


def test_cli_help():
    """Test CLI help command."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "Usage:" in result.output
    for command in ("create", "encrypt", "decrypt", "access", "sync", "clean", "revoke"):
        assert command in result.output


def test_cli_encrypt_help():
    runner = CliRunner()
    result = runner.invoke(cli, ["encrypt", "--help"])
    assert result.exit_code == 0
    assert "--dry-run" in result.output


def test_cli_full_flow(tmp_path: Path, project_dir: Path):
    """Create, share, sync, decrypt and revoke through the CLI."""
    alice = _env(tmp_path, "alice")
    bob = _env(tmp_path, "bob")

    result = _invoke(project_dir, alice, "create", "--name", "demo", "--user-name", "Alice")
    assert result.exit_code == 0, result.output
    assert "Created project demo" in result.output

    (project_dir / ".env").write_bytes(b"KEY=value\n")
    result = _invoke(project_dir, alice, "encrypt")
    assert result.exit_code == 0, result.output
    assert "[new]" in result.output
    assert (project_dir / ".env.kanuka").exists()

    result = _invoke(project_dir, alice, "encrypt", "--dry-run")
    assert result.exit_code == 0, result.output
    assert "[dry-run]" in result.output
    assert "would-overwrite" in result.output

    result = _invoke(project_dir, bob, "keygen")
    assert result.exit_code == 0, result.output
    assert "Keys generated and saved" in result.output
    result = _invoke(project_dir, bob, "register", "--user-name", "Bob")
    assert result.exit_code == 0, result.output
    assert "Registered bob (pending)" in result.output

    result = _invoke(project_dir, bob, "decrypt")
    assert result.exit_code == 1
    assert "access denied" in result.output

    result = _invoke(project_dir, alice, "access")
    assert result.exit_code == 0, result.output
    assert "pending  Bob (bob)" in result.output

    result = _invoke(project_dir, alice, "sync")
    assert result.exit_code == 0, result.output
    assert "Granted access to 1 user(s)" in result.output

    (project_dir / ".env").unlink()
    result = _invoke(project_dir, bob, "decrypt", ".env.kanuka")
    assert result.exit_code == 0, result.output
    assert (project_dir / ".env").read_bytes() == b"KEY=value\n"

    result = _invoke(project_dir, alice, "revoke", "bob")
    assert result.exit_code == 0, result.output
    assert "Revoked bob" in result.output
    assert not (project_dir / ".kanuka" / "secrets" / "bob.kanuka").exists()

    result = _invoke(project_dir, alice, "clean")
    assert result.exit_code == 0, result.output
    assert "No orphaned entries found" in result.output


def test_cli_decrypt_without_project(tmp_path: Path, project_dir: Path):
    result = _invoke(project_dir, _env(tmp_path, "alice"), "decrypt")
    assert result.exit_code == 1
    assert "not found: project has not been initialized" in result.output


def test_cli_missing_target(tmp_path: Path, project_dir: Path):
    env = _env(tmp_path, "alice")
    assert _invoke(project_dir, env, "create").exit_code == 0
    result = _invoke(project_dir, env, "encrypt", "nope/.env")
    assert result.exit_code == 1
    assert "file not found: nope/.env" in result.output


def test_cli_no_files(tmp_path: Path, project_dir: Path):
    env = _env(tmp_path, "alice")
    assert _invoke(project_dir, env, "create").exit_code == 0
    result = _invoke(project_dir, env, "decrypt")
    assert result.exit_code == 0
    assert "No files found" in result.output


def test_cli_create_twice_leaves_no_stray_keys(tmp_path: Path, project_dir: Path):
    env = _env(tmp_path, "alice")
    assert _invoke(project_dir, env, "create").exit_code == 0

    result = _invoke(project_dir, env, "create")

    assert result.exit_code == 1
    assert "already been initialized" in result.output
    assert len(list((tmp_path / "alice-keys").iterdir())) == 1


def test_cli_dry_run_leaves_tree_untouched(tmp_path: Path, project_dir: Path):
    env = _env(tmp_path, "alice")
    assert _invoke(project_dir, env, "create").exit_code == 0
    (project_dir / ".env").write_bytes(b"KEY=value\n")
    assert _invoke(project_dir, env, "encrypt").exit_code == 0
    (project_dir / ".env").write_bytes(b"KEY=changed\n")
    (project_dir / "svc").mkdir()
    (project_dir / "svc" / ".env.prod").write_bytes(b"DB=prod\n")
    before = _snapshot(project_dir)

    result = _invoke(project_dir, env, "encrypt", "--dry-run")
    assert result.exit_code == 0, result.output
    assert "[new]" in result.output
    assert "[would-overwrite]" in result.output
    assert _snapshot(project_dir) == before

    result = _invoke(project_dir, env, "decrypt", "--dry-run")
    assert result.exit_code == 0, result.output
    assert "[would-overwrite]" in result.output
    assert _snapshot(project_dir) == before


def test_cli_failed_dry_run_leaves_tree_untouched(tmp_path: Path, project_dir: Path):
    alice = _env(tmp_path, "alice")
    assert _invoke(project_dir, alice, "create").exit_code == 0
    (project_dir / ".env").write_bytes(b"KEY=value\n")
    assert _invoke(project_dir, alice, "encrypt").exit_code == 0
    before = _snapshot(project_dir)

    result = _invoke(project_dir, _env(tmp_path, "bob"), "decrypt", "--dry-run")
    assert result.exit_code == 1
    assert "access denied" in result.output
    assert _snapshot(project_dir) == before

    result = _invoke(project_dir, alice, "encrypt", "--dry-run", ".env", "nope/.env")
    assert result.exit_code == 1
    assert "file not found" in result.output
    assert _snapshot(project_dir) == before


def test_cli_private_key_from_stdin(tmp_path: Path, project_dir: Path):
    alice = _env(tmp_path, "alice")
    assert _invoke(project_dir, alice, "create").exit_code == 0
    (project_dir / ".env").write_bytes(b"KEY=value\n")
    assert _invoke(project_dir, alice, "encrypt").exit_code == 0
    (project_dir / ".env").unlink()
    key = _private_key_path(tmp_path, project_dir, "alice").read_bytes()
    elsewhere = {**alice, "KANUKA_KEYS_DIR": str(tmp_path / "empty-keys")}

    result = _invoke(project_dir, elsewhere, "decrypt")
    assert result.exit_code == 1
    assert "private key not found" in result.output

    result = _invoke(project_dir, elsewhere, "--private-key-stdin", "decrypt", stdin=key)
    assert result.exit_code == 0, result.output
    assert (project_dir / ".env").read_bytes() == b"KEY=value\n"


def test_cli_private_key_option(tmp_path: Path, project_dir: Path):
    alice = _env(tmp_path, "alice")
    assert _invoke(project_dir, alice, "create").exit_code == 0
    (project_dir / ".env").write_bytes(b"KEY=value\n")
    key_path = _private_key_path(tmp_path, project_dir, "alice")
    elsewhere = {**alice, "KANUKA_KEYS_DIR": str(tmp_path / "empty-keys")}

    result = _invoke(project_dir, elsewhere, "--private-key", str(key_path), "encrypt")

    assert result.exit_code == 0, result.output
    assert (project_dir / ".env.kanuka").exists()


def test_cli_status_and_log(tmp_path: Path, project_dir: Path):
    env = _env(tmp_path, "alice")
    assert _invoke(project_dir, env, "create").exit_code == 0
    (project_dir / ".env").write_bytes(b"KEY=value\n")

    result = _invoke(project_dir, env, "status")
    assert result.exit_code == 0, result.output
    assert "unencrypted" in result.output
    assert "1 unencrypted" in result.output

    assert _invoke(project_dir, env, "encrypt").exit_code == 0
    result = _invoke(project_dir, env, "log")
    assert result.exit_code == 0, result.output
    assert "create" in result.output
    assert "encrypt" in result.output
    assert ".env.kanuka" in result.output

    result = _invoke(project_dir, env, "log", "-n", "1")
    assert "create" not in result.output
