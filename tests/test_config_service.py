from __future__ import annotations

from collections.abc import Callable
import json
import os
from pathlib import Path

from _pytest.monkeypatch import MonkeyPatch
import pytest

from db_ai_mcp.exceptions import ConfigInvalid, ConfigNotFound
from db_ai_mcp.services.config_service import DEFAULT_CONFIG, ConfigService

WriteConfig = Callable[..., Path]


def test_missing_config_raises_not_found(tmp_path: Path) -> None:
    service = ConfigService(tmp_path / "nowhere")
    with pytest.raises(ConfigNotFound, match="db-ai init"):
        service.load()


def test_default_dir_honors_env(monkeypatch: MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("DB_AI_CONFIG_DIR", str(tmp_path))
    assert ConfigService().config_path == tmp_path / "dbConfig.json"
    monkeypatch.delenv("DB_AI_CONFIG_DIR")
    monkeypatch.chdir(tmp_path)
    assert ConfigService().config_dir == tmp_path / ".db-ai"


def test_load_valid_config(config_dir: Path, write_config: WriteConfig) -> None:
    write_config(OPERATIONS_ALLOWED=["select", "INSERT", "SELECT"], schema="main")
    target = ConfigService(config_dir).load()
    assert target.provider == "sqlite"
    assert target.operations_allowed == frozenset({"SELECT", "INSERT"})
    assert target.schema_name == "main"
    assert ConfigService(config_dir).output_path(target) == config_dir / "output.log"


def test_output_path_absent_when_unconfigured(
    config_dir: Path, write_config: WriteConfig
) -> None:
    write_config(outputFileName=None)
    service = ConfigService(config_dir)
    assert service.output_path(service.load()) is None


def test_empty_allow_list_is_accepted(config_dir: Path, write_config: WriteConfig) -> None:
    write_config(OPERATIONS_ALLOWED=[])
    assert ConfigService(config_dir).load().operations_allowed == frozenset()


@pytest.mark.parametrize("field", ["provider", "host", "port", "user", "password", "database"])
def test_missing_required_field(config_dir: Path, write_config: WriteConfig, field: str) -> None:
    path = write_config()
    raw = json.loads(path.read_text(encoding="utf-8"))
    del raw[field]
    path.write_text(json.dumps(raw), encoding="utf-8")
    with pytest.raises(ConfigInvalid) as info:
        ConfigService(config_dir).load()
    assert any(field in problem for problem in info.value.problems)


def test_missing_allow_list(config_dir: Path, write_config: WriteConfig) -> None:
    path = write_config()
    raw = json.loads(path.read_text(encoding="utf-8"))
    del raw["OPERATIONS_ALLOWED"]
    path.write_text(json.dumps(raw), encoding="utf-8")
    with pytest.raises(ConfigInvalid, match="OPERATIONS_ALLOWED"):
        ConfigService(config_dir).load()


def test_empty_string_field_is_invalid(config_dir: Path, write_config: WriteConfig) -> None:
    write_config(host="")
    with pytest.raises(ConfigInvalid, match="host"):
        ConfigService(config_dir).load()


def test_scalar_allow_list_is_invalid(config_dir: Path, write_config: WriteConfig) -> None:
    write_config(OPERATIONS_ALLOWED="SELECT")
    with pytest.raises(ConfigInvalid, match="must be an array"):
        ConfigService(config_dir).load()


@pytest.mark.parametrize("port", ["not-a-port", "5432", True, 5432.0])
def test_wrong_port_type_is_invalid(
    config_dir: Path, write_config: WriteConfig, port: object
) -> None:
    write_config(port=port)
    with pytest.raises(ConfigInvalid, match="port"):
        ConfigService(config_dir).load()


def test_malformed_json(config_dir: Path) -> None:
    (config_dir / "dbConfig.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigInvalid, match="malformed JSON"):
        ConfigService(config_dir).load()


def test_non_object_json(config_dir: Path) -> None:
    (config_dir / "dbConfig.json").write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigInvalid, match="JSON object"):
        ConfigService(config_dir).load()


def test_uncached_service_rereads_every_call(config_dir: Path, write_config: WriteConfig) -> None:
    service = ConfigService(config_dir)
    write_config()
    assert service.load().operations_allowed == frozenset({"SELECT"})
    write_config(OPERATIONS_ALLOWED=["SELECT", "DELETE"])
    assert service.load().operations_allowed == frozenset({"SELECT", "DELETE"})


def test_cache_invalidates_on_file_change(config_dir: Path, write_config: WriteConfig) -> None:
    service = ConfigService(config_dir, cache=True)
    path = write_config()
    first = service.load()
    assert service.load() is first

    write_config(OPERATIONS_ALLOWED=["SELECT", "UPDATE", "DELETE"])
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))
    second = service.load()
    assert second is not first
    assert "UPDATE" in second.operations_allowed


def test_init_writes_template(tmp_path: Path) -> None:
    service = ConfigService(tmp_path / ".db-ai")
    assert service.init() is True
    assert json.loads(service.config_path.read_text(encoding="utf-8")) == DEFAULT_CONFIG
    assert service.load().operations_allowed == frozenset({"SELECT"})
    notes = service.notes_path.read_text(encoding="utf-8")
    assert "OPERATIONS_ALLOWED" in notes
    assert "outputFileName" in notes


def test_init_is_rerunnable_without_overwriting(tmp_path: Path) -> None:
    service = ConfigService(tmp_path / ".db-ai")
    service.init()
    service.config_path.write_text('{"provider": "mysql"}', encoding="utf-8")
    service.notes_path.unlink()

    assert service.init() is False
    assert service.config_path.read_text(encoding="utf-8") == '{"provider": "mysql"}'
    assert service.notes_path.is_file()

    assert service.init(force=True) is True
    assert json.loads(service.config_path.read_text(encoding="utf-8")) == DEFAULT_CONFIG


def test_echo_sql_flag(monkeypatch: MonkeyPatch) -> None:
    monkeypatch.setenv("DB_AI_ECHO_SQL", "yes")
    assert ConfigService.echo_sql() is True
    monkeypatch.setenv("DB_AI_ECHO_SQL", "0")
    assert ConfigService.echo_sql() is False
