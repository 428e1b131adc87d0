import os

from emlvault.config import DEFAULT_BATCH_SIZE, IngestConfig, load_config

ENV_NAMES = (
    "EMLVAULT_BATCH_SIZE",
    "EMLVAULT_QUEUE_CAPACITY",
    "EMLVAULT_WORKERS",
    "EMLVAULT_FILE_EXTENSION",
    "EMLVAULT_LOG_LEVEL",
    "EMLVAULT_COPY_CHUNK_SIZE",
)


def _clear_env(monkeypatch):
    # setenv first so teardown removes anything load_dotenv adds.
    for name in ENV_NAMES:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_defaults_without_environment(monkeypatch, tmp_path):
    _clear_env(monkeypatch)

    config = load_config(env_file=tmp_path / "missing.env")

    assert config.batch_size == 500
    assert config.queue_capacity == 1000
    assert config.copy_chunk_size == 1000
    assert config.file_extension == ".eml"
    assert config.log_level == "INFO"
    assert config.worker_count == (os.cpu_count() or 1)


def test_environment_overrides(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    monkeypatch.setenv("EMLVAULT_BATCH_SIZE", "25")
    monkeypatch.setenv("EMLVAULT_WORKERS", "3")
    monkeypatch.setenv("EMLVAULT_FILE_EXTENSION", "EML")
    monkeypatch.setenv("EMLVAULT_LOG_LEVEL", "debug")

    config = load_config(env_file=tmp_path / "missing.env")

    assert config == IngestConfig(
        batch_size=25,
        queue_capacity=1000,
        worker_count=3,
        file_extension=".eml",
        log_level="DEBUG",
        copy_chunk_size=1000,
    )


def test_invalid_numbers_fall_back_to_defaults(monkeypatch, tmp_path, log_records):
    _clear_env(monkeypatch)
    monkeypatch.setenv("EMLVAULT_BATCH_SIZE", "lots")
    monkeypatch.setenv("EMLVAULT_QUEUE_CAPACITY", "-4")

    config = load_config(env_file=tmp_path / "missing.env")

    assert config.batch_size == DEFAULT_BATCH_SIZE
    assert config.queue_capacity == 1000
    warnings = [record["message"] for record in log_records if record["level"].name == "WARNING"]
    assert len(warnings) == 2


def test_dotenv_file_is_read(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    env_file = tmp_path / ".env"
    env_file.write_text("EMLVAULT_QUEUE_CAPACITY=7\nEMLVAULT_COPY_CHUNK_SIZE=11\n", encoding="utf-8")

    config = load_config(env_file=env_file)

    assert config.queue_capacity == 7
    assert config.copy_chunk_size == 11
