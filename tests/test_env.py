"""
Tests for environment configuration.
"""

import pytest
from pathlib import Path

from fieldsweep.env import (
    DEFAULT_BATCH_SIZE,
    SweepSettings,
    load_env,
    parse_batch_size,
    parse_bool,
)

ENV_VARS = [
    "REPROCESS_DEFAULT_POLICY_FIELDS",
    "BACKFILL_POLICY_FIELDS_BATCH_SIZE",
    "FIELDSWEEP_DB",
    "DATAHUB_GMS_URL",
    "DATAHUB_GMS_TOKEN",
    "FIELDSWEEP_LOG_LEVEL",
]


class TestParseBool:
    @pytest.mark.parametrize("value", ["1", "true", "TRUE", " yes ", "on"])
    def test_truthy(self, value):
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", ["0", "false", "No", "off", ""])
    def test_falsy(self, value):
        assert parse_bool(value) is False

    def test_unset_uses_default(self):
        assert parse_bool(None) is False
        assert parse_bool(None, default=True) is True

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            parse_bool("maybe")


class TestParseBatchSize:
    def test_unset_or_blank_uses_default(self):
        assert parse_batch_size(None) == DEFAULT_BATCH_SIZE
        assert parse_batch_size("  ") == DEFAULT_BATCH_SIZE

    def test_parses_integer(self):
        assert parse_batch_size("250") == 250

    @pytest.mark.parametrize("value", ["0", "-5", "ten", "1.5"])
    def test_invalid_values_rejected(self, value):
        with pytest.raises(ValueError):
            parse_batch_size(value)


class TestSweepSettings:
    def test_defaults(self):
        settings = SweepSettings.from_env({})

        assert settings.reprocess is False
        assert settings.batch_size == 5000
        assert settings.db_path == Path("data/fieldsweep.db")
        assert settings.gms_url is None
        assert settings.gms_token is None
        assert settings.log_level == "INFO"

    def test_reads_all_variables(self):
        settings = SweepSettings.from_env({
            "REPROCESS_DEFAULT_POLICY_FIELDS": "true",
            "BACKFILL_POLICY_FIELDS_BATCH_SIZE": "100",
            "FIELDSWEEP_DB": "/tmp/store.db",
            "DATAHUB_GMS_URL": "http://gms:8080",
            "DATAHUB_GMS_TOKEN": "secret",
            "FIELDSWEEP_LOG_LEVEL": "debug",
        })

        assert settings.reprocess is True
        assert settings.batch_size == 100
        assert settings.db_path == Path("/tmp/store.db")
        assert settings.gms_url == "http://gms:8080"
        assert settings.gms_token == "secret"
        assert settings.log_level == "DEBUG"

    def test_empty_strings_mean_unset(self):
        settings = SweepSettings.from_env({"DATAHUB_GMS_URL": "", "FIELDSWEEP_DB": ""})
        assert settings.gms_url is None
        assert settings.db_path == Path("data/fieldsweep.db")

    def test_invalid_batch_size_raises(self):
        with pytest.raises(ValueError):
            SweepSettings.from_env({"BACKFILL_POLICY_FIELDS_BATCH_SIZE": "0"})


class TestLoadEnv:
    def test_loads_dotenv_from_cwd(self, tmp_path, monkeypatch):
        for name in ENV_VARS:
            monkeypatch.delenv(name, raising=False)
        (tmp_path / ".env").write_text("BACKFILL_POLICY_FIELDS_BATCH_SIZE=42\n")
        monkeypatch.chdir(tmp_path)

        load_env()

        assert SweepSettings.from_env().batch_size == 42
        monkeypatch.delenv("BACKFILL_POLICY_FIELDS_BATCH_SIZE")

    def test_existing_variables_win(self, tmp_path, monkeypatch):
        (tmp_path / ".env").write_text("BACKFILL_POLICY_FIELDS_BATCH_SIZE=42\n")
        monkeypatch.setenv("BACKFILL_POLICY_FIELDS_BATCH_SIZE", "7")
        monkeypatch.chdir(tmp_path)

        load_env()

        assert SweepSettings.from_env().batch_size == 7

    def test_missing_dotenv_is_ignored(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        load_env()
