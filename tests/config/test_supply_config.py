"""
Tests for supply_config: YAML loading, validation and the config trace.
"""

import dataclasses
from pathlib import Path

import pytest
import yaml

from supply_config import (
    CONFIG_PATH_ENV,
    SupplyConfig,
    compute_checksum,
    get_active_config,
    parse_config,
)
from supply_config.loader import load_config_file, load_yaml_file


def _write(tmp_path: Path, data, name: str = "supply.yaml") -> Path:
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data) if not isinstance(data, str) else data)
    return path


class TestDefaults:
    def test_packaged_defaults_match_schema(self, monkeypatch):
        monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
        config = get_active_config()

        assert dataclasses.replace(config, checksum=None) == SupplyConfig()
        assert config.checksum == compute_checksum(SupplyConfig())

    def test_empty_document_is_all_defaults(self, tmp_path):
        config = load_config_file(_write(tmp_path, ""))
        assert config.numbering.request_prefix == "REQ"
        assert config.workflow.allow_resubmission is True

    def test_partial_section_keeps_other_defaults(self):
        config = parse_config({"numbering": {"max_attempts": 3}})
        assert config.numbering.max_attempts == 3
        assert config.numbering.suffix_digits == 6


class TestResolution:
    def test_explicit_path_wins(self, tmp_path, monkeypatch):
        env_file = _write(tmp_path, {"workflow": {"allow_resubmission": True}}, "env.yaml")
        explicit = _write(tmp_path, {"workflow": {"allow_resubmission": False}}, "explicit.yaml")
        monkeypatch.setenv(CONFIG_PATH_ENV, str(env_file))

        assert get_active_config(explicit).workflow.allow_resubmission is False

    def test_environment_variable(self, tmp_path, monkeypatch):
        path = _write(tmp_path, {"budget": {"charge_on_delivery": False}})
        monkeypatch.setenv(CONFIG_PATH_ENV, str(path))

        assert get_active_config().budget.charge_on_delivery is False

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_trace_logged(self, tmp_path, captured_logs):
        path = _write(tmp_path, {"inventory": {"receive_on_delivery": False}})
        config = get_active_config(path)

        (trace,) = [r for r in captured_logs() if r["message"] == "SUPPLY_CONFIG_TRACE"]
        assert trace["logger"] == "supply_kernel.config"
        assert trace["trace_type"] == "SUPPLY_CONFIG_TRACE"
        assert trace["config_source"] == str(path)
        assert trace["checksum"] == config.checksum
        assert trace["receive_on_delivery"] is False


class TestValidation:
    @pytest.mark.parametrize(
        "data",
        [
            {"notifications": {}},
            {"numbering": {"prefix": "X"}},
            {"numbering": "REQ"},
            {"numbering": {"max_attempts": "ten"}},
            {"numbering": {"max_attempts": True}},
            {"numbering": {"max_attempts": 0}},
            {"numbering": {"suffix_digits": 3}},
            {"numbering": {"suffix_digits": 13}},
            {"numbering": {"request_prefix": ""}},
            {"numbering": {"order_prefix": "OR-D"}},
            {"numbering": {"order_prefix": "REQ"}},
            {"workflow": {"allow_resubmission": "yes"}},
            {"persistence": {"request_timeout_seconds": 0}},
            {"inventory": {"critical_ratio": 0}},
            {"inventory": {"critical_ratio": 1.5}},
        ],
    )
    def test_rejected(self, data):
        with pytest.raises(ValueError):
            parse_config(data)

    def test_int_promoted_to_float(self):
        config = parse_config({"persistence": {"request_timeout_seconds": 5}})
        assert config.persistence.request_timeout_seconds == 5.0
        assert isinstance(config.persistence.request_timeout_seconds, float)

    def test_non_mapping_document(self, tmp_path):
        with pytest.raises(ValueError):
            load_yaml_file(_write(tmp_path, "- just\n- a list\n"))

    def test_error_names_offending_key(self):
        with pytest.raises(ValueError, match="numbering.max_attempts"):
            parse_config({"numbering": {"max_attempts": "many"}})


class TestChecksum:
    def test_stable(self):
        data = {"numbering": {"max_attempts": 4}, "budget": {"expense_type": "delivery"}}
        assert parse_config(data).checksum == parse_config(data).checksum

    def test_changes_with_values(self):
        assert (
            parse_config({"numbering": {"max_attempts": 4}}).checksum
            != parse_config({"numbering": {"max_attempts": 5}}).checksum
        )

    def test_sha256_hex(self):
        checksum = parse_config({}).checksum
        assert len(checksum) == 64
        int(checksum, 16)
