"""Tests for config module."""

import pytest

from filelog.config import Config, load_yaml, lookup_encoding, parse_byte_size, parse_duration
from filelog.errors import ConfigError, EncodingError


class TestParseDuration:
    def test_bare_number_is_seconds(self):
        assert parse_duration(1) == 1.0
        assert parse_duration("1") == 1.0

    def test_unit_suffixes(self):
        assert parse_duration("1s") == 1.0
        assert parse_duration("1ms") == pytest.approx(0.001)
        assert parse_duration("1000ms") == pytest.approx(1.0)
        assert parse_duration("2m") == 120.0
        assert parse_duration("1h") == 3600.0

    def test_invalid(self):
        with pytest.raises(ConfigError):
            parse_duration("soon")
        with pytest.raises(ConfigError):
            parse_duration("5 fortnights")


class TestParseByteSize:
    def test_no_units(self):
        assert parse_byte_size(1000) == 1000
        assert parse_byte_size("1000") == 1000

    def test_decimal_units_case_insensitive(self):
        assert parse_byte_size("1kb") == 1000
        assert parse_byte_size("1KB") == 1000

    def test_binary_units(self):
        assert parse_byte_size("1kib") == 1024
        assert parse_byte_size("1KiB") == 1024
        assert parse_byte_size("1mib") == 1048576
        assert parse_byte_size("1MiB") == 1048576

    def test_fractions(self):
        assert parse_byte_size("1.1kb") == 1100
        assert parse_byte_size("1.048576mb") == 1048576
        assert parse_byte_size("1.048576MB") == 1048576

    def test_invalid(self):
        with pytest.raises(ConfigError):
            parse_byte_size("big")
        with pytest.raises(ConfigError):
            parse_byte_size("1tb")


class TestEncoding:
    def test_case_insensitive(self):
        assert lookup_encoding("utf-16le") == lookup_encoding("UTF-16lE")

    def test_unknown(self):
        with pytest.raises(EncodingError):
            lookup_encoding("UTF-3233")

    def test_non_text_codec_rejected(self):
        with pytest.raises(EncodingError):
            lookup_encoding("base64")


class TestConfigDefaults:
    def test_defaults(self):
        cfg = Config()
        assert cfg.include == []
        assert cfg.exclude == []
        assert cfg.poll_interval == 0.2
        assert cfg.fingerprint_size == 1000
        assert cfg.max_log_size == 1024 * 1024
        assert cfg.max_concurrent_files == 1024
        assert cfg.encoding == "utf-8"
        assert cfg.start_at == "end"
        assert cfg.line_start_pattern == ""
        assert cfg.line_end_pattern == ""
        assert cfg.flusher_timeout == 0.5
        assert cfg.checkpoint_retention == 60.0

    def test_frozen(self):
        cfg = Config()
        with pytest.raises(AttributeError):
            cfg.poll_interval = 5


class TestFromDict:
    def test_full_mapping(self):
        cfg = Config.from_dict({
            "include": ["*.log"],
            "exclude": ["not*.log"],
            "poll_interval": "1000ms",
            "fingerprint_size": "1KiB",
            "max_log_size": "1mib",
            "max_concurrent_files": 9223372036854775807,
            "encoding": "UTF-16lE",
            "start_at": "beginning",
            "multiline": {"line_start_pattern": "Start"},
            "flusher_timeout": "250ms",
            "checkpoint_retention": "5m",
            "attributes": {"service": "api"},
            "checkpoint_file": "/tmp/state.json",
        })
        assert cfg.include == ["*.log"]
        assert cfg.exclude == ["not*.log"]
        assert cfg.poll_interval == pytest.approx(1.0)
        assert cfg.fingerprint_size == 1024
        assert cfg.max_log_size == 1048576
        assert cfg.max_concurrent_files == 9223372036854775807
        assert cfg.encoding == "UTF-16lE"
        assert cfg.start_at == "beginning"
        assert cfg.line_start_pattern == "Start"
        assert cfg.line_end_pattern == ""
        assert cfg.flusher_timeout == pytest.approx(0.25)
        assert cfg.checkpoint_retention == 300.0
        assert cfg.attributes == {"service": "api"}
        assert cfg.checkpoint_file == "/tmp/state.json"

    def test_single_pattern_string(self):
        cfg = Config.from_dict({"include": "one.log"})
        assert cfg.include == ["one.log"]

    def test_special_characters_in_patterns(self):
        cfg = Config.from_dict({"multiline": {"line_end_pattern": "%"}})
        assert cfg.line_end_pattern == "%"

    def test_empty_mapping_gives_defaults(self):
        assert Config.from_dict({}) == Config()

    def test_bad_concurrency(self):
        with pytest.raises(ConfigError):
            Config.from_dict({"max_concurrent_files": "many"})

    @pytest.mark.parametrize("key,value", [
        ("multiline", "START.*"),
        ("attributes", ["service", "api"]),
    ])
    def test_section_must_be_mapping(self, key, value):
        with pytest.raises(ConfigError, match=key):
            Config.from_dict({"include": ["*.log"], key: value})

    def test_document_must_be_mapping(self):
        with pytest.raises(ConfigError):
            Config.from_dict(["*.log"])

    def test_unknown_top_level_key(self):
        with pytest.raises(ConfigError, match="poll_intervall"):
            Config.from_dict({"include": ["*.log"], "poll_intervall": "1s"})

    def test_unknown_multiline_key(self):
        with pytest.raises(ConfigError, match="line_start"):
            Config.from_dict({"include": ["*.log"], "multiline": {"line_start": "START.*"}})


class TestValidate:
    def test_requires_include(self):
        with pytest.raises(ConfigError):
            Config().validate()

    def test_bad_start_at(self):
        with pytest.raises(ConfigError):
            Config(include=["*.log"], start_at="middle").validate()

    def test_zero_concurrency(self):
        with pytest.raises(ConfigError):
            Config(include=["*.log"], max_concurrent_files=0).validate()

    def test_valid(self):
        Config(include=["*.log"]).validate()


class TestLoadYaml:
    def test_nested_under_filelog(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("filelog:\n  include:\n    - '*.log'\n  poll_interval: 1s\n")
        cfg = Config.from_dict(load_yaml(str(path)))
        assert cfg.include == ["*.log"]
        assert cfg.poll_interval == 1.0

    def test_top_level(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("include: ['a.log', 'b.log']\n")
        assert load_yaml(str(path)) == {"include": ["a.log", "b.log"]}

    def test_config_path_env_override(self, tmp_path, monkeypatch):
        path = tmp_path / "other.yaml"
        path.write_text("start_at: beginning\n")
        monkeypatch.setenv("CONFIG_PATH", str(path))
        assert load_yaml("missing.yaml") == {"start_at": "beginning"}
