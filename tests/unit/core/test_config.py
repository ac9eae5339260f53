# tests/unit/core/test_config.py
"""Tests for settings validation and loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from gtgather.contracts import ArgumentError, ColumnInterval, OutputFormat, QueryConfigError, RowInterval
from gtgather.core.config import (
    DEFAULT_TRANSFER_LIMIT,
    INT32_MAX,
    GatherSettings,
    build_settings,
    load_settings,
    settings_from_interval,
)


def _write_config(tmp_path: Path, payload: dict) -> Path:
    path = tmp_path / "query.json"
    path.write_text(json.dumps(payload))
    return path


class TestGatherSettings:
    def test_defaults(self) -> None:
        settings = GatherSettings(workspace="/ws", array="calls", query_column_ranges=[[[0, 10]]])

        assert settings.query_attributes == ("REF", "ALT", "BaseQRankSum", "AD", "PL")
        assert settings.output_format is OutputFormat.DEFAULT
        assert settings.transfer_limit == DEFAULT_TRANSFER_LIMIT
        assert settings.initial_buffer_capacity == 1_000_000
        assert settings.skip_query_on_root is False
        assert settings.profile is False

    def test_frozen(self) -> None:
        settings = GatherSettings(workspace="/ws", array="calls", query_column_ranges=[[[0, 10]]])
        with pytest.raises(Exception):
            settings.array = "other"  # type: ignore[misc]

    def test_bare_column_is_point_interval(self) -> None:
        settings = GatherSettings(workspace="/ws", array="calls", query_column_ranges=[[5, [7, 9]]])
        assert settings.query_column_ranges == (((5, 5), (7, 9)),)

    def test_empty_output_format_means_default(self) -> None:
        settings = GatherSettings(workspace="/ws", array="a", query_column_ranges=[[[0, 1]]], output_format="")
        assert settings.output_format is OutputFormat.DEFAULT

    def test_output_format_parsed(self) -> None:
        settings = GatherSettings(workspace="/ws", array="a", query_column_ranges=[[[0, 1]]], output_format="Cotton-JSON")
        assert settings.output_format is OutputFormat.COTTON_JSON

    def test_single_range_list_applies_to_every_rank(self) -> None:
        settings = GatherSettings(workspace="/ws", array="a", query_column_ranges=[[[0, 10], [20, 30]]])
        for rank in range(4):
            config = settings.query_config_for_rank(rank)
            assert config.column_intervals == (ColumnInterval(0, 10), ColumnInterval(20, 30))

    def test_per_rank_ranges(self) -> None:
        settings = GatherSettings(workspace="/ws", array="a", query_column_ranges=[[[0, 10]], [[11, 20]]])
        assert settings.query_config_for_rank(1).column_intervals == (ColumnInterval(11, 20),)

    def test_missing_rank_ranges_rejected(self) -> None:
        settings = GatherSettings(workspace="/ws", array="a", query_column_ranges=[[[0, 10]], [[11, 20]]])
        with pytest.raises(QueryConfigError, match="rank 2"):
            settings.query_config_for_rank(2)

    def test_rows_default_to_every_row(self) -> None:
        settings = GatherSettings(workspace="/ws", array="a", query_column_ranges=[[[0, 10]]])
        assert settings.query_row_ranges == ()
        assert settings.query_config_for_rank(3).row_intervals == ()

    def test_bare_row_is_point_interval(self) -> None:
        settings = GatherSettings(workspace="/ws", array="a", query_column_ranges=[[[0, 10]]], query_row_ranges=[[2, [4, 6]]])
        assert settings.query_row_ranges == (((2, 2), (4, 6)),)
        assert settings.query_config_for_rank(1).row_intervals == (RowInterval(2, 2), RowInterval(4, 6))

    def test_per_rank_rows(self) -> None:
        settings = GatherSettings(
            workspace="/ws",
            array="a",
            query_column_ranges=[[[0, 10]]],
            query_row_ranges=[[[0, 99]], [[100, 199]]],
        )
        assert settings.query_config_for_rank(0).row_intervals == (RowInterval(0, 99),)
        assert settings.query_config_for_rank(1).row_intervals == (RowInterval(100, 199),)

    def test_missing_rank_rows_rejected(self) -> None:
        settings = GatherSettings(
            workspace="/ws",
            array="a",
            query_column_ranges=[[[0, 10]]],
            query_row_ranges=[[[0, 1]], [[2, 3]]],
        )
        with pytest.raises(QueryConfigError, match="query_row_ranges has 2 entries, no ranges for rank 2"):
            settings.query_config_for_rank(2)


class TestBuildSettings:
    @pytest.mark.parametrize(
        ("override", "message"),
        [
            ({"transfer_limit": 0}, "transfer_limit"),
            ({"transfer_limit": INT32_MAX + 1}, "transfer_limit"),
            ({"query_column_ranges": [[[10, 5]]]}, "invalid column range"),
            ({"query_row_ranges": [[[3, 1]]]}, "invalid row range"),
            ({"query_row_ranges": [[-1]]}, "invalid row range"),
            ({"query_attributes": ["REF", "REF"]}, "duplicate"),
            ({"output_format": "xml"}, "unknown output format"),
            ({"array": ""}, "array"),
        ],
    )
    def test_invalid_settings_raise_argument_error(self, override: dict, message: str) -> None:
        raw = {"workspace": "/ws", "array": "calls", "query_column_ranges": [[[0, 10]]]}
        raw.update(override)
        with pytest.raises(ArgumentError, match=message):
            build_settings(raw)

    def test_page_size_accepted(self) -> None:
        settings = build_settings({"workspace": "/ws", "array": "a", "query_column_ranges": [[[0, 1]]], "page_size": 4096})
        assert settings.page_size == 4096


class TestLoadSettings:
    def test_loads_json_file(self, tmp_path: Path) -> None:
        path = _write_config(
            tmp_path,
            {
                "workspace": "/data/ws",
                "array": "calls",
                "query_attributes": ["REF", "PL"],
                "query_column_ranges": [[[0, 1000]], [[1001, 2000]]],
                "query_row_ranges": [[[0, 9]], [[10, 19], 25]],
                "output_format": "positions-json",
            },
        )

        settings = load_settings(path)

        assert settings.workspace == "/data/ws"
        assert settings.query_attributes == ("REF", "PL")
        assert settings.output_format is OutputFormat.POSITIONS_JSON
        assert settings.query_config_for_rank(1).column_intervals == (ColumnInterval(1001, 2000),)
        assert settings.query_config_for_rank(1).row_intervals == (RowInterval(10, 19), RowInterval(25, 25))

    def test_fallbacks_fill_missing_keys_only(self, tmp_path: Path) -> None:
        path = _write_config(tmp_path, {"array": "from_file", "query_column_ranges": [[[0, 1]]]})
        settings = load_settings(path, workspace="/cli/ws", array="from_cli")
        assert settings.workspace == "/cli/ws"
        assert settings.array == "from_file"

    def test_overrides_win_over_file(self, tmp_path: Path) -> None:
        path = _write_config(tmp_path, {"workspace": "/ws", "array": "a", "query_column_ranges": [[[0, 1]]], "output_format": "default"})
        settings = load_settings(path, overrides={"output_format": "cotton-json", "profile": None})
        assert settings.output_format is OutputFormat.COTTON_JSON
        assert settings.profile is False

    def test_env_var_expansion(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GT_TEST_WORKSPACE", "/expanded")
        path = _write_config(tmp_path, {"workspace": "${GT_TEST_WORKSPACE}", "array": "a", "query_column_ranges": [[[0, 1]]]})
        assert load_settings(path).workspace == "/expanded"

    def test_env_var_default(self, tmp_path: Path) -> None:
        path = _write_config(tmp_path, {"workspace": "${GT_TEST_UNSET_VAR:-/fallback}", "array": "a", "query_column_ranges": [[[0, 1]]]})
        assert load_settings(path).workspace == "/fallback"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ArgumentError, match="not found"):
            load_settings(tmp_path / "absent.json")

    def test_missing_required_key(self, tmp_path: Path) -> None:
        path = _write_config(tmp_path, {"workspace": "/ws", "array": "a"})
        with pytest.raises(ArgumentError, match="query_column_ranges"):
            load_settings(path)


class TestSettingsFromInterval:
    def test_builds_single_interval_for_all_ranks(self) -> None:
        settings = settings_from_interval(workspace="/ws", array="calls", start="12000", end="18000")
        assert settings.query_column_ranges == (((12000, 18000),),)
        assert settings.query_config_for_rank(3).attributes == ("REF", "ALT", "BaseQRankSum", "AD", "PL")

    def test_options_applied(self) -> None:
        settings = settings_from_interval(
            workspace="/ws",
            array="calls",
            start="1",
            end="2",
            output_format="positions-json",
            skip_query_on_root=True,
            profile=None,
        )
        assert settings.output_format is OutputFormat.POSITIONS_JSON
        assert settings.skip_query_on_root is True
        assert settings.profile is False

    @pytest.mark.parametrize(("workspace", "array"), [(None, "calls"), ("/ws", None), ("", "calls")])
    def test_missing_workspace_or_array(self, workspace: str | None, array: str | None) -> None:
        with pytest.raises(ArgumentError, match="Missing workspace"):
            settings_from_interval(workspace=workspace, array=array, start="1", end="2")

    def test_non_integer_bounds(self) -> None:
        with pytest.raises(ArgumentError, match="integers"):
            settings_from_interval(workspace="/ws", array="calls", start="one", end="2")
