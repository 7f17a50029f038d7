"""Tests for TOML config loading and CLI > config > default resolution."""

import pytest
from readiness_sim_jp.config import (
    DEFAULTS,
    build_mc_config,
    build_profile,
    load_config,
    parse_args,
    parse_branch,
)
from readiness_sim_jp.events import branch_to_life_events


CONFIG_TOML = """\
current_age = 35
gross_income = 1000.0
mc_runs = 500
combinations = [["house", "cut"]]

[[branches]]
id = "house"
label = "住宅購入"
event_type = "housing_purchase"
age = 37
certainty = "likely"
property_price = 7000
down_payment = 1000

[[branches]]
id = "cut"
event_type = "income_change"
age_at_event = 40
params = { change_amount = -200 }
"""


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(CONFIG_TOML, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_missing_file(self, tmp_path):
        assert load_config(tmp_path / "none.toml") == {}

    def test_values(self, config_path):
        config = load_config(config_path)
        assert config["current_age"] == 35
        assert config["mc_runs"] == 500

    def test_branches_parsed(self, config_path):
        house, cut = load_config(config_path)["branches"]
        assert house.age_at_event == 37
        assert house.certainty == "likely"
        assert house.params == {"property_price": 7000, "down_payment": 1000}
        assert cut.label == "cut"
        assert cut.certainty == "uncertain"
        assert cut.params == {"change_amount": -200}

    def test_combinations_normalized(self, config_path):
        assert load_config(config_path)["combinations"] == (("house", "cut"),)

    def test_parsed_branch_converts(self, config_path):
        house, _ = load_config(config_path)["branches"]
        one_time = [e for e in branch_to_life_events(house) if e.amount_one_time]
        assert one_time[0].amount_one_time == pytest.approx(-(1000 + 7000 * 0.07))

    def test_invalid_toml_exits(self, tmp_path, capsys):
        path = tmp_path / "bad.toml"
        path.write_text("current_age = = 3\n", encoding="utf-8")
        with pytest.raises(SystemExit):
            load_config(path)
        assert "設定ファイル" in capsys.readouterr().err

    def test_invalid_branch_exits(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text('[[branches]]\nid = "x"\nevent_type = "child"\n', encoding="utf-8")
        with pytest.raises(SystemExit):
            load_config(path)


class TestParseBranch:
    def test_missing_required(self):
        with pytest.raises(ValueError, match="age_at_event"):
            parse_branch({"id": "x", "event_type": "child"})

    def test_unknown_certainty(self):
        with pytest.raises(ValueError):
            parse_branch({"id": "x", "event_type": "child", "age": 32, "certainty": "maybe"})


class TestParseArgs:
    def test_defaults(self, tmp_path):
        resolved, _ = parse_args("test", argv=["--config", str(tmp_path / "none.toml")])
        assert resolved == DEFAULTS

    def test_cli_over_config_over_default(self, config_path):
        resolved, _ = parse_args("test", argv=["--config", str(config_path), "--current-age", "40"])
        assert resolved["current_age"] == 40
        assert resolved["gross_income"] == 1000.0
        assert resolved["living_cost_annual"] == DEFAULTS["living_cost_annual"]

    def test_asset_dc_flag(self, tmp_path):
        resolved, _ = parse_args("test", argv=["--config", str(tmp_path / "none.toml"), "--asset-dc", "800"])
        assert resolved["asset_defined_contribution_jp"] == 800

    def test_extra_args(self, tmp_path):
        def add(parser):
            parser.add_argument("--yearly", action="store_true")

        _, args = parse_args("test", add, argv=["--config", str(tmp_path / "none.toml"), "--yearly"])
        assert args.yearly is True
        assert args.quiet is False


class TestBuilders:
    def test_build_profile(self, config_path):
        resolved, _ = parse_args("test", argv=["--config", str(config_path)])
        profile = build_profile(resolved)
        assert profile.current_age == 35
        assert profile.gross_income == 1000.0
        assert profile.effective_tax_rate is None

    def test_build_mc_config(self, tmp_path):
        argv = ["--config", str(tmp_path / "none.toml"), "--mc-runs", "200", "--seed", "7", "--time-budget", "1.5"]
        resolved, _ = parse_args("test", argv=argv)
        config = build_mc_config(resolved)
        assert config.n_simulations == 200
        assert config.seed == 7
        assert config.return_volatility == 0.15
        assert config.fire_threshold == 90.0
        assert config.time_budget == 1.5
