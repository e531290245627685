import pytest
from pydantic import ValidationError

from smashweeper.config import GameConfig, Settings, clamp_config, max_mines


@pytest.mark.parametrize("rows,cols,expected", [
    (5, 5, 16),
    (9, 9, 68),
    (16, 16, 217),
    (5, 16, 68),
])
def test_max_mines(rows, cols, expected):
    assert max_mines(rows, cols) == expected


def test_game_config_accepts_wire_aliases():
    cfg = GameConfig.model_validate({"rows": 9, "cols": 9, "mines": 10, "gameMode": "timed", "pattern": "lines"})
    assert cfg.mine_count == 10
    assert cfg.game_mode_id == "timed"
    assert cfg.pattern_id == "lines"
    defaults = GameConfig(rows=5, cols=5, mine_count=3)
    assert defaults.game_mode_id == "classic"
    assert defaults.pattern_id == "default"


@pytest.mark.parametrize("kwargs", [
    {"rows": 4, "cols": 9, "mine_count": 3},
    {"rows": 9, "cols": 17, "mine_count": 3},
    {"rows": 9, "cols": 9, "mine_count": 0},
])
def test_game_config_rejects_out_of_range(kwargs):
    with pytest.raises(ValidationError):
        GameConfig(**kwargs)


def test_game_config_rejects_too_many_mines():
    with pytest.raises(ValidationError) as exc:
        GameConfig(rows=5, cols=5, mine_count=17)
    assert "too_many_mines_for_board" in str(exc.value)


def test_clamp_config():
    cfg = clamp_config(3, 40, 999)
    assert (cfg.rows, cfg.cols, cfg.mine_count) == (5, 16, 68)
    assert clamp_config(9, 9, -4).mine_count == 1


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("SMASHWEEPER_RESYNC_MAX_ATTEMPTS", "3")
    monkeypatch.setenv("SMASHWEEPER_RESYNC_DELAY_MS", "")
    monkeypatch.setenv("SMASHWEEPER_DEFAULT_MODE", "timed")
    monkeypatch.setenv("ALLOW_ANON", "0")
    monkeypatch.delenv("SMASHWEEPER_START_SYNC_DELAY_MS", raising=False)
    monkeypatch.delenv("DEFAULT_USER_ID", raising=False)
    s = Settings.from_env(dotenv_path=None)
    assert s.resync_max_attempts == 3
    assert s.resync_delay_ms == 200
    assert s.start_sync_delay_ms == 100
    assert s.default_mode_id == "timed"
    assert s.allow_anon is False
    assert s.default_user_id == "local-user"


def test_settings_reads_dotenv_file(tmp_path, monkeypatch):
    monkeypatch.delenv("SMASHWEEPER_DEFAULT_PATTERN", raising=False)
    env = tmp_path / ".env.local"
    env.write_text("SMASHWEEPER_DEFAULT_PATTERN=lines\n")
    s = Settings.from_env(dotenv_path=env)
    assert s.default_pattern_id == "lines"
    monkeypatch.delenv("SMASHWEEPER_DEFAULT_PATTERN", raising=False)
