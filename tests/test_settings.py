import json
from pathlib import Path

from guide.settings import GuideSettings, load_settings, save_settings


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "settings.json")
    assert settings == GuideSettings()
    assert settings.csr_mode_active is False
    assert settings.line_width == 80


def test_corrupt_file_gives_defaults(tmp_path: Path, capsys) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{ broken")
    assert load_settings(path) == GuideSettings()
    assert "[Settings]" in capsys.readouterr().err


def test_from_dict_sanitizes_values() -> None:
    settings = GuideSettings.from_dict(
        {
            "csr_mode_active": "yes",
            "show_conditional_borders": "off",
            "theme": "dark",
            "line_width": 500,
        }
    )
    assert settings.csr_mode_active is True
    assert settings.show_conditional_borders is False
    assert "theme" not in settings.to_dict()
    assert settings.line_width == 160
    assert GuideSettings.from_dict({"line_width": "wide"}).line_width == 80
    assert GuideSettings.from_dict(None) == GuideSettings()


def test_save_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    saved = save_settings(GuideSettings(csr_mode_active=True, line_width=10), path)
    assert saved.line_width == 40
    assert json.loads(path.read_text())["csr_mode_active"] is True
    assert load_settings(path) == saved
    assert [p.name for p in path.parent.iterdir()] == ["settings.json"]
