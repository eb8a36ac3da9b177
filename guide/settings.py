"""Settings persistence for the guide viewer."""

from __future__ import annotations

import json
import os
import sys
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict

_BASE_DIR = Path(__file__).resolve().parent.parent
SETTINGS_PATH = _BASE_DIR / "settings.json"


def _clamp(value: int, minimum: int, maximum: int) -> int:
    return max(minimum, min(maximum, value))


@dataclass
class GuideSettings:
    """Presentation toggles that persist between sessions."""

    csr_mode_active: bool = False
    show_conditional_borders: bool = False
    line_width: int = 80

    def clamp(self) -> "GuideSettings":
        self.csr_mode_active = bool(self.csr_mode_active)
        self.show_conditional_borders = bool(self.show_conditional_borders)

        self.line_width = _clamp(int(self.line_width), 40, 160)
        return self

    def copy(self) -> "GuideSettings":
        return GuideSettings.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "GuideSettings":
        if not isinstance(data, dict):
            return cls()

        def _as_int(key: str, default: int) -> int:
            try:
                return int(data.get(key, default))
            except (TypeError, ValueError):
                return default

        def _as_bool(key: str, default: bool) -> bool:
            value = data.get(key, default)
            if isinstance(value, bool):
                return value
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in {"true", "1", "yes", "on"}:
                    return True
                if lowered in {"false", "0", "no", "off"}:
                    return False
            return bool(value) if value is not None else default

        settings = cls(
            csr_mode_active=_as_bool("csr_mode_active", False),
            show_conditional_borders=_as_bool("show_conditional_borders", False),
            line_width=_as_int("line_width", 80),
        )
        return settings.clamp()


def load_settings(path: Path | str = SETTINGS_PATH) -> GuideSettings:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        return GuideSettings()
    except (OSError, json.JSONDecodeError, TypeError):
        print(f"[Settings] Ignoring unreadable settings file {path}.", file=sys.stderr)
        return GuideSettings()
    return GuideSettings.from_dict(data)


def save_settings(settings: GuideSettings, path: Path | str = SETTINGS_PATH) -> GuideSettings:
    path = Path(path)
    sanitized = settings.copy().clamp()
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", delete=False, dir=path.parent, prefix=path.name, suffix=".tmp", encoding="utf-8"
        ) as tmp_file:
            json.dump(sanitized.to_dict(), tmp_file, indent=2)
            tmp_file.write("\n")
            tmp_path = Path(tmp_file.name)
        os.replace(str(tmp_path), str(path))
    except OSError as exc:
        print(f"[Settings] Failed to save settings: {exc}", file=sys.stderr)
        if tmp_path is not None:
            try:
                tmp_path.unlink()
            except OSError:
                pass
    return sanitized
