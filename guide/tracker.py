"""Flag and resource tracker state for a guide run."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional

from guide.guide_schema import (
    AUTO_UPDATE_TYPES,
    CONSUMPTION_UPDATE_TYPES,
    USER_CONFIRM_UPDATE_TYPES,
    is_non_empty_str,
    is_number,
)


def format_resources(resources: Mapping[str, float], *, empty: str = "—") -> str:
    if not resources:
        return empty
    parts = [f"{name} {value:g}" for name, value in sorted(resources.items())]
    return ", ".join(parts)


class GuideTracker:
    """Single-owner store for accumulated resources and flags.

    Every mutation is synchronous and visible to the next read. Flags are
    three-state: ``read_flag`` returns ``None`` for a key that was never set,
    which the blitzball resolution relies on.
    """

    def __init__(
        self,
        *,
        resources: Optional[Mapping[str, float]] = None,
        flags: Optional[Mapping[str, bool]] = None,
        known_resources: Iterable[str] = (),
    ) -> None:
        self.resources: Dict[str, float] = {name: 0 for name in known_resources}
        self.flags: Dict[str, bool] = {}
        self.applied_auto_update_ids: set[str] = set()
        if resources:
            self.resources.update(resources)
        if flags:
            self.flags.update(flags)
        self.ensure_consistency()

    def ensure_consistency(self) -> None:
        resources: Dict[str, float] = {}
        for name, value in self.resources.items():
            if is_non_empty_str(name) and is_number(value):
                resources[name] = value
        self.resources = resources
        flags: Dict[str, bool] = {}
        for key, value in self.flags.items():
            if is_non_empty_str(key) and isinstance(value, bool):
                flags[key] = value
        self.flags = flags

    # ---------- Reads ----------
    def get_resource(self, name: str) -> float:
        return self.resources.get(name, 0)

    def get_flag(self, key: str) -> bool:
        return self.flags.get(key) is True

    def read_flag(self, key: str) -> Optional[bool]:
        return self.flags.get(key)

    # ---------- Mutations ----------
    def apply_resource_delta(self, name: str, delta: float) -> float:
        # Never clamped; totals may go negative.
        self.resources[name] = self.resources.get(name, 0) + delta
        return self.resources[name]

    def set_resource(self, name: str, value: float) -> float:
        self.resources[name] = value
        return value

    def set_flag(self, key: str, value: bool) -> None:
        self.flags[key] = bool(value)

    def toggle_flag(self, key: str) -> bool:
        self.flags[key] = not self.get_flag(key)
        return self.flags[key]

    def apply_auto_update(self, update: Mapping[str, Any]) -> bool:
        """Apply an automatic tracked resource update once per id.

        Returns True when the update was applied by this call.
        """
        update_id = update.get("id")
        if update.get("updateType") not in AUTO_UPDATE_TYPES or not is_non_empty_str(update_id):
            return False
        if update_id in self.applied_auto_update_ids:
            return False
        delta = update.get("quantity", 0)
        if not is_number(delta):
            delta = 0
        if update.get("updateType") in CONSUMPTION_UPDATE_TYPES:
            delta = -abs(delta)
        if delta != 0:
            self.apply_resource_delta(update["name"], delta)
        self.applied_auto_update_ids.add(update_id)
        return True

    def confirm_resource_prompt(self, update: Mapping[str, Any], amount: float) -> float:
        """Apply a user-confirmed quantity for a gain or consumption prompt."""
        update_type = update.get("updateType")
        if update_type not in USER_CONFIRM_UPDATE_TYPES:
            raise ValueError(f"updateType '{update_type}' is not confirmed by the user.")
        change = abs(amount)
        if update_type in CONSUMPTION_UPDATE_TYPES:
            change = -change
        return self.apply_resource_delta(update["name"], change)

    def confirm_flag_prompt(self, flag: Mapping[str, Any], value: bool) -> str:
        # Prompts write the canonical key directly; ids only appear in conditionals.
        key = flag["itemName"]
        self.set_flag(key, value)
        return key

    # ---------- Views ----------
    def snapshot(self) -> Dict[str, Any]:
        return {
            "resources": dict(self.resources),
            "flags": dict(self.flags),
            "applied_auto_update_ids": sorted(self.applied_auto_update_ids),
        }

    def summary(self) -> str:
        flags = ", ".join(f"{k}={v}" for k, v in sorted(self.flags.items())) or "—"
        return f"RESOURCES: {format_resources(self.resources)} | FLAGS: {flags}"
