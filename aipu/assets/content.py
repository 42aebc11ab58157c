"""Floor and narrative content loading."""
from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from aipu.progression.definitions import UPGRADE_DEFS, UpgradeDefinition

DATA_ROOT = Path(__file__).resolve().parent / "data"


@dataclass(frozen=True)
class FloorData:
    id: int
    name: str
    duration_seconds: float
    accent: str = "blue"
    title: str = ""
    subtitle: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "FloorData":
        floor_id = int(data["id"])
        return cls(
            id=floor_id,
            name=data.get("name", f"Floor {floor_id}"),
            duration_seconds=float(data.get("durationSeconds", 60.0)),
            accent=data.get("accent", "blue"),
        )


@dataclass
class NarrativeData:
    game_title: str = ""
    tagline: str = ""
    floors: List[Dict[str, str]] = field(default_factory=list)
    upgrade_rename: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict) -> "NarrativeData":
        floors = data.get("floors", [])
        rename = data.get("upgradeRename", {})
        return cls(
            game_title=str(data.get("gameTitle", "")),
            tagline=str(data.get("tagline", "")),
            floors=[entry for entry in floors if isinstance(entry, dict)] if isinstance(floors, list) else [],
            upgrade_rename=rename if isinstance(rename, dict) else {},
        )


def _clean_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    return ""


def apply_upgrade_rename(
    definitions: Sequence[UpgradeDefinition], renames: Mapping[str, Any]
) -> Tuple[UpgradeDefinition, ...]:
    """Return ``definitions`` with narrative names and descriptions applied."""

    renamed: List[UpgradeDefinition] = []
    for definition in definitions:
        entry = renames.get(definition.id)
        if not isinstance(entry, dict):
            renamed.append(definition)
            continue
        name = _clean_text(entry.get("name")) or definition.name
        desc = _clean_text(entry.get("desc")) or definition.desc
        renamed.append(replace(definition, name=name, desc=desc))
    return tuple(renamed)


def _read_json(path: Path) -> Any:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text())
    except json.JSONDecodeError:
        return None


class ContentManager:
    """Loads floors and narrative, and renames upgrades exactly once."""

    def __init__(self, root: Path = DATA_ROOT) -> None:
        self.root = root
        self.floors: List[FloorData] = []
        self.narrative = NarrativeData()
        self.upgrades: Tuple[UpgradeDefinition, ...] = UPGRADE_DEFS
        self._loaded = False

    def load(self) -> None:
        if self._loaded:
            return
        self._load_floors(self.root / "floors.json")
        narrative = _read_json(self.root / "narrative.json")
        if isinstance(narrative, dict):
            self.narrative = NarrativeData.from_dict(narrative)
        self._apply_floor_titles()
        self.upgrades = apply_upgrade_rename(UPGRADE_DEFS, self.narrative.upgrade_rename)
        self._loaded = True

    def _load_floors(self, path: Path) -> None:
        data = _read_json(path)
        if not isinstance(data, list):
            return
        floors: List[FloorData] = []
        for entry in data:
            try:
                floors.append(FloorData.from_dict(entry))
            except (KeyError, TypeError, ValueError):
                continue
        floors.sort(key=lambda floor: floor.id)
        self.floors = floors

    def _apply_floor_titles(self) -> None:
        titled: List[FloorData] = []
        for index, floor in enumerate(self.floors):
            if index < len(self.narrative.floors):
                entry = self.narrative.floors[index]
                floor = replace(
                    floor,
                    title=_clean_text(entry.get("title")),
                    subtitle=_clean_text(entry.get("subtitle")),
                )
            titled.append(floor)
        self.floors = titled


__all__ = ["ContentManager", "DATA_ROOT", "FloorData", "NarrativeData", "apply_upgrade_rename"]
