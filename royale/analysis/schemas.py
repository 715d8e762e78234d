"""
Schemas for screenshot analysis.
"""
from __future__ import annotations

from pydantic import BaseModel

from royale.scoring import PLACEMENT_MAX


class PlayerLine(BaseModel):
    """One row of the per-player table on a result screen."""
    name: str | None = None
    kills: int = 0
    damage: int = 0


class AnalysisResult(BaseModel):
    """
    What the model read off a result screenshot.
    placement / kills are None when the model could not find them; the upload
    pipeline rejects such items, and placements outside the points table, rather than guessing.
    """
    placement: int | None = None
    kills: int | None = None
    players: list[PlayerLine] | None = None

    @property
    def is_complete(self) -> bool:
        return (
            self.placement is not None
            and self.kills is not None
            and 1 <= self.placement <= PLACEMENT_MAX
            and self.kills >= 0
        )

    def player_lines(self) -> list[tuple[str, int, int]]:
        """(name, kills, damage) for every named player; unnamed rows are dropped."""
        return [
            (p.name.strip(), max(p.kills, 0), max(p.damage, 0))
            for p in (self.players or [])
            if p.name and p.name.strip()
        ]


# JSON schema handed to the model. Every field is required but nullable so strict mode accepts it.
ANALYSIS_JSON_SCHEMA = {
    "type": "object",
    "properties": {
        "placement": {
            "type": ["integer", "null"],
            "description": "Team finishing rank shown on the screen (#1 = 1). null if not visible.",
        },
        "kills": {
            "type": ["integer", "null"],
            "description": "Total team kills. null if not visible.",
        },
        "players": {
            "type": ["array", "null"],
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": ["string", "null"]},
                    "kills": {"type": "integer"},
                    "damage": {"type": "integer"},
                },
                "required": ["name", "kills", "damage"],
                "additionalProperties": False,
            },
            "description": "Per-player rows if the screen shows them, else null.",
        },
    },
    "required": ["placement", "kills", "players"],
    "additionalProperties": False,
}
