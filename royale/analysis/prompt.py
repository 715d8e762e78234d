"""
Prompt for reading a battle-royale match result screenshot.

The model only transcribes what is on screen. It never computes points; scoring
happens on our side with the placement table.
"""
from __future__ import annotations

from typing import Any

INSTRUCTION = (
    "Analyze this PUBG Mobile match result screenshot. "
    "Extract the team placement (rank like #1, #2, etc) and the total team kills. "
    "If a per-player table is visible, also extract each player's name, kills and damage. "
    "If you cannot find a value, return null for that field. Do not guess."
)


def build_messages(image_url: str) -> list[dict[str, Any]]:
    """Single user message: the instruction plus the image reference."""
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": INSTRUCTION},
                {"type": "image_url", "image_url": {"url": image_url}},
            ],
        }
    ]
