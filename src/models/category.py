"""
Disposal categories shown to the user.
"""

from __future__ import annotations

from enum import Enum


class WasteCategory(Enum):
    """
    The fixed set of bins the kiosk can recommend.

    Each member carries its display metadata as
    (display_name, instruction, icon, bin_name).
    """
    RECYCLE = (
        "Recycling",
        "Place plastic bottles, aluminum cans, paper, and cardboard in this bin.",
        "♻",
        "recycle",
    )
    TRASH = (
        "Landfill",
        "Dispose of food wrappers, napkins, and non-recyclable items here.",
        "\U0001f5d1",
        "trash",
    )
    COMPOST = (
        "Compost",
        "Put food scraps, coffee grounds, and compostable materials in this bin.",
        "\U0001f331",
        "compost",
    )
    HAZARDOUS = (
        "Hazardous Waste",
        "Please take batteries, electronics, and chemicals to the service desk.",
        "⚠",
        "hazardous",
    )

    def __init__(self, display_name: str, instruction: str, icon: str, bin_name: str):
        self.display_name = display_name
        self.instruction = instruction
        self.icon = icon
        self.bin_name = bin_name

    def __str__(self) -> str:
        return self.name
