"""
Map detector labels to disposal categories.

Rules are evaluated top to bottom; the first rule whose keyword appears in
the lower-cased label wins. Anything unmatched (including an empty label)
goes to TRASH.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

from models.category import WasteCategory
from models.errors import MismatchedDisposal

CATEGORY_RULES: Tuple[Tuple[WasteCategory, Tuple[str, ...]], ...] = (
    (WasteCategory.RECYCLE, ("bottle", "can", "aluminum", "plastic", "paper", "cardboard", "glass")),
    (WasteCategory.COMPOST, ("food", "organic", "compost", "banana", "apple")),
    (WasteCategory.HAZARDOUS, ("battery", "electronic", "hazard", "chemical")),
)

DEFAULT_CATEGORY = WasteCategory.TRASH


def map_label_to_category(
    label: Optional[str],
    rules: Sequence[Tuple[WasteCategory, Sequence[str]]] = CATEGORY_RULES,
) -> WasteCategory:
    """
    Map a detected label to the bin it belongs in.

    Args:
        label: Detector label, e.g. "Plastic_Bottle". None or "" map to TRASH.
        rules: Ordered (category, keywords) pairs.

    Returns:
        The first matching WasteCategory, or TRASH.
    """
    if not label:
        return DEFAULT_CATEGORY

    lower = label.lower()
    for category, keywords in rules:
        if any(keyword in lower for keyword in keywords):
            logging.debug(f"Mapped '{label}' to {category.name}")
            return category

    logging.debug(f"Mapped '{label}' to {DEFAULT_CATEGORY.name} (default)")
    return DEFAULT_CATEGORY


def check_disposal(recommended: Optional[WasteCategory], disposed: WasteCategory) -> None:
    """
    Verify a reported disposal against the last recommendation.

    Raises:
        MismatchedDisposal: If nothing was recommended or the bins differ.
    """
    if recommended is None:
        raise MismatchedDisposal(f"reported {disposed.name} with no active recommendation")
    if recommended is not disposed:
        raise MismatchedDisposal(f"reported {disposed.name}, recommended {recommended.name}")
