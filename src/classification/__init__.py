"""
Label-to-bin classification rules.
"""

from .mapper import map_label_to_category, check_disposal, CATEGORY_RULES

__all__ = ["map_label_to_category", "check_disposal", "CATEGORY_RULES"]
