"""Change detection against the notified state."""

from .change_filter import filter_new_items

__all__ = ["filter_new_items"]
