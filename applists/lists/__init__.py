"""Want-list loading."""

from applists.lists.store import ListStore, strip_inline_comment

__all__ = ["ListStore", "strip_inline_comment"]
