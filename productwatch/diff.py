"""Field-level diffs between product snapshots."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .models import Snapshot

INITIAL_SNAPSHOT = "initial_snapshot"
# Keys that describe a diff rather than record a change.
META_KEYS = frozenset({"_type", "new"})


def diff_snapshots(old: Optional[Snapshot], new: Snapshot) -> Dict[str, Any]:
    """Compare two snapshots; an empty dict means nothing changed.

    Without a previous snapshot the result is an ``initial_snapshot`` marker
    carrying the new snapshot, which is not a change.
    """
    if old is None:
        return {"_type": INITIAL_SNAPSHOT, "new": new.to_dict()}

    diff: Dict[str, Any] = {}

    if (old.title or None) != (new.title or None):
        diff["title"] = {"from": old.title, "to": new.title}

    if old.price != new.price:
        diff["price"] = {"from": old.price, "to": new.price}

    specs = _diff_specs(old.specs or {}, new.specs or {})
    if specs:
        diff["specs"] = specs

    images = _diff_images(old.images or [], new.images or [])
    if images:
        diff["images"] = images

    return diff


def is_substantive(diff: Dict[str, Any]) -> bool:
    """True when the diff records at least one actual field change."""
    return any(key not in META_KEYS for key in diff)


def _diff_specs(old: Dict[str, str], new: Dict[str, str]) -> Dict[str, Any]:
    added = {key: value for key, value in new.items() if key not in old}
    removed = {key: value for key, value in old.items() if key not in new}
    changed = {
        key: {"from": old[key], "to": value}
        for key, value in new.items()
        if key in old and old[key] != value
    }
    if not (added or removed or changed):
        return {}
    return {"added": added, "removed": removed, "changed": changed}


def _diff_images(old: Iterable[str], new: Iterable[str]) -> Dict[str, List[str]]:
    old_set = _ordered_unique(old)
    new_set = _ordered_unique(new)
    added = [url for url in new_set if url not in old_set]
    removed = [url for url in old_set if url not in new_set]
    if not (added or removed):
        return {}
    return {"added": added, "removed": removed}


def _ordered_unique(urls: Iterable[str]) -> Dict[str, None]:
    return dict.fromkeys(str(url) for url in urls)
