"""Content snapshot differ."""

from collections.abc import Mapping

from seedbed.core.types import Added, ChangeEvent, ContentItem, Removed, Updated


def diff_snapshots(
    previous: Mapping[str, str],
    current: Mapping[str, ContentItem],
) -> list[ChangeEvent]:
    """Compare a new snapshot against the previously observed one.

    Removals come first, then updates, then additions, so a store never
    holds two live records that logically supersede each other. Each group
    is sorted by id, making the result a pure function of both snapshots.

    Args:
        previous: Mapping of id to fingerprint from the last known-good tick.
        current: Mapping of id to content item from the new tick.

    Returns:
        Ordered change events.
    """
    removed = sorted(item_id for item_id in previous if item_id not in current)
    updated = sorted(
        item_id
        for item_id, item in current.items()
        if item_id in previous and previous[item_id] != item.fingerprint
    )
    added = sorted(item_id for item_id in current if item_id not in previous)

    events: list[ChangeEvent] = [Removed(item_id) for item_id in removed]
    events.extend(Updated(current[item_id]) for item_id in updated)
    events.extend(Added(current[item_id]) for item_id in added)
    return events
