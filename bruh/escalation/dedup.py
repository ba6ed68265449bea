"""
Result deduplication

Merges a batch of search matches into the accumulated result set. Two
messages are the same message when their (timestamp, channel_id) pairs are
equal; everything else about them is ignored.
"""

from typing import Iterable

from .models import AccumulatedResultSet, MatchedMessage


def merge(existing: AccumulatedResultSet, incoming: Iterable[MatchedMessage]) -> AccumulatedResultSet:
    """
    Return a new set holding ``existing`` followed by the unseen ``incoming`` messages.

    The first-seen instance of an identity wins. Messages missing a timestamp
    or channel id are never treated as duplicates and are always kept.
    """
    merged = existing.as_list()
    seen_ids = {m.identity for m in merged if m.identity is not None}

    for message in incoming:
        identity = message.identity
        if identity is not None:
            if identity in seen_ids:
                continue
            seen_ids.add(identity)
        merged.append(message)

    return AccumulatedResultSet(merged)
