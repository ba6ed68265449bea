"""
Rendering of retrieved messages into prompt / context text.
"""

from typing import List

from .models import MatchedMessage
from .permalink import PermalinkBuilder


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def format_thread_transcript(messages: List[MatchedMessage]) -> str:
    """One ``user: text`` line per message, in thread order"""
    return "\n".join(f"{m.user_id or 'Unknown'}: {m.text}" for m in messages)


def format_channel_messages(messages: List[MatchedMessage]) -> str:
    lines = [f"• {m.author}: {truncate(m.text, 150)}" for m in messages]
    return (
        f"Found {len(messages)} relevant messages in this channel:\n\n"
        + "\n".join(lines)
    )


async def _link_for(message: MatchedMessage, permalinks: PermalinkBuilder) -> str:
    if message.permalink:
        return message.permalink
    return await permalinks.build(message.channel_id, message.timestamp)


async def format_for_evaluation(messages: List[MatchedMessage], permalinks: PermalinkBuilder) -> str:
    """Numbered listing with links, as shown to the sufficiency oracle"""
    lines = []
    for i, m in enumerate(messages, start=1):
        link = await _link_for(m, permalinks)
        lines.append(
            f"[{i}] #{m.channel_name or 'Unknown'} - {m.author}: {truncate(m.text, 200)}\n"
            f"    Link: {link}"
        )
    return "\n".join(lines)


async def format_search_results(messages: List[MatchedMessage], permalinks: PermalinkBuilder) -> str:
    """Raw listing used as context when no oracle summary exists"""
    blocks = []
    for m in messages:
        link = await _link_for(m, permalinks)
        blocks.append(
            f"• [#{m.channel_name or 'Unknown'}] {m.author}: {truncate(m.text, 150)}\n"
            f"  Link: {link}"
        )
    return "\n\n".join(blocks)
