"""Stable keys for songs and setlist entries.

Song keys group entries for frequency statistics. Entry keys recognise two
records describing the same real-world performance, for deduplication and for
keying per-entry rarity details.
"""

import uuid

from .models import SetlistEntry


def song_key(entry: SetlistEntry, index: int | None = None) -> str:
    """Resolve the song an entry refers to.

    Priority: song id, slug, lowercased name. Entries with none of these are
    treated as a one-off song of their show, or of their own without a show.
    That last key uses ``index`` (the entry's position in the corpus) when
    given, so repeated runs agree; otherwise it is random.
    """
    if entry.song_id:
        return f"id:{entry.song_id}"
    if entry.slug:
        return f"slug:{entry.slug}"
    if entry.songname:
        return f"name:{entry.songname.lower()}"
    if entry.show_id is not None:
        return f"unique:{entry.show_id}"
    if index is not None:
        return f"unique:entry:{index}"
    return f"unique:{uuid.uuid4().hex}"


def _clean(value: object) -> str:
    return str(value).strip() if value is not None else ""


def setlist_entry_key(entry: SetlistEntry, index: int | None = None) -> str:
    """Resolve the identity of one setlist entry.

    Args:
        entry: The setlist entry
        index: Fallback ordinal used when the entry has neither a position nor
            a set number. Must come from a stable ordering of the input.

    Returns:
        ``uid:<uniqueid>`` when the record carries one, else
        ``show:<id>|pos:<position>|slug:<slug>`` style composite key
    """
    if entry.uniqueid is not None:
        return f"uid:{entry.uniqueid}"

    show_part = f"show:{entry.show_id}" if entry.show_id is not None else "show:unknown"

    position = _clean(entry.position if entry.position is not None else entry.setnumber)
    if position:
        position_part = f"pos:{position}"
    elif index is not None:
        position_part = f"idx:{index}"
    else:
        position_part = "pos:unknown"

    slug = _clean(entry.slug)
    name = _clean(entry.songname)
    if slug:
        name_part = f"slug:{slug.lower()}"
    elif name:
        name_part = f"name:{name.lower()}"
    else:
        name_part = "name:unknown"

    return f"{show_part}|{position_part}|{name_part}"
