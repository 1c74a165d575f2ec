from dataclasses import dataclass
from typing import Any, Optional


CHANNEL_SOURCE_TYPES = ("xtream", "m3u")
EPG_SOURCE_TYPES = ("xtream", "epg")
UNCATEGORIZED = "Uncategorized"


def _as_bool(value):
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _as_key(value):
    if value is None:
        return ""
    return str(value)


@dataclass(frozen=True)
class Source:
    id: str
    type: str
    enabled: bool
    name: str

    @classmethod
    def from_raw(cls, raw):
        source_id = _as_key(raw.get("id"))
        return cls(
            id=source_id,
            type=str(raw.get("type") or "").lower(),
            enabled=_as_bool(raw.get("enabled", True)),
            name=raw.get("name") or source_id,
        )

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "enabled": self.enabled,
            "name": self.name,
        }


@dataclass(frozen=True)
class Channel:
    id: str
    source_id: str
    stream_id: str
    name: str
    logo_url: str
    group_title: str
    sort_order: int
    tvg_id: str = ""
    group_id: str = ""
    source_type: str = ""
    url: str = ""

    @property
    def identity(self):
        return (self.source_id, self.id)

    @property
    def raw_id(self):
        """Id under which upstream stores hidden/favorite records."""
        return self.stream_id or self.id

    def to_dict(self):
        return {
            "id": self.id,
            "sourceId": self.source_id,
            "streamId": self.stream_id,
            "name": self.name,
            "logoUrl": self.logo_url,
            "groupTitle": self.group_title,
            "sortOrder": self.sort_order,
            "tvgId": self.tvg_id,
            "groupId": self.group_id,
            "sourceType": self.source_type,
            "url": self.url,
        }


def normalize_channels(source, categories, streams):
    """Map a source's raw live categories and streams onto Channel records.

    Keeps the provider's list order; ``sort_order`` is the position within
    the source.
    """
    category_names = {}
    for cat in categories or []:
        if not isinstance(cat, dict):
            continue
        category_names[_as_key(cat.get("category_id"))] = cat.get("category_name") or ""

    channels = []
    for stream in streams or []:
        if not isinstance(stream, dict):
            continue
        stream_id = _as_key(stream.get("stream_id"))
        if not stream_id:
            continue
        category_id = _as_key(stream.get("category_id"))
        channels.append(
            Channel(
                id=f"{source.type}_{source.id}_{stream_id}",
                source_id=source.id,
                stream_id=stream_id,
                name=str(stream.get("name") or ""),
                logo_url=stream.get("stream_icon") or "",
                group_title=category_names.get(category_id) or UNCATEGORIZED,
                sort_order=len(channels),
                tvg_id=stream.get("epg_channel_id") or "",
                group_id=f"{source.type}_{source.id}_{category_id}",
                source_type=source.type,
                url=stream.get("stream_url") or "",
            )
        )
    return channels


@dataclass(frozen=True)
class Program:
    channel_id: str
    source_id: str
    title: str
    start_time: float
    end_time: float
    description: str = ""

    def contains(self, ts):
        return self.start_time <= ts < self.end_time

    def to_dict(self):
        return {
            "channelId": self.channel_id,
            "sourceId": self.source_id,
            "title": self.title,
            "start": self.start_time,
            "stop": self.end_time,
            "description": self.description,
        }


@dataclass(frozen=True)
class FavoriteEntry:
    favorite_id: Any
    source_id: str
    item_id: str
    item_type: str

    @classmethod
    def from_raw(cls, raw):
        return cls(
            favorite_id=raw.get("id"),
            source_id=_as_key(raw.get("source_id")),
            item_id=_as_key(raw.get("item_id") or raw.get("channel_id")),
            # Records written before item types existed are channels.
            item_type=raw.get("item_type") or "channel",
        )


@dataclass(frozen=True)
class ResolvedFavorite:
    favorite_id: Any
    channel: Channel

    def to_dict(self):
        data = self.channel.to_dict()
        data["favoriteId"] = self.favorite_id
        return data


@dataclass
class Selection:
    """Owned selection state; one instance per controller."""

    channel: Optional[Channel] = None

    @property
    def identity(self):
        return self.channel.identity if self.channel else None

    @property
    def is_selected(self):
        return self.channel is not None
