import bisect
import logging
import threading
import time
from datetime import datetime, timedelta, timezone

from ..errors import TransportError
from ..events import Signal
from ..models import EPG_SOURCE_TYPES, Program

logger = logging.getLogger("CastDeck")


def parse_xmltv_time_to_epoch(time_str):
    """Parse ``20240101120000 +0100`` style XMLTV times to UTC epoch seconds."""
    if not time_str:
        return None
    try:
        parts = time_str.split(" ")
        dt = datetime.strptime(parts[0], "%Y%m%d%H%M%S")
        if len(parts) > 1:
            tz_str = parts[1]
            tz_sign = 1 if tz_str[0] == "+" else -1
            tz_hours = int(tz_str[1:3])
            tz_mins = int(tz_str[3:5]) if len(tz_str) >= 5 else 0
            tz_offset = timedelta(hours=tz_sign * tz_hours, minutes=tz_sign * tz_mins)
            dt = dt.replace(tzinfo=timezone(tz_offset))
        else:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.timestamp()
    except (ValueError, AttributeError, IndexError):
        return None


def parse_time(value):
    """Epoch seconds from an ISO string, an XMLTV string or a number.

    Numbers above 1e11 are taken as milliseconds (JavaScript Date values).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value / 1000.0 if value > 1e11 else float(value)
    text = str(value).strip()
    if not text:
        return None
    if text[:14].isdigit() and (len(text) == 14 or text[14:15] == " "):
        return parse_xmltv_time_to_epoch(text)
    if text.replace(".", "", 1).isdigit():
        return parse_time(float(text))
    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def normalize_programs(raw_programmes, channel_id, source_id):
    """Sorted, non-overlapping Program list for one channel."""
    candidates = []
    for raw in raw_programmes:
        start = parse_time(raw.get("start"))
        stop = parse_time(raw.get("stop", raw.get("end")))
        if start is None or stop is None or stop <= start:
            continue
        candidates.append(
            Program(
                channel_id=channel_id,
                source_id=source_id,
                title=str(raw.get("title") or ""),
                start_time=start,
                end_time=stop,
                description=str(raw.get("description") or raw.get("desc") or ""),
            )
        )
    candidates.sort(key=lambda p: (p.start_time, p.end_time))

    programs = []
    for program in candidates:
        if programs and program.start_time < programs[-1].end_time:
            continue
        programs.append(program)
    return programs


class _ChannelSchedule:
    __slots__ = ("programs", "starts")

    def __init__(self, programs):
        self.programs = programs
        self.starts = [p.start_time for p in programs]

    def at(self, ts):
        idx = bisect.bisect_right(self.starts, ts) - 1
        if idx < 0:
            return None
        program = self.programs[idx]
        return program if ts < program.end_time else None


class ProgramCache:
    """EPG programs per catalog channel plus the derived now-playing index."""

    def __init__(self, registry, transport, catalog, *, clock=time.time):
        self.registry = registry
        self.transport = transport
        self.catalog = catalog
        self.clock = clock
        self.epg_refreshed = Signal("epg_refreshed")

        self._schedules = {}
        self._lock = threading.Lock()
        self._display_index = {}
        self.generation = 0
        self.last_updated = 0
        self.last_error = None
        catalog.catalog_reloaded.connect(self._on_catalog_reloaded)

    def load_programs(self, channels, *, force=False, max_age_hours=24):
        """Replace all EPG data for ``channels``.

        Returns False (keeping the previous data) when no EPG source
        produced anything.
        """
        sources = self.registry.enabled_sources(EPG_SOURCE_TYPES)
        if not sources:
            self.last_error = "No EPG sources or Xtream accounts configured"
            logger.warning(f"EPG refresh skipped: {self.last_error}")
            return False

        epg_channels = {}
        programmes_by_epg_id = {}
        loaded = []
        failed = []
        for source in sources:
            try:
                data = self.transport.get_epg(
                    source.id, refresh=force, max_age_hours=max_age_hours
                )
            except TransportError as e:
                failed.append(source.id)
                logger.error(f"Failed to load EPG for source {source.name}: {e}")
                continue

            loaded.append(source.id)
            per_source = {}
            for raw in data.get("programmes") or []:
                epg_id = raw.get("channelId") or raw.get("channel")
                if epg_id:
                    per_source.setdefault(str(epg_id), []).append(raw)
            # Later sources win for the same EPG channel id.
            for epg_id, raws in per_source.items():
                programmes_by_epg_id[epg_id] = (source.id, raws)
            for epg_channel in data.get("channels") or []:
                epg_id = epg_channel.get("id")
                if not epg_id:
                    continue
                epg_channels[str(epg_id)] = str(epg_id)
                name = epg_channel.get("name")
                if name:
                    epg_channels[str(name).lower()] = str(epg_id)

        if not loaded:
            self.last_error = f"Failed to load EPG data from any source ({len(failed)} failed)"
            logger.error(f"EPG refresh failed, keeping previous data: {self.last_error}")
            return False

        schedules = {}
        matched = 0
        for channel in channels:
            epg_id = None
            if channel.tvg_id and channel.tvg_id in epg_channels:
                epg_id = epg_channels[channel.tvg_id]
            elif channel.tvg_id and channel.tvg_id in programmes_by_epg_id:
                epg_id = channel.tvg_id
            elif channel.name and channel.name.lower() in epg_channels:
                epg_id = epg_channels[channel.name.lower()]
            if epg_id is None or epg_id not in programmes_by_epg_id:
                continue
            source_id, raws = programmes_by_epg_id[epg_id]
            programs = normalize_programs(raws, channel.id, source_id)
            if programs:
                schedules[channel.identity] = _ChannelSchedule(programs)
                matched += 1

        with self._lock:
            self._schedules = schedules
            self.generation += 1
            self.last_updated = self.clock()
            self.last_error = (
                f"EPG failed for sources: {', '.join(failed)}" if failed else None
            )
            self._display_index = {}

        logger.info(
            f"EPG loaded from {len(loaded)} sources: {matched}/{len(channels)} channels matched"
        )
        self.epg_refreshed.emit(self)
        return True

    def _schedule(self, channel):
        with self._lock:
            return self._schedules.get(channel.identity)

    def now_playing(self, channel, at=None):
        schedule = self._schedule(channel)
        if schedule is None:
            return None
        return schedule.at(self.clock() if at is None else at)

    def programs_for(self, channel):
        schedule = self._schedule(channel)
        return list(schedule.programs) if schedule else []

    def upcoming(self, channel, limit=5, at=None):
        schedule = self._schedule(channel)
        if schedule is None:
            return []
        ts = self.clock() if at is None else at
        idx = bisect.bisect_right(schedule.starts, ts)
        return schedule.programs[idx:idx + limit]

    def is_stale(self, max_age_seconds):
        if not self.last_updated:
            return True
        return (self.clock() - self.last_updated) >= max_age_seconds

    def display_title(self, identity):
        with self._lock:
            return self._display_index.get(tuple(identity))

    def display_index(self):
        with self._lock:
            return dict(self._display_index)

    def _stamp(self):
        with self._lock:
            return (self.catalog.current_version(), self.generation)

    def _apply_display_batch(self, stamp, titles):
        """Write one batch unless the catalog or EPG moved on since ``stamp``."""
        with self._lock:
            if (self.catalog.current_version(), self.generation) != stamp:
                return False
            self._display_index.update(titles)
        return True

    def _on_catalog_reloaded(self, catalog=None):
        with self._lock:
            self._display_index = {}

    def refresh_display_index_incrementally(self, identities, batch_size=50, *, yield_fn=None):
        return DisplayIndexRefresh(
            self, identities, batch_size=batch_size, yield_fn=yield_fn
        )


class DisplayIndexRefresh:
    """Chunked now-playing recomputation over a list of channel identities.

    Yields between batches so request threads stay responsive. Batches are
    stamped with the catalog version and EPG generation taken at creation;
    once either changes the remaining work is dropped.
    """

    def __init__(self, cache, identities, *, batch_size=50, yield_fn=None):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.cache = cache
        self.identities = [tuple(i) for i in identities]
        self.batch_size = batch_size
        self.yield_fn = yield_fn or (lambda: time.sleep(0))
        self.stamp = cache._stamp()
        self.batches_applied = 0
        self.discarded = False
        self._cancelled = threading.Event()
        self._done = threading.Event()
        self._thread = None

    @property
    def cancelled(self):
        return self._cancelled.is_set()

    @property
    def done(self):
        return self._done.is_set()

    def cancel(self):
        self._cancelled.set()

    def run(self):
        try:
            now = self.cache.clock()
            for offset in range(0, len(self.identities), self.batch_size):
                if self.cancelled:
                    break
                titles = {}
                for identity in self.identities[offset:offset + self.batch_size]:
                    channel = self.cache.catalog.find_channel(*identity)
                    program = self.cache.now_playing(channel, at=now) if channel else None
                    titles[identity] = program.title if program else None
                if not self.cache._apply_display_batch(self.stamp, titles):
                    self.discarded = True
                    logger.debug("Display index refresh superseded, dropping remaining batches")
                    break
                self.batches_applied += 1
                if offset + self.batch_size < len(self.identities):
                    self.yield_fn()
        finally:
            self._done.set()
        return self

    def start(self):
        self._thread = threading.Thread(target=self.run, daemon=True)
        self._thread.start()
        return self

    def wait(self, timeout=None):
        return self._done.wait(timeout)
