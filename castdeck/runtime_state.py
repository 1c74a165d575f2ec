from dataclasses import dataclass
from typing import Callable, Any


@dataclass
class SchedulerState:
    logger: Any
    job_manager: Any
    get_epg_refresh_interval: Callable[[], float]
    get_channel_refresh_interval: Callable[[], float]


@dataclass
class RuntimeState:
    logger: Any
    engine: Any
    job_manager: Any
    scheduler: SchedulerState
