import threading
import time


def start_epg_scheduler(state):
    """Start a background thread that periodically refreshes EPG data."""
    def epg_refresh_loop():
        while True:
            scheduler = state.scheduler
            try:
                interval_hours = scheduler.get_epg_refresh_interval()
                if interval_hours <= 0:
                    scheduler.logger.info(
                        "EPG scheduler: Automatic EPG refresh disabled (interval = 0)"
                    )
                    time.sleep(3600)
                    continue
                interval_seconds = max(60, int(interval_hours * 3600))

                scheduler.logger.info(
                    "EPG scheduler: Next refresh in %s hours (%s seconds)",
                    interval_hours,
                    interval_seconds,
                )
                time.sleep(interval_seconds)

                scheduler.logger.info("EPG scheduler: Queueing scheduled EPG refresh...")
                scheduler.job_manager.enqueue_epg_refresh(reason="scheduled")

            except Exception as exc:
                scheduler.logger.error("EPG scheduler error: %s", exc)
                time.sleep(300)

    scheduler_thread = threading.Thread(target=epg_refresh_loop, daemon=True)
    scheduler_thread.start()
    state.scheduler.logger.info("EPG background scheduler started!")


def start_channel_scheduler(state):
    """Start a background thread that periodically reloads the channel catalog."""
    def channel_refresh_loop():
        while True:
            scheduler = state.scheduler
            try:
                interval_hours = scheduler.get_channel_refresh_interval()

                if interval_hours <= 0:
                    scheduler.logger.info(
                        "Channel scheduler: Automatic channel refresh disabled (interval = 0)"
                    )
                    time.sleep(3600)
                    continue

                interval_seconds = max(60, int(interval_hours * 3600))

                scheduler.logger.info(
                    "Channel scheduler: Next refresh in %s hours (%s seconds)",
                    interval_hours,
                    interval_seconds,
                )
                time.sleep(interval_seconds)

                scheduler.logger.info("Channel scheduler: Queueing scheduled catalog refresh...")
                scheduler.job_manager.enqueue_refresh_catalog(reason="scheduled")

            except Exception as exc:
                scheduler.logger.error("Channel scheduler error: %s", exc)
                time.sleep(300)

    scheduler_thread = threading.Thread(target=channel_refresh_loop, daemon=True)
    scheduler_thread.start()
    state.scheduler.logger.info("Channel background scheduler started!")


def start_display_refresh_timer(state, interval_seconds=60):
    """Keep now-playing titles current as programs roll over."""
    def display_loop():
        while True:
            time.sleep(interval_seconds)
            try:
                if state.engine.programs.last_updated:
                    state.engine.refresh_display_index()
            except Exception as exc:
                state.logger.error("Display refresh error: %s", exc)

    threading.Thread(target=display_loop, daemon=True).start()
    state.logger.info("Now-playing display timer started (every %ss)", interval_seconds)
