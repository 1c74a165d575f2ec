import time
import threading
from collections import deque
from datetime import datetime


class JobManager:
    """Background queue for catalog and EPG refreshes.

    A job type is either queued or running at most once; failed jobs are
    retried with exponential backoff up to ``max_retries`` times.
    """

    def __init__(
        self,
        *,
        logger,
        refresh_catalog,
        refresh_epg,
        refresh_display_index=None,
        max_workers=1,
        max_retries=2,
        poll_interval=0.5,
    ):
        self.logger = logger
        self.refresh_catalog = refresh_catalog
        self.refresh_epg = refresh_epg
        self.refresh_display_index = refresh_display_index

        self.queue = deque()
        self.queue_lock = threading.Lock()
        self.queued_keys = set()
        self.in_flight = set()
        self.in_flight_lock = threading.Lock()

        self.worker_state_lock = threading.Lock()
        self.running_workers = 0
        self.max_workers = max_workers
        self.max_retries = max_retries
        self.poll_interval = poll_interval

        self.status = {}
        self.status_lock = threading.Lock()

    def enqueue_refresh_catalog(self, reason="manual"):
        return self._enqueue_job("refresh_catalog", reason=reason)

    def enqueue_epg_refresh(self, reason="manual", force=False):
        return self._enqueue_job("refresh_epg", reason=reason, force=force)

    def get_status(self, job_type=None):
        with self.status_lock:
            if job_type:
                return dict(self.status.get(job_type) or {})
            return {k: dict(v) for k, v in self.status.items()}

    def _enqueue_job(self, job_type, reason=None, force=False):
        with self.in_flight_lock:
            if job_type in self.in_flight:
                return "running"
        with self.queue_lock:
            if job_type in self.queued_keys:
                return "queued"
            job = {
                "type": job_type,
                "reason": reason or "",
                "force": force,
                "attempts": 0,
                "run_at": time.time(),
            }
            self.queue.append(job)
            self.queued_keys.add(job_type)
        self._mark(job_type, "queued", reason=reason or "", queued_at=_now())
        self._ensure_workers()
        return "queued"

    def _ensure_workers(self):
        with self.worker_state_lock:
            while self.running_workers < self.max_workers:
                with self.queue_lock:
                    if not self.queue:
                        return
                thread = threading.Thread(target=self._worker, daemon=True)
                thread.start()
                self.running_workers += 1

    def _worker(self):
        try:
            while True:
                with self.queue_lock:
                    if not self.queue:
                        return
                    job = self.queue.popleft()
                    key = job["type"]
                    self.queued_keys.discard(key)

                if job["run_at"] > time.time():
                    with self.queue_lock:
                        self.queue.append(job)
                        self.queued_keys.add(key)
                    time.sleep(self.poll_interval)
                    continue

                with self.in_flight_lock:
                    self.in_flight.add(key)
                try:
                    self._run_job(job)
                except Exception as exc:
                    job["attempts"] += 1
                    if job["attempts"] <= self.max_retries:
                        backoff = min(60, 2 ** job["attempts"])
                        job["run_at"] = time.time() + backoff
                        with self.queue_lock:
                            self.queue.append(job)
                            self.queued_keys.add(key)
                        self.logger.error(
                            "Job %s failed (retry in %ss): %s", key, backoff, exc
                        )
                    else:
                        self._mark(key, "error", completed_at=_now(), error=str(exc))
                        self.logger.error("Job %s failed: %s", key, exc)
                finally:
                    with self.in_flight_lock:
                        self.in_flight.discard(key)
        finally:
            with self.worker_state_lock:
                self.running_workers = max(0, self.running_workers - 1)

    def _run_job(self, job):
        job_type = job["type"]
        self._mark(job_type, "running", started_at=_now(), completed_at=None, error=None)
        if job_type == "refresh_catalog":
            self.logger.info("Job refresh_catalog started (%s)", job["reason"] or "manual")
            total = self.refresh_catalog()
            self._mark(job_type, "completed", completed_at=_now(), total=total)
            self.enqueue_epg_refresh(reason="catalog_refresh")
            return
        if job_type == "refresh_epg":
            self.logger.info("Job refresh_epg started (%s)", job["reason"] or "manual")
            ok = self.refresh_epg(force=job["force"])
            self._mark(job_type, "completed" if ok else "stale", completed_at=_now())
            if ok and self.refresh_display_index:
                self.refresh_display_index()
            return
        self.logger.warning("Unknown job type: %s", job_type)

    def _mark(self, job_type, status, **fields):
        with self.status_lock:
            entry = self.status.get(job_type) or {}
            entry.update(fields)
            entry["status"] = status
            self.status[job_type] = entry


def _now():
    return datetime.utcnow().isoformat()
