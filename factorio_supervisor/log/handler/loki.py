import os
import sys
import socket
import logging
import requests
import threading
from typing import Any, Dict, List, Optional

SERVER_JOB = "factorio-server"
SUPERVISOR_JOB = "factorio-supervisor"


class LokiHandler(logging.Handler):
    """
    Ships supervisor logs and server output to Grafana Loki.

    Entries are batched in memory and pushed either when `batch_size` entries
    are waiting or every `flush_interval` seconds from a daemon thread.
    Server output ('proc.<name>' loggers) goes to its own job so it can be
    queried apart from the supervisor's own messages.
    """
    def __init__(self, url: str, org_id: Optional[str] = None, flush_interval: float = 10, batch_size: int = 200):
        """
        :param url: The base URL of the Loki instance.
        :param org_id: Tenant sent as 'X-Scope-OrgID', if any.
        :param flush_interval: Seconds between background pushes.
        :param batch_size: Push as soon as this many entries are waiting.
        """
        super().__init__()
        self.url = f"{url.rstrip('/')}/loki/api/v1/push"
        self.flush_interval = flush_interval
        self.batch_size = batch_size
        self.hostname = os.getenv('COMPUTERNAME') or os.getenv('HOSTNAME') or socket.gethostname()

        self.headers = {'Content-Type': 'application/json'}
        if org_id:
            self.headers['X-Scope-OrgID'] = org_id

        self.log_buffer: List[Dict[str, Any]] = []
        self.buffer_lock = threading.Lock()
        self.stop_event = threading.Event()
        self.flush_thread = threading.Thread(target=self._flush_loop, name="LokiFlushThread", daemon=True)
        self.flush_thread.start()

    def _flush_loop(self) -> None:
        while not self.stop_event.wait(self.flush_interval):
            self.flush()
        self.flush()

    def build_entry(self, record: logging.LogRecord) -> Dict[str, Any]:
        """
        Converts a log record into a Loki stream entry.

        Server lines are sent unformatted, labelled with the process name
        instead of the logger name.
        """
        if record.name.startswith('proc.'):
            job, logger_name, line = SERVER_JOB, record.name.split('.', 1)[1], record.getMessage()
        else:
            job, logger_name, line = SUPERVISOR_JOB, record.name, self.format(record)

        labels = {
            "job": job,
            "level": record.levelname.lower(),
            "hostname": self.hostname,
            "logger": logger_name,
        }
        return {"stream": labels, "values": [[str(int(record.created * 1e9)), line]]}

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = self.build_entry(record)
        except Exception as e:
            print(f"ERROR: LokiHandler failed to process a log record: {e}", file=sys.stderr)
            return

        with self.buffer_lock:
            self.log_buffer.append(entry)
            full = len(self.log_buffer) >= self.batch_size
        if full:
            self.flush()

    def _take_batch(self) -> List[Dict[str, Any]]:
        with self.buffer_lock:
            batch, self.log_buffer = self.log_buffer, []
        return batch

    def _push(self, batch: List[Dict[str, Any]]) -> None:
        # Never logs: this handler may sit on the root logger.
        try:
            response = requests.post(self.url, json={"streams": batch}, headers=self.headers, timeout=5)
        except requests.RequestException as e:
            print(f"CRITICAL: Failed to send {len(batch)} logs to Loki: {e}", file=sys.stderr)
            return
        if response.status_code != 204:
            print(f"ERROR: Loki returned status {response.status_code}: {response.text}", file=sys.stderr)

    def flush(self) -> None:
        """Pushes everything buffered so far. Safe to call from any thread."""
        batch = self._take_batch()
        if batch:
            self._push(batch)

    def close(self) -> None:
        """Stops the flush thread after its final push."""
        self.stop_event.set()
        if self.flush_thread.is_alive():
            self.flush_thread.join(timeout=self.flush_interval + 2)
        super().close()
