"""SQLite connection pool shared by the profile store."""
import logging
import sqlite3
import threading
from contextlib import contextmanager
from queue import Empty, Queue
from typing import Generator, List

logger = logging.getLogger(__name__)


class SQLiteConnectionPool:
    """Thread-safe pool of SQLite connections for one database file."""

    def __init__(self, database: str, max_connections: int = 5):
        self.database = database
        self.max_connections = max_connections
        self._idle: Queue = Queue(maxsize=max_connections)
        self._all: List[sqlite3.Connection] = []
        self._lock = threading.Lock()

    def _create_connection(self) -> sqlite3.Connection:
        # Connections are handed between request threads, never used concurrently.
        conn = sqlite3.connect(self.database, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout = 5000")
        return conn

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Borrow a connection; uncommitted work is rolled back on return."""
        try:
            connection = self._idle.get(block=False)
        except Empty:
            with self._lock:
                can_create = len(self._all) < self.max_connections
                if can_create:
                    connection = self._create_connection()
                    self._all.append(connection)
                    logger.debug("Opened SQLite connection %d for %s", len(self._all), self.database)
            if not can_create:
                connection = self._idle.get(block=True)

        try:
            yield connection
        finally:
            try:
                connection.rollback()
                self._idle.put(connection)
            except sqlite3.Error as exc:
                logger.error("Discarding broken SQLite connection: %s", exc)
                with self._lock:
                    if connection in self._all:
                        self._all.remove(connection)
                connection.close()

    def close_all(self) -> None:
        with self._lock:
            for connection in self._all:
                connection.close()
            self._all.clear()
        while True:
            try:
                self._idle.get(block=False)
            except Empty:
                break
