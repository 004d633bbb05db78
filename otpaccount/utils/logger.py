#!/usr/bin/env python3
"""
Audit Logging Module for the OTP Account Service

Handles event logging to SQLite database for audit trail.
Records registrations, authentication attempts and recovery flows.
Secrets, codes and tokens are never written to the log.
"""

import csv
import sqlite3
import time
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from .paths import ensure_private_dir, resolve_config_dir

DEFAULT_RETENTION_DAYS = 90


class EventAction(Enum):
    """Types of account events to log."""
    ACCOUNT_REGISTERED = "account_registered"
    REGISTRATION_REJECTED = "registration_rejected"
    AUTH_SUCCESS = "auth_success"
    AUTH_FAILED = "auth_failed"
    RESET_REQUESTED = "reset_requested"
    RESET_DENIED = "reset_denied"
    RESET_COMPLETED = "reset_completed"
    RESET_FAILED = "reset_failed"
    CODE_SENT = "code_sent"
    DELIVERY_FAILED = "delivery_failed"


class AuditLogger:
    """Manages logging of account security events to SQLite database."""

    def __init__(self, db_path: Optional[Path] = None, retention_days: int = DEFAULT_RETENTION_DAYS):
        """
        Initialize audit event logger.

        Args:
            db_path: Path to SQLite database. If None, uses the shared config dir.
            retention_days: Events older than this are removed on startup
        """
        if db_path is None:
            config_dir = resolve_config_dir()
            ensure_private_dir(config_dir)
            self.db_path = config_dir / "events.db"
        else:
            self.db_path = Path(db_path)

        self.retention_days = retention_days
        self._init_database()

        # Automatically cleanup old events on initialization
        deleted_count = self.cleanup_old_events(self.retention_days)
        if deleted_count > 0:
            print(f"[AuditLogger] Cleaned up {deleted_count} old events (>{self.retention_days} days)")

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_database(self):
        """Initialize the SQLite database with required tables."""
        conn = self._connect()
        try:
            cursor = conn.cursor()

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS account_events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp REAL NOT NULL,
                    action TEXT NOT NULL,
                    identifier TEXT,
                    success INTEGER,
                    details TEXT
                )
            ''')

            # Create index on timestamp for faster queries
            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_timestamp ON account_events(timestamp)
            ''')

            # Create index on identifier for account history
            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_identifier ON account_events(identifier)
            ''')

            conn.commit()
        finally:
            conn.close()

    def log_event(self,
                  action: EventAction,
                  identifier: Optional[str] = None,
                  success: Optional[bool] = None,
                  details: Optional[str] = None,
                  timestamp: Optional[float] = None) -> int:
        """
        Log an account security event.

        Args:
            action: Type of event (from EventAction enum)
            identifier: Account identifier the event concerns
            success: Whether the action succeeded
            details: Additional details or error codes
            timestamp: Event time (defaults to now)

        Returns:
            Event ID in the database
        """
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO account_events (timestamp, action, identifier, success, details)
                VALUES (?, ?, ?, ?, ?)
            ''', (
                timestamp if timestamp is not None else time.time(),
                action.value,
                identifier,
                1 if success else 0 if success is not None else None,
                details
            ))
            event_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()

        return event_id

    def _query(self, sql: str, params: tuple = ()) -> List[Dict]:
        conn = self._connect()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [dict(row) for row in rows]

    def get_recent_events(self, limit: int = 100) -> List[Dict]:
        """
        Get recent account events, newest first.

        Args:
            limit: Maximum number of events to return
        """
        return self._query('''
            SELECT * FROM account_events
            ORDER BY timestamp DESC, id DESC
            LIMIT ?
        ''', (limit,))

    def get_events_by_date_range(self, start_timestamp: float, end_timestamp: float) -> List[Dict]:
        """
        Get events within a date range.

        Args:
            start_timestamp: Start time (Unix timestamp)
            end_timestamp: End time (Unix timestamp)
        """
        return self._query('''
            SELECT * FROM account_events
            WHERE timestamp BETWEEN ? AND ?
            ORDER BY timestamp DESC, id DESC
        ''', (start_timestamp, end_timestamp))

    def get_account_history(self, identifier: str) -> List[Dict]:
        """Get all events for a specific account."""
        return self._query('''
            SELECT * FROM account_events
            WHERE identifier = ?
            ORDER BY timestamp DESC, id DESC
        ''', (identifier,))

    def get_failed_auth_attempts(self, hours: int = 24) -> List[Dict]:
        """
        Get failed authentication attempts within the last N hours.

        Args:
            hours: Number of hours to look back
        """
        cutoff_time = time.time() - (hours * 3600)
        return self._query('''
            SELECT * FROM account_events
            WHERE action = ? AND timestamp > ? AND success = 0
            ORDER BY timestamp DESC, id DESC
        ''', (EventAction.AUTH_FAILED.value, cutoff_time))

    def cleanup_old_events(self, days: int = DEFAULT_RETENTION_DAYS) -> int:
        """
        Delete events older than specified days.

        Returns:
            Number of deleted events
        """
        cutoff_time = time.time() - (days * 86400)

        conn = self._connect()
        try:
            cursor = conn.execute('DELETE FROM account_events WHERE timestamp < ?', (cutoff_time,))
            deleted_count = cursor.rowcount
            conn.commit()
        finally:
            conn.close()

        return deleted_count

    def get_statistics(self) -> Dict:
        """
        Get statistics about logged events.

        Returns:
            Dictionary with total_events, by_action, failed_auth_24h and unique_accounts
        """
        conn = self._connect()
        try:
            cursor = conn.cursor()
            stats = {}

            cursor.execute('SELECT COUNT(*) FROM account_events')
            stats['total_events'] = cursor.fetchone()[0]

            cursor.execute('''
                SELECT action, COUNT(*) as count
                FROM account_events
                GROUP BY action
            ''')
            stats['by_action'] = {row[0]: row[1] for row in cursor.fetchall()}

            cutoff_time = time.time() - 86400
            cursor.execute('''
                SELECT COUNT(*) FROM account_events
                WHERE action = ? AND timestamp > ? AND success = 0
            ''', (EventAction.AUTH_FAILED.value, cutoff_time))
            stats['failed_auth_24h'] = cursor.fetchone()[0]

            cursor.execute('''
                SELECT COUNT(DISTINCT identifier) FROM account_events
                WHERE identifier IS NOT NULL
            ''')
            stats['unique_accounts'] = cursor.fetchone()[0]
        finally:
            conn.close()

        return stats

    def export_to_csv(self, output_path: Path, limit: Optional[int] = None) -> bool:
        """
        Export events to CSV file.

        Args:
            output_path: Path to output CSV file
            limit: Maximum number of events to export (None for all)

        Returns:
            True if successful, False otherwise
        """
        events = self.get_recent_events(limit if limit else -1)

        try:
            with open(output_path, 'w', newline='') as csvfile:
                writer = csv.DictWriter(
                    csvfile, fieldnames=['id', 'timestamp', 'action', 'identifier', 'success', 'details'])
                writer.writeheader()
                for event in events:
                    event_copy = event.copy()
                    event_copy['timestamp'] = datetime.fromtimestamp(event['timestamp']).isoformat()
                    writer.writerow(event_copy)
            return True
        except OSError as e:
            print(f"[AuditLogger] Error exporting to CSV: {e}")
            return False
