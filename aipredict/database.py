"""
SQLite history of generated predictions, resolutions and faucet payouts.
"""
import sqlite3
import json
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

DB_PATH = Path(__file__).parent.parent / "data" / "oracle.db"


def configure(path: Union[str, Path]) -> None:
    """Point the module at a different database file."""
    global DB_PATH
    DB_PATH = Path(path)


def _connect() -> sqlite3.Connection:
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def init_db():
    """Initialize the database with required tables."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(DB_PATH)
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS generated_predictions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            topic TEXT NOT NULL,
            description TEXT NOT NULL,
            duration INTEGER NOT NULL,
            tags TEXT NOT NULL,
            tx_hash TEXT,
            error TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS resolutions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            prediction_id INTEGER NOT NULL,
            description TEXT NOT NULL,
            outcome INTEGER,
            confidence REAL,
            explanation TEXT,
            tx_hash TEXT,
            status TEXT NOT NULL,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS faucet_requests (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            address TEXT NOT NULL,
            amount_wei TEXT NOT NULL,
            tx_hash TEXT NOT NULL,
            requested_at REAL NOT NULL
        )
    """)

    cursor.execute(
        "CREATE INDEX IF NOT EXISTS idx_faucet_address ON faucet_requests (address)"
    )

    conn.commit()
    conn.close()


def record_generated_prediction(
    topic: str,
    description: str,
    duration: int,
    tags: list[str],
    tx_hash: Optional[str] = None,
    error: Optional[str] = None
) -> int:
    """Store one generated prediction and its publish result."""
    conn = sqlite3.connect(DB_PATH)
    cursor = conn.cursor()

    cursor.execute("""
        INSERT INTO generated_predictions (topic, description, duration, tags, tx_hash, error, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    """, (topic, description, duration, json.dumps(tags), tx_hash, error, datetime.utcnow().isoformat()))

    row_id = cursor.lastrowid
    conn.commit()
    conn.close()

    return row_id


def record_resolution(
    prediction_id: int,
    description: str,
    outcome: Optional[int],
    confidence: Optional[float],
    explanation: str,
    status: str,
    tx_hash: Optional[str] = None
) -> int:
    """
    Store an outcome decision. Status is finalized, skipped or failed.

    Outcome and confidence are None when the verdict itself could not be
    obtained; the explanation then holds the error.
    """
    conn = sqlite3.connect(DB_PATH)
    cursor = conn.cursor()

    cursor.execute("""
        INSERT INTO resolutions (prediction_id, description, outcome, confidence, explanation, tx_hash, status, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    """, (
        prediction_id, description, outcome, confidence, explanation,
        tx_hash, status, datetime.utcnow().isoformat()
    ))

    row_id = cursor.lastrowid
    conn.commit()
    conn.close()

    return row_id


def record_faucet_request(address: str, amount_wei: int, tx_hash: str, requested_at: float) -> int:
    """Store a successful faucet payout."""
    conn = sqlite3.connect(DB_PATH)
    cursor = conn.cursor()

    cursor.execute("""
        INSERT INTO faucet_requests (address, amount_wei, tx_hash, requested_at)
        VALUES (?, ?, ?, ?)
    """, (address.lower(), str(amount_wei), tx_hash, requested_at))

    row_id = cursor.lastrowid
    conn.commit()
    conn.close()

    return row_id


def get_last_faucet_request(address: str) -> Optional[dict]:
    """Most recent payout to an address, if any."""
    conn = _connect()
    cursor = conn.cursor()

    cursor.execute(
        "SELECT * FROM faucet_requests WHERE address = ? ORDER BY requested_at DESC LIMIT 1",
        (address.lower(),)
    )
    row = cursor.fetchone()
    conn.close()

    return dict(row) if row else None


def get_recent_generated(limit: int = 50) -> list[dict]:
    """Get recently generated predictions."""
    conn = _connect()
    cursor = conn.cursor()

    cursor.execute("SELECT * FROM generated_predictions ORDER BY id DESC LIMIT ?", (limit,))
    rows = cursor.fetchall()
    conn.close()

    result = []
    for row in rows:
        item = dict(row)
        item["tags"] = json.loads(item["tags"])
        result.append(item)
    return result


def get_recent_resolutions(limit: int = 50) -> list[dict]:
    """Get recent outcome decisions."""
    conn = _connect()
    cursor = conn.cursor()

    cursor.execute("SELECT * FROM resolutions ORDER BY id DESC LIMIT ?", (limit,))
    rows = cursor.fetchall()
    conn.close()

    return [dict(row) for row in rows]


def get_stats() -> dict:
    """Get overall counters."""
    conn = sqlite3.connect(DB_PATH)
    cursor = conn.cursor()

    cursor.execute("SELECT COUNT(*), COUNT(tx_hash) FROM generated_predictions")
    generated, published = cursor.fetchone()

    cursor.execute("SELECT status, COUNT(*) FROM resolutions GROUP BY status")
    resolution_counts = dict(cursor.fetchall())

    cursor.execute("SELECT COUNT(*), COUNT(DISTINCT address) FROM faucet_requests")
    payouts, recipients = cursor.fetchone()

    conn.close()

    return {
        "generated": generated,
        "published": published,
        "finalized": resolution_counts.get("finalized", 0),
        "skipped": resolution_counts.get("skipped", 0),
        "failed": resolution_counts.get("failed", 0),
        "faucet_payouts": payouts,
        "faucet_recipients": recipients,
    }


def reset_db():
    """Reset all data (for testing)."""
    conn = sqlite3.connect(DB_PATH)
    cursor = conn.cursor()
    cursor.execute("DELETE FROM generated_predictions")
    cursor.execute("DELETE FROM resolutions")
    cursor.execute("DELETE FROM faucet_requests")
    conn.commit()
    conn.close()
