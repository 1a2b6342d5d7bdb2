import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
DB_FILENAME = "billing.db"

DEFAULT_SETTINGS: dict[str, str] = {
    "estimate_valid_days": "30",
    "api_gold_rate_unit": "per_10g",
    "default_currency": "INR",
}

RATE_FIELDS = (
    "gold_rate_per_gram",
    "usd_to_inr_rate",
    "gst_percent",
    "customs_duty_percent",
    "state_tax_percent",
)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_db_path() -> Path:
    data_dir = os.getenv("JEWEL_DATA_DIR", "").strip()
    return (Path(data_dir) if data_dir else DATA_DIR) / DB_FILENAME


def get_connection(db_path: Path | str | None = None) -> sqlite3.Connection:
    target = db_path or get_db_path()
    if target != ":memory:":
        Path(target).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(target)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    cursor = conn.cursor()

    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )

    # Rates are kept as text so Decimal values survive the round trip.
    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS rate_snapshots (
            rate_date TEXT PRIMARY KEY,
            gold_rate_per_gram TEXT,
            usd_to_inr_rate TEXT,
            gst_percent TEXT,
            customs_duty_percent TEXT,
            state_tax_percent TEXT,
            source TEXT NOT NULL DEFAULT '',
            updated_at TEXT NOT NULL
        )
        """
    )

    for key, value in DEFAULT_SETTINGS.items():
        cursor.execute(
            """
            INSERT OR IGNORE INTO settings (key, value, updated_at)
            VALUES (?, ?, ?)
            """,
            (key, value, utc_now_iso()),
        )

    conn.commit()


def get_all_settings(conn: sqlite3.Connection) -> dict[str, Any]:
    rows = conn.execute("SELECT key, value FROM settings").fetchall()
    raw = {row["key"]: row["value"] for row in rows}

    def get_int(key: str) -> int:
        try:
            return int(raw.get(key, DEFAULT_SETTINGS[key]))
        except (TypeError, ValueError):
            return int(DEFAULT_SETTINGS[key])

    gold_rate_unit = raw.get("api_gold_rate_unit", DEFAULT_SETTINGS["api_gold_rate_unit"])
    if gold_rate_unit not in {"per_gram", "per_10g"}:
        gold_rate_unit = DEFAULT_SETTINGS["api_gold_rate_unit"]

    default_currency = raw.get("default_currency", DEFAULT_SETTINGS["default_currency"]).upper()
    if default_currency not in {"INR", "USD"}:
        default_currency = DEFAULT_SETTINGS["default_currency"]

    return {
        "estimate_valid_days": get_int("estimate_valid_days"),
        "api_gold_rate_unit": gold_rate_unit,
        "default_currency": default_currency,
    }


def save_settings(conn: sqlite3.Connection, settings: dict[str, Any]) -> None:
    now = utc_now_iso()
    payload = {key: str(settings[key]) for key in DEFAULT_SETTINGS if key in settings}

    for key, value in payload.items():
        conn.execute(
            """
            INSERT INTO settings (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, value, now),
        )
    conn.commit()


def get_rate_row(conn: sqlite3.Connection, rate_date: str) -> sqlite3.Row | None:
    return conn.execute(
        "SELECT * FROM rate_snapshots WHERE rate_date = ?",
        (rate_date,),
    ).fetchone()


def fill_rate_row(conn: sqlite3.Connection, rate_date: str, values: dict[str, str], source: str) -> None:
    """Insert today's row or fill its empty columns. Recorded values are never replaced."""
    columns = {key: values.get(key) for key in RATE_FIELDS}
    conn.execute(
        """
        INSERT INTO rate_snapshots
        (rate_date, gold_rate_per_gram, usd_to_inr_rate, gst_percent, customs_duty_percent, state_tax_percent, source, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(rate_date)
        DO UPDATE SET
            gold_rate_per_gram = COALESCE(rate_snapshots.gold_rate_per_gram, excluded.gold_rate_per_gram),
            usd_to_inr_rate = COALESCE(rate_snapshots.usd_to_inr_rate, excluded.usd_to_inr_rate),
            gst_percent = COALESCE(rate_snapshots.gst_percent, excluded.gst_percent),
            customs_duty_percent = COALESCE(rate_snapshots.customs_duty_percent, excluded.customs_duty_percent),
            state_tax_percent = COALESCE(rate_snapshots.state_tax_percent, excluded.state_tax_percent),
            source = CASE
                WHEN rate_snapshots.source = '' THEN excluded.source
                WHEN excluded.source = '' OR instr(rate_snapshots.source, excluded.source) > 0 THEN rate_snapshots.source
                ELSE rate_snapshots.source || ', ' || excluded.source
            END,
            updated_at = excluded.updated_at
        """,
        (
            rate_date,
            columns["gold_rate_per_gram"],
            columns["usd_to_inr_rate"],
            columns["gst_percent"],
            columns["customs_duty_percent"],
            columns["state_tax_percent"],
            source,
            utc_now_iso(),
        ),
    )
    conn.commit()


def list_rate_rows(conn: sqlite3.Connection, limit: int = 30) -> list[sqlite3.Row]:
    return conn.execute(
        "SELECT * FROM rate_snapshots ORDER BY rate_date DESC LIMIT ?",
        (limit,),
    ).fetchall()
