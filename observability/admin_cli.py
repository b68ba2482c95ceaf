"""Lightweight CLI helpers for inspecting stored interview sessions."""
from __future__ import annotations

import argparse
import json
import sqlite3
from typing import List, Optional

from config.settings import settings
from interview_flow.models import ScoreAggregate


def tail_sessions(limit: int = 20, owner_id: Optional[str] = None) -> List[str]:
    conn = sqlite3.connect(settings.DB_PATH)
    lines: List[str] = []
    try:
        cursor = conn.cursor()
        query = """
            SELECT updated_at, session_id, owner_id, status, turns_completed, version, end_requested, aggregate_json
            FROM interview_sessions
        """
        params: tuple = (limit,)
        if owner_id:
            query += " WHERE owner_id = ?"
            params = (owner_id, limit)
        query += " ORDER BY updated_at DESC, rowid DESC LIMIT ?"
        cursor.execute(query, params)
        for row in cursor.fetchall():
            ts, session_id, owner, status, turns, version, ended, aggregate_json = row
            means = ScoreAggregate.model_validate_json(aggregate_json).means()
            line = (
                f"[{ts}] {session_id} owner={owner} status={status} turns={turns} "
                f"v={version} ended={bool(ended)} means={json.dumps(means)}"
            )
            print(line)
            lines.append(line)
    finally:
        conn.close()
    return lines


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--tail-sessions", type=int, default=20, help="Show the most recently updated sessions")
    parser.add_argument("--owner", help="Restrict output to one owner id")
    args = parser.parse_args()

    tail_sessions(args.tail_sessions, owner_id=args.owner)


if __name__ == "__main__":
    main()
