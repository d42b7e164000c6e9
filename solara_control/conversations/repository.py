"""Conversation history persistence (append-only per visitor and agent)."""

from __future__ import annotations

from collections import defaultdict
from threading import Lock
from typing import List, Protocol

import psycopg
from psycopg.rows import dict_row

from ..agents.schemas import ConversationTurn

HISTORY_DDL = """
CREATE TABLE IF NOT EXISTS conversation_history (
    id BIGSERIAL PRIMARY KEY,
    visitor_id TEXT NOT NULL,
    agent_id TEXT NOT NULL,
    role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
    content TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS conversation_history_lookup_idx
    ON conversation_history (visitor_id, agent_id, id);
"""


class ConversationHistoryStore(Protocol):
    """Append-only log of turns keyed by ``(visitor_id, agent_id)``."""

    def get_history(
        self, visitor_id: str, agent_id: str, limit: int
    ) -> List[ConversationTurn]: ...

    def append_turn(
        self, visitor_id: str, agent_id: str, role: str, content: str
    ) -> None: ...


class InMemoryConversationHistoryStore:
    """Process-local history store used in development and tests."""

    def __init__(self) -> None:
        self._turns: dict[tuple[str, str], list[ConversationTurn]] = defaultdict(list)
        self._lock = Lock()

    def get_history(
        self, visitor_id: str, agent_id: str, limit: int
    ) -> List[ConversationTurn]:
        if limit <= 0:
            return []
        with self._lock:
            return list(self._turns.get((visitor_id, agent_id), [])[-limit:])

    def append_turn(
        self, visitor_id: str, agent_id: str, role: str, content: str
    ) -> None:
        turn = ConversationTurn(role=role, content=content)
        with self._lock:
            self._turns[(visitor_id, agent_id)].append(turn)


class PostgresConversationHistoryStore:
    """PostgreSQL-backed history store."""

    def __init__(self, connection: psycopg.Connection):
        self._conn = connection

    def cursor(self):
        return self._conn.cursor(row_factory=dict_row)

    def ensure_schema(self) -> None:
        with self._conn.cursor() as cur:
            cur.execute(HISTORY_DDL)

    def get_history(
        self, visitor_id: str, agent_id: str, limit: int
    ) -> List[ConversationTurn]:
        if limit <= 0:
            return []
        with self.cursor() as cur:
            cur.execute(
                """
                SELECT role, content
                FROM conversation_history
                WHERE visitor_id = %s AND agent_id = %s
                ORDER BY id DESC
                LIMIT %s
                """,
                (visitor_id, agent_id, limit),
            )
            rows = cur.fetchall()
        return [ConversationTurn(role=row["role"], content=row["content"]) for row in reversed(rows)]

    def append_turn(
        self, visitor_id: str, agent_id: str, role: str, content: str
    ) -> None:
        with self.cursor() as cur:
            cur.execute(
                """
                INSERT INTO conversation_history (visitor_id, agent_id, role, content)
                VALUES (%s, %s, %s, %s)
                """,
                (visitor_id, agent_id, role, content),
            )
