"""
Vector Store with PostgreSQL + pgvector

Stores passages with their embeddings in a single `documents` table keyed
by (url, section) and serves cosine-similarity search filtered by
jurisdiction and, optionally, topic.

Search and write calls return Ok/Err results instead of raising: a failed
query degrades to an empty candidate list at the caller, which decides how
to log it. Nothing here retries.
"""

import os
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import ValidationError

from .errors import Err, Ok, Result, SearchUnavailable
from .models import CandidatePassage, PassageRecord, RetrievalFilters

try:
    import psycopg2
    import psycopg2.extras
    import psycopg2.pool
except ImportError:
    psycopg2 = None  # Will be caught at connect() time

logger = logging.getLogger(__name__)


@dataclass
class VectorStoreConfig:
    """Configuration for vector store."""
    connection_string: Optional[str] = None
    table_name: str = "documents"
    embedding_dimensions: int = 1536
    # Connection pooling settings
    pool_min_connections: int = 1
    pool_max_connections: int = 10
    use_pooling: bool = True


ROW_COLUMNS = (
    "id", "title", "url", "jurisdiction", "topic",
    "section", "content", "last_refreshed_at",
)


class VectorStore:
    """
    PostgreSQL passage store with pgvector.

    Features:
    - Cosine similarity search, deterministic ordering on ties (by id)
    - Jurisdiction / topic filtering
    - Idempotent upsert on (url, section), last writer wins
    """

    def __init__(self, config: Optional[VectorStoreConfig] = None):
        self.config = config or VectorStoreConfig()
        self._pool = None
        self._conn = None
        self._connection_string = (
            self.config.connection_string or
            os.getenv("POSTGRES_URL") or
            os.getenv("DATABASE_URL") or
            "postgresql://localhost:5432/compliance_rag"
        )

    def connect(self) -> None:
        """Establish database connection (with optional pooling)."""
        if psycopg2 is None:
            raise ImportError("psycopg2 not installed. Run: pip install psycopg2-binary")

        try:
            if self.config.use_pooling:
                self._pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=self.config.pool_min_connections,
                    maxconn=self.config.pool_max_connections,
                    dsn=self._connection_string,
                    cursor_factory=psycopg2.extras.RealDictCursor,
                )
                logger.info(
                    f"Connection pool initialized (min={self.config.pool_min_connections}, "
                    f"max={self.config.pool_max_connections})"
                )
            else:
                self._conn = psycopg2.connect(
                    self._connection_string,
                    cursor_factory=psycopg2.extras.RealDictCursor,
                )
                self._conn.autocommit = False
                logger.info("Connected to PostgreSQL with pgvector (single connection)")
        except Exception as e:
            logger.error(f"Database connection failed: {e}")
            raise

    def _is_connected(self) -> bool:
        return self._conn is not None or self._pool is not None

    @contextmanager
    def get_connection(self):
        """
        Context manager yielding a connection; returns it to the pool afterwards.

        Usage:
            with store.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
        """
        if not self._is_connected():
            self.connect()
        conn = self._pool.getconn() if self._pool else self._conn
        try:
            yield conn
        finally:
            if self._pool:
                self._pool.putconn(conn)

    def _execute(self, operation, label: str = "db_operation"):
        """Run ``operation(conn)``, rolling back on any failure. No retries."""
        with self.get_connection() as conn:
            try:
                return operation(conn)
            except Exception:
                self._safe_rollback(conn)
                raise

    def _safe_rollback(self, conn) -> None:
        """Rollback a connection, ignoring errors if the connection is dead."""
        try:
            conn.rollback()
        except Exception as e:
            logger.debug(f"Rollback failed: {e}")

    def close(self) -> None:
        """Close database connection(s)."""
        if self._pool:
            self._pool.closeall()
            self._pool = None
            logger.info("Connection pool closed")
        if self._conn:
            self._conn.close()
            self._conn = None

    # =========================================================================
    # Schema
    # =========================================================================

    def initialize_schema(self) -> None:
        """Create the extension, table and indexes if they don't exist."""
        table = self.config.table_name
        schema_sql = f"""
        CREATE EXTENSION IF NOT EXISTS vector;

        CREATE TABLE IF NOT EXISTS {table} (
            id BIGSERIAL PRIMARY KEY,
            title TEXT NOT NULL DEFAULT '',
            url TEXT NOT NULL,
            jurisdiction TEXT NOT NULL,
            topic TEXT,
            section TEXT NOT NULL,
            content TEXT NOT NULL,
            last_refreshed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            embedding VECTOR({self.config.embedding_dimensions}) NOT NULL,
            CONSTRAINT {table}_url_section_key UNIQUE (url, section)
        );

        CREATE INDEX IF NOT EXISTS idx_{table}_jurisdiction_topic
            ON {table}(jurisdiction, topic);
        CREATE INDEX IF NOT EXISTS idx_{table}_url
            ON {table}(url);
        CREATE INDEX IF NOT EXISTS idx_{table}_refreshed
            ON {table}(last_refreshed_at);
        CREATE INDEX IF NOT EXISTS idx_{table}_embedding_hnsw
            ON {table} USING hnsw (embedding vector_cosine_ops);
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(schema_sql)
            conn.commit()

        self._execute(_op, "initialize_schema")
        logger.info(f"Schema initialized for table {table}")

    # =========================================================================
    # Search / write
    # =========================================================================

    def search(
        self,
        query_embedding: list[float],
        filters: RetrievalFilters,
        limit: int = 12,
    ) -> Result:
        """
        Cosine-similarity search.

        Args:
            query_embedding: Query vector (store dimensionality)
            filters: Jurisdiction and optional topic
            limit: Maximum number of candidates

        Returns:
            Ok(list[CandidatePassage]) highest similarity first, ties by id;
            Err(SearchUnavailable) when the query fails
        """
        if len(query_embedding) != self.config.embedding_dimensions:
            return Err(SearchUnavailable(
                f"Query vector has {len(query_embedding)} dimensions, "
                f"store expects {self.config.embedding_dimensions}"
            ))

        sql = f"""
        SELECT
            id, title, url, jurisdiction, topic, section, content, last_refreshed_at,
            1 - (embedding <=> %(embedding)s::vector) AS similarity
        FROM {self.config.table_name}
        WHERE jurisdiction = %(jurisdiction)s
          AND (%(topic)s::text IS NULL OR topic = %(topic)s::text)
        ORDER BY embedding <=> %(embedding)s::vector, id
        LIMIT %(limit)s
        """
        params = {
            "embedding": _vector_literal(query_embedding),
            "jurisdiction": filters.jurisdiction,
            "topic": filters.topic.value if filters.topic else None,
            "limit": limit,
        }

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return cur.fetchall()

        try:
            rows = self._execute(_op, "search")
        except Exception as e:
            return Err(SearchUnavailable(f"Vector search failed: {e}"))

        candidates = []
        for row in rows:
            row = dict(row)
            try:
                record = PassageRecord.from_row(row)
            except ValidationError as e:
                return Err(SearchUnavailable(f"Malformed row {row.get('id')}: {e}"))
            candidates.append(CandidatePassage(
                record=record,
                similarity_score=float(row["similarity"]),
            ))

        return Ok(sort_candidates(candidates))

    def upsert(self, record: PassageRecord, embedding: list[float]) -> Result:
        """
        Insert or overwrite the row keyed by (record.url, record.section).

        Returns:
            Ok(PassageRecord) as stored (with id), or Err(SearchUnavailable)
        """
        if len(embedding) != self.config.embedding_dimensions:
            return Err(SearchUnavailable(
                f"Embedding has {len(embedding)} dimensions, "
                f"store expects {self.config.embedding_dimensions}"
            ))

        sql = f"""
        INSERT INTO {self.config.table_name}
            (title, url, jurisdiction, topic, section, content, last_refreshed_at, embedding)
        VALUES
            (%s, %s, %s, %s, %s, %s, %s, %s::vector)
        ON CONFLICT (url, section) DO UPDATE SET
            title = EXCLUDED.title,
            jurisdiction = EXCLUDED.jurisdiction,
            topic = EXCLUDED.topic,
            content = EXCLUDED.content,
            last_refreshed_at = EXCLUDED.last_refreshed_at,
            embedding = EXCLUDED.embedding
        RETURNING {", ".join(ROW_COLUMNS)}
        """
        values = (
            record.title,
            record.url,
            record.jurisdiction,
            record.topic.value if record.topic else None,
            record.section,
            record.content,
            record.last_refreshed_at,
            _vector_literal(embedding),
        )

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, values)
                row = cur.fetchone()
            conn.commit()
            return row

        try:
            row = self._execute(_op, "upsert")
            return Ok(PassageRecord.from_row(dict(row)))
        except Exception as e:
            return Err(SearchUnavailable(f"Upsert failed for {record.url} [{record.section}]: {e}"))

    def url_exists(self, url: str) -> Result:
        """Ok(True) when any passage is stored for ``url``."""
        sql = f"SELECT 1 FROM {self.config.table_name} WHERE url = %s LIMIT 1"

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (url,))
                return cur.fetchone() is not None

        try:
            return Ok(self._execute(_op, "url_exists"))
        except Exception as e:
            return Err(SearchUnavailable(f"Existence check failed for {url}: {e}"))

    # =========================================================================
    # Maintenance
    # =========================================================================

    def count(self) -> int:
        """Total number of stored passages."""
        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(f"SELECT COUNT(*) AS n FROM {self.config.table_name}")
                return int(cur.fetchone()["n"])

        return self._execute(_op, "count")

    def purge_stale(self, older_than_days: int = 30, now: Optional[datetime] = None) -> int:
        """Delete passages whose last_refreshed_at is older than the window. Returns rows deleted."""
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=older_than_days)
        sql = f"DELETE FROM {self.config.table_name} WHERE last_refreshed_at < %s"

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (cutoff,))
                deleted = cur.rowcount
            conn.commit()
            return deleted

        deleted = self._execute(_op, "purge_stale")
        logger.info(f"Purged {deleted} passages refreshed before {cutoff.isoformat()}")
        return deleted


def sort_candidates(candidates: list[CandidatePassage]) -> list[CandidatePassage]:
    """Highest similarity first; equal scores ordered by id so results are reproducible."""
    return sorted(candidates, key=lambda c: (-c.similarity_score, _id_sort_key(c.id)))


def _id_sort_key(value: Optional[str]) -> tuple:
    # Numeric ids compare numerically, anything else lexically
    if value is None:
        return (2, 0, "")
    if value.isdigit():
        return (0, int(value), "")
    return (1, 0, value)


def _vector_literal(vector: list[float]) -> str:
    """pgvector text format: [v1,v2,...]"""
    return "[" + ",".join(repr(float(v)) for v in vector) + "]"
