"""
SQLite-backed Pattern Store

System of record for everything the learning AI remembers:
- patterns (+ pattern_tags inverted index)
- personal_facts
- learning_sessions
- interactions
- feedback_events

WAL mode allows concurrent readers while a request writes. Every operation
opens a short-lived connection with a 30s busy timeout; there is no
transaction spanning more than one public call.
"""

import json
import logging
import random
import re
import shutil
import sqlite3
import threading
import time
from contextlib import contextmanager
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from .patterns import (
    FeedbackEvent,
    LearningSession,
    Pattern,
    PersonalFact,
    parse_timestamp,
)
from .text_utils import normalize_question

logger = logging.getLogger(__name__)


_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS patterns (
        id TEXT PRIMARY KEY,
        question TEXT NOT NULL,
        normalized_question TEXT NOT NULL,
        answer TEXT NOT NULL,
        tags TEXT NOT NULL DEFAULT '[]',
        context TEXT NOT NULL DEFAULT '[]',
        source TEXT NOT NULL DEFAULT 'unknown',
        accuracy REAL NOT NULL DEFAULT 0.5,
        usage_count INTEGER NOT NULL DEFAULT 0,
        feedback INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        last_used TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_patterns_normalized ON patterns(normalized_question)",
    "CREATE INDEX IF NOT EXISTS idx_patterns_accuracy ON patterns(accuracy DESC, usage_count DESC)",
    "CREATE INDEX IF NOT EXISTS idx_patterns_created ON patterns(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_patterns_source ON patterns(source)",
    """
    CREATE TABLE IF NOT EXISTS pattern_tags (
        pattern_id TEXT NOT NULL,
        tag TEXT NOT NULL,
        PRIMARY KEY (pattern_id, tag)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_pattern_tags_tag ON pattern_tags(tag)",
    """
    CREATE TABLE IF NOT EXISTS personal_facts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        type TEXT NOT NULL,
        value TEXT NOT NULL,
        timestamp TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_personal_facts_type ON personal_facts(type, timestamp DESC)",
    """
    CREATE TABLE IF NOT EXISTS learning_sessions (
        id TEXT PRIMARY KEY,
        start_time TEXT NOT NULL,
        end_time TEXT,
        questions_asked INTEGER NOT NULL DEFAULT 0,
        patterns_learned INTEGER NOT NULL DEFAULT 0,
        duplicates_skipped INTEGER NOT NULL DEFAULT 0,
        topics TEXT NOT NULL DEFAULT '[]',
        status TEXT NOT NULL,
        error_message TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_sessions_start ON learning_sessions(start_time DESC)",
    """
    CREATE TABLE IF NOT EXISTS interactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        question TEXT NOT NULL,
        answer TEXT NOT NULL,
        pattern_id TEXT,
        timestamp TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS feedback_events (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        response_id TEXT,
        type TEXT NOT NULL,
        rating INTEGER,
        helpful INTEGER,
        comment TEXT,
        question TEXT,
        timestamp TEXT NOT NULL
    )
    """,
]


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="microseconds") if value else None


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@lru_cache(maxsize=256)
def _compile(pattern: str) -> "re.Pattern[str]":
    return re.compile(pattern, re.IGNORECASE)


def _regexp(pattern: str, value: Optional[str]) -> int:
    if value is None:
        return 0
    try:
        return 1 if _compile(pattern).search(value) else 0
    except re.error:
        return 0


def word_regex(words: Iterable[str]) -> Optional[str]:
    """``\\b(w1|w2|...)\\b`` for REGEXP queries, or None for no words."""
    escaped = [re.escape(w) for w in words if w]
    if not escaped:
        return None
    return r"\b(" + "|".join(escaped) + r")\b"


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PatternStore:
    """
    SQLite pattern store.

    Safe to share between threads; each call uses its own connection.
    """

    def __init__(self, storage_path: str = "data/aisync.db"):
        """
        Args:
            storage_path: Path to the SQLite database file
        """
        self.storage_path = Path(storage_path)
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    # ------------------------------------------------------------------
    # Connection and schema
    # ------------------------------------------------------------------

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection with proper timeout."""
        conn = sqlite3.connect(str(self.storage_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.create_function("REGEXP", 2, _regexp)
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        for statement in _SCHEMA:
            conn.execute(statement)

    def _init_database(self) -> None:
        """Create schema, enable WAL and verify integrity."""
        try:
            conn = self._get_connection()
            try:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("PRAGMA synchronous=NORMAL")

                integrity = conn.execute("PRAGMA integrity_check").fetchone()[0]
                if integrity != "ok":
                    raise sqlite3.DatabaseError(f"Database integrity check failed: {integrity}")

                self._create_schema(conn)
                conn.commit()
            finally:
                conn.close()
        except sqlite3.DatabaseError as e:
            logger.warning("Database corruption detected in %s: %s", self.storage_path, e)
            self._recover_corrupted_database()

    def _recover_corrupted_database(self) -> None:
        """
        Rebuild a corrupted database.

        The broken file is copied aside, every readable pattern row is
        salvaged, and a fresh schema is created with those rows restored.
        """
        backup_path = self.storage_path.with_suffix(
            f'.corrupted.{datetime.now().strftime("%Y%m%d_%H%M%S")}.db'
        )
        shutil.copy2(self.storage_path, backup_path)
        logger.warning("Backed up corrupted database to %s", backup_path)

        recovered: List[Dict] = []
        try:
            conn = sqlite3.connect(str(self.storage_path))
            conn.row_factory = sqlite3.Row
            try:
                recovered = [dict(row) for row in conn.execute("SELECT * FROM patterns")]
            finally:
                conn.close()
        except sqlite3.DatabaseError as e:
            logger.warning("Could not salvage patterns: %s", e)

        self._remove_database_files()
        with self._connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            self._create_schema(conn)
            for row in recovered:
                try:
                    self._insert_row(conn, row)
                except (sqlite3.DatabaseError, KeyError) as e:
                    logger.warning("Could not restore pattern %s: %s", row.get("id"), e)

        logger.info("Database recovered, restored %d patterns", len(recovered))

    def reset_database(self, keep_backup: bool = True) -> Optional[Path]:
        """
        Reset database to a fresh, empty state.

        Returns:
            Path to the backup file (if created)
        """
        backup_path = None
        if keep_backup and self.storage_path.exists():
            backup_path = self.storage_path.with_suffix(
                f'.backup.{datetime.now().strftime("%Y%m%d_%H%M%S")}.db'
            )
            shutil.copy2(self.storage_path, backup_path)
            logger.info("Backup created: %s", backup_path)

        self._remove_database_files()
        self._init_database()
        return backup_path

    def _remove_database_files(self) -> None:
        for suffix in ("", "-wal", "-shm"):
            candidate = Path(str(self.storage_path) + suffix)
            if candidate.exists():
                candidate.unlink()

    # ------------------------------------------------------------------
    # Patterns
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_pattern(row: sqlite3.Row) -> Pattern:
        return Pattern(
            id=row["id"],
            question=row["question"],
            answer=row["answer"],
            tags=json.loads(row["tags"] or "[]"),
            context=json.loads(row["context"] or "[]"),
            source=row["source"],
            accuracy=row["accuracy"],
            usage_count=row["usage_count"],
            feedback=row["feedback"],
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
            last_used=parse_timestamp(row["last_used"]),
        )

    @staticmethod
    def _insert_row(conn: sqlite3.Connection, row: Dict) -> None:
        conn.execute(
            """
            INSERT INTO patterns
            (id, question, normalized_question, answer, tags, context, source,
             accuracy, usage_count, feedback, created_at, updated_at, last_used)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                row["id"], row["question"], row["normalized_question"], row["answer"],
                row["tags"], row["context"], row["source"], row["accuracy"],
                row["usage_count"], row["feedback"], row["created_at"],
                row["updated_at"], row["last_used"],
            ),
        )
        conn.executemany(
            "INSERT OR IGNORE INTO pattern_tags (pattern_id, tag) VALUES (?, ?)",
            [(row["id"], tag) for tag in json.loads(row["tags"])],
        )

    def add_pattern(self, pattern: Pattern) -> Pattern:
        """
        Insert a pattern, assigning its id.

        Accuracy is clamped to [0, 1] and tags are lowercased and
        de-duplicated before writing.

        Returns:
            The stored pattern (same object, with ``id`` set)
        """
        tags: List[str] = []
        for tag in pattern.tags:
            tag = tag.strip().lower()
            if tag and tag not in tags:
                tags.append(tag)
        pattern.tags = tags
        pattern.accuracy = _clamp(pattern.accuracy)

        timestamp_ms = int(time.time() * 1000)
        explicit_id = pattern.id is not None
        max_retries = 3
        for attempt in range(max_retries):
            if not explicit_id:
                pattern.id = f"pattern_{pattern.source}_{timestamp_ms}_{random.randint(0, 9999)}"
            row = {
                "id": pattern.id,
                "question": pattern.question,
                "normalized_question": normalize_question(pattern.question),
                "answer": pattern.answer,
                "tags": json.dumps(pattern.tags),
                "context": json.dumps(pattern.context),
                "source": pattern.source,
                "accuracy": pattern.accuracy,
                "usage_count": pattern.usage_count,
                "feedback": pattern.feedback,
                "created_at": _ts(pattern.created_at),
                "updated_at": _ts(pattern.updated_at),
                "last_used": _ts(pattern.last_used),
            }
            try:
                with self._connection() as conn:
                    self._insert_row(conn, row)
                return pattern
            except sqlite3.IntegrityError:
                # ID collision (very rare), generate a new one
                if explicit_id or attempt == max_retries - 1:
                    raise

        return pattern

    def get_pattern(self, pattern_id: str) -> Optional[Pattern]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM patterns WHERE id = ?", (pattern_id,)).fetchone()
        return self._row_to_pattern(row) if row else None

    def find_by_normalized_question(self, question: str, limit: int = 10) -> List[Pattern]:
        """Patterns whose question normalizes to the same text as ``question``."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM patterns WHERE normalized_question = ?
                ORDER BY accuracy DESC, usage_count DESC LIMIT ?
                """,
                (normalize_question(question), limit),
            ).fetchall()
        return [self._row_to_pattern(r) for r in rows]

    def find_candidates(
        self,
        keywords: Sequence[str],
        question: str = "",
        limit: int = 20,
    ) -> List[Pattern]:
        """
        Candidate patterns for similarity scoring.

        Exact normalized-question matches come first, then patterns that
        share a tag with ``keywords`` or mention one of them as a whole word.
        """
        candidates: Dict[str, Pattern] = {}
        if question:
            for pattern in self.find_by_normalized_question(question, limit=limit):
                candidates[pattern.id] = pattern

        regex = word_regex(keywords)
        if regex:
            placeholders = ",".join("?" for _ in keywords)
            with self._connection() as conn:
                rows = conn.execute(
                    f"""
                    SELECT * FROM patterns
                    WHERE id IN (SELECT pattern_id FROM pattern_tags WHERE tag IN ({placeholders}))
                       OR question REGEXP ?
                    ORDER BY accuracy DESC, usage_count DESC, feedback DESC, updated_at DESC
                    LIMIT ?
                    """,
                    (*keywords, regex, limit),
                ).fetchall()
            for row in rows:
                candidates.setdefault(row["id"], self._row_to_pattern(row))

        return list(candidates.values())

    def find_recent_similar_questions(
        self,
        words: Sequence[str],
        since: datetime,
        limit: int = 5,
        source: Optional[str] = None,
    ) -> List[Pattern]:
        """Patterns created since ``since`` whose question mentions any of ``words``."""
        return self._find_recent("question", words, since, limit, source)

    def find_recent_answers(
        self,
        words: Sequence[str],
        since: datetime,
        limit: int = 3,
        source: Optional[str] = None,
    ) -> List[Pattern]:
        """Patterns created since ``since`` whose answer mentions any of ``words``."""
        return self._find_recent("answer", words, since, limit, source)

    def _find_recent(
        self,
        column: str,
        words: Sequence[str],
        since: datetime,
        limit: int,
        source: Optional[str],
    ) -> List[Pattern]:
        regex = word_regex(words)
        if not regex:
            return []
        query = f"SELECT * FROM patterns WHERE {column} REGEXP ? AND created_at >= ?"
        params: List = [regex, _ts(since)]
        if source:
            query += " AND source = ?"
            params.append(source)
        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)
        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_pattern(r) for r in rows]

    def find_by_tags(
        self,
        tags: Sequence[str],
        limit: int = 20,
        min_accuracy: Optional[float] = None,
    ) -> List[Pattern]:
        if not tags:
            return []
        placeholders = ",".join("?" for _ in tags)
        query = f"""
            SELECT * FROM patterns
            WHERE id IN (SELECT pattern_id FROM pattern_tags WHERE tag IN ({placeholders}))
        """
        params: List = [t.lower() for t in tags]
        if min_accuracy is not None:
            query += " AND accuracy >= ?"
            params.append(min_accuracy)
        query += " ORDER BY accuracy DESC, usage_count DESC LIMIT ?"
        params.append(limit)
        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_pattern(r) for r in rows]

    def find_related(self, keywords: Sequence[str], question: str = "", limit: int = 50) -> List[Pattern]:
        """Patterns tagged with any of ``keywords`` or whose question contains ``question``."""
        clauses = []
        params: List = []
        if keywords:
            placeholders = ",".join("?" for _ in keywords)
            clauses.append(f"id IN (SELECT pattern_id FROM pattern_tags WHERE tag IN ({placeholders}))")
            params.extend(keywords)
        if question.strip():
            clauses.append("question LIKE ? ESCAPE '\\'")
            params.append(f"%{_escape_like(question.strip())}%")
        if not clauses:
            return []
        params.append(limit)
        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM patterns WHERE {' OR '.join(clauses)} LIMIT ?", params
            ).fetchall()
        return [self._row_to_pattern(r) for r in rows]

    def record_usage(self, pattern_id: str) -> None:
        """Increment usage_count and touch updated_at/last_used."""
        now = _ts(datetime.now())
        with self._connection() as conn:
            conn.execute(
                """
                UPDATE patterns
                SET usage_count = usage_count + 1, updated_at = ?, last_used = ?
                WHERE id = ?
                """,
                (now, now, pattern_id),
            )

    def adjust_accuracy(self, pattern_id: str, delta: float, feedback_delta: int = 0) -> bool:
        """
        Nudge accuracy by ``delta`` (clamped to [0, 1]) and the feedback counter.

        Returns:
            True if the pattern exists
        """
        with self._connection() as conn:
            cursor = conn.execute(
                """
                UPDATE patterns
                SET accuracy = MIN(1.0, MAX(0.0, accuracy + ?)),
                    feedback = feedback + ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (delta, feedback_delta, _ts(datetime.now()), pattern_id),
            )
            return cursor.rowcount > 0

    def update_answer(self, pattern_id: str, answer: str, accuracy: Optional[float] = None) -> None:
        with self._connection() as conn:
            if accuracy is None:
                conn.execute(
                    "UPDATE patterns SET answer = ?, updated_at = ? WHERE id = ?",
                    (answer, _ts(datetime.now()), pattern_id),
                )
            else:
                conn.execute(
                    "UPDATE patterns SET answer = ?, accuracy = ?, updated_at = ? WHERE id = ?",
                    (answer, _clamp(accuracy), _ts(datetime.now()), pattern_id),
                )

    def list_patterns(
        self,
        limit: int = 100,
        max_accuracy: Optional[float] = None,
        source: Optional[str] = None,
    ) -> List[Pattern]:
        query = "SELECT * FROM patterns WHERE 1 = 1"
        params: List = []
        if max_accuracy is not None:
            query += " AND accuracy < ?"
            params.append(max_accuracy)
        if source:
            query += " AND source = ?"
            params.append(source)
        query += " ORDER BY updated_at DESC LIMIT ?"
        params.append(limit)
        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_pattern(r) for r in rows]

    def count_patterns(self, source: Optional[str] = None, since: Optional[datetime] = None) -> int:
        query = "SELECT COUNT(*) FROM patterns WHERE 1 = 1"
        params: List = []
        if source:
            query += " AND source = ?"
            params.append(source)
        if since:
            query += " AND created_at >= ?"
            params.append(_ts(since))
        with self._connection() as conn:
            return conn.execute(query, params).fetchone()[0]

    def average_accuracy(self) -> float:
        with self._connection() as conn:
            value = conn.execute("SELECT AVG(accuracy) FROM patterns").fetchone()[0]
        return value or 0.0

    def tag_counts(
        self,
        since: Optional[datetime] = None,
        source: Optional[str] = None,
        limit: int = 20,
    ) -> Dict[str, int]:
        """Most frequent tags, optionally restricted by creation time and source."""
        query = """
            SELECT t.tag AS tag, COUNT(*) AS count
            FROM pattern_tags t JOIN patterns p ON p.id = t.pattern_id
            WHERE 1 = 1
        """
        params: List = []
        if since:
            query += " AND p.created_at >= ?"
            params.append(_ts(since))
        if source:
            query += " AND p.source = ?"
            params.append(source)
        query += " GROUP BY t.tag ORDER BY count DESC, t.tag ASC LIMIT ?"
        params.append(limit)
        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return {row["tag"]: row["count"] for row in rows}

    def get_stats(self) -> Dict:
        """Get comprehensive database statistics."""
        with self._connection() as conn:
            total = conn.execute("SELECT COUNT(*) FROM patterns").fetchone()[0]
            stats_row = conn.execute(
                """
                SELECT AVG(accuracy), MIN(accuracy), MAX(accuracy), AVG(usage_count)
                FROM patterns
                """
            ).fetchone()
            by_source = {
                row[0]: {"count": row[1], "avg_accuracy": row[2]}
                for row in conn.execute(
                    """
                    SELECT source, COUNT(*), AVG(accuracy) FROM patterns
                    GROUP BY source ORDER BY COUNT(*) DESC
                    """
                )
            }

        return {
            "total_patterns": total,
            "avg_accuracy": stats_row[0] or 0.0,
            "min_accuracy": stats_row[1] or 0.0,
            "max_accuracy": stats_row[2] or 0.0,
            "avg_usage_count": stats_row[3] or 0.0,
            "by_source": by_source,
        }

    def prune_low_quality_patterns(self, threshold: float = 0.05) -> int:
        """
        Remove patterns whose accuracy fell below ``threshold``.

        Returns:
            Number of patterns pruned
        """
        with self._connection() as conn:
            count = conn.execute(
                "SELECT COUNT(*) FROM patterns WHERE accuracy < ?", (threshold,)
            ).fetchone()[0]
            conn.execute("DELETE FROM patterns WHERE accuracy < ?", (threshold,))
            self._delete_orphan_tags(conn)
        return count

    def cap_size(self, max_patterns: int) -> int:
        """
        Delete the weakest patterns until at most ``max_patterns`` remain.

        Weakest means lowest accuracy, then least used, then oldest update.

        Returns:
            Number of patterns deleted
        """
        with self._connection() as conn:
            total = conn.execute("SELECT COUNT(*) FROM patterns").fetchone()[0]
            excess = total - max_patterns
            if excess <= 0:
                return 0
            conn.execute(
                """
                DELETE FROM patterns WHERE id IN (
                    SELECT id FROM patterns
                    ORDER BY accuracy ASC, usage_count ASC, updated_at ASC
                    LIMIT ?
                )
                """,
                (excess,),
            )
            self._delete_orphan_tags(conn)
        logger.info("Size cap removed %d patterns", excess)
        return excess

    @staticmethod
    def _delete_orphan_tags(conn: sqlite3.Connection) -> None:
        conn.execute("DELETE FROM pattern_tags WHERE pattern_id NOT IN (SELECT id FROM patterns)")

    # ------------------------------------------------------------------
    # Personal facts
    # ------------------------------------------------------------------

    def add_personal_fact(self, fact: PersonalFact) -> PersonalFact:
        with self._connection() as conn:
            cursor = conn.execute(
                "INSERT INTO personal_facts (type, value, timestamp) VALUES (?, ?, ?)",
                (fact.type, fact.value, _ts(fact.timestamp)),
            )
            fact.id = cursor.lastrowid
        return fact

    def facts_of_type(self, fact_type: str, limit: int = 10) -> List[PersonalFact]:
        """Facts of one type, newest first."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM personal_facts WHERE type = ?
                ORDER BY timestamp DESC, id DESC LIMIT ?
                """,
                (fact_type, limit),
            ).fetchall()
        return [
            PersonalFact(
                id=row["id"],
                type=row["type"],
                value=row["value"],
                timestamp=parse_timestamp(row["timestamp"]),
            )
            for row in rows
        ]

    def latest_fact(self, fact_type: str) -> Optional[PersonalFact]:
        facts = self.facts_of_type(fact_type, limit=1)
        return facts[0] if facts else None

    def count_personal_facts(self) -> int:
        with self._connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM personal_facts").fetchone()[0]

    # ------------------------------------------------------------------
    # Learning sessions
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> LearningSession:
        return LearningSession(
            id=row["id"],
            start_time=parse_timestamp(row["start_time"]),
            end_time=parse_timestamp(row["end_time"]),
            questions_asked=row["questions_asked"],
            patterns_learned=row["patterns_learned"],
            duplicates_skipped=row["duplicates_skipped"],
            topics=json.loads(row["topics"] or "[]"),
            status=row["status"],
            error_message=row["error_message"],
        )

    def create_session(self, session: LearningSession) -> LearningSession:
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO learning_sessions
                (id, start_time, end_time, questions_asked, patterns_learned,
                 duplicates_skipped, topics, status, error_message)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session.id, _ts(session.start_time), _ts(session.end_time),
                    session.questions_asked, session.patterns_learned,
                    session.duplicates_skipped, json.dumps(session.topics),
                    session.status, session.error_message,
                ),
            )
        return session

    def update_session(self, session: LearningSession) -> None:
        with self._connection() as conn:
            conn.execute(
                """
                UPDATE learning_sessions
                SET end_time = ?, questions_asked = ?, patterns_learned = ?,
                    duplicates_skipped = ?, topics = ?, status = ?, error_message = ?
                WHERE id = ?
                """,
                (
                    _ts(session.end_time), session.questions_asked,
                    session.patterns_learned, session.duplicates_skipped,
                    json.dumps(session.topics), session.status,
                    session.error_message, session.id,
                ),
            )

    def get_session(self, session_id: str) -> Optional[LearningSession]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM learning_sessions WHERE id = ?", (session_id,)
            ).fetchone()
        return self._row_to_session(row) if row else None

    def recent_sessions(self, limit: int = 5, status: Optional[str] = None) -> List[LearningSession]:
        query = "SELECT * FROM learning_sessions"
        params: List = []
        if status:
            query += " WHERE status = ?"
            params.append(status)
        query += " ORDER BY start_time DESC LIMIT ?"
        params.append(limit)
        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_session(r) for r in rows]

    def latest_session(self, status: Optional[str] = None) -> Optional[LearningSession]:
        sessions = self.recent_sessions(limit=1, status=status)
        return sessions[0] if sessions else None

    def count_sessions(self) -> int:
        with self._connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM learning_sessions").fetchone()[0]

    # ------------------------------------------------------------------
    # Interactions and feedback
    # ------------------------------------------------------------------

    def record_interaction(self, question: str, answer: str, pattern_id: Optional[str] = None) -> None:
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO interactions (question, answer, pattern_id, timestamp) VALUES (?, ?, ?, ?)",
                (question, answer, pattern_id, _ts(datetime.now())),
            )

    def count_interactions(self) -> int:
        with self._connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM interactions").fetchone()[0]

    def record_feedback(self, event: FeedbackEvent) -> int:
        with self._connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO feedback_events
                (response_id, type, rating, helpful, comment, question, timestamp)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.response_id, event.type, event.rating,
                    None if event.helpful is None else int(event.helpful),
                    event.comment, event.question, _ts(event.timestamp),
                ),
            )
            return cursor.lastrowid

    def feedback_counts(self) -> Dict[str, int]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT type, COUNT(*) FROM feedback_events GROUP BY type"
            ).fetchall()
        return {row[0]: row[1] for row in rows}


_default_store: Optional[PatternStore] = None
_default_store_lock = threading.Lock()


def get_default_store(storage_path: Optional[str] = None) -> PatternStore:
    """
    Process-wide store, created on first use.

    The path is only honoured on the first call.
    """
    global _default_store
    if _default_store is None:
        with _default_store_lock:
            if _default_store is None:
                from .config import LearningConfig

                path = storage_path or LearningConfig.from_env().db_path
                _default_store = PatternStore(path)
    return _default_store


__all__ = ["PatternStore", "get_default_store", "word_regex"]
