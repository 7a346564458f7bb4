"""
Proof Store — idempotence ledger for the relayer.

Tracks every proof identifier the agent has committed to: in-flight
submissions, settled proofs and rejected proofs.

Behavioral Contract:
- Settled and rejected entries are permanent. No settled entry is ever removed.
- The only removal is rolling back an in-flight marking after a failed attempt.
- Marking in-flight is an atomic check-and-set: at most one outstanding
  submission per identifier, across coroutines and threads.
- Backed by SQLite so a file-backed store survives restarts; an identifier
  left in-flight by a crash is never silently resubmitted.
"""

import logging
import sqlite3
import threading
from datetime import datetime
from typing import Dict, List, Optional

from proof_relayer.models.record import ProofRecord, ProofStatus

logger = logging.getLogger(__name__)


class ProofStore:
    """
    Settled / in-flight / rejected proof identifiers.
    Default: in-memory SQLite. Pass a file path for persistence.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the proofs table if it doesn't exist."""
        with self._lock:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS proofs (
                    proof_id TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    receipt_handle TEXT,
                    confirmed_block INTEGER,
                    rejection_reason TEXT,
                    updated_at TEXT NOT NULL
                )
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_proofs_status ON proofs(status)
            """)
            self._conn.commit()

    def try_mark_in_flight(self, proof_id: str) -> bool:
        """
        Atomically claim an identifier for submission.

        Returns False if the identifier is already in-flight, settled or rejected.
        """
        with self._lock:
            cursor = self._conn.execute(
                "INSERT OR IGNORE INTO proofs (proof_id, status, updated_at) "
                "VALUES (?, ?, ?)",
                (proof_id, ProofStatus.IN_FLIGHT.value, datetime.utcnow().isoformat()),
            )
            self._conn.commit()
            return cursor.rowcount == 1

    def mark_settled(
        self,
        proof_id: str,
        receipt_handle: Optional[str] = None,
        confirmed_block: Optional[int] = None,
    ) -> None:
        """Promote an identifier to settled. Settled is final."""
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO proofs (proof_id, status, receipt_handle, confirmed_block, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(proof_id) DO UPDATE SET
                    status = excluded.status,
                    receipt_handle = excluded.receipt_handle,
                    confirmed_block = excluded.confirmed_block,
                    updated_at = excluded.updated_at
                WHERE proofs.status = ?
                """,
                (
                    proof_id,
                    ProofStatus.SETTLED.value,
                    receipt_handle,
                    confirmed_block,
                    datetime.utcnow().isoformat(),
                    ProofStatus.IN_FLIGHT.value,
                ),
            )
            self._conn.commit()

    def rollback_in_flight(self, proof_id: str) -> bool:
        """Remove an in-flight marking so a later attempt can retry. Never touches settled entries."""
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM proofs WHERE proof_id = ? AND status = ?",
                (proof_id, ProofStatus.IN_FLIGHT.value),
            )
            self._conn.commit()
            return cursor.rowcount == 1

    def mark_rejected(self, proof_id: str, reason: str) -> bool:
        """Record a terminal validation rejection. No-op if the identifier is already known."""
        with self._lock:
            cursor = self._conn.execute(
                "INSERT OR IGNORE INTO proofs (proof_id, status, rejection_reason, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (
                    proof_id,
                    ProofStatus.REJECTED.value,
                    reason,
                    datetime.utcnow().isoformat(),
                ),
            )
            self._conn.commit()
            return cursor.rowcount == 1

    def _fetch_row(self, proof_id: str) -> Optional[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(
                "SELECT * FROM proofs WHERE proof_id = ?", (proof_id,)
            ).fetchone()

    def get(self, proof_id: str) -> Optional[ProofRecord]:
        """Get the record for an identifier, if any."""
        row = self._fetch_row(proof_id)
        return self._deserialize(row) if row else None

    def status(self, proof_id: str) -> Optional[ProofStatus]:
        row = self._fetch_row(proof_id)
        return ProofStatus(row["status"]) if row else None

    def is_known(self, proof_id: str) -> bool:
        """True for any in-flight, settled or rejected identifier."""
        return self._fetch_row(proof_id) is not None

    def is_settled(self, proof_id: str) -> bool:
        return self.status(proof_id) == ProofStatus.SETTLED

    def is_in_flight(self, proof_id: str) -> bool:
        return self.status(proof_id) == ProofStatus.IN_FLIGHT

    def ids_with_status(self, status: ProofStatus) -> List[str]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT proof_id FROM proofs WHERE status = ? ORDER BY rowid",
                (status.value,),
            ).fetchall()
        return [r["proof_id"] for r in rows]

    def settled_ids(self) -> List[str]:
        return self.ids_with_status(ProofStatus.SETTLED)

    def counts(self) -> Dict[str, int]:
        """Number of identifiers per status."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT status, COUNT(*) AS n FROM proofs GROUP BY status"
            ).fetchall()
        counts = {s.value: 0 for s in ProofStatus}
        for row in rows:
            counts[row["status"]] = row["n"]
        return counts

    def recover_in_flight(self) -> List[str]:
        """
        Identifiers left in-flight by a previous process.

        They stay marked: the submission may have landed, so they are reported
        for manual reconciliation instead of being retried.
        """
        stale = self.ids_with_status(ProofStatus.IN_FLIGHT)
        for proof_id in stale:
            logger.warning("proof.in_flight_on_startup proof_id=%s", proof_id)
        return stale

    def _deserialize(self, row: sqlite3.Row) -> ProofRecord:
        return ProofRecord(
            proof_id=row["proof_id"],
            status=ProofStatus(row["status"]),
            receipt_handle=row["receipt_handle"],
            confirmed_block=row["confirmed_block"],
            rejection_reason=row["rejection_reason"],
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def close(self) -> None:
        self._conn.close()
