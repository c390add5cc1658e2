"""
Unit tests for the claim protocol.
"""

import threading

import pytest

from teamwork.claims import ClaimProtocol, parse_evidence
from teamwork.errors import (
    ClaimVerificationError,
    InvalidTransitionError,
    NotClaimableError,
    NotFoundError,
    NotOwnerError,
    RoleMismatchError,
    ValidationError,
)
from teamwork.locking import lock_path_for
from teamwork.models import EvidenceType, TaskEvidence, TaskStatus


@pytest.fixture
def task(task_store):
    return task_store.create({"id": "T1", "subject": "Implement login", "role": "backend"})


class TestClaim:
    """Test claiming tasks."""

    def test_claim_open_task(self, claims, task):
        claimed = claims.claim("T1", "ownerX")

        assert claimed.status == TaskStatus.IN_PROGRESS
        assert claimed.claimed_by == "ownerX"
        assert claimed.claimed_at is not None
        assert claimed.version == 1
        assert not lock_path_for(claims.store.task_path("T1")).exists()

    def test_second_owner_cannot_claim(self, claims, task_store, task):
        """ownerX claims T1; ownerY then fails and the record is untouched."""
        claims.claim("T1", "ownerX")
        before = task_store.read("T1")

        with pytest.raises(NotClaimableError) as exc_info:
            claims.claim("T1", "ownerY")

        assert exc_info.value.current_owner == "ownerX"
        assert exc_info.value.status == "in_progress"
        assert task_store.read("T1") == before

    def test_same_owner_cannot_claim_twice(self, claims, task):
        claims.claim("T1", "ownerX")

        with pytest.raises(NotClaimableError):
            claims.claim("T1", "ownerX")

    def test_claim_resolved_task(self, claims, task):
        claims.claim("T1", "ownerX")
        claims.resolve("T1", "ownerX", ["done"])

        with pytest.raises(NotClaimableError) as exc_info:
            claims.claim("T1", "ownerY")
        assert exc_info.value.status == "resolved"

    def test_claim_with_matching_role(self, claims, task):
        assert claims.claim("T1", "ownerX", role="backend").claimed_by == "ownerX"

    def test_claim_with_wrong_role(self, claims, task_store, task):
        with pytest.raises(RoleMismatchError) as exc_info:
            claims.claim("T1", "ownerX", role="frontend")

        assert exc_info.value.task_role == "backend"
        assert task_store.read("T1").status == TaskStatus.OPEN

    def test_claim_with_unknown_role(self, claims, task):
        with pytest.raises(ValidationError):
            claims.claim("T1", "ownerX", role="astronaut")

    def test_claim_missing_task(self, claims):
        with pytest.raises(NotFoundError):
            claims.claim("T404", "ownerX")

    def test_claim_verification_failure(self, claims, task_store, task, monkeypatch):
        real_read = task_store.read
        calls = []

        def tampered_read(task_id):
            record = real_read(task_id)
            calls.append(task_id)
            if len(calls) == 2:
                record.claimed_by = "intruder"
            return record

        monkeypatch.setattr(task_store, "read", tampered_read)

        with pytest.raises(ClaimVerificationError) as exc_info:
            claims.claim("T1", "ownerX")
        assert exc_info.value.observed_owner == "intruder"

    def test_concurrent_claims_have_one_winner(self, claims, task):
        winners, losers, errors = [], [], []

        def worker(owner: str) -> None:
            try:
                claims.claim("T1", owner, timeout=30)
                winners.append(owner)
            except NotClaimableError:
                losers.append(owner)
            except Exception as e:  # surfaced below
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(f"w{i}",)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(winners) == 1
        assert len(losers) == 7
        assert claims.store.read("T1").claimed_by == winners[0]


class TestRelease:
    """Test releasing claimed tasks."""

    def test_release_by_owner(self, claims, task):
        claims.claim("T1", "ownerX")

        released = claims.release("T1", "ownerX")

        assert released.status == TaskStatus.OPEN
        assert released.claimed_by is None
        assert released.claimed_at is None

    def test_release_then_claim_by_other(self, claims, task):
        claims.claim("T1", "ownerX")
        claims.release("T1", "ownerX")

        assert claims.claim("T1", "ownerY").claimed_by == "ownerY"

    def test_release_by_non_owner(self, claims, task_store, task):
        claims.claim("T1", "ownerX")

        with pytest.raises(NotOwnerError):
            claims.release("T1", "ownerY")
        assert task_store.read("T1").claimed_by == "ownerX"

    def test_release_unclaimed_task(self, claims, task):
        with pytest.raises(NotOwnerError):
            claims.release("T1", "ownerX")

    def test_release_resolved_task(self, claims, task):
        claims.claim("T1", "ownerX")
        claims.resolve("T1", "ownerX", ["done"])

        with pytest.raises(InvalidTransitionError):
            claims.release("T1", "ownerX")


class TestResolve:
    """Test resolving tasks with evidence."""

    def test_resolve_records_evidence(self, claims, task):
        claims.claim("T1", "ownerX")

        resolved = claims.resolve(
            "T1",
            "ownerX",
            [
                {"type": "command", "command": "pytest", "exit_code": 0},
                {"type": "test", "test_file": "tests/test_login.py", "passed": 12, "failed": 0},
                "Reviewed manually",
            ],
        )

        assert resolved.status == TaskStatus.RESOLVED
        assert resolved.completed_at is not None
        assert [e.type for e in resolved.evidence] == [
            EvidenceType.COMMAND,
            EvidenceType.TEST,
            EvidenceType.MANUAL,
        ]
        assert claims.store.read("T1").evidence[2].description == "Reviewed manually"

    def test_resolve_by_non_owner(self, claims, task):
        claims.claim("T1", "ownerX")

        with pytest.raises(NotOwnerError):
            claims.resolve("T1", "ownerY", ["done"])

    def test_resolve_open_task(self, claims, task):
        with pytest.raises(NotOwnerError):
            claims.resolve("T1", "ownerX", ["done"])

    def test_resolve_twice(self, claims, task):
        claims.claim("T1", "ownerX")
        claims.resolve("T1", "ownerX", ["done"])

        with pytest.raises(InvalidTransitionError):
            claims.resolve("T1", "ownerX", ["again"])

    def test_invalid_evidence_writes_nothing(self, claims, task_store, task):
        claims.claim("T1", "ownerX")

        with pytest.raises(ValidationError):
            claims.resolve("T1", "ownerX", [{"type": "command"}])
        assert task_store.read("T1").status == TaskStatus.IN_PROGRESS

    def test_listeners_notified_after_unlock(self, claims, task):
        seen = []

        @claims.on_resolved
        def listener(record):
            seen.append(
                (record.id, record.status, claims.store.locks.is_locked(claims.store.task_path(record.id)))
            )

        claims.claim("T1", "ownerX")
        claims.resolve("T1", "ownerX", ["done"])

        assert seen == [("T1", TaskStatus.RESOLVED, False)]

    def test_failing_listener_does_not_undo_resolve(self, claims, task, caplog):
        seen = []

        @claims.on_resolved
        def broken(record):
            raise RuntimeError("notifier down")

        claims.on_resolved(lambda record: seen.append(record.id))
        claims.claim("T1", "ownerX")

        with caplog.at_level("ERROR", logger="teamwork"):
            resolved = claims.resolve("T1", "ownerX", ["done"])

        assert resolved.status == TaskStatus.RESOLVED
        assert claims.store.read("T1").status == TaskStatus.RESOLVED
        assert seen == ["T1"]
        assert "Resolve listener failed for task T1" in caplog.text
        assert any(r.levelname == "ERROR" and r.exc_info for r in caplog.records)

    def test_attach_evidence_keeps_status(self, claims, task):
        claims.claim("T1", "ownerX")

        updated = claims.attach_evidence(
            "T1", "ownerX", [{"type": "file", "path": "src/login.py", "action": "created"}]
        )

        assert updated.status == TaskStatus.IN_PROGRESS
        assert updated.evidence[0].path == "src/login.py"

    def test_attach_evidence_requires_items(self, claims, task):
        claims.claim("T1", "ownerX")

        with pytest.raises(ValidationError):
            claims.attach_evidence("T1", "ownerX", [])


class TestParseEvidence:
    def test_single_string(self):
        items = parse_evidence("looked at it")

        assert items == [TaskEvidence(type="manual", description="looked at it", timestamp=items[0].timestamp)]

    def test_none(self):
        assert parse_evidence(None) == []

    def test_file_evidence_requires_path(self):
        with pytest.raises(ValidationError):
            parse_evidence([{"type": "file"}])


def test_protocol_wraps_store(task_store):
    assert ClaimProtocol(task_store).store is task_store
