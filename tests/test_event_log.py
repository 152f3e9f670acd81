"""Tests for the audit event log — append-only, hashed, verified on load."""

import json
from datetime import datetime, timezone

import pytest

from qfround.persistence.event_log import EventKind, EventLog, EventRecord


def _event(event_id: str, kind: EventKind = EventKind.VOTE_CAST) -> EventRecord:
    return EventRecord.create(
        event_id=event_id,
        event_kind=kind,
        actor_id="bob",
        payload={"proposal_id": 1, "amount": "500"},
        timestamp_utc=datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc),
    )


class TestEventRecord:
    def test_hash_is_deterministic(self) -> None:
        assert _event("EVT-1").event_hash == _event("EVT-1").event_hash
        assert _event("EVT-1").event_hash != _event("EVT-2").event_hash

    def test_timestamp_format(self) -> None:
        assert _event("EVT-1").timestamp_utc == "2024-06-01T12:00:00Z"


class TestEventLog:
    def test_append_and_filter(self) -> None:
        log = EventLog()
        log.append(_event("EVT-1", EventKind.PROPOSAL_CREATED))
        log.append(_event("EVT-2"))
        assert log.count == 2
        assert [e.event_id for e in log.events(EventKind.VOTE_CAST)] == ["EVT-2"]
        assert log.last_event.event_id == "EVT-2"

    def test_duplicate_id_rejected(self) -> None:
        log = EventLog()
        log.append(_event("EVT-1"))
        with pytest.raises(ValueError):
            log.append(_event("EVT-1"))
        assert log.count == 1

    def test_reload_from_file(self, tmp_path) -> None:
        path = tmp_path / "events.jsonl"
        log = EventLog(path)
        log.append(_event("EVT-1"))
        log.append(_event("EVT-2"))

        reloaded = EventLog(path)
        assert reloaded.event_hashes() == log.event_hashes()

    def test_tampered_record_rejected(self, tmp_path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(path).append(_event("EVT-1"))

        record = json.loads(path.read_text())
        record["payload"]["amount"] = "5000"
        path.write_text(json.dumps(record) + "\n")

        with pytest.raises(ValueError, match="Integrity check failed"):
            EventLog(path)

    def test_duplicate_on_recovery_rejected(self, tmp_path) -> None:
        path = tmp_path / "events.jsonl"
        line = json.dumps(_event("EVT-1").to_dict())
        path.write_text(line + "\n" + line + "\n")
        with pytest.raises(ValueError, match="Duplicate event ID"):
            EventLog(path)
