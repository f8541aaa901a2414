"""Tests for domain event routing and batching."""

import json
from datetime import date
from uuid import uuid4

import pytest

from shift_engine.events import (
    ApplicationSubmitted,
    EventCategory,
    EventEmitter,
    EventMetadata,
    StandbyPromoted,
)


def submitted() -> ApplicationSubmitted:
    return ApplicationSubmitted(
        metadata=EventMetadata.create(actor_type="worker"),
        application_id=uuid4(),
        worker_id=uuid4(),
        job_id=uuid4(),
        shift_id=uuid4(),
        occurrence_date=date(2030, 6, 1),
        seat_kind="primary",
    )


def promoted() -> StandbyPromoted:
    return StandbyPromoted(
        metadata=EventMetadata.create(),
        application_id=uuid4(),
        worker_id=uuid4(),
        shift_id=uuid4(),
        occurrence_date=date(2030, 6, 1),
    )


class TestRouting:
    def test_type_subscription(self):
        emitter = EventEmitter()
        seen = []
        emitter.on(StandbyPromoted, seen.append)

        emitter.emit(submitted())
        event = promoted()
        emitter.emit(event)

        assert seen == [event]

    def test_category_subscription(self):
        emitter = EventEmitter()
        seen = []
        emitter.on_category(EventCategory.BOOKING, seen.append)

        emitter.emit(submitted())
        emitter.emit(promoted())

        assert [e.event_type for e in seen] == ["ApplicationSubmitted", "StandbyPromoted"]

    def test_handler_called_once_per_event(self):
        emitter = EventEmitter()
        seen = []
        emitter.on([ApplicationSubmitted, StandbyPromoted], seen.append)
        emitter.on_all(seen.append)

        emitter.emit(submitted())

        assert len(seen) == 1

    def test_off(self):
        emitter = EventEmitter()
        seen = []
        emitter.on(ApplicationSubmitted, seen.append)
        emitter.on_all(seen.append)
        emitter.off(seen.append)

        emitter.emit(submitted())

        assert seen == []

    def test_failing_handler_is_isolated(self):
        emitter = EventEmitter()
        seen = []

        def broken(event):
            raise RuntimeError("push gateway down")

        emitter.on_all(broken)
        emitter.on_all(seen.append)

        errors = emitter.emit(submitted())

        assert len(errors) == 1
        assert len(seen) == 1


class TestBatch:
    def test_published_on_clean_exit(self):
        emitter = EventEmitter()
        seen = []
        emitter.on_all(seen.append)

        with emitter.batch() as batch:
            batch.add(submitted())
            batch.add(promoted())
            assert len(batch.pending) == 2
            assert seen == []

        assert [e.event_type for e in seen] == ["ApplicationSubmitted", "StandbyPromoted"]
        assert batch.pending == []

    def test_discarded_on_error(self):
        emitter = EventEmitter()
        seen = []
        emitter.on_all(seen.append)

        with pytest.raises(ValueError):
            with emitter.batch() as batch:
                batch.add(submitted())
                raise ValueError("rolled back")

        assert seen == []


def test_event_serializes_to_json():
    event = submitted()
    data = json.loads(event.to_json())

    assert data["event_type"] == "ApplicationSubmitted"
    assert data["category"] == "booking"
    assert data["occurrence_date"] == "2030-06-01"
    assert data["application_id"] == str(event.application_id)
