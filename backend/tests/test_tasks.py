from __future__ import annotations

import asyncio

import pytest
from dramatiq.brokers.stub import StubBroker

import donation_verifier.core.tasks as tasks
from donation_verifier.models.enums import DonationState
from donation_verifier.models.schemas import ProcessingOutcome


def test_test_environment_uses_stub_broker():
    assert isinstance(tasks.broker, StubBroker)
    assert tasks.process_donation.queue_name == "donations"
    assert tasks.process_donation.options["max_retries"] == 0


def test_run_created_donation_disposes_private_engine(monkeypatch):
    events = []

    class DummyEngine:
        async def dispose(self):
            events.append("disposed")

    class DummyPipeline:
        async def process_created(self, donation_id):
            events.append(("processed", donation_id))
            return ProcessingOutcome(success=True, message="Donation accepted", state=DonationState.ACCEPTED)

    monkeypatch.setattr(tasks, "create_engine", lambda: DummyEngine())
    monkeypatch.setattr(tasks, "create_session_factory", lambda engine: "factory")
    monkeypatch.setattr(tasks, "build_pipeline", lambda factory: DummyPipeline())

    outcome = asyncio.run(tasks.run_created_donation("don_1"))

    assert outcome.state is DonationState.ACCEPTED
    assert events == [("processed", "don_1"), "disposed"]


def test_engine_is_disposed_when_pipeline_raises(monkeypatch):
    events = []

    class DummyEngine:
        async def dispose(self):
            events.append("disposed")

    class BrokenPipeline:
        async def process_created(self, donation_id):
            raise RuntimeError("database unavailable")

    monkeypatch.setattr(tasks, "create_engine", lambda: DummyEngine())
    monkeypatch.setattr(tasks, "create_session_factory", lambda engine: "factory")
    monkeypatch.setattr(tasks, "build_pipeline", lambda factory: BrokenPipeline())

    with pytest.raises(RuntimeError):
        asyncio.run(tasks.run_created_donation("don_1"))
    assert events == ["disposed"]


def test_actor_runs_pipeline_when_called_directly(monkeypatch):
    seen = []

    async def fake_run(donation_id):
        seen.append(donation_id)
        return None

    monkeypatch.setattr(tasks, "run_created_donation", fake_run)
    tasks.process_donation("don_7")
    assert seen == ["don_7"]
