"""
Unit tests for the scheduler loop.

The fake executor parks every request on a future so each test decides when
and how the executor answers.
"""

import asyncio

import pytest

from offlinetube.core.intents import Enqueue, Pause, Remove, Resume, Retry, SetBudget
from offlinetube.core.models import TaskStatus
from offlinetube.core.scheduler import SchedulerLoop
from offlinetube.core.store import QueueStore
from offlinetube.services.executor_client import (
    Accepted, Completed, Failed, FailureReason, Rejected
)
from tests.conftest import FakeExecutorClient, locator_for, make_ref, settle


def statuses(store: QueueStore):
    return {task.id: task.status for task in store.state}


def build(budget: int = 2, completion_check: bool = False):
    store = QueueStore(budget=budget)
    client = FakeExecutorClient()
    notifications = []
    outcomes = []
    scheduler = SchedulerLoop(
        store,
        client,
        completion_check=completion_check,
        notify=notifications.append,
        on_outcome=outcomes.append,
    )
    return store, client, scheduler, notifications, outcomes


class TestAdmission:
    """Test budget-bounded admission."""

    @pytest.mark.asyncio
    async def test_happy_path_within_budget(self):
        store, client, scheduler, notifications, outcomes = build(budget=2)
        scheduler.start()

        store.dispatch(Enqueue([make_ref("v1"), make_ref("v2"), make_ref("v3")]))
        await settle()

        assert client.started_ids == ["v1", "v2"]
        assert statuses(store) == {
            "v1": TaskStatus.STARTING, "v2": TaskStatus.STARTING, "v3": TaskStatus.QUEUED
        }

        client.start_future("v1").set_result(Accepted(locator_for("v1")))
        await settle()

        assert store.state.get("v1").status == TaskStatus.READY
        assert store.state.get("v1").download_locator == locator_for("v1")
        assert client.started_ids == ["v1", "v2", "v3"]
        assert store.state.in_flight_count == 2

        client.start_future("v2").set_result(Accepted(locator_for("v2")))
        client.start_future("v3").set_result(Accepted(locator_for("v3")))
        await settle()

        assert set(statuses(store).values()) == {TaskStatus.READY}
        assert [n.title for n in notifications] == ["Download ready"] * 3
        assert outcomes == ["accepted"] * 3
        assert scheduler.running_tasks == {}

        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_start_admits_already_queued_tasks(self):
        store, client, scheduler, _, _ = build(budget=1)
        store.dispatch(Enqueue([make_ref("v1"), make_ref("v2")]))

        scheduler.start()
        await settle()

        assert client.started_ids == ["v1"]
        assert scheduler.is_running
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_zero_budget_admits_nothing(self):
        store, client, scheduler, _, _ = build(budget=0)
        scheduler.start()

        store.dispatch(Enqueue([make_ref("v1")]))
        await settle()

        assert client.started_ids == []
        assert store.state.get("v1").status == TaskStatus.QUEUED
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_raising_budget_admits_more(self):
        store, client, scheduler, _, _ = build(budget=1)
        scheduler.start()
        store.dispatch(Enqueue([make_ref("v1"), make_ref("v2"), make_ref("v3")]))
        await settle()

        store.dispatch(SetBudget(3))
        await settle()

        assert client.started_ids == ["v1", "v2", "v3"]
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_lowering_budget_does_not_cancel_in_flight(self):
        store, client, scheduler, _, _ = build(budget=2)
        scheduler.start()
        store.dispatch(Enqueue([make_ref("v1"), make_ref("v2"), make_ref("v3")]))
        await settle()

        store.dispatch(SetBudget(1))
        client.start_future("v1").set_result(Accepted(locator_for("v1")))
        await settle()

        assert store.state.get("v2").status == TaskStatus.STARTING
        assert store.state.get("v3").status == TaskStatus.QUEUED
        assert client.started_ids == ["v1", "v2"]

        client.start_future("v2").set_result(Accepted(locator_for("v2")))
        await settle()

        assert client.started_ids == ["v1", "v2", "v3"]
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_fifo_admission_one_at_a_time(self):
        store, client, scheduler, _, _ = build(budget=1)
        admitted = []

        def record_admissions(state):
            for task in state:
                if task.is_in_flight and task.id not in admitted:
                    admitted.append(task.id)

        store.subscribe(record_admissions)
        scheduler.start()

        store.dispatch(Enqueue([make_ref("A"), make_ref("B"), make_ref("C")]))
        await settle()
        assert statuses(store) == {
            "A": TaskStatus.STARTING, "B": TaskStatus.QUEUED, "C": TaskStatus.QUEUED
        }

        client.start_future("A").set_result(Accepted(locator_for("A")))
        await settle()
        assert statuses(store) == {
            "A": TaskStatus.READY, "B": TaskStatus.STARTING, "C": TaskStatus.QUEUED
        }

        client.start_future("B").set_result(Accepted(locator_for("B")))
        await settle()
        assert statuses(store) == {
            "A": TaskStatus.READY, "B": TaskStatus.READY, "C": TaskStatus.STARTING
        }

        client.start_future("C").set_result(Accepted(locator_for("C")))
        await settle()

        assert set(statuses(store).values()) == {TaskStatus.READY}
        assert admitted == ["A", "B", "C"]
        assert client.started_ids == ["A", "B", "C"]
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_in_flight_never_exceeds_budget(self):
        store, client, scheduler, _, _ = build(budget=1, completion_check=True)
        snapshots = []
        store.subscribe(lambda state: snapshots.append((state.in_flight_count, state.budget)))
        scheduler.start()

        store.dispatch(Enqueue([make_ref("v1"), make_ref("v2"), make_ref("v3"), make_ref("v4")]))
        await settle()
        store.dispatch(SetBudget(3))
        await settle()
        assert client.started_ids == ["v1", "v2", "v3"]

        store.dispatch(Pause("v2"))
        await settle()
        store.dispatch(Resume("v2"))
        await settle()
        assert client.started_ids == ["v1", "v2", "v3", "v4"]
        assert store.state.get("v2").status == TaskStatus.QUEUED

        client.start_future("v1").set_result(Accepted(locator_for("v1")))
        await settle()
        _, on_progress, _ = client.wait_entry("v1.mp4")
        on_progress(50)

        client.start_future("v3").set_result(Rejected("yt-dlp exited with code 1", FailureReason.EXECUTOR))
        await settle()
        store.dispatch(Retry("v3"))
        await settle()
        assert store.state.get("v2").status == TaskStatus.STARTING
        assert store.state.get("v3").status == TaskStatus.QUEUED

        store.dispatch(Remove("v4"))
        await settle()
        assert store.state.get("v3").status == TaskStatus.STARTING

        future, _, _ = client.wait_entry("v1.mp4")
        future.set_result(Completed(locator_for("v1")))
        for video_id in ("v2", "v3"):
            client.start_future(video_id).set_result(Accepted(locator_for(video_id)))
            await settle()
            future, _, _ = client.wait_entry(f"{video_id}.mp4")
            future.set_result(Completed(locator_for(video_id)))
            await settle()

        assert statuses(store) == {
            "v1": TaskStatus.READY, "v2": TaskStatus.READY, "v3": TaskStatus.READY
        }
        assert snapshots
        assert all(in_flight <= budget for in_flight, budget in snapshots)
        await scheduler.stop()


class TestFailures:
    """Test rejected and failed downloads."""

    @pytest.mark.asyncio
    async def test_rejected_then_retry(self):
        store, client, scheduler, notifications, outcomes = build(budget=2)
        scheduler.start()
        store.dispatch(Enqueue([make_ref("v1")]))
        await settle()

        client.start_future("v1").set_result(
            Rejected("yt-dlp exited with code 1", FailureReason.EXECUTOR, status_code=500)
        )
        await settle()

        failed = store.state.get("v1")
        assert failed.status == TaskStatus.ERROR
        assert failed.error_message == "yt-dlp exited with code 1"
        assert notifications[-1].level == "error"
        assert "yt-dlp exited with code 1" in notifications[-1].description
        assert outcomes == ["rejected"]

        store.dispatch(Retry("v1"))
        await settle()

        retried = store.state.get("v1")
        assert retried.status == TaskStatus.STARTING
        assert retried.attempt == 2
        assert retried.error_message is None
        assert client.started_ids == ["v1", "v1"]

        client.start_future("v1").set_result(Accepted(locator_for("v1")))
        await settle()

        assert store.state.get("v1").status == TaskStatus.READY
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_unexpected_exception_marks_error(self):
        store, client, scheduler, _, outcomes = build()
        scheduler.start()
        store.dispatch(Enqueue([make_ref("v1")]))
        await settle()

        client.start_future("v1").set_exception(RuntimeError("boom"))
        await settle()

        task = store.state.get("v1")
        assert task.status == TaskStatus.ERROR
        assert task.error_message == "Unexpected error: boom"
        assert outcomes == ["error"]
        await scheduler.stop()


class TestCompletionCheck:
    """Test the accepted-then-poll path."""

    @pytest.mark.asyncio
    async def test_progress_then_completed(self):
        store, client, scheduler, notifications, outcomes = build(completion_check=True)
        scheduler.start()
        store.dispatch(Enqueue([make_ref("v1")]))
        await settle()

        client.start_future("v1").set_result(Accepted(locator_for("v1")))
        await settle()

        assert store.state.get("v1").status == TaskStatus.IN_PROGRESS
        future, on_progress, should_continue = client.wait_entry("v1.mp4")
        assert should_continue() is True

        on_progress(42)
        assert store.state.get("v1").progress == 42

        future.set_result(Completed(locator_for("v1")))
        await settle()

        assert store.state.get("v1").status == TaskStatus.READY
        assert store.state.get("v1").progress == 100
        assert outcomes == ["accepted", "completed"]
        assert [n.title for n in notifications] == ["Download ready"]
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_failed_on_server(self):
        store, client, scheduler, _, outcomes = build(completion_check=True)
        scheduler.start()
        store.dispatch(Enqueue([make_ref("v1")]))
        await settle()
        client.start_future("v1").set_result(Accepted(locator_for("v1")))
        await settle()

        future, _, _ = client.wait_entry("v1.mp4")
        future.set_result(Failed("Download failed on server", FailureReason.EXECUTOR))
        await settle()

        assert store.state.get("v1").status == TaskStatus.ERROR
        assert store.state.get("v1").error_message == "Download failed on server"
        assert outcomes == ["accepted", "failed"]
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_removed_task_stops_tracking(self):
        store, client, scheduler, notifications, _ = build(completion_check=True)
        scheduler.start()
        store.dispatch(Enqueue([make_ref("v1"), make_ref("v2")]))
        await settle()
        client.start_future("v1").set_result(Accepted(locator_for("v1")))
        await settle()

        store.dispatch(Remove("v1"))
        future, _, should_continue = client.wait_entry("v1.mp4")
        assert should_continue() is False

        future.set_result(Failed("No longer tracked", FailureReason.ABANDONED))
        await settle()

        assert "v1" not in store.state
        assert notifications == []
        await scheduler.stop()


class TestStaleOutcomes:
    """Late answers for removed, paused or re-admitted tasks are dropped."""

    @pytest.mark.asyncio
    async def test_response_for_removed_task_is_dropped(self):
        store, client, scheduler, notifications, _ = build(budget=1)
        scheduler.start()
        store.dispatch(Enqueue([make_ref("v1"), make_ref("v2")]))
        await settle()

        store.dispatch(Remove("v1"))
        await settle()
        assert client.started_ids == ["v1", "v2"]

        client.start_future("v1").set_result(Accepted(locator_for("v1")))
        await settle()

        assert store.state.ids == ["v2"]
        assert store.state.get("v2").status == TaskStatus.STARTING
        assert notifications == []
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_response_for_removed_then_requeued_task_is_dropped(self):
        store, client, scheduler, notifications, _ = build(budget=1)
        scheduler.start()
        store.dispatch(Enqueue([make_ref("v1")]))
        await settle()
        first_attempt = store.state.get("v1").attempt

        store.dispatch(Remove("v1"))
        store.dispatch(Enqueue([make_ref("v1")]))
        await settle()

        requeued = store.state.get("v1")
        assert client.started_ids == ["v1", "v1"]
        assert requeued.status == TaskStatus.STARTING
        assert requeued.attempt > first_attempt
        assert len(scheduler.running_tasks) == 2

        client.start_future("v1", index=0).set_result(
            Rejected("stale failure", FailureReason.EXECUTOR, status_code=500)
        )
        await settle()

        assert store.state.get("v1").status == TaskStatus.STARTING
        assert store.state.get("v1").error_message is None
        assert notifications == []

        client.start_future("v1", index=1).set_result(Accepted(locator_for("v1")))
        await settle()

        assert store.state.get("v1").status == TaskStatus.READY
        assert [n.title for n in notifications] == ["Download ready"]
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_response_for_earlier_attempt_is_ignored(self):
        store, client, scheduler, notifications, _ = build(budget=1)
        scheduler.start()
        store.dispatch(Enqueue([make_ref("v1")]))
        await settle()

        store.dispatch(Pause("v1"))
        store.dispatch(Resume("v1"))
        await settle()

        assert store.state.get("v1").attempt == 2
        assert client.started_ids == ["v1", "v1"]

        client.start_future("v1", index=0).set_result(Rejected("too late", FailureReason.EXECUTOR))
        await settle()

        assert store.state.get("v1").status == TaskStatus.STARTING
        assert notifications == []

        client.start_future("v1", index=1).set_result(Accepted(locator_for("v1")))
        await settle()

        assert store.state.get("v1").status == TaskStatus.READY
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_paused_task_frees_its_slot(self):
        store, client, scheduler, _, _ = build(budget=1)
        scheduler.start()
        store.dispatch(Enqueue([make_ref("v1"), make_ref("v2")]))
        await settle()

        store.dispatch(Pause("v1"))
        await settle()

        assert client.started_ids == ["v1", "v2"]
        client.start_future("v1").set_result(Accepted(locator_for("v1")))
        await settle()

        assert store.state.get("v1").status == TaskStatus.PAUSED
        await scheduler.stop()


class TestLifecycle:
    """Test start and stop."""

    @pytest.mark.asyncio
    async def test_stop_cancels_outstanding_requests(self):
        store, client, scheduler, _, _ = build()
        scheduler.start()
        store.dispatch(Enqueue([make_ref("v1"), make_ref("v2")]))
        await settle()

        running = list(scheduler.running_tasks.values())
        assert len(running) == 2

        await scheduler.stop()

        assert not scheduler.is_running
        assert scheduler.running_tasks == {}
        assert all(job.cancelled() for job in running)

        store.dispatch(Enqueue([make_ref("v3")]))
        await asyncio.sleep(0)
        assert client.started_ids == ["v1", "v2"]

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        store, client, scheduler, _, _ = build()
        scheduler.start()
        scheduler.start()

        store.dispatch(Enqueue([make_ref("v1")]))
        await settle()

        assert client.started_ids == ["v1"]
        await scheduler.stop()
