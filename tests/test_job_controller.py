import json

import pytest

from stash.jobs.controller import JobLifecycleController, job_view, time_ago
from stash.jobs.models import JobStatus
from stash.jobs.store import STORAGE_KEY, JobStore


def test_create_allocates_increasing_ids_newest_first(controller):
    first = controller.create("Enrich: one")
    second = controller.create("Importing: 3 podcasts", total_items=3)

    assert (first.id, second.id) == (1, 2)
    assert [j.id for j in controller.all_jobs()] == [2, 1]
    assert second.status == JobStatus.PENDING
    assert second.completed_items == 0
    assert second.completed_at is None
    assert second.error is None


def test_create_persists_counter(controller, kv, clock):
    controller.create("a")
    controller.create("b")

    reloaded = JobStore(kv, clock=clock)
    reloaded.load()
    assert reloaded.counter == 2
    assert JobLifecycleController(reloaded).create("c").id == 3


def test_create_rejects_empty_batch(controller):
    with pytest.raises(ValueError):
        controller.create("nothing", total_items=0)


def test_update_unknown_job_is_noop(controller, kv):
    assert controller.update(99, status=JobStatus.COMPLETED) is None
    assert kv.load(STORAGE_KEY).value is None


def test_terminal_status_stamps_completed_at(controller, clock):
    job = controller.create("x")
    controller.update(job.id, status=JobStatus.PROCESSING)
    assert job.completed_at is None

    clock.advance(seconds=30)
    controller.update(job.id, status=JobStatus.COMPLETED)
    assert job.completed_at == clock()


def test_progress_is_monotonic_and_bounded(controller):
    job = controller.create("batch", total_items=5)
    controller.update(job.id, status=JobStatus.PROCESSING)

    seen = []
    for n in [1, 2, 1, 4, 9, 3]:
        controller.update(job.id, completed_items=n)
        seen.append(job.completed_items)

    assert seen == [1, 2, 2, 4, 5, 5]
    assert seen == sorted(seen)


@pytest.mark.parametrize("terminal", [JobStatus.COMPLETED, JobStatus.FAILED])
def test_terminal_job_is_never_changed_again(controller, clock, terminal):
    job = controller.create("x", total_items=2)
    controller.update(job.id, status=terminal, error="first" if terminal == JobStatus.FAILED else None)
    before = job.model_copy()

    clock.advance(minutes=1)
    controller.update(job.id, status=JobStatus.PROCESSING)
    controller.update(job.id, status=JobStatus.FAILED, error="second")
    controller.update(job.id, completed_items=2)

    assert job == before


def test_error_kept_only_on_failed_jobs(controller):
    job = controller.create("x")
    controller.update(job.id, status=JobStatus.PROCESSING, error="ignored")
    assert job.error is None

    controller.update(job.id, status=JobStatus.FAILED, error="No API key configured")
    assert job.error == "No API key configured"


def test_failed_without_message_gets_generic_error(controller):
    job = controller.create("x")
    controller.fail(job.id, "")
    assert job.status == JobStatus.FAILED
    assert job.error == "Failed"


def test_backwards_transition_is_ignored(controller):
    job = controller.create("x")
    controller.start(job.id)
    controller.update(job.id, status=JobStatus.PENDING)
    assert job.status == JobStatus.PROCESSING


def test_pending_job_may_fail_directly(controller):
    job = controller.create("x")
    controller.fail(job.id, "No API key configured")
    assert job.status == JobStatus.FAILED
    assert job.completed_at is not None


def test_every_update_is_persisted(controller, kv):
    job = controller.create("batch", total_items=3)
    controller.start(job.id)
    controller.update(job.id, completed_items=2)

    persisted = json.loads(kv.load(STORAGE_KEY).value)["jobs"][0]
    assert persisted["status"] == "processing"
    assert persisted["completedItems"] == 2


def test_active_jobs_only_pending_or_processing(controller):
    a = controller.create("a")
    b = controller.create("b")
    c = controller.create("c")
    controller.start(b.id)
    controller.complete(c.id)

    assert {j.id for j in controller.active_jobs()} == {a.id, b.id}
    summary = controller.summary()
    assert summary.active_count == 2
    assert summary.has_active_jobs
    assert summary.total == 3


def test_all_jobs_capped_to_max(kv, clock):
    controller = JobLifecycleController(JobStore(kv, clock=clock, max_jobs=20))
    for i in range(25):
        controller.create(f"job {i}")

    jobs = controller.all_jobs()
    assert len(jobs) == 20
    assert jobs[0].id == 25
    assert jobs[-1].id == 6
    assert controller.create("next").id == 26


def test_views_describe_progress(controller, clock):
    batch = controller.create("Importing: 4 podcasts", total_items=4)
    controller.start(batch.id)
    controller.update(batch.id, completed_items=1)
    single = controller.create("Enrich: x")
    failed = controller.create("AI cleanup: y")
    controller.fail(failed.id, "Claude API error: 401")

    views = {v.id: v for v in controller.views()}
    assert views[batch.id].status_text == "Processing (1/4)"
    assert views[batch.id].progress_percent == 25
    assert views[batch.id].show_progress_bar
    assert views[single.id].status_text == "Queued"
    assert views[single.id].progress_percent == 0
    assert views[failed.id].status_text == "Claude API error: 401"


def test_single_item_view_progress(controller, clock):
    job = controller.create("Enrich: x")
    controller.start(job.id)
    assert job_view(job, clock()).progress_percent == 50
    assert job_view(job, clock()).status_text == "Processing..."
    controller.complete(job.id)
    assert job_view(job, clock()).progress_percent == 100


@pytest.mark.parametrize("seconds,expected", [
    (5, "just now"),
    (120, "2m ago"),
    (3 * 3600, "3h ago"),
    (50 * 3600, "2d ago"),
])
def test_time_ago(clock, seconds, expected):
    from datetime import timedelta
    assert time_ago(clock() - timedelta(seconds=seconds), clock()) == expected
