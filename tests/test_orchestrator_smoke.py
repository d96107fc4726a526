from __future__ import annotations

import queue
import threading

import pytest
from mclaunch.core.orchestrator import ProgressCounter, ProgressSender, do_jobs, do_jobs_collect


@pytest.mark.smoke
def test_do_jobs_keeps_input_order() -> None:
    jobs = [lambda i=i: i * 2 for i in range(20)]
    assert do_jobs(jobs, limit=4) == [i * 2 for i in range(20)]


@pytest.mark.smoke
def test_do_jobs_fails_fast_and_skips_pending() -> None:
    started: list[int] = []
    gate = threading.Event()

    def failing() -> int:
        raise RuntimeError("boom")

    def slow(i: int) -> int:
        started.append(i)
        gate.wait(1)
        return i

    jobs = [failing] + [lambda i=i: slow(i) for i in range(50)]
    with pytest.raises(RuntimeError, match="boom"):
        do_jobs(jobs, limit=1)
    gate.set()

    # 併發數為 1 時第一個工作失敗，後續工作不會開始
    assert started == []


@pytest.mark.smoke
def test_do_jobs_collect_reports_every_outcome() -> None:
    def bad() -> int:
        raise ValueError("nope")

    results = do_jobs_collect([lambda: 1, bad, lambda: 3], limit=2)

    assert [r.ok for r in results] == [True, False, True]
    assert results[0].value == 1
    assert isinstance(results[1].error, ValueError)
    assert results[2].value == 3


@pytest.mark.smoke
def test_empty_job_lists() -> None:
    assert do_jobs([]) == []
    assert do_jobs_collect([]) == []


@pytest.mark.smoke
def test_progress_sender_never_blocks() -> None:
    channel: queue.Queue = queue.Queue(maxsize=1)
    sender = ProgressSender.wrap(channel)

    sender.send("first")
    sender.send("dropped")

    assert channel.get_nowait() == "first"
    assert channel.empty()
    assert ProgressSender.wrap(sender) is sender
    ProgressSender.wrap(None).send("ignored")


@pytest.mark.smoke
def test_progress_counter_is_monotonic_across_threads() -> None:
    counter = ProgressCounter(total=200)
    do_jobs([counter.step for _ in range(200)], limit=8)
    assert counter.value == 200
