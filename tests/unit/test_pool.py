import threading
import time

import pytest

from domains.ingest_server.pool import BoundedWorkerPool


def test_pool_never_exceeds_capacity():
    lock = threading.Lock()
    running = 0
    peak = 0

    def task():
        nonlocal running, peak
        with lock:
            running += 1
            peak = max(peak, running)
        time.sleep(0.02)
        with lock:
            running -= 1

    with BoundedWorkerPool(3) as pool:
        futures = [pool.submit(task) for _ in range(15)]
        for future in futures:
            future.result(timeout=5)

    assert 1 <= peak <= 3


def test_submit_blocks_while_pool_is_saturated(wait_until):
    release = threading.Event()
    pool = BoundedWorkerPool(1)
    pool.submit(release.wait, 5)

    submitted = threading.Event()

    def submit_second():
        pool.submit(lambda: None)
        submitted.set()

    submitter = threading.Thread(target=submit_second, daemon=True)
    submitter.start()

    assert not submitted.wait(0.2)
    assert pool.active == 1

    release.set()
    assert submitted.wait(5)
    assert wait_until(lambda: pool.active == 0)
    pool.shutdown()


def test_failing_task_is_logged_and_frees_its_slot(log_messages, wait_until):
    def explode():
        raise ValueError("boom")

    pool = BoundedWorkerPool(1)
    pool.submit(explode)

    assert wait_until(lambda: any("boom" in message for message in log_messages))
    assert pool.submit(lambda: 42).result(timeout=5) == 42
    pool.shutdown()


@pytest.mark.parametrize("capacity", [0, -1])
def test_capacity_must_be_positive(capacity):
    with pytest.raises(ValueError):
        BoundedWorkerPool(capacity)


def test_capacity_is_fixed():
    with BoundedWorkerPool(4) as pool:
        assert pool.capacity == 4
        assert pool.active == 0
