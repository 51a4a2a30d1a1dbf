import pytest
from sqlalchemy.exc import OperationalError, IntegrityError
from classes.errors import NotFoundError, TransientStoreError
from utils.transactions import run_transaction, TransactionTimeoutError


class FakeSession:
    def __init__(self, fail_commits=0, commit_error=None):
        self.commits = 0
        self.rollbacks = 0
        self.fail_commits = fail_commits
        self.commit_error = commit_error

    def commit(self):
        if self.fail_commits:
            self.fail_commits -= 1
            raise self.commit_error
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


def operational_error():
    return OperationalError("UPDATE users", {}, Exception("server has gone away"))


class FakeClock:
    def __init__(self, steps):
        self.values = iter(steps)

    def __call__(self):
        return next(self.values)


def test_commits_and_returns_result():
    session = FakeSession()
    result = run_transaction(session, lambda s: "done", sleep=lambda _: None)
    assert result == "done"
    assert session.commits == 1
    assert session.rollbacks == 0


def test_domain_errors_roll_back_without_retry():
    session = FakeSession()
    calls = []

    def operation(s):
        calls.append(1)
        raise NotFoundError("Quiz not found")

    with pytest.raises(NotFoundError):
        run_transaction(session, operation, sleep=lambda _: None)
    assert len(calls) == 1
    assert session.rollbacks == 1
    assert session.commits == 0


def test_transient_failure_is_retried_with_linear_backoff():
    session = FakeSession(fail_commits=2, commit_error=operational_error())
    delays = []

    result = run_transaction(session, lambda s: 42, max_retries=2, retry_delay=0.5, sleep=delays.append)
    assert result == 42
    assert delays == [0.5, 1.0]
    assert session.rollbacks == 2
    assert session.commits == 1


def test_retries_exhausted_raise_transient_store_error():
    session = FakeSession(fail_commits=10, commit_error=operational_error())
    delays = []

    with pytest.raises(TransientStoreError) as excinfo:
        run_transaction(session, lambda s: None, max_retries=2, retry_delay=0.1, sleep=delays.append)
    assert excinfo.value.status_code == 503
    assert isinstance(excinfo.value.__cause__, OperationalError)
    assert session.rollbacks == 3
    assert len(delays) == 2


def test_non_retryable_errors_propagate_unchanged():
    error = IntegrityError("INSERT INTO answers", {}, Exception("duplicate key"))
    session = FakeSession(fail_commits=1, commit_error=error)
    delays = []

    with pytest.raises(IntegrityError):
        run_transaction(session, lambda s: None, sleep=delays.append)
    assert session.rollbacks == 1
    assert delays == []


def test_slow_operation_is_rolled_back_and_retried():
    session = FakeSession()
    # first attempt takes 10s, second takes 1s
    clock = FakeClock([0.0, 10.0, 20.0, 21.0])

    result = run_transaction(session, lambda s: "ok", timeout=8, max_retries=1, retry_delay=0,
                             sleep=lambda _: None, clock=clock)
    assert result == "ok"
    assert session.rollbacks == 1
    assert session.commits == 1


def test_timeout_on_every_attempt():
    session = FakeSession()
    clock = FakeClock([0.0, 9.0, 10.0, 19.0])

    with pytest.raises(TransientStoreError) as excinfo:
        run_transaction(session, lambda s: None, timeout=8, max_retries=1, retry_delay=0,
                        sleep=lambda _: None, clock=clock)
    assert isinstance(excinfo.value.__cause__, TransactionTimeoutError)
    assert session.commits == 0
