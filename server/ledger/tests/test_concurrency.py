import threading

import pytest
from sqlalchemy.orm import sessionmaker

from ledger.accounting import journal
from ledger.accounting.exceptions import ConcurrentModificationError, PostingStateError
from ledger.accounting.numbering import check_numbering
from ledger.db import Base, create_db_engine
from ledger.models import Account, Company, JournalEntry
from ledger.tests.factories import create_accounts, credit, debit, make_draft, make_posted


@pytest.fixture()
def file_session_factory(tmp_path):
    engine = create_db_engine(f"sqlite+pysqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    with factory() as db:
        db.add(Company(id=1, name="Demo s.r.o.", base_currency="EUR", fiscal_year_start_month=1))
        db.commit()
    yield factory
    engine.dispose()


def _run_threads(targets):
    threads = [threading.Thread(target=target) for target in targets]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)


def test_concurrent_posts_receive_distinct_contiguous_numbers(file_session_factory):
    with file_session_factory() as db:
        accounts = create_accounts(db)
        entry_ids = [
            make_draft(db, [debit(accounts["311"], "10.00"), credit(accounts["602"], "10.00")]).id
            for _ in range(8)
        ]

    numbers = []
    errors = []
    lock = threading.Lock()

    def post(entry_id):
        def worker():
            with file_session_factory() as db:
                try:
                    entry = journal.run_in_transaction(db, lambda: journal.post_entry(db, 1, entry_id))
                    with lock:
                        numbers.append(entry.number)
                except Exception as exc:
                    with lock:
                        errors.append(exc)

        return worker

    _run_threads([post(entry_id) for entry_id in entry_ids])

    assert errors == []
    assert sorted(numbers) == [f"FA-2024-{value:04d}" for value in range(1, 9)]
    with file_session_factory() as db:
        [check] = check_numbering(db, 1)
        assert check.count == 8
        assert check.gaps == [] and check.duplicates == []


def test_concurrent_post_of_same_entry_has_one_winner(file_session_factory):
    with file_session_factory() as db:
        accounts = create_accounts(db)
        entry = make_draft(db, [debit(accounts["311"], "10.00"), credit(accounts["602"], "10.00")])
        entry_id, version = entry.id, entry.version

    outcomes = []
    lock = threading.Lock()
    barrier = threading.Barrier(2)

    def worker():
        with file_session_factory() as db:
            barrier.wait()
            try:
                journal.run_in_transaction(
                    db, lambda: journal.post_entry(db, 1, entry_id, expected_version=version)
                )
                result = "posted"
            except ConcurrentModificationError:
                result = "conflict"
            with lock:
                outcomes.append(result)

    _run_threads([worker, worker])

    assert sorted(outcomes) == ["conflict", "posted"]
    with file_session_factory() as db:
        stored = db.get(JournalEntry, entry_id)
        assert stored.status == "posted"
        assert stored.number == "FA-2024-0001"
        [check] = check_numbering(db, 1)
        assert check.count == 1


def test_stale_flush_is_retried_and_reported_as_conflict(session_factory):
    with session_factory() as setup:
        accounts = create_accounts(setup)
        entry_id = make_draft(setup, [debit(accounts["311"], "10.00"), credit(accounts["602"], "10.00")]).id

    stale_session = session_factory(expire_on_commit=False)
    stale_entry = stale_session.get(JournalEntry, entry_id)
    stale_session.commit()

    with session_factory() as other:
        journal.run_in_transaction(other, lambda: journal.post_entry(other, 1, entry_id))

    calls = []

    def operation():
        calls.append(1)
        if len(calls) == 1:
            # Works from the copy read before the concurrent post.
            stale_entry.description = "edited from a stale copy"
            stale_session.flush()
            return stale_entry
        return journal.update_draft(stale_session, 1, entry_id, changes={"description": "edited again"})

    with pytest.raises(ConcurrentModificationError):
        journal.run_in_transaction(stale_session, operation)
    assert len(calls) == 2
    stale_session.close()


def test_exhausted_retries_raise_conflict(session_factory):
    with session_factory() as setup:
        accounts = create_accounts(setup)
        entry_id = make_draft(setup, [debit(accounts["311"], "10.00"), credit(accounts["602"], "10.00")]).id

    stale_session = session_factory(expire_on_commit=False)
    stale_entry = stale_session.get(JournalEntry, entry_id)
    stale_session.commit()

    with session_factory() as other:
        journal.run_in_transaction(
            other, lambda: journal.update_draft(other, 1, entry_id, changes={"description": "first"})
        )

    def operation():
        stale_entry.description = "second"
        stale_session.flush()

    with pytest.raises(ConcurrentModificationError):
        journal.run_in_transaction(stale_session, operation, retries=1)
    stale_session.close()


def test_failed_operation_rolls_back_everything(db):
    def operation():
        db.add(Account(company_id=1, code="211", analytic="", name="Pokladnica", type="asset"))
        db.flush()
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        journal.run_in_transaction(db, operation)
    assert db.query(Account).count() == 0


def _finish_first(monkeypatch, competing_operation):
    """Commit ``competing_operation`` right after the caller has read the committed version."""
    committed_version = journal._committed_version
    calls = []

    def read_then_lose_the_race(db, company_id, entry_id):
        version = committed_version(db, company_id, entry_id)
        if not calls:
            calls.append(version)
            competing_operation(entry_id, version)
        return version

    monkeypatch.setattr(journal, "_committed_version", read_then_lose_the_race)
    return calls


def test_post_that_waited_behind_a_concurrent_post_is_a_conflict(file_session_factory, monkeypatch):
    with file_session_factory() as db:
        accounts = create_accounts(db)
        entry_id = make_draft(db, [debit(accounts["311"], "10.00"), credit(accounts["602"], "10.00")]).id

    def competing_post(entry_id, version):
        with file_session_factory() as other:
            journal.run_in_transaction(
                other, lambda: journal.post_entry(other, 1, entry_id, expected_version=version)
            )

    calls = _finish_first(monkeypatch, competing_post)

    with file_session_factory() as db:
        with pytest.raises(ConcurrentModificationError) as excinfo:
            journal.run_in_transaction(db, lambda: journal.post_entry(db, 1, entry_id))
    assert calls == [1]
    assert excinfo.value.details["entry_id"] == entry_id

    with file_session_factory() as db:
        stored = db.get(JournalEntry, entry_id)
        assert stored.status == "posted"
        [check] = check_numbering(db, 1)
        assert check.count == 1


def test_reverse_that_waited_behind_a_concurrent_reverse_is_a_conflict(file_session_factory, monkeypatch):
    with file_session_factory() as db:
        accounts = create_accounts(db)
        posted = make_posted(db, [debit(accounts["311"], "10.00"), credit(accounts["602"], "10.00")])
        entry_id = posted.id

    def competing_reverse(entry_id, version):
        with file_session_factory() as other:
            journal.run_in_transaction(
                other, lambda: journal.reverse_entry(other, 1, entry_id, expected_version=version)
            )

    _finish_first(monkeypatch, competing_reverse)

    with file_session_factory() as db:
        with pytest.raises(ConcurrentModificationError):
            journal.run_in_transaction(db, lambda: journal.reverse_entry(db, 1, entry_id))

    with file_session_factory() as db:
        stored = db.get(JournalEntry, entry_id)
        assert stored.status == "reversed"
        assert db.query(JournalEntry).filter(JournalEntry.reversal_of_id == entry_id).count() == 1


def test_post_after_a_finished_post_is_still_a_state_error(file_session_factory):
    with file_session_factory() as db:
        accounts = create_accounts(db)
        entry_id = make_posted(db, [debit(accounts["311"], "10.00"), credit(accounts["602"], "10.00")]).id

    with file_session_factory() as db:
        with pytest.raises(PostingStateError):
            journal.run_in_transaction(db, lambda: journal.post_entry(db, 1, entry_id))
