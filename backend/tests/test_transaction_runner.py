# Overview: Pytest coverage for the stock transaction runner: commit, rollback and retry exhaustion.

import pytest
from sqlalchemy.orm.exc import StaleDataError

from restopos.models import Material
from restopos.services.concurrency import ConflictRetryExhaustedError, run_in_transaction


class TestRunInTransaction:
    def test_commits_result(self, db_session, make_material, stock_of):
        flour = make_material("Flour", 5)

        def _op():
            material = db_session.get(Material, flour.id)
            material.stock = material.stock + 1
            return "done"

        assert run_in_transaction(_op) == "done"
        assert stock_of(flour.id) == 6

    def test_domain_error_rolls_back_without_retry(self, db_session, make_material, stock_of):
        flour = make_material("Flour", 5)
        calls = []

        def _op():
            calls.append(1)
            db_session.get(Material, flour.id).stock = 0
            raise ValueError("boom")

        with pytest.raises(ValueError):
            run_in_transaction(_op, attempts=3, backoff_base=0)

        assert len(calls) == 1
        assert stock_of(flour.id) == 5

    def test_conflicts_exhaust_after_configured_attempts(self, db_session):
        calls = []

        def _op():
            calls.append(1)
            raise StaleDataError("version mismatch")

        with pytest.raises(ConflictRetryExhaustedError) as excinfo:
            run_in_transaction(_op, attempts=3, backoff_base=0)

        assert len(calls) == 3
        assert excinfo.value.attempts == 3
        assert excinfo.value.details == {"attempts": 3}
        assert isinstance(excinfo.value.last_error, StaleDataError)

    def test_conflict_then_success(self, db_session):
        calls = []

        def _op():
            calls.append(1)
            if len(calls) == 1:
                raise StaleDataError("version mismatch")
            return "ok"

        assert run_in_transaction(_op, attempts=3, backoff_base=0) == "ok"
        assert len(calls) == 2
