# tests/test_finalizer.py
"""
Session Finalizer Tests

Run with: pytest tests/test_finalizer.py -v
"""

import pytest

from gamerhive.accounts.finalizer import SessionFinalizer
from gamerhive.accounts.models import UserProfile
from gamerhive.errors import ServerError


class TestFinalize:

    def test_writes_pair_and_signals_host(self, store, storage, sample_user):
        seen = []
        record = SessionFinalizer(store, on_authenticated=seen.append).finalize(sample_user, "t1")

        assert record.user.id == "u1"
        assert store.get().token == "t1"
        assert len(storage.history) == 1
        assert seen == [record]

    def test_accepts_profile_instance(self, store):
        SessionFinalizer(store).finalize(UserProfile(id="u9"), "t9")
        assert store.get().user.id == "u9"

    @pytest.mark.parametrize("user,token", [
        (None, "t1"),
        ({}, "t1"),
        ({"id": "  "}, "t1"),
        ({"id": "u1"}, None),
        ({"id": "u1"}, ""),
        ({"id": "u1"}, "   "),
    ])
    def test_incomplete_payload_writes_nothing(self, store, storage, user, token):
        seen = []
        with pytest.raises(ServerError):
            SessionFinalizer(store, on_authenticated=seen.append).finalize(user, token)

        assert storage.history == []
        assert seen == []

    def test_failed_finalize_keeps_previous_session(self, store, sample_user):
        finalizer = SessionFinalizer(store)
        finalizer.finalize(sample_user, "t1")

        with pytest.raises(ServerError):
            finalizer.finalize(sample_user, None)
        assert store.get().token == "t1"
