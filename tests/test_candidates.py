"""Tests for the candidate index builder."""

import pytest

from statement_recon.matching.candidates import build_candidate_index
from statement_recon.models.transaction import UNIDENTIFIED_COUNTERPARTY
from statement_recon.store.memory import InMemoryInstallmentStore
from statement_recon.utils.exceptions import CandidateLookupError

from conftest import make_installment


class FailingStore(InMemoryInstallmentStore):
    def load_counterparty_names(self, counterparty_ids):
        raise RuntimeError("connection reset")


def test_resolves_counterparty_names(index):
    assert len(index) == 4
    assert index.get("P1").counterparty_name == "ACME LTDA"
    assert index.get("P2").counterparty_name == "Globex Comércio de Papéis"
    assert index.get("P3").counterparty_name == UNIDENTIFIED_COUNTERPARTY
    assert index.get("missing") is None


def test_unknown_counterparty_falls_back():
    store = InMemoryInstallmentStore(
        [make_installment("P1", counterparty_id="NOBODY")], counterparties={}
    )

    index = build_candidate_index(store)

    assert index.get("P1").counterparty_name == UNIDENTIFIED_COUNTERPARTY
    assert not index.get("P1").has_counterparty


def test_keeps_open_and_settled(index):
    assert [i.id for i in index.open()] == ["P1", "P2", "P3"]
    assert [i.id for i in index.settled()] == ["P4"]
    assert [i.id for i in index] == ["P1", "P2", "P3", "P4"]


def test_index_does_not_share_state_with_store(store, index):
    store.clear_settlement("P4")

    assert index.get("P4").settled is True


def test_store_failure_is_wrapped():
    store = FailingStore([make_installment("P1")])

    with pytest.raises(CandidateLookupError, match="connection reset"):
        build_candidate_index(store)
