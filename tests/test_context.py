"""Tests for lifecycle.context — the execution context."""

import gc

import pytest

from lifecycle.builder import EntityBuilder
from lifecycle.context import Context
from lifecycle.identifier import Identifier
from lifecycle.persistence import Memory
from lifecycle.types import (
    STATE_UNKNOWN,
    PersistenceError,
    State,
    StateType,
    Transition,
    TransitionError,
)


# ── Helpers ────────────────────────────────────────────────────────────────────

class FakeMachine:
    """Stands in for a StateMachine; only the initial state lookup is used."""

    def __init__(self, initial):
        self.initial = initial
        self.calls = []

    def get_initial_state(self, allow_new=False):
        self.calls.append(allow_new)
        return self.initial


class Order:
    def __init__(self, order_id):
        self.order_id = order_id


class OrderBuilder(EntityBuilder):
    def __init__(self):
        super().__init__()
        self.builds = 0

    def build(self, identifier):
        self.builds += 1
        return Order(identifier.entity_id)


class FailingAdapter(Memory):
    def get_state(self, identifier):
        raise ConnectionError("db down")

    def set_failed_transition(self, identifier, transition, error):
        raise ConnectionError("db down")


def _context(machine="order", entity_id="42", **kwargs) -> Context:
    return Context(Identifier(machine, entity_id), **kwargs)


TRANSITION = Transition(State("new"), State("paid"))


# ── State resolution ───────────────────────────────────────────────────────────

class TestGetState:
    def test_unknown_without_machine(self):
        assert _context().get_state() == STATE_UNKNOWN

    def test_initial_state_of_attached_machine(self):
        c = _context()
        machine = FakeMachine(State("new", StateType.INITIAL))
        c.set_state_machine(machine)
        assert c.get_state() == "new"
        assert machine.calls == [True]

    def test_unknown_when_machine_has_no_initial_state(self):
        c = _context()
        machine = FakeMachine(None)
        c.set_state_machine(machine)
        assert c.get_state() == STATE_UNKNOWN

    def test_persisted_state_wins_over_machine(self):
        c = _context()
        machine = FakeMachine(State("new", StateType.INITIAL))
        c.set_state_machine(machine)
        c.set_state("paid")
        assert c.get_state() == "paid"
        assert machine.calls == []

    def test_adapter_failure_propagates(self):
        c = _context(persistence_adapter=FailingAdapter())
        with pytest.raises(ConnectionError, match="db down"):
            c.get_state()


# ── Writing state ──────────────────────────────────────────────────────────────

class TestSetState:
    def test_set_state_returns_first_write(self):
        c = _context()
        assert c.set_state("new") is True
        assert c.set_state("paid", "payment received") is False
        assert c.get_state() == "paid"

    def test_message_forwarded_to_adapter(self):
        adapter = Memory()
        c = _context(persistence_adapter=adapter)
        c.set_state("paid", "payment received")
        assert adapter.get_history(c.get_identifier())[-1].message == "payment received"

    def test_add_twice(self):
        c = _context()
        assert c.add("S1") is True
        assert c.add("S2") is False
        assert c.get_state() == "S1"


# ── Default collaborators ──────────────────────────────────────────────────────

class TestCollaborators:
    def test_default_builder_is_cached(self):
        c = _context()
        builder = c.get_builder()
        assert isinstance(builder, EntityBuilder)
        assert c.get_builder() is builder

    def test_default_adapter_is_cached(self):
        c = _context()
        adapter = c.get_persistence_adapter()
        assert isinstance(adapter, Memory)
        assert c.get_persistence_adapter() is adapter

    def test_default_adapters_not_shared_between_contexts(self):
        a, b = _context(), _context()
        assert a.get_persistence_adapter() is not b.get_persistence_adapter()
        a.set_state("paid")
        assert b.get_state() == STATE_UNKNOWN

    def test_supplied_adapter_shared_between_contexts(self):
        shared = Memory()
        a = _context(persistence_adapter=shared)
        b = _context(persistence_adapter=shared)
        a.set_state("paid")
        assert b.get_state() == "paid"

    def test_supplied_collaborators_used(self):
        builder, adapter = OrderBuilder(), Memory()
        c = _context(entity_builder=builder, persistence_adapter=adapter)
        assert c.get_builder() is builder
        assert c.get_persistence_adapter() is adapter


# ── Entity ─────────────────────────────────────────────────────────────────────

class TestGetEntity:
    def test_default_entity_is_identifier(self):
        c = _context()
        assert c.get_entity() is c.get_identifier()

    def test_entity_cached(self):
        builder = OrderBuilder()
        c = _context(entity_builder=builder)
        first = c.get_entity()
        assert isinstance(first, Order)
        assert first.order_id == "42"
        assert c.get_entity() is first
        assert builder.builds == 1

    def test_create_fresh_bypasses_cache(self):
        builder = OrderBuilder()
        c = _context(entity_builder=builder)
        first = c.get_entity()
        assert c.get_entity(create_fresh=True) is not first
        assert builder.builds == 2

    def test_builder_shared_across_entities_rebuilds(self):
        builder = OrderBuilder()
        a = _context(entity_id="1", entity_builder=builder)
        b = _context(entity_id="2", entity_builder=builder)
        assert a.get_entity().order_id == "1"
        assert b.get_entity().order_id == "2"


# ── Identity ───────────────────────────────────────────────────────────────────

class TestIdentity:
    def test_pass_through_accessors(self):
        c = _context()
        assert c.get_machine() == "order"
        assert c.get_entity_id() == "42"

    def test_get_id(self):
        assert _context().get_id() == "order_42"

    def test_get_id_readable(self):
        assert _context().get_id(readable=True) == "machine: 'order', id: '42'"

    def test_get_id_with_state(self):
        c = _context()
        c.set_state("new")
        assert c.get_id(with_state=True) == "order_42_new"
        assert c.get_id(readable=False, with_state=True).endswith("_new")

    def test_get_id_readable_with_state(self):
        c = _context()
        c.set_state("new")
        assert c.get_id(readable=True, with_state=True) == (
            "machine: 'order', id: '42', state: 'new'"
        )

    def test_get_id_with_unknown_state(self):
        assert _context().get_id(with_state=True) == "order_42_unknown"

    def test_str(self):
        assert str(_context()) == "lifecycle.context.Context(machine: 'order', id: '42')"


# ── Failed transitions ─────────────────────────────────────────────────────────

class TestSetFailedTransition:
    def test_recorded_through_adapter(self):
        adapter = Memory()
        c = _context(persistence_adapter=adapter)
        error = TransitionError("nope", TransitionError.TRANSITION_NOT_ALLOWED)
        c.set_failed_transition(TRANSITION, error)
        failed = adapter.get_failed_transitions(c.get_identifier())
        assert [f.error for f in failed] == [error]

    def test_adapter_failure_surfaces_as_persistence_error(self):
        c = _context(persistence_adapter=FailingAdapter())
        error = TransitionError("nope", TransitionError.TRANSITION_NOT_ALLOWED)
        with pytest.raises(PersistenceError) as info:
            c.set_failed_transition(TRANSITION, error)
        assert isinstance(info.value.__cause__, ConnectionError)


# ── Back-reference ─────────────────────────────────────────────────────────────

class TestStateMachineReference:
    def test_unset_by_default(self):
        assert _context().get_state_machine() is None

    def test_set_and_get(self):
        c = _context()
        machine = FakeMachine(None)
        c.set_state_machine(machine)
        assert c.get_state_machine() is machine

    def test_reference_does_not_keep_machine_alive(self):
        c = _context()
        machine = FakeMachine(State("new", StateType.INITIAL))
        c.set_state_machine(machine)
        del machine
        gc.collect()
        assert c.get_state_machine() is None
        assert c.get_state() == STATE_UNKNOWN
