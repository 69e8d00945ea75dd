"""Tests for lifecycle.identifier."""

import dataclasses

import pytest

from lifecycle.identifier import Identifier


class TestIdentifier:
    def test_values_stored(self):
        i = Identifier("order", "42")
        assert i.get_machine() == "order"
        assert i.get_entity_id() == "42"

    def test_integer_entity_id_stored_as_string(self):
        assert Identifier("order", 42).entity_id == "42"

    def test_empty_machine_raises(self):
        with pytest.raises(ValueError, match="machine"):
            Identifier("", "42")

    def test_empty_entity_id_raises(self):
        with pytest.raises(ValueError, match="entity id"):
            Identifier("order", "")

    def test_none_entity_id_raises(self):
        with pytest.raises(ValueError, match="entity id"):
            Identifier("order", None)

    def test_immutable(self):
        i = Identifier("order", "42")
        with pytest.raises(dataclasses.FrozenInstanceError):
            i.machine = "customer"

    def test_equal_pairs_are_equal_and_hash_alike(self):
        assert Identifier("order", 42) == Identifier("order", "42")
        assert hash(Identifier("order", 42)) == hash(Identifier("order", "42"))
        assert Identifier("order", "42") != Identifier("customer", "42")

    def test_get_id(self):
        assert Identifier("order", "42").get_id() == "order_42"

    def test_get_id_readable(self):
        assert Identifier("order", "42").get_id(readable=True) == "machine: 'order', id: '42'"

    def test_str(self):
        assert str(Identifier("order", "42")) == (
            "lifecycle.identifier.Identifier(machine: 'order', id: '42')"
        )
