"""Tests for the identity cache and conversion context."""

import pytest

from ccdafold.cache import IdentityCache
from ccdafold.context import ConversionContext
from ccdafold.converters.base import claim_identity, read_identifiers
from ccdafold.errors import RequiredValueNotFoundError
from ccdafold.models import Identifier, Record, RecordKind


# ---------------------------------------------------------------------------
# IdentityCache
# ---------------------------------------------------------------------------


class TestIdentityCache:
    def test_first_insert_wins(self):
        cache = IdentityCache()
        first = Record(kind=RecordKind.PRACTITIONER)
        second = Record(kind=RecordKind.PRACTITIONER)
        cache.add(first, "http://hl7.org/fhir/sid/us-npi", "123")
        cache.add(second, "http://hl7.org/fhir/sid/us-npi", "123")
        assert cache.try_get(RecordKind.PRACTITIONER, "http://hl7.org/fhir/sid/us-npi", "123") is first
        assert len(cache) == 1

    def test_kind_is_part_of_key(self):
        cache = IdentityCache()
        cache.add(Record(kind=RecordKind.CONDITION), "1.2.3", "x")
        assert cache.try_get(RecordKind.PROCEDURE, "1.2.3", "x") is None
        assert not cache.contains(RecordKind.PROCEDURE, "1.2.3", "x")

    def test_none_system(self):
        cache = IdentityCache()
        device = Record(kind=RecordKind.DEVICE)
        cache.add(device, None, "(01)51022222233336")
        assert cache.contains(RecordKind.DEVICE, None, "(01)51022222233336")


# ---------------------------------------------------------------------------
# ConversionContext
# ---------------------------------------------------------------------------


class TestConversionContext:
    def test_commit_registers_identifiers(self, context):
        record = Record(kind=RecordKind.CONDITION, identifier=[Identifier("1.2.3", "a"), Identifier("1.2.3", "b")])
        context.commit(record)
        assert context.records == [record]
        assert context.cache.try_get(RecordKind.CONDITION, "1.2.3", "b") is record

    def test_commit_requires_id(self, context):
        with pytest.raises(ValueError):
            context.commit(Record(kind=RecordKind.CONDITION, id=""))

    def test_collect_keeps_going(self, context, fragment):
        el = fragment("<observation/>")
        with context.collect():
            raise RequiredValueNotFoundError(el, xpath="value", target_path="Condition.code")
        assert len(context.errors) == 1
        assert context.errors[0].source_path == "/wrapper/observation/value"

    def test_collect_lets_other_errors_through(self, context):
        with pytest.raises(KeyError):
            with context.collect():
                raise KeyError("boom")
        assert context.errors == []

    def test_fresh_state(self, make_root):
        context = ConversionContext(make_root())
        assert context.records == [] and context.errors == [] and len(context.cache) == 0


# ---------------------------------------------------------------------------
# Identity claims
# ---------------------------------------------------------------------------


class TestClaimIdentity:
    def test_unseen_identifiers_attach(self, context):
        record = Record(kind=RecordKind.CONDITION)
        assert claim_identity(record, [Identifier("1.2.3", "a")], context) is None
        assert record.identifier == [Identifier("1.2.3", "a")]
        # not cached until committed
        assert not context.cache.contains(RecordKind.CONDITION, "1.2.3", "a")

    def test_any_hit_substitutes(self, context):
        earlier = context.commit(Record(kind=RecordKind.CONDITION, identifier=[Identifier("1.2.3", "b")]))
        record = Record(kind=RecordKind.CONDITION)
        found = claim_identity(record, [Identifier("1.2.3", "a"), Identifier("1.2.3", "b")], context)
        assert found is earlier
        assert record.identifier == []
        assert not context.cache.contains(RecordKind.CONDITION, "1.2.3", "a")

    def test_read_identifiers_skips_null_flavor(self, fragment):
        el = fragment('<act><id nullFlavor="NI"/><id root="1.2.3" extension="x"/></act>')
        identifiers = read_identifiers(el)
        assert [(i.system, i.value) for i in identifiers] == [("1.2.3", "x")]
