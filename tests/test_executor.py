"""End-to-end tests for the converter registry and executor."""

import pytest

from ccdafold.converters import ProblemListConditionConverter, SectionConverter
from ccdafold.errors import (
    AggregateConversionError,
    ConfigurationError,
    MissingPrimaryEntityError,
    RequiredValueNotFoundError,
)
from ccdafold.executor import (
    DEFAULT_CONVERTERS,
    ConverterRegistry,
    Executor,
    FactoryContext,
    default_registry,
)
from ccdafold.models import RecordKind

PROBLEM = """
<act classCode="ACT" moodCode="EVN">
  <id root="ec8a6ff8-ed4b-4f7e-82c3-e98e58b45de7"/>
  <entryRelationship typeCode="SUBJ">
    <observation classCode="OBS" moodCode="EVN">
      <id root="ab1791b0-5c71-11db-b0de-0800200c9a66" extension="{extension}"/>
      <code code="55607006" codeSystem="2.16.840.1.113883.6.96"/>
      <value xsi:type="CD" code="{code}" codeSystem="2.16.840.1.113883.6.96"/>
    </observation>
  </entryRelationship>
</act>
"""


def problems(*pairs):
    return {"11450-4": [PROBLEM.format(extension=e, code=c) for e, c in pairs]}


class RecordingConverter:
    """Minimal document converter used to observe what the executor passes in."""

    def __init__(self, factory_context):
        self.factory_context = factory_context

    def select(self, root):
        return []

    def convert_all(self, elements, context):
        return []


class ExplodingConverter(RecordingConverter):
    def select(self, root):
        raise RuntimeError("selector broke")


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------


class TestExecute:
    def test_shared_identifier_collapses(self, make_root):
        root = make_root(problems(("P1", "233604007"), ("P1", "195967001")))
        registry = ConverterRegistry().register("Condition.problem-list-item", ProblemListConditionConverter)
        bundle = Executor(registry).execute(root)
        organization, patient, condition = bundle.records
        assert [r.kind for r in bundle.records] == [
            RecordKind.ORGANIZATION,
            RecordKind.PATIENT,
            RecordKind.CONDITION,
        ]
        assert patient.data["managingOrganization"].reference == organization.reference
        assert condition.data["code"].first.code == "233604007"
        assert bundle.errors == []

    def test_default_registry_adds_author_role(self, make_root):
        bundle = Executor(default_registry()).execute(make_root(problems(("P1", "233604007"))))
        organization, _, _, practitioner, role = bundle.records
        assert [r.kind for r in bundle.records] == [
            RecordKind.ORGANIZATION,
            RecordKind.PATIENT,
            RecordKind.CONDITION,
            RecordKind.PRACTITIONER,
            RecordKind.PRACTITIONER_ROLE,
        ]
        # the author's organization is the primary organization, not a second record
        assert role.data["organization"].reference == organization.reference
        assert role.data["practitioner"].reference == practitioner.reference
        assert bundle.errors == []

    def test_bundle_dict(self, make_root):
        bundle = Executor().execute(make_root(problems(("P1", "233604007"))))
        data = bundle.to_dict()
        assert data["resourceType"] == "Bundle"
        assert data["type"] == "collection"
        assert [e["resource"]["resourceType"] for e in data["entry"]] == [
            "Organization", "Patient", "Condition", "Practitioner", "PractitionerRole",
        ]
        for entry in data["entry"]:
            assert entry["fullUrl"] == f"urn:uuid:{entry['resource']['id']}"

    def test_unique_ids(self, make_root):
        bundle = Executor().execute(make_root(problems(("P1", "1"), ("P2", "2"), ("P3", "3"))))
        ids = [r.id for r in bundle.records]
        assert len(set(ids)) == len(ids)

    def test_errors_are_aggregated(self, make_root):
        sections = problems(("P1", "233604007"))
        sections["11450-4"].append(PROBLEM.format(extension="P2", code="").replace('code=""', 'nullFlavor="BOGUS"'))
        with pytest.raises(AggregateConversionError) as exc:
            Executor().execute(make_root(sections))
        bundle = exc.value.bundle
        assert len(exc.value.errors) == 1
        assert bundle.errors == exc.value.errors
        assert [r.kind for r in bundle.records] == [
            RecordKind.ORGANIZATION,
            RecordKind.PATIENT,
            RecordKind.CONDITION,
            RecordKind.PRACTITIONER,
            RecordKind.PRACTITIONER_ROLE,
        ]
        assert "Condition.code" in str(exc.value)

    def test_failing_converter_does_not_stop_others(self, make_root):
        registry = ConverterRegistry()
        registry.register("Broken", ExplodingConverter)
        registry.register("Condition.problem-list-item", ProblemListConditionConverter)
        with pytest.raises(AggregateConversionError) as exc:
            Executor(registry).execute(make_root(problems(("P1", "233604007"))))
        assert isinstance(exc.value.errors[0], RuntimeError)
        assert exc.value.bundle.of_kind(RecordKind.CONDITION)

    def test_missing_patient_is_fatal(self, make_root):
        with pytest.raises(MissingPrimaryEntityError):
            Executor().execute(make_root(record_target=""))

    def test_missing_organization_is_fatal(self, make_root):
        with pytest.raises(MissingPrimaryEntityError):
            Executor().execute(make_root(author=""))

    def test_patient_field_errors_are_collected(self, make_root):
        target = "<recordTarget><patientRole><id root=\"1.2\" extension=\"x\"/><addr use=\"??\"/></patientRole></recordTarget>"
        with pytest.raises(AggregateConversionError):
            Executor().execute(make_root(record_target=target))

    def test_patient_only(self, make_root):
        bundle = Executor(ConverterRegistry(), patient_only=True).execute(
            make_root(problems(("P1", "233604007")), author="")
        )
        assert [r.kind for r in bundle.records] == [RecordKind.PATIENT]
        assert "managingOrganization" not in bundle.records[0].data

    def test_factory_context(self, make_root):
        built = []

        def factory(factory_context):
            converter = RecordingConverter(factory_context)
            built.append(converter)
            return converter

        registry = ConverterRegistry().register("Recording", factory)
        bundle = Executor(registry).execute(make_root())
        factory_context = built[0].factory_context
        organization, patient = bundle.records
        assert isinstance(factory_context, FactoryContext)
        assert factory_context.patient_id == patient.id
        assert factory_context.organization_id == organization.id


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_default_registry(self):
        registry = default_registry()
        assert registry.keys() == list(DEFAULT_CONVERTERS)
        assert "Observation.vital-signs" in registry

    def test_replace_keeps_position(self):
        registry = default_registry()
        keys = registry.keys()
        registry.register("Encounter", RecordingConverter)
        assert registry.keys() == keys

    def test_unregister(self):
        registry = default_registry()
        assert registry.unregister("Procedure") is True
        assert registry.unregister("Procedure") is False
        assert "Procedure" not in registry

    def test_empty_registry(self, make_root):
        with pytest.raises(ConfigurationError):
            Executor(ConverterRegistry()).execute(make_root())

    def test_abstract_factory(self):
        with pytest.raises(ConfigurationError):
            ConverterRegistry().register("Section", SectionConverter)

    def test_non_callable_factory(self):
        with pytest.raises(ConfigurationError):
            ConverterRegistry().register("Nothing", "not a factory")

    def test_factory_must_build_a_document_converter(self, make_root):
        registry = ConverterRegistry().register("Bad", lambda factory_context: object())
        with pytest.raises(ConfigurationError):
            Executor(registry).execute(make_root())

    def test_replace_primary_patient(self, make_root):
        class NoPatient:
            query = "/cda:ClinicalDocument/cda:nothing"

            def select_one(self, root):
                return None

            def convert(self, element, context):
                raise RequiredValueNotFoundError(element)

        registry = default_registry()
        registry.primary_patient = NoPatient()
        with pytest.raises(MissingPrimaryEntityError):
            Executor(registry).execute(make_root())
