"""Converter registry and whole-document orchestration.

Usage:
    registry = default_registry()
    bundle = Executor(registry).execute(parse_doc("ccd.xml"))

``execute`` raises AggregateConversionError when any converter reported an
error; the bundle built so far is available on the exception.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Callable, Iterator, Protocol, Union

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters import (
    AllergyIntoleranceConverter,
    DeviceConverter,
    EncounterConverter,
    GoalConverter,
    HealthConcernConditionConverter,
    ImmunizationConverter,
    LaboratoryResultDiagnosticReportConverter,
    MedicationRequestConverter,
    MedicationStatementConverter,
    OrganizationConverter,
    PatientConverter,
    PractitionerRoleConverter,
    ProblemListConditionConverter,
    ProcedureConverter,
    ResultObservationConverter,
    SmokingStatusObservationConverter,
    StatusObservationConverter,
    VitalSignObservationConverter,
)
from ccdafold.converters.base import DocumentConverter, SectionConverter
from ccdafold.errors import (
    AggregateConversionError,
    ConfigurationError,
    ConversionError,
    MissingPrimaryEntityError,
)
from ccdafold.models import Bundle, Record, RecordKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FactoryContext:
    """What a converter factory gets to build its converter for one document."""

    patient_id: str
    organization_id: str | None
    context: ConversionContext


class PrimaryConverter(Protocol):
    """Finds and converts the single primary entity of a document."""

    query: str

    def select_one(self, root: etree._Element) -> etree._Element | None:
        ...

    def convert(self, element: etree._Element, context: ConversionContext) -> Record | None:
        ...


# A SectionConverter subclass (built with the patient id) or any callable
# taking a FactoryContext and returning a DocumentConverter.
ConverterFactory = Union[type, Callable[[FactoryContext], DocumentConverter]]

DEFAULT_CONVERTERS: dict[str, type[SectionConverter]] = {
    "AllergyIntolerance": AllergyIntoleranceConverter,
    "Device": DeviceConverter,
    "DiagnosticReport": LaboratoryResultDiagnosticReportConverter,
    "Encounter": EncounterConverter,
    "Condition.health-concern": HealthConcernConditionConverter,
    "Goal": GoalConverter,
    "Immunization": ImmunizationConverter,
    "MedicationRequest": MedicationRequestConverter,
    "MedicationStatement": MedicationStatementConverter,
    "Condition.problem-list-item": ProblemListConditionConverter,
    "Procedure": ProcedureConverter,
    "Observation.laboratory": ResultObservationConverter,
    "Observation.social-history": SmokingStatusObservationConverter,
    "Observation.exam": StatusObservationConverter,
    "Observation.vital-signs": VitalSignObservationConverter,
    "PractitionerRole": PractitionerRoleConverter,
}


class ConverterRegistry:
    """Ordered map of converter key -> factory, plus the two primary converters.

    Keys are record kinds, qualified by category where one kind is built from
    several sections (``Condition.problem-list-item``). Converters run in
    registration order.
    """

    def __init__(
        self,
        primary_organization: PrimaryConverter | None = None,
        primary_patient: PrimaryConverter | None = None,
    ):
        self.primary_organization = primary_organization or OrganizationConverter()
        self.primary_patient = primary_patient or PatientConverter()
        self._factories: dict[str, ConverterFactory] = {}

    def register(self, key: str, factory: ConverterFactory) -> ConverterRegistry:
        """Add a factory, or replace the one under ``key`` keeping its position."""
        if not callable(factory):
            raise ConfigurationError(f"Factory for '{key}' is not callable: {factory!r}")
        if inspect.isclass(factory) and inspect.isabstract(factory):
            raise ConfigurationError(f"Factory for '{key}' is abstract: {factory.__name__}")
        self._factories[key] = factory
        return self

    def unregister(self, key: str) -> bool:
        """Remove ``key``; returns False when it was not registered."""
        return self._factories.pop(key, None) is not None

    def build(self, key: str, factory_context: FactoryContext) -> DocumentConverter:
        factory = self._factories[key]
        if inspect.isclass(factory) and issubclass(factory, SectionConverter):
            converter = factory(factory_context.patient_id)
        else:
            converter = factory(factory_context)
        if not isinstance(converter, DocumentConverter):
            raise ConfigurationError(
                f"Factory for '{key}' produced {type(converter).__name__}, "
                f"which cannot select and convert document entries"
            )
        return converter

    def keys(self) -> list[str]:
        return list(self._factories)

    def __contains__(self, key: str) -> bool:
        return key in self._factories

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._factories))

    def __len__(self) -> int:
        return len(self._factories)


def default_registry() -> ConverterRegistry:
    """A registry holding every built-in section converter."""
    registry = ConverterRegistry()
    for key, factory in DEFAULT_CONVERTERS.items():
        registry.register(key, factory)
    return registry


class Executor:
    """Converts whole documents with the converters of a registry."""

    def __init__(self, registry: ConverterRegistry | None = None, patient_only: bool = False):
        self.registry = registry if registry is not None else default_registry()
        self.patient_only = patient_only

    def execute(self, root: etree._Element) -> Bundle:
        """Convert one document.

        Raises:
            ConfigurationError: the registry is empty (outside patient-only
                mode) or a factory built something unusable.
            MissingPrimaryEntityError: no primary organization or patient.
            AggregateConversionError: errors were collected; carries the bundle.
        """
        if not self.patient_only and len(self.registry) == 0:
            raise ConfigurationError("There are no converters in the registry")

        context = ConversionContext(root)

        organization = None
        if not self.patient_only:
            organization = self._convert_primary(
                self.registry.primary_organization, RecordKind.ORGANIZATION, root, context
            )
        patient = self._convert_primary(self.registry.primary_patient, RecordKind.PATIENT, root, context)
        if organization is not None:
            patient.data["managingOrganization"] = organization.ref()

        if not self.patient_only:
            factory_context = FactoryContext(
                patient_id=patient.id,
                organization_id=organization.id if organization is not None else None,
                context=context,
            )
            for key in self.registry:
                self._run(key, factory_context, root, context)

        bundle = Bundle(records=list(context.records), errors=list(context.errors))
        logger.info(
            "Converted document into %d record(s) with %d error(s)",
            len(bundle.records), len(bundle.errors),
        )
        if bundle.errors:
            raise AggregateConversionError(bundle)
        return bundle

    def _convert_primary(
        self,
        converter: PrimaryConverter,
        kind: RecordKind,
        root: etree._Element,
        context: ConversionContext,
    ) -> Record:
        element = converter.select_one(root)
        if element is None:
            raise MissingPrimaryEntityError(
                f"No {kind.value.lower()} found in the document ({converter.query})"
            )
        try:
            record = converter.convert(element, context)
        except ConversionError as e:
            raise MissingPrimaryEntityError(f"The {kind.value.lower()} could not be converted: {e}") from e
        if record is None or record.kind is not kind:
            raise MissingPrimaryEntityError(f"The {kind.value.lower()} converter did not produce a {kind.value}")
        return record

    def _run(
        self,
        key: str,
        factory_context: FactoryContext,
        root: etree._Element,
        context: ConversionContext,
    ) -> None:
        converter = self.registry.build(key, factory_context)
        logger.debug("Running converter %s", key)
        try:
            elements = converter.select(root)
            records = converter.convert_all(elements, context)
        except Exception as e:
            context.add_error(e)
            return
        logger.debug("%s converted %d of %d element(s)", key, len(records), len(elements))
