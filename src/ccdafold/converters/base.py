"""Converter interfaces and the steps every converter shares."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable, Protocol, runtime_checkable

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.core.cda import children, select
from ccdafold.models import Identifier, Record, RecordKind, Reference
from ccdafold.values import to_identifier

logger = logging.getLogger(__name__)

US_CORE = "http://hl7.org/fhir/us/core/StructureDefinition"


@runtime_checkable
class ConvertsOne(Protocol):
    """Converts a single source element into at most one record."""

    def convert(self, element: etree._Element, context: ConversionContext) -> Record | None:
        ...


@runtime_checkable
class ConvertsMany(Protocol):
    """Converts a sequence of source elements, one attempt per element."""

    def convert_all(
        self, elements: Iterable[etree._Element], context: ConversionContext
    ) -> list[Record]:
        ...


@runtime_checkable
class DocumentConverter(ConvertsMany, Protocol):
    """A converter that finds its own elements in the document."""

    def select(self, root: etree._Element) -> list[etree._Element]:
        ...


def new_record(kind: RecordKind, profile: str | None = None, **data) -> Record:
    """Create a record with a fresh id, optionally tagged with a profile URL."""
    record = Record(kind=kind, data=dict(data))
    if profile:
        record.profile.append(profile)
    return record


def convert_each(
    converter: ConvertsOne,
    elements: Iterable[etree._Element],
    context: ConversionContext,
) -> list[Record]:
    """Run ``converter.convert`` over ``elements`` in order.

    Records resolved from the identity cache are returned too, so callers can
    reference them, but they are not committed a second time.
    """
    records = []
    for element in elements:
        if element is None:
            continue
        record = converter.convert(element, context)
        if record is not None:
            records.append(record)
    return records


def read_identifiers(
    element: etree._Element,
    required: bool = False,
    target_path: str | None = None,
) -> list[Identifier]:
    """Decode the ``id`` children of ``element``, skipping null-flavored ones."""
    identifiers = []
    for id_el in children(element, "id"):
        identifier = to_identifier(id_el, required=required, target_path=target_path)
        if identifier.system is None and identifier.value is None:
            continue
        identifiers.append(identifier)
    return identifiers


def claim_identity(
    record: Record,
    identifiers: list[Identifier],
    context: ConversionContext,
) -> Record | None:
    """Attach ``identifiers`` to ``record`` unless one is already cached.

    Returns the cached record when any identifier was seen before; the caller
    should then return it in place of ``record``. Otherwise the identifiers are
    attached and None is returned. They enter the cache when the record is
    committed, so a record abandoned half-way is never handed out.
    """
    for identifier in identifiers:
        cached = context.cache.try_get(record.kind, identifier.system, identifier.value)
        if cached is not None:
            logger.debug(
                "%s %s|%s already converted as %s",
                record.kind.value, identifier.system, identifier.value, cached.id,
            )
            return cached
    record.identifier.extend(identifiers)
    return None


def set_identifiers(
    element: etree._Element,
    record: Record,
    context: ConversionContext,
    required: bool = False,
    target_path: str | None = None,
) -> Record | None:
    """Read the element's identifiers and claim them for ``record``."""
    return claim_identity(
        record, read_identifiers(element, required=required, target_path=target_path), context
    )


def patient_reference(patient_id: str) -> Reference:
    return Reference(reference=f"urn:uuid:{patient_id}")


class SectionConverter(ABC):
    """Base for converters that find their own entries in the document.

    Subclasses set ``query`` and implement ``convert``. One instance serves
    one document and knows the id of the document's patient.
    """

    query: str = ""

    def __init__(self, patient_id: str):
        self.patient_id = patient_id

    @property
    def subject(self) -> Reference:
        return patient_reference(self.patient_id)

    def select(self, root: etree._Element) -> list[etree._Element]:
        return select(root, self.query)

    @abstractmethod
    def convert(self, element: etree._Element, context: ConversionContext) -> Record | None:
        ...

    def convert_all(
        self, elements: Iterable[etree._Element], context: ConversionContext
    ) -> list[Record]:
        return convert_each(self, elements, context)
