"""Practitioner records from assignedAuthor / assignedEntity elements.

Not a document-level converter: callers hand it the element they found.
"""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, claim_identity, new_record, read_identifiers
from ccdafold.core.cda import child, children
from ccdafold.errors import RequiredValueNotFoundError
from ccdafold.models import Record, RecordKind
from ccdafold.values import to_address, to_codeable_concept, to_contact_point, to_human_name


class PractitionerConverter:
    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        practitioner = new_record(RecordKind.PRACTITIONER, f"{US_CORE}/us-core-practitioner")

        identifiers = read_identifiers(element, required=True, target_path="Practitioner.identifier")
        if not identifiers:
            raise RequiredValueNotFoundError(element, xpath="id", target_path="Practitioner.identifier")
        cached = claim_identity(practitioner, identifiers, context)
        if cached is not None:
            return cached

        name_els = children(child(element, "assignedPerson"), "name")
        if not name_els:
            raise RequiredValueNotFoundError(
                element, xpath="assignedPerson/name", target_path="Practitioner.name"
            )
        names = []
        for name_el in name_els:
            name = to_human_name(name_el, "Practitioner.name")
            if not name.family:
                raise RequiredValueNotFoundError(
                    name_el, xpath="family", target_path="Practitioner.name.family"
                )
            names.append(name)
        practitioner.data["name"] = names

        practitioner.data["address"] = [
            to_address(addr_el, "Practitioner.address") for addr_el in children(element, "addr")
        ]
        practitioner.data["telecom"] = [
            to_contact_point(tel_el, "Practitioner.telecom") for tel_el in children(element, "telecom")
        ]
        practitioner.data["qualification"] = [
            {"code": to_codeable_concept(code_el, "Practitioner.qualification.code")}
            for code_el in children(element, "code")
        ]

        return context.commit(practitioner)
