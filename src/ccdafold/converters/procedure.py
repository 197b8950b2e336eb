"""Procedure records from the procedures section (47519-4)."""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, SectionConverter, new_record, set_identifiers
from ccdafold.converters.device import DeviceConverter
from ccdafold.converters.location import LocationConverter
from ccdafold.core.cda import attr, child, children
from ccdafold.errors import RequiredValueNotFoundError
from ccdafold.models import Record, RecordKind
from ccdafold.values import find_code_element, to_codeable_concept, to_datetime_element


class ProcedureConverter(SectionConverter):
    query = "//cda:section/cda:code[@code='47519-4']/../cda:entry/cda:procedure"

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        procedure = new_record(
            RecordKind.PROCEDURE,
            f"{US_CORE}/us-core-procedure",
            subject=self.subject,
            status="completed",
        )
        cached = set_identifiers(element, procedure, context)
        if cached is not None:
            return cached

        with context.collect():
            code_el = find_code_element(element)
            if code_el is None:
                raise RequiredValueNotFoundError(element, xpath="code", target_path="Procedure.code")
            procedure.data["code"] = to_codeable_concept(code_el, "Procedure.code")

        with context.collect():
            effective_el = child(element, "effectiveTime")
            performed = None
            if effective_el is not None:
                performed = to_datetime_element(effective_el, "Procedure.performed")
            if performed is None:
                raise RequiredValueNotFoundError(
                    element, xpath="effectiveTime", target_path="Procedure.performed"
                )
            procedure.set_choice("performed", performed)

        devices = DeviceConverter(self.patient_id)
        for participant_el in children(element, "participant"):
            role_el = child(participant_el, "participantRole")
            if role_el is None:
                continue
            with context.collect():
                if attr(role_el, "classCode") == "SDLOC":
                    location = LocationConverter().convert(role_el, context)
                    procedure.data.setdefault("location", location.ref())
                elif child(role_el, "playingDevice") is not None:
                    devices.convert(role_el, context)

        return context.commit(procedure)
