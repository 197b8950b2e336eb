"""Laboratory DiagnosticReport records from the results section (30954-2).

One report per result organizer. Its component observations are converted
through the result observation converter, so a result with an identifier is
the same record whether the report or the results section reaches it first.
"""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, SectionConverter, new_record, set_identifiers
from ccdafold.converters.observation import ResultObservationConverter
from ccdafold.converters.organization import OrganizationConverter
from ccdafold.core.cda import child, select
from ccdafold.errors import RequiredValueNotFoundError
from ccdafold.models import CodeableConcept, DateTime, Period, Record, RecordKind
from ccdafold.values import find_code_element, to_codeable_concept, to_datetime_element

SERVICE_SECTION_SYSTEM = "http://terminology.hl7.org/CodeSystem/v2-0074"


class LaboratoryResultDiagnosticReportConverter(SectionConverter):
    query = "//cda:section/cda:code[@code='30954-2']/../cda:entry/cda:organizer"

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        report = new_record(
            RecordKind.DIAGNOSTIC_REPORT,
            f"{US_CORE}/us-core-diagnosticreport-lab",
            status="final",
            subject=self.subject,
            category=[CodeableConcept.of(SERVICE_SECTION_SYSTEM, "LAB")],
        )
        cached = set_identifiers(element, report, context)
        if cached is not None:
            return cached

        with context.collect():
            code_el = find_code_element(element)
            if code_el is None:
                raise RequiredValueNotFoundError(element, xpath="code", target_path="DiagnosticReport.code")
            report.data["code"] = to_codeable_concept(code_el, "DiagnosticReport.code")

        with context.collect():
            effective_el = child(element, "effectiveTime")
            effective = (
                to_datetime_element(effective_el, "DiagnosticReport.effective")
                if effective_el is not None
                else None
            )
            if effective is None:
                raise RequiredValueNotFoundError(
                    element, xpath="effectiveTime", target_path="DiagnosticReport.effective"
                )
            report.set_choice("effective", effective)
            if isinstance(effective, DateTime):
                report.data["issued"] = effective.value
            elif isinstance(effective, Period):
                report.data["issued"] = effective.start

        performers = []
        for org_el in select(
            element,
            "cda:component/cda:observation/cda:author/cda:assignedAuthor/cda:representedOrganization",
        ):
            with context.collect():
                reference = OrganizationConverter().convert(org_el, context).ref()
                if reference not in performers:
                    performers.append(reference)
        report.data["performer"] = performers

        results = []
        result_converter = ResultObservationConverter(self.patient_id)
        for observation_el in select(element, "cda:component/cda:observation"):
            with context.collect():
                results.append(result_converter.convert(observation_el, context).ref())
        report.data["result"] = results

        return context.commit(report)
