"""Patient record for the document's record target (recordTarget/patientRole)."""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, new_record, set_identifiers
from ccdafold.core.cda import SDTC_NS, attr, child, children, select_one
from ccdafold.errors import RequiredValueNotFoundError, UnrecognizedValueError
from ccdafold.models import Coding, Extension, Record, RecordKind
from ccdafold.status import (
    ADMINISTRATIVE_GENDER,
    ADMINISTRATIVE_GENDER_CODES,
    LANGUAGE_DISPLAY,
    lookup,
)
from ccdafold.values import (
    to_address,
    to_codeable_concept,
    to_coding,
    to_contact_point,
    to_date,
    to_human_name,
)

RACE_URL = f"{US_CORE}/us-core-race"
ETHNICITY_URL = f"{US_CORE}/us-core-ethnicity"
BIRTHPLACE_URL = "http://hl7.org/fhir/StructureDefinition/patient-birthPlace"
NULL_FLAVOR_SYSTEM = "http://terminology.hl7.org/CodeSystem/v3-NullFlavor"
LANGUAGE_SYSTEM = "urn:ietf:bcp:47"

# OMB race categories; any other race code is reported as "detailed"
OMB_RACE_CODES = {"1002-5", "2028-9", "2054-5", "2076-8", "2106-3"}
OMB_ETHNICITY_CODES = {"2135-2", "2186-5"}


class PatientConverter:
    query = "/cda:ClinicalDocument/cda:recordTarget/cda:patientRole"

    def select_one(self, root: etree._Element) -> etree._Element | None:
        return select_one(root, self.query)

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        patient = new_record(RecordKind.PATIENT, f"{US_CORE}/us-core-patient")
        cached = set_identifiers(element, patient, context)
        if cached is not None:
            return cached

        addresses = []
        for addr_el in children(element, "addr"):
            with context.collect():
                addresses.append(to_address(addr_el, "Patient.address"))
        patient.data["address"] = addresses

        telecoms = []
        for telecom_el in children(element, "telecom"):
            with context.collect():
                telecoms.append(to_contact_point(telecom_el, "Patient.telecom"))
        patient.data["telecom"] = telecoms

        person = child(element, "patient")
        if person is not None:
            self._convert_person(person, patient, context)

        return context.commit(patient)

    def _convert_person(self, person: etree._Element, patient: Record, context: ConversionContext):
        names = []
        for name_el in children(person, "name"):
            with context.collect():
                names.append(to_human_name(name_el, "Patient.name"))
        patient.data["name"] = names
        with context.collect():
            if not names:
                raise RequiredValueNotFoundError(person, xpath="name", target_path="Patient.name")

        with context.collect():
            patient.data["gender"] = _gender(person)

        birth_el = child(person, "birthTime")
        if birth_el is not None:
            with context.collect():
                patient.data["birthDate"] = to_date(birth_el, "Patient.birthDate")

        marital_el = child(person, "maritalStatusCode")
        if marital_el is not None:
            with context.collect():
                patient.data["maritalStatus"] = to_codeable_concept(marital_el, "Patient.maritalStatus")

        extensions = []
        race_els = children(person, "raceCode") + children(person, "raceCode", SDTC_NS)
        ethnicity_els = children(person, "ethnicGroupCode") + children(person, "ethnicGroupCode", SDTC_NS)
        for url, category_codes, els in (
            (RACE_URL, OMB_RACE_CODES, race_els),
            (ETHNICITY_URL, OMB_ETHNICITY_CODES, ethnicity_els),
        ):
            ext = _category_extension(url, category_codes, els)
            if ext is not None:
                extensions.append(ext)

        birthplace_addr = child(child(child(person, "birthplace"), "place"), "addr")
        if birthplace_addr is not None:
            with context.collect():
                extensions.append(
                    Extension(url=BIRTHPLACE_URL, value=to_address(birthplace_addr, "Patient.extension"))
                )
        patient.data["extension"] = extensions

        communications = []
        for comm_el in children(person, "languageCommunication"):
            with context.collect():
                communication = _communication(comm_el)
                if communication is not None:
                    communications.append(communication)
        patient.data["communication"] = communications


def _gender(person: etree._Element) -> str:
    gender_el = child(person, "administrativeGenderCode")
    code = attr(gender_el, "code")
    if code is not None:
        return lookup(
            ADMINISTRATIVE_GENDER_CODES, code, gender_el, attribute="code", target_path="Patient.gender"
        )
    display = attr(gender_el, "displayName")
    if display is None:
        raise RequiredValueNotFoundError(
            person, xpath="administrativeGenderCode[@code]", target_path="Patient.gender"
        )
    return lookup(
        ADMINISTRATIVE_GENDER, display.lower(), gender_el, attribute="displayName",
        target_path="Patient.gender",
    )


def _category_extension(url: str, category_codes: set[str], elements: list) -> Extension | None:
    """Build a US Core race/ethnicity extension from raceCode-like elements."""
    if not elements:
        return None
    inner = []
    texts = []
    for el in elements:
        null_flavor = attr(el, "nullFlavor")
        if null_flavor is not None:
            display = "Asked but no answer" if null_flavor == "ASKU" else "Unknown"
            coding = Coding(system=NULL_FLAVOR_SYSTEM, code=null_flavor, display=display)
            inner.append(Extension(url="ombCategory", value=coding))
        else:
            coding = to_coding(el)
            slot = "ombCategory" if coding.code in category_codes else "detailed"
            inner.append(Extension(url=slot, value=coding))
        if coding.display:
            texts.append(coding.display)
    inner.append(Extension(url="text", value=", ".join(texts) or "Unknown"))
    return Extension(url=url, extension=inner)


def _communication(comm_el: etree._Element) -> dict | None:
    code_el = child(comm_el, "languageCode")
    if code_el is None:
        return None
    language = to_codeable_concept(code_el, "Patient.communication.language")
    coding = language.coding[0]
    if coding.code:
        coding.system = LANGUAGE_SYSTEM
        coding.display = lookup(
            LANGUAGE_DISPLAY, coding.code.lower(), code_el, attribute="code",
            target_path="Patient.communication.language.coding.code",
        )
    communication: dict = {"language": language}
    preferred = attr(child(comm_el, "preferenceInd"), "value")
    if preferred is not None:
        if preferred.lower() not in ("true", "false"):
            raise UnrecognizedValueError(
                comm_el, preferred, xpath="preferenceInd", attribute="value",
                target_path="Patient.communication.preferred",
            )
        communication["preferred"] = preferred.lower() == "true"
    return communication
