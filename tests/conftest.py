"""Shared test fixtures for ccdafold tests."""

import pytest

from ccdafold.context import ConversionContext
from ccdafold.core.cda import NS, SDTC_NS, XSI_NS, parse_string

AUTHOR = """
<author>
  <time value="20200301"/>
  <assignedAuthor>
    <id root="2.16.840.1.113883.4.6" extension="1112223334"/>
    <addr use="WP">
      <streetAddressLine>1002 Healthcare Dr</streetAddressLine>
      <city>Portland</city>
      <state>OR</state>
      <postalCode>97266</postalCode>
    </addr>
    <telecom use="WP" value="tel:+1(555)555-1002"/>
    <assignedPerson>
      <name><given>Henry</given><family>Seven</family></name>
    </assignedPerson>
    <representedOrganization>
      <id root="2.16.840.1.113883.19.5" extension="ORG-1"/>
      <name>Community Health and Hospitals</name>
      <telecom use="WP" value="tel:+1(555)555-5000"/>
      <addr use="WP">
        <streetAddressLine>1001 Village Avenue</streetAddressLine>
        <city>Portland</city>
        <state>OR</state>
        <postalCode>99123</postalCode>
        <country>US</country>
      </addr>
    </representedOrganization>
  </assignedAuthor>
</author>
"""

RECORD_TARGET = """
<recordTarget>
  <patientRole>
    <id root="2.16.840.1.113883.19.5.99999.2" extension="998991"/>
    <addr use="HP">
      <streetAddressLine>1357 Amber Drive</streetAddressLine>
      <city>Beaverton</city>
      <state>OR</state>
      <postalCode>97867</postalCode>
      <country>US</country>
    </addr>
    <telecom value="tel:+1(555)555-2003" use="HP"/>
    <telecom value="mailto:eve@example.com"/>
    <patient>
      <name use="L">
        <given>Eve</given>
        <family>Everywoman</family>
      </name>
      <administrativeGenderCode code="F" codeSystem="2.16.840.1.113883.5.1" displayName="Female"/>
      <birthTime value="19750501"/>
      <maritalStatusCode code="M" codeSystem="2.16.840.1.113883.5.2" displayName="Married"/>
      <raceCode code="2106-3" codeSystem="2.16.840.1.113883.6.238" displayName="White"/>
      <sdtc:raceCode code="2108-9" codeSystem="2.16.840.1.113883.6.238" displayName="European"/>
      <ethnicGroupCode code="2186-5" codeSystem="2.16.840.1.113883.6.238" displayName="Not Hispanic or Latino"/>
      <languageCommunication>
        <languageCode code="en"/>
        <preferenceInd value="true"/>
      </languageCommunication>
    </patient>
  </patientRole>
</recordTarget>
"""


def _section(code, entries):
    body = "".join(f"<entry>{e}</entry>" for e in entries)
    return (
        f'<component><section><code code="{code}" codeSystem="2.16.840.1.113883.6.1"/>'
        f"{body}</section></component>"
    )


def _document(sections=None, author=AUTHOR, record_target=RECORD_TARGET, header=""):
    """Assemble a ClinicalDocument from ``{section code: [entry xml, ...]}``."""
    components = "".join(_section(code, entries) for code, entries in (sections or {}).items())
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<ClinicalDocument xmlns="{NS}" xmlns:xsi="{XSI_NS}" xmlns:sdtc="{SDTC_NS}">
  {record_target}
  {author}
  {header}
  <component><structuredBody>{components}</structuredBody></component>
</ClinicalDocument>"""


@pytest.fixture
def document_xml():
    """Build document XML text; see ``_document`` for the arguments."""
    return _document


@pytest.fixture
def make_root():
    """Build and parse a document, returning its root element."""

    def _make(sections=None, **kwargs):
        return parse_string(_document(sections, **kwargs))

    return _make


@pytest.fixture
def fragment():
    """Parse an XML fragment in the CDA namespace and return its first element."""

    def _parse(xml):
        wrapper = parse_string(
            f'<wrapper xmlns="{NS}" xmlns:xsi="{XSI_NS}" xmlns:sdtc="{SDTC_NS}">{xml}</wrapper>'
        )
        return wrapper[0]

    return _parse


@pytest.fixture
def context(make_root):
    """A fresh conversion context over a document with no sections."""
    return ConversionContext(make_root())
