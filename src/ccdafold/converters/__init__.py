"""Converters from CDA entries to records, one module per record kind."""

from ccdafold.converters.allergy import AllergyIntoleranceConverter
from ccdafold.converters.base import ConvertsMany, ConvertsOne, DocumentConverter, SectionConverter
from ccdafold.converters.condition import (
    EncounterDiagnosisConditionConverter,
    HealthConcernConditionConverter,
    ProblemListConditionConverter,
)
from ccdafold.converters.device import DeviceConverter
from ccdafold.converters.diagnostic_report import LaboratoryResultDiagnosticReportConverter
from ccdafold.converters.encounter import EncounterConverter
from ccdafold.converters.goal import GoalConverter
from ccdafold.converters.immunization import ImmunizationConverter
from ccdafold.converters.location import LocationConverter
from ccdafold.converters.medication import MedicationConverter
from ccdafold.converters.medication_request import MedicationRequestConverter
from ccdafold.converters.medication_statement import MedicationStatementConverter
from ccdafold.converters.observation import (
    ResultObservationConverter,
    SmokingStatusObservationConverter,
    StatusObservationConverter,
    VitalSignObservationConverter,
)
from ccdafold.converters.organization import OrganizationConverter
from ccdafold.converters.patient import PatientConverter
from ccdafold.converters.practitioner import PractitionerConverter
from ccdafold.converters.practitioner_role import PractitionerRoleConverter
from ccdafold.converters.procedure import ProcedureConverter
from ccdafold.converters.provenance import ProvenanceConverter

__all__ = [
    "AllergyIntoleranceConverter",
    "ConvertsMany",
    "ConvertsOne",
    "DeviceConverter",
    "DocumentConverter",
    "EncounterConverter",
    "EncounterDiagnosisConditionConverter",
    "GoalConverter",
    "HealthConcernConditionConverter",
    "ImmunizationConverter",
    "LaboratoryResultDiagnosticReportConverter",
    "LocationConverter",
    "MedicationConverter",
    "MedicationRequestConverter",
    "MedicationStatementConverter",
    "OrganizationConverter",
    "PatientConverter",
    "PractitionerConverter",
    "PractitionerRoleConverter",
    "ProblemListConditionConverter",
    "ProcedureConverter",
    "ProvenanceConverter",
    "ResultObservationConverter",
    "SectionConverter",
    "SmokingStatusObservationConverter",
    "StatusObservationConverter",
    "VitalSignObservationConverter",
]
