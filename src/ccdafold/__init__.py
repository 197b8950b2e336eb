"""ccdafold: convert C-CDA clinical documents into FHIR-shaped record bundles.

Supports the common C-CDA sections (allergies, problems, health concerns,
encounters, immunizations, medications, procedures, results, vital signs and
social history), deduplicating repeated entities across the document.
"""

__version__ = "0.1.0"
