"""Core utilities for CDA navigation and timestamp parsing."""

from ccdafold.core.cda import (
    NAMESPACES,
    NS,
    SDTC_NS,
    XSI_NS,
    attr,
    child,
    children,
    el_text,
    element_path,
    first_text,
    parse_doc,
    parse_string,
    select,
    select_one,
)
from ccdafold.core.utils import parse_cda_date, parse_cda_datetime
