"""Structured conversion errors.

Every decode failure carries the absolute path of the offending source element
and, where known, the dotted path of the record field the value was meant for,
so a failure can be diagnosed without re-running the conversion.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from lxml import etree

from ccdafold.core.cda import element_path

if TYPE_CHECKING:
    from ccdafold.models import Bundle


def _join_path(base: str, xpath: str | None) -> str:
    if not xpath:
        return base
    if xpath.startswith(("/", "[")):
        return base + xpath
    return f"{base}/{xpath}"


class ConversionError(Exception):
    """Base class for a failure to decode one source element."""

    default_message = "Conversion failed"

    def __init__(
        self,
        element: etree._Element | None,
        message: str | None = None,
        xpath: str | None = None,
        target_path: str | None = None,
    ):
        self.element = element
        self.xpath = xpath
        self.target_path = target_path
        self.source_path = _join_path(element_path(element), xpath)
        self.detail = message or self.default_message
        super().__init__(self._format())

    def _format(self) -> str:
        text = self.detail
        if self.source_path:
            text += f" | Source: {self.source_path}"
        if self.target_path:
            text += f" | Target: {self.target_path}"
        return text


class RequiredValueNotFoundError(ConversionError):
    """A value the record cannot do without is absent from the source."""

    default_message = "Required value could not be found"


class UnexpectedTypeError(ConversionError):
    """A typed value was of a recognized type the caller did not allow."""

    def __init__(self, element, unexpected_type: str, target_path: str | None = None):
        self.unexpected_type = unexpected_type
        super().__init__(
            element,
            f"The type '{unexpected_type}' is unexpected",
            target_path=target_path,
        )


class UnrecognizedValueError(ConversionError):
    """A source value falls outside the closed set the converter understands."""

    def __init__(
        self,
        element,
        value: str | None,
        xpath: str | None = None,
        attribute: str | None = None,
        target_path: str | None = None,
    ):
        self.value = value
        self.attribute = attribute
        if attribute:
            xpath = f"{xpath or ''}[@{attribute}]"
        super().__init__(
            element,
            f"The value '{value}' is unrecognized",
            xpath=xpath,
            target_path=target_path,
        )


class ProfileRelatedError(ConversionError):
    """The source breaks a cardinality or invariant of the target profile."""


class FatalConversionError(Exception):
    """The document cannot be converted at all; no output is produced."""


class MissingPrimaryEntityError(FatalConversionError):
    """The primary organization or patient could not be resolved."""


class ConfigurationError(FatalConversionError):
    """The converter registry is empty or holds something unusable."""


class AggregateConversionError(Exception):
    """Conversion finished but collected errors along the way.

    The complete bundle is still available on ``bundle``.
    """

    def __init__(self, bundle: Bundle):
        self.bundle = bundle
        self.errors = list(bundle.errors)
        lines = [f"{len(self.errors)} error(s) occurred during conversion:"]
        lines.extend(f"  - {e}" for e in self.errors)
        super().__init__("\n".join(lines))
