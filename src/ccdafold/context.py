"""Per-document conversion state shared by every converter."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from lxml import etree

from ccdafold.cache import IdentityCache
from ccdafold.errors import ConversionError
from ccdafold.models import Record

logger = logging.getLogger(__name__)


class ConversionContext:
    """Output, identity cache and collected errors for one document.

    A context is created for a single document conversion and passed by
    reference through every converter call. Never reuse it for a second
    document.
    """

    def __init__(self, document: etree._Element):
        self.document = document
        self.records: list[Record] = []
        self.cache = IdentityCache()
        self.errors: list[Exception] = []

    def commit(self, record: Record) -> Record:
        """Append a finished record to the output and cache its identifiers."""
        if not record.id:
            raise ValueError(f"{record.kind.value} record has no id")
        for identifier in record.identifier:
            self.cache.add(record, identifier.system, identifier.value)
        self.records.append(record)
        logger.debug("Committed %s/%s", record.kind.value, record.id)
        return record

    def add_error(self, error: Exception) -> None:
        logger.warning("Collected conversion error: %s", error)
        self.errors.append(error)

    @contextmanager
    def collect(self) -> Iterator[None]:
        """Record a ConversionError raised in the block and carry on.

        Used by converters that keep building a record when one optional
        field fails to decode.
        """
        try:
            yield
        except ConversionError as e:
            self.add_error(e)
