"""Implantable device records from the medical equipment section (46264-8)
and from procedure product participants."""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, SectionConverter, new_record
from ccdafold.core.cda import attr, child
from ccdafold.errors import RequiredValueNotFoundError
from ccdafold.models import Record, RecordKind
from ccdafold.values import to_codeable_concept


class DeviceConverter(SectionConverter):
    """Converts participantRole elements that carry a playingDevice.

    Devices are deduplicated by their UDI barcode (``id/@extension``). A device
    whose barcode was already converted produces nothing.
    """

    query = (
        "//cda:section/cda:code[@code='46264-8']/../cda:entry"
        "//cda:participantRole[cda:playingDevice]"
    )

    def convert(self, element: etree._Element, context: ConversionContext) -> Record | None:
        code_el = child(child(element, "playingDevice"), "code")
        if code_el is None:
            raise RequiredValueNotFoundError(
                element, xpath="playingDevice/code", target_path="Device.type"
            )
        device = new_record(
            RecordKind.DEVICE,
            f"{US_CORE}/us-core-implantable-device",
            patient=self.subject,
            type=to_codeable_concept(code_el, "Device.type"),
        )

        barcode = attr(child(element, "id"), "extension")
        if barcode is not None and context.cache.contains(RecordKind.DEVICE, None, barcode):
            return None

        if barcode is not None:
            device_code = device.data["type"].first.code
            if not device_code:
                raise RequiredValueNotFoundError(
                    code_el, xpath="[@code]", target_path="Device.udiCarrier.deviceIdentifier"
                )
            udi = {"deviceIdentifier": device_code, "carrierHRF": barcode}
            issuer = attr(child(child(element, "scopingEntity"), "id"), "root")
            if issuer is not None:
                udi["issuer"] = issuer
            device.data["udiCarrier"] = [udi]
            context.cache.add(device, None, barcode)

        return context.commit(device)
