"""Goal records from the goals section (61146-7)."""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, SectionConverter, new_record, set_identifiers
from ccdafold.core.cda import child
from ccdafold.errors import RequiredValueNotFoundError
from ccdafold.models import CodeableConcept, DateTime, Period, Record, RecordKind
from ccdafold.values import to_datetime_element, to_typed_value


def _date(value: str | None) -> str | None:
    return value[:10] if value else None


class GoalConverter(SectionConverter):
    query = "//cda:section/cda:code[@code='61146-7']/../cda:entry/cda:observation"

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        goal = new_record(
            RecordKind.GOAL,
            f"{US_CORE}/us-core-goal",
            lifecycleStatus="active",
            subject=self.subject,
        )
        cached = set_identifiers(element, goal, context)
        if cached is not None:
            return cached

        effective_el = child(element, "effectiveTime")
        effective = to_datetime_element(effective_el, "Goal.start") if effective_el is not None else None
        if isinstance(effective, Period):
            goal.data["startDate"] = _date(effective.start)
            goal.data["target"] = [{"dueDate": _date(effective.end)}]
        elif isinstance(effective, DateTime):
            goal.data["startDate"] = _date(effective.value)

        with context.collect():
            value_el = child(element, "value")
            if value_el is None:
                raise RequiredValueNotFoundError(element, xpath="value", target_path="Goal.description.text")
            description = to_typed_value(value_el, ["st"], "Goal.description.text")
            goal.data["description"] = CodeableConcept(text=description.value)

        return context.commit(goal)
