"""CDA R2 XML navigation shared by every converter.

Wraps lxml with the fixed C-CDA namespace map so converters can use short
XPath queries (``//cda:section/cda:code[@code='11450-4']/..``) and adds the
absolute-path helper used in error diagnostics.
"""

from __future__ import annotations

from lxml import etree

NS = "urn:hl7-org:v3"
SDTC_NS = "urn:hl7-org:sdtc"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

NAMESPACES = {"cda": NS, "sdtc": SDTC_NS, "xsi": XSI_NS}


def parse_doc(filepath: str, recover: bool = False) -> etree._Element:
    """Parse a CDA XML file and return the root element.

    Args:
        filepath: Path to the XML file.
        recover: If True, use lxml's recovery mode for encoding issues.
    """
    if recover:
        parser = etree.XMLParser(recover=True, encoding="utf-8")
        with open(filepath, "rb") as f:
            return etree.parse(f, parser).getroot()
    return etree.parse(filepath).getroot()


def parse_string(text: str | bytes) -> etree._Element:
    """Parse CDA XML held in memory and return the root element."""
    if isinstance(text, str):
        text = text.encode("utf-8")
    return etree.fromstring(text)


def select(root: etree._Element, query: str) -> list[etree._Element]:
    """Evaluate an element query against ``root``, in document order.

    ``query`` is XPath 1.0 using the ``cda``, ``sdtc`` and ``xsi`` prefixes.
    An empty result is returned as an empty list.
    """
    result = root.xpath(query, namespaces=NAMESPACES)
    if not isinstance(result, list):
        raise TypeError(f"Query {query!r} does not select elements")
    for item in result:
        if not isinstance(item, etree._Element) or not isinstance(item.tag, str):
            raise TypeError(f"Query {query!r} selected a non-element result: {item!r}")
    return result


def select_one(root: etree._Element, query: str) -> etree._Element | None:
    """Return the first element matched by ``query``, or None."""
    found = select(root, query)
    return found[0] if found else None


def child(el: etree._Element | None, name: str, ns: str = NS) -> etree._Element | None:
    """Return the first child element named ``name`` in namespace ``ns``."""
    if el is None:
        return None
    return el.find(f"{{{ns}}}{name}")


def children(el: etree._Element | None, name: str, ns: str = NS) -> list[etree._Element]:
    """Return all child elements named ``name`` in namespace ``ns``."""
    if el is None:
        return []
    return el.findall(f"{{{ns}}}{name}")


def attr(el: etree._Element | None, name: str) -> str | None:
    """Get an attribute value, treating blank values as missing."""
    if el is None:
        return None
    value = el.get(name)
    if value is None or not value.strip():
        return None
    return value


def local_name(el: etree._Element) -> str:
    return etree.QName(el).localname


def el_text(el: etree._Element | None) -> str:
    """Get text content of an element, stripping whitespace."""
    if el is None:
        return ""
    result = etree.tostring(el, method="text", encoding="unicode")
    return str(result).strip()


def first_text(el: etree._Element) -> str | None:
    """Return the element's own leading text node, ignoring child markup."""
    if el.text is not None:
        return el.text
    for sub in el:
        if sub.tail is not None:
            return sub.tail
    return None


def element_path(el: etree._Element | None) -> str:
    """Build the absolute path of an element for diagnostics.

    Steps use local names. A zero-based position is appended only when the
    parent has more than one child with the same local name, e.g.
    ``/ClinicalDocument/component/structuredBody/component[2]/section``.
    """
    if el is None:
        return ""
    steps = []
    node = el
    while node is not None:
        name = local_name(node)
        parent = node.getparent()
        if parent is not None:
            siblings = [
                s for s in parent
                if isinstance(s.tag, str) and local_name(s) == name
            ]
            if len(siblings) > 1:
                name += f"[{siblings.index(node)}]"
        steps.append(name)
        node = parent
    return "/" + "/".join(reversed(steps))
