"""SVG post-processing applied to pdftocairo output."""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, List, Optional
from xml.etree import ElementTree

LOG = logging.getLogger("tex2tree.svg")

SVG_NAMESPACE = "http://www.w3.org/2000/svg"
XLINK_NAMESPACE = "http://www.w3.org/1999/xlink"

ElementTree.register_namespace("", SVG_NAMESPACE)
ElementTree.register_namespace("xlink", XLINK_NAMESPACE)

SvgPlugin = Callable[[ElementTree.Element], None]

_NUMBER_WITH_UNIT_RE = re.compile(r"([0-9]+\.?[0-9]*)(px|pt|cm|mm|in|em|ex|pc)?")
_VIEWBOX_SEPARATOR_RE = re.compile(r"[\s,]+")


def _format_number(text: str) -> str:
    value = float(text)
    return str(int(value)) if value.is_integer() else repr(value)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def force_unit(unit: str = "pt") -> SvgPlugin:
    """Give the root ``<svg>`` explicit ``width``/``height`` in ``unit``.

    The viewBox size wins when present; otherwise existing width/height numbers
    are kept and their unit (if any) is replaced.
    """

    def plugin(root: ElementTree.Element) -> None:
        if _local_name(root.tag) != "svg":
            return
        view_box = root.get("viewBox")
        if view_box:
            parts = _VIEWBOX_SEPARATOR_RE.split(view_box.strip())
            if len(parts) >= 4:
                root.set("width", parts[2] + unit)
                root.set("height", parts[3] + unit)
                return
        for attribute in ("width", "height"):
            value = root.get(attribute)
            if not value or value.endswith(unit):
                continue
            number = _NUMBER_WITH_UNIT_RE.sub(lambda m: _format_number(m.group(1)), value)
            root.set(attribute, number + unit)

    plugin.__name__ = f"force_unit_{unit}"
    return plugin


DEFAULT_PLUGINS: List[SvgPlugin] = [force_unit()]


class SvgOptimizer:
    def __init__(self, plugins: Optional[Iterable[SvgPlugin]] = None, logger: Optional[logging.Logger] = None):
        self.plugins: List[SvgPlugin] = list(DEFAULT_PLUGINS if plugins is None else plugins)
        self.log = logger or LOG

    def optimize(self, svg_bytes: bytes, plugins: Optional[Iterable[SvgPlugin]] = None) -> bytes:
        # Comments and processing instructions are dropped by the parser.
        root = ElementTree.fromstring(svg_bytes)
        for plugin in self.plugins if plugins is None else plugins:
            plugin(root)
        return ElementTree.tostring(root, encoding="unicode").encode("utf-8")
