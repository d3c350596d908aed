"""Math renderers turning LaTeX expressions into markup fragments."""

from __future__ import annotations

import re
from typing import Callable, Dict, Optional, Protocol


class MathRenderer(Protocol):
    def render(self, expression: str, display_mode: bool) -> str: ...


class MathMLRenderer:
    """Render math as MathML with latex2mathml.

    ``macros`` maps argument-less macro names (``"\\R"``) to their expansion;
    ``filter_expression`` may rewrite the expression before conversion.
    """

    def __init__(
        self,
        macros: Optional[Dict[str, str]] = None,
        filter_expression: Optional[Callable[[str], str]] = None,
    ):
        self.macros = dict(macros or {})
        self.filter_expression = filter_expression

    def expand_macros(self, expression: str) -> str:
        for name, expansion in self.macros.items():
            command = name if name.startswith("\\") else "\\" + name
            expression = re.sub(re.escape(command) + r"(?![A-Za-z])", lambda _m: expansion, expression)
        return expression

    def render(self, expression: str, display_mode: bool) -> str:
        try:
            from latex2mathml.converter import convert  # type: ignore
        except Exception as exc:
            raise RuntimeError(f"latex2mathml not available: {exc}") from exc

        math = self.expand_macros(expression.strip())
        if self.filter_expression is not None:
            math = self.filter_expression(math)
        try:
            return convert(math, display="block" if display_mode else "inline")
        except Exception as exc:
            raise RuntimeError(f"Unable to render math {math!r}: {exc}") from exc
