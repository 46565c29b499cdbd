"""
URI template expansion (RFC 6570) backed by the uritemplate library.
"""
import logging
import re
from typing import Any, Mapping

from uritemplate import URITemplate

from .errors import ExpansionError
from .types import TemplateExpander

logger = logging.getLogger(__name__)

# RFC 6570 section 2: varchar, varname, varspec and expression
_VARCHAR = r"(?:[A-Za-z0-9_]|%[0-9A-Fa-f]{2})"
_VARNAME = rf"{_VARCHAR}(?:\.?{_VARCHAR})*"
_VARSPEC = rf"{_VARNAME}(?::[1-9][0-9]{{0,3}}|\*)?"
_EXPRESSION = re.compile(rf"\{{[+#./;?&]?{_VARSPEC}(?:,{_VARSPEC})*\}}")


def _check_template(template: str) -> None:
    """Raise ExpansionError unless every brace belongs to a well-formed expression"""
    remainder = _EXPRESSION.sub("", template)
    if "{" in remainder or "}" in remainder:
        raise ExpansionError(f"Malformed URI template {template!r}", template=template)


def _normalize(value: Any) -> Any:
    """Render numbers as strings; lists and dicts are normalized item by item"""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return type(value)(_normalize(item) for item in value)
    if isinstance(value, dict):
        return {key: _normalize(item) for key, item in value.items()}
    return value


class UriTemplateExpander(TemplateExpander):
    """
    Expands href-templates with uritemplate.

    Variables missing from ``params`` expand to empty, per RFC 6570.
    Templates with stray braces or invalid expressions raise ExpansionError
    before the library sees them.

    Example:
        UriTemplateExpander().expand("/search?q={query}", {"query": "widgets"})
        # '/search?q=widgets'
    """

    def expand(self, template: str, params: Mapping[str, Any]) -> str:
        if not isinstance(template, str):
            raise ExpansionError(f"Template must be a string, got {type(template).__name__}", template=None)

        _check_template(template)
        # Sorted so the variable mapping is built the same way every call
        variables = {name: _normalize(params[name]) for name in sorted(params)}
        try:
            return URITemplate(template).expand(variables)
        except Exception as e:
            logger.debug(f"UriTemplateExpander.expand failed: template={template!r}, error={e!r}")
            raise ExpansionError(f"Cannot expand template {template!r}: {e}", template=template) from e
