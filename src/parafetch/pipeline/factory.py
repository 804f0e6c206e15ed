"""Expands identifiers into tasks from a URL template."""

from __future__ import annotations

import re
from dataclasses import dataclass

from parafetch.pipeline.models import Identifier, Task

DEFAULT_TEMPLATE = "https://hacker-news.firebaseio.com/v0/item/%s.json"

_DIRECTIVE = re.compile(r"%(.)", re.DOTALL)


class TemplateError(ValueError):
    """Raised for a URL template without exactly one ``%s`` placeholder."""


def validate_template(template: str) -> None:
    """Raise ``TemplateError`` unless ``template`` has exactly one ``%s``.

    ``%%`` is accepted as a literal percent sign; any other directive is
    rejected.
    """

    placeholders = 0
    for match in _DIRECTIVE.finditer(template):
        directive = match.group(1)
        if directive == "s":
            placeholders += 1
        elif directive != "%":
            raise TemplateError(
                f"Invalid URL template {template!r}: unsupported directive %{directive}.",
            )
    if template.count("%") != 2 * template.count("%%") + placeholders:
        raise TemplateError(f"Invalid URL template {template!r}: dangling '%'.")
    if placeholders != 1:
        raise TemplateError(
            f"Invalid URL template {template!r}: expected exactly one %s, found {placeholders}.",
        )


@dataclass(frozen=True, slots=True)
class TaskFactory:
    """Builds one ``Task`` per identifier by substitution into ``template``."""

    template: str = DEFAULT_TEMPLATE

    def build(self, identifier: Identifier) -> Task:
        return Task(id=identifier, target=self.template % identifier)
