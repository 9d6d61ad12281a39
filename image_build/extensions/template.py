"""Build extension: ``{{VAR}}`` placeholder rendering."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from targetkit.errors import TargetFailure

from image_build.foundation.logging_utils import write_text_file

_PLACEHOLDER_RE = re.compile(r"\{\{([A-Z_][A-Z0-9_]*)\}\}")


def extract_vars(text: str) -> list[str]:
    return sorted(set(_PLACEHOLDER_RE.findall(text)))


def render_text(text: str, variables: Mapping[str, str]) -> str:
    """Unknown placeholders render empty."""

    return _PLACEHOLDER_RE.sub(lambda m: str(variables.get(m.group(1), "")), text)


def missing_vars(text: str, variables: Mapping[str, str]) -> list[str]:
    return [name for name in extract_vars(text) if not variables.get(name)]


class TemplateExtension:
    FLAGS = {}

    def __init__(self, ctx: Any):
        self._ctx = ctx

    def _read(self, template_file: str | os.PathLike[str]) -> str:
        path = Path(template_file)
        if not path.is_file():
            raise TargetFailure(f"Template file not found: {path}")
        return path.read_text(encoding="utf-8")

    def extract_vars(self, template_file: str | os.PathLike[str]) -> list[str]:
        return extract_vars(self._read(template_file))

    def validate(self, template_file: str | os.PathLike[str], variables: Mapping[str, str]) -> None:
        text = self._read(template_file)
        if not extract_vars(text):
            self._ctx.logger.warning("No template variables found in %s", template_file)
            return
        missing = missing_vars(text, variables)
        if missing:
            raise TargetFailure(f"Missing required template variables: {' '.join(missing)}")

    def render(
        self,
        template_file: str | os.PathLike[str],
        output_file: str | os.PathLike[str],
        variables: Mapping[str, str],
    ) -> Path:
        text = self._read(template_file)
        used = extract_vars(text)
        self._ctx.logger.debug("Template variables (%d): %s", len(used), " ".join(used))
        target = Path(output_file)
        write_text_file(str(target), render_text(text, variables))
        self._ctx.logger.debug("Rendered %s -> %s", Path(template_file).name, target.name)
        return target


EXTENSION = TemplateExtension
