"""
templating.py: Config file materialization
-----------------------------------------
Config templates shipped with the setup bundle are ERB files: values are
inserted with expression tags such as ``<%= @astroboa_config_dir %>``.
Everything else, including JBoss property expressions like
``${jboss.bind.address:127.0.0.1}``, is copied through unchanged.
Before a file of the installed runtime is replaced, the existing one is kept
next to it as ``<file>.original``.
"""

from __future__ import annotations
import re
import shutil
from pathlib import Path
from typing import Mapping, Optional
from .errors import TemplateRenderError
from .logging_setup import get_logger

log = get_logger("templating")

_TAG_RE = re.compile(r"<%(.*?)%>", re.DOTALL)
_EXPRESSION_RE = re.compile(r"=\s*@?(\w+)\s*")


def preserve_original(path: Path) -> Optional[Path]:
    """Copy ``path`` to ``path.original`` (overwriting an older copy)."""
    path = Path(path)
    if not path.exists():
        return None
    backup = path.with_name(path.name + ".original")
    shutil.copy2(path, backup)
    log.debug("Preserved %s as %s", path, backup)
    return backup


def render_text(template: str, context: Mapping[str, str], template_path: Optional[str] = None) -> str:
    """Replace every ``<%= name %>`` / ``<%= @name %>`` tag with ``context[name]``.

    Only variable expressions are supported. An unknown variable raises with
    a KeyError, any other tag (``<% code %>``) with a ValueError; both carry
    the line of the offending tag.
    """
    ctx = dict(context)

    def expand(m: re.Match) -> str:
        expr = _EXPRESSION_RE.fullmatch(m.group(1))
        if expr is not None and expr.group(1) in ctx:
            return str(ctx[expr.group(1)])
        if expr is None:
            err: Exception = ValueError(f"Unsupported template tag {m.group(0)!r}")
        else:
            err = KeyError(expr.group(1))
        line = template.count("\n", 0, m.start()) + 1
        raise TemplateRenderError(err, template, ctx, line, template_path) from err

    return _TAG_RE.sub(expand, template)


def render(template_path: Path, context: Mapping[str, str], output_path: Path) -> Path:
    template_path, output_path = Path(template_path), Path(output_path)
    template = template_path.read_text(encoding="utf-8")
    text = render_text(template, context, str(template_path))
    preserve_original(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(text, encoding="utf-8")
    log.info("Generated %s from %s", output_path, template_path)
    return output_path


def install_file(source: Path, target: Path) -> Path:
    """Copy a ready-made config file into place, keeping the replaced one."""
    source, target = Path(source), Path(target)
    preserve_original(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, target)
    log.info("Installed %s", target)
    return target
