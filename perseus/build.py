"""Site building for Perseus.

This module is the orchestrator around :class:`perseus.site.Site`: it loads
configuration from the project root, runs the build pass and reports
failures with the source file that caused them.

Key functions:
- build_site: Main function to build the entire site.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import TemplateSyntaxError

from .config import Configuration, ConfigurationError, load_config
from .renderers import TemplateRenderError
from .resources import Resource
from .site import Site
from .utils import ensure_clean_dir

logger = logging.getLogger(__name__)


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        resources: Every resource written.
        output_dir: Directory where the site was built.
        config: Configuration the build ran with.
    """

    resources: list[Resource]
    output_dir: Path
    config: Configuration


def build_site(
    project_root: Path,
    base_path: str | None = None,
    clean_output: bool = True,
    template_globals: Mapping[str, Any] | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        base_path: Optional base path overriding the configured one.
        clean_output: Whether to wipe the output directory before building.
        template_globals: Names (such as component types) made available to
            every template.

    Returns:
        BuildResult containing all resources, the output directory and configuration.

    Raises:
        ConfigurationError: If the destination is, or contains, the project
            root or the source directory.
        BuildError: If any resource fails to read or render.
    """
    raw = load_config(project_root)
    if base_path is not None:
        raw["base_path"] = base_path
    config = Configuration.from_mapping(raw, root_dir=project_root)
    if not config.source_dir.exists():
        raise FileNotFoundError(f"Expected source directory at {config.source_dir}")
    _check_destination(config)

    if clean_output:
        ensure_clean_dir(config.destination_dir)
    else:
        config.destination_dir.mkdir(parents=True, exist_ok=True)

    site = Site(config, template_globals=template_globals)
    try:
        site.process()
    except TemplateRenderError as exc:
        original = exc.original_error
        if isinstance(original, TemplateSyntaxError):
            message = f"Template syntax error on line {original.lineno}: {original.message}"
        else:
            message = _format_error_message(original)
        raise BuildError(exc.template_path or config.source_dir, message, exc) from exc
    except Exception as exc:
        raise BuildError(config.source_dir, _format_error_message(exc), exc) from exc
    logger.info("Built %d resources into %s", len(site.resources()), config.destination_dir)
    return BuildResult(
        resources=site.resources(), output_dir=config.destination_dir, config=config
    )


def _check_destination(config: Configuration) -> None:
    destination = config.destination_dir
    for protected in (config.root_dir, config.source_dir):
        if destination == protected or destination in protected.parents:
            raise ConfigurationError(
                f"Refusing to build into {destination}: it would overwrite {protected}"
            )


def _format_error_message(exc: BaseException) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"
