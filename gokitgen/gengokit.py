"""Template data for generating a go-kit service and the rendering of templates."""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from typing import Any

import jinja2

from .bindings import Helper, new_helper
from .svcdef import Service, Svcdef
from .templates import ENVIRONMENT_OPTIONS, TEMPLATE_FILTERS

__all__ = ["TemplateError", "Config", "Data", "new_data", "apply_template"]


class TemplateError(ValueError):
    """Raised when a template cannot be parsed or rendered."""


_ENVIRONMENT = jinja2.Environment(undefined=jinja2.StrictUndefined, **ENVIRONMENT_OPTIONS)
_ENVIRONMENT.filters.update(TEMPLATE_FILTERS)


@dataclass
class Config:
    """Settings of one generation run."""

    go_package: str = ""
    pb_package: str = ""
    version: str = ""
    version_date: str = ""
    # Files of the previous generation, keyed by relative path.
    previous_files: dict[str, str] = dataclass_field(default_factory=dict)


@dataclass
class Data:
    """The values templates are rendered with, exposed to them as ``data``."""

    # Import path of the directory holding the generated service.
    import_path: str
    # Import path of the .pb.go files holding the service structs.
    pb_import_path: str
    package_name: str
    service: Service
    http_helper: Helper
    version: str = ""
    version_date: str = ""

    def apply_template(self, templ: str, templ_name: str) -> str:
        """Render templ with this Data."""
        return apply_template(templ, templ_name, self)


def new_data(sd: Svcdef, conf: Config) -> Data:
    """Build the template Data for a service definition and configuration."""
    return Data(
        import_path=conf.go_package,
        pb_import_path=conf.pb_package,
        package_name=sd.pkg_name,
        service=sd.service,
        http_helper=new_helper(sd.service),
        version=conf.version,
        version_date=conf.version_date,
    )


def apply_template(templ: str, templ_name: str, data: Any) -> str:
    """Render the template text templ with data available as ``data``.

    Raises TemplateError when the template cannot be parsed or rendered.
    """
    try:
        template = _ENVIRONMENT.from_string(templ)
    except jinja2.TemplateSyntaxError as exc:
        raise TemplateError(f"cannot create template {templ_name!r}: {exc}") from exc
    try:
        return template.render(data=data)
    except jinja2.TemplateError as exc:
        raise TemplateError(f"template error in {templ_name!r}: {exc}") from exc