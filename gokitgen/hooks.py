"""Rendering of handlers/hooks.go and handlers/middlewares.go.

Both files belong to the user once generated. hooks.go is only amended: it
gets the import of the service package and the hook functions the service
needs to start. middlewares.go is passed through unchanged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .gengokit import Data
from .handlers import FuncDecl, GenDecl, GoFile, parse_go_file

__all__ = [
    "HOOK_PATH",
    "MIDDLEWARES_PATH",
    "HOOK",
    "HOOK_INTERRUPT_HANDLER",
    "HOOK_SET_CONFIG",
    "MIDDLEWARES",
    "HookRender",
    "Middlewares",
    "new_hook",
    "new_middlewares",
]

# The relative path of the hooks template file.
HOOK_PATH = "handlers/hooks.gotemplate"

# The relative path of the middlewares template file.
MIDDLEWARES_PATH = "handlers/middlewares.gotemplate"

HOOK = """
package handlers

import (
	"fmt"
	"{{ data.import_path -}} /svc"
	"os"
	"os/signal"
	"syscall"
)

"""

HOOK_INTERRUPT_HANDLER = """
func InterruptHandler(errc chan<- error) {
	c := make(chan os.Signal, 1)
	signal.Notify(c, syscall.SIGINT, syscall.SIGTERM)
	terminateError := fmt.Errorf("%s", <-c)

	// Place whatever shutdown handling you want here

	errc <- terminateError
}
"""

HOOK_SET_CONFIG = """
func SetConfig(cfg svc.Config) svc.Config {
	return cfg
}
"""

MIDDLEWARES = """
package handlers

import (
	"{{ data.import_path -}} /svc"
	pb "{{ data.pb_import_path -}}"
)

// WrapEndpoints accepts the service's entire collection of endpoints, so that a
// set of middlewares can be wrapped around every middleware (e.g., access
// logging and instrumentation), and others wrapped selectively around some
// endpoints and not others (e.g., endpoints requiring authenticated access).
// Note that the final middleware wrapped will be the outermost middleware
// (i.e. applied first)
func WrapEndpoints(in svc.Endpoints) svc.Endpoints {

	// Pass a middleware you want applied to every endpoint.
	// optionally pass in endpoints by name that you want to be excluded
	// e.g.
	// in.WrapAllExcept(authMiddleware, "Status", "Ping")

	// Pass in a svc.LabeledMiddleware you want applied to every endpoint.
	// These middlewares get passed the endpoints name as their first argument when applied.
	// This can be used to write generic metric gathering middlewares that can
	// report the endpoint name for free.
	// in.WrapAllLabeledExcept(errorCounter(statsdCounter), "Status", "Ping")

	// How to apply a middleware to a single endpoint.
	// in.ExampleEndpoint = authMiddleware(in.ExampleEndpoint)

	return in
}

func WrapService(in pb.{{ data.service.name }}Server) pb.{{ data.service.name }}Server {
	return in
}
"""

# Hook functions the service cannot start without, in the order they are added.
_HOOK_FUNCS = {
    "InterruptHandler": HOOK_INTERRUPT_HANDLER,
    "SetConfig": HOOK_SET_CONFIG,
}

_SERVICE_IMPORT_TEMPLATE = '"{{ data.import_path -}} /svc"'
_SERVICE_IMPORT_COMMENT = "// This Service"

_LINE_COMMENT_RE = re.compile(r"//[^\n]*")
_IMPORT_PATH_RE = re.compile(r'"(?:[^"\\\n]|\\.)*"|`[^`]*`')


def _import_paths(import_text: str) -> list[str]:
    """Return the quoted path literals of an import declaration."""
    return _IMPORT_PATH_RE.findall(_LINE_COMMENT_RE.sub("", import_text))


def _with_import(import_text: str, target: str) -> str:
    """Return import_text with the quoted path target appended to its specs."""
    body = import_text[len("import"):].strip()
    addition = f"\t{_SERVICE_IMPORT_COMMENT}\n\t{target}\n)"
    if body.startswith("("):
        return import_text.rstrip()[:-1].rstrip() + "\n\n" + addition
    return f"import (\n\t{body}\n\n{addition}"


def _add_service_import(go_file: GoFile, data: Data) -> None:
    """Make go_file import the service package, which SetConfig needs."""
    target = data.apply_template(_SERVICE_IMPORT_TEMPLATE, "ServerPathTempl")
    imports = [
        decl for decl in go_file.decls
        if isinstance(decl, GenDecl) and decl.keyword == "import"
    ]
    if not imports:
        go_file.decls.insert(
            0, GenDecl("import", f"import (\n\t{_SERVICE_IMPORT_COMMENT}\n\t{target}\n)")
        )
        return
    if any(target in _import_paths(decl.text) for decl in imports):
        return
    last = imports[-1]
    last.text = _with_import(last.text, target)


@dataclass
class HookRender:
    """Renders hooks.go, amending the previous version if there is one."""

    prev: str | None = None

    def render(self, alias: str, data: Data) -> str:
        """Return the Go source of hooks.go for data.

        Without a previous file the full template is rendered. Otherwise the
        previous file gets the service import and any missing hook functions.
        Raises GoParseError when the previous file cannot be parsed.
        """
        if self.prev is None:
            return data.apply_template(
                HOOK + HOOK_INTERRUPT_HANDLER + HOOK_SET_CONFIG, "HooksFullTemplate"
            )
        go_file = parse_go_file(self.prev)
        _add_service_import(go_file, data)
        existing = {decl.name for decl in go_file.decls if isinstance(decl, FuncDecl)}
        code = go_file.render()
        for name, source in _HOOK_FUNCS.items():
            if name not in existing:
                code += source
        return code


def new_hook(prev: str | None) -> HookRender:
    """Return a HookRender for the previous hooks.go source, if any."""
    return HookRender(prev)


@dataclass
class Middlewares:
    """Renders middlewares.go; a previous version is passed through unchanged."""

    prev: str | None = None

    def load(self, prev: str | None) -> None:
        """Load the previous version of middlewares.go."""
        self.prev = prev

    def render(self, path: str, data: Data) -> str:
        """Return the Go source of middlewares.go for data.

        Raises ValueError when path is not the middlewares template path.
        """
        if path != MIDDLEWARES_PATH:
            raise ValueError(f"cannot render unknown file: {path!r}")
        if self.prev is not None:
            return self.prev
        return data.apply_template(MIDDLEWARES, "Middlewares")


def new_middlewares() -> Middlewares:
    """Return a Middlewares renderer with no previous file loaded."""
    return Middlewares()