# gokitgen

`gokitgen` renders Go source files for a go-kit service from a service
definition held in Python dataclasses, and Markdown documentation for a tree
of protobuf definitions.

## Installation

```
pip install gokitgen
```

To run the test suite:

```
pip install "gokitgen[test]"
pytest
```

## Service definitions

A service is described with the dataclasses in `gokitgen.svcdef`. `Svcdef`
holds a package name, a `Service`, and the `Message`s and `Enum`s. A
`Service` holds `ServiceMethod`s; each has a request and a response
`Message` and a list of `HTTPBinding`s. A binding has a verb, a path and
`HTTPParameter`s, each tying a request `Field` to a location (`"path"`,
`"query"` or `"body"`). A `Field` has a name, its protobuf field name and a
`FieldType`, which may refer to a `Message`, an `Enum`, a `Map` or a list of
oneof options.

```python
from gokitgen.svcdef import (
    Field, FieldType, HTTPBinding, HTTPParameter, Message, Service,
    ServiceMethod, Svcdef,
)

text = FieldType(name="string")
request = Message("EchoRequest", [Field("in", "in", text)])
response = Message("EchoResponse", [Field("out", "out", text)])
binding = HTTPBinding("get", "/echo/{in}", [HTTPParameter(request.fields[0], "path")])
service = Service("Echo", [ServiceMethod("Echo", request, response, [binding])])
sd = Svcdef("echo", service, [request, response])
```

## Generating code

```python
from gokitgen.gengokit import Config, new_data
from gokitgen.handlers import SERVER_HANDLER_PATH, new_handler
from gokitgen.hooks import HOOK_PATH, MIDDLEWARES_PATH, new_hook, new_middlewares
from gokitgen.bindings import gen_client_template, gen_server_template

conf = Config(go_package="example.com/echo", pb_package="example.com/echo/pb")
data = new_data(sd, conf)

handlers_go = new_handler(sd.service, None).render(SERVER_HANDLER_PATH, data)
hooks_go = new_hook(None).render(HOOK_PATH, data)
middlewares_go = new_middlewares().render(MIDDLEWARES_PATH, data)
server_go = gen_server_template(data)
client_go = gen_client_template(data)
```

Every renderer returns the Go source as a string.

Regenerating leaves your own work alone:

- `new_handler(service, previous_source)` keeps the handler methods already
  written, drops exported functions that are not methods of the service
  struct or no longer match an rpc, brings request and response types up to
  date, and appends stubs only for new rpcs. `Handler.render` raises
  `ValueError` for any path other than `SERVER_HANDLER_PATH`;
  `new_handler` raises `GoParseError` when the previous source cannot be
  split into declarations.
- `new_hook(previous_source)` adds the import of the service package and the
  `InterruptHandler` and `SetConfig` functions only where they are missing.
- `Middlewares.load(previous_source)` makes `Middlewares.render` hand the
  existing file back unchanged. `render` raises `ValueError` for any path
  other than `MIDDLEWARES_PATH`.

`gokitgen.gengokit.apply_template` and `Data.apply_template` render any
Jinja template with the `Data` available as `data`; failures raise
`TemplateError`.

The HTTP transport lives in `gokitgen.bindings`. `new_helper(service)` builds
a `Helper` of `Method`s and `Binding`s for the methods that have HTTP
bindings. `Binding.gen_server_decode()` and `Binding.gen_client_encode()`
render the request codec for a single route, and `Binding.path_sections()`
gives the Go expressions that assemble its URL. The per-field decoding logic
is in `gokitgen.fields` (`Field`, `OneofField`).

## Documentation

`gokitgen.gendoc.generate_docs(tree)` takes a `MicroserviceDefinition` and
returns `{"docs/docs.md": markdown}`. The Markdown holds tables of messages,
enums, services and HTTP bindings, followed by a small stylesheet. The
section renderers (`md_file`, `md_message`, `md_enum`, `md_service`,
`md_http_binding`) can be called on their own.

## Helpers

- `gokitgen.pathparams`: `path_params`, `build_param_map`, `remove_braces`
  and `encode_path_params` work with named URL template parameters.
- `gokitgen.fields`: `english_number`, `low_camel_name`,
  `get_mux_path_template` and `base_path` give names and routes.
- `gokitgen.gocode`: `camel_case` gives exported Go names; `format_source`
  and `format_code` normalise the layout of Go code (tab indentation by
  bracket nesting, spacing, blank lines) — this is a light normaliser, not a
  full Go formatter; `diff_strings` and `diff_go_code` compare code.

## What it does not do

- It does not read `.proto` files; definitions are built in Python.
- It has no command-line tool and writes no files to disk; callers decide
  where the returned sources go.
- It renders the handlers, hooks, middlewares and HTTP transport files only,
  not the rest of a service's directory tree.