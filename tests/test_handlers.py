import pytest

from gokitgen.gengokit import Config, new_data
from gokitgen.gocode import diff_go_code, format_source
from gokitgen.handlers import (
    SERVER_HANDLER_PATH,
    FuncDecl,
    GenDecl,
    GoParseError,
    MethodMap,
    is_valid_func,
    new_handler,
    parse_go_file,
    recv_type_to_string,
    update_pb_field_type,
)
from gokitgen.svcdef import (
    Field,
    FieldType,
    HTTPBinding,
    Message,
    Service,
    ServiceMethod,
    Svcdef,
)

CONF = Config(
    go_package="example.com/gengokit",
    pb_package="example.com/gengokit/general-service",
)

EXPECTED_HANDLERS = """
package handlers

import (
    "context"

    pb "example.com/gengokit/general-service"
)

// NewService returns a naïve, stateless implementation of Service.
func NewService() pb.ProtoServer {
    return protoService{}
}

type protoService struct{}

func (s protoService) ProtoMethod(ctx context.Context, in *pb.RequestMessage) (*pb.ResponseMessage, error) {
    var resp pb.ResponseMessage
    return &resp, nil
}
"""

PRUNE_PREV = """
package handlers

import (
    "context"

    pb "example.com/gengokit/general-service"
)

// NewService returns a naïve, stateless implementation of Service.
func NewService() pb.ProtoServer {
    return protoService{}
}

type protoService struct{}

func init() {
    //FOOING
}

// ProtoMethod implements Service.
func (s protoService) ProtoMethod(ctx context.Context, in *pb.RequestMessage) (*pb.ResponseMessage, error) {
    var resp pb.ResponseMessage
    return &resp, nil
}

// FOOBAR implements Service.
func (s protoService) FOOBAR(ctx context.Context, in *pb.RequestMessage) (*pb.ResponseMessage, error) {
    var resp pb.ResponseMessage
    return &resp, nil
}
"""


def _method(name, path, request="RequestMessage", response="ResponseMessage"):
    return ServiceMethod(
        name=name,
        request_type=Message(request, [Field("input", "input", FieldType("string"))]),
        response_type=Message(response, [Field("output", "output", FieldType("string"))]),
        bindings=[HTTPBinding("get", path)],
    )


def _svcdef(*names):
    methods = [_method(name, f"/route{index}") for index, name in enumerate(names)]
    return Svcdef(pkg_name="general", service=Service("Proto", methods))


def _first_func(source):
    return next(d for d in parse_go_file(source).decls if isinstance(d, FuncDecl))


def _render_service(svc, prev, data):
    handler = new_handler(svc, prev or None)
    return format_source(handler.render(SERVER_HANDLER_PATH, data)).strip()


def test_apply_server_template():
    sd = _svcdef("ProtoMethod")
    data = new_data(sd, CONF)
    out = new_handler(sd.service, None).render(SERVER_HANDLER_PATH, data)
    a, b, diff = diff_go_code(out, EXPECTED_HANDLERS)
    assert a == b, diff


def test_server_methods_appended_to_previous_file():
    prev = EXPECTED_HANDLERS.split("func (s protoService)")[0]
    sd = _svcdef("ProtoMethod")
    data = new_data(sd, CONF)
    out = new_handler(sd.service, prev).render(SERVER_HANDLER_PATH, data)
    a, b, diff = diff_go_code(out, EXPECTED_HANDLERS)
    assert a == b, diff


@pytest.mark.parametrize(
    "source, want",
    [
        ("package p; func NoRecv() {}", ""),
        ("package p; func (s Foo) RecvFoo() {}", "Foo"),
        ("package p; func (s *Foo) RecvStarFoo() {}", "*Foo"),
        ("package p; func (s foo.Foo) RecvFooDotFoo() {}", "foo.Foo"),
        ("package p; func (s *foo.Foo) RecvStarFooDotFoo() {}", "*foo.Foo"),
    ],
)
def test_recv_type_to_string(source, want):
    assert recv_type_to_string(_first_func(source)) == want


@pytest.mark.parametrize(
    "source, valid",
    [
        ("package p;\nfunc init() {}", True),
        (
            "package p;\nfunc (s protoService) ProtoMethod(context.Context, pb.RequestMessage)"
            " (pb.ResponseMessage, error) {}",
            True,
        ),
        (
            "package p;\nfunc (s fooService) ProtoMethod(context.Context, pb.RequestMessage)"
            " (pb.ResponseMessage, error) {}",
            False,
        ),
        (
            "package p;\nfunc (generalService) FOOBAR(context.Context, pb.RequestMessage)"
            " (pb.ResponseMessage, error) {}",
            False,
        ),
    ],
)
def test_is_valid_func(source, valid):
    sd = _svcdef("ProtoMethod")
    method_map = MethodMap.from_methods(sd.service.methods)
    svc_name = sd.service.name.lower()
    assert is_valid_func(_first_func(source), method_map, svc_name) is valid


def test_prune_decls():
    sd = _svcdef("ProtoMethod", "ProtoMethodAgain", "ProtoMethodAgainAgain")
    method_map = MethodMap.from_methods(sd.service.methods)
    file = parse_go_file(PRUNE_PREV)
    decls_before = len(file.decls)
    map_before = len(method_map)

    new_decls = method_map.prune_decls(file.decls, sd.service.name.lower())

    assert len(new_decls) == decls_before - 1
    assert len(method_map) == map_before - 1
    assert set(method_map) == {"ProtoMethodAgain", "ProtoMethodAgainAgain"}
    assert [d.name for d in new_decls if isinstance(d, FuncDecl)] == [
        "NewService",
        "init",
        "ProtoMethod",
    ]


def test_prune_decls_updates_types():
    prev = (
        "package handlers\n\n"
        "func (s protoService) ProtoMethod(ctx context.Context, in *pb.Old) "
        "(*pb.OldResp, error) {\n\treturn nil, nil\n}\n"
    )
    sd = _svcdef("ProtoMethod")
    method_map = MethodMap.from_methods(sd.service.methods)
    decls = method_map.prune_decls(parse_go_file(prev).decls, "proto")
    func = decls[0]
    assert func.params == ["ctx context.Context", "in *pb.RequestMessage"]
    assert func.results == ["*pb.ResponseMessage", "error"]


def test_prune_decls_leaves_odd_params_alone():
    prev = (
        "package handlers\n\n"
        "func (s protoService) ProtoMethod(in *pb.Old) (*pb.OldResp, error) {}\n"
    )
    sd = _svcdef("ProtoMethod")
    method_map = MethodMap.from_methods(sd.service.methods)
    func = method_map.prune_decls(parse_go_file(prev).decls, "proto")[0]
    assert func.params == ["in *pb.Old"]
    assert func.results == ["*pb.ResponseMessage", "error"]


@pytest.mark.parametrize(
    "expr, new_type, want",
    [
        ("*pb.Old", "New", "*pb.New"),
        ("pb.Old", "New", "pb.New"),
        ("Old", "New", "Old"),
    ],
)
def test_update_pb_field_type(expr, new_type, want):
    assert update_pb_field_type(expr, new_type) == want


def test_update_methods():
    sd = _svcdef("ProtoMethod", "ProtoMethodAgain", "ProtoMethodAgainAgain")
    svc = sd.service
    all_methods = list(svc.methods)
    data = new_data(sd, CONF)

    svc.methods = [all_methods[0]]
    first = _render_service(svc, "", data)
    second = _render_service(svc, first, data)
    assert first == second

    svc.methods = svc.methods + [all_methods[1]]
    third = _render_service(svc, second, data)
    assert len(third) > len(second)

    svc.methods = svc.methods[1:]
    fourth = _render_service(svc, third, data)
    assert len(fourth) < len(third)
    assert "ProtoMethod(" not in fourth
    assert "ProtoMethodAgain(" in fourth

    svc.methods = all_methods
    fifth = _render_service(svc, fourth, data)
    assert len(fifth) > len(fourth)
    assert "ProtoMethodAgainAgain(" in fifth


def test_changed_request_types_are_updated():
    sd = _svcdef("ProtoMethod")
    data = new_data(sd, CONF)
    first = _render_service(sd.service, "", data)
    sd.service.methods = [
        _method("ProtoMethod", "/route", "DifferentRequest", "DifferentResponse")
    ]
    second = _render_service(sd.service, first, data)
    assert "in *pb.DifferentRequest" in second
    assert "(*pb.DifferentResponse, error)" in second
    assert "RequestMessage" not in second


def test_render_unknown_file():
    sd = _svcdef("ProtoMethod")
    data = new_data(sd, CONF)
    with pytest.raises(ValueError, match="cannot render unknown file"):
        new_handler(sd.service, None).render("not/valid/file.go", data)


def test_parse_go_file_structure():
    file = parse_go_file(PRUNE_PREV)
    assert file.package == "package handlers"
    assert isinstance(file.decls[0], GenDecl)
    assert file.decls[0].keyword == "import"
    assert [type(d).__name__ for d in file.decls] == [
        "GenDecl",
        "FuncDecl",
        "GenDecl",
        "FuncDecl",
        "FuncDecl",
        "FuncDecl",
    ]
    assert file.decls[4].doc == "// ProtoMethod implements Service."


def test_parse_interface_result_with_body():
    func = _first_func("package p\nfunc F() interface{} { return nil }\n")
    assert func.results == ["interface{}"]
    assert func.body == "{ return nil }"


def test_render_round_trip_is_stable():
    text = parse_go_file(PRUNE_PREV).render()
    assert parse_go_file(text).render() == text


@pytest.mark.parametrize(
    "source",
    [
        "package p\nfunc F( {",
        "func F() {}",
        "package p\nfoo bar",
        'package p\nvar s = "open',
    ],
)
def test_parse_go_file_errors(source):
    with pytest.raises(GoParseError):
        parse_go_file(source)


def test_new_handler_rejects_bad_source():
    sd = _svcdef("ProtoMethod")
    with pytest.raises(GoParseError):
        new_handler(sd.service, "package p\nfunc F( {")