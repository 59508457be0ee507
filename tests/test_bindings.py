import logging
from types import SimpleNamespace

import pytest

from gokitgen.bindings import (
    Binding,
    Method,
    gen_client_template,
    gen_server_template,
    new_binding,
    new_helper,
    new_method,
)
from gokitgen.fields import Field
from gokitgen.gocode import diff_go_code
from gokitgen.svcdef import (
    Enum,
    Field as SvcField,
    FieldType,
    HTTPBinding,
    HTTPParameter,
    Message,
    Service,
    ServiceMethod,
)


def _int64_field(name, pb_name):
    return SvcField(name=name, pb_field_name=pb_name, type=FieldType(name="int64"))


def _sum_method():
    a = _int64_field("A", "a")
    b = _int64_field("B", "b")
    orig = _int64_field("OrigName", "orig_name")
    request = Message(name="SumRequest", fields=[a, b, orig])
    reply = Message(
        name="SumReply",
        fields=[
            _int64_field("V", "v"),
            SvcField(name="Err", pb_field_name="err", type=FieldType(name="string")),
        ],
    )
    binding = HTTPBinding(
        verb="get",
        path="/sum/{a}",
        params=[
            HTTPParameter(field=a, location="path"),
            HTTPParameter(field=b, location="query"),
            HTTPParameter(field=orig, location="query"),
        ],
    )
    return ServiceMethod(
        name="Sum", request_type=request, response_type=reply, bindings=[binding]
    )


def _sum_binding(with_error_check=True):
    binding = Binding(
        label="SumZero",
        path_template="/sum/{a}",
        base_path="/sum/",
        verb="get",
        fields=[
            Field(
                name="a",
                query_param_name="a",
                camel_name="A",
                low_camel_name="a",
                local_name="ASum",
                location="path",
                go_type="int64",
                convert_func="ASum, err := strconv.ParseInt(ASumStr, 10, 64)",
                convert_func_needs_error_check=with_error_check,
                type_conversion="ASum" if with_error_check else "",
                is_base_type=True,
            ),
            Field(
                name="b",
                query_param_name="b",
                camel_name="B",
                low_camel_name="b",
                local_name="BSum",
                location="query",
                go_type="int64",
                convert_func="BSum, err := strconv.ParseInt(BSumStr, 10, 64)",
                convert_func_needs_error_check=with_error_check,
                type_conversion="BSum" if with_error_check else "",
                is_base_type=True,
            ),
        ],
    )
    method = Method(
        name="Sum", request_type="SumRequest", response_type="SumReply", bindings=[binding]
    )
    binding.parent = method
    return binding


def test_new_method_matches_expected():
    expected_binding = Binding(
        label="SumZero",
        path_template="/sum/{a}",
        base_path="/sum/",
        verb="get",
        fields=[
            Field(
                name="A",
                query_param_name="a",
                camel_name="A",
                low_camel_name="a",
                local_name="ASum",
                location="path",
                go_type="int64",
                convert_func="ASum, err := strconv.ParseInt(ASumStr, 10, 64)",
                convert_func_needs_error_check=True,
                type_conversion="ASum",
                is_base_type=True,
            ),
            Field(
                name="B",
                query_param_name="b",
                camel_name="B",
                low_camel_name="b",
                local_name="BSum",
                location="query",
                go_type="int64",
                convert_func="BSum, err := strconv.ParseInt(BSumStr, 10, 64)",
                convert_func_needs_error_check=True,
                type_conversion="BSum",
                is_base_type=True,
            ),
            Field(
                name="OrigName",
                query_param_name="orig_name",
                camel_name="OrigName",
                low_camel_name="origName",
                local_name="OrigNameSum",
                location="query",
                go_type="int64",
                convert_func="OrigNameSum, err := strconv.ParseInt(OrigNameSumStr, 10, 64)",
                convert_func_needs_error_check=True,
                type_conversion="OrigNameSum",
                is_base_type=True,
            ),
        ],
    )
    expected = Method(
        name="Sum",
        request_type="SumRequest",
        response_type="SumReply",
        bindings=[expected_binding],
    )
    got = new_method(_sum_method())
    assert got == expected
    assert got.bindings[0].parent is got


def test_new_helper_skips_methods_without_bindings():
    unbound = ServiceMethod(
        name="Ping", request_type=Message("PingRequest"), response_type=Message("PingReply")
    )
    helper = new_helper(Service(name="SumSvc", methods=[unbound, _sum_method()]))
    assert [m.name for m in helper.methods] == ["Sum"]


def test_new_binding_labels_by_index():
    meth = _sum_method()
    meth.bindings.append(HTTPBinding(verb="post", path="/sum"))
    binding = new_binding(1, meth)
    assert binding.label == "SumOne"
    assert binding.verb == "post"
    assert binding.fields == []


def test_new_binding_translates_pattern_path():
    meth = _sum_method()
    meth.bindings = [HTTPBinding(verb="get", path="/v1/{name=shelves/*/books/**}")]
    binding = new_binding(0, meth)
    assert binding.path_template == "/v1/{name:shelves/[^/]+/books/.+}"
    assert binding.base_path == "/v1/"


def test_new_binding_repeated_and_message_types():
    inner = Message(name="Inner")
    repeated = SvcField(
        name="Ids", pb_field_name="ids", type=FieldType(name="int64", array_type=True)
    )
    messages = SvcField(
        name="Items",
        pb_field_name="items",
        type=FieldType(name="Inner", star_expr=True, array_type=True, message=inner),
    )
    meth = ServiceMethod(
        name="List",
        request_type=Message("ListRequest", fields=[repeated, messages]),
        response_type=Message("ListReply"),
        bindings=[
            HTTPBinding(
                verb="post",
                path="/list",
                params=[
                    HTTPParameter(field=repeated, location="query"),
                    HTTPParameter(field=messages, location="body"),
                ],
            )
        ],
    )
    binding = new_binding(0, meth)
    ids, items = binding.fields
    assert ids.go_type == "[]int64"
    assert ids.is_base_type is True
    assert ids.repeated is True
    assert ids.type_conversion == "IdsList"
    assert items.go_type == "[]*pb.Inner"
    assert items.is_base_type is False


def test_new_binding_warns_for_message_outside_body(caplog):
    inner = Message(name="Inner")
    custom = SvcField(
        name="Inner", pb_field_name="inner", type=FieldType(name="Inner", message=inner)
    )
    meth = ServiceMethod(
        name="Get",
        request_type=Message("GetRequest", fields=[custom]),
        response_type=Message("GetReply"),
        bindings=[
            HTTPBinding(
                verb="get", path="/get", params=[HTTPParameter(field=custom, location="query")]
            )
        ],
    )
    with caplog.at_level(logging.WARNING):
        binding = new_binding(0, meth)
    assert binding.fields[0].go_type == "pb.Inner"
    assert "non-base type" in caplog.text


def test_new_binding_enum_field():
    kind = SvcField(
        name="Kind",
        pb_field_name="kind",
        type=FieldType(name="Kind", enum=Enum(name="Kind")),
    )
    meth = ServiceMethod(
        name="Get",
        request_type=Message("GetRequest", fields=[kind]),
        response_type=Message("GetReply"),
        bindings=[
            HTTPBinding(
                verb="get", path="/k/{kind}", params=[HTTPParameter(field=kind, location="path")]
            )
        ],
    )
    binding = new_binding(0, meth)
    field = binding.fields[0]
    assert field.is_enum is True
    assert field.go_type == "pb.Kind"
    assert field.convert_func == "KindGet, err := strconv.ParseInt(KindGetStr, 10, 32)"
    assert field.type_conversion == "pb.Kind(KindGet)"
    assert binding.path_sections() == ['""', '"k"', 'fmt.Sprintf("%d", req.Kind)']


def test_new_binding_oneof_field():
    title = SvcField(
        name="Title",
        pb_field_name="title",
        type=FieldType(name="string", message=Message(name="BookRequest_Title")),
    )
    choice = SvcField(
        name="Choice", pb_field_name="choice", type=FieldType(name="isChoice", oneof=[title])
    )
    meth = ServiceMethod(
        name="GetBook",
        request_type=Message("BookRequest", fields=[choice]),
        response_type=Message("Book"),
        bindings=[
            HTTPBinding(
                verb="get", path="/book", params=[HTTPParameter(field=choice, location="query")]
            )
        ],
    )
    binding = new_binding(0, meth)
    assert binding.fields == []
    (oneof,) = binding.oneof_fields
    assert oneof.name == "Choice"
    assert oneof.location == "query"
    (option,) = oneof.options
    assert option.query_param_name == "title"
    assert option.camel_name == "Choice"
    assert option.local_name == "TitleGetBook"
    assert option.convert_func == "TitleGetBook := TitleGetBookStr"
    assert option.convert_func_needs_error_check is False
    assert option.type_conversion == "&pb.BookRequest_Title{Title: TitleGetBook}"
    assert option.zero_value == '""'


@pytest.mark.parametrize(
    "template, want",
    [
        ("/sum/{a}", ['""', '"sum"', "fmt.Sprint(req.A)"]),
        ("/v1/{parent:shelves/[^/]+}/books", ['""', '"v1"', "fmt.Sprint(req.Parent)", '"books"']),
        ("/v1/{book.name:shelves/[^/]+/books/[^/]+}", ['""', '"v1"', "fmt.Sprint(req.Book.Name)"]),
    ],
)
def test_path_sections(template, want):
    assert Binding(path_template=template).path_sections() == want


def test_gen_client_encode():
    desired = """
// EncodeHTTPSumZeroRequest is a transport/http.EncodeRequestFunc
// that encodes a sum request into the various portions of
// the http request (path, query, and body).
func EncodeHTTPSumZeroRequest(_ context.Context, r *http.Request, request interface{}) error {
	strval := ""
	_ = strval
	req := request.(*pb.SumRequest)
	_ = req

	r.Header.Set("transport", "HTTPJSON")
	r.Header.Set("request-url", r.URL.Path)

	// Set the path parameters
	path := strings.Join([]string{
		"",
		"sum",
		fmt.Sprint(req.A),
	}, "/")
	u, err := url.Parse(path)
	if err != nil {
		return errors.Wrapf(err, "couldn't unmarshal path %q", path)
	}
	r.URL.RawPath = u.RawPath
	r.URL.Path = u.Path

	// Set the query parameters
	values := r.URL.Query()
	var tmp []byte
	_ = tmp

	values.Add("b", fmt.Sprint(req.B))

	r.URL.RawQuery = values.Encode()
	return nil
}
"""
    got = _sum_binding(with_error_check=False).gen_client_encode()
    a, b, diff = diff_go_code(got, desired)
    assert a == b, diff


def test_gen_server_decode():
    desired = """
// DecodeHTTPSumZeroRequest is a transport/http.DecodeRequestFunc that
// decodes a JSON-encoded sum request from the HTTP request
// body. Primarily useful in a server.
func DecodeHTTPSumZeroRequest(_ context.Context, r *http.Request) (interface{}, error) {
	defer r.Body.Close()
	var req pb.SumRequest
	buf, err := ioutil.ReadAll(r.Body)
	if err != nil {
		return nil, errors.Wrapf(err, "cannot read body of http request")
	}
	if len(buf) > 0 {
		// AllowUnknownFields stops the unmarshaler from failing if the JSON contains unknown fields.
		unmarshaller := jsonpb.Unmarshaler{
			AllowUnknownFields: true,
		}
		if err = unmarshaller.Unmarshal(bytes.NewBuffer(buf), &req); err != nil {
			const size = 8196
			if len(buf) > size {
				buf = buf[:size]
			}
			return nil, httpError{errors.Wrapf(err, "request body '%s': cannot parse non-json request body", buf),
				http.StatusBadRequest,
				nil,
			}
		}
	}

	pathParams := encodePathParams(mux.Vars(r))
	_ = pathParams

	queryParams := r.URL.Query()
	_ = queryParams

	ASumStr := pathParams["a"]
	ASum, err := strconv.ParseInt(ASumStr, 10, 64)
	if err != nil {
		return nil, errors.Wrap(err, fmt.Sprintf("Error while extracting ASum from path, pathParams: %v", pathParams))
	}
	req.A = ASum

	if BSumStrArr, ok := queryParams["b"]; ok {
		BSumStr := BSumStrArr[0]
		BSum, err := strconv.ParseInt(BSumStr, 10, 64)
		if err != nil {
			return nil, errors.Wrap(err, fmt.Sprintf("Error while extracting BSum from query, queryParams: %v", queryParams))
		}
		req.B = BSum
	}

	return &req, err
}
"""
    got = _sum_binding().gen_server_decode()
    a, b, diff = diff_go_code(got, desired)
    assert a == b, diff


def _template_data(methods):
    helper = new_helper(Service(name="SumSvc", methods=methods))
    return SimpleNamespace(
        version="v1",
        version_date="today",
        import_path="example.com/sum",
        pb_import_path="example.com/sum/pb",
        service=SimpleNamespace(name="SumSvc"),
        http_helper=helper,
    )


def test_gen_server_template_routes_and_helpers():
    code = gen_server_template(_template_data([_sum_method()]))
    assert 'm.Methods("GET").Path("/sum/{a}")' in code
    assert "func DecodeHTTPSumZeroRequest(" in code
    assert "pb.NewSumSvcClient" in code
    assert "func encodePathParams(" in code
    assert "Version: v1" in code


def test_gen_client_template_with_methods():
    code = gen_client_template(_template_data([_sum_method()]))
    assert 'copyURL(u, "/sum/")' in code
    assert "SumEndpoint:" in code
    assert "func EncodeHTTPSumZeroRequest(" in code
    assert "func DecodeHTTPSumResponse(" in code
    assert "No HTTP Endpoints" not in code


def test_gen_client_template_without_methods_panics():
    code = gen_client_template(_template_data([]))
    assert "No HTTP Endpoints, this client will not work" in code
    assert "gogo/protobuf/jsonpb" not in code


def test_helper_template_callables():
    data = _template_data([_sum_method()])
    assert data.http_helper.server_template(data) == gen_server_template(data)
    assert data.http_helper.client_template(data) == gen_client_template(data)