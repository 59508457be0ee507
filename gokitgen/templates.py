"""Jinja templates for the HTTP transport of a generated go-kit service.

The binding templates (``SERVER_DECODE_TEMPLATE`` and
``CLIENT_ENCODE_TEMPLATE``) are rendered with a variable ``binding`` that
holds an HTTP binding. That binding provides ``label``, ``verb``, ``fields``,
``oneof_fields``, ``parent`` (with ``name`` and ``request_type``) and a
``path_sections()`` method. Each field provides ``gen_query_unmarshaler()``.

The file templates (``SERVER_TEMPLATE`` and ``CLIENT_TEMPLATE``) are rendered
with a variable ``data`` that provides ``version``, ``version_date``,
``import_path``, ``pb_import_path``, ``service`` and ``http_helper``. Each
binding reached through ``data.http_helper.methods`` must provide
``gen_server_decode()`` and ``gen_client_encode()``.

All templates need the filters in ``TEMPLATE_FILTERS`` and an environment
built with ``ENVIRONMENT_OPTIONS``: no autoescaping, and the trailing newline
kept, so that whitespace control behaves the same everywhere.
"""

from __future__ import annotations

from typing import Any, Callable

from .gocode import camel_case

__all__ = [
    "TEMPLATE_FILTERS",
    "ENVIRONMENT_OPTIONS",
    "CLIENT_ENCODE_TEMPLATE",
    "CLIENT_TEMPLATE",
    "SERVER_DECODE_TEMPLATE",
    "SERVER_TEMPLATE",
    "ENCODE_PATH_PARAMS_FUNC",
]

TEMPLATE_FILTERS: dict[str, Callable[..., Any]] = {
    "go_name": camel_case,
}

ENVIRONMENT_OPTIONS: dict[str, Any] = {
    "autoescape": False,
    "keep_trailing_newline": True,
}

CLIENT_ENCODE_TEMPLATE = """\
// EncodeHTTP{{ binding.label }}Request is a transport/http.EncodeRequestFunc
// that encodes a {{ binding.parent.name | lower }} request into the various portions of
// the http request (path, query, and body).
func EncodeHTTP{{ binding.label }}Request(_ context.Context, r *http.Request, request interface{}) error {
    strval := ""
    _ = strval
    req := request.(*pb.{{ binding.parent.request_type | go_name }})
    _ = req

    r.Header.Set("transport", "HTTPJSON")
    r.Header.Set("request-url", r.URL.Path)

    // Set the path parameters
    path := strings.Join([]string{
    {%- for section in binding.path_sections() %}
        {{ section }},
    {%- endfor %}
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
    {%- for field in binding.fields if field.location == "query" %}
        {% if field.repeated and field.is_base_type and "[]string" in field.go_type -%}
            values["{{ field.query_param_name }}"] = req.{{ field.camel_name }}
        {%- elif field.repeated and field.is_base_type -%}
            for _, item := range req.{{ field.camel_name }} {
                values.Add("{{ field.query_param_name }}", fmt.Sprint(item))
            }
        {%- elif not field.is_base_type or field.repeated -%}
            if tmp, err = json.Marshal(req.{{ field.camel_name }}); err != nil {
                return errors.Wrap(err, "failed to marshal req.{{ field.camel_name }}")
            }
            values.Add("{{ field.query_param_name }}", string(tmp))
        {%- else %}
            values.Add("{{ field.query_param_name }}", fmt.Sprint(req.{{ field.camel_name }}))
        {%- endif %}
    {%- endfor %}
    {%- for oneof in binding.oneof_fields if oneof.location == "query" %}
        {%- for option in oneof.options %}
            if val := req.Get{{ option.name }}(); val != {{ option.zero_value }} {
            {%- if not option.is_base_type or option.repeated %}
                if tmp, err = json.Marshal(val); err != nil {
                    return errors.Wrap(err, "failed to marshal req.Get{{ option.name }}()")
                }
                values.Add("{{ option.query_param_name }}", string(tmp))
            {%- else %}
                values.Add("{{ option.query_param_name }}", fmt.Sprint(val))
            {%- endif %}
            }
        {%- endfor %}
    {%- endfor %}

    r.URL.RawQuery = values.Encode()

    {%- if binding.verb != "get" %}
    // Copy only the body fields; everything else stays empty and is omitted.
    payload := request.(*pb.{{ binding.parent.request_type | go_name }})
    {%- for field in binding.fields if field.location == "body" %}
    payload.{{ field.camel_name }} = req.{{ field.camel_name }}
    {%- endfor %}
    var body bytes.Buffer
    enc := json.NewEncoder(&body)
    enc.SetEscapeHTML(false)
    if err := enc.Encode(payload); err != nil {
        return errors.Wrapf(err, "couldn't encode body as json %v", payload)
    }
    r.Body = ioutil.NopCloser(&body)
    {%- endif %}
    return nil
}"""

CLIENT_TEMPLATE = """
// Code generated by gokitgen. DO NOT EDIT.
// Any manual change is lost the next time gokitgen runs.
// Version: {{ data.version }}
// Version Date: {{ data.version_date }}

// Package http is an HTTP client for the {{ data.service.name }} service.
package http

import (
    "bytes"
    "context"
    "encoding/json"
    "fmt"
    "io"
    "io/ioutil"
    "net/http"
    "net/url"
    "strings"

    {% if data.http_helper.methods -%}
        "github.com/gogo/protobuf/jsonpb"
    {%- endif %}

    "github.com/go-kit/kit/endpoint"
    httptransport "github.com/go-kit/kit/transport/http"
    "github.com/pkg/errors"

    // This Service
    "{{ data.import_path -}} /svc"
    pb "{{ data.pb_import_path -}}"
)

var (
    _ = endpoint.Chain
    _ = httptransport.NewClient
    _ = fmt.Sprint
    _ = bytes.Compare
    _ = ioutil.NopCloser
    _ = io.EOF
)

// New builds a client talking to the HTTP server at instance, which is
// usually a "host:port" pair handed out by service discovery.
func New(instance string, options ...httptransport.ClientOption) (pb.{{ data.service.name }}Server, error) {
    if !strings.HasPrefix(instance, "http") {
        instance = "http://" + instance
    }
    base, err := url.Parse(instance)
    if err != nil {
        return nil, err
    }
    _ = base
{% if not data.http_helper.methods %}
    panic("the service defines no HTTP bindings; add google.api.http options to its methods")
{% endif %}
    return svc.Endpoints{
    {%- for method in data.http_helper.methods if method.bindings %}
        {%- set binding = method.bindings[0] %}
        {{ method.name }}Endpoint: httptransport.NewClient(
            "{{ binding.verb | upper }}",
            withPath(base, "{{ binding.base_path }}"),
            EncodeHTTP{{ binding.label }}Request,
            DecodeHTTP{{ method.name }}Response,
            options...,
        ).Endpoint(),
    {%- endfor %}
    }, nil
}

// withPath returns a copy of base pointing at path.
func withPath(base *url.URL, path string) *url.URL {
    target := *base
    target.Path = path
    return &target
}

// CtxValuesToSend copies the string values stored in the context under the
// given keys into request headers. Header names are canonicalised by
// net/http, and the server sees them in that form.
func CtxValuesToSend(keys ...string) httptransport.ClientOption {
    copyHeaders := func(ctx context.Context, r *http.Request) context.Context {
        for _, key := range keys {
            value, ok := ctx.Value(key).(string)
            if !ok {
                continue
            }
            r.Header.Set(key, value)
        }
        return ctx
    }
    return httptransport.ClientBefore(copyHeaders)
}

// HTTP Client Decode
{% for method in data.http_helper.methods %}
    // DecodeHTTP{{ method.name }}Response turns the JSON body of an HTTP response into a
    // {{ method.response_type | go_name }}. A status other than 200 is reported as an error,
    // using the error message carried in the body when there is one.
    func DecodeHTTP{{ method.name }}Response(_ context.Context, r *http.Response) (interface{}, error) {
        defer r.Body.Close()
        body, err := ioutil.ReadAll(r.Body)
        if err == io.EOF {
            return nil, errors.New("response http body empty")
        }
        if err != nil {
            return nil, errors.Wrap(err, "cannot read http body")
        }
        if r.StatusCode != http.StatusOK {
            return nil, errors.Wrapf(errorDecoder(body), "status code: '%d'", r.StatusCode)
        }
        resp := new(pb.{{ method.response_type | go_name }})
        if err := jsonpb.UnmarshalString(string(body), resp); err != nil {
            return nil, errorDecoder(body)
        }
        return resp, nil
    }
{% endfor %}

// HTTP Client Encode
{% for method in data.http_helper.methods %}
    {% for binding in method.bindings %}
        {{ binding.gen_client_encode() }}
    {% endfor %}
{% endfor %}

// errorDecoder extracts the message of a JSON error body, or describes the
// body when it is not JSON.
func errorDecoder(body []byte) error {
    var wrapped errorWrapper
    if json.Unmarshal(body, &wrapped) == nil {
        return errors.New(wrapped.Error)
    }
    const limit = 8196
    if len(body) > limit {
        body = body[:limit]
    }
    return fmt.Errorf("response body '%s': cannot parse non-json request body", body)
}

type errorWrapper struct {
    Error string `json:"error"`
}
"""

SERVER_DECODE_TEMPLATE = """\
// DecodeHTTP{{ binding.label }}Request is a transport/http.DecodeRequestFunc that
// decodes a JSON-encoded {{ binding.parent.name | lower }} request from the HTTP request
// body. Primarily useful in a server.
func DecodeHTTP{{ binding.label }}Request(_ context.Context, r *http.Request) (interface{}, error) {
    defer r.Body.Close()
    var req pb.{{ binding.parent.request_type | go_name }}
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

    {% for field in binding.fields if field.location != "body" %}
        {{ field.gen_query_unmarshaler() }}
    {% endfor %}

    {% for field in binding.oneof_fields if field.location == "query" %}
        {{ field.gen_query_unmarshaler() }}
    {% endfor %}
    return &req, err
}"""

SERVER_TEMPLATE = """
// Code generated by gokitgen. DO NOT EDIT.
// Any manual change is lost the next time gokitgen runs.
// Version: {{ data.version }}
// Version Date: {{ data.version_date }}

package svc

// HTTP transport of the service, built on go-kit's transport/http.Server.

import (
    "bytes"
    "context"
    "encoding/json"
    "fmt"
    "io"
    "io/ioutil"
    "net/http"
    "strconv"
    "strings"

    "github.com/gogo/protobuf/jsonpb"
    "github.com/gogo/protobuf/proto"

    httptransport "github.com/go-kit/kit/transport/http"
    "github.com/gorilla/mux"
    "github.com/pkg/errors"

    // This service
    pb "{{ data.pb_import_path -}}"
)

const contentType = "application/json; charset=utf-8"

var (
    _ = fmt.Sprint
    _ = bytes.Compare
    _ = strconv.Atoi
    _ = httptransport.NewServer
    _ = ioutil.NopCloser
    _ = pb.New{{ data.service.name }}Client
    _ = io.Copy
    _ = errors.Wrap
)

// MakeHTTPHandler routes every HTTP binding of the service to its endpoint.
// A nil responseEncoder falls back to EncodeHTTPGenericResponse.
func MakeHTTPHandler(endpoints Endpoints, responseEncoder httptransport.EncodeResponseFunc, options ...httptransport.ServerOption) http.Handler {
    if responseEncoder == nil {
        responseEncoder = EncodeHTTPGenericResponse
    }
    router := mux.NewRouter()
{%- if data.http_helper.methods %}
    serverOptions := append([]httptransport.ServerOption{
        httptransport.ServerBefore(headersToContext),
        httptransport.ServerErrorEncoder(errorEncoder),
        httptransport.ServerAfter(httptransport.SetContentType(contentType)),
    }, options...)
{% for method in data.http_helper.methods %}
    {%- for binding in method.bindings %}
    router.Methods("{{ binding.verb | upper }}").Path("{{ binding.path_template }}").Handler(httptransport.NewServer(
        endpoints.{{ method.name }}Endpoint,
        DecodeHTTP{{ binding.label }}Request,
        responseEncoder,
        serverOptions...,
    ))
    {%- endfor %}
{%- endfor %}
{%- endif %}
    return router
}

// errorEncoder answers with a JSON body {"error": message} and status 500.
// Errors that marshal themselves to JSON, carry headers or carry a status
// code override the body, add the headers and replace the status.
func errorEncoder(_ context.Context, err error, w http.ResponseWriter) {
    status := http.StatusInternalServerError
    if coder, ok := err.(httptransport.StatusCoder); ok {
        status = coder.StatusCode()
    }
    payload, _ := json.Marshal(errorWrapper{Error: err.Error()})
    if marshaler, ok := err.(json.Marshaler); ok {
        if custom, marshalErr := marshaler.MarshalJSON(); marshalErr == nil {
            payload = custom
        }
    }
    header := w.Header()
    header.Set("Content-Type", contentType)
    if headerer, ok := err.(httptransport.Headerer); ok {
        extra := headerer.Headers()
        for name := range extra {
            header.Set(name, extra.Get(name))
        }
    }
    w.WriteHeader(status)
    w.Write(payload)
}

type errorWrapper struct {
    Error string `json:"error"`
}

// httpError is an error with a status code and headers, as go-kit's
// StatusCoder and Headerer expect.
type httpError struct {
    error
    statusCode int
    headers    map[string][]string
}

func (e httpError) StatusCode() int {
    return e.statusCode
}

func (e httpError) Headers() http.Header {
    return e.headers
}

// Server Decode
{% for method in data.http_helper.methods %}
    {% for binding in method.bindings %}
        {{ binding.gen_server_decode() }}
    {% endfor %}
{% endfor %}

// EncodeHTTPGenericResponse writes a protobuf response as JSON, keeping the
// original field names and leaving out default values.
func EncodeHTTPGenericResponse(_ context.Context, w http.ResponseWriter, response interface{}) error {
    m := jsonpb.Marshaler{OrigName: true, EmitDefaults: false}
    return m.Marshal(w, response.(proto.Message))
}

// headersToContext stores every request header in the context twice: under
// its canonical HTTP name and under its lower-case gRPC metadata name. The
// request path and the transport name are stored as well.
func headersToContext(ctx context.Context, r *http.Request) context.Context {
    for name := range r.Header {
        value := r.Header.Get(name)
        ctx = context.WithValue(ctx, name, value)
        ctx = context.WithValue(ctx, strings.ToLower(name), value)
    }
    ctx = context.WithValue(ctx, "request-url", r.URL.Path)
    return context.WithValue(ctx, "transport", "HTTPJSON")
}
"""

# Appended to the rendered server file: the generated decoders call it to turn
# dotted path variables into JSON objects.
ENCODE_PATH_PARAMS_FUNC = """\
// encodePathParams nests dotted path variables and encodes each nested group
// as JSON, e.g. {"book.name": "b1"} becomes {"book": `{"name":"b1"}`}.
func encodePathParams(vars map[string]string) map[string]string {
    nested := map[string]interface{}{}
    for key, value := range vars {
        parts := strings.Split(key, ".")
        node := nested
        for _, part := range parts[:len(parts)-1] {
            child, ok := node[part].(map[string]interface{})
            if !ok {
                child = map[string]interface{}{}
                node[part] = child
            }
            node = child
        }
        node[parts[len(parts)-1]] = value
    }

    out := make(map[string]string, len(nested))
    for key, value := range nested {
        if text, ok := value.(string); ok {
            out[key] = text
            continue
        }
        encoded, _ := json.Marshal(value)
        out[key] = string(encoded)
    }
    return out
}
"""