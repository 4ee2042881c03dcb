"""FUNC fixture transforms and the mockproxy-hash helper."""

import json

import pytest
from typer.testing import CliRunner

from mockproxy import hash_cli
from mockproxy.services.transforms import TransformError, TransformRegistry, default_registry
from mockproxy.utils.fixture_key import body_hash

from conftest import make_request

runner = CliRunner()


def render(descriptor, request=None):
    return default_registry.render(json.dumps(descriptor), request or make_request())


def test_static_transform():
    assert render({"transform": "static", "options": {"body": "fixed"}}) == b"fixed"


def test_echo_transform_returns_json_body():
    request = make_request("POST", "/echo", body={"x": [1, 2]})
    assert json.loads(render({"transform": "echo"}, request)) == {"x": [1, 2]}


def test_template_transform_sees_request_fields():
    request = make_request("POST", "/users", body={"name": "Ada"}, query="v=2")
    body = render({"transform": "template", "options": {"template": "$method $path?$query $name $missing"}}, request)
    assert body == b"POST /users?v=2 Ada $missing"


@pytest.mark.parametrize(
    "descriptor",
    ["not json", "[]", '{"options": {}}', '{"transform": "nope"}', '{"transform": "static", "options": 3}'],
)
def test_bad_descriptors_raise(descriptor):
    with pytest.raises(TransformError):
        default_registry.render(descriptor, make_request())


def test_custom_registry_wraps_transform_errors():
    registry = TransformRegistry()

    @registry.register("boom")
    def boom(request, options):
        raise RuntimeError("kaboom")

    with pytest.raises(TransformError, match="kaboom"):
        registry.render('{"transform": "boom"}', make_request())


def test_transform_cannot_mutate_request_headers():
    registry = TransformRegistry()

    @registry.register("tamper")
    def tamper(request, options):
        request.headers["x"] = "y"

    with pytest.raises(TransformError):
        registry.render('{"transform": "tamper"}', make_request())


def test_builtin_names():
    assert {"static", "echo", "template"} <= set(default_registry.names())


def test_hash_cli_canonicalizes_json():
    result = runner.invoke(hash_cli.app, [], input='{"b": 2, "a": 1}')
    assert result.exit_code == 0
    assert result.stdout.strip() == body_hash({"a": 1, "b": 2})


def test_hash_cli_text_mode():
    result = runner.invoke(hash_cli.app, ["--text"], input="plain words")
    assert result.exit_code == 0
    assert result.stdout.strip() == body_hash("plain words")


def test_hash_cli_empty_body():
    result = runner.invoke(hash_cli.app, [], input="{}")
    assert result.exit_code == 1
