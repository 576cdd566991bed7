"""Tests for primary/stub role detection."""

import pytest

from jjterm.core.askpass import ENV_ADDRESS, Role, detect_role, resolve_invocation

ADDRESS = "tok@127.0.0.1:5022"


def test_askpass_shape_is_stub():
    inv = resolve_invocation(["jjterm", "Enter passphrase for key: "], {ENV_ADDRESS: ADDRESS})
    assert inv.role == Role.STUB
    assert inv.prompt == "Enter passphrase for key: "
    assert inv.address == ADDRESS


def test_empty_prompt_is_still_stub():
    inv = resolve_invocation(["jjterm", ""], {ENV_ADDRESS: ADDRESS})
    assert inv.role == Role.STUB
    assert inv.prompt == ""


@pytest.mark.parametrize("argv, environ", [
    (["jjterm"], {}),
    (["jjterm", "~/src/repo"], {}),
    (["jjterm", "Password: "], {ENV_ADDRESS: ""}),
    (["jjterm"], {ENV_ADDRESS: ADDRESS}),
    (["jjterm", "-r", "trunk()"], {ENV_ADDRESS: ADDRESS}),
    (["jjterm", "--version"], {ENV_ADDRESS: ADDRESS}),
    (["jjterm", "a", "b"], {ENV_ADDRESS: ADDRESS}),
])
def test_primary(argv, environ):
    inv = resolve_invocation(argv, environ)
    assert inv.role == Role.PRIMARY
    assert inv.prompt is None
    assert inv.address is None


def test_detect_role():
    assert detect_role(["jjterm", "pw: "], {ENV_ADDRESS: ADDRESS}) == Role.STUB
    assert detect_role(["jjterm"], {"HOME": "/home/x"}) == Role.PRIMARY
