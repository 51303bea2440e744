"""
Tests for vncproxy.proxy.resolvers.
"""

import pytest

from conftest import FakeWebSocket
from vncproxy.exceptions import ResolveError
from vncproxy.proxy.resolvers import fixed_address_resolver, token_map_resolver


def test_fixed_address_resolver_defaults_to_5901():
    assert fixed_address_resolver()(FakeWebSocket()) == ":5901"


def test_fixed_address_resolver_custom():
    assert fixed_address_resolver("vnc.internal:5900")(FakeWebSocket()) == "vnc.internal:5900"


class TestTokenMapResolver:

    @pytest.fixture
    def resolve(self):
        return token_map_resolver({"alice": "10.0.0.2:5901", "bob": "10.0.0.3:5901"})

    def test_known_token(self, resolve):
        assert resolve(FakeWebSocket(query="token=bob")) == "10.0.0.3:5901"

    def test_unknown_token(self, resolve):
        with pytest.raises(ResolveError, match="Unknown token"):
            resolve(FakeWebSocket(query="token=mallory"))

    def test_missing_token(self, resolve):
        with pytest.raises(ResolveError, match="Missing 'token'"):
            resolve(FakeWebSocket())

    def test_custom_param(self):
        resolve = token_map_resolver({"x": "h:1"}, param="desktop")
        assert resolve(FakeWebSocket(query="desktop=x")) == "h:1"
