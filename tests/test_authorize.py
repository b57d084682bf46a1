"""Tests for authorize URL construction."""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

from helpers import make_config

from codegrant.authorize import AuthorizationURLBuilder, build_callback_url


def _query(url: str) -> dict[str, list[str]]:
    return parse_qs(urlsplit(url).query)


class TestBuildCallbackUrl:
    def test_joins_parts(self) -> None:
        url = build_callback_url("https://app.example.com/", "/mount", "/auth/example/callback")
        assert url == "https://app.example.com/mount/auth/example/callback"

    def test_empty_script_name(self) -> None:
        url = build_callback_url("https://app.example.com", "", "/auth/example/callback")
        assert url == "https://app.example.com/auth/example/callback"


class TestAuthorizationURLBuilder:
    def test_protocol_params(self) -> None:
        builder = AuthorizationURLBuilder(make_config())
        url = builder.build("S", "https://app.example.com/cb")

        assert url.startswith("https://provider.example.com/oauth/authorize?")
        query = _query(url)
        assert query["response_type"] == ["code"]
        assert query["client_id"] == ["test_client"]
        assert query["redirect_uri"] == ["https://app.example.com/cb"]
        assert query["state"] == ["S"]

    def test_state_and_scope_appear_once_across_builds(self) -> None:
        config = make_config(authorize_endpoint_options={"scope": "read"})
        builder = AuthorizationURLBuilder(config)

        for _ in range(3):
            url = builder.build("S", "https://app.example.com/cb")
            query = urlsplit(url).query
            assert query.count("state=S") == 1
            assert query.count("scope=read") == 1
        assert "state" not in config.authorize_endpoint_options

    def test_state_overrides_caller_state(self) -> None:
        config = make_config(authorize_endpoint_options={"state": "configured"})
        url = AuthorizationURLBuilder(config).build(
            "fresh", "https://app.example.com/cb", {"state": "caller"}
        )
        assert _query(url)["state"] == ["fresh"]

    def test_merge_precedence(self) -> None:
        config = make_config(
            authorize_endpoint_options={"scope": "read", "prompt": "login", "display": "page"},
            scope="read write",
        )
        url = AuthorizationURLBuilder(config).build(
            "S", "https://app.example.com/cb", {"prompt": "consent"}
        )
        query = _query(url)
        assert query["scope"] == ["read write"]
        assert query["prompt"] == ["consent"]
        assert query["display"] == ["page"]

    def test_existing_query_preserved(self) -> None:
        config = make_config(authorize_url="https://provider.example.com/authorize?tenant=acme&state=x")
        url = AuthorizationURLBuilder(config).build("S", "https://app.example.com/cb")
        query = _query(url)
        assert query["tenant"] == ["acme"]
        assert query["state"] == ["S"]

    def test_code_challenge(self) -> None:
        url = AuthorizationURLBuilder(make_config()).build(
            "S", "https://app.example.com/cb", code_challenge="abc"
        )
        query = _query(url)
        assert query["code_challenge"] == ["abc"]
        assert query["code_challenge_method"] == ["S256"]
