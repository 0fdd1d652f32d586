"""
Unit tests for PermitSession.

Tests the session controller against a mocked DecisionFetcher:
- Construction and configuration errors
- Initialize-once semantics for load and load_bulk
- reset and in-flight loads
- Synchronous check and default verdicts
- add_key_to_state and audit log growth
"""

import asyncio

import pytest

from permit_cache.config import PermitConfig
from permit_cache.core.keys import canonical_key
from permit_cache.core.session import PermitSession, SessionStatus
from permit_cache.core.types import PermissionRequest
from permit_cache.exceptions import (ConfigurationError, InvalidRequestError,
                                     ResourceIdentityError, TransportError)

BACKEND_URL = "http://example.com"


class TestSessionConstruction:
    """Test fail-fast configuration checks."""

    @pytest.mark.parametrize("user", ["", None])
    def test_missing_user_rejected(self, user):
        with pytest.raises(ConfigurationError) as exc_info:
            PermitSession(logged_in_user=user, backend_url=BACKEND_URL)
        assert exc_info.value.config_key == "logged_in_user"

    @pytest.mark.parametrize("url", ["", None, 123])
    def test_invalid_backend_url_rejected(self, url):
        with pytest.raises(ConfigurationError) as exc_info:
            PermitSession(logged_in_user="user1", backend_url=url)
        assert exc_info.value.config_key == "backend_url"

    def test_unsupported_method_rejected(self):
        with pytest.raises(ConfigurationError):
            PermitSession(logged_in_user="user1", backend_url=BACKEND_URL, method="PUT")

    def test_method_is_case_insensitive(self, make_session):
        assert make_session(method="post").method == "POST"

    def test_starts_uninitialized_and_empty(self, permit_session):
        assert permit_session.status is SessionStatus.UNINITIALIZED
        assert permit_session.is_initialized is False
        assert dict(permit_session.state) == {}
        assert permit_session.get_casl_json() == []

    def test_from_config(self, mock_fetcher):
        config = PermitConfig(
            logged_in_user="alice",
            backend_url=BACKEND_URL,
            default_answer_if_not_exist=True,
            headers={"Authorization": "Bearer t"},
        )
        session = PermitSession.from_config(config, fetcher=mock_fetcher)
        assert session.logged_in_user == "alice"
        assert session.default_answer_if_not_exist is True
        assert session.headers == {"Authorization": "Bearer t"}

    def test_from_config_validates(self):
        with pytest.raises(ConfigurationError):
            PermitSession.from_config(PermitConfig(backend_url=BACKEND_URL))

    def test_sessions_do_not_share_state(self, make_session):
        first = make_session()
        second = make_session(logged_in_user="user2")
        first._store.record(PermissionRequest(action="read", resource="file"), True)
        assert second.check("read", "file") is False


class TestLoadBulk:
    """Test bulk loading."""

    @pytest.mark.asyncio
    async def test_end_to_end_scenario(self, permit_session, mock_fetcher, file_requests):
        mock_fetcher.fetch_bulk.return_value = [True, False]

        await permit_session.load_bulk(file_requests)

        assert permit_session.check("read", "file") is True
        assert permit_session.check("write", "file") is False
        assert permit_session.check("delete", "file") is False
        assert permit_session.is_initialized is True

    @pytest.mark.asyncio
    async def test_fetch_bulk_called_once_with_session_settings(
        self, make_session, mock_fetcher, file_requests
    ):
        session = make_session(headers={"X-Tenant": "acme"}, timeout=3.0)
        mock_fetcher.fetch_bulk.return_value = [True, True]

        await session.load_bulk(file_requests)

        mock_fetcher.fetch_bulk.assert_awaited_once()
        args, kwargs = mock_fetcher.fetch_bulk.call_args
        assert args[0] == BACKEND_URL
        assert args[1] == "user1"
        assert [r.action for r in args[2]] == ["read", "write"]
        assert kwargs == {"headers": {"X-Tenant": "acme"}, "timeout": 3.0}

    @pytest.mark.asyncio
    async def test_second_load_bulk_is_noop(self, permit_session, mock_fetcher, file_requests):
        mock_fetcher.fetch_bulk.return_value = [True, False]
        await permit_session.load_bulk(file_requests)

        mock_fetcher.fetch_bulk.return_value = [True]
        await permit_session.load_bulk([{"action": "delete", "resource": "file"}])

        assert mock_fetcher.fetch_bulk.await_count == 1
        assert permit_session.check("delete", "file") is False
        assert len(permit_session.state) == 2

    @pytest.mark.asyncio
    async def test_failure_propagates_and_rolls_back(
        self, permit_session, mock_fetcher, file_requests
    ):
        mock_fetcher.fetch_bulk.side_effect = TransportError("boom", url=BACKEND_URL)

        with pytest.raises(TransportError):
            await permit_session.load_bulk(file_requests)

        assert permit_session.status is SessionStatus.UNINITIALIZED
        assert dict(permit_session.state) == {}

        mock_fetcher.fetch_bulk.side_effect = None
        mock_fetcher.fetch_bulk.return_value = [True, True]
        await permit_session.load_bulk(file_requests)
        assert permit_session.check("write", "file") is True

    @pytest.mark.asyncio
    async def test_length_mismatch_raises(self, permit_session, mock_fetcher, file_requests):
        mock_fetcher.fetch_bulk.return_value = [True]

        with pytest.raises(TransportError):
            await permit_session.load_bulk(file_requests)

        assert dict(permit_session.state) == {}
        assert permit_session.status is SessionStatus.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_invalid_request_rejected_before_fetch(self, permit_session, mock_fetcher):
        with pytest.raises(ResourceIdentityError):
            await permit_session.load_bulk([{"action": "read", "resource": {"type": "file"}}])

        mock_fetcher.fetch_bulk.assert_not_awaited()
        assert permit_session.status is SessionStatus.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_request_missing_action_rejected(self, permit_session, mock_fetcher):
        with pytest.raises(InvalidRequestError) as exc_info:
            await permit_session.load_bulk([{"resource": "file"}])

        assert exc_info.value.field == "action"
        mock_fetcher.fetch_bulk.assert_not_awaited()
        assert permit_session.status is SessionStatus.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_malformed_list_ignored_once_initialized(
        self, permit_session, mock_fetcher, file_requests
    ):
        mock_fetcher.fetch_bulk.return_value = [True, False]
        await permit_session.load_bulk(file_requests)
        state_after_first = dict(permit_session.state)

        await permit_session.load_bulk([{"resource": "file"}, "not-a-request"])

        assert mock_fetcher.fetch_bulk.await_count == 1
        assert dict(permit_session.state) == state_after_first
        assert permit_session.status is SessionStatus.INITIALIZED


class TestLoad:
    """Test sequential loading."""

    @pytest.mark.asyncio
    async def test_fetches_each_request_in_order(self, permit_session, mock_fetcher):
        mock_fetcher.fetch_one.side_effect = [True, False, True]

        await permit_session.load(
            [
                {"action": "read", "resource": "file"},
                {"action": "write", "resource": "file"},
                {"action": "read", "resource": {"type": "doc", "key": "d1"}},
            ]
        )

        assert [c.args[2].action for c in mock_fetcher.fetch_one.call_args_list] == [
            "read",
            "write",
            "read",
        ]
        assert permit_session.get_casl_json() == [
            {"action": "read", "subject": "file", "inverted": False},
            {"action": "write", "subject": "file", "inverted": True},
            {"action": "read", "subject": "doc:d1", "inverted": False},
        ]
        assert permit_session.check("read", "doc:d1") is True

    @pytest.mark.asyncio
    async def test_passes_default_headers_method_and_timeout(self, make_session, mock_fetcher):
        session = make_session(
            default_answer_if_not_exist=True,
            headers={"Authorization": "Bearer t"},
            method="POST",
            timeout=2.5,
        )

        await session.load([PermissionRequest(action="read", resource="file")])

        kwargs = mock_fetcher.fetch_one.call_args.kwargs
        assert kwargs == {
            "default_verdict": True,
            "headers": {"Authorization": "Bearer t"},
            "method": "POST",
            "timeout": 2.5,
        }

    @pytest.mark.asyncio
    async def test_later_duplicate_overwrites(self, permit_session, mock_fetcher):
        mock_fetcher.fetch_one.side_effect = [True, False]
        request = {"action": "read", "resource": "file"}

        await permit_session.load([request, request])

        assert permit_session.check("read", "file") is False
        assert len(permit_session.audit_log) == 2

    @pytest.mark.asyncio
    async def test_second_load_with_different_list_is_noop(self, permit_session, mock_fetcher):
        await permit_session.load([{"action": "read", "resource": "file"}])
        state_after_first = dict(permit_session.state)

        await permit_session.load([{"action": "write", "resource": "file"}])

        assert dict(permit_session.state) == state_after_first
        assert mock_fetcher.fetch_one.await_count == 1

    @pytest.mark.asyncio
    async def test_malformed_resource_ignored_once_initialized(self, permit_session, mock_fetcher):
        await permit_session.load([{"action": "read", "resource": "file"}])
        state_after_first = dict(permit_session.state)

        await permit_session.load([{"action": "read", "resource": {"type": "", "key": ""}}])

        assert dict(permit_session.state) == state_after_first
        assert mock_fetcher.fetch_one.await_count == 1
        assert permit_session.status is SessionStatus.INITIALIZED

    @pytest.mark.asyncio
    async def test_malformed_resource_releases_guard(self, permit_session, mock_fetcher):
        with pytest.raises(ResourceIdentityError):
            await permit_session.load(
                [
                    {"action": "read", "resource": "file"},
                    {"action": "read", "resource": {"type": "", "key": ""}},
                ]
            )

        mock_fetcher.fetch_one.assert_not_awaited()
        assert permit_session.status is SessionStatus.UNINITIALIZED

        await permit_session.load([{"action": "read", "resource": "file"}])
        assert permit_session.is_initialized

    @pytest.mark.asyncio
    async def test_load_after_load_bulk_is_noop(self, permit_session, mock_fetcher, file_requests):
        mock_fetcher.fetch_bulk.return_value = [True, True]
        await permit_session.load_bulk(file_requests)

        await permit_session.load([{"action": "delete", "resource": "file"}])

        mock_fetcher.fetch_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_loads_fetch_once(self, permit_session, mock_fetcher):
        first = [{"action": "read", "resource": "file"}, {"action": "write", "resource": "file"}]
        second = [{"action": "delete", "resource": "file"}]

        await asyncio.gather(permit_session.load(first), permit_session.load(second))

        assert mock_fetcher.fetch_one.await_count == 2
        assert set(permit_session.state) == {
            "action:read;resource:file",
            "action:write;resource:file",
        }

    @pytest.mark.asyncio
    async def test_session_user_attributes_applied(self, make_session, mock_fetcher):
        session = make_session(user_attributes={"department": "Engineering"})

        await session.load([{"action": "read", "resource": "file"}])

        sent = mock_fetcher.fetch_one.call_args.args[2]
        assert sent.user_attributes == {"department": "Engineering"}
        assert canonical_key("read", "file", {"department": "Engineering"}) in session.state
        assert session.check("read", "file") is True
        assert session.check("read", "file", user_attributes={"department": "Sales"}) is False


class TestReset:
    """Test reset semantics."""

    @pytest.mark.asyncio
    async def test_reset_allows_reload(self, permit_session, mock_fetcher):
        await permit_session.load([{"action": "read", "resource": "file"}])

        permit_session.reset()

        assert permit_session.status is SessionStatus.UNINITIALIZED
        assert dict(permit_session.state) == {}
        assert permit_session.get_casl_json() == []

        mock_fetcher.fetch_one.return_value = False
        await permit_session.load([{"action": "write", "resource": "file"}])

        assert mock_fetcher.fetch_one.await_count == 2
        assert set(permit_session.state) == {"action:write;resource:file"}
        assert permit_session.is_initialized is True

    @pytest.mark.asyncio
    async def test_reset_during_load_discards_verdicts(self, permit_session, mock_fetcher):
        async def fetch_then_reset(*args, **kwargs):
            permit_session.reset()
            return True

        mock_fetcher.fetch_one.side_effect = fetch_then_reset

        await permit_session.load(
            [{"action": "read", "resource": "file"}, {"action": "write", "resource": "file"}]
        )

        assert mock_fetcher.fetch_one.await_count == 1
        assert dict(permit_session.state) == {}
        assert permit_session.status is SessionStatus.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_reset_during_add_key_discards_verdict(self, permit_session, mock_fetcher):
        async def fetch_then_reset(*args, **kwargs):
            permit_session.reset()
            return True

        mock_fetcher.fetch_one.side_effect = fetch_then_reset

        await permit_session.add_key_to_state("read", "file")

        assert permit_session.audit_log == ()


class TestCheck:
    """Test synchronous lookups."""

    @pytest.mark.parametrize("default", [True, False])
    def test_unseen_key_returns_default(self, make_session, default):
        session = make_session(default_answer_if_not_exist=default)
        assert session.check("read", "never-loaded") is default

    def test_malformed_resource_returns_default(self, make_session):
        session = make_session(default_answer_if_not_exist=True)
        assert session.check("read", {"type": "file"}) is True

    def test_non_string_attribute_key_returns_default(self, make_session):
        session = make_session(default_answer_if_not_exist=True)
        assert session.check("read", "file", {1: "a"}) is True

    @pytest.mark.asyncio
    async def test_attribute_order_does_not_matter(self, permit_session):
        await permit_session.add_key_to_state("read", "file", {"country": "PL", "tier": 2})
        assert permit_session.check("read", "file", {"tier": 2, "country": "PL"}) is True

    @pytest.mark.asyncio
    async def test_typed_and_string_resource_share_verdict(self, permit_session):
        await permit_session.add_key_to_state("read", {"type": "file", "key": "f1"})
        assert permit_session.check("read", "file:f1") is True


class TestAddKeyToState:
    """Test incremental additions."""

    @pytest.mark.asyncio
    async def test_bypasses_initialization_guard(self, permit_session, mock_fetcher, file_requests):
        mock_fetcher.fetch_bulk.return_value = [False, False]
        await permit_session.load_bulk(file_requests)

        await permit_session.add_key_to_state("delete", "file")

        assert permit_session.check("delete", "file") is True

    @pytest.mark.asyncio
    async def test_twice_appends_two_audit_entries(self, permit_session, mock_fetcher):
        mock_fetcher.fetch_one.side_effect = [True, False]

        await permit_session.add_key_to_state("read", "file")
        await permit_session.add_key_to_state("read", "file")

        assert len(permit_session.state) == 1
        assert permit_session.check("read", "file") is False
        assert permit_session.get_casl_json() == [
            {"action": "read", "subject": "file", "inverted": False},
            {"action": "read", "subject": "file", "inverted": True},
        ]

    @pytest.mark.asyncio
    async def test_forwards_attributes(self, permit_session, mock_fetcher):
        await permit_session.add_key_to_state(
            "read", "file", {"country": "PL"}, {"department": "Engineering"}
        )

        sent = mock_fetcher.fetch_one.call_args.args[2]
        assert sent.resource_attributes == {"country": "PL"}
        assert sent.user_attributes == {"department": "Engineering"}

    @pytest.mark.asyncio
    async def test_invalid_resource_raises(self, permit_session, mock_fetcher):
        with pytest.raises(ResourceIdentityError):
            await permit_session.add_key_to_state("read", {"key": "f1"})
        mock_fetcher.fetch_one.assert_not_awaited()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_context_manager_leaves_injected_fetcher_open(self, make_session, mock_fetcher):
        async with make_session() as session:
            assert isinstance(session, PermitSession)
        mock_fetcher.aclose.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_aclose_without_requests(self):
        session = PermitSession(logged_in_user="user1", backend_url=BACKEND_URL)
        await session.aclose()

    def test_repr(self, permit_session):
        assert "user1" in repr(permit_session)
        assert "uninitialized" in repr(permit_session)
