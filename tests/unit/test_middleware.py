"""Tests for request tracking and the authentication gate."""

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest
from fastapi import Request, Response

from blog_api.exceptions import ExpiredTokenError, InvalidTokenError, MissingTokenError
from blog_api.middleware import add_request_id, extract_bearer_token, get_current_user
from blog_api.tokens import TokenIssuer, utc_now


def make_request(headers: dict[str, str], issuer: TokenIssuer) -> Mock:
    """Build a request double whose app exposes the token issuer."""
    request = Mock(spec=Request)
    request.headers = headers
    request.state = SimpleNamespace()
    request.url = Mock(path="/api/posts")
    request.app = SimpleNamespace(state=SimpleNamespace(services=SimpleNamespace(tokens=issuer)))
    return request


class TestRequestIDMiddleware:
    """Test request ID middleware."""

    @pytest.mark.asyncio
    async def test_add_request_id_with_existing_header(self):
        """Test middleware preserves existing X-Request-ID header."""
        request = Mock(spec=Request)
        request.headers = {"X-Request-ID": "existing-id-123"}
        request.state = SimpleNamespace()
        request.method = "GET"
        request.url = Mock(path="/test")
        request.client = None

        async def mock_call_next(req):
            response = Mock(spec=Response)
            response.headers = {}
            response.status_code = 200
            return response

        response = await add_request_id(request, mock_call_next)

        assert request.state.request_id == "existing-id-123"
        assert response.headers["X-Request-ID"] == "existing-id-123"

    @pytest.mark.asyncio
    async def test_add_request_id_generates_new_id(self):
        """Test middleware generates new ID when header missing."""
        request = Mock(spec=Request)
        request.headers = {}
        request.state = SimpleNamespace()
        request.method = "GET"
        request.url = Mock(path="/test")
        request.client = None

        async def mock_call_next(req):
            response = Mock(spec=Response)
            response.headers = {}
            response.status_code = 200
            return response

        with patch("blog_api.middleware.uuid.uuid4", return_value="generated-uuid-456"):
            response = await add_request_id(request, mock_call_next)

        assert request.state.request_id == "generated-uuid-456"
        assert response.headers["X-Request-ID"] == "generated-uuid-456"

    @pytest.mark.asyncio
    async def test_add_request_id_propagates_exception(self):
        request = Mock(spec=Request)
        request.headers = {"X-Request-ID": "error-id"}
        request.state = SimpleNamespace()
        request.method = "GET"
        request.url = Mock(path="/test")
        request.client = None

        async def mock_call_next(req):
            raise ValueError("Test error")

        with pytest.raises(ValueError, match="Test error"):
            await add_request_id(request, mock_call_next)

        assert request.state.request_id == "error-id"


class TestExtractBearerToken:
    """Test Authorization header parsing."""

    def test_extracts_token(self):
        assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"

    def test_scheme_is_case_insensitive(self):
        assert extract_bearer_token("bearer abc") == "abc"

    @pytest.mark.parametrize(
        "header",
        [None, "", "Bearer", "Bearer ", "abc.def.ghi", "Bearer a b", "Basic dXNlcjpwYXNz"],
    )
    def test_malformed_header_is_treated_as_absent(self, header):
        assert extract_bearer_token(header) is None


class TestGetCurrentUser:
    """Test the authentication dependency."""

    @pytest.fixture
    def issuer(self) -> TokenIssuer:
        return TokenIssuer("middleware-test-secret")

    @pytest.mark.asyncio
    async def test_valid_token_attaches_claims(self, issuer):
        token = issuer.issue("user-1", "alice")
        request = make_request({"Authorization": f"Bearer {token}"}, issuer)

        claims = await get_current_user(request)

        assert claims.user_id == "user-1"
        assert claims.username == "alice"
        assert request.state.user is claims

    @pytest.mark.asyncio
    async def test_missing_header_raises_missing_token(self, issuer):
        request = make_request({}, issuer)

        with pytest.raises(MissingTokenError) as exc_info:
            await get_current_user(request)

        assert exc_info.value.status_code == 401
        assert not hasattr(request.state, "user")

    @pytest.mark.asyncio
    async def test_three_part_header_raises_missing_token(self, issuer):
        token = issuer.issue("user-1", "alice")
        request = make_request({"Authorization": f"Bearer {token} extra"}, issuer)

        with pytest.raises(MissingTokenError):
            await get_current_user(request)

    @pytest.mark.asyncio
    async def test_bad_signature_raises_invalid_token(self, issuer):
        token = TokenIssuer("another-secret").issue("user-1", "alice")
        request = make_request({"Authorization": f"Bearer {token}"}, issuer)

        with pytest.raises(InvalidTokenError) as exc_info:
            await get_current_user(request)

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_expired_token_raises_expired(self, issuer):
        stale = TokenIssuer(
            "middleware-test-secret", clock=lambda: utc_now() - timedelta(hours=25)
        ).issue("user-1", "alice")
        request = make_request({"Authorization": f"Bearer {stale}"}, issuer)

        with pytest.raises(ExpiredTokenError):
            await get_current_user(request)
