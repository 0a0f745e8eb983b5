"""Tests for the AI review client (HTTP layer mocked)."""

import threading
from unittest.mock import Mock, patch

import pytest
import requests

from qcr.core.ai_client import AIReviewClient, chunk_text
from qcr.core.config import Settings
from qcr.core.errors import AnalysisInputError, ConfigurationError, ExternalServiceError


def make_response(status_code=200, content="Looks good.", text=""):
    response = Mock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    response.text = text
    response.json.return_value = {"choices": [{"message": {"content": content}}]}
    return response


@pytest.fixture
def session():
    s = Mock(spec=requests.Session)
    s.post.return_value = make_response()
    return s


@pytest.fixture
def client(session):
    return AIReviewClient("sk-test", session=session)


class TestConstruction:
    @pytest.mark.parametrize("key", [None, "", "   "])
    def test_missing_key(self, key):
        with pytest.raises(ConfigurationError, match="API key not configured"):
            AIReviewClient(key)

    def test_from_settings(self, session):
        settings = Settings(api_key="sk-env", model="gpt-4o-mini", timeout=5)
        c = AIReviewClient.from_settings(settings, session=session, base_url=None)
        assert c.model == "gpt-4o-mini"
        assert c.timeout == 5
        assert c.base_url == settings.base_url

    def test_from_settings_without_key(self):
        with pytest.raises(ConfigurationError):
            AIReviewClient.from_settings(Settings())

    def test_each_thread_gets_its_own_session(self):
        created = []

        def new_session():
            s = Mock()
            s.post.return_value = make_response()
            created.append(s)
            return s

        with patch("qcr.core.ai_client.requests.Session", side_effect=new_session):
            c = AIReviewClient("sk-test")
            c.review_text("x = 1")
            c.review_text("y = 2")
            worker = threading.Thread(target=c.review_text, args=("z = 3",))
            worker.start()
            worker.join()

        assert len(created) == 2
        assert created[0].post.call_count == 2
        assert created[1].post.call_count == 1

        c.close()
        for s in created:
            s.close.assert_called_once()

    def test_context_manager_closes_session(self, session):
        with AIReviewClient("sk-test", session=session):
            pass
        session.close.assert_called_once()


class TestReviewText:
    def test_posts_chat_completion(self, client, session):
        assert client.review_text("print(1)", "python", path="a.py") == "Looks good."

        args, kwargs = session.post.call_args
        assert args[0] == "https://api.openai.com/v1/chat/completions"
        assert kwargs["headers"] == {"Authorization": "Bearer sk-test"}
        assert kwargs["timeout"] == client.timeout
        payload = kwargs["json"]
        assert payload["model"] == "gpt-3.5-turbo"
        assert payload["messages"][0]["role"] == "system"
        user = payload["messages"][1]["content"]
        assert "print(1)" in user
        assert "python" in user
        assert "a.py" in user

    def test_code_with_braces_is_inserted_verbatim(self, client, session):
        client.review_text("function f() { return {a: 1}; }", "javascript")
        user = session.post.call_args.kwargs["json"]["messages"][1]["content"]
        assert "{ return {a: 1}; }" in user

    def test_empty_content(self, client, session):
        with pytest.raises(AnalysisInputError, match="Code cannot be empty"):
            client.review_text("  \n", "python")
        session.post.assert_not_called()

    def test_large_content_is_chunked(self, session):
        c = AIReviewClient("sk-test", session=session, max_chunk_chars=20)
        code = "".join(f"line number {i}\n" for i in range(6))
        assert c.review_text(code) == "\n\n".join(["Looks good."] * session.post.call_count)
        assert session.post.call_count == len(chunk_text(code, max_chars=20)) > 1
        first = session.post.call_args_list[0].kwargs["json"]["messages"][1]["content"]
        assert "(chunk 1/" in first


class TestFailures:
    def test_bad_key(self, client, session):
        session.post.return_value = make_response(401)
        with pytest.raises(ExternalServiceError, match="Invalid AI API key") as exc:
            client.review_text("x = 1")
        assert exc.value.status_code == 401

    def test_rate_limited(self, client, session):
        session.post.return_value = make_response(429)
        with pytest.raises(ExternalServiceError, match="rate limit") as exc:
            client.review_text("x = 1")
        assert exc.value.status_code == 429

    def test_server_error(self, client, session):
        session.post.return_value = make_response(500, text="upstream exploded")
        with pytest.raises(ExternalServiceError, match="upstream exploded"):
            client.review_text("x = 1")

    def test_network_error(self, client, session):
        session.post.side_effect = requests.ConnectionError("connection refused")
        with pytest.raises(ExternalServiceError, match="Network error"):
            client.review_text("x = 1")

    def test_timeout(self, client, session):
        session.post.side_effect = requests.ReadTimeout("slow")
        with pytest.raises(ExternalServiceError, match="timed out"):
            client.review_text("x = 1")

    def test_malformed_body(self, client, session):
        response = make_response()
        response.json.return_value = {"error": "nope"}
        session.post.return_value = response
        with pytest.raises(ExternalServiceError, match="malformed"):
            client.review_text("x = 1")

    def test_content_parts_list_is_rejected(self, client, session):
        session.post.return_value = make_response(content=[{"type": "text", "text": "hi"}])
        with pytest.raises(ExternalServiceError, match="content is list"):
            client.review_text("x = 1")

    def test_null_content_is_empty_text(self, client, session):
        session.post.return_value = make_response(content=None)
        assert client.review_text("x = 1") == ""

    def test_non_json_body(self, client, session):
        response = make_response()
        response.json.side_effect = ValueError("Expecting value")
        session.post.return_value = response
        with pytest.raises(ExternalServiceError, match="malformed"):
            client.review_text("x = 1")


class TestChunkText:
    def test_short_text_is_one_chunk(self):
        assert chunk_text("abc", max_chars=10) == ["abc"]

    def test_chunks_respect_limit_and_rejoin(self):
        text = "".join(f"{i:03d}-line\n" for i in range(40))
        chunks = chunk_text(text, max_chars=50)
        assert len(chunks) > 1
        assert all(len(c) <= 50 for c in chunks)
        assert "".join(chunks) == text

    def test_long_single_line_is_kept_whole(self):
        text = "a" * 30 + "\n" + "b" * 5
        assert chunk_text(text, max_chars=10) == ["a" * 30 + "\n", "b" * 5]
