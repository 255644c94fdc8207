# tests/test_embedder.py
from unittest.mock import Mock

import pytest

from clausewise.errors import EmbeddingError
from clausewise.memory.embedder import Embedder, EmbeddingTaskType


@pytest.fixture
def embed_content(monkeypatch):
    """Stands in for the Gemini embedding endpoint."""

    def fake(model, content, task_type, output_dimensionality, request_options):
        return {"embedding": [[float(len(text))] * output_dimensionality for text in content]}

    mock = Mock(side_effect=fake)
    monkeypatch.setattr("clausewise.memory.embedder.genai.embed_content", mock)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    return mock


class TestEmbedder:

    def test_vectors_follow_input_order(self, embed_content):
        embedder = Embedder(dimension=3)

        vectors = embedder.embed(["a", "bbb", "cc"])

        assert vectors == [[1.0] * 3, [3.0] * 3, [2.0] * 3]

    def test_requests_are_batched_and_tagged(self, embed_content):
        embedder = Embedder(dimension=2, batch_size=2, timeout=7)

        embedder.embed(["a", "b", "c"])

        assert embed_content.call_count == 2
        kwargs = embed_content.call_args_list[0].kwargs
        assert kwargs["content"] == ["a", "b"]
        assert kwargs["task_type"] == "RETRIEVAL_DOCUMENT"
        assert kwargs["output_dimensionality"] == 2
        assert kwargs["request_options"] == {"timeout": 7}

    def test_query_uses_query_task(self, embed_content):
        embedder = Embedder(dimension=2)

        assert embedder.embed_query("why") == [3.0, 3.0]
        assert embed_content.call_args.kwargs["task_type"] == EmbeddingTaskType.RETRIEVAL_QUERY.value

    def test_empty_input_makes_no_request(self, embed_content):
        assert Embedder().embed([]) == []
        embed_content.assert_not_called()

    def test_provider_failure_names_the_batch(self, embed_content):
        embed_content.side_effect = [
            {"embedding": [[0.0, 0.0], [0.0, 0.0]]},
            RuntimeError("quota exceeded"),
        ]
        embedder = Embedder(dimension=2, batch_size=2)

        with pytest.raises(EmbeddingError) as exc_info:
            embedder.embed(["a", "b", "c"])

        assert exc_info.value.batch_start == 2
        assert exc_info.value.batch_size == 1

    def test_wrong_vector_count_is_an_error(self, embed_content):
        embed_content.side_effect = None
        embed_content.return_value = {"embedding": [[0.0]]}

        with pytest.raises(EmbeddingError):
            Embedder(dimension=1).embed(["a", "b"])

    def test_health_without_key(self, embed_content):
        health = Embedder(dimension=768).health_check()

        assert health["status"] == "unconfigured"
        assert health["dimension"] == 768

    def test_invalid_settings(self, embed_content):
        with pytest.raises(ValueError):
            Embedder(dimension=0)
        with pytest.raises(ValueError):
            Embedder(batch_size=0)
