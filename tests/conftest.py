# tests/conftest.py
import pytest
from fastapi.testclient import TestClient

from clausewise.context import AppContext
from clausewise.errors import EmbeddingError
from clausewise.main import create_app
from clausewise.memory.documents import DocumentRecord, DocumentRepository, DocumentStatus
from clausewise.memory.embedder import EmbeddingTaskType
from clausewise.memory.embedding_cache import EmbeddingCache
from clausewise.memory.retriever import Retriever
from clausewise.memory.store import LocalChunkStore
from clausewise.observability.metrics import MetricsTracker
from clausewise.observability.posthog_client import PostHogClient
from clausewise.prompts.system_prompts import FOLLOW_UP_INSTRUCTIONS, SUMMARY_INSTRUCTIONS
from clausewise.workflow.conversation import ConversationMemory


TEST_DIMENSION = 4

# Unit vectors: a chunk and a question sharing a keyword score 1.0
TERMINATION = [1.0, 0.0, 0.0, 0.0]
FEES = [0.0, 1.0, 0.0, 0.0]
OTHER = [0.0, 0.0, 0.0, 1.0]


class FakeEmbedder:
    """
    Deterministic stand-in for the Gemini embedder.

    The first keyword found in a text decides its vector.
    """

    def __init__(self, dimension=TEST_DIMENSION, batch_size=100, keyword_vectors=None):
        self._dimension = dimension
        self._batch_size = batch_size
        self.keyword_vectors = keyword_vectors if keyword_vectors is not None else {
            "terminat": TERMINATION,
            "fee": FEES,
        }
        self.default_vector = OTHER
        self.calls = []
        self.fail_documents = False
        self.fail_queries = False

    @property
    def batch_size(self):
        return self._batch_size

    def vector_for(self, text):
        lowered = text.lower()
        for keyword, vector in self.keyword_vectors.items():
            if keyword in lowered:
                return list(vector)
        return list(self.default_vector)

    def embed(self, texts, task_type=EmbeddingTaskType.RETRIEVAL_DOCUMENT, batch_size=None):
        size = batch_size or self._batch_size
        vectors = []
        for start in range(0, len(texts), size):
            batch = list(texts[start:start + size])
            self.calls.append((task_type, batch))
            if self.fail_documents:
                raise EmbeddingError("boom", batch_start=start, batch_size=len(batch))
            vectors.extend(self.vector_for(t) for t in batch)
        return vectors

    def embed_query(self, question):
        self.calls.append((EmbeddingTaskType.RETRIEVAL_QUERY, [question]))
        if self.fail_queries:
            raise EmbeddingError("query boom")
        return self.vector_for(question)

    def document_calls(self):
        return [texts for task, texts in self.calls if task == EmbeddingTaskType.RETRIEVAL_DOCUMENT]

    def get_dimension(self):
        return self._dimension

    def health_check(self):
        return {"model": "fake", "dimension": self._dimension, "provider": "fake", "status": "healthy"}


class FakeLLM:
    """Generation stand-in that records prompts."""

    def __init__(self, answer="Summary:\n- The contract can be terminated early."):
        self.answer = answer
        self.follow_ups = "1. What fees apply?\n2. Can I renew the contract?\n3. A third question"
        self.summary = "- user asked about termination"
        self.prompts = []
        self.fail_answer = False
        self.fail_follow_ups = False
        self.fail_summary = False

    def generate(self, prompt):
        self.prompts.append(prompt)
        if prompt.startswith(FOLLOW_UP_INSTRUCTIONS):
            if self.fail_follow_ups:
                raise RuntimeError("follow-up failed")
            return self.follow_ups
        if prompt.startswith(SUMMARY_INSTRUCTIONS):
            if self.fail_summary:
                raise RuntimeError("summary failed")
            return self.summary
        if self.fail_answer:
            raise RuntimeError("generation failed")
        return self.answer

    def answer_prompts(self):
        return [
            p for p in self.prompts
            if not p.startswith(FOLLOW_UP_INSTRUCTIONS) and not p.startswith(SUMMARY_INSTRUCTIONS)
        ]


@pytest.fixture(autouse=True)
def no_external_analytics(monkeypatch):
    monkeypatch.delenv("POSTHOG_API_KEY", raising=False)


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def store():
    return LocalChunkStore()


@pytest.fixture
def documents(tmp_path):
    return DocumentRepository(str(tmp_path / "document_registry.json"))


@pytest.fixture
def context(tmp_path, documents, store, embedder, llm):
    upload_dir = tmp_path / "uploads"
    upload_dir.mkdir()

    cache = EmbeddingCache(embedder, store)

    return AppContext(
        documents=documents,
        store=store,
        embedder=embedder,
        cache=cache,
        retriever=Retriever(documents, store, embedder, cache),
        llm_client=llm,
        memory=ConversationMemory(),
        metrics=MetricsTracker(),
        analytics=PostHogClient(),
        upload_dir=str(upload_dir),
    )


@pytest.fixture
def client(context):
    """
    FastAPI test client wired to the fake context.
    """
    return TestClient(create_app(context), raise_server_exceptions=False)


@pytest.fixture
def auth_headers():
    return {"X-User-Id": "user-1"}


@pytest.fixture
def add_document(documents, store):
    """
    Create a ready document, optionally with stored chunks.
    """

    def _add(document_id="doc_1", texts=None, embeddings=None, extracted_text=None, owner_id="user-1"):
        text = extracted_text if extracted_text is not None else " ".join(texts or [])
        documents.save(
            DocumentRecord(
                document_id=document_id,
                owner_id=owner_id,
                filename=f"{document_id}.txt",
                status=DocumentStatus.READY if text.strip() else DocumentStatus.FAILED,
                extracted_text=text,
                chunks_count=len(texts or []),
            )
        )
        if texts:
            store.add_chunks(document_id, texts, embeddings=embeddings)
        return document_id

    return _add


@pytest.fixture
def contract_chunks():
    return [
        "This agreement sets out definitions used throughout the document.",
        "Either party may seek termination of this agreement with thirty days notice.",
        "Payment is due monthly and late fees of five percent apply.",
    ]
