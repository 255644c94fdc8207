# tests/test_ingestion.py
import docx
import pytest

from clausewise.errors import DocumentNotReadyError, TextExtractionError, UnsupportedFileTypeError
from clausewise.memory.documents import DocumentStatus
from clausewise.memory.loader import enforce_character_limit, file_extension, load_text
from clausewise.memory.retriever import Retriever
from clausewise.memory.store import LocalChunkStore
from clausewise.workflow.ingestion import (
    CHUNK_WRITE_FAILED_MESSAGE,
    NO_TEXT_MESSAGE,
    ingest_document,
    write_chunks,
)

from conftest import TERMINATION


LEASE_TEXT = (
    "This lease begins on the first of March. "
    "The tenant may terminate with sixty days written notice. "
    "Late fees of fifty dollars apply after the fifth day."
)


class FlakyChunkStore(LocalChunkStore):
    """Local store whose n-th write batch fails."""

    def __init__(self, fail_on_batch, **kwargs):
        super().__init__(**kwargs)
        self.fail_on_batch = fail_on_batch
        self.batches_written = 0

    def _write_batch(self, document_id, records):
        if self.batches_written + 1 == self.fail_on_batch:
            raise RuntimeError("store down")
        super()._write_batch(document_id, records)
        self.batches_written += 1


@pytest.fixture
def write_file(tmp_path):

    def _write(name, content):
        path = tmp_path / name
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return str(path)

    return _write


class TestLoader:

    def test_txt(self, write_file):
        assert load_text(write_file("lease.txt", LEASE_TEXT)) == LEASE_TEXT

    def test_extension_is_taken_from_filename(self, write_file):
        path = write_file("upload.bin", LEASE_TEXT)

        assert load_text(path, "Lease.TXT") == LEASE_TEXT

    def test_docx(self, tmp_path):
        path = str(tmp_path / "lease.docx")
        document = docx.Document()
        document.add_paragraph("First paragraph.")
        document.add_paragraph("")
        document.add_paragraph("Second paragraph.")
        document.save(path)

        assert load_text(path) == "First paragraph.\nSecond paragraph."

    @pytest.mark.parametrize("name", ["lease.doc", "lease.rtf", "lease"])
    def test_unsupported_types(self, write_file, name):
        with pytest.raises(UnsupportedFileTypeError):
            load_text(write_file(name, "content"))

    def test_unsupported_message_names_extension(self, write_file):
        with pytest.raises(UnsupportedFileTypeError) as exc_info:
            load_text(write_file("lease.doc", "content"))

        assert exc_info.value.message == "Unsupported file type .doc. Please upload PDF, DOCX, or TXT."

    def test_corrupt_pdf(self, write_file):
        with pytest.raises(TextExtractionError):
            load_text(write_file("broken.pdf", b"this is not a pdf"))

    def test_file_extension(self):
        assert file_extension("Contract.PDF") == ".pdf"
        assert file_extension("noext") == ""
        assert file_extension(None) == ""

    def test_character_limit(self, monkeypatch):
        monkeypatch.setattr("clausewise.memory.loader.MAX_DOCUMENT_CHARACTERS", 10)

        assert enforce_character_limit("x" * 25) == "x" * 10
        assert enforce_character_limit("short") == "short"
        assert enforce_character_limit("") == ""


class TestIngestDocument:

    def test_text_document_becomes_ready(self, write_file, documents, store, embedder):
        path = write_file("lease.txt", LEASE_TEXT)

        record = ingest_document("doc_1", path, "lease.txt", "user-1", documents, store, embedder)

        assert record.status == DocumentStatus.READY
        assert record.chunks_count == 1
        assert record.extracted_text == LEASE_TEXT

        saved = documents.get("doc_1")
        assert saved.status == DocumentStatus.READY
        assert saved.owner_id == "user-1"
        assert saved.storage_path == path
        assert saved.chunks_count == 1

        chunks = store.list_chunks("doc_1")
        assert chunks[0].embedding == TERMINATION

    def test_chunks_follow_window_settings(self, write_file, documents, store, embedder):
        path = write_file("words.txt", " ".join(f"w{i}" for i in range(25)))

        record = ingest_document(
            "doc_1", path, "words.txt", "user-1", documents, store, embedder,
            target_words=10, overlap_words=2,
        )

        assert record.chunks_count == 3
        assert [c.text.split()[0] for c in store.list_chunks("doc_1")] == ["w0", "w8", "w16"]

    def test_unsupported_type_fails_without_raising(self, write_file, documents, store, embedder):
        path = write_file("lease.doc", "content")

        record = ingest_document("doc_1", path, "lease.doc", "user-1", documents, store, embedder)

        assert record.status == DocumentStatus.FAILED
        assert record.status_message == "Unsupported file type .doc. Please upload PDF, DOCX, or TXT."
        assert store.count_chunks("doc_1") == 0

    def test_unreadable_file_fails_without_raising(self, write_file, documents, store, embedder):
        path = write_file("broken.pdf", b"%PDF-garbage")

        record = ingest_document("doc_1", path, "broken.pdf", "user-1", documents, store, embedder)

        assert record.status == DocumentStatus.FAILED
        assert record.status_message == TextExtractionError.user_message

    def test_empty_text(self, write_file, documents, store, embedder):
        path = write_file("empty.txt", "   \n  ")

        record = ingest_document("doc_1", path, "empty.txt", "user-1", documents, store, embedder)

        assert record.status == DocumentStatus.FAILED
        assert record.status_message == NO_TEXT_MESSAGE
        assert documents.get("doc_1").status == DocumentStatus.FAILED

    def test_embedding_failure_still_stores_chunks(self, write_file, documents, store, embedder):
        embedder.fail_documents = True
        path = write_file("lease.txt", LEASE_TEXT)

        record = ingest_document("doc_1", path, "lease.txt", "user-1", documents, store, embedder)

        assert record.status == DocumentStatus.READY
        assert [c.embedding for c in store.list_chunks("doc_1")] == [None]

    def test_chunk_write_failure_falls_back_to_extracted_text(self, write_file, documents, embedder):
        """A write that dies after its first batch leaves no partial chunks behind."""
        store = FlakyChunkStore(fail_on_batch=2, write_batch_size=1)
        words = " ".join(f"w{i}" for i in range(20))
        path = write_file("lease.txt", f"{words} early termination needs notice")

        record = ingest_document(
            "doc_1", path, "lease.txt", "user-1", documents, store, embedder,
            target_words=10, overlap_words=0, write_batch_size=1,
        )

        assert store.batches_written == 1
        assert record.status == DocumentStatus.READY
        assert record.chunks_count == 0
        assert store.count_chunks("doc_1") == 0

        result = Retriever(documents, store, embedder).retrieve("doc_1", "termination")

        assert result.diagnostics.used_fallback_chunks
        assert "termination" in result.evidence[0].text

    def test_document_is_processing_while_chunks_are_written(self, write_file, documents, store, embedder):
        seen = []
        original_add = store.add_chunks

        def watching_add(document_id, *args, **kwargs):
            seen.append(documents.get(document_id).status)
            return original_add(document_id, *args, **kwargs)

        store.add_chunks = watching_add
        path = write_file("lease.txt", LEASE_TEXT)

        record = ingest_document("doc_1", path, "lease.txt", "user-1", documents, store, embedder)

        assert seen == [DocumentStatus.PROCESSING]
        assert record.status == DocumentStatus.READY

    def test_failed_cleanup_marks_document_failed(self, write_file, documents, embedder):
        store = FlakyChunkStore(fail_on_batch=2, write_batch_size=1)

        def broken_delete(document_id):
            raise RuntimeError("store down")

        store.delete_document = broken_delete
        path = write_file("lease.txt", " ".join(f"w{i}" for i in range(30)))

        record = ingest_document(
            "doc_1", path, "lease.txt", "user-1", documents, store, embedder,
            target_words=10, overlap_words=0, write_batch_size=1,
        )

        saved = documents.get("doc_1")
        assert saved.status == DocumentStatus.FAILED
        assert saved.status_message == CHUNK_WRITE_FAILED_MESSAGE
        assert record.chunks_count == 0

        with pytest.raises(DocumentNotReadyError):
            Retriever(documents, store, embedder).retrieve("doc_1", "w25")


class TestWriteChunks:

    def test_slices_are_embedded_and_written_in_batches(self, store, embedder):
        chunks = [f"chunk {i}" for i in range(5)]

        written = write_chunks("doc_1", chunks, store, embedder, write_batch_size=2)

        assert written == 5
        assert [len(texts) for texts in embedder.document_calls()] == [2, 2, 1]
        assert [c.index for c in store.list_chunks("doc_1")] == [0, 1, 2, 3, 4]

    def test_without_embedder(self, store):
        write_chunks("doc_1", ["a", "b"], store, None)

        assert all(c.embedding is None for c in store.list_chunks("doc_1"))
