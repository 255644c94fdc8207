import logging
from typing import Optional

from qdrant_client import QdrantClient

from qdrant_client.http.models import (
    Distance,
    VectorParams,
    PayloadSchemaType,
)

from clausewise.config import (
    QDRANT_URL,
    QDRANT_API_KEY,
    QDRANT_COLLECTION,
    QDRANT_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

# Named vector holding a chunk's embedding. Points may omit it until backfilled.
EMBEDDING_VECTOR_NAME = "embedding"


class QdrantVectorDB:
    """
    Qdrant connection wrapper.

    Owns the client and makes sure the chunk collection and its payload
    indexes exist. Chunk semantics live in QdrantChunkStore.
    """

    def __init__(
        self,
        dim: int,
        url: Optional[str] = QDRANT_URL,
        api_key: Optional[str] = QDRANT_API_KEY,
        collection: str = QDRANT_COLLECTION,
        location: Optional[str] = None,
    ):

        self._dim = dim

        if location:
            self._client = QdrantClient(location=location)
        else:
            self._client = QdrantClient(
                url=url,
                api_key=api_key,
                timeout=QDRANT_TIMEOUT_SECONDS,
            )

        self._collection = collection

        self._ensure_collection()

        logger.info(
            "Qdrant client initialized",
            extra={
                "collection": self._collection,
                "dimension": dim,
            },
        )

    @property
    def client(self) -> QdrantClient:
        return self._client

    @property
    def collection(self) -> str:
        return self._collection

    def _ensure_collection(self):
        """
        Ensures the collection exists AND the payload indexes used for
        per-document filtering exist.
        """

        collections = self._client.get_collections().collections

        exists = any(
            c.name == self._collection
            for c in collections
        )

        if not exists:

            self._client.create_collection(
                collection_name=self._collection,
                vectors_config={
                    EMBEDDING_VECTOR_NAME: VectorParams(
                        size=self._dim,
                        distance=Distance.COSINE,
                    ),
                },
            )

            logger.info(
                "Qdrant collection created",
                extra={"collection": self._collection},
            )

        for field_name, schema in (
            ("doc_id", PayloadSchemaType.KEYWORD),
            ("index", PayloadSchemaType.INTEGER),
        ):

            try:

                self._client.create_payload_index(
                    collection_name=self._collection,
                    field_name=field_name,
                    field_schema=schema,
                )

            except Exception as e:
                # Already exists
                logger.debug(
                    "Payload index skipped",
                    extra={"field": field_name, "error": str(e)},
                )

    def health_check(self):

        return self._client.get_collections()
