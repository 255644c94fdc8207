# clausewise/observability/posthog_client.py

"""
PostHog product analytics.

- Disabled when POSTHOG_API_KEY is not set
- Uses the caller's user id, or the request id, as distinct_id
- Never raises into the request path
"""

import os
import logging
from typing import Optional, Dict, Any

from posthog import Posthog


logger = logging.getLogger(__name__)


class PostHogClient:

    def __init__(
        self,
        api_key: Optional[str] = None,
        host: Optional[str] = None,
    ):

        self._enabled = False
        self._client: Optional[Posthog] = None

        api_key = api_key or os.getenv("POSTHOG_API_KEY")
        host = host or os.getenv("POSTHOG_HOST", "https://app.posthog.com")

        if not api_key:
            logger.info("PostHog disabled: POSTHOG_API_KEY not set")
            return

        try:

            self._client = Posthog(
                project_api_key=api_key,
                host=host,
                timeout=5,
                flush_interval=1,
            )

            self._enabled = True

            logger.info(
                "PostHog client initialized",
                extra={"host": host}
            )

        except Exception as e:

            logger.error(
                "PostHog initialization failed",
                extra={"error": str(e)}
            )

    @property
    def enabled(self) -> bool:
        return self._enabled

    # ==========================================================
    # INTERNAL SAFE TRACK
    # ==========================================================

    def _track(
        self,
        distinct_id: str,
        event: str,
        properties: Optional[Dict[str, Any]] = None,
    ):

        if not self._enabled or not self._client:
            return

        try:

            self._client.capture(
                distinct_id=distinct_id,
                event=event,
                properties=properties or {},
            )

        except Exception as e:

            logger.warning(
                "PostHog tracking failed",
                extra={
                    "event": event,
                    "error": str(e),
                }
            )

    # ==========================================================
    # EVENTS
    # ==========================================================

    def track_document_upload(
        self,
        distinct_id: str,
        document_id: str,
        filename: str,
        status: str,
        chunks: int,
        latency: float,
    ):

        self._track(
            distinct_id,
            "document_uploaded",
            {
                "document_id": document_id,
                "filename": filename,
                "status": status,
                "chunks": chunks,
                "latency_seconds": latency,
            },
        )

    def track_question(
        self,
        distinct_id: str,
        document_id: str,
        question: str,
        latency: float,
        success: bool,
    ):

        self._track(
            distinct_id,
            "question_asked",
            {
                "document_id": document_id,
                "question_length": len(question),
                "latency_seconds": latency,
                "success": success,
            },
        )

    def track_retrieval(
        self,
        distinct_id: str,
        document_id: str,
        chunks_retrieved: int,
        top_score: Optional[float],
        degraded: bool,
        used_fallback_chunks: bool,
    ):

        self._track(
            distinct_id,
            "retrieval_completed",
            {
                "document_id": document_id,
                "chunks_retrieved": chunks_retrieved,
                "top_score": top_score,
                "degraded": degraded,
                "used_fallback_chunks": used_fallback_chunks,
            },
        )

    def track_document_deleted(self, distinct_id: str, document_id: str, chunks: int):

        self._track(
            distinct_id,
            "document_deleted",
            {
                "document_id": document_id,
                "chunks": chunks,
            },
        )

    def track_error(
        self,
        distinct_id: str,
        error_type: str,
        error_message: str,
        endpoint: str,
    ):

        self._track(
            distinct_id,
            "system_error",
            {
                "error_type": error_type,
                "error_message": error_message,
                "endpoint": endpoint,
            },
        )

    def shutdown(self):

        if self._client is not None:

            try:
                self._client.shutdown()
            except Exception as e:
                logger.warning(
                    "PostHog shutdown failed",
                    extra={"error": str(e)},
                )
