# clausewise/config.py
"""
Configuration for the ClauseWise document assistant.

This file centralizes all tunable parameters for the retrieval pipeline.
Each value can be overridden through an environment variable of the same name.
"""

import os


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


# ========== DOCUMENT PROCESSING ==========

# Word-window chunking
CHUNK_TARGET_WORDS = _env_int("CHUNK_TARGET_WORDS", 900)
CHUNK_OVERLAP_WORDS = _env_int("CHUNK_OVERLAP_WORDS", 120)  # step = 780 words

# File upload limits
MAX_FILE_SIZE_MB = _env_int("MAX_FILE_SIZE_MB", 10)
SUPPORTED_FILE_EXTENSIONS = [".pdf", ".docx", ".txt"]

# Hard cap on extracted text kept per document
MAX_DOCUMENT_CHARACTERS = _env_int("MAX_DOCUMENT_CHARACTERS", 5_000_000)


# ========== EMBEDDING CONFIGURATION ==========

EMBEDDING_MODEL = _env_str("EMBEDDING_MODEL", "models/gemini-embedding-001")

# Every stored vector must have this length; anything else is recomputed.
EMBEDDING_DIMENSION = _env_int("EMBEDDING_DIMENSION", 768)

# Max texts per embedding request
EMBED_BATCH_SIZE = _env_int("EMBED_BATCH_SIZE", 100)

EMBEDDING_TIMEOUT_SECONDS = _env_float("EMBEDDING_TIMEOUT_SECONDS", 30.0)


# ========== RETRIEVAL CONFIGURATION ==========

# Lexical prefilter caps (orchestrator / standalone call)
PREFILTER_CAP = _env_int("PREFILTER_CAP", 60)
PREFILTER_CAP_STANDALONE = _env_int("PREFILTER_CAP_STANDALONE", 150)

# Terms shorter than this are ignored by the prefilter
PREFILTER_MIN_TERM_LENGTH = 3

# Dynamic top-K
HIGH_CONFIDENCE_SIMILARITY = _env_float("HIGH_CONFIDENCE_SIMILARITY", 0.8)
LOW_CONFIDENCE_SIMILARITY = _env_float("LOW_CONFIDENCE_SIMILARITY", 0.6)

TOP_K_HIGH_CONFIDENCE = 2
TOP_K_DEFAULT = 4
TOP_K_LOW_CONFIDENCE = 6

# Prefix for ephemeral chunks built from extracted text
FALLBACK_CHUNK_PREFIX = "fallback_"


# ========== STORAGE CONFIGURATION ==========

STORAGE_DIR = _env_str("STORAGE_DIR", "storage")

# "local" or "qdrant"
CHUNK_STORE_BACKEND = _env_str("CHUNK_STORE_BACKEND", "local")

# Max writes per store batch
STORE_WRITE_BATCH_SIZE = _env_int("STORE_WRITE_BATCH_SIZE", 400)

QDRANT_URL = os.getenv("QDRANT_URL")
QDRANT_API_KEY = os.getenv("QDRANT_API_KEY")
QDRANT_COLLECTION = _env_str("QDRANT_COLLECTION", "clausewise_chunks")
QDRANT_TIMEOUT_SECONDS = _env_float("QDRANT_TIMEOUT_SECONDS", 60.0)


# ========== LLM CONFIGURATION ==========

GEMINI_GENERATION_MODEL = _env_str("GEMINI_GENERATION_MODEL", "gemini-2.5-flash")
OPENAI_GENERATION_MODEL = _env_str("OPENAI_GENERATION_MODEL", "gpt-4o-mini")

LLM_TEMPERATURE = 0.2
LLM_MAX_TOKENS = 1500

GENERATION_TIMEOUT_SECONDS = _env_float("GENERATION_TIMEOUT_SECONDS", 60.0)


# ========== ANSWER ASSEMBLY ==========

CITATION_SNIPPET_CHARS = 200
FLAGGED_CLAUSE_CHARS = 400
MAX_FLAGGED_CLAUSES = 8
MAX_FOLLOW_UPS = 2

# Conversation memory
MEMORY_RECENT_TURNS = 3
MEMORY_SUMMARY_THRESHOLD = 6

# Ordered rule table: first matching category wins.
RISK_RULES = [
    ("HIGH", "🚩", ["termination", "liability", "penalties", "arbitration"]),
    ("MEDIUM", "⚠️", ["fees", "renewal", "data sharing"]),
    ("LOW", "ℹ️", ["definitions", "general information", "general info"]),
]


# ========== SYSTEM CONSTRAINTS ==========

# Deadline for a single question, retrieval plus generation
REQUEST_TIMEOUT_SECONDS = _env_float("REQUEST_TIMEOUT_SECONDS", 120.0)

LOG_LEVEL = _env_str("LOG_LEVEL", "INFO")


# ========== DESIGN TRADE-OFFS (DOCUMENTED) ==========

"""
TRADE-OFF DECISIONS:

1. CHUNK_TARGET_WORDS = 900, CHUNK_OVERLAP_WORDS = 120:
   - Large windows keep whole clauses together
   - 120 words of overlap keeps clauses that straddle a boundary retrievable
   - Fewer chunks means fewer embedding calls and a smaller prompt

2. PREFILTER_CAP = 60:
   - Bounds embedding calls on documents with hundreds of chunks
   - Lexical overlap is cheap and good enough to drop obviously unrelated chunks

3. Dynamic top-K (2 / 4 / 6):
   - A near-exact match needs little supporting context
   - A weak match gets a broader evidence set

4. Embedding backfill:
   - Vectors computed at question time are written back to the chunk store
   - The next question on the same document skips re-embedding
"""
