# =============================================================================
# Model Invocation Defaults
# =============================================================================

DEFAULT_LLM_ENDPOINT = "http://localhost:11434"
DEFAULT_LLM_MODEL = "phi3"
DEFAULT_LLM_TIMEOUT_MS = 60000
DEFAULT_TEMPERATURE = 0.1  # Low for consistent intent output
DEFAULT_TOP_P = 0.9
DEFAULT_MAX_TOKENS = 500
DEFAULT_STOP_SEQUENCES = ("\n\n", "```")

LLM_GENERATE_PATH = "/api/generate"
LLM_CHAT_PATH = "/api/chat"


# =============================================================================
# Retry Configuration
# =============================================================================

MAX_ATTEMPTS = 3
INITIAL_DELAY_MS = 1000
BACKOFF_MULTIPLIER = 2


# =============================================================================
# Schemas and Prompts
# =============================================================================

INTENT_SCHEMA_NAME = "intent"
INTENT_SCHEMA_VERSION = "v1"
INTENT_PROMPT_VERSION = "v1"


# =============================================================================
# Staging
# =============================================================================

DEFAULT_CHUNK_SIZE = 500


# =============================================================================
# Error Handling / Logging
# =============================================================================

ERROR_BODY_MAX_CHARS = 200  # Maximum chars from error response bodies
LOG_TEXT_MAX_CHARS = 120  # Maximum chars of prompts/questions in logs
