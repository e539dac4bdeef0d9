"""Configuration constants and re-exports for linkdex."""

from linkdex.config.loader import _get_config_dir, load_config, resolve_db_path


# --- Initialize Configuration ---
_CONFIG = load_config()

# --- Expose Constants ---

# General
_gen = _CONFIG["general"]
USER_AGENT = _gen.get(
    "user_agent",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
)
LOG_LEVEL = _gen.get("log_level", "INFO")
LOG_FILE = _gen.get("log_file", "~/.config/linkdex/logs/linkdex.log")
DB_PATH = resolve_db_path(_gen)

# Catalog refresh
_catalog = _CONFIG["catalog"]
DOCUMENT_URL = _catalog.get("document_url", "")
FETCH_TIMEOUT = _catalog.get("fetch_timeout", 20)
CACHE_MAX_AGE_SECONDS = _catalog.get("cache_max_age_seconds", 60 * 60)
REFRESH_MAX_ATTEMPTS = _catalog.get("refresh_max_attempts", 3)
REFRESH_RETRY_DELAY_SECONDS = _catalog.get("refresh_retry_delay_seconds", 2.0)
PLACEHOLDER_SENTINEL = _catalog.get("placeholder_sentinel", "Loading")

# Extraction
_extraction = _CONFIG["extraction"]
LINE_BINDING_TOLERANCE = _extraction.get("line_binding_tolerance", 20)
TITLE_MARKER_WORDS = tuple(_extraction.get("title_marker_words", ["MEGA"]))
REDIRECT_PREFIXES = tuple(
    _extraction.get("redirect_prefixes", ["https://www.google.com/url?q="])
)
EXTERNAL_ID_SEGMENTS = tuple(_extraction.get("external_id_segments", ["folder"]))

# Search
_search = _CONFIG["search"]
SEARCH_RESULT_LIMIT = _search.get("result_limit", 5)
FUZZY_THRESHOLD = _search.get("fuzzy_threshold", 50)
TOKEN_FUZZY = _search.get("token_fuzzy", 0.4)
TITLE_BOOST = _search.get("title_boost", 2.0)
SAMPLE_SIZE = _search.get("sample_size", 3)
DISPLAY_TITLE_MAX_CHARS = _search.get("display_title_max_chars", 60)

