import os

# --- CLI Color Codes ---
COLOR_INFO = '\033[96m'     # Cyan for progress lines
COLOR_OK = '\033[92m'       # Green for successful writes
COLOR_ERROR = '\033[91m'    # Red for errors
COLOR_SUCCESS = '\033[93m'  # Yellow for the final summary
COLOR_RESET = '\033[0m'     # Reset color


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        return default


# --- Store and Log-List Sources ---
STORE_DIR = os.environ.get("CTROOTS_STORE_DIR", "accepted_roots")

GSTATIC_ALL_LOGS_URL = "https://www.gstatic.com/ct/log_list/v3/all_logs_list.json"
APPLE_CURRENT_LOGS_URL = "https://valid.apple.com/ct/log_list/current_log_list.json"
# crt.sh and BIMI lists are published in the crtsh/ctloglists repository
CRTSH_ALL_LOGS_URL = "https://raw.githubusercontent.com/crtsh/ctloglists/HEAD/files/crtsh/v3/all_logs_list.json"
BIMI_APPROVED_LOGS_URL = "https://raw.githubusercontent.com/crtsh/ctloglists/HEAD/files/bimi/v3/approved_logs_list.json"
DEFAULT_LOG_LISTS = [
    GSTATIC_ALL_LOGS_URL,
    APPLE_CURRENT_LOGS_URL,
    CRTSH_ALL_LOGS_URL,
    BIMI_APPROVED_LOGS_URL,
]

LOG_LISTS = [
    s.strip() for s in os.environ.get("CTROOTS_LOG_LISTS", "").split(",") if s.strip()
] or DEFAULT_LOG_LISTS

# --- Acquisition Policy ---
MAX_WORKERS = _env_int("CTROOTS_MAX_WORKERS", 16)
MAX_ATTEMPTS = _env_int("CTROOTS_MAX_ATTEMPTS", 5)
RETRY_DELAY = _env_float("CTROOTS_RETRY_DELAY", 10.0)
REQUEST_TIMEOUT = _env_float("CTROOTS_REQUEST_TIMEOUT", 30.0)

GET_ROOTS_PATH = "/ct/v1/get-roots"

