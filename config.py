# config.py
import os

# ======= Board geometry =======
ROWS = int(os.getenv("PZ_ROWS", "5"))
COLS = int(os.getenv("PZ_COLS", "11"))

# ======= Generator budgets =======
# Rejection-sampling budget per reference solution.
MAX_ATTEMPTS   = int(os.getenv("PZ_MAX_ATTEMPTS", "100"))
# Counting stops here; 2 is enough to tell "exactly one" from "more".
UNIQUE_CAP     = int(os.getenv("PZ_UNIQUE_CAP", "2"))
# Upper bound on max_count accepted by the /count endpoint.
COUNT_LIMIT    = int(os.getenv("PZ_COUNT_LIMIT", "10"))
# How many distinct reference solutions a puzzle set may burn through.
MAX_REFERENCES = int(os.getenv("PZ_MAX_REFERENCES", "8"))

_seed_raw = os.getenv("PZ_DEFAULT_SEED", "").strip()
DEFAULT_SEED = int(_seed_raw) if _seed_raw else None

# ======= Worker timeboxes (seconds) =======
GENERATE_SECONDS = float(os.getenv("PZ_GENERATE_SECONDS", "15"))
CP_SAT_SECONDS   = float(os.getenv("PZ_CP_SAT_SECONDS", "10"))

# ======= Cross-checks =======
VERIFY_WITH_CP_SAT = int(os.getenv("PZ_VERIFY_WITH_CP_SAT", "0")) != 0


class CFG:
    ROWS = ROWS
    COLS = COLS

    MAX_ATTEMPTS   = MAX_ATTEMPTS
    UNIQUE_CAP     = UNIQUE_CAP
    COUNT_LIMIT    = COUNT_LIMIT
    MAX_REFERENCES = MAX_REFERENCES
    DEFAULT_SEED   = DEFAULT_SEED

    GENERATE_SECONDS = GENERATE_SECONDS
    CP_SAT_SECONDS   = CP_SAT_SECONDS

    VERIFY_WITH_CP_SAT = VERIFY_WITH_CP_SAT


__all__ = ["CFG"]
