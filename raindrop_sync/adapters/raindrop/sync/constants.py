"""Constants for Raindrop synchronization."""

import math

# Local store location the target folder is created under.
TOOLBAR_ID = "toolbar_____"
ROOT_ID = "root________"

# Unsorted (-1), trash (-99) and "all" (0) never get a local folder.
SYSTEM_COLLECTION_IDS = frozenset({"-1", "-99", "0"})
ALL_COLLECTIONS_ID = "0"

PAGE_SIZE = 50
# Raindrop's manual ordering; keeps page boundaries stable between requests.
SORT_ORDER = "-sort"

RATE_LIMIT_REQUESTS_PER_MINUTE = 120
MAX_RETRIES = 3
RETRY_BASE_DELAY_SECONDS = 1.0
RETRY_MAX_DELAY_SECONDS = 60.0

# Progress percent reported during import; 100 is sent once the run finishes.
MAX_RUNNING_PERCENT = 99


def min_request_interval(requests_per_minute: int) -> float:
    """Seconds between request starts for a requests-per-minute ceiling."""
    return math.ceil(60_000 / requests_per_minute) / 1000
