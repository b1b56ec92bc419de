from __future__ import annotations

# gh api calls
GH_TIMEOUT_SECONDS = 60.0

# Transient failure retry policy (HTTP 429/5xx, network resets)
GH_RETRY_ATTEMPTS = 3
GH_RETRY_DELAY_SECONDS = 1.0

# Commit history paging
COMMITS_PER_PAGE = 100
MAX_COMMIT_PAGES = 10

# Tags, pull requests
LIST_PER_PAGE = 100
MAX_LIST_PAGES = 5
