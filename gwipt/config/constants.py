"""Hard-coded configuration defaults and naming conventions."""

# Shadow branch naming and reconciliation message
WIP_BRANCH_PREFIX = "wip/"
WIP_MESSAGE_PREFIX = "wip: "
MERGE_MESSAGE = "Merge HEAD into wip/ branch"

# Watcher
DEFAULT_TIME_DELAY = 0.1

# Generation service
DEFAULT_TRANSPORT = "chat"
DEFAULT_CHAT_MODEL = "gpt-4o-mini"
DEFAULT_COMPLETION_MODEL = "gpt-3.5-turbo-instruct"
DEFAULT_REQUEST_TIMEOUT = 60.0
DEFAULT_TEMPERATURE = 0.7
# The budget is in tokens, but there is no cheap way to count them locally.
# Two characters per token is conservative for source diffs.
DEFAULT_TOKEN_BUDGET = 2048
DEFAULT_RESPONSE_TOKENS = 100
CHARS_PER_TOKEN = 2

# Backoff on rate limiting
DEFAULT_BACKOFF_MAX_ELAPSED = 900.0
