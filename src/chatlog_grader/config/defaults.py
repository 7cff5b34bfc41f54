"""Default configuration values for the chatlog grading system."""

from pathlib import Path

# Default configuration file name
DEFAULT_CONFIG_FILENAME = "chatlog-grader.config.json"

# Default score store database filename
DEFAULT_STORE_DB = ".chatlog-grader.db"

# Search paths for configuration file (in order of priority)
CONFIG_SEARCH_PATHS = [
    Path.cwd() / DEFAULT_CONFIG_FILENAME,
    Path.home() / ".config" / "chatlog-grader" / "config.json",
]

# Default scoring models per provider
DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"
DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-20250514"

# Remote quota: 30 requests in any trailing 60 seconds
DEFAULT_RATE_LIMIT = 30
DEFAULT_RATE_WINDOW_SECONDS = 60.0
DEFAULT_RATE_BUFFER_SECONDS = 0.1

# Throttling fallback when the service gives no advised wait
DEFAULT_THROTTLE_WAIT_SECONDS = 60.0
DEFAULT_THROTTLE_BUFFER_SECONDS = 1.0

# Pause after a non-throttling failure
DEFAULT_FAILURE_COOLDOWN_SECONDS = 2.0

DEFAULT_PAUSE_POLL_SECONDS = 0.5
DEFAULT_ETA_REFRESH_SECONDS = 10.0

DEFAULT_SCORING_TIMEOUT_SECONDS = 60.0

DEFAULT_PROMPT_TEMPLATE = """Your task is to evaluate the following customer service chatlog:
Chatlog:
{chatlog_text}

Use the provided rubric for your evaluation:
{rubric_text}

Provide your evaluation STRICTLY as a single JSON object with keys "Coherence" (integer 1-5), "Politeness" (integer 1-5), "Relevance" (integer 1-5), and "Resolution" (integer 0 or 1).
Output ONLY the JSON object.
Evaluation JSON:"""

DEFAULT_RUBRIC_TEXT = """Coherence (1-5):
1: Completely disjointed, impossible to follow the conversation.
2: Significant gaps in logic or conversation flow.
3: Some minor disconnects but generally comprehensible.
4: Clear and logical conversation flow with minimal issues.
5: Perfectly coherent conversation with clear relationship between all messages.

Politeness (1-5):
1: Rude, unprofessional, or inappropriate language used.
2: Curt, dismissive or lacking basic courtesy.
3: Neutral tone, neither notably polite nor impolite.
4: Professional, courteous language used consistently.
5: Exceptionally polite, goes above and beyond in courtesy.

Relevance (1-5):
1: Completely off-topic or irrelevant to the customer's needs.
2: Minimally addresses customer needs but mostly misses the point.
3: Somewhat relevant but fails to fully address the customer's question.
4: Mostly relevant and addresses the core customer inquiry.
5: Perfectly relevant, directly and completely addresses the customer's question.

Resolution (0 or 1):
0: The customer's issue or query was not resolved by the end of the conversation.
1: The customer's issue or query was clearly resolved by the end of the conversation."""
