"""Prompt construction for chatlog scoring."""

from chatlog_grader.config.defaults import DEFAULT_PROMPT_TEMPLATE, DEFAULT_RUBRIC_TEXT

CHATLOG_PLACEHOLDER = "{chatlog_text}"
RUBRIC_PLACEHOLDER = "{rubric_text}"


def build_scoring_prompt(
    transcript: str,
    prompt_template: str = DEFAULT_PROMPT_TEMPLATE,
    rubric_text: str = DEFAULT_RUBRIC_TEXT,
) -> str:
    """Fill the prompt template with a transcript and rubric.

    Only the two placeholders are replaced; other braces are left as-is.

    Args:
        transcript: Conversation to score.
        prompt_template: Template containing ``{chatlog_text}`` and
            ``{rubric_text}``.
        rubric_text: Scoring rubric.

    Returns:
        The complete prompt.
    """
    # Rubric first so a transcript containing "{rubric_text}" is left alone
    prompt = prompt_template.replace(RUBRIC_PLACEHOLDER, rubric_text, 1)
    return prompt.replace(CHATLOG_PLACEHOLDER, transcript, 1)
