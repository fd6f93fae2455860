"""Prompt validation for design generation.

Validates style prompts before sending them to the workflow API.
"""

MAX_PROMPT_LENGTH = 1000


def validate_prompt(prompt: str) -> str:
    """Validate prompt text for design generation.

    Args:
        prompt: Style instruction supplied by the caller

    Returns:
        Prompt with surrounding whitespace removed

    Raises:
        ValueError: If prompt is empty, blank, not a string, or exceeds 1000 characters
    """
    if not isinstance(prompt, str):
        raise ValueError(f"Prompt must be a string, got {type(prompt).__name__}")

    prompt = prompt.strip()
    if not prompt:
        raise ValueError("Prompt cannot be empty")

    if len(prompt) > MAX_PROMPT_LENGTH:
        raise ValueError(
            f"Prompt exceeds maximum length of {MAX_PROMPT_LENGTH} characters (got {len(prompt)})"
        )

    return prompt
