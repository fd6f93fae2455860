"""Remote design workflow client."""

from restyle.services.generation.coze_client import CozeWorkflowClient, parse_workflow_response
from restyle.services.generation.prompt_validator import validate_prompt

__all__ = ["CozeWorkflowClient", "parse_workflow_response", "validate_prompt"]
