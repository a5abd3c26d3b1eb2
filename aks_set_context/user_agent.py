import hashlib
import os
from contextlib import contextmanager

ACTION_NAME = "AzureAksSetContextAction"

# Both variables are picked up by the az CLI and appended to its outbound User-Agent
USER_AGENT_VARIABLES = ("AZURE_HTTP_USER_AGENT", "AZUREPS_HOST_ENVIRONMENT")


def get_user_agent_tag(repository: str, run_id: str, action_name: str = ACTION_NAME) -> str:
    repository_hash = hashlib.sha256(repository.encode("utf-8")).hexdigest()
    return f"GitHubActions/{action_name}({repository_hash}; {run_id})"


@contextmanager
def user_agent_tag(tag: str):
    """
    Append `tag` to the user agent variables for the duration of the block.

    The previous values are put back on exit, or the variables removed when they
    were not set before.
    """
    previous = {name: os.environ.get(name) for name in USER_AGENT_VARIABLES}

    for name, value in previous.items():
        os.environ[name] = f"{value}+{tag}" if value else tag

    try:
        yield tag
    finally:
        for name, value in previous.items():
            if value is None:
                os.environ.pop(name, None)
            else:
                os.environ[name] = value
