# Runner I/O: workflow commands, environment files and cross-phase state.
# https://docs.github.com/en/actions/using-workflows/workflow-commands-for-github-actions

import os
import uuid
from typing import Optional


def escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def issue_command(command: str, message: str = ""):
    print(f"::{command}::{escape_data(message)}", flush=True)


def debug(message: str):
    issue_command("debug", message)


def info(message: str):
    print(message, flush=True)


def warning(message: str):
    issue_command("warning", message)


def set_failed(message: str):
    issue_command("error", message)


def add_mask(secret: str):
    issue_command("add-mask", secret)


def append_file_command(file_var: str, key: str, value: str) -> bool:
    """
    Append `key<<delimiter` / value / `delimiter` to the file named by `file_var`.

    Returns False when the runner did not provide the file (e.g. running locally).
    """
    file_path = os.environ.get(file_var)
    if not file_path:
        return False

    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    if delimiter in key or delimiter in value:
        raise ValueError(f"Unexpected input: delimiter {delimiter} found in {key}")

    with open(file_path, "a", encoding="utf-8") as f:
        f.write(f"{key}<<{delimiter}\n{value}\n{delimiter}\n")

    return True


def export_variable(name: str, value: str):
    """
    Set an environment variable for this process and for every later step of the job.
    """
    os.environ[name] = value

    if not append_file_command("GITHUB_ENV", name, value):
        info(f"GITHUB_ENV is not set, {name} is only exported to this process")


class StateStore:
    """Key-value state shared between the main and post phases of the action."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str):
        raise NotImplementedError


class ActionsStateStore(StateStore):
    """
    State kept by the runner: written to $GITHUB_STATE, read back as STATE_<key>.
    """

    def get(self, key: str) -> Optional[str]:
        return os.environ.get(f"STATE_{key}") or None

    def set(self, key: str, value: str):
        if not append_file_command("GITHUB_STATE", key, value):
            debug(f"GITHUB_STATE is not set, state {key} is not saved")
