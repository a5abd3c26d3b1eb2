"""
Shared pytest fixtures.

- FakeProcessRunner: stands in for subprocess.run and records every command
- MemoryStateStore: in-memory replacement for the runner's state files
- runner_env: a RunnerEnvironment rooted in the test's tmp_path
"""

import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from aks_set_context.actions import StateStore
from aks_set_context.config import RunnerEnvironment

RUNNER_VARIABLES = [
    "GITHUB_ENV",
    "GITHUB_STATE",
    "AZURE_HTTP_USER_AGENT",
    "AZUREPS_HOST_ENVIRONMENT",
    "KUBECONFIG",
    "KUBE_CONFIG_PATH",
]


class MemoryStateStore(StateStore):
    def __init__(self):
        self.values: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set(self, key: str, value: str):
        self.values[key] = value


class FakeProcessRunner:
    """
    Records commands passed to subprocess.run.

    `az ... -f <path>` writes a kubeconfig to <path> like the real CLI does.
    A tool listed in `exit_codes` fails with that code. With `writes_kubeconfig`
    off, az succeeds without producing the file.
    """

    def __init__(self):
        self.calls: List[List[str]] = []
        self.user_agents: List[Optional[str]] = []
        self.exit_codes: Dict[str, int] = {}
        self.writes_kubeconfig = True

    def __call__(self, cmd, check=False, **kwargs):
        cmd = list(cmd)
        self.calls.append(cmd)
        self.user_agents.append(os.environ.get("AZURE_HTTP_USER_AGENT"))

        tool = os.path.basename(cmd[0])
        exit_code = self.exit_codes.get(tool, 0)
        if exit_code:
            if check:
                raise subprocess.CalledProcessError(exit_code, cmd)
            return subprocess.CompletedProcess(cmd, exit_code)

        if tool == "az" and "-f" in cmd and self.writes_kubeconfig:
            Path(cmd[cmd.index("-f") + 1]).write_text("apiVersion: v1\nkind: Config\n")

        return subprocess.CompletedProcess(cmd, 0)

    def tool_names(self) -> List[str]:
        return [os.path.basename(cmd[0]) for cmd in self.calls]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the runner variables of the host out of the tests and undo exports made by them."""
    saved = dict(os.environ)
    for name in RUNNER_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    for name in [n for n in os.environ if n.startswith("STATE_") or n.startswith("INPUT_")]:
        monkeypatch.delenv(name, raising=False)

    yield

    os.environ.clear()
    os.environ.update(saved)


@pytest.fixture
def runner_env(tmp_path):
    return RunnerEnvironment(
        RUNNER_TEMP=str(tmp_path),
        GITHUB_REPOSITORY="octo-org/octo-repo",
        GITHUB_RUN_ID="1658821493",
    )


@pytest.fixture
def state():
    return MemoryStateStore()


@pytest.fixture
def installed_tools():
    return {"az", "kubelogin"}


@pytest.fixture
def process_runner(monkeypatch, installed_tools):
    runner = FakeProcessRunner()

    def which(name, *args, **kwargs):
        return f"/usr/bin/{name}" if name in installed_tools else None

    monkeypatch.setattr("shutil.which", which)
    monkeypatch.setattr("subprocess.run", runner)
    return runner


@pytest.fixture
def fixed_time(monkeypatch):
    millis = 1644272184664
    monkeypatch.setattr("aks_set_context.kubeconfig.now_millis", lambda: millis)
    return millis


def parse_file_commands(path: Path) -> Dict[str, str]:
    """Parse the `key<<delimiter` blocks the runner reads from $GITHUB_ENV / $GITHUB_STATE."""
    values = {}
    lines = path.read_text(encoding="utf-8").splitlines()
    i = 0
    while i < len(lines):
        key, delimiter = lines[i].split("<<", 1)
        end = lines.index(delimiter, i + 1)
        values[key] = "\n".join(lines[i + 1:end])
        i = end + 1
    return values


@pytest.fixture
def read_file_commands():
    return parse_file_commands
