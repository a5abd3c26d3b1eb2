import os
import time
from pathlib import Path
from typing import Optional

from aks_set_context import actions
from aks_set_context.actions import StateStore

KUBECONFIG_STATE_KEY = "kubeConfigPath"
IS_POST_STATE_KEY = "isPost"

# KUBE_CONFIG_PATH is read by the Terraform kubernetes and helm providers
KUBECONFIG_VARIABLES = ("KUBECONFIG", "KUBE_CONFIG_PATH")


def now_millis() -> int:
    return int(time.time() * 1000)


def new_kubeconfig_path(runner_temp: str) -> Path:
    return Path(runner_temp) / f"kubeconfig_{now_millis()}"


def write_kubeconfig(path: Path, kubeconfig: str):
    path.write_text(kubeconfig, encoding="utf-8")


def restrict_permissions(path: Path):
    os.chmod(path, 0o600)


def mark_post_pending(state: StateStore):
    state.set(IS_POST_STATE_KEY, "true")


def is_post(state: StateStore) -> bool:
    return bool(state.get(IS_POST_STATE_KEY))


def publish_kubeconfig(path: Path, state: StateStore):
    """
    Export the kubeconfig location to later steps and remember it for the post phase.
    """
    for name in KUBECONFIG_VARIABLES:
        actions.export_variable(name, str(path))
    actions.debug("KUBECONFIG environment variable set")

    state.set(KUBECONFIG_STATE_KEY, str(path))


def remove_kubeconfig(state: StateStore, kubeconfig_path: str = "") -> Optional[Path]:
    """
    Delete the kubeconfig written by the main phase. Returns the removed path, if any.

    An explicit `kubeconfig_path` wins over the path saved in state, for runs where
    no post step reads the state back.
    """
    saved_path = kubeconfig_path or state.get(KUBECONFIG_STATE_KEY)
    if not saved_path:
        actions.info("No kubeconfig was recorded by the main step, nothing to clean up")
        return None

    path = Path(saved_path)
    try:
        path.unlink()
    except FileNotFoundError:
        actions.info(f"Kubeconfig {path} is already gone")
        return None

    actions.info(f"Removed kubeconfig {path}")
    return path
