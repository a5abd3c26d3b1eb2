# Fetches cluster credentials with the az CLI and publishes them as KUBECONFIG.

import shutil
import subprocess
from pathlib import Path

from aks_set_context import actions
from aks_set_context.actions import StateStore
from aks_set_context.config import (ContextRequest, RunnerEnvironment, is_fleet,
                                    parse_request)
from aks_set_context.errors import CommandError, ToolNotFoundError
from aks_set_context.kubeconfig import (new_kubeconfig_path, publish_kubeconfig,
                                        restrict_permissions)
from aks_set_context.user_agent import get_user_agent_tag, user_agent_tag

AZ_TOOL_NAME = "az"
KUBELOGIN_TOOL_NAME = "kubelogin"
KUBELOGIN_CONVERT_ARGS = ["convert-kubeconfig", "-l", "azurecli"]


def find_tool(name: str, message: str) -> str:
    tool_path = shutil.which(name)
    if not tool_path:
        raise ToolNotFoundError(message)
    return tool_path


def build_get_credentials_args(request: ContextRequest, kubeconfig_path: Path) -> list[str]:
    fleet = is_fleet(request)

    args = [
        "fleet" if fleet else "aks",
        "get-credentials",
        "--resource-group", request.resource_group,
        "--name", request.fleet_name or request.cluster_name,
        "-f", str(kubeconfig_path),
    ]

    if request.subscription:
        args += ["--subscription", request.subscription]

    # Fleets have neither an admin role nor a public FQDN override
    if not fleet:
        if request.admin:
            args.append("--admin")
        if request.public_fqdn:
            args.append("--public-fqdn")

    return args


def run_tool(tool_path: str, args: list[str], display_name: str):
    try:
        subprocess.run([tool_path] + args, check=True)
    except subprocess.CalledProcessError as e:
        raise CommandError(f"{display_name} exited with error code {e.returncode}", e.returncode) from e


def get_credentials(request: ContextRequest, kubeconfig_path: Path):
    az_path = find_tool(AZ_TOOL_NAME, "Az cli tools not installed. You must install them before running this action.")

    if request.fleet_name and (request.admin or request.public_fqdn):
        actions.warning("admin and public-fqdn are ignored when fleet-name is set")

    actions.debug(f"Writing kubeconfig to {kubeconfig_path}")
    run_tool(az_path, build_get_credentials_args(request, kubeconfig_path), "Az cli")


def convert_kubeconfig():
    """
    Switch the kubeconfig user to exec-based token exchange through the az CLI login.

    kubelogin edits the file named by KUBECONFIG in place.
    """
    kubelogin_path = find_tool(KUBELOGIN_TOOL_NAME, "kubelogin is not installed. You must install it before setting use-kubelogin.")
    run_tool(kubelogin_path, KUBELOGIN_CONVERT_ARGS, "kubelogin")


def run(inputs: dict, env: RunnerEnvironment, state: StateStore) -> Path:
    """
    Fetch the cluster credentials into a fresh kubeconfig and export KUBECONFIG.

    `inputs` holds the raw action inputs keyed by the keyword names of `parse_request`.
    The user agent variables are restored before any error leaves this function.
    """
    tag = get_user_agent_tag(env.GITHUB_REPOSITORY, env.GITHUB_RUN_ID)

    with user_agent_tag(tag):
        request = parse_request(**inputs)

        kubeconfig_path = new_kubeconfig_path(env.RUNNER_TEMP)
        get_credentials(request, kubeconfig_path)
        restrict_permissions(kubeconfig_path)
        publish_kubeconfig(kubeconfig_path, state)

        if request.use_kubelogin:
            convert_kubeconfig()

    return kubeconfig_path
