#!/usr/bin/env python3

# Entry point of the action. action.yml runs `set-context` and a later workflow step
# runs `cleanup --kubeconfig "$KUBECONFIG"`. `main` serves runners that call a single
# entry point for both the main and the post step, told apart by the saved isPost state.
# Example usage outside of a workflow:
# python3 -m aks_set_context.run set-context --resource-group my-rg --cluster-name my-cluster
# python3 -m aks_set_context.run --output-format json show-command --resource-group my-rg --cluster-name my-cluster --admin true

import typer

from aks_set_context import login as login_variant
from aks_set_context import set_context as context_setter
from aks_set_context.actions import ActionsStateStore
from aks_set_context.cli_utils import get_app, report_failure
from aks_set_context.config import get_runner_environment, parse_request
from aks_set_context.kubeconfig import (is_post, mark_post_pending,
                                        new_kubeconfig_path, remove_kubeconfig)

app = get_app()

# Inputs arrive from the runner as INPUT_<NAME> environment variables
RESOURCE_GROUP = typer.Option("", envvar="INPUT_RESOURCE-GROUP", help="Resource group of the cluster")
CLUSTER_NAME = typer.Option("", envvar="INPUT_CLUSTER-NAME", help="Name of the cluster")
RESOURCE_TYPE = typer.Option("", envvar="INPUT_RESOURCE-TYPE", help="Microsoft.ContainerService/managedClusters or Microsoft.ContainerService/fleets")
SUBSCRIPTION = typer.Option("", envvar="INPUT_SUBSCRIPTION", help="Subscription of the cluster, defaults to the az CLI's current one")
ADMIN = typer.Option("false", envvar="INPUT_ADMIN", help="Fetch the cluster admin credentials")
USE_KUBELOGIN = typer.Option("false", envvar="INPUT_USE-KUBELOGIN", help="Convert the kubeconfig to non-interactive azurecli login")
PUBLIC_FQDN = typer.Option("false", envvar="INPUT_PUBLIC-FQDN", help="Address the API server through its public FQDN")
FLEET_NAME = typer.Option("", envvar="INPUT_FLEET-NAME", help="Name of a fleet to fetch credentials for instead of the cluster")
CREDS = typer.Option("", envvar="INPUT_CREDS", help="Service principal JSON with clientId, clientSecret, tenantId and subscriptionId")
SUBSCRIPTION_ID = typer.Option("", envvar="INPUT_SUBSCRIPTION-ID", help="Overrides the subscriptionId of creds")
USE_LIST_CREDENTIAL = typer.Option("false", envvar="INPUT_USE-LIST-CREDENTIAL", help="Use the listCluster*Credential action instead of the access profile")
KUBECONFIG_PATH = typer.Option("", help="Kubeconfig to remove, defaults to the path saved by the main step")


# Each command below takes the action inputs as its parameters and nothing else,
# so dict(locals()) at the top of the body is exactly the inputs of that command.

@app.command()
@report_failure
def set_context(
    resource_group: str = RESOURCE_GROUP,
    cluster_name: str = CLUSTER_NAME,
    resource_type: str = RESOURCE_TYPE,
    subscription: str = SUBSCRIPTION,
    admin: str = ADMIN,
    use_kubelogin: str = USE_KUBELOGIN,
    public_fqdn: str = PUBLIC_FQDN,
    fleet_name: str = FLEET_NAME,
):
    """
    Fetch the cluster credentials with the az CLI and export KUBECONFIG.
    """
    inputs = dict(locals())
    state = ActionsStateStore()
    mark_post_pending(state)

    kubeconfig_path = context_setter.run(inputs, get_runner_environment(), state)

    return {"kubeconfig": str(kubeconfig_path)}


@app.command()
@report_failure
def login(
    resource_group: str = RESOURCE_GROUP,
    cluster_name: str = CLUSTER_NAME,
    creds: str = CREDS,
    subscription_id: str = SUBSCRIPTION_ID,
    admin: str = ADMIN,
    use_list_credential: str = USE_LIST_CREDENTIAL,
):
    """
    Fetch the kubeconfig from the management API with a service principal, no az CLI needed.
    """
    inputs = dict(locals())
    state = ActionsStateStore()
    mark_post_pending(state)

    kubeconfig_path = login_variant.run(inputs, get_runner_environment(), state)

    return {"kubeconfig": str(kubeconfig_path)}


@app.command()
@report_failure
def cleanup(kubeconfig: str = KUBECONFIG_PATH):
    """
    Remove the kubeconfig written by the main step.
    """
    removed = remove_kubeconfig(ActionsStateStore(), kubeconfig)

    return {"removed": str(removed) if removed else None}


@app.command()
@report_failure
def show_command(
    resource_group: str = RESOURCE_GROUP,
    cluster_name: str = CLUSTER_NAME,
    resource_type: str = RESOURCE_TYPE,
    subscription: str = SUBSCRIPTION,
    admin: str = ADMIN,
    use_kubelogin: str = USE_KUBELOGIN,
    public_fqdn: str = PUBLIC_FQDN,
    fleet_name: str = FLEET_NAME,
):
    """
    Validate the inputs and print the az command set-context would run, without running it.
    """
    request = parse_request(**locals())
    kubeconfig_path = new_kubeconfig_path(get_runner_environment().RUNNER_TEMP)

    commands = [[context_setter.AZ_TOOL_NAME] + context_setter.build_get_credentials_args(request, kubeconfig_path)]
    if request.use_kubelogin:
        commands.append([context_setter.KUBELOGIN_TOOL_NAME] + context_setter.KUBELOGIN_CONVERT_ARGS)

    return commands


@app.command()
def main(
    resource_group: str = RESOURCE_GROUP,
    cluster_name: str = CLUSTER_NAME,
    resource_type: str = RESOURCE_TYPE,
    subscription: str = SUBSCRIPTION,
    admin: str = ADMIN,
    use_kubelogin: str = USE_KUBELOGIN,
    public_fqdn: str = PUBLIC_FQDN,
    fleet_name: str = FLEET_NAME,
):
    """
    Run set-context on the main step and cleanup on the post step.
    """
    inputs = dict(locals())

    if is_post(ActionsStateStore()):
        return cleanup(kubeconfig="")

    return set_context(**inputs)


if __name__ == "__main__":
    app()
