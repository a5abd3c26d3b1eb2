import os
import tempfile
from collections import namedtuple
from enum import Enum

from aks_set_context.errors import InputError


class ResourceType(str, Enum):
    managed_clusters = "Microsoft.ContainerService/managedClusters"
    fleets = "Microsoft.ContainerService/fleets"


# Matched case-insensitively, short names are accepted as well
RESOURCE_TYPE_NAMES = {
    "microsoft.containerservice/managedclusters": ResourceType.managed_clusters,
    "managedclusters": ResourceType.managed_clusters,
    "microsoft.containerservice/fleets": ResourceType.fleets,
    "fleets": ResourceType.fleets,
}

ContextRequest = namedtuple('ContextRequest', [
    'resource_group',
    'cluster_name',
    'resource_type',
    'subscription',
    'admin',
    'use_kubelogin',
    'public_fqdn',
    'fleet_name',
])

RunnerEnvironment = namedtuple('RunnerEnvironment', [
    'RUNNER_TEMP',
    'GITHUB_REPOSITORY',
    'GITHUB_RUN_ID',
])


def get_runner_environment():
    return RunnerEnvironment(
        RUNNER_TEMP=os.environ.get("RUNNER_TEMP") or tempfile.gettempdir(),
        GITHUB_REPOSITORY=os.environ.get("GITHUB_REPOSITORY", ""),
        GITHUB_RUN_ID=os.environ.get("GITHUB_RUN_ID", ""),
    )


def require_input(name: str, value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise InputError(f"Input required and not supplied: {name}")
    return value


def parse_bool(value: str) -> bool:
    return (value or "").strip().lower() == "true"


def parse_resource_type(value: str) -> ResourceType:
    value = (value or "").strip()
    if not value:
        return ResourceType.managed_clusters

    try:
        return RESOURCE_TYPE_NAMES[value.lower()]
    except KeyError:
        raise InputError(
            f"Invalid resource type: {value}. Allowable values are "
            f"'{ResourceType.managed_clusters.value}' and '{ResourceType.fleets.value}'"
        ) from None


def parse_request(
    resource_group: str,
    cluster_name: str,
    resource_type: str = "",
    subscription: str = "",
    admin: str = "",
    use_kubelogin: str = "",
    public_fqdn: str = "",
    fleet_name: str = "",
) -> ContextRequest:
    """
    Turn the raw string inputs of the action into a validated ContextRequest.

    Everything past this point works on typed values only.
    """
    resource_group = require_input("resource-group", resource_group)
    cluster_name = require_input("cluster-name", cluster_name)
    parsed_resource_type = parse_resource_type(resource_type)
    admin_role = parse_bool(admin)
    use_public_fqdn = parse_bool(public_fqdn)

    if parsed_resource_type == ResourceType.fleets and (admin_role or use_public_fqdn):
        raise InputError("admin and public-fqdn are not supported when resource-type is fleets")

    return ContextRequest(
        resource_group=resource_group,
        cluster_name=cluster_name,
        resource_type=parsed_resource_type,
        subscription=(subscription or "").strip(),
        admin=admin_role,
        # Admin credentials are certificate based, there is nothing to convert
        use_kubelogin=parse_bool(use_kubelogin) and not admin_role,
        public_fqdn=use_public_fqdn,
        fleet_name=(fleet_name or "").strip(),
    )


def is_fleet(request: ContextRequest) -> bool:
    return bool(request.fleet_name) or request.resource_type == ResourceType.fleets
