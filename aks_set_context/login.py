"""
Fetch the kubeconfig straight from the Azure management API.

This is the variant of the action that needs no az CLI on the runner: a service
principal from the `creds` input is exchanged for a bearer token, and the cluster's
credentials are read from either the access profile endpoint or the
listCluster*Credential action.
"""

import asyncio
import base64
import binascii
import json
from collections import namedtuple
from pathlib import Path
from typing import Optional

import httpx

from aks_set_context import actions
from aks_set_context.actions import StateStore
from aks_set_context.config import RunnerEnvironment, parse_bool, require_input
from aks_set_context.errors import InputError, RemoteCallError
from aks_set_context.kubeconfig import (new_kubeconfig_path, publish_kubeconfig,
                                        restrict_permissions, write_kubeconfig)
from aks_set_context.user_agent import get_user_agent_tag

DEFAULT_MANAGEMENT_ENDPOINT = "https://management.azure.com/"
DEFAULT_ACTIVE_DIRECTORY_ENDPOINT = "https://login.microsoftonline.com/"

ACCESS_PROFILE_API_VERSION = "2017-08-31"
LIST_CREDENTIAL_API_VERSION = "2023-08-01"

AzureCredentials = namedtuple('AzureCredentials', [
    'client_id',
    'client_secret',
    'tenant_id',
    'subscription_id',
    'management_endpoint',
    'active_directory_endpoint',
])

LoginRequest = namedtuple('LoginRequest', [
    'resource_group',
    'cluster_name',
    'credentials',
    'admin',
    'use_list_credential',
])


def parse_credentials(creds: str, subscription_id: str = "") -> AzureCredentials:
    try:
        creds_object = json.loads(creds)
    except ValueError:
        raise InputError("Credentials object is not a valid JSON") from None

    if not isinstance(creds_object, dict):
        raise InputError("Credentials object is not a valid JSON")

    missing = [key for key in ("clientId", "clientSecret", "tenantId") if not creds_object.get(key)]
    if missing:
        raise InputError(f"Credentials object is missing {', '.join(missing)}")

    return AzureCredentials(
        client_id=creds_object["clientId"],
        client_secret=creds_object["clientSecret"],
        tenant_id=creds_object["tenantId"],
        subscription_id=(subscription_id or "").strip() or creds_object.get("subscriptionId", ""),
        management_endpoint=creds_object.get("resourceManagerEndpointUrl") or DEFAULT_MANAGEMENT_ENDPOINT,
        active_directory_endpoint=creds_object.get("activeDirectoryEndpointUrl") or DEFAULT_ACTIVE_DIRECTORY_ENDPOINT,
    )


def parse_login_request(
    resource_group: str,
    cluster_name: str,
    creds: str,
    subscription_id: str = "",
    admin: str = "",
    use_list_credential: str = "",
) -> LoginRequest:
    resource_group = require_input("resource-group", resource_group)
    cluster_name = require_input("cluster-name", cluster_name)
    credentials = parse_credentials(require_input("creds", creds), subscription_id)

    if not credentials.subscription_id:
        raise InputError("Input required and not supplied: subscription-id")

    return LoginRequest(
        resource_group=resource_group,
        cluster_name=cluster_name,
        credentials=credentials,
        admin=parse_bool(admin),
        use_list_credential=parse_bool(use_list_credential),
    )


def _json_body(response: httpx.Response) -> dict:
    try:
        return response.json()
    except ValueError as e:
        raise RemoteCallError(f"Unexpected response from {response.request.url} ({response.status_code}): {response.text}") from e


def _decode_kubeconfig(value: str) -> str:
    try:
        return base64.b64decode(value).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, TypeError) as e:
        raise RemoteCallError(f"Kubeconfig in the response is not valid base64: {e}") from e


def managed_cluster_uri(management_endpoint: str, subscription_id: str, resource_group: str, cluster_name: str) -> str:
    return (
        f"{management_endpoint.rstrip('/')}/subscriptions/{subscription_id}"
        f"/resourceGroups/{resource_group}"
        f"/providers/Microsoft.ContainerService/managedClusters/{cluster_name}"
    )


async def get_azure_access_token(client: httpx.AsyncClient, credentials: AzureCredentials) -> str:
    """
    Client credentials grant against the tenant's token endpoint, scoped to the management API.
    """
    token_url = f"{credentials.active_directory_endpoint.rstrip('/')}/{credentials.tenant_id}/oauth2/token"

    try:
        response = await client.post(token_url, data={
            "grant_type": "client_credentials",
            "client_id": credentials.client_id,
            "client_secret": credentials.client_secret,
            "resource": credentials.management_endpoint,
        })
    except httpx.HTTPError as e:
        raise RemoteCallError(f"Failed to obtain an access token: {e}") from e

    body = _json_body(response)
    token = body.get("access_token") if isinstance(body, dict) else None
    if not token:
        raise RemoteCallError(json.dumps(body))

    actions.add_mask(token)
    return token


def _auth_headers(access_token: str) -> dict:
    return {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json; charset=utf-8",
    }


async def get_aks_kubeconfig(
    client: httpx.AsyncClient,
    access_token: str,
    subscription_id: str,
    management_endpoint: str,
    resource_group: str,
    cluster_name: str,
    admin: bool = False,
) -> str:
    role_name = "clusterAdmin" if admin else "clusterUser"
    uri = managed_cluster_uri(management_endpoint, subscription_id, resource_group, cluster_name)

    try:
        response = await client.get(
            f"{uri}/accessProfiles/{role_name}",
            params={"api-version": ACCESS_PROFILE_API_VERSION},
            headers=_auth_headers(access_token),
        )
    except httpx.HTTPError as e:
        raise RemoteCallError(f"Failed to fetch the access profile of {cluster_name}: {e}") from e

    access_profile = _json_body(response)
    properties = access_profile.get("properties") if isinstance(access_profile, dict) else None
    kubeconfig = properties.get("kubeConfig") if isinstance(properties, dict) else None
    if not kubeconfig:
        raise RemoteCallError(json.dumps(access_profile))

    return _decode_kubeconfig(kubeconfig)


async def list_aks_kubeconfig(
    client: httpx.AsyncClient,
    access_token: str,
    subscription_id: str,
    management_endpoint: str,
    resource_group: str,
    cluster_name: str,
    admin: bool = False,
) -> str:
    action = "listClusterAdminCredential" if admin else "listClusterUserCredential"
    uri = managed_cluster_uri(management_endpoint, subscription_id, resource_group, cluster_name)

    try:
        response = await client.post(
            f"{uri}/{action}",
            params={"api-version": LIST_CREDENTIAL_API_VERSION},
            headers=_auth_headers(access_token),
        )
    except httpx.HTTPError as e:
        raise RemoteCallError(f"Failed to list the credentials of {cluster_name}: {e}") from e

    credential_results = _json_body(response)
    kubeconfigs = credential_results.get("kubeconfigs") if isinstance(credential_results, dict) else None
    first = kubeconfigs[0] if isinstance(kubeconfigs, list) and kubeconfigs else None
    kubeconfig = first.get("value") if isinstance(first, dict) else None
    if not kubeconfig:
        raise RemoteCallError(json.dumps(credential_results))

    return _decode_kubeconfig(kubeconfig)


async def get_kubeconfig(request: LoginRequest, user_agent: str = "", transport: Optional[httpx.AsyncBaseTransport] = None) -> str:
    credentials = request.credentials
    headers = {"User-Agent": user_agent} if user_agent else {}

    async with httpx.AsyncClient(transport=transport, headers=headers) as client:
        access_token = await get_azure_access_token(client, credentials)

        fetch = list_aks_kubeconfig if request.use_list_credential else get_aks_kubeconfig
        return await fetch(
            client,
            access_token,
            credentials.subscription_id,
            credentials.management_endpoint,
            request.resource_group,
            request.cluster_name,
            admin=request.admin,
        )


def run(inputs: dict, env: RunnerEnvironment, state: StateStore, transport: Optional[httpx.AsyncBaseTransport] = None) -> Path:
    request = parse_login_request(**inputs)
    user_agent = get_user_agent_tag(env.GITHUB_REPOSITORY, env.GITHUB_RUN_ID)

    kubeconfig = asyncio.run(get_kubeconfig(request, user_agent=user_agent, transport=transport))

    kubeconfig_path = new_kubeconfig_path(env.RUNNER_TEMP)
    actions.debug(f"Writing kubeconfig contents to {kubeconfig_path}")
    write_kubeconfig(kubeconfig_path, kubeconfig)
    restrict_permissions(kubeconfig_path)
    publish_kubeconfig(kubeconfig_path, state)

    return kubeconfig_path
