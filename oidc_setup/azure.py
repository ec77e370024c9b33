"""Thin wrapper over the Azure CLI.

Every method maps to one ``az`` invocation. Output is requested as JSON and
parsed here so callers deal with plain Python values.
"""
import json
from typing import List, Optional

from oidc_setup.commands import run_command, run_json
from oidc_setup.config import ROLE_NAME
from oidc_setup.errors import CommandError, ScopeListingError
from oidc_setup.scopes import AuthScope, ScopeKind


def odata_quote(value: str) -> str:
    """Quote a value for an OData filter expression."""
    return "'" + value.replace("'", "''") + "'"


class AzureCli:
    def __init__(self, runner=run_command):
        self.runner = runner

    def _json(self, cmd: list):
        return run_json(cmd, runner=self.runner)

    # Account

    def ensure_login(self):
        """Run `az login` when there is no usable token."""
        print("🔍 Checking Azure CLI login status...")
        result = self.runner(
            ["az", "ad", "signed-in-user", "show", "--query", "id", "-o", "tsv"],
            check=False,
        )
        if result.returncode == 0 and (result.stdout or "").strip():
            print("✅ Authenticated with Azure")
            return
        print("⚠️  Azure CLI not authenticated, running az login...")
        self.runner(["az", "login", "-o", "none"], capture_output=False)

    def show_account(self, subscription_id: Optional[str] = None) -> dict:
        cmd = ["az", "account", "show", "-o", "json"]
        if subscription_id:
            cmd += ["--subscription", subscription_id]
        return self._json(cmd) or {}

    def get_tenant_id(self, subscription_id: Optional[str] = None) -> str:
        return self.show_account(subscription_id).get("tenantId", "")

    # Scopes

    def ensure_management_groups_extension(self):
        result = self.runner(["az", "extension", "show", "--name", "managementgroups"], check=False)
        if result.returncode != 0:
            print("📦 Azure CLI 'managementgroups' extension not found. Installing...")
            self.runner(["az", "extension", "add", "--name", "managementgroups"])
            print("✅ Extension installed.")

    def list_scopes(self, kind: ScopeKind) -> List[AuthScope]:
        """List the scopes the signed-in account can target."""
        kind = ScopeKind(kind)
        if kind == ScopeKind.MANAGEMENT_GROUP:
            return self._list_management_groups()
        return self._list_subscriptions()

    def _list_management_groups(self) -> List[AuthScope]:
        self.ensure_management_groups_extension()
        print("🔍 Fetching management groups (name | displayName | id)...")
        try:
            groups = self._json([
                "az", "account", "management-group", "list",
                "--query", "[].{name:name,displayName:displayName,id:id}",
                "-o", "json", "--only-show-errors",
            ])
        except CommandError as e:
            raise ScopeListingError(
                "Unable to retrieve management groups. Ensure you have access and the "
                f"managementgroups extension installed.\n{e.stderr}"
            ) from e
        if not groups:
            raise ScopeListingError(
                "No management groups were returned for this account. "
                "Please ensure you have access before re-running."
            )
        return [
            AuthScope.management_group(g["id"], g.get("name") or "", g.get("displayName") or "")
            for g in groups
        ]

    def _list_subscriptions(self) -> List[AuthScope]:
        print("🔍 Fetching subscriptions (name | id)...")
        try:
            subscriptions = self._json([
                "az", "account", "list",
                "--query", "[].{name:name,id:id}",
                "-o", "json", "--only-show-errors",
            ])
        except CommandError as e:
            raise ScopeListingError(f"Unable to retrieve subscriptions. Ensure you have access.\n{e.stderr}") from e
        if not subscriptions:
            raise ScopeListingError("No subscriptions returned for this account.")
        return [AuthScope.subscription(s["id"], s.get("name") or "") for s in subscriptions]

    # Application registrations

    def find_applications(self, display_name: str) -> List[str]:
        apps = self._json([
            "az", "ad", "app", "list",
            "--filter", f"displayName eq {odata_quote(display_name)}",
            "--query", "[].appId", "-o", "json",
        ])
        return apps or []

    def create_application(self, display_name: str) -> str:
        result = self.runner([
            "az", "ad", "app", "create", "--display-name", display_name,
            "--query", "appId", "-o", "tsv",
        ])
        return result.stdout.strip()

    def application_exists(self, client_id: str) -> bool:
        result = self.runner(["az", "ad", "app", "show", "--id", client_id, "--query", "appId", "-o", "tsv"],
                             check=False)
        return result.returncode == 0 and bool((result.stdout or "").strip())

    # Service principals

    def find_service_principals(self, client_id: str) -> List[str]:
        principals = self._json([
            "az", "ad", "sp", "list",
            "--filter", f"appId eq {odata_quote(client_id)}",
            "--query", "[].id", "-o", "json",
        ])
        return principals or []

    def create_service_principal(self, client_id: str) -> str:
        result = self.runner(["az", "ad", "sp", "create", "--id", client_id, "--query", "id", "-o", "tsv"])
        return result.stdout.strip()

    def service_principal_exists(self, principal_id: str) -> bool:
        result = self.runner(["az", "ad", "sp", "show", "--id", principal_id, "--query", "id", "-o", "tsv"],
                             check=False)
        return result.returncode == 0 and bool((result.stdout or "").strip())

    # Role assignments

    def list_role_assignments(self, principal_id: str, scope: str, role: str = ROLE_NAME) -> List[dict]:
        assignments = self._json([
            "az", "role", "assignment", "list",
            "--assignee-object-id", principal_id,
            "--role", role,
            "--scope", scope,
            "-o", "json", "--only-show-errors",
        ])
        return assignments or []

    def create_role_assignment(self, principal_id: str, scope: str, role: str = ROLE_NAME) -> dict:
        return self._json([
            "az", "role", "assignment", "create",
            "--role", role,
            "--scope", scope,
            "--assignee-object-id", principal_id,
            "--assignee-principal-type", "ServicePrincipal",
            "-o", "json", "--only-show-errors",
        ]) or {}

    # Federated credentials

    def create_federated_credential(self, client_id: str, definition: dict) -> dict:
        return self._json([
            "az", "ad", "app", "federated-credential", "create",
            "--id", client_id,
            "--parameters", json.dumps(definition),
            "-o", "json",
        ]) or {}
