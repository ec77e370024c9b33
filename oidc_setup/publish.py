"""Publish the Azure identifiers as GitHub Actions secrets."""
from typing import Dict, List, Optional, Tuple

from oidc_setup.config import CLIENT_ID_SECRET, TENANT_ID_SECRET, SetupContext
from oidc_setup.errors import SetupError
from oidc_setup.scopes import ScopeKind

SCOPE_SECRET_NAMES = {
    ScopeKind.SUBSCRIPTION: "AZURE_SUBSCRIPTION_ID",
    ScopeKind.MANAGEMENT_GROUP: "AZURE_MANAGEMENT_GROUP_ID",
}


def build_secrets(context: SetupContext) -> Dict[str, str]:
    """The three secrets for this run, in the order they are written."""
    if not (context.client_id and context.tenant_id and context.scope):
        raise SetupError("Client id, tenant id and scope must be resolved before publishing secrets")
    return {
        CLIENT_ID_SECRET: context.client_id,
        SCOPE_SECRET_NAMES[context.scope.kind]: context.scope.identifier,
        TENANT_ID_SECRET: context.tenant_id,
    }


def publish_secrets(github, repo: str, secrets: Dict[str, str],
                    environments: List[str]) -> List[Tuple[Optional[str], str]]:
    """Write secrets at repository level, or once per named environment.

    Blank environment names are skipped. Returns the (environment, name) pairs
    written; environment is None for repository secrets.
    """
    written = []
    if not environments:
        print("🔐 No environments specified. Creating repo-level secrets...")
        for name, value in secrets.items():
            github.set_secret(repo, name, value)
            print(f"  ✅ {name}={value}")
            written.append((None, name))
        return written

    print(f"🔐 Configuring secrets only for: {' '.join(e for e in environments if e.strip())}")
    for environment in environments:
        if not environment.strip():
            continue
        print(f"  Setting environment secrets for '{environment}'...")
        for name, value in secrets.items():
            github.set_secret(repo, name, value, environment=environment)
            print(f"    ✅ {name}={value}")
            written.append((environment, name))
    return written
