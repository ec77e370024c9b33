"""Identity reconciliation: app registration, service principal and role assignment.

Each step looks up what already exists and creates only what is missing, so a
re-run converges instead of duplicating. Newly created directory objects are
not used until a read-back probe sees them.
"""
import time
from typing import Callable, Tuple

from oidc_setup.config import ROLE_NAME, Settings, SetupContext
from oidc_setup.errors import CommandError, SetupError


def wait_until_ready(probe: Callable[[], bool], description: str, settings: Settings,
                     sleep=time.sleep) -> None:
    """Wait for a just-created object to become readable.

    Sleeps settle_seconds before every probe; gives up after ready_attempts.
    """
    attempts = max(1, settings.ready_attempts)
    for attempt in range(1, attempts + 1):
        print(f"   ⏳ Waiting {settings.settle_seconds:g}s for {description} to propagate "
              f"({attempt}/{attempts})...")
        sleep(settings.settle_seconds)
        if probe():
            print(f"   ✅ {description} is ready")
            return
    raise SetupError(f"{description} was created but never became readable")


def ensure_application(azure, display_name: str, settings: Settings,
                       sleep=time.sleep) -> Tuple[str, bool]:
    """Return (client_id, created) for the app registration named display_name."""
    print("🔑 Configuring application...")
    app_ids = azure.find_applications(display_name)

    if len(app_ids) > 1:
        print(f"⚠️  {len(app_ids)} app registrations are named '{display_name}', using {app_ids[0]}")
    if app_ids:
        print("✅ Existing AD app found.")
        return app_ids[0], False

    print(f"   Creating AD app '{display_name}'...")
    client_id = azure.create_application(display_name)
    if not client_id:
        raise SetupError(f"Creating app registration '{display_name}' returned no appId")
    wait_until_ready(lambda: azure.application_exists(client_id), "the app registration",
                     settings, sleep)
    return client_id, True


def ensure_service_principal(azure, client_id: str, settings: Settings,
                             sleep=time.sleep) -> Tuple[str, bool]:
    """Return (principal_id, created) for the service principal backing client_id."""
    print("🔑 Configuring Service Principal...")
    principal_ids = azure.find_service_principals(client_id)
    if principal_ids:
        print("✅ Existing Service Principal found.")
        return principal_ids[0], False

    print("   Creating service principal...")
    principal_id = azure.create_service_principal(client_id)
    if not principal_id:
        raise SetupError(f"Creating a service principal for {client_id} returned no id")
    wait_until_ready(lambda: azure.service_principal_exists(principal_id), "the service principal",
                     settings, sleep)
    return principal_id, True


def _create_tolerating_conflict(azure, principal_id: str, scope_path: str) -> bool:
    """Create the assignment; an existing one counts as success. Returns True if created."""
    try:
        azure.create_role_assignment(principal_id, scope_path, ROLE_NAME)
    except CommandError as e:
        if not e.already_exists:
            raise
        print("⏭️  Role assignment already exists for this scope.")
        return False
    print(f"✅ Assigned '{ROLE_NAME}' on {scope_path}")
    return True


def ensure_role_assignment(azure, principal_id: str, scope_path: str, principal_created: bool,
                           settings: Settings, sleep=time.sleep) -> bool:
    """Make sure the principal holds the role at exactly scope_path.

    Returns True when an assignment was created by this call.
    """
    print(f"🔐 Ensuring {ROLE_NAME} role assignment on {scope_path}...")

    if principal_created:
        created = _create_tolerating_conflict(azure, principal_id, scope_path)
        if created:
            sleep(settings.settle_seconds)
    else:
        assignments = azure.list_role_assignments(principal_id, scope_path, ROLE_NAME)
        exact = [a for a in assignments if (a.get("scope") or "").lower() == scope_path.lower()]
        if exact:
            print("⏭️  Role assignment already exists for this scope.")
            created = False
        else:
            created = _create_tolerating_conflict(azure, principal_id, scope_path)

    current = azure.list_role_assignments(principal_id, scope_path, ROLE_NAME)
    print(f"   Current {ROLE_NAME} assignments for this SP on {scope_path}: {len(current)}")
    for assignment in current:
        print(f"   • {assignment.get('roleDefinitionName', ROLE_NAME)} @ {assignment.get('scope', scope_path)}")
    return created


def reconcile_identity(azure, context: SetupContext, settings: Settings, sleep=time.sleep) -> SetupContext:
    """Converge app registration, service principal and role assignment for context."""
    if context.scope is None:
        raise SetupError("No authorization scope selected")

    client_id, _ = ensure_application(azure, context.app_name, settings, sleep)
    context.client_id = client_id
    print(f"   APP_ID: {client_id}")

    principal_id, principal_created = ensure_service_principal(azure, client_id, settings, sleep)
    context.principal_id = principal_id
    print(f"   SP_ID: {principal_id}")

    ensure_role_assignment(azure, principal_id, context.scope.path, principal_created, settings, sleep)
    return context
