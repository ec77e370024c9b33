"""Authorization scopes: management groups and subscriptions.

Resolution is kept apart from prompting so it can be tested without a
terminal. Management groups and subscriptions use two distinct strategies
for input that matches nothing in the listed scopes:

* management group: a resource path is accepted verbatim, a bare name is
  turned into ``/providers/Microsoft.Management/managementGroups/<name>``
* subscription: a ``/subscriptions/<id>`` path has its prefix stripped, a bare
  value is taken as the subscription id
"""
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel

MANAGEMENT_GROUP_PREFIX = "/providers/Microsoft.Management/managementGroups/"
SUBSCRIPTION_PREFIX = "/subscriptions/"


class ScopeKind(str, Enum):
    MANAGEMENT_GROUP = "management-group"
    SUBSCRIPTION = "subscription"


class AuthScope(BaseModel):
    kind: ScopeKind
    path: str
    name: str
    display_name: str = ""
    verified: bool = True

    @property
    def identifier(self) -> str:
        """Value published as the scope secret."""
        if self.kind == ScopeKind.SUBSCRIPTION:
            return self.name
        return self.path

    @classmethod
    def management_group(cls, path: str, name: str = "", display_name: str = "",
                         verified: bool = True) -> "AuthScope":
        if not name:
            name = path.rsplit("/", 1)[-1]
        return cls(kind=ScopeKind.MANAGEMENT_GROUP, path=path, name=name,
                   display_name=display_name or name, verified=verified)

    @classmethod
    def subscription(cls, subscription_id: str, display_name: str = "",
                     verified: bool = True) -> "AuthScope":
        return cls(kind=ScopeKind.SUBSCRIPTION,
                   path=f"{SUBSCRIPTION_PREFIX}{subscription_id}",
                   name=subscription_id,
                   display_name=display_name or subscription_id,
                   verified=verified)

    def describe(self) -> str:
        if self.kind == ScopeKind.SUBSCRIPTION:
            return f"{self.display_name} | id: {self.name}"
        return f"{self.display_name} | name: {self.name} | id: {self.path}"


def match_scope(scopes: List[AuthScope], selection: str) -> Optional[AuthScope]:
    """Exact match on canonical path, then short name, then display name."""
    for attr in ("path", "name", "display_name"):
        for scope in scopes:
            if getattr(scope, attr) == selection:
                return scope
    return None


def resolve_management_group(scopes: List[AuthScope], selection: str) -> Optional[AuthScope]:
    selection = (selection or "").strip()
    if not selection:
        return None

    matched = match_scope(scopes, selection)
    if matched:
        return matched

    if selection.startswith(MANAGEMENT_GROUP_PREFIX):
        return AuthScope.management_group(selection, verified=False)
    return AuthScope.management_group(f"{MANAGEMENT_GROUP_PREFIX}{selection}", verified=False)


def resolve_subscription(scopes: List[AuthScope], selection: str) -> Optional[AuthScope]:
    selection = (selection or "").strip()
    if not selection:
        return None

    matched = match_scope(scopes, selection)
    if matched:
        return matched

    subscription_id = selection
    if selection.startswith(SUBSCRIPTION_PREFIX):
        subscription_id = selection[len(SUBSCRIPTION_PREFIX):].strip("/")
    if not subscription_id:
        return None
    return AuthScope.subscription(subscription_id, verified=False)


def resolve_scope(scopes: List[AuthScope], selection: str, kind: ScopeKind) -> Optional[AuthScope]:
    """Resolve operator input to a scope, or None when it cannot be resolved."""
    if ScopeKind(kind) == ScopeKind.MANAGEMENT_GROUP:
        return resolve_management_group(scopes, selection)
    return resolve_subscription(scopes, selection)


def select_scope(scopes: List[AuthScope], kind: ScopeKind, initial: Optional[str] = None,
                 ask: Optional[Callable[[str], str]] = None) -> AuthScope:
    """Show the scopes and keep asking until the input resolves."""
    ask = ask or input
    kind = ScopeKind(kind)
    label = "management group" if kind == ScopeKind.MANAGEMENT_GROUP else "subscription"

    for scope in scopes:
        print(f"- {scope.describe()}")

    selection = initial
    while True:
        if selection is None:
            print()
            if kind == ScopeKind.MANAGEMENT_GROUP:
                selection = ask("Enter the management group name or resource ID: ")
            else:
                selection = ask("Enter the subscription name or ID to target: ")

        resolved = resolve_scope(scopes, selection, kind)
        if resolved is not None:
            if not resolved.verified:
                print(f"⚠️  '{selection.strip()}' is not in the listed {label}s, using it as given")
            print(f"✅ Using {label} scope: {resolved.path}")
            return resolved

        if not (selection or "").strip():
            print(f"❌ A {label} identifier is required.")
        else:
            print(f"❌ Unable to match '{selection}' to a {label}. Please try again.")
        selection = None
