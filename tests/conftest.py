import json
import os
import re
import subprocess

import pytest

from oidc_setup.config import Settings
from oidc_setup.errors import CommandError
from oidc_setup.scopes import AuthScope


class FakeAzure:
    """In-memory stand-in for AzureCli that behaves like an idempotent directory."""

    def __init__(self, scopes=None, tenant_id="tenant-0000", account=None):
        self.scopes = scopes if scopes is not None else []
        self.tenant_id = tenant_id
        self.account = account or {"id": "sub-1111", "name": "Default Subscription", "tenantId": tenant_id}
        self.apps = {}
        self.principals = {}
        self.assignments = []
        self.credentials = {}
        self.calls = []
        self.role_error = None
        self._counter = 0

    def _next(self, prefix):
        self._counter += 1
        return f"{prefix}-{self._counter:04d}"

    def ensure_login(self):
        self.calls.append(("ensure_login",))

    def show_account(self, subscription_id=None):
        self.calls.append(("show_account", subscription_id))
        return dict(self.account)

    def get_tenant_id(self, subscription_id=None):
        self.calls.append(("get_tenant_id", subscription_id))
        return self.tenant_id

    def list_scopes(self, kind):
        self.calls.append(("list_scopes", kind))
        return [s for s in self.scopes if s.kind == kind]

    def find_applications(self, display_name):
        self.calls.append(("find_applications", display_name))
        return list(self.apps.get(display_name, []))

    def create_application(self, display_name):
        self.calls.append(("create_application", display_name))
        client_id = self._next("app")
        self.apps.setdefault(display_name, []).append(client_id)
        return client_id

    def application_exists(self, client_id):
        return any(client_id in ids for ids in self.apps.values())

    def find_service_principals(self, client_id):
        self.calls.append(("find_service_principals", client_id))
        return [self.principals[client_id]] if client_id in self.principals else []

    def create_service_principal(self, client_id):
        self.calls.append(("create_service_principal", client_id))
        principal_id = self._next("sp")
        self.principals[client_id] = principal_id
        return principal_id

    def service_principal_exists(self, principal_id):
        return principal_id in self.principals.values()

    def list_role_assignments(self, principal_id, scope, role="contributor"):
        self.calls.append(("list_role_assignments", principal_id, scope))
        return [
            a for a in self.assignments
            if a["principalId"] == principal_id and a["roleDefinitionName"].lower() == role.lower()
            and a["scope"] == scope
        ]

    def create_role_assignment(self, principal_id, scope, role="contributor"):
        self.calls.append(("create_role_assignment", principal_id, scope))
        if self.role_error is not None:
            raise self.role_error
        if self.list_role_assignments(principal_id, scope, role):
            raise CommandError(["az", "role", "assignment", "create"], 1,
                               "(RoleAssignmentExists) The role assignment already exists.")
        assignment = {"principalId": principal_id, "scope": scope, "roleDefinitionName": "Contributor"}
        self.assignments.append(assignment)
        return assignment

    def create_federated_credential(self, client_id, definition):
        self.calls.append(("create_federated_credential", client_id, definition.get("subject")))
        existing = self.credentials.setdefault(client_id, {})
        if definition["name"] in existing:
            raise CommandError(["az", "ad", "app", "federated-credential", "create"], 1,
                               f"FederatedIdentityCredential with name {definition['name']} already exists.")
        existing[definition["name"]] = definition
        return definition

    @property
    def remote_calls(self):
        return [c for c in self.calls if c[0] != "ensure_login"]


class FakeGitHub:
    def __init__(self, environments=None):
        self.environments = set(environments or [])
        self.secrets = {}
        self.writes = []
        self.calls = []

    def ensure_login(self):
        self.calls.append(("ensure_login",))

    def list_environments(self, repo):
        self.calls.append(("list_environments", repo))
        return sorted(self.environments)

    def ensure_environment(self, repo, name):
        self.calls.append(("ensure_environment", repo, name))
        self.environments.add(name)

    def set_secret(self, repo, name, value, environment=None):
        self.calls.append(("set_secret", repo, name, environment))
        self.secrets[(environment, name)] = value
        self.writes.append((environment, name, value))


def make_tool_runner(environ):
    """Runner that emulates envsubst and `jq -c '.[]'` without executing anything."""

    def runner(cmd, input_text=None, check=True, capture_output=True):
        if cmd[0] == "envsubst":
            allowed = set(re.findall(r"\$\{?(\w+)\}?", cmd[1])) if len(cmd) > 1 else None

            def substitute(match):
                if allowed is not None and match.group(1) not in allowed:
                    return match.group(0)
                return environ.get(match.group(1), "")

            out = re.sub(r"\$\{?([A-Za-z_][A-Za-z0-9_]*)\}?", substitute, input_text)
            return subprocess.CompletedProcess(cmd, 0, stdout=out, stderr="")
        if cmd[0] == "jq":
            try:
                data = json.loads(input_text)
            except json.JSONDecodeError:
                raise CommandError(cmd, 5, "jq: error (at <stdin>:1): parse error")
            if not isinstance(data, list):
                raise CommandError(cmd, 5, "jq: error (at <stdin>:1): expected a JSON array of credentials")
            out = "".join(json.dumps(item) + "\n" for item in data)
            return subprocess.CompletedProcess(cmd, 0, stdout=out, stderr="")
        raise AssertionError(f"unexpected command in test: {cmd}")

    return runner


class RecordingRunner:
    """Returns queued results per command prefix and records every call."""

    def __init__(self):
        self.calls = []
        self.responses = []

    def add(self, prefix, stdout="", returncode=0, stderr=""):
        self.responses.append((list(prefix), stdout, returncode, stderr))

    def __call__(self, cmd, input_text=None, check=True, capture_output=True):
        self.calls.append({"cmd": cmd, "input": input_text, "check": check})
        for prefix, stdout, returncode, stderr in self.responses:
            if cmd[:len(prefix)] == prefix:
                if check and returncode != 0:
                    raise CommandError(cmd, returncode, stderr, stdout)
                return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")


@pytest.fixture
def settings():
    return Settings(settle_seconds=0, ready_attempts=3)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def management_groups():
    return [
        AuthScope.management_group(
            "/providers/Microsoft.Management/managementGroups/mg-platform", "mg-platform", "Platform Team"),
        AuthScope.management_group(
            "/providers/Microsoft.Management/managementGroups/mg-sandbox", "mg-sandbox", "Sandbox"),
    ]


@pytest.fixture
def subscriptions():
    return [
        AuthScope.subscription("11111111-aaaa-bbbb-cccc-000000000001", "Production Subscription"),
        AuthScope.subscription("11111111-aaaa-bbbb-cccc-000000000002", "Dev Subscription"),
    ]


@pytest.fixture
def fics_file(tmp_path):
    path = tmp_path / "fics.json"
    path.write_text(json.dumps([
        {
            "name": "env-prod",
            "issuer": "https://token.actions.githubusercontent.com",
            "subject": "repo:${REPO}:environment:prod",
            "audiences": ["api://AzureADTokenExchange"],
        },
        {
            "name": "main",
            "issuer": "https://token.actions.githubusercontent.com",
            "subject": "repo:${REPO}:ref:refs/heads/main",
            "audiences": ["api://AzureADTokenExchange"],
        },
    ]), encoding="utf-8")
    return path


@pytest.fixture
def feed_input(monkeypatch):
    """Answer input() prompts from a list, failing if prompts outnumber answers."""

    def feed(answers):
        answers = list(answers)
        prompts = []

        def fake_input(prompt=""):
            prompts.append(prompt)
            if not answers:
                raise AssertionError(f"unexpected prompt: {prompt}")
            return answers.pop(0)

        monkeypatch.setattr("builtins.input", fake_input)
        return prompts

    return feed


@pytest.fixture
def clean_environ(tmp_path):
    return {"PATH": os.environ.get("PATH", "")}
