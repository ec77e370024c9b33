import pytest

from oidc_setup.config import SetupContext
from oidc_setup.errors import SetupError
from oidc_setup.publish import build_secrets, publish_secrets
from oidc_setup.scopes import AuthScope
from tests.conftest import FakeGitHub

SECRETS = {"AZURE_CLIENT_ID": "app-1", "AZURE_SUBSCRIPTION_ID": "sub-1", "AZURE_TENANT_ID": "tenant-1"}


def resolved_context(scope):
    return SetupContext(repo="acme/widgets", app_name="app", fics_file="fics.json",
                        scope=scope, client_id="app-1", tenant_id="tenant-1")


def test_subscription_scope_publishes_subscription_id():
    secrets = build_secrets(resolved_context(AuthScope.subscription("sub-1", "Prod")))
    assert secrets == SECRETS
    assert list(secrets) == ["AZURE_CLIENT_ID", "AZURE_SUBSCRIPTION_ID", "AZURE_TENANT_ID"]


def test_management_group_scope_publishes_group_path():
    path = "/providers/Microsoft.Management/managementGroups/mg-platform"
    secrets = build_secrets(resolved_context(AuthScope.management_group(path)))
    assert secrets["AZURE_MANAGEMENT_GROUP_ID"] == path
    assert "AZURE_SUBSCRIPTION_ID" not in secrets


def test_build_secrets_requires_resolved_identifiers():
    context = resolved_context(AuthScope.subscription("sub-1"))
    context.client_id = None
    with pytest.raises(SetupError):
        build_secrets(context)


def test_no_environments_publishes_three_repository_secrets():
    github = FakeGitHub()

    written = publish_secrets(github, "acme/widgets", SECRETS, [])

    assert written == [(None, name) for name in SECRETS]
    assert github.secrets == {(None, name): value for name, value in SECRETS.items()}


def test_each_environment_gets_all_three_secrets():
    github = FakeGitHub()

    written = publish_secrets(github, "acme/widgets", SECRETS, ["prod", "staging"])

    assert len(written) == 6
    assert {env for env, _ in written} == {"prod", "staging"}
    assert all(env is not None for env, _, _ in github.writes)


@pytest.mark.parametrize("environments", [["prod", ""], ["", "prod", "  "]])
def test_blank_environment_names_are_skipped(environments):
    github = FakeGitHub()

    written = publish_secrets(github, "acme/widgets", SECRETS, environments)

    assert len(written) == 3
    assert {env for env, _ in written} == {"prod"}


def test_secrets_are_overwritten_on_every_run():
    github = FakeGitHub()
    publish_secrets(github, "acme/widgets", SECRETS, ["prod"])
    publish_secrets(github, "acme/widgets", dict(SECRETS, AZURE_CLIENT_ID="app-2"), ["prod"])

    assert len(github.writes) == 6
    assert github.secrets[("prod", "AZURE_CLIENT_ID")] == "app-2"
