#!/usr/bin/env python3
"""
Configure GitHub Actions OIDC against Azure.

This tool:
1. Selects an Azure scope (management group or subscription)
2. Creates or reuses an AD app registration and its Service Principal
3. Grants the Service Principal Contributor on the selected scope
4. Creates the federated identity credentials listed in a JSON file
5. Sets AZURE_CLIENT_ID / scope id / AZURE_TENANT_ID as GitHub secrets

Usage:
    oidc-setup APP_NAME ORG/REPO FICS_FILE [ENVIRONMENT ...]
    oidc-setup --scope-kind management-group APP_NAME ORG/REPO FICS_FILE
    oidc-setup   # fully interactive

Leaving the environments blank results in repo-level secrets. Every step is
idempotent: re-running converges on the same app, principal and assignment.
"""
import argparse
import os
import shutil
import sys
import time
from pathlib import Path

from oidc_setup.azure import AzureCli
from oidc_setup.commands import check_sandbox, require_tools, run_command
from oidc_setup.config import Settings, SetupContext, load_environment
from oidc_setup.credentials import (ENVIRONMENT_VARIABLE, load_credential_definitions,
                                    provision_federated_credentials)
from oidc_setup.errors import OperatorDeclined, SetupError, UsageError
from oidc_setup.github import GitHubCli
from oidc_setup.prompts import (confirm, prompt_app_name, prompt_environment, prompt_fics_file,
                                prompt_repo)
from oidc_setup.provision import reconcile_identity
from oidc_setup.publish import build_secrets, publish_secrets
from oidc_setup.scopes import AuthScope, ScopeKind, select_scope


class ArgumentParser(argparse.ArgumentParser):
    """Reports argument errors as `UsageError` so they exit 1 like other usage problems."""

    def error(self, message):
        raise UsageError(f"{message}\n{self.format_usage().strip()}")


def build_parser():
    parser = ArgumentParser(
        prog="oidc-setup",
        description="Configure GitHub Actions OIDC (workload identity federation) against Azure",
    )
    parser.add_argument("app_name", nargs="?", help="Azure AD app registration display name")
    parser.add_argument("repo", nargs="?", help="GitHub repository (org/repo)")
    parser.add_argument("fics_file", nargs="?", help="JSON file with federated identity credentials")
    parser.add_argument("environments", nargs="*", help="GitHub environments (default: repo-level secrets)")
    parser.add_argument(
        "--scope-kind",
        choices=[k.value for k in ScopeKind],
        default=ScopeKind.SUBSCRIPTION.value,
        help="Grant the role on a subscription or on a management group",
    )
    parser.add_argument("--scope", help="Scope to select (name, display name or resource ID)")
    parser.add_argument(
        "--current-subscription",
        action="store_true",
        help="Confirm the signed-in subscription instead of choosing from the list",
    )
    return parser


def parse_args(argv=None):
    """Options may appear anywhere, including between the file and the environments."""
    return build_parser().parse_intermixed_args(argv)


def validate_repo(repo):
    if not repo or "/" not in repo:
        raise UsageError(f"Invalid repository format: {repo!r} (expected org/repo)")
    return repo


def context_from_args(args):
    """Build the context from positional arguments, or None for interactive mode."""
    given = [v for v in (args.app_name, args.repo, args.fics_file) if v is not None]
    if not given:
        return None
    if len(given) < 3:
        raise UsageError("Usage: oidc-setup <APP_NAME> <ORG|USER/REPO> <FICS_FILE> [ENVIRONMENT...]")

    validate_repo(args.repo)
    if not Path(args.fics_file).is_file():
        raise UsageError(f"Federated identity credentials file not found: {args.fics_file}")
    return SetupContext(
        repo=args.repo,
        app_name=args.app_name,
        fics_file=args.fics_file,
        environments=list(args.environments),
    )


def context_from_prompts(github, settings):
    """Fully interactive flow: repository, environment, app name and file."""
    repo = prompt_repo()
    github.ensure_login()
    github.list_environments(repo)
    environment = prompt_environment()
    github.ensure_environment(repo, environment)
    app_name = prompt_app_name(environment, settings.app_name_prefix)
    fics_file = prompt_fics_file(settings.fics_file)
    return SetupContext(repo=repo, app_name=app_name, fics_file=fics_file, environments=[environment])


def export_context_variables(context, environ):
    """Expose run values to envsubst placeholders in the credentials file."""
    environ["REPO"] = context.repo
    environ["APP_NAME"] = context.app_name
    environ.pop(ENVIRONMENT_VARIABLE, None)
    named = [e for e in context.environments if e.strip()]
    if len(named) == 1:
        environ[ENVIRONMENT_VARIABLE] = named[0]


def choose_scope(azure, kind, selection=None, current_subscription=False):
    kind = ScopeKind(kind)
    if kind == ScopeKind.SUBSCRIPTION and current_subscription:
        account = azure.show_account()
        print(f"   Subscription: {account.get('name', '')} ({account.get('id', '')})")
        if not confirm("Do you want to use the above subscription? (Y/n) "):
            raise OperatorDeclined(
                "Use the `az account set -s` command to set the subscription you'd like to use "
                "and re-run this tool."
            )
        return AuthScope.subscription(account["id"], account.get("name", ""))

    scopes = azure.list_scopes(kind)
    return select_scope(scopes, kind, initial=selection)


def print_summary(context):
    print()
    print("=" * 70)
    print("✅ All done!")
    print("=" * 70)
    print(f"  Repository: {context.repo}")
    envs = [e for e in context.environments if e.strip()]
    print(f"  Environments: {', '.join(envs) if envs else '(repo-level secrets)'}")
    print(f"  App Registration: {context.app_name} ({context.client_id})")
    print(f"  Service Principal: {context.principal_id}")
    print(f"  Scope: {context.scope.path}")
    print()
    print("You can now use the configured secrets in your GitHub workflows.")


def run(args, azure=None, github=None, settings=None, runner=run_command,
        environ=None, which=shutil.which, sleep=time.sleep):
    environ = os.environ if environ is None else environ
    settings = settings or Settings.from_env(environ)

    check_sandbox(environ)
    context = context_from_args(args)
    require_tools(which=which)

    azure = azure or AzureCli(runner)
    github = github or GitHubCli(runner, host=settings.github_host)

    print("=" * 70)
    print("GitHub OIDC Setup for Azure")
    print("=" * 70)
    print()

    interactive = context is None
    if interactive:
        context = context_from_prompts(github, settings)

    print(f"📦 Repository: {context.repo}")
    export_context_variables(context, environ)
    definitions = load_credential_definitions(context.fics_file, runner, context.environments, environ)
    print(f"📄 Read {len(definitions)} credential definition(s) from {context.fics_file}")
    print()

    azure.ensure_login()
    context.scope = choose_scope(azure, args.scope_kind, args.scope, args.current_subscription)

    print("🔍 Getting Tenant Id...")
    if context.scope.kind == ScopeKind.SUBSCRIPTION:
        context.tenant_id = azure.get_tenant_id(context.scope.name)
    else:
        context.tenant_id = azure.get_tenant_id()
    print(f"   TENANT_ID: {context.tenant_id}")
    print()

    reconcile_identity(azure, context, settings, sleep)
    print()

    provision_federated_credentials(azure, context.client_id, definitions)
    print()

    secrets = build_secrets(context)
    if not interactive:
        github.ensure_login()
        for environment in context.environments:
            if environment.strip():
                github.ensure_environment(context.repo, environment)
    publish_secrets(github, context.repo, secrets, context.environments)

    print_summary(context)
    return 0


def main(argv=None):
    load_environment()
    try:
        return run(parse_args(argv))
    except SetupError as e:
        if e.exit_code == 0:
            print(str(e))
        else:
            print(f"❌ {e}")
        return e.exit_code
    except KeyboardInterrupt:
        print()
        print("[CANCELLED] Setup cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
