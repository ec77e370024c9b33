"""Federated identity credentials defined in a JSON file.

The file holds a JSON array of credential objects passed as-is to
``az ad app federated-credential create``. ``$VAR`` / ``${VAR}`` placeholders
are substituted from the process environment by envsubst before parsing,
e.g.::

    [
      {
        "name": "${APP_NAME}-env-${ENV_NAME}",
        "issuer": "https://token.actions.githubusercontent.com",
        "subject": "repo:${REPO}:environment:${ENV_NAME}",
        "audiences": ["api://AzureADTokenExchange"]
      }
    ]

A definition that references ``ENV_NAME`` is expanded once per named
environment and skipped when the run targets repo-level secrets.
"""
import json
import os
import re
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel

from oidc_setup.commands import run_command
from oidc_setup.errors import CommandError, UsageError

SPLIT_ARRAY = 'if type == "array" then .[] else error("expected a JSON array of credentials") end'
ENVIRONMENT_VARIABLE = "ENV_NAME"
PLACEHOLDER = re.compile(r"\$\{?([A-Za-z_][A-Za-z0-9_]*)\}?")


class CredentialReport(BaseModel):
    created: int = 0
    existing: int = 0
    failed: int = 0


def placeholders(text: str) -> set:
    return set(PLACEHOLDER.findall(text))


def shell_format(names) -> str:
    """envsubst SHELL-FORMAT restricting substitution to ``names``."""
    return " ".join(f"${{{name}}}" for name in sorted(names))


def _split(text: str, path: Path, runner) -> List[str]:
    try:
        lines = runner(["jq", "-c", SPLIT_ARRAY], input_text=text).stdout
    except CommandError as e:
        raise UsageError(f"Invalid federated identity credentials file {path}: {e.stderr}") from e
    return [line.strip() for line in lines.splitlines() if line.strip()]


def _expand_for_environments(line: str, environments: List[str], runner, environ) -> List[dict]:
    previous = environ.get(ENVIRONMENT_VARIABLE)
    expanded = []
    try:
        for environment in environments:
            environ[ENVIRONMENT_VARIABLE] = environment
            text = runner(["envsubst", shell_format([ENVIRONMENT_VARIABLE])], input_text=line).stdout
            expanded.append(json.loads(text))
    finally:
        if previous is None:
            environ.pop(ENVIRONMENT_VARIABLE, None)
        else:
            environ[ENVIRONMENT_VARIABLE] = previous
    return expanded


def load_credential_definitions(path, runner=run_command, environments: Optional[List[str]] = None,
                                environ=None) -> List[dict]:
    """Substitute placeholders in the file and return its credential objects."""
    path = Path(path)
    if not path.is_file():
        raise UsageError(f"Federated identity credentials file not found: {path}")
    environ = os.environ if environ is None else environ
    environments = [e.strip() for e in (environments or []) if e.strip()]

    raw = path.read_text(encoding="utf-8")
    names = placeholders(raw)
    if ENVIRONMENT_VARIABLE not in names:
        return [json.loads(line) for line in _split(runner(["envsubst"], input_text=raw).stdout, path, runner)]

    # ENV_NAME stays literal until each definition is expanded per environment
    others = names - {ENVIRONMENT_VARIABLE}
    substituted = runner(["envsubst", shell_format(others)], input_text=raw).stdout if others else raw

    definitions = []
    for line in _split(substituted, path, runner):
        if ENVIRONMENT_VARIABLE not in placeholders(line):
            definitions.append(json.loads(line))
        elif environments:
            definitions.extend(_expand_for_environments(line, environments, runner, environ))
        else:
            item = json.loads(line)
            name = item.get("name", "<unnamed>") if isinstance(item, dict) else line
            print(f"⏭️  Skipping credential '{name}': it needs an environment and none was named")
    return definitions


def provision_federated_credentials(azure, client_id: str, definitions: List[dict]) -> CredentialReport:
    """Create each credential on the app; failures are reported and skipped."""
    report = CredentialReport()
    print(f"🔑 Creating {len(definitions)} Federated Identity Credential(s)...")

    for definition in definitions:
        subject = definition.get("subject", "<no subject>") if isinstance(definition, dict) else "<invalid>"
        print(f"   Creating FIC with subject '{subject}'.")
        try:
            azure.create_federated_credential(client_id, definition)
        except CommandError as e:
            if e.already_exists:
                print(f"   ⏭️  '{subject}' already exists, skipping")
                report.existing += 1
            else:
                print(f"   ⚠️  Failed to create '{subject}': {e.stderr or e}")
                report.failed += 1
            continue
        print(f"   ✅ Created '{subject}'")
        report.created += 1

    print(f"   {report.created} created, {report.existing} already present, {report.failed} failed")
    return report
