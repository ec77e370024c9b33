"""Interactive prompts used when arguments are not supplied on the command line."""
import re
from pathlib import Path


def get_input(prompt, required=True, default=None):
    """Get user input with validation."""
    while True:
        value = input(prompt).strip()
        if not value and default is not None:
            return default
        if value or not required:
            return value
        print("❌ This field is required")


def confirm(prompt, default=True):
    """Yes/no question; an empty answer takes the default."""
    while True:
        answer = input(prompt).strip().lower()
        if not answer:
            return default
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False
        print("❌ Please enter Y or n")


def prompt_repo():
    while True:
        repo = get_input("Enter GitHub repository (org/repo): ", required=False)
        if not repo:
            print("❌ Repository is required.")
            continue
        if "/" not in repo:
            print("❌ Repository must be provided in org/repo format.")
            continue
        return repo


def prompt_environment():
    while True:
        name = get_input("Enter GitHub environment name: ", required=False)
        if name:
            return name
        print("❌ Environment name cannot be empty.")


def environment_slug(environment):
    """Turn an environment name into something safe for an app display name."""
    slug = re.sub(r"\s+", "-", environment.strip())
    slug = re.sub(r"-+", "-", slug)
    slug = re.sub(r"[^A-Za-z0-9-]", "", slug)
    slug = slug.strip("-")
    return slug or "Environment"


def default_app_name(environment, prefix="Github-OIDC"):
    return f"{prefix}-{environment_slug(environment)}"


def prompt_app_name(environment, prefix="Github-OIDC"):
    default = default_app_name(environment, prefix)
    return get_input(f"Enter Azure AD app registration name [{default}]: ", default=default)


def prompt_fics_file(default="fics.json"):
    while True:
        path = get_input(f"Enter path to federated identity definitions [{default}]: ", default=default)
        if Path(path).is_file():
            return path
        print(f"❌ File not found: {path}")
