"""GitHub CLI wrapper: authentication, environments and Actions secrets."""
from typing import List, Optional
from urllib.parse import quote

from oidc_setup.commands import run_command, run_json
from oidc_setup.errors import CommandError

GITHUB_ACCEPT = "Accept: application/vnd.github+json"


def environment_path(repo: str, name: str) -> str:
    """REST path of an environment; the name is a single encoded path segment."""
    return f"/repos/{repo}/environments/{quote(name, safe='')}"


class GitHubCli:
    def __init__(self, runner=run_command, host: str = "github.com"):
        self.runner = runner
        self.host = host

    def ensure_login(self):
        result = self.runner(["gh", "auth", "status", "-h", self.host], check=False)
        if result.returncode == 0:
            print("✅ GitHub CLI already authenticated.")
            return
        print("⚠️  GitHub CLI not authenticated. Logging in...")
        self.runner(["gh", "auth", "login", "-h", self.host], capture_output=False)

    def list_environments(self, repo: str) -> List[str]:
        """Names of the repository's environments; empty when they cannot be read."""
        print(f"🔍 Retrieving GitHub environments for {repo}...")
        try:
            data = run_json(
                ["gh", "api", "-H", GITHUB_ACCEPT, f"/repos/{repo}/environments?per_page=100"],
                runner=self.runner,
            )
        except CommandError:
            print("⚠️  Unable to list GitHub environments (verify repository access).")
            return []

        names = [env.get("name", "") for env in (data or {}).get("environments") or []]
        if not names:
            print(f"   No GitHub environments currently exist for {repo}.")
            return []

        print("Available GitHub environments:")
        for name in names:
            print(f"- {name}")
        return names

    def ensure_environment(self, repo: str, name: str):
        """Create the environment, or replace it with an empty configuration."""
        print(f"📦 Ensuring GitHub environment '{name}' exists...")
        self.runner(
            ["gh", "api", "--method", "PUT", "-H", GITHUB_ACCEPT,
             environment_path(repo, name), "--input", "-"],
            input_text="{}",
        )
        print(f"✅ Environment '{name}' is ready.")

    def set_secret(self, repo: str, name: str, value: str, environment: Optional[str] = None):
        cmd = ["gh", "secret", "set", name, "--body", value, "--repo", repo]
        if environment:
            cmd += ["--env", environment]
        self.runner(cmd)
