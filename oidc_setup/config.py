"""Settings, fixed constants and the run context shared by every stage."""
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from oidc_setup.scopes import AuthScope

REQUIRED_TOOLS = ("az", "gh", "jq", "envsubst")

# Built-in Azure role granted to the service principal
ROLE_NAME = "contributor"

CLIENT_ID_SECRET = "AZURE_CLIENT_ID"
TENANT_ID_SECRET = "AZURE_TENANT_ID"

CODESPACES_ISSUE_URL = "https://github.com/Azure/azure-cli/issues/21025"


def load_environment(env_file: Optional[Path] = None) -> None:
    """Load a local .env file so credential placeholders and settings can come from it."""
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()


class Settings(BaseModel):
    settle_seconds: float = 30
    ready_attempts: int = 10
    app_name_prefix: str = "Github-OIDC"
    fics_file: str = "fics.json"
    github_host: str = "github.com"

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        environ = os.environ if environ is None else environ
        return cls(
            settle_seconds=float(environ.get("OIDC_SETTLE_SECONDS", "30")),
            ready_attempts=int(environ.get("OIDC_READY_ATTEMPTS", "10")),
            app_name_prefix=environ.get("OIDC_APP_NAME_PREFIX", "Github-OIDC"),
            fics_file=environ.get("OIDC_FICS_FILE", "fics.json"),
            github_host=environ.get("GITHUB_HOST", "github.com"),
        )


class SetupContext(BaseModel):
    """Everything resolved so far in one run."""

    repo: str
    app_name: str
    fics_file: str
    environments: List[str] = Field(default_factory=list)
    scope: Optional[AuthScope] = None
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    principal_id: Optional[str] = None
