from __future__ import annotations
from pathlib import Path
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict, Field
from .errors import PreconditionError

DEFAULT_INSTALL_DIR = Path("/opt/astroboa")
MANDATORY_REPOSITORY = "identities"

SUPPORTED_DATABASES = (
    "derby",
    "postgres-8.2",
    "postgres-8.3",
    "postgres-8.4",
    "postgres-9.0",
    "postgres-9.1",
)


def is_postgres(database: str) -> bool:
    return database.split("-")[0] == "postgres"


class InstallationPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    install_dir: Path
    repo_dir: Path
    database: str = "derby"
    database_admin: str = "sa"
    database_admin_password: str = ""
    database_server: str = "localhost"


def build_plan(
    install_dir: Optional[str] = None,
    repo_dir: Optional[str] = None,
    database: Optional[str] = None,
    database_server: Optional[str] = None,
    database_admin: Optional[str] = None,
    database_admin_password: Optional[str] = None,
) -> InstallationPlan:
    """Apply install defaults to the user supplied options."""
    inst = Path(install_dir) if install_dir else DEFAULT_INSTALL_DIR
    repos = Path(repo_dir) if repo_dir else inst / "repositories"
    db = database or "derby"
    if db not in SUPPORTED_DATABASES:
        raise PreconditionError(
            f"The selected database '{db}' is not supported. "
            f"Supported databases are: {', '.join(SUPPORTED_DATABASES)}"
        )
    if is_postgres(db):
        admin = database_admin or "postgres"
        password = database_admin_password or ""
    else:
        # derby runs embedded with its fixed admin account
        admin = "sa"
        password = ""
    return InstallationPlan(
        install_dir=inst,
        repo_dir=repos,
        database=db,
        database_admin=admin,
        database_admin_password=password,
        database_server=database_server or "localhost",
    )


class PackageSpec(BaseModel):
    name: str
    url: str
    destination: Path
    expected_size: int = Field(..., ge=0)


class RepositoryConfigEntry(BaseModel):
    id: str
    localized_labels: Optional[str] = None
    path: Optional[str] = None


class PersistedServerConfig(BaseModel):
    install_dir: str
    repos_dir: str
    database: str
    database_admin: str
    database_admin_password: str = ""
    database_server: str = "localhost"
    repositories: Dict[str, RepositoryConfigEntry] = Field(default_factory=dict)

    @classmethod
    def from_plan(cls, plan: InstallationPlan) -> "PersistedServerConfig":
        return cls(
            install_dir=str(plan.install_dir),
            repos_dir=str(plan.repo_dir),
            database=plan.database,
            database_admin=plan.database_admin,
            database_admin_password=plan.database_admin_password,
            database_server=plan.database_server,
        )
