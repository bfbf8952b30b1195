"""
PostgreSQL 17 (PGDG) with PostGIS and pgvector built from source.

pgvector is compared against the ``default_version`` in the installed
extension control file; a mismatch rebuilds it and runs
``ALTER EXTENSION vector UPDATE`` so existing databases pick it up.
"""

from __future__ import annotations

import logging
import re
import tempfile
from pathlib import Path

from aiforge.core.components.registry import REGISTRY
from aiforge.core.context import RunContext
from aiforge.core.models.outcome import InstallOutcome

logger = logging.getLogger(__name__)

PG_MAJOR = "17"
PG_PACKAGES = [
    f"postgresql-{PG_MAJOR}",
    f"postgresql-client-{PG_MAJOR}",
    f"postgresql-{PG_MAJOR}-postgis-3",
    f"postgresql-server-dev-{PG_MAJOR}",
]
PG_CONFIG = f"/usr/lib/postgresql/{PG_MAJOR}/bin/pg_config"
VECTOR_CONTROL = Path(f"/usr/share/postgresql/{PG_MAJOR}/extension/vector.control")
PGVECTOR_REPO = "https://github.com/pgvector/pgvector.git"

_DEFAULT_VERSION_RE = re.compile(r"""^\s*default_version\s*=\s*'?([^'\s]+)'?""", re.MULTILINE)


def installed_pgvector_version(control: Path = VECTOR_CONTROL) -> str | None:
    """Read ``default_version`` from the pgvector control file."""
    try:
        text = control.read_text(encoding="utf-8")
    except OSError:
        return None
    match = _DEFAULT_VERSION_RE.search(text)
    return match.group(1) if match else None


def build_pgvector(ctx: RunContext, version: str) -> None:
    """Clone the tagged release and ``make install`` it against PG 17."""
    logger.info("Building pgvector v%s from source", version)
    with tempfile.TemporaryDirectory(prefix="ai-forge-") as tmp:
        src = Path(tmp) / "pgvector"
        ctx.run(
            ["git", "clone", "--depth", "1", "--branch", f"v{version}", PGVECTOR_REPO, str(src)],
            step=f"clone pgvector v{version}",
        )
        pg_config = f"PG_CONFIG={PG_CONFIG}"
        ctx.run(["make", pg_config], step="build pgvector", cwd=src)
        ctx.run(["make", "install", pg_config], step="install pgvector", cwd=src, sudo=True)


def psql_as_postgres(ctx: RunContext, sql: str, *, step: str) -> bool:
    """Run one statement as the ``postgres`` superuser (best effort)."""
    return ctx.try_run(
        ["sudo", "-u", "postgres", "psql", "-c", sql],
        step=step,
        retry=f'sudo -u postgres psql -c "{sql}"',
    )


@REGISTRY.component(
    "db",
    8,
    "PostgreSQL 17 + PostGIS + pgvector",
    settings=("PGVECTOR_VERSION",),
)
def install_database(ctx: RunContext) -> InstallOutcome:
    wanted = ctx.settings["PGVECTOR_VERSION"]
    missing = ctx.packages.missing(PG_PACKAGES)
    installed_vector = installed_pgvector_version(VECTOR_CONTROL)

    if not missing and installed_vector == wanted:
        return InstallOutcome.skip("db", f"PostgreSQL {PG_MAJOR} and pgvector {wanted} already installed")

    if missing:
        ctx.repos.ensure_known("pgdg")
        ctx.packages.install(PG_PACKAGES)

    metadata: dict[str, str | None] = {"pgvector_from": installed_vector, "pgvector_to": wanted}
    if installed_vector != wanted:
        if installed_vector:
            logger.info("Upgrading pgvector %s -> %s", installed_vector, wanted)
        ctx.packages.install(["build-essential", "git"])
        build_pgvector(ctx, wanted)
        psql_as_postgres(ctx, "CREATE EXTENSION IF NOT EXISTS vector;", step="enable pgvector")
        if installed_vector:
            psql_as_postgres(ctx, "ALTER EXTENSION vector UPDATE;", step="update pgvector extension")

    return InstallOutcome.success(
        "db",
        f"PostgreSQL {PG_MAJOR} with PostGIS and pgvector {wanted} ready",
        metadata=metadata,
    )
