"""
test_alembic.py — Verify Alembic migration setup and structure.

Migrations are read as source text so they can be checked without a live
database or Alembic's runtime context.

Called by: pytest
Depends on: alembic/, app.rpc
"""

import ast
import re
from pathlib import Path

from app.rpc import PROCEDURES

ROOT = Path(__file__).parent.parent
MIGRATION_DIR = ROOT / "alembic" / "versions"


def _module_constants(path: Path) -> dict:
    """Top-level `name = "literal"` / `name: T = literal` assignments of a migration."""
    tree = ast.parse(path.read_text())
    out = {}
    for node in tree.body:
        if isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name) and node.value is not None:
            out[node.target.id] = ast.literal_eval(node.value)
        elif isinstance(node, ast.Assign) and isinstance(node.targets[0], ast.Name):
            try:
                out[node.targets[0].id] = ast.literal_eval(node.value)
            except ValueError:
                continue
    return out


def _functions(path: Path) -> set[str]:
    return {n.name for n in ast.parse(path.read_text()).body if isinstance(n, ast.FunctionDef)}


def test_migrations_form_a_single_chain():
    files = sorted(MIGRATION_DIR.glob("*.py"))
    assert len(files) >= 2
    revisions = [_module_constants(f) for f in files]
    assert revisions[0]["down_revision"] is None, "Initial migration should have no parent"
    for parent, child in zip(revisions, revisions[1:]):
        assert child["down_revision"] == parent["revision"]


def test_every_migration_has_upgrade_and_downgrade():
    for path in MIGRATION_DIR.glob("*.py"):
        assert {"upgrade", "downgrade"} <= _functions(path), path.name


def test_initial_migration_uses_metadata():
    """Baseline migration builds and drops every model table from Base.metadata."""
    src = (MIGRATION_DIR / "001_initial_schema.py").read_text()
    assert "Base.metadata.create_all" in src
    assert "Base.metadata.drop_all" in src


def test_every_database_function_is_installed():
    """Each procedure the services call has a CREATE FUNCTION in the migration."""
    src = (MIGRATION_DIR / "002_moderation_functions.py").read_text()
    created = set(re.findall(r"CREATE OR REPLACE FUNCTION (\w+)\(", src))
    assert set(PROCEDURES) <= created


def test_env_py_imports_all_models():
    """env.py must import Base so autogenerate sees all tables."""
    content = (ROOT / "alembic" / "env.py").read_text()
    assert "from app.models import Base" in content


def test_no_create_all_in_main():
    """main.py must NOT use create_all — Alembic manages schema."""
    content = (ROOT / "app" / "main.py").read_text()
    assert "create_all" not in content, "Remove Base.metadata.create_all — use Alembic"
