import re
from pathlib import Path

import ledger.models  # noqa: F401
from ledger.db import Base


def test_alembic_revision_ids_fit_version_table_limit():
    """Postgres alembic_version.version_num is varchar(32) in this project."""
    versions_dir = Path(__file__).resolve().parents[2] / "alembic" / "versions"
    too_long: list[tuple[str, str, int]] = []

    for migration_file in versions_dir.glob("*.py"):
        text = migration_file.read_text(encoding="utf-8")
        marker = 'revision = "'
        idx = text.find(marker)
        if idx == -1:
            continue
        start = idx + len(marker)
        end = text.find('"', start)
        revision = text[start:end]
        if len(revision) > 32:
            too_long.append((migration_file.name, revision, len(revision)))

    assert not too_long, (
        "Alembic revision IDs must be <= 32 chars to fit alembic_version.version_num. "
        f"Found: {too_long}"
    )


def test_migrations_form_one_chain_and_create_every_table():
    versions_dir = Path(__file__).resolve().parents[2] / "alembic" / "versions"
    revisions = {}
    created = set()
    for migration_file in versions_dir.glob("*.py"):
        text = migration_file.read_text(encoding="utf-8")
        revision = re.search(r'^revision = "([^"]+)"', text, re.M).group(1)
        down = re.search(r'^down_revision = (?:"([^"]+)"|None)', text, re.M).group(1)
        revisions[revision] = down
        created.update(re.findall(r'create_table\(\s*"([a-z_]+)"', text))

    heads = set(revisions) - set(revisions.values())
    assert len(heads) == 1
    assert list(revisions.values()).count(None) == 1
    assert created == set(Base.metadata.tables)
