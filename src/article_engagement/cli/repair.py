from __future__ import annotations

import click

from article_engagement.db.session import SyncSessionLocal, sync_engine
from article_engagement.models.db import Base
from article_engagement.services.counters import find_counter_drift, repair_counters


@click.command()
@click.option("--slug", default=None, help="Only check/repair this article.")
@click.option("--apply", "apply_changes", is_flag=True, help="Reset drifted counters. Default mode is dry-run.")
@click.option("--sample-size", default=10, show_default=True, help="How many drifted articles to print.")
def main(slug: str | None, apply_changes: bool, sample_size: int) -> None:
    """Recompute view/like counters from the view and like rows."""
    Base.metadata.create_all(sync_engine)

    with SyncSessionLocal() as session:
        drift = find_counter_drift(session, slug=slug)

    click.echo(f"Found {len(drift)} article(s) with drifted counters.")
    for row_slug, views, true_views, likes, true_likes in drift[:sample_size]:
        click.echo(f"  {row_slug} | views {views} -> {true_views} | likes {likes} -> {true_likes}")

    if not apply_changes:
        click.echo("Dry-run complete. Re-run with --apply to reset counters.")
        return

    with SyncSessionLocal() as session:
        repaired = repair_counters(session, slug=slug)
    click.echo(f"Repaired {repaired} article(s).")


if __name__ == "__main__":
    main()
