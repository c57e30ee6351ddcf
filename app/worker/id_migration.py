"""
Identifier Migration

Re-keys every post so that its primary key equals the stable identifier in
its own source url. The store only offers single-row atomic operations, so
each post is moved in four acknowledged steps:

    A  detach   - swap the old row's url for a unique placeholder
    B  insert   - insert the copy under the new key with the real url
    C  reparent - point the post's comments at the new key
    D  delete   - drop the old row

Every step is safe to repeat. A run interrupted anywhere can simply be run
again; rows left holding a placeholder are picked up and finished.

Usage:
    python -m app.worker.id_migration [--database-url URL] [--dry-run]
"""

import argparse
import signal
import sys
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..config import get_settings
from ..identifiers import extract, is_placeholder, is_stable_id, make_placeholder, parse_placeholder, source_url
from ..logging_config import migration_logger as logger, timed
from ..store import RecordStore, StoreError

settings = get_settings()

SUCCEEDED = "succeeded"
SKIPPED = "skipped"
ERRORED = "errored"

PHASE_DERIVE = "derive"
PHASE_GUARD = "guard"
PHASE_DETACH = "detach"
PHASE_INSERT = "insert"
PHASE_REPARENT = "reparent"
PHASE_DELETE = "delete"
PHASE_RESTORE = "restore"
PHASE_DONE = "done"


@dataclass
class RecordOutcome:
    """What happened to a single post"""
    old_id: str
    target: Optional[str]
    status: str
    phase: str
    detail: str = ""


@dataclass
class MigrationReport:
    """Counters plus per-record outcomes for one run"""
    succeeded: int = 0
    skipped: int = 0
    errored: int = 0
    outcomes: List[RecordOutcome] = field(default_factory=list)
    stopped_early: bool = False

    def record(self, outcome: RecordOutcome) -> RecordOutcome:
        self.outcomes.append(outcome)
        if outcome.status == SUCCEEDED:
            self.succeeded += 1
        elif outcome.status == SKIPPED:
            self.skipped += 1
        else:
            self.errored += 1
        return outcome

    @property
    def exit_code(self) -> int:
        return 1 if self.errored > 0 else 0


class IdMigration:
    """Moves posts onto their stable identifiers through a RecordStore."""

    def __init__(
        self,
        store: RecordStore,
        placeholder_prefix: Optional[str] = None,
        source_url_template: Optional[str] = None,
        dry_run: bool = False,
    ):
        self.store = store
        self.prefix = placeholder_prefix or settings.placeholder_prefix
        self.source_url_template = source_url_template or settings.source_url_template
        self.dry_run = dry_run

    # ------------------------------------------------------------
    # target derivation
    # ------------------------------------------------------------

    def derive(self, post: Dict) -> Dict[str, Optional[str]]:
        """Work out ``target`` and the real url for a post.

        For a row left mid-migration both come from the placeholder payload,
        never from re-extracting the placeholder itself.
        """
        url = post["url"]
        if not is_placeholder(url, self.prefix):
            return {"target": extract(url), "original_url": url, "placeholder": False}

        _, original_url = parse_placeholder(url, self.prefix, old_id=post["id"])
        if original_url:
            target = extract(original_url)
        elif is_stable_id(post["id"]):
            # Older placeholders embed only the key
            target = post["id"]
        else:
            target = None
        if target and not original_url:
            original_url = source_url(target, self.source_url_template)
        return {"target": target, "original_url": original_url, "placeholder": True}

    # ------------------------------------------------------------
    # per-record procedure
    # ------------------------------------------------------------

    def migrate_post(self, post: Dict) -> RecordOutcome:
        old_id = post["id"]
        derived = self.derive(post)
        target = derived["target"]
        original_url = derived["original_url"]
        detached = derived["placeholder"]

        if target is None:
            if detached:
                return RecordOutcome(old_id, None, ERRORED, PHASE_DERIVE,
                                     "placeholder carries no recoverable identifier")
            return RecordOutcome(old_id, None, SKIPPED, PHASE_DERIVE, "no stable identifier in url")

        if old_id == target:
            if not detached:
                return RecordOutcome(old_id, target, SKIPPED, PHASE_DERIVE, "already keyed by stable identifier")
            if self.dry_run:
                return RecordOutcome(old_id, target, SUCCEEDED, PHASE_RESTORE, "dry run")
            return self._restore_only(old_id, target, original_url)

        try:
            existing = self.store.get("posts", target)
        except StoreError as e:
            return RecordOutcome(old_id, target, ERRORED, PHASE_GUARD, str(e))

        if existing is not None and existing["url"] != original_url:
            # Someone else owns the key; never overwrite it
            if detached and not self.dry_run:
                self._compensate(old_id, original_url)
            return RecordOutcome(old_id, target, ERRORED, PHASE_GUARD,
                                 f"target key already held by a post with url {existing['url']}")

        if self.dry_run:
            return RecordOutcome(old_id, target, SUCCEEDED, PHASE_DONE, "dry run")

        if existing is None:
            if not detached:
                outcome = self._detach(old_id, target, original_url)
                if outcome is not None:
                    return outcome

            outcome = self._insert(post, old_id, target, original_url)
            if outcome is not None:
                return outcome
        else:
            logger.info("New row already present, resuming", old_id=old_id, target=target)

        try:
            self.store.update("comments", {"post_id": old_id}, {"post_id": target})
        except StoreError as e:
            # Old row stays so no comment is left pointing at nothing
            return RecordOutcome(old_id, target, ERRORED, PHASE_REPARENT, str(e))

        try:
            self.store.delete("posts", {"id": old_id})
        except StoreError as e:
            return RecordOutcome(old_id, target, ERRORED, PHASE_DELETE, str(e))

        return RecordOutcome(old_id, target, SUCCEEDED, PHASE_DONE)

    def _detach(self, old_id: str, target: str, original_url: str) -> Optional[RecordOutcome]:
        placeholder = make_placeholder(old_id, original_url, self.prefix)
        try:
            affected = self.store.update("posts", {"id": old_id}, {"url": placeholder})
        except StoreError as e:
            return RecordOutcome(old_id, target, ERRORED, PHASE_DETACH, str(e))
        if not affected:
            return RecordOutcome(old_id, target, ERRORED, PHASE_DETACH, "post disappeared before detach")
        return None

    def _insert(self, post: Dict, old_id: str, target: str, original_url: str) -> Optional[RecordOutcome]:
        new_row = dict(post)
        new_row["id"] = target
        new_row["url"] = original_url
        try:
            self.store.insert("posts", new_row)
        except StoreError as e:
            self._compensate(old_id, original_url)
            return RecordOutcome(old_id, target, ERRORED, PHASE_INSERT, str(e))
        return None

    def _compensate(self, old_id: str, original_url: str) -> None:
        """Best effort: give the old row its real url back."""
        try:
            self.store.update("posts", {"id": old_id}, {"url": original_url})
        except StoreError as e:
            logger.error("Could not restore url after failed insert", error=e, old_id=old_id)

    def _restore_only(self, old_id: str, target: str, original_url: str) -> RecordOutcome:
        try:
            self.store.update("posts", {"id": old_id}, {"url": original_url})
        except StoreError as e:
            return RecordOutcome(old_id, target, ERRORED, PHASE_RESTORE, str(e))
        return RecordOutcome(old_id, target, SUCCEEDED, PHASE_RESTORE, "placeholder url restored")

    # ------------------------------------------------------------
    # batch
    # ------------------------------------------------------------

    @timed(logger)
    def run(self, should_stop: Optional[Callable[[], bool]] = None) -> MigrationReport:
        """Migrate every post; per-record failures never abort the batch."""
        report = MigrationReport()
        logger.info("Starting identifier migration", dry_run=self.dry_run)

        try:
            posts = self.store.select("posts")
        except StoreError as e:
            logger.critical("Could not load posts, nothing migrated", error=e)
            report.errored += 1
            return report

        for post in posts:
            if should_stop is not None and should_stop():
                report.stopped_early = True
                logger.warning("Stop requested, leaving remaining posts untouched",
                               remaining=len(posts) - len(report.outcomes))
                break

            try:
                outcome = self.migrate_post(post)
            except Exception as e:
                logger.error("Unexpected failure migrating post", error=e, old_id=post.get("id"))
                outcome = RecordOutcome(post.get("id"), None, ERRORED, PHASE_DERIVE, str(e))
            report.record(outcome)
            self._log_outcome(outcome)

        logger.info(
            "Migration complete",
            succeeded=report.succeeded,
            skipped=report.skipped,
            errored=report.errored,
        )
        return report

    def _log_outcome(self, outcome: RecordOutcome) -> None:
        context = dict(old_id=outcome.old_id, target=outcome.target, phase=outcome.phase, status=outcome.status)
        if outcome.status == ERRORED:
            logger.error(f"[Error] {outcome.detail}", **context)
        elif outcome.status == SKIPPED:
            logger.info(f"[Skip] {outcome.detail}", **context)
        else:
            logger.info(f"[Success] Migrated to {outcome.target}", **context)


# ============================================================
# INTEGRITY CHECKS
# ============================================================

def find_orphan_comments(store: RecordStore) -> List[Dict]:
    """Comments whose post_id matches no post."""
    post_ids = {p["id"] for p in store.select("posts")}
    return [c for c in store.select("comments") if c["post_id"] not in post_ids]


def find_stale_comment_counts(store: RecordStore) -> List[Dict]:
    """Posts whose cached comment_count disagrees with their live comments."""
    counts = Counter(c["post_id"] for c in store.select("comments"))
    stale = []
    for post in store.select("posts"):
        actual = counts.get(post["id"], 0)
        if post["comment_count"] != actual:
            stale.append({"id": post["id"], "comment_count": post["comment_count"], "actual": actual})
    return stale


def check_integrity(store: RecordStore) -> Dict[str, List[Dict]]:
    """Report, never repair, data problems this migration cannot cause."""
    orphans = find_orphan_comments(store)
    for comment in orphans:
        logger.warning(
            "Data integrity: comment references a missing post",
            comment_id=comment["id"],
            post_id=comment["post_id"],
        )
    stale = find_stale_comment_counts(store)
    for row in stale:
        logger.warning("Data integrity: stale comment_count", **row)
    return {"orphan_comments": orphans, "stale_comment_counts": stale}


# ============================================================
# ENTRY POINT
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Re-key posts onto their stable identifiers")
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    parser.add_argument("--dry-run", action="store_true", help="Classify posts without writing")
    args = parser.parse_args(argv)

    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker
    from ..database import Base, engine as default_engine

    owns_engine = bool(args.database_url)
    engine = create_engine(args.database_url) if owns_engine else default_engine
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    stop = threading.Event()

    def request_stop(signum, frame):
        logger.warning("Signal received, finishing current post", signal=signum)
        stop.set()

    previous = {sig: signal.signal(sig, request_stop) for sig in (signal.SIGINT, signal.SIGTERM)}

    db = Session()
    try:
        store = RecordStore(db)
        report = IdMigration(store, dry_run=args.dry_run).run(should_stop=stop.is_set)
        try:
            check_integrity(store)
        except StoreError as e:
            logger.error("Integrity check could not run", error=e)
    finally:
        db.close()
        if owns_engine:
            engine.dispose()
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    print(f"Success: {report.succeeded}")
    print(f"Skipped: {report.skipped}")
    print(f"Errors: {report.errored}")
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
