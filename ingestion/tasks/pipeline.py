"""Celery task for one scrape → decide → deliver run."""

from __future__ import annotations

from typing import Callable
import uuid

from celery import shared_task

from ingestion.connectors.base import BaseFeedConnector
from ingestion.connectors.http_feed import HttpFeedConnector
from ingestion.db.models import Base, JobStage
from ingestion.db.session import get_engine, session_scope
from ingestion.models.domain import RunReport
from ingestion.repositories.ledger import NewsLedger
from ingestion.repositories.rules import get_filter_settings, list_active_rules
from ingestion.repositories.runs import JobRunRecorder
from ingestion.services.enricher import enrich_items
from ingestion.services.orchestrator import DecisionOrchestrator
from ingestion.services.queue_builder import build_queue
from ingestion.settings import Settings, get_settings
from ingestion.utils.logging import get_logger, hash_prefix
from publish.delivery import Publisher
from publish.telegram import TelegramPublisher
from translation.client import Translator, build_translator

logger = get_logger(__name__)

# Collaborator factories are pluggable for tests and alternative deployments.
FEED_FACTORY: Callable[[], BaseFeedConnector] = HttpFeedConnector
TRANSLATOR_FACTORY: Callable[[], Translator] = build_translator
PUBLISHER_FACTORY: Callable[[], Publisher] = TelegramPublisher.from_env


def _ensure_schema(settings: Settings) -> None:
    # For local runs/tests, ensure schema exists (idempotent)
    Base.metadata.create_all(bind=get_engine(settings))


def run_pipeline_core(
    *,
    feed: BaseFeedConnector | None = None,
    translator: Translator | None = None,
    publisher: Publisher | None = None,
    settings: Settings | None = None,
) -> RunReport:
    """Core logic of one run; test-friendly.

    Feed and ledger failures abort the run and propagate; per-candidate
    failures are reported in the returned ``RunReport``.
    """
    cfg = settings or get_settings()
    _ensure_schema(cfg)
    feed = feed or FEED_FACTORY()
    translator = translator or TRANSLATOR_FACTORY()
    publisher = publisher or PUBLISHER_FACTORY()
    trace_id = str(uuid.uuid4())

    with session_scope(cfg) as session, JobRunRecorder(
        session,
        stage=JobStage.PIPELINE,
        source=getattr(feed, "source", None),
        task_name="run_pipeline",
        trace_id=trace_id,
    ) as job:
        ledger = NewsLedger(session, timezone=cfg.ledger_timezone)
        cursor = ledger.get_cursor()
        logger.info(
            "pipeline.start",
            extra={"trace_id": trace_id, "cursor": hash_prefix(cursor.content_hash), "cold": cursor.is_cold},
        )

        items = feed.fetch(cfg.scan_depth, max_attempts=cfg.feed_max_attempts)
        queue = build_queue(items, cursor, cfg.scan_depth)
        report = RunReport(trace_id=trace_id, cursor_before=cursor, cursor_after=cursor)
        if not queue:
            logger.info("pipeline.nothing_new", extra={"trace_id": trace_id, "scanned": len(items)})
            job.items_seen = 0
            return report

        enriched = enrich_items(queue, cfg.viewport_height)
        if enriched.scroll_up > 0:
            feed.scroll(-enriched.scroll_up)

        orchestrator = DecisionOrchestrator(
            session,
            feed=feed,
            translator=translator,
            publisher=publisher,
            rules=list_active_rules(session),
            filter_settings=get_filter_settings(session),
            excluded_authors=cfg.excluded_authors,
            near_duplicate_threshold=cfg.near_duplicate_threshold,
            near_duplicate_window=cfg.near_duplicate_window,
            timezone=cfg.ledger_timezone,
            trace_id=trace_id,
        )
        report.results = orchestrator.run(enriched.oldest_first)
        report.cursor_after = DecisionOrchestrator.next_cursor(cursor, report.results)

        if report.cursor_after != cursor:
            ledger.set_cursor(report.cursor_after)
            logger.info(
                "pipeline.cursor_advanced",
                extra={"trace_id": trace_id, "cursor": hash_prefix(report.cursor_after.content_hash)},
            )
        else:
            logger.info("pipeline.cursor_unchanged", extra={"trace_id": trace_id})

        job.items_seen = len(report.results)
        job.items_failed = len(report.failures)
        logger.info(
            "pipeline.done",
            extra={
                "trace_id": trace_id,
                "candidates": len(report.results),
                "failed": len(report.failures),
            },
        )
        return report


@shared_task(
    name="ingestion.tasks.pipeline.run_pipeline",
    queue="ingestion.pipeline",
)
def run_pipeline() -> dict:  # pragma: no cover - thin Celery wrapper
    report = run_pipeline_core()
    return {
        "trace_id": report.trace_id,
        "candidates": len(report.results),
        "failed": len(report.failures),
        "cursor": report.cursor_after.content_hash,
    }
