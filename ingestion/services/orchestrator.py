"""Per-candidate decision sequence: exclusion, rules, dedup, translate, deliver, record."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ingestion.connectors.base import BaseFeedConnector
from ingestion.connectors.media import is_hls_playlist
from ingestion.db.models import FilterAction, NewsStatus
from ingestion.models.domain import (
    BoundaryCursor,
    CandidateItem,
    CandidateResult,
    FailureKind,
    FilterRule,
    FilterSettings,
    Outcome,
)
from ingestion.repositories.ledger import NewsLedger
from ingestion.repositories.moderation import insert_moderation_item
from ingestion.services.rule_engine import decide
from ingestion.services.similarity import find_near_duplicate
from ingestion.utils.logging import get_logger, hash_prefix
from publish.delivery import Publisher, choose_delivery, deliver
from publish.telegram import DeliveryError, PermanentDeliveryError
from translation.client import Translator, translate_or_original

logger = get_logger(__name__)


class DecisionOrchestrator:
    """Runs candidates strictly in order and commits each one on its own.

    A failing candidate is rolled back and reported as a ``CandidateResult``
    with a ``FailureKind``; the loop carries on with the next candidate.
    """

    def __init__(
        self,
        session: Session,
        *,
        feed: BaseFeedConnector,
        translator: Translator,
        publisher: Publisher,
        rules: Sequence[FilterRule],
        filter_settings: FilterSettings,
        excluded_authors: Iterable[str] = (),
        near_duplicate_threshold: float = 75.0,
        near_duplicate_window: int = 10,
        timezone: str = "UTC",
        trace_id: Optional[str] = None,
    ) -> None:
        self._session = session
        self._feed = feed
        self._translator = translator
        self._publisher = publisher
        self._rules = list(rules)
        self._filter_settings = filter_settings
        self._excluded = {a.strip().casefold() for a in excluded_authors if a and a.strip()}
        self._threshold = float(near_duplicate_threshold)
        self._window = int(near_duplicate_window)
        self._trace_id = trace_id
        self.ledger = NewsLedger(session, timezone=timezone)

    def run(self, candidates: Sequence[CandidateItem]) -> List[CandidateResult]:
        return [self.handle(candidate) for candidate in candidates]

    @staticmethod
    def next_cursor(cursor: BoundaryCursor, results: Sequence[CandidateResult]) -> BoundaryCursor:
        """Cursor after a run: the last result that was handled and recorded."""
        for result in reversed(results):
            if result.advances_boundary:
                return cursor.advanced_to(result.content_hash)
        return cursor

    def handle(self, candidate: CandidateItem) -> CandidateResult:
        ctx = self._ctx(candidate)
        try:
            result = self._process(candidate)
            self._session.commit()
        except DeliveryError as exc:
            result = self._fail(candidate, FailureKind.DELIVERY, exc)
        except SQLAlchemyError as exc:
            result = self._fail(candidate, FailureKind.LEDGER, exc)
        except Exception as exc:
            result = self._fail(candidate, FailureKind.UNEXPECTED, exc)
        else:
            logger.info(
                "pipeline.candidate_done",
                extra={**ctx, "outcome": result.outcome.value if result.outcome else None},
            )
        finally:
            if candidate.layout_height > 0:
                self._feed.scroll(candidate.layout_height)
        return result

    # --- internals ---

    def _ctx(self, candidate: CandidateItem) -> dict:
        return {
            "trace_id": self._trace_id,
            "index": candidate.sequence_index,
            "hash": hash_prefix(candidate.content_hash),
        }

    def _fail(self, candidate: CandidateItem, kind: FailureKind, exc: Exception) -> CandidateResult:
        self._session.rollback()
        logger.warning(
            "pipeline.candidate_failed",
            extra={**self._ctx(candidate), "failure": kind.value, "error": str(exc)},
            exc_info=kind is FailureKind.UNEXPECTED,
        )
        return CandidateResult(
            sequence_index=candidate.sequence_index,
            content_hash=candidate.content_hash,
            failure=kind,
            error=str(exc),
        )

    def _done(self, candidate: CandidateItem, outcome: Outcome, message_id: Optional[int] = None) -> CandidateResult:
        return CandidateResult(
            sequence_index=candidate.sequence_index,
            content_hash=candidate.content_hash,
            outcome=outcome,
            message_id=message_id,
        )

    def _is_excluded(self, candidate: CandidateItem) -> bool:
        author = (candidate.author or "").strip().casefold()
        return bool(author) and author in self._excluded

    def _process(self, candidate: CandidateItem) -> CandidateResult:
        if self._is_excluded(candidate):
            logger.info("pipeline.author_excluded", extra={**self._ctx(candidate), "author": candidate.author})
            return self._record_handled(candidate, NewsStatus.FILTERED, Outcome.FILTERED)

        decision = decide(candidate.raw_text, self._rules, self._filter_settings)
        if decision.action is FilterAction.REJECT:
            logger.info("pipeline.rule_rejected", extra={**self._ctx(candidate), "rule_id": decision.matched_rule_id})
            return self._record_handled(candidate, NewsStatus.FILTERED, Outcome.REJECTED, note=decision.note)

        if decision.action is FilterAction.MODERATION:
            return self._hold_for_moderation(candidate, decision.matched_rule_id, decision.note)

        if self.ledger.has_hash(candidate.content_hash):
            logger.info("pipeline.hash_duplicate", extra=self._ctx(candidate))
            return self._done(candidate, Outcome.DUPLICATE)

        return self._publish(candidate)

    def _record_handled(
        self, candidate: CandidateItem, status: NewsStatus, outcome: Outcome, note: Optional[str] = None
    ) -> CandidateResult:
        # an already-recorded hash keeps its status
        if self.ledger.has_hash(candidate.content_hash):
            return self._done(candidate, Outcome.DUPLICATE)
        self.ledger.record(candidate.content_hash, text_original=candidate.raw_text, status=status)
        if outcome is Outcome.REJECTED:
            self.ledger.log_filter_hit(note)
        return self._done(candidate, outcome)

    def _resolve_media(self, candidate: CandidateItem) -> Tuple[Optional[str], Optional[str]]:
        try:
            return self._feed.locate(candidate.item).resolve()
        except Exception as exc:
            logger.warning("pipeline.media_degraded", extra={**self._ctx(candidate), "error": str(exc)})
            return None, None

    def _hold_for_moderation(
        self, candidate: CandidateItem, rule_id: Optional[str], note: Optional[str]
    ) -> CandidateResult:
        if self.ledger.has_hash(candidate.content_hash):
            return self._done(candidate, Outcome.DUPLICATE)
        image_url, video_url = self._resolve_media(candidate)
        media = video_url if video_url and not is_hls_playlist(video_url) else image_url
        entry = insert_moderation_item(
            self._session,
            text=candidate.raw_text,
            content_hash=candidate.content_hash,
            filter_id=rule_id,
            media=media,
        )
        self.ledger.record(candidate.content_hash, text_original=candidate.raw_text, status=NewsStatus.REVIEW)
        self.ledger.log_filter_hit(note)
        logger.info(
            "pipeline.moderation_queued",
            extra={**self._ctx(candidate), "rule_id": rule_id, "item_id": entry.id},
        )
        return self._done(candidate, Outcome.MODERATION)

    def _publish(self, candidate: CandidateItem) -> CandidateResult:
        ctx = self._ctx(candidate)
        translated = translate_or_original(self._translator, candidate.raw_text, **ctx)

        recent = [r for r in self.ledger.recent_published(self._window) if r.channel_message_id is not None]
        match = find_near_duplicate(candidate.raw_text, recent, self._threshold)
        if match is not None:
            message_id = int(match.record.channel_message_id)
            kind = match.record.delivery_kind or "text"
            try:
                self._publisher.edit_text(message_id, translated, kind)
            except PermanentDeliveryError as exc:
                logger.warning(
                    "pipeline.edit_fallback",
                    extra={**ctx, "message_id": message_id, "score": round(match.score, 1), "error": str(exc)},
                )
            else:
                self.ledger.record(
                    candidate.content_hash,
                    text_original=candidate.raw_text,
                    text_translated=translated,
                    channel_message_id=message_id,
                    delivery_kind=kind,
                    status=NewsStatus.PUBLISHED,
                )
                logger.info(
                    "pipeline.edited",
                    extra={**ctx, "message_id": message_id, "record_id": match.record.id, "score": round(match.score, 1)},
                )
                return self._done(candidate, Outcome.EDITED, message_id)

        image_url, video_url = self._resolve_media(candidate)
        delivery = deliver(self._publisher, choose_delivery(video_url, image_url), translated)
        self.ledger.record(
            candidate.content_hash,
            text_original=candidate.raw_text,
            text_translated=translated,
            channel_message_id=delivery.message_id,
            delivery_kind=delivery.kind,
            status=NewsStatus.PUBLISHED,
        )
        logger.info("pipeline.published", extra={**ctx, "message_id": delivery.message_id, "kind": delivery.kind})
        return self._done(candidate, Outcome.PUBLISHED, delivery.message_id)
