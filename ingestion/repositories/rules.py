"""Read-only access to the Rule Store."""

from __future__ import annotations

from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from ingestion.db.models import FilterRuleRow, FilterSettingsRow
from ingestion.models.domain import FilterRule, FilterSettings


def list_active_rules(session: Session) -> List[FilterRule]:
    stmt = (
        select(FilterRuleRow)
        .where(FilterRuleRow.active.is_(True))
        .order_by(FilterRuleRow.priority.desc(), FilterRuleRow.updated_at.desc())
    )
    return [FilterRule.model_validate(row) for row in session.execute(stmt).scalars()]


def get_filter_settings(session: Session) -> FilterSettings:
    row = session.get(FilterSettingsRow, 1)
    if row is None:
        return FilterSettings()
    return FilterSettings.model_validate(row)
