"""
RateHistoryService -- dated rate changes for one jurisdiction.

Contract:
    Every change keeps a jurisdiction's history well formed: intervals
    contiguous and non-overlapping, at most one open record.

    supersede_rate(j, r, d)
        open [a, None)  ->  [a, d) + [d, None) at rate r
    revert_current_rate(id)
        [a, b) + [b, None)  ->  [a, None)

Failure modes:
    - RateHistoryError: no open record to supersede, an effective date not
      after the open record's start, reverting a closed record, or a
      change that would leave the history malformed.
    - RateRecordNotFoundError: unknown rate id.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from geotax_engines.rate_history import active_rate, history_violations, open_record
from geotax_kernel.db.engine import session_scope
from geotax_kernel.domain.decimal_math import round_rate, to_decimal
from geotax_kernel.domain.values import RateRecord
from geotax_kernel.exceptions import RateHistoryError, RateRecordNotFoundError
from geotax_kernel.logging_config import get_logger
from geotax_kernel.models.jurisdiction import TaxRateModel

logger = get_logger("services.rate_history")


class RateHistoryService:
    """Reads and edits the rate history of jurisdictions."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def rate_history(self, jurisdiction_id: UUID) -> list[RateRecord]:
        """All records for the jurisdiction, newest first."""
        session = self._session_factory()
        try:
            return [m.to_dto() for m in self._load(session, jurisdiction_id, newest_first=True)]
        finally:
            session.close()

    def rate_on(self, jurisdiction_id: UUID, on_date: date) -> RateRecord | None:
        return active_rate(self.rate_history(jurisdiction_id), on_date)

    def supersede_rate(
        self,
        jurisdiction_id: UUID,
        new_rate: str | Decimal,
        effective_date: date,
    ) -> RateRecord:
        rate = round_rate(to_decimal(new_rate))
        if rate < 0:
            raise RateHistoryError(str(jurisdiction_id), f"negative rate {rate}")

        with session_scope(self._session_factory) as session:
            models = self._load(session, jurisdiction_id)
            current = open_record([m.to_dto() for m in models])
            if current is None:
                raise RateHistoryError(str(jurisdiction_id), "no open rate record")
            if effective_date <= current.valid_from:
                raise RateHistoryError(
                    str(jurisdiction_id),
                    f"effective date {effective_date} is not after "
                    f"current start {current.valid_from}",
                )

            current_model = next(m for m in models if m.id == current.rate_id)
            current_model.valid_to = effective_date
            new_model = TaxRateModel(
                jurisdiction_id=jurisdiction_id,
                rate=rate,
                valid_from=effective_date,
                valid_to=None,
            )
            session.add(new_model)
            self._check(jurisdiction_id, [m.to_dto() for m in models] + [new_model.to_dto()])
            session.flush()
            record = new_model.to_dto()

        logger.info(
            "rate_superseded",
            extra={
                "jurisdiction_id": str(jurisdiction_id),
                "previous_rate": current.rate,
                "new_rate": rate,
                "effective_date": effective_date,
            },
        )
        return record

    def revert_current_rate(self, rate_id: UUID) -> RateRecord | None:
        """
        Delete the open record and reopen its predecessor.

        Returns the reopened record, or None when the reverted record was
        the jurisdiction's only one.
        """
        with session_scope(self._session_factory) as session:
            target = session.get(TaxRateModel, rate_id)
            if target is None:
                raise RateRecordNotFoundError(str(rate_id))
            jurisdiction_id = target.jurisdiction_id
            if target.valid_to is not None:
                raise RateHistoryError(
                    str(jurisdiction_id),
                    f"rate {rate_id} is closed; only the open record can be reverted",
                )

            models = self._load(session, jurisdiction_id)
            predecessor = next(
                (m for m in models if m.valid_to == target.valid_from),
                None,
            )
            session.delete(target)
            if predecessor is not None:
                predecessor.valid_to = None
            remaining = [m.to_dto() for m in models if m.id != target.id]
            self._check(jurisdiction_id, remaining)
            reopened = predecessor.to_dto() if predecessor is not None else None

        logger.info(
            "rate_reverted",
            extra={
                "jurisdiction_id": str(jurisdiction_id),
                "rate_id": str(rate_id),
                "reopened_rate_id": str(reopened.rate_id) if reopened else None,
            },
        )
        return reopened

    @staticmethod
    def _load(
        session: Session,
        jurisdiction_id: UUID,
        newest_first: bool = False,
    ) -> list[TaxRateModel]:
        order = TaxRateModel.valid_from.desc() if newest_first else TaxRateModel.valid_from
        return list(
            session.scalars(
                select(TaxRateModel)
                .where(TaxRateModel.jurisdiction_id == jurisdiction_id)
                .order_by(order)
            ).all()
        )

    @staticmethod
    def _check(jurisdiction_id: UUID, records: list[RateRecord]) -> None:
        problems = history_violations(records)
        if problems:
            raise RateHistoryError(str(jurisdiction_id), "; ".join(problems))
