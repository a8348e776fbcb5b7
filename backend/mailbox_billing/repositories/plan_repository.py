from sqlalchemy.orm import Session

from mailbox_billing.models.plan import Plan


class PlanRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_active_by_interval(self, interval: str) -> Plan | None:
        return (
            self.db.query(Plan)
            .filter(
                Plan.active.is_(True),
                Plan.retired_at.is_(None),
                Plan.interval == interval,
            )
            .order_by(Plan.sort.asc(), Plan.price_pence.asc())
            .first()
        )
