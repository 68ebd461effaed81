"""Financial sentinel: portfolio losses and a stalling deal pipeline.

Detects:
- Portfolio loss: day P&L below -500 -> critical, below -100 -> urgent.
- Stale deal: an open deal with no fresh analysis for more than 7 days.
  Under-contract deals are urgent (due-diligence windows close), any other
  open status is attention.

Deals never analysed at all are skipped: there is no clock to measure.
"""

from datetime import timedelta

from detectors.base import BaseDetector, plural
from schemas.context import AnticipationContext, PortfolioData
from schemas.signal import LifeDomain, Signal, SignalSeverity, SignalType


class FinancialSentinel(BaseDetector):
    name = "financial-sentinel"

    CRITICAL_LOSS = -500.0
    URGENT_LOSS = -100.0
    STALE_DEAL_AGE = timedelta(days=7)
    CLOSED_DEAL_STATUSES = {"closed", "dead"}

    def detect(self, context: AnticipationContext) -> list[Signal]:
        signals: list[Signal] = []

        portfolio = context.integrations.portfolio
        if portfolio is not None:
            signals.extend(self._check_portfolio(context, portfolio))

        signals.extend(self._check_deals(context))
        return signals

    # ── Private ───────────────────────────────────────────────────────────────

    def _check_portfolio(self, context: AnticipationContext, portfolio: PortfolioData) -> list[Signal]:
        pnl = portfolio.day_pnl
        if pnl < self.CRITICAL_LOSS:
            severity = SignalSeverity.CRITICAL
            title = f"Critical Portfolio Loss: ${abs(pnl):,.2f}"
            action = "Review positions immediately and consider risk management actions"
        elif pnl < self.URGENT_LOSS:
            severity = SignalSeverity.URGENT
            title = f"Portfolio Loss: ${abs(pnl):,.2f}"
            action = "Review underperforming positions"
        else:
            return []

        return [self.build_signal(
            context,
            type_=SignalType.PORTFOLIO_ALERT,
            severity=severity,
            domain=LifeDomain.FINANCE,
            title=title,
            body=(
                f"Day P&L is ${pnl:,.2f} with {plural(len(portfolio.positions), 'active position')}. "
                f"Equity: ${portfolio.equity:,.2f}"
            ),
            suggested_action=action,
            key=(context.today.isoformat(),),
        )]

    def _check_deals(self, context: AnticipationContext) -> list[Signal]:
        signals = []
        for deal in context.deals:
            if deal.status in self.CLOSED_DEAL_STATUSES or deal.last_analysis_at is None:
                continue

            age = context.now - deal.last_analysis_at
            if age <= self.STALE_DEAL_AGE:
                continue

            days = age.days
            if deal.status == "under_contract":
                signals.append(self.build_signal(
                    context,
                    type_=SignalType.DEAL_UPDATE,
                    severity=SignalSeverity.URGENT,
                    domain=LifeDomain.BUSINESS_RE,
                    title=f"Under-Contract Deal Needs Analysis: {deal.address}",
                    body=(
                        f"Deal under contract for {days} days without fresh analysis. "
                        "Due diligence period may be ending."
                    ),
                    suggested_action="Update analysis and verify all contingencies are complete",
                    related_entity_ids=[deal.id],
                ))
            else:
                signals.append(self.build_signal(
                    context,
                    type_=SignalType.DEAL_UPDATE,
                    severity=SignalSeverity.ATTENTION,
                    domain=LifeDomain.BUSINESS_RE,
                    title=f"Stale Deal: {deal.address}",
                    body=(
                        f"Deal has been in {deal.status} status for {days} days without analysis. "
                        f"Strategy: {deal.strategy}"
                    ),
                    suggested_action="Run fresh comps and update deal analysis",
                    related_entity_ids=[deal.id],
                ))
        return signals
