"""Cross-domain correlator: patterns across the signals already on the board.

Works on context.signals (the signal set as it stood when the snapshot was
taken), not on raw domain data. Only active signals count, and this
detector's own earlier output is ignored so it never correlates itself.

Detects:
- Domain overload: 3+ active signals in one domain.
- Real estate + finance: both domains active at once -> financial_update.
- Work-life balance: family plus any business domain -> context_switch_prep.
"""

from collections import defaultdict

from detectors.base import BaseDetector
from schemas.context import AnticipationContext
from schemas.signal import LifeDomain, Signal, SignalSeverity, SignalType

BUSINESS_DOMAINS = (LifeDomain.BUSINESS_RE, LifeDomain.BUSINESS_TRADING, LifeDomain.BUSINESS_TECH)


class CrossDomainCorrelator(BaseDetector):
    name = "cross-domain-correlator"

    OVERLOAD_THRESHOLD = 3

    def detect(self, context: AnticipationContext) -> list[Signal]:
        by_domain: dict[LifeDomain, list[Signal]] = defaultdict(list)
        for s in context.signals:
            if s.source != self.name and s.is_active(context.now):
                by_domain[s.domain].append(s)

        if not by_domain:
            return []

        day = context.today.isoformat()
        signals: list[Signal] = []

        for domain, members in by_domain.items():
            if len(members) < self.OVERLOAD_THRESHOLD:
                continue
            severities = ", ".join(s.severity.value for s in members)
            signals.append(self.build_signal(
                context,
                type_=SignalType.PATTERN_INSIGHT,
                severity=SignalSeverity.ATTENTION,
                domain=domain,
                title=f"Domain Overload: {domain.value}",
                body=(
                    f"{len(members)} signals detected in {domain.value} domain "
                    f"(severities: {severities}). This domain may need focused attention."
                ),
                suggested_action=f"Block time to address {domain.value} items systematically",
                related_entity_ids=[s.id for s in members],
                key=("overload", domain.value, day),
            ))

        real_estate = by_domain.get(LifeDomain.BUSINESS_RE, [])
        finance = by_domain.get(LifeDomain.FINANCE, [])
        if real_estate and finance:
            signals.append(self.build_signal(
                context,
                type_=SignalType.FINANCIAL_UPDATE,
                severity=SignalSeverity.ATTENTION,
                domain=LifeDomain.BUSINESS_RE,
                title="Real Estate + Finance Activity Detected",
                body=(
                    f"{len(real_estate)} real estate signal(s) and {len(finance)} finance signal(s) "
                    "active. Deal pipeline and portfolio both need attention."
                ),
                suggested_action="Review cash flow availability for real estate deals given portfolio status",
                related_entity_ids=[s.id for s in real_estate + finance],
                key=("re_finance", day),
            ))

        family = by_domain.get(LifeDomain.FAMILY, [])
        business_domains = [d for d in BUSINESS_DOMAINS if d in by_domain]
        if family and business_domains:
            business = [s for d in business_domains for s in by_domain[d]]
            signals.append(self.build_signal(
                context,
                type_=SignalType.CONTEXT_SWITCH_PREP,
                severity=SignalSeverity.ATTENTION,
                domain=LifeDomain.FAMILY,
                title="Work-Life Balance: Family + Business Activity",
                body=(
                    f"{len(family)} family signal(s) and {len(business)} business signal(s) across "
                    f"{', '.join(d.value for d in business_domains)}. Context switching may be needed."
                ),
                suggested_action="Plan transition time between family and business responsibilities",
                related_entity_ids=[s.id for s in family + business],
                key=("work_life", day),
            ))

        return signals
