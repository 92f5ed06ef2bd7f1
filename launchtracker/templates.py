"""Predefined launch templates applied at plan creation time."""
from __future__ import annotations

from dataclasses import dataclass, field

from launchtracker.enums import KpiCategory, KpiTargetType, KpiUnit, TaskCategory, TaskPriority


@dataclass(frozen=True)
class TemplateTask:
    day_offset: int  # days from the plan start date, 0 = first day
    title: str
    description: str | None
    priority: TaskPriority
    category: TaskCategory
    estimated_minutes: int | None = None


@dataclass(frozen=True)
class TemplateKpi:
    name: str
    category: KpiCategory
    unit: KpiUnit
    target_type: KpiTargetType
    target_value: float


@dataclass(frozen=True)
class LaunchTemplate:
    id: str
    name: str
    description: str
    tasks: tuple[TemplateTask, ...]
    kpis: tuple[TemplateKpi, ...] = field(default_factory=tuple)


_H, _M, _L = TaskPriority.high, TaskPriority.medium, TaskPriority.low
_C = TaskCategory

# (day_offset, title, description, priority, category, estimated_minutes)
_FEB_2026_ROWS = (
    # Day 1: soft launch kickoff
    (0, "Final pre-launch checklist review",
     "Go through complete checklist: payments working, emails loaded, tracking pixels active, support ready",
     _H, _C.product, 30),
    (0, "Enable payments and go live",
     "Switch from test mode to live, verify first transaction capability", _H, _C.product, 15),
    (0, "Monitor first sales and signups",
     "Watch for any immediate issues with checkout, onboarding, or delivery", _H, _C.analytics, 60),
    (0, "Send soft launch announcement to inner circle",
     "Personal message to closest supporters about the launch", _M, _C.outreach, 30),
    (0, "Review KPIs and log day 1 metrics",
     "Daily KPI review: capture baseline metrics for all key indicators", _H, _C.analytics, 20),
    # Day 2: past payer outreach
    (1, "Send personal emails to past payers (batch 1)",
     "Reach out to 5-7 past payers with personalized messages about the new offering", _H, _C.outreach, 90),
    (1, "Send personal emails to past payers (batch 2)",
     "Reach out to remaining 5-8 past payers with personalized messages", _H, _C.outreach, 90),
    (1, "Monitor email deliverability metrics",
     "Check bounce rates, spam complaints for initial sends", _M, _C.email, 15),
    (1, "Respond to any early replies or questions",
     "Handle any incoming messages from past payers promptly", _H, _C.support, 30),
    (1, "Review KPIs and log day 2 metrics",
     "Daily KPI review: track outreach response rates, any conversions", _H, _C.analytics, 20),
    # Day 3: friction fixes
    (2, "Review checkout session recordings",
     "Watch 5-10 session recordings to identify friction points in checkout flow", _H, _C.funnel, 60),
    (2, "Identify top 3 friction points",
     "Document the biggest drop-off points or confusion areas", _H, _C.funnel, 30),
    (2, "Fix highest priority friction issue",
     "Implement quick fix for the most impactful friction point", _H, _C.product, 90),
    (2, "Follow up on unreplied past payer emails",
     "Send gentle follow-up to past payers who haven't responded", _M, _C.outreach, 45),
    (2, "Review KPIs and log day 3 metrics",
     "Daily KPI review: focus on funnel conversion metrics", _H, _C.analytics, 20),
    # Day 4: cold list warm-up start
    (3, "Prepare cold list email sequence",
     "Finalize first warm-up email copy and segment cold list", _H, _C.email, 60),
    (3, "Send warm-up email 1 to cold list (small batch)",
     "Start with 50-100 contacts to test deliverability", _H, _C.email, 30),
    (3, "Monitor deliverability closely",
     "Check bounce rate, spam rate within first 2 hours of send", _H, _C.email, 30),
    (3, "Fix second friction issue from day 3 review",
     "Continue improving checkout/onboarding flow", _M, _C.product, 60),
    (3, "Review KPIs and log day 4 metrics",
     "Daily KPI review: email metrics critical today", _H, _C.analytics, 20),
    # Day 5: scale cold list
    (4, "Review day 4 cold email performance",
     "Analyze open rates, click rates, any spam issues", _H, _C.email, 30),
    (4, "Scale cold list send to larger batch",
     "If metrics healthy, send to 150-200 more contacts", _H, _C.email, 30),
    (4, "Handle cold list replies and questions",
     "Respond to any engagement from cold outreach", _H, _C.support, 45),
    (4, "Review and improve email copy if needed",
     "Based on open/click rates, adjust subject lines or body copy", _M, _C.email, 45),
    (4, "Review KPIs and log day 5 metrics",
     "Daily KPI review: track cold list funnel progress", _H, _C.analytics, 20),
    # Day 6: continue scaling
    (5, "Send warm-up email 2 to earlier batches",
     "Second email in sequence to contacts from days 4-5", _H, _C.email, 30),
    (5, "Continue scaling cold list (new batch)",
     "Add another 100-150 contacts to the sequence", _H, _C.email, 30),
    (5, "Review assessment completion rates",
     "Check how many leads are completing the assessment funnel", _M, _C.funnel, 30),
    (5, "Optimize assessment flow if completion rate low",
     "Identify and fix any drop-off points in assessment", _M, _C.product, 60),
    (5, "Review KPIs and log day 6 metrics",
     "Daily KPI review: focus on funnel conversion and email health", _H, _C.analytics, 20),
    # Day 7: mid-launch review
    (6, "Mid-launch performance review",
     "Comprehensive review of all metrics vs targets at halfway point", _H, _C.analytics, 60),
    (6, "Decide: continue current strategy or pivot",
     "Based on data, determine if changes needed to approach", _H, _C.other, 30),
    (6, "Continue cold list sequence",
     "Maintain email cadence to active segments", _H, _C.email, 30),
    (6, "Document learnings so far",
     "Capture what's working and what's not in launch notes", _M, _C.other, 30),
    (6, "Review KPIs and log day 7 metrics",
     "Daily KPI review: mid-point comprehensive assessment", _H, _C.analytics, 20),
    # Day 8: push and optimize
    (7, "Implement changes from mid-launch review",
     "Execute any strategy adjustments decided yesterday", _H, _C.product, 90),
    (7, "Scale successful email segments",
     "Double down on segments showing best engagement", _H, _C.email, 45),
    (7, "Pause or adjust underperforming segments",
     "Stop sending to segments with poor deliverability or engagement", _M, _C.email, 30),
    (7, "Review KPIs and log day 8 metrics",
     "Daily KPI review: track impact of any changes", _H, _C.analytics, 20),
    # Day 9: continue execution
    (8, "Continue cold list outreach",
     "Maintain email sequence to remaining contacts", _H, _C.email, 30),
    (8, "Follow up on engaged but unconverted leads",
     "Personal outreach to leads who clicked but didn't convert", _H, _C.outreach, 60),
    (8, "Review support tickets and feedback",
     "Address any customer issues, gather product feedback", _M, _C.support, 45),
    (8, "Review KPIs and log day 9 metrics",
     "Daily KPI review: conversion focus", _H, _C.analytics, 20),
    # Day 10: retargeting setup (optional)
    (9, "Review retargeting viability",
     "Decide if budget allows for paid retargeting based on results so far", _M, _C.ads, 30),
    (9, "Set up retargeting audiences (if proceeding)",
     "Create audiences from site visitors, email clickers, assessment starters", _M, _C.ads, 60),
    (9, "Create retargeting ad creatives (if proceeding)",
     "Design simple reminder ads for retargeting campaign", _L, _C.ads, 60),
    (9, "Continue email sequences",
     "Maintain outreach to remaining cold list segments", _H, _C.email, 30),
    (9, "Review KPIs and log day 10 metrics",
     "Daily KPI review: assess CAC if running ads", _H, _C.analytics, 20),
    # Day 11: conversion push start
    (10, "Launch urgency-based messaging",
     'Begin "ending soon" or "limited time" messaging to engaged leads', _H, _C.email, 45),
    (10, "Personal outreach to hot leads",
     "Direct messages to leads showing high engagement but no purchase", _H, _C.outreach, 90),
    (10, "Launch retargeting campaign (if set up)",
     "Activate paid retargeting with small daily budget", _M, _C.ads, 30),
    (10, "Review KPIs and log day 11 metrics",
     "Daily KPI review: track urgency messaging impact", _H, _C.analytics, 20),
    # Day 12: continue conversion push
    (11, "Send reminder emails to engaged non-buyers",
     "Final sequence emails emphasizing deadline approaching", _H, _C.email, 30),
    (11, "Make personal calls to highest-value leads",
     "Phone outreach to top 5-10 leads who seem most likely to convert", _H, _C.outreach, 90),
    (11, "Monitor ad spend and CAC",
     "Ensure retargeting ROI is acceptable, pause if not", _M, _C.ads, 30),
    (11, "Review KPIs and log day 12 metrics",
     "Daily KPI review: conversion rate focus", _H, _C.analytics, 20),
    # Day 13: final push
    (12, 'Send "last day" emails',
     "Final deadline messaging to all engaged contacts", _H, _C.email, 30),
    (12, "Final personal outreach to fence-sitters",
     "Last chance messages to leads who expressed interest", _H, _C.outreach, 60),
    (12, "Address any last-minute objections",
     "Handle questions or concerns from potential buyers", _H, _C.support, 60),
    (12, "Prepare for launch close",
     "Plan transition messaging, what happens after launch ends", _M, _C.other, 30),
    (12, "Review KPIs and log day 13 metrics",
     "Daily KPI review: near-final performance assessment", _H, _C.analytics, 20),
    # Day 14: launch close and review
    (13, "Send launch closing message",
     "Final email announcing end of launch offer", _H, _C.email, 30),
    (13, "Disable launch-specific pricing/offers",
     "Transition to post-launch pricing if applicable", _H, _C.product, 15),
    (13, "Compile final launch metrics report",
     "Full summary of all KPIs, conversions, revenue", _H, _C.analytics, 90),
    (13, "Document all learnings and decisions",
     "What worked, what didn't, what to do differently next time", _H, _C.other, 60),
    (13, "Plan next steps and follow-up actions",
     "Determine immediate post-launch priorities and next sprint", _M, _C.other, 45),
    (13, "Final KPI review and close out tracking",
     "Log final metrics and complete launch tracking", _H, _C.analytics, 30),
)

FEB_2026_LAUNCH_TASKS: tuple[TemplateTask, ...] = tuple(TemplateTask(*row) for row in _FEB_2026_ROWS)

_MIN, _MAX = KpiTargetType.minimum, KpiTargetType.maximum
_K, _U = KpiCategory, KpiUnit

DEFAULT_KPIS: tuple[TemplateKpi, ...] = (
    TemplateKpi("Delivered Rate", _K.email_deliverability, _U.percent, _MIN, 95),
    TemplateKpi("Bounce Rate", _K.email_deliverability, _U.percent, _MAX, 5),
    TemplateKpi("Spam Complaint Rate", _K.email_deliverability, _U.percent, _MAX, 0.1),
    TemplateKpi("Open Rate", _K.email_deliverability, _U.percent, _MIN, 25),
    TemplateKpi("Click Rate", _K.email_deliverability, _U.percent, _MIN, 3),
    TemplateKpi("Assessment Page → Email Capture", _K.funnel_conversion, _U.percent, _MIN, 30),
    TemplateKpi("Assessment Started → Completed", _K.funnel_conversion, _U.percent, _MIN, 60),
    TemplateKpi("Leads → Starter Conversion", _K.revenue, _U.percent, _MIN, 2),
    TemplateKpi("Leads → Pro Conversion", _K.revenue, _U.percent, _MIN, 0.5),
    TemplateKpi("Daily Revenue", _K.revenue, _U.currency, _MIN, 100),
    TemplateKpi("New Users → First Output (24h)", _K.activation, _U.percent, _MIN, 50),
    TemplateKpi("Daily Ad Spend", _K.ads, _U.currency, _MAX, 50),
    TemplateKpi("CAC (Customer Acquisition Cost)", _K.ads, _U.currency, _MAX, 100),
)

LAUNCH_TEMPLATES: dict[str, LaunchTemplate] = {
    t.id: t for t in (
        LaunchTemplate(
            id="feb-2026-launch",
            name="Feb 1-14, 2026 Launch Calendar",
            description=(
                "A 14-day launch plan with tasks for soft launch, outreach, "
                "cold list warm-up, and conversion push."
            ),
            tasks=FEB_2026_LAUNCH_TASKS,
            kpis=DEFAULT_KPIS,
        ),
    )
}


def get_template(template_id: str) -> LaunchTemplate | None:
    return LAUNCH_TEMPLATES.get(template_id)


def template_summary(template: LaunchTemplate) -> dict:
    return {
        "id": template.id, "name": template.name, "description": template.description,
        "task_count": len(template.tasks), "kpi_count": len(template.kpis),
    }
