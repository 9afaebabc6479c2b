"""
Usage Rollup Service

Replays each job's run log into usage figures:
- per job: collect batches, API calls, matches, new/duplicate leads, spend
- per month: totals, minus the monthly free Places credit
- lifetime totals

The run log is the only durable per-batch metrics record, so nothing here
is stored; every call recomputes from the logs.
"""
from collections import defaultdict
from typing import Dict, List

from sqlalchemy.orm import Session

from leadsweep.core.config import settings
from leadsweep.models.job import Job
from leadsweep.models.run_log import JobRunLog


MAX_JOBS = 2000


def _num(value) -> float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    return 0


def summarize_job(job: Job, collect_logs: List[Dict]) -> Dict:
    found = new_leads = duplicates = 0
    search_calls = details_calls = total_calls = 0
    places_cost = 0.0

    for log in collect_logs:
        api_calls = log.get("api_calls") or {}
        found += _num(log.get("found"))
        new_leads += _num(log.get("new"))
        duplicates += _num(log.get("duplicate"))
        search_calls += _num(api_calls.get("textsearch"))
        details_calls += _num(api_calls.get("details"))
        total_calls += _num(api_calls.get("total"))
        places_cost += _num(log.get("estimated_api_cost_usd"))

    verification_spend = float(job.verification_spend_actual or 0)
    enrichment_spend = float(job.enrichment_spend_actual or 0)
    ads_spend = float(job.ads_scan_spend_actual or 0)
    total = places_cost + verification_spend + enrichment_spend + ads_spend

    return {
        "job_id": job.id,
        "created_at": job.created_at.isoformat() if job.created_at else None,
        "user_prompt": job.user_prompt,
        "status": job.status,
        "target_firm_count": job.target_firm_count,
        "progress_count": job.progress_count,
        "collect_batches": len(collect_logs),
        "api_calls_textsearch": search_calls,
        "api_calls_details": details_calls,
        "api_calls_total": total_calls,
        "matches_found": found,
        "leads_new": new_leads,
        "leads_duplicates": duplicates,
        "places_estimated_cost_usd": round(places_cost, 4),
        "verification_spend_usd": round(verification_spend, 4),
        "enrichment_spend_usd": round(enrichment_spend, 4),
        "ads_scan_spend_usd": round(ads_spend, 4),
        "total_estimated_spend_usd": round(total, 4),
    }


def build_usage_report(db: Session) -> Dict:
    jobs = db.query(Job).order_by(Job.created_at.desc()).limit(MAX_JOBS).all()
    job_ids = [j.id for j in jobs]

    logs_by_job: Dict[str, List[Dict]] = defaultdict(list)
    if job_ids:
        rows = (
            db.query(JobRunLog)
            .filter(JobRunLog.job_id.in_(job_ids), JobRunLog.event == "collect_batch")
            .order_by(JobRunLog.id)
            .all()
        )
        for row in rows:
            logs_by_job[row.job_id].append(row.payload or {})

    job_rows = [summarize_job(job, logs_by_job[job.id]) for job in jobs]

    monthly: Dict[str, Dict] = {}
    for row in job_rows:
        month = (row["created_at"] or "")[:7]
        bucket = monthly.setdefault(month, {
            "month": month,
            "jobs": 0,
            "api_calls_total": 0,
            "leads_new": 0,
            "leads_duplicates": 0,
            "places_estimated_cost_usd": 0.0,
            "verification_spend_usd": 0.0,
            "gross_estimated_spend_usd": 0.0,
        })
        bucket["jobs"] += 1
        bucket["api_calls_total"] += row["api_calls_total"]
        bucket["leads_new"] += row["leads_new"]
        bucket["leads_duplicates"] += row["leads_duplicates"]
        bucket["places_estimated_cost_usd"] += row["places_estimated_cost_usd"]
        bucket["verification_spend_usd"] += row["verification_spend_usd"]
        bucket["gross_estimated_spend_usd"] += row["total_estimated_spend_usd"]

    free_credit = settings.GOOGLE_MONTHLY_FREE_CREDIT_USD
    monthly_rows = []
    for bucket in monthly.values():
        for key in ("places_estimated_cost_usd", "verification_spend_usd", "gross_estimated_spend_usd"):
            bucket[key] = round(bucket[key], 4)
        bucket["estimated_paid_usd"] = round(max(0.0, bucket["gross_estimated_spend_usd"] - free_credit), 4)
        monthly_rows.append(bucket)
    monthly_rows.sort(key=lambda m: m["month"], reverse=True)

    return {
        "free_credit_config_usd": free_credit,
        "lifetime": {
            "jobs": len(job_rows),
            "api_calls_total": sum(r["api_calls_total"] for r in job_rows),
            "leads_new": sum(r["leads_new"] for r in job_rows),
            "gross_estimated_spend_usd": round(sum(r["total_estimated_spend_usd"] for r in job_rows), 4),
        },
        "monthly": monthly_rows,
        "jobs": job_rows,
    }
