# scripts/run_search_once.py
import argparse

from jobmatch.models.job import SearchFilters
from jobmatch.pipeline.orchestrator import build_service


def main(argv=None):
    p = argparse.ArgumentParser(description="Run one ranked job search against the configured DB.")
    p.add_argument("text", nargs="?", help="free-text description of the job you want")
    p.add_argument("--user", help="rank by this user's stored profile instead of text")
    p.add_argument("--job-type", choices=["new_grad", "internship", "all"])
    p.add_argument("--location")
    p.add_argument("--remote", action="store_true", default=None)
    p.add_argument("--verified-sponsor", action="store_true")
    p.add_argument("--limit", type=int, default=20)
    args = p.parse_args(argv)

    filters = SearchFilters(
        job_type=args.job_type,
        location=args.location,
        is_remote=args.remote,
        requires_verified_sponsor=args.verified_sponsor,
        limit=args.limit,
    )
    response = build_service().search(filters, query_text=args.text, user_id=args.user)

    print("—" * 60)
    for r in response.results:
        sponsor = r.sponsor_summary.company_name if r.sponsor_summary else "-"
        print(f"{r.match_score:5.3f}  {r.title[:40]:40s} {r.company[:24]:24s} sponsor={sponsor}")
        print(f"       {'; '.join(r.match_reasons)}")
    print("—" * 60)
    return response


if __name__ == "__main__":
    resp = main()
    print(f"Showing {len(resp.results)} of {resp.total} matching postings.")
