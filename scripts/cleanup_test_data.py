#!/usr/bin/env python3
"""
Test Data Cleanup Script

Deletes candidates and RQs flagged with isTestData, plus any candidate
whose email is passed with --email, together with their rescue inbox entries.
Usage:
    python scripts/cleanup_test_data.py --dry-run
    python scripts/cleanup_test_data.py --email tester@example.com
"""
import argparse
import sys
sys.path.insert(0, '.')

from talent_portal.db.mongodb import get_collection


def candidate_query(emails) -> dict:
    clauses = [{"isTestData": True}]
    if emails:
        clauses.append({"email": {"$in": [e.lower() for e in emails]}})
    return {"$or": clauses}


def main():
    parser = argparse.ArgumentParser(description="Delete test candidates and RQs")
    parser.add_argument("--email", action="append", default=[], help="Candidate email to delete (repeatable)")
    parser.add_argument("--dry-run", action="store_true", help="Only report what would be deleted")
    args = parser.parse_args()

    candidates = get_collection("candidates")
    rqs = get_collection("rqs")
    rescue_inbox = get_collection("rescue_inbox")

    query = candidate_query(args.email)
    candidate_ids = [str(doc["_id"]) for doc in candidates.find(query, {"_id": 1})]
    rq_ids = [str(doc["_id"]) for doc in rqs.find({"isTestData": True}, {"_id": 1})]
    inbox_query = {"$or": [{"candidateId": {"$in": candidate_ids}}, {"rqId": {"$in": rq_ids}}]}

    print("=" * 50)
    print("TEST DATA CLEANUP" + (" (dry run)" if args.dry_run else ""))
    print("=" * 50)
    print(f"Candidates:    {len(candidate_ids)}")
    print(f"RQs:           {len(rq_ids)}")
    print(f"Rescue inbox:  {rescue_inbox.count_documents(inbox_query)}")

    if args.dry_run:
        print("\nNothing deleted.")
        return 0

    rescue_inbox.delete_many(inbox_query)
    candidates.delete_many(query)
    rqs.delete_many({"isTestData": True})
    print("\n✅ Cleanup complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
