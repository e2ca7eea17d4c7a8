#!/usr/bin/env python3
"""
Clean Re-entry Script

Release a returning employee so they can apply again: active store
assignments become 'released' and the selection markers are cleared.
Usage: python scripts/clean_reingreso.py 70123456 [70123457 ...]
"""
import argparse
import sys
sys.path.insert(0, '.')

from talent_portal.core.exceptions import ServiceException
from talent_portal.services.candidate_service import CandidateService


def main():
    parser = argparse.ArgumentParser(description="Release returning employees by DNI")
    parser.add_argument("dnis", nargs="+", help="Candidate DNI(s)")
    args = parser.parse_args()

    service = CandidateService()
    failures = 0
    for dni in args.dnis:
        try:
            result = service.clean_reingreso(dni)
            print(f"✅ {dni}: {result['nombre']} ({result['candidateId']}) released")
        except ServiceException as e:
            failures += 1
            print(f"❌ {dni}: {e}")

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
