"""Print the stored state of one generation job."""

import argparse
import asyncio
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


async def main(job_id: str) -> int:
  from conceptdeck.config import get_database_settings
  from conceptdeck.storage.postgres_jobs_repo import PostgresJobsRepository

  if not get_database_settings().pg_dsn:
    print("Error: CONCEPTDECK_PG_DSN not set in environment.")
    return 1

  job = await PostgresJobsRepository().get_job(job_id)
  if job is None:
    print(f"Job {job_id} not found.")
    return 1

  print(f"Job Status: {job.status}")
  print(f"Job Phase: {job.phase}")
  print(f"Owner: {job.owner_id}")
  print(f"Concepts: {len(job.concept_ids)} ({len(job.pending_concept_ids)} pending)")
  print(f"Questions: {job.questions_saved} saved / {job.questions_generated} generated (estimated {job.estimated_total})")
  if job.error_code:
    print(f"Error: {job.error_code} retryable={job.retryable} - {job.error_message}")
  return 0


if __name__ == "__main__":
  parser = argparse.ArgumentParser(description=__doc__)
  parser.add_argument("job_id")
  sys.exit(asyncio.run(main(parser.parse_args().job_id)))
