"""Example running both workflows through the service facade.

Configuration comes from ``config.yaml`` (or ``JOURNALFLOW_CONFIG``), e.g.:

    engine:
      max_retries: 3
      requires_human_approval: false
    llm:
      model: "openai:gpt-4o-mini"
    database_url: "sqlite://checkpoints.db"
    data_url: "sqlite://journal.db"
"""

import asyncio
import datetime as dt

from journalflow import WorkflowService


async def main():
    service = WorkflowService.from_config()
    today = dt.date.today()

    audit = await service.start_daily_audit(today)
    print(f"Audit {audit.thread_id}: {audit.status.value} {audit.error or ''}")

    routine = await service.start_routine(today + dt.timedelta(days=1))
    print(f"Routine {routine.thread_id}: {routine.status.value} {routine.error or ''}")
    if routine.state.formatted_routine:
        for activity in routine.state.formatted_routine.activities:
            print(f"  {activity.time} {activity.activity} ({activity.expected_benefit})")


if __name__ == "__main__":
    asyncio.run(main())
