# pyright: reportMissingTypeStubs=false, reportUnknownMemberType=false

from __future__ import annotations

from typing import Callable, final, override

from apscheduler.schedulers.background import BackgroundScheduler

from fpkgi_server.domain.protocols.scheduler_protocol import SchedulerProtocol


@final
class APSchedulerRunner(SchedulerProtocol):
    def __init__(self) -> None:
        self._scheduler = BackgroundScheduler()

    @override
    def schedule_interval(
        self, job_id: str, seconds: float, func: Callable[[], object]
    ) -> None:
        _ = self._scheduler.add_job(
            func,
            "interval",
            id=job_id,
            seconds=max(0.1, float(seconds)),
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    @override
    def start(self) -> None:
        self._scheduler.start()

    @override
    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
