from fpkgi_server.domain.protocols.notifier_protocol import NotifierProtocol
from fpkgi_server.domain.protocols.package_opener_protocol import (
    PackageOpenerProtocol,
    PackageProtocol,
)
from fpkgi_server.domain.protocols.scheduler_protocol import SchedulerProtocol

__all__ = [
    "NotifierProtocol",
    "PackageOpenerProtocol",
    "PackageProtocol",
    "SchedulerProtocol",
]
