from abc import ABC, abstractmethod

from sysmetrics.monitoring.session import MonitoringSession


class BaseSampler(ABC):
    """
    Abstract base class for samplers that read host counters and feed a
    MonitoringSession, such as /proc readers or psutil readers.

    Samplers may be stateful and are typically polled periodically by the
    TrackerManager.
    """

    def __init__(self, session: MonitoringSession, sampler_name: str) -> None:
        self.session = session
        self.sampler_name = sampler_name

    @abstractmethod
    def sample(self):
        raise NotImplementedError("Must be implemented by subclasses.")
