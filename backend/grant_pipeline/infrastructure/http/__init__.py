from .worker_client import HttpWorkerClient
from .page_fetcher import HttpPageFetcher

__all__ = ["HttpWorkerClient", "HttpPageFetcher"]
