"""Hub storage package.

Module split:
    - `transport`: single-attempt HTTP primitive and status classification.
    - `hub`: `HubClient` with the ordered upload queue and retried reads.
"""

from membase.storage.hub import HubClient, UploadTask, resolve_bucket

__all__ = ["HubClient", "UploadTask", "resolve_bucket"]
