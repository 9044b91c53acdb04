"""Exception hierarchy for scan runs.

Configuration errors are fatal to a run. ProviderError is contained per
matrix cell. ScanCancelled is raised at a checkpoint after cancel().
"""


class ScanError(Exception):
    """Base class for all scan pipeline errors."""


class NoActiveQueries(ScanError):
    def __init__(self, project_id: str) -> None:
        super().__init__(f"No active queries found for project {project_id}")
        self.project_id = project_id


class NoActiveProviders(ScanError):
    def __init__(self) -> None:
        super().__init__("No active LLM providers configured")


class NoJudgeCredential(ScanError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"No API key configured for judge provider '{provider}'")
        self.provider = provider


class ScanNotFound(ScanError, LookupError):
    def __init__(self, scan_id: str) -> None:
        super().__init__(f"Scan not found: {scan_id}")
        self.scan_id = scan_id


class ProjectNotFound(ScanError, LookupError):
    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


class ProviderError(ScanError):
    """A provider call returned an error or an unusable response."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ScanCancelled(ScanError):
    """Raised at a checkpoint once the job's token has been cancelled."""


class QueryGenerationError(ScanError):
    """AI-assisted query generation failed."""
