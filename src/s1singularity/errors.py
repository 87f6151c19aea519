from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


# Internal error codes attached to log records (extra={"internal_error_code": ...}).
ERR_PROVIDER_CONFIGURE = 400

ERR_UTIL_CREATE_FILE = 500
ERR_UTIL_GET_FILE_HASH = 501
ERR_UTIL_PATH_EXISTS = 502
ERR_UTIL_PARSE_FILESYSTEM_MODE = 503
ERR_UTIL_TO_ABSOLUTE_PATH = 504
ERR_UTIL_CREATE_DIRECTORY = 505
ERR_UTIL_MOVE_FILE = 506
ERR_UTIL_LOAD_STATE = 507

ERR_API_CLIENT_DO = 1000
ERR_API_CLIENT_DO_AND_PARSE = 1001
ERR_API_CLIENT_DO_AND_STREAM = 1002
ERR_API_PACKAGE_FIND_PACKAGES = 1003
ERR_API_PACKAGE_DOWNLOAD_PACKAGE = 1004
ERR_API_PACKAGE_GET_PACKAGE = 1005
ERR_API_GROUP_FIND_GROUPS = 1006
ERR_API_GROUP_GET_GROUP = 1007
ERR_API_SITE_FIND_SITES = 1008
ERR_API_SITE_GET_SITE = 1009
ERR_API_PAGER_DRAIN = 1010

ERR_RESOURCE_PACKAGE_DOWNLOAD_CREATE = 3001
ERR_RESOURCE_PACKAGE_DOWNLOAD_READ = 3002
ERR_RESOURCE_PACKAGE_DOWNLOAD_UPDATE = 3003
ERR_RESOURCE_PACKAGE_DOWNLOAD_DELETE = 3004
ERR_RESOURCE_PACKAGE_DOWNLOAD_MODIFIERS = 3005


@dataclass(frozen=True)
class Diagnostic:
    summary: str
    detail: str

    def __str__(self) -> str:
        return f"{self.summary}: {self.detail}"


class ProviderError(Exception):
    """
    Base error. Carries one or more user-facing diagnostics so that several
    independent problems (e.g. multiple API errors in one response) surface together.
    """

    summary = "Unexpected Internal Error"

    def __init__(
        self,
        detail: str | None = None,
        *,
        summary: str | None = None,
        diagnostics: Sequence[Diagnostic] | None = None,
    ):
        if diagnostics:
            self.diagnostics: list[Diagnostic] = list(diagnostics)
        else:
            self.diagnostics = [Diagnostic(summary or self.summary, detail or "")]
        super().__init__("\n\n".join(str(d) for d in self.diagnostics))

    @property
    def detail(self) -> str:
        return self.diagnostics[0].detail


class ConfigError(ProviderError):
    summary = "Provider Configuration Error"


class TransportError(ProviderError):
    summary = "API Request Error"


class APIResponseError(ProviderError):
    summary = "API Response Error"

    def __init__(self, detail: str | None = None, *, status_code: int = 0, **kw):
        self.status_code = status_code
        super().__init__(detail, **kw)


class DecodeError(ProviderError):
    summary = "API Response Error"


class NotFoundError(ProviderError):
    summary = "Not Found"


class AmbiguousResultError(ProviderError):
    summary = "Multiple Results Found"


class PaginationLimitError(ProviderError):
    summary = "API Pagination Error"


class FilesystemError(ProviderError):
    summary = "Unexpected Internal Error"


class FingerprintMismatchError(ProviderError):
    summary = "Download Package Creation Error"
