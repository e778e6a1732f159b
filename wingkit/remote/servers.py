"""Panel API calls concerning servers, SFTP access, backups and activity."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from wingkit.remote.errors import SftpInvalidCredentialsError, as_request_error
from wingkit.remote.http import Client
from wingkit.remote.models import (
    BackupRemoteUploadResponse,
    BackupRequest,
    InstallationScript,
    Pagination,
    RawServerData,
    ServerConfigurationResponse,
    SftpAuthRequest,
    SftpAuthResponse,
)

log = logging.getLogger(__name__)

_MAX_PAGE_WORKERS = 8


def _plain(item: Any) -> Any:
    return item.to_dict() if hasattr(item, "to_dict") else item


class PanelClient(Client):
    """Client for the server-related endpoints of the Panel's remote API."""

    def get_servers(self, per_page: int) -> list[RawServerData]:
        """Return every server on the Panel, fetching further pages in parallel."""
        servers, meta = self._get_servers_paged(0, per_page)
        if meta.last_page > 1:
            pages = list(range(meta.current_page + 1, meta.last_page + 1))
            if pages:
                workers = min(_MAX_PAGE_WORKERS, len(pages))
                with ThreadPoolExecutor(max_workers=workers) as pool:
                    for page_servers in pool.map(
                        lambda page: self._get_servers_paged(page, per_page)[0], pages
                    ):
                        servers.extend(page_servers)
        return servers

    def reset_servers_state(self) -> None:
        """Mark servers stuck installing or restoring as normally installed."""
        try:
            with self.post("/servers/reset", None):
                pass
        except Exception as err:
            raise RuntimeError("remote: failed to reset server state on Panel") from err

    def get_server_configuration(self, uuid: str) -> ServerConfigurationResponse:
        with self.get(f"/servers/{uuid}") as res:
            return ServerConfigurationResponse.from_dict(res.bind_json())

    def get_installation_script(self, uuid: str) -> InstallationScript:
        with self.get(f"/servers/{uuid}/install") as res:
            return InstallationScript.from_dict(res.bind_json())

    def set_installation_status(self, uuid: str, successful: bool) -> None:
        with self.post(f"/servers/{uuid}/install", {"successful": successful}):
            pass

    def set_archive_status(self, uuid: str, successful: bool) -> None:
        with self.post(f"/servers/{uuid}/archive", {"successful": successful}):
            pass

    def set_transfer_status(self, uuid: str, successful: bool) -> None:
        state = "success" if successful else "failure"
        with self.get(f"/servers/{uuid}/transfer/{state}"):
            pass

    def set_import_status(self, uuid: str, successful: bool) -> None:
        with self.get(f"/servers/{uuid}/import"):
            pass

    def validate_sftp_credentials(self, request: SftpAuthRequest) -> SftpAuthResponse:
        """Ask the Panel whether the SFTP credentials belong to a server.

        A 4xx answer raises :class:`SftpInvalidCredentialsError`.
        """
        try:
            res = self.post("/sftp/auth", request)
        except Exception as err:
            request_error = as_request_error(err)
            if request_error is not None and 400 <= request_error.status_code < 500:
                log.warning(
                    "%s: subsystem=sftp username=%s ip=%s",
                    request_error,
                    request.user,
                    request.ip,
                )
                raise SftpInvalidCredentialsError() from err
            raise
        with res:
            return SftpAuthResponse.from_dict(res.bind_json())

    def get_backup_remote_upload_urls(
        self, backup: str, size: int
    ) -> BackupRemoteUploadResponse:
        with self.get(f"/backups/{backup}", {"size": str(int(size))}) as res:
            return BackupRemoteUploadResponse.from_dict(res.bind_json())

    def set_backup_status(self, backup: str, data: BackupRequest) -> None:
        with self.post(f"/backups/{backup}", data):
            pass

    def send_restoration_status(self, backup: str, successful: bool) -> None:
        """Tell the Panel a restoration finished so the server is active again."""
        with self.post(f"/backups/{backup}/restore", {"successful": successful}):
            pass

    def send_activity_logs(self, activity: Iterable[Any]) -> None:
        """Send activity log entries to the Panel for processing."""
        with self.post("/activity", {"data": [_plain(item) for item in activity]}):
            pass

    def _get_servers_paged(
        self, page: int, per_page: int
    ) -> tuple[list[RawServerData], Pagination]:
        with self.get("/servers", {"page": str(page), "per_page": str(per_page)}) as res:
            payload = res.bind_json()
        if not isinstance(payload, Mapping):
            payload = {}
        data = payload.get("data") or []
        servers = [RawServerData.from_dict(item) for item in data]
        return servers, Pagination.from_dict(payload.get("meta") or {})