import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import requests

from callcontrol.core.config import settings
from callcontrol.core.exceptions import (
    CallHistoryFetchError,
    DownloadError,
    TelfinApiError,
    truncate,
)
from callcontrol.services.telfin_auth import TelfinTokenManager

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 1000
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CLIENT_INFO_ENDPOINTS = ("/api/v1.0/client/", "/api/v1.0/clients/", "/api/v1.0/user/")
CDR_LIST_KEYS = ("cdr", "calls", "records", "items", "data")


def extract_records(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in CDR_LIST_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


def page_size() -> int:
    return min(settings.telfin_page_limit, MAX_PAGE_SIZE)


def history_cap() -> int:
    return page_size() * settings.telfin_max_pages


class TelfinClient:
    def __init__(self, token_manager: TelfinTokenManager, session: Optional[requests.Session] = None):
        self.token_manager = token_manager
        self.connection = token_manager.connection
        self.session = session or token_manager.session
        self.base_url = f"https://{settings.telfin_api_host}"
        self.timeout = settings.http_timeout_seconds

    def _headers(self, accept: str = "application/json") -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token_manager.get_access_token()}",
            "Accept": accept,
            "User-Agent": "CallControl/1.0.0",
        }

    def fetch_call_history(self, date_from: datetime, date_to: datetime) -> List[Dict[str, Any]]:
        """Fetch every CDR in the window, paging with ``offset`` until a short page.

        Stops after ``telfin_max_pages`` pages; callers compare the result
        against :func:`history_cap` to tell a complete window from a cut one.
        """
        client_id = self.resolve_client_id()
        path = settings.telfin_cdr_path.format(client_id=client_id)
        limit = page_size()
        params = {
            "date_start": date_from.strftime(DATE_FORMAT),
            "date_end": date_to.strftime(DATE_FORMAT),
            "limit": limit,
            "offset": 0,
        }
        logger.info("Fetching Telfin call history %s .. %s", params["date_start"], params["date_end"])
        records: List[Dict[str, Any]] = []
        for _ in range(settings.telfin_max_pages):
            page = self._fetch_history_page(self.base_url + path, params)
            records.extend(page)
            if len(page) < limit:
                break
            params = dict(params, offset=params["offset"] + limit)
        else:
            logger.warning("Telfin call history hit the %s page cap at offset %s", settings.telfin_max_pages, params["offset"])
        logger.info("Telfin returned %s call records", len(records))
        return records

    def _fetch_history_page(self, url: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            response = self.session.get(
                url,
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise CallHistoryFetchError(f"Call history request failed: {exc}") from exc

        if not response.ok:
            raise CallHistoryFetchError(
                "Call history request failed",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise CallHistoryFetchError(
                "Call history response is not JSON",
                status_code=response.status_code,
                body=response.text,
                code="TELFIN-CDR-002",
            ) from exc
        return extract_records(payload)

    def fetch_client_info(self) -> Dict[str, Any]:
        last_error = None
        for path in CLIENT_INFO_ENDPOINTS:
            try:
                response = self.session.get(self.base_url + path, headers=self._headers(), timeout=self.timeout)
            except requests.RequestException as exc:
                last_error = f"{path}: {exc}"
                continue
            if not response.ok:
                last_error = f"{path}: HTTP {response.status_code} {truncate(response.text)}"
                continue
            try:
                payload = response.json()
            except ValueError:
                last_error = f"{path}: response is not JSON"
                continue
            if isinstance(payload, list):
                payload = payload[0] if payload else {}
            return payload
        raise TelfinApiError("Could not fetch Telfin client info", body=last_error)

    def resolve_client_id(self) -> str:
        if self.connection.telfin_client_id:
            return self.connection.telfin_client_id
        info = self.fetch_client_info()
        client_id = info.get("id") or info.get("client_id")
        if not client_id:
            raise TelfinApiError("Telfin client info has no client id", body=str(info))
        self.connection.telfin_client_id = str(client_id)
        self.token_manager.db.commit()
        return self.connection.telfin_client_id

    def get_storage_url(self, record_uuid: str) -> str:
        client_id = self.resolve_client_id()
        url = f"{self.base_url}/client/{client_id}/record/{record_uuid}/storage_url/"
        try:
            response = self.session.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise TelfinApiError(f"Storage URL request failed: {exc}") from exc
        if not response.ok:
            raise TelfinApiError(
                "Failed to get storage URL",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            record_url = response.json().get("record_url")
        except (ValueError, AttributeError) as exc:
            raise TelfinApiError("Storage URL response is not valid JSON", body=response.text) from exc
        if not record_url:
            raise TelfinApiError("Storage URL response has no record_url", body=response.text)
        return record_url

    def download_audio(self, url: str) -> Tuple[bytes, str]:
        try:
            response = self.session.get(url, headers=self._headers(accept="*/*"), timeout=self.timeout)
        except requests.RequestException as exc:
            raise DownloadError(f"Failed to download audio: {exc}") from exc
        if not response.ok:
            raise DownloadError(
                "Failed to download audio",
                status_code=response.status_code,
                body=response.text,
            )
        return response.content, response.headers.get("Content-Type") or "audio/mpeg"
