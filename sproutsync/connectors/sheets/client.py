"""SproutSync — Google Sheets / Drive Destination.

Service-account access to Drive (documents in a folder) and Sheets (tabs,
values). The Google client library is synchronous, so each request runs in
a worker thread; retries go through the shared policy.
"""

import asyncio
import os
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence

from google.auth.exceptions import GoogleAuthError, RefreshError
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from sproutsync.config import settings
from sproutsync.connectors.sheets.base import DestinationWriter
from sproutsync.core.errors import AuthenticationError, SyncError
from sproutsync.core.logging import get_logger
from sproutsync.core.retry import RetryPolicy, with_retry

logger = get_logger("sheets.client")

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]
SPREADSHEET_MIME = "application/vnd.google-apps.spreadsheet"

HEADER_BACKGROUND = {"red": 0.2, "green": 0.2, "blue": 0.2}
HEADER_TEXT = {"red": 1, "green": 1, "blue": 1}
COUNT_HINTS = ("count", "growth", "gained", "lost", "views", "impressions")
RATE_HINTS = ("rate", "percentage")


class DestinationAPIError(SyncError):
    """Raised when a Sheets/Drive call fails."""

    def __init__(self, message: str, status_code: int = 0, retryable: bool = False):
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message)


class DestinationAuthError(AuthenticationError):
    """Service account credentials are missing, invalid or unauthorized."""


def _classify(description: str, error: HttpError) -> SyncError:
    status = getattr(error.resp, "status", 0) or 0
    message = str(error)
    if status == 429 or status >= 500 or "ratelimitexceeded" in message.lower():
        return DestinationAPIError(f"{description}: {message}", status, retryable=True)
    if status in (401, 403):
        return DestinationAuthError(f"{description}: {message}")
    return DestinationAPIError(f"{description}: {message}", status)


def load_credentials() -> Credentials:
    """Service account credentials from env vars, else from the key file."""
    if settings.google_client_email and settings.google_private_key:
        logger.info("Using Google API credentials from environment variables")
        info = {
            "type": "service_account",
            "client_email": settings.google_client_email,
            "private_key": settings.google_private_key.replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        }
        try:
            return Credentials.from_service_account_info(info, scopes=SCOPES)
        except (ValueError, GoogleAuthError) as e:
            raise DestinationAuthError(f"Invalid service account credentials: {e}") from e

    path = settings.google_credentials_file
    if os.path.exists(path):
        logger.info(f"Using credentials file at {path}")
        try:
            return Credentials.from_service_account_file(path, scopes=SCOPES)
        except (ValueError, GoogleAuthError) as e:
            raise DestinationAuthError(f"Invalid credentials file {path}: {e}") from e

    raise DestinationAuthError(
        "No Google credentials found. Set GOOGLE_CLIENT_EMAIL and GOOGLE_PRIVATE_KEY "
        f"or provide {path}"
    )


class GoogleSheetsWriter(DestinationWriter):
    """DestinationWriter backed by the Google Sheets v4 and Drive v3 APIs."""

    def __init__(
        self,
        credentials: Credentials | None = None,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self._credentials = credentials
        self.policy = policy or RetryPolicy.from_settings()
        self._sleep = sleep
        self._sheets = None
        self._drive = None
        self._sheet_ids: Dict[tuple, int] = {}
        self._lock = threading.Lock()

    def _services(self):
        if self._sheets is None or self._drive is None:
            credentials = self._credentials or load_credentials()
            self._sheets = build("sheets", "v4", credentials=credentials, cache_discovery=False)
            self._drive = build("drive", "v3", credentials=credentials, cache_discovery=False)
        return self._sheets, self._drive

    async def _call(self, description: str, make_request: Callable[[Any, Any], Any]) -> Any:
        """Execute one Google API request under the retry policy.

        Requests are serialized; the discovery services share one httplib2
        transport.
        """

        def run() -> Any:
            with self._lock:
                sheets, drive = self._services()
                return make_request(sheets, drive).execute()

        async def attempt() -> Any:
            try:
                return await asyncio.to_thread(run)
            except HttpError as e:
                raise _classify(description, e) from e
            except RefreshError as e:
                raise DestinationAuthError(f"{description}: {e}") from e

        return await with_retry(attempt, self.policy, description, sleep=self._sleep)

    # ── Drive ──

    async def verify_access(self, folder_id: str) -> None:
        try:
            folder = await self._call(
                f"Verify folder {folder_id}",
                lambda s, d: d.files().get(
                    fileId=folder_id, fields="id,name", supportsAllDrives=True
                ),
            )
        except DestinationAPIError as e:
            if e.status_code != 404:
                raise
            logger.warning(
                f"Folder {folder_id} not found. Make sure it is shared with the "
                "service account email with Editor permissions."
            )
            return
        logger.info(f"Verified access to folder {folder.get('name')} ({folder_id})")

    async def find_spreadsheet(
        self, title_prefix: str, folder_id: str
    ) -> Optional[Dict[str, str]]:
        escaped = title_prefix.replace("\\", "\\\\").replace("'", "\\'")
        query = (
            f"name contains '{escaped}' and '{folder_id}' in parents "
            f"and mimeType='{SPREADSHEET_MIME}' and trashed=false"
        )
        result = await self._call(
            f"Find spreadsheet '{title_prefix}'",
            lambda s, d: d.files().list(
                q=query,
                fields="files(id,name)",
                orderBy="modifiedTime desc",
                supportsAllDrives=True,
                includeItemsFromAllDrives=True,
            ),
        )
        for f in result.get("files", []):
            if f.get("name", "").startswith(title_prefix):
                return {"id": f["id"], "name": f["name"]}
        return None

    async def create_spreadsheet(self, title: str, folder_id: str) -> str:
        body = {"name": title, "mimeType": SPREADSHEET_MIME, "parents": [folder_id]}
        created = await self._call(
            f"Create spreadsheet '{title}'",
            lambda s, d: d.files().create(body=body, fields="id", supportsAllDrives=True),
        )
        logger.info(f"Created spreadsheet {created['id']}", extra={"spreadsheet_id": created["id"]})
        return created["id"]

    async def rename_spreadsheet(self, spreadsheet_id: str, title: str) -> None:
        await self._call(
            f"Rename spreadsheet {spreadsheet_id}",
            lambda s, d: d.files().update(
                fileId=spreadsheet_id, body={"name": title}, supportsAllDrives=True
            ),
        )

    # ── Sheets ──

    async def list_sheets(self, spreadsheet_id: str) -> List[str]:
        result = await self._call(
            f"List sheets of {spreadsheet_id}",
            lambda s, d: s.spreadsheets().get(
                spreadsheetId=spreadsheet_id, fields="sheets.properties"
            ),
        )
        titles = []
        for sheet in result.get("sheets", []):
            props = sheet.get("properties", {})
            self._sheet_ids[(spreadsheet_id, props.get("title"))] = props.get("sheetId")
            titles.append(props.get("title"))
        return titles

    async def create_sheet(self, spreadsheet_id: str, sheet_name: str) -> None:
        body = {"requests": [{"addSheet": {"properties": {"title": sheet_name}}}]}
        try:
            result = await self._call(
                f"Create sheet '{sheet_name}'",
                lambda s, d: s.spreadsheets().batchUpdate(
                    spreadsheetId=spreadsheet_id, body=body
                ),
            )
        except DestinationAPIError as e:
            if "already exists" in str(e).lower():
                logger.info(f"Sheet '{sheet_name}' already exists")
                return
            raise
        reply = (result.get("replies") or [{}])[0]
        sheet_id = reply.get("addSheet", {}).get("properties", {}).get("sheetId")
        if sheet_id is not None:
            self._sheet_ids[(spreadsheet_id, sheet_name)] = sheet_id
        logger.info(f"Created sheet: {sheet_name}", extra={"spreadsheet_id": spreadsheet_id})

    async def read_column(
        self, spreadsheet_id: str, sheet_name: str, column: str = "A"
    ) -> List[List[str]]:
        result = await self._call(
            f"Read {sheet_name}!{column}:{column}",
            lambda s, d: s.spreadsheets().values().get(
                spreadsheetId=spreadsheet_id,
                range=f"'{sheet_name}'!{column}:{column}",
                valueRenderOption="FORMATTED_VALUE",
            ),
        )
        return result.get("values", [])

    async def append_rows(
        self, spreadsheet_id: str, sheet_name: str, rows: Sequence[Sequence[Any]]
    ) -> None:
        if not rows:
            return
        body = {"values": [list(r) for r in rows]}
        await self._call(
            f"Append {len(rows)} rows to {sheet_name}",
            lambda s, d: s.spreadsheets().values().append(
                spreadsheetId=spreadsheet_id,
                range=f"'{sheet_name}'!A1",
                valueInputOption="USER_ENTERED",
                insertDataOption="INSERT_ROWS",
                body=body,
            ),
        )

    async def format_sheet(
        self, spreadsheet_id: str, sheet_name: str, headers: Sequence[str]
    ) -> None:
        sheet_id = self._sheet_ids.get((spreadsheet_id, sheet_name))
        if sheet_id is None:
            await self.list_sheets(spreadsheet_id)
            sheet_id = self._sheet_ids.get((spreadsheet_id, sheet_name))
        if sheet_id is None:
            return

        requests: List[Dict[str, Any]] = [
            {
                "repeatCell": {
                    "range": {"sheetId": sheet_id, "startRowIndex": 0, "endRowIndex": 1},
                    "cell": {
                        "userEnteredFormat": {
                            "backgroundColor": HEADER_BACKGROUND,
                            "textFormat": {
                                "foregroundColor": HEADER_TEXT,
                                "bold": True,
                                "fontSize": 11,
                            },
                            "horizontalAlignment": "CENTER",
                            "verticalAlignment": "MIDDLE",
                        }
                    },
                    "fields": "userEnteredFormat(backgroundColor,textFormat,horizontalAlignment,verticalAlignment)",
                }
            },
            {
                "updateSheetProperties": {
                    "properties": {"sheetId": sheet_id, "gridProperties": {"frozenRowCount": 1}},
                    "fields": "gridProperties.frozenRowCount",
                }
            },
        ]
        for index, header in enumerate(headers):
            lowered = header.lower()
            if any(h in lowered for h in RATE_HINTS):
                number_format = {"type": "NUMBER", "pattern": '0.00"%"'}
            elif any(h in lowered for h in COUNT_HINTS):
                number_format = {"type": "NUMBER", "pattern": "#,##0"}
            else:
                continue
            requests.append(
                {
                    "repeatCell": {
                        "range": {
                            "sheetId": sheet_id,
                            "startRowIndex": 1,
                            "startColumnIndex": index,
                            "endColumnIndex": index + 1,
                        },
                        "cell": {"userEnteredFormat": {"numberFormat": number_format}},
                        "fields": "userEnteredFormat.numberFormat",
                    }
                }
            )

        await self._call(
            f"Style sheet {sheet_name}",
            lambda s, d: s.spreadsheets().batchUpdate(
                spreadsheetId=spreadsheet_id, body={"requests": requests}
            ),
        )
        logger.info(f"Applied styling to sheet: {sheet_name}")
