"""SproutSync — Abstract Destination Writer."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from sproutsync.core.errors import AuthenticationError
from sproutsync.core.logging import get_logger

logger = get_logger("sheets.base")


class DestinationWriter(ABC):
    """A spreadsheet store: documents in a folder, one sheet per platform.

    Implementations make plain calls; deduplication is enforced by the
    caller, not the store.
    """

    async def verify_access(self, folder_id: str) -> None:
        """Fail with AuthenticationError if the folder cannot be used."""
        return None

    @abstractmethod
    async def find_spreadsheet(
        self, title_prefix: str, folder_id: str
    ) -> Optional[Dict[str, str]]:
        """Return ``{"id", "name"}`` of a document whose title starts with the prefix."""
        ...

    @abstractmethod
    async def create_spreadsheet(self, title: str, folder_id: str) -> str:
        """Create a document in the folder and return its id."""
        ...

    @abstractmethod
    async def rename_spreadsheet(self, spreadsheet_id: str, title: str) -> None:
        ...

    @abstractmethod
    async def list_sheets(self, spreadsheet_id: str) -> List[str]:
        ...

    @abstractmethod
    async def create_sheet(self, spreadsheet_id: str, sheet_name: str) -> None:
        ...

    @abstractmethod
    async def read_column(
        self, spreadsheet_id: str, sheet_name: str, column: str = "A"
    ) -> List[List[str]]:
        """Raw string rows of one column, header included."""
        ...

    @abstractmethod
    async def append_rows(
        self, spreadsheet_id: str, sheet_name: str, rows: Sequence[Sequence[Any]]
    ) -> None:
        ...

    async def format_sheet(
        self, spreadsheet_id: str, sheet_name: str, headers: Sequence[str]
    ) -> None:
        """Cosmetic formatting; optional."""
        return None

    @staticmethod
    def spreadsheet_url(spreadsheet_id: str) -> str:
        return f"https://docs.google.com/spreadsheets/d/{spreadsheet_id}/edit"

    # ── Composite helpers ──

    async def find_or_create_spreadsheet(
        self, title_prefix: str, title: str, folder_id: str
    ) -> str:
        """Reuse a document matching ``title_prefix`` or create one named ``title``."""
        existing = await self.find_spreadsheet(title_prefix, folder_id)
        if existing:
            logger.info(
                f"Found existing spreadsheet: \"{existing['name']}\" ({existing['id']})",
                extra={"spreadsheet_id": existing["id"]},
            )
            return existing["id"]

        logger.info(f"No existing spreadsheet found. Creating a new one: \"{title}\"")
        return await self.create_spreadsheet(title, folder_id)

    async def ensure_sheet(
        self, spreadsheet_id: str, sheet_name: str, headers: Sequence[str]
    ) -> None:
        """Create the sheet if missing and write the header row if it is empty."""
        if sheet_name not in await self.list_sheets(spreadsheet_id):
            await self.create_sheet(spreadsheet_id, sheet_name)

        if not await self.read_column(spreadsheet_id, sheet_name, "A"):
            await self.append_rows(spreadsheet_id, sheet_name, [list(headers)])

        try:
            await self.format_sheet(spreadsheet_id, sheet_name, headers)
        except AuthenticationError:
            raise
        except Exception as e:
            logger.warning(f"Error applying styles to sheet {sheet_name}: {e}")
