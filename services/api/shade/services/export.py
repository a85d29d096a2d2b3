"""
CSV export of a room's session leaderboard.

Optionally enriches numeric player ids (Farcaster ids) with their primary
Ethereum address. Address lookup is best-effort: a failed batch is logged
and its players are exported with an empty address.
"""
import csv
import io
import logging
from typing import Optional

import httpx

from ..aggregates import build_leaderboard
from ..config import Settings
from ..errors import RoomNotFound
from ..storage import Storage

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "rank",
    "playerId",
    "playerName",
    "averageScore",
    "totalScore",
    "roundsPlayed",
    "bestScore",
    "averageTimeTaken",
]


class LeaderboardExporter:
    """Renders session leaderboards as CSV."""

    def __init__(
        self,
        storage: Storage,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.storage = storage
        self.settings = settings
        self._transport = transport

    async def export_csv(self, room_id: str, include_address: bool = False) -> str:
        if await self.storage.get_room(room_id) is None:
            raise RoomNotFound(room_id)

        entries = build_leaderboard(await self.storage.list_scores(room_id))

        addresses: dict[str, str] = {}
        if include_address:
            addresses = await self.fetch_addresses([e.player_id for e in entries])

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_COLUMNS + (["address"] if include_address else []))
        for entry in entries:
            row = [
                entry.rank,
                entry.player_id,
                entry.player_name,
                entry.average_score,
                entry.total_score,
                len(entry.round_scores),
                entry.best_score,
                entry.average_time_taken,
            ]
            if include_address:
                row.append(addresses.get(entry.player_id, ""))
            writer.writerow(row)

        logger.info("Exported %d leaderboard row(s) for room %s", len(entries), room_id)
        return buffer.getvalue()

    async def fetch_addresses(self, player_ids: list[str]) -> dict[str, str]:
        """
        Look up primary Ethereum addresses for numeric player ids.

        Returns a mapping of player id to address for every id the endpoint
        resolved. Non-numeric ids are never sent.
        """
        fids = [pid for pid in dict.fromkeys(player_ids) if pid.isdigit()]
        if not fids:
            return {}

        size = self.settings.address_lookup_batch_size
        found: dict[str, str] = {}
        async with httpx.AsyncClient(
            timeout=self.settings.address_lookup_timeout,
            transport=self._transport,
        ) as client:
            for start in range(0, len(fids), size):
                batch = fids[start:start + size]
                try:
                    response = await client.get(
                        self.settings.address_lookup_url,
                        params={"fids": ",".join(batch), "protocol": "ethereum"},
                        headers={"Accept": "application/json"},
                    )
                    response.raise_for_status()
                    payload = response.json()
                except (httpx.HTTPError, ValueError) as e:
                    logger.warning("Address lookup failed for %d id(s): %s", len(batch), e)
                    continue

                for item in (payload.get("result") or {}).get("addresses") or []:
                    address = item.get("address") or {}
                    if item.get("success") and address.get("address") and address.get("fid"):
                        found[str(address["fid"])] = address["address"]

        return found
