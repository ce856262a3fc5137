from typing import Any, Dict, List, Optional, Sequence
from pathlib import Path
import asyncio
import csv
import io
import logging
import math

import httpx

from carburanti.core.config import settings
from carburanti.models import (
    Address,
    ChargeStation,
    CHARGE_STATION_ID_PREFIX,
    Connector,
    PRICE_COLUMNS,
    Price,
    STATION_COLUMNS,
    Station,
)
from carburanti.services.ev_pricing import PowerPriceTable


# logger for this module
logger = logging.getLogger("carburanti.services.dataset_fetcher")

CSV_ENCODINGS = ("utf-8-sig", "utf-8", "cp1252", "latin-1")
USER_AGENT = "Carburanti-API/1.0"


class ExternalAPIError(Exception):
    pass


def _decode(payload: bytes) -> str:
    for encoding in CSV_ENCODINGS:
        try:
            return payload.decode(encoding)
        except UnicodeDecodeError:
            continue
    # latin-1 never fails, kept for completeness
    return payload.decode("latin-1", errors="replace")


def parse_csv_rows(text: str, separator: str = ";", header_rows: int = 1) -> List[List[str]]:
    """Split CSV text into positional rows, dropping the leading header lines and blank rows."""
    reader = csv.reader(io.StringIO(text), delimiter=separator)
    rows: List[List[str]] = []
    for index, row in enumerate(reader):
        if index < header_rows:
            continue
        if not row or not any(field.strip() for field in row):
            continue
        rows.append(row)
    return rows


def _is_remote(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def _item_id(item: Any) -> Any:
    return item.get("ID") if isinstance(item, dict) else None


class DatasetFetcher:
    """
    Downloads the ministry CSV exports and queries the EV charge point API.

    Every public method converts upstream failures into an empty list: callers
    never see network errors, timeouts or malformed payloads.
    """

    def __init__(
        self,
        csv_timeout: float = settings.CSV_FETCH_TIMEOUT_SECONDS,
        ev_base_url: Optional[str] = settings.EV_API_BASE_URL,
        ev_api_key: Optional[str] = settings.EV_API_KEY,
        ev_timeout: float = settings.EV_API_TIMEOUT_SECONDS,
        ev_retries: int = settings.EV_API_RETRIES,
        ev_max_results: int = settings.EV_API_MAX_RESULTS,
        price_table: Optional[PowerPriceTable] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        backoff: float = 0.5,
    ):
        self.csv_timeout = csv_timeout
        self.ev_base_url = ev_base_url
        self.ev_api_key = ev_api_key
        self.ev_timeout = ev_timeout
        self.ev_retries = max(0, ev_retries)
        self.ev_max_results = ev_max_results
        self.price_table = price_table or PowerPriceTable(settings.EV_PRICE_TIERS)
        # injectable for tests (httpx.MockTransport)
        self.transport = transport
        self.backoff = backoff

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout,
            transport=self.transport,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        )

    # --------------------------
    # CSV datasets
    # --------------------------
    async def _read_source(self, source: str) -> bytes:
        if _is_remote(source):
            async with self._client(self.csv_timeout) as client:
                resp = await client.get(source)
                if resp.status_code != 200:
                    raise ExternalAPIError(f"{source} answered {resp.status_code}")
                return resp.content
        return await asyncio.to_thread(Path(source).read_bytes)

    async def fetch_csv(self, sources: Sequence[str], separator: str = ";", header_rows: int = 1) -> List[List[str]]:
        """
        Fetch a positional CSV dataset, trying each source in order.

        A source is skipped when it errors, times out or yields zero rows.
        Returns [] when every source fails.
        """
        for source in sources:
            try:
                # wait_for bounds the whole download; httpx timeouts only cover single reads
                payload = await asyncio.wait_for(self._read_source(source), timeout=self.csv_timeout)
                rows = parse_csv_rows(_decode(payload), separator=separator, header_rows=header_rows)
            except asyncio.TimeoutError:
                logger.warning("CSV fetch timed out after %ss: %s", self.csv_timeout, source)
                continue
            except (httpx.HTTPError, ExternalAPIError, OSError, csv.Error) as e:
                logger.warning("CSV fetch failed for %s: %s", source, e)
                continue

            if rows:
                logger.info("Fetched %d rows from %s", len(rows), source)
                return rows
            logger.warning("CSV source returned no rows: %s", source)

        logger.error("All CSV sources failed: %s", list(sources))
        return []

    async def fetch_stations(
        self,
        sources: Sequence[str],
        separator: str = settings.CSV_SEPARATOR,
        header_rows: int = settings.CSV_HEADER_ROWS,
    ) -> List[Station]:
        rows = await self.fetch_csv(sources, separator=separator, header_rows=header_rows)
        stations: List[Station] = []
        skipped = 0
        for row in rows:
            if len(row) < STATION_COLUMNS:
                skipped += 1
                continue
            station = Station.from_row(row)
            if not station.id:
                skipped += 1
                continue
            stations.append(station)
        if skipped:
            logger.info("Skipped %d malformed station rows", skipped)
        return stations

    async def fetch_prices(
        self,
        sources: Sequence[str],
        separator: str = settings.CSV_SEPARATOR,
        header_rows: int = settings.CSV_HEADER_ROWS,
    ) -> List[Price]:
        rows = await self.fetch_csv(sources, separator=separator, header_rows=header_rows)
        prices: List[Price] = []
        skipped = 0
        for row in rows:
            if len(row) < PRICE_COLUMNS:
                skipped += 1
                continue
            price = Price.from_row(row)
            if not price.station_id:
                skipped += 1
                continue
            prices.append(price)
        if skipped:
            logger.info("Skipped %d malformed price rows", skipped)
        return prices

    # --------------------------
    # EV charge point search
    # --------------------------
    async def _get_json(self, url: str, params: Dict[str, Any], headers: Dict[str, str]) -> Any:
        # Simple retry with backoff
        for attempt in range(self.ev_retries + 1):
            try:
                async with self._client(self.ev_timeout) as client:
                    resp = await client.get(url, params=params, headers=headers)
                    if resp.status_code == 200:
                        return resp.json()
                    if resp.status_code == 429:
                        raise ExternalAPIError("Rate limited by external API")
                    if 500 <= resp.status_code < 600:
                        raise ExternalAPIError(f"External server error: {resp.status_code}")
                    # other 4xx are not worth retrying
                    resp.raise_for_status()
                    raise ExternalAPIError(f"Unexpected status: {resp.status_code}")
            except (httpx.RequestError, ExternalAPIError):
                if attempt < self.ev_retries:
                    await asyncio.sleep(self.backoff * (2 ** attempt))
                    continue
                raise

    async def fetch_charge_stations(self, lat: float, lon: float, radius_km: float) -> List[ChargeStation]:
        """Search EV charge points around (lat, lon); [] on any failure."""
        if not self.ev_base_url:
            logger.warning("EV API base URL is not configured; returning no charge stations")
            return []

        url = f"{self.ev_base_url.rstrip('/')}/poi/"
        params = {
            "output": "json",
            "latitude": lat,
            "longitude": lon,
            "distance": radius_km,
            "distanceunit": "KM",
            "maxresults": self.ev_max_results,
            # full reference objects (OperatorInfo, ConnectionType) instead of bare ids
            "compact": "false",
            "verbose": "false",
        }
        headers = {"Accept": "application/json"}
        if self.ev_api_key:
            headers["X-API-Key"] = self.ev_api_key

        try:
            payload = await self._get_json(url, params, headers)
        except (httpx.HTTPError, ExternalAPIError, ValueError) as e:
            logger.error("EV charge point search failed (%s, %s, %skm): %s", lat, lon, radius_km, e)
            return []

        if not isinstance(payload, list):
            logger.error("EV charge point search returned %s instead of a list", type(payload).__name__)
            return []

        stations: List[ChargeStation] = []
        skipped = 0
        for item in payload:
            try:
                station = self._parse_charge_station(item)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed charge station %r: %s", _item_id(item), e)
                station = None
            if station is None:
                skipped += 1
                continue
            stations.append(station)
        if skipped:
            logger.info("Skipped %d unusable charge station records", skipped)
        logger.info("EV search (%s, %s, %skm) returned %d stations", lat, lon, radius_km, len(stations))
        return stations

    def _parse_charge_station(self, item: Any) -> Optional[ChargeStation]:
        if not isinstance(item, dict) or item.get("ID") is None:
            return None
        ai = _as_dict(item.get("AddressInfo"))
        lat = _optional_float(ai.get("Latitude"))
        lon = _optional_float(ai.get("Longitude"))
        if lat is None or lon is None:
            return None

        connectors: List[Connector] = []
        for conn in _as_list(item.get("Connections")):
            if not isinstance(conn, dict):
                continue
            label = _text(_as_dict(conn.get("ConnectionType")).get("Title"))
            connectors.append(Connector(type_label=label or "Sconosciuto", power_kw=_optional_float(conn.get("PowerKW"))))

        station_id = _text(item["ID"])
        if not station_id:
            return None
        powers = [c.power_kw for c in connectors if c.power_kw is not None]

        return ChargeStation(
            id=f"{CHARGE_STATION_ID_PREFIX}{station_id}",
            name=_text(ai.get("Title")) or _text(ai.get("AddressLine1")) or f"Colonnina {station_id}",
            operator=_text(_as_dict(item.get("OperatorInfo")).get("Title")),
            address=Address(
                street=_text(ai.get("AddressLine1")),
                municipality=_text(ai.get("Town")),
                province=_text(ai.get("StateOrProvince")),
            ),
            lat=lat,
            lon=lon,
            connectors=connectors,
            estimated_price_kwh=self.price_table.price_for(max(powers) if powers else None),
            status_updated_at=_text(item.get("DateLastStatusUpdate")) or None,
        )
