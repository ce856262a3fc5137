import logging
from typing import List, Tuple

from carburanti.models import Price, Station

logger = logging.getLogger(__name__)

# --- 최소 내장 데이터셋 ---
# Served only when the ministry is unreachable and no snapshot was ever saved.
# Rows use the registry/price CSV column order.
BUILTIN_STATION_ROWS: List[List[str]] = [
    ["1000001", "TAMOIL ITALIA SPA", "TAMOIL", "Stradale", "STAZIONE DI RIFORNIMENTO", "VIA CRISTOFORO COLOMBO 1897", "ROMA", "RM", "41.8183", "12.4593"],
    ["1000002", "ENI SPA", "ENI", "Stradale", "STAZIONE DI SERVIZIO", "VIA TUSCOLANA 1581", "ROMA", "RM", "41.8544", "12.5779"],
    ["1000003", "Q8 PETROLEUM ITALIA SPA", "Q8", "Stradale", "STAZIONE DI SERVIZIO", "VIALE EUROPA 95", "ROMA", "RM", "41.8317", "12.4686"],
    ["1000004", "ESSO ITALIANA SRL", "ESSO", "Stradale", "STAZIONE DI SERVIZIO", "CORSO FRANCIA 252", "ROMA", "RM", "41.9378", "12.4689"],
    ["1000005", "ENI SPA", "ENI", "Stradale", "STAZIONE DI SERVIZIO", "CORSO SEMPIONE 94", "MILANO", "MI", "45.4862", "9.1663"],
    ["1000006", "TAMOIL ITALIA SPA", "TAMOIL", "Stradale", "STAZIONE DI RIFORNIMENTO", "VIALE FULVIO TESTI 303", "MILANO", "MI", "45.5124", "9.2136"],
    ["1000007", "Q8 PETROLEUM ITALIA SPA", "Q8", "Stradale", "STAZIONE DI SERVIZIO", "VIALE CERTOSA 215", "MILANO", "MI", "45.4993", "9.1224"],
    ["1000008", "AGIP SPA", "AGIP", "Stradale", "STAZIONE DI SERVIZIO", "CORSO GARIBALDI 35", "NAPOLI", "NA", "40.8483", "14.2494"],
    ["1000009", "ESSO ITALIANA SRL", "ESSO", "Stradale", "STAZIONE DI SERVIZIO", "VIA TOLEDO 256", "NAPOLI", "NA", "40.8422", "14.2485"],
    ["1000010", "ENI SPA", "ENI", "Stradale", "STAZIONE DI SERVIZIO", "VIA CARACCIOLO 13", "NAPOLI", "NA", "40.8302", "14.2211"],
]

BUILTIN_PRICE_ROWS: List[List[str]] = [
    ["1000001", "Benzina", "1,899", "1", "2023-06-06"],
    ["1000001", "Gasolio", "1,799", "1", "2023-06-06"],
    ["1000001", "GPL", "0,799", "1", "2023-06-06"],
    ["1000002", "Benzina", "1,889", "1", "2023-06-06"],
    ["1000002", "Gasolio", "1,789", "1", "2023-06-06"],
    ["1000002", "Metano", "1,979", "1", "2023-06-06"],
    ["1000003", "Benzina", "1,879", "1", "2023-06-06"],
    ["1000003", "Gasolio", "1,779", "1", "2023-06-06"],
    ["1000004", "Benzina", "1,909", "1", "2023-06-06"],
    ["1000004", "Gasolio", "1,809", "1", "2023-06-06"],
    ["1000005", "Benzina", "1,929", "1", "2023-06-06"],
    ["1000005", "Gasolio", "1,829", "1", "2023-06-06"],
    ["1000006", "Benzina", "1,919", "1", "2023-06-06"],
    ["1000006", "Gasolio", "1,819", "1", "2023-06-06"],
    ["1000006", "GPL", "0,789", "1", "2023-06-06"],
    ["1000007", "Benzina", "1,939", "1", "2023-06-06"],
    ["1000007", "Gasolio", "1,839", "1", "2023-06-06"],
    ["1000008", "Benzina", "1,869", "1", "2023-06-06"],
    ["1000008", "Gasolio", "1,769", "1", "2023-06-06"],
    ["1000009", "Benzina", "1,859", "1", "2023-06-06"],
    ["1000009", "Gasolio", "1,759", "1", "2023-06-06"],
    ["1000010", "Benzina", "1,849", "1", "2023-06-06"],
    ["1000010", "Gasolio", "1,749", "1", "2023-06-06"],
    ["1000010", "GPL", "0,779", "1", "2023-06-06"],
]


def builtin_dataset() -> Tuple[List[Station], List[Price]]:
    """Return the hard-coded minimal stations/prices pair."""
    stations = [Station.from_row(row) for row in BUILTIN_STATION_ROWS]
    prices = [Price.from_row(row) for row in BUILTIN_PRICE_ROWS]
    logger.info("Built-in dataset: %d stations, %d prices", len(stations), len(prices))
    return stations, prices
