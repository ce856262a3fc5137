"""Pydantic schemas for the station endpoints"""

from typing import List, Optional, Union
from pydantic import BaseModel, Field


class DettagliStazione(BaseModel):
    """Operator details of a station."""
    gestore: str = Field("", description="Operatore dell'impianto")
    tipo: str = Field("", description="Tipo impianto (es. Stradale, Autostradale)")
    nome: str = Field("", description="Nome impianto")


class Indirizzo(BaseModel):
    via: str = Field("", description="Indirizzo")
    comune: str = Field("", description="Comune")
    provincia: str = Field("", description="Sigla provincia")


class Maps(BaseModel):
    lat: Optional[float] = Field(None, description="Latitudine (WGS 84)")
    lon: Optional[float] = Field(None, description="Longitudine (WGS 84)")


class PrezzoCarburante(BaseModel):
    """One fuel price observation joined to a station."""
    tipo: str = Field(..., description="Tipo carburante (Benzina, Gasolio, GPL, Metano, ...)")
    prezzo: Optional[float] = Field(None, description="Prezzo in EUR; null se non interpretabile")
    self_service: bool = Field(False, description="True se self service")
    ultimo_aggiornamento: Optional[str] = Field(None, description="Data ultima comunicazione del prezzo")


class Connettore(BaseModel):
    tipo: str = Field(..., description="Tipo connettore (es. Type 2, CCS)")
    potenza_kw: Optional[float] = Field(None, description="Potenza in kW")


class StationResult(BaseModel):
    """Station record returned by the search endpoints"""
    id_stazione: str = Field(..., description="Identificativo impianto")
    bandiera: str = Field("", description="Marchio")
    dettagli_stazione: DettagliStazione
    indirizzo: Indirizzo
    maps: Maps
    distanza: Optional[float] = Field(None, description="Distanza dal punto richiesto in km (2 decimali)")
    prezzi_carburanti: List[PrezzoCarburante] = Field(default_factory=list)


class ChargeStationResult(StationResult):
    """EV charge station in the same shape as a fuel station, plus connectors"""
    connettori: List[Connettore] = Field(default_factory=list)


class StationSearchResponse(BaseModel):
    status: str = "success"
    timestamp: str
    totale_stazioni: int = Field(..., description="Stazioni presenti nel dataset")
    stazioni_trovate: int = Field(..., description="Stazioni restituite")
    stations: List[Union[ChargeStationResult, StationResult]] = Field(default_factory=list)


class TopStationsResponse(BaseModel):
    status: str = "success"
    timestamp: str
    totale_stazioni: int
    stazioni_mostrate: int
    stations: List[StationResult] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str = Field(..., description="ok se il dataset carburanti e' disponibile, altrimenti degraded")
    timestamp: str
    stazioni: int
    prezzi: int
    colonnine: int
    fonte_dati: str = Field(..., description="remote / snapshot / builtin / empty")
    ultimo_aggiornamento: Optional[str] = None
    aggiornamento_in_corso: bool = False


class CronResponse(BaseModel):
    status: str = Field(..., description="success / error")
    timestamp: str
    message: Optional[str] = None
    stazioni: int = 0
    prezzi: int = 0
    fonte_dati: Optional[str] = None
    ultimo_aggiornamento: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error response schema"""
    status: str = Field("error", description="Always 'error'")
    message: str = Field(..., description="Error message")
