"""
Period oracle: name of the current Hijri month

Asks a Gregorian -> Hijri conversion service for today's date and falls
back to the tabular calendar on any failure, so current_period_name() always
returns a non-empty name.
"""
from datetime import date
from typing import Dict, Optional
import logging

import httpx

from database import get_settings
from services.hijri_calendar import gregorian_to_hijri, month_name

logger = logging.getLogger(__name__)


class PeriodOracle:
    """
    Resolves the current period name

    Args:
        api_url: conversion endpoint, called as GET {api_url}?date=DD-MM-YYYY
        timeout: request timeout in seconds
        enabled: False skips the network and uses the local calendar only
        client: optional httpx.Client (tests pass one with a MockTransport)
    """

    def __init__(
        self,
        api_url: str,
        timeout: float = 5.0,
        enabled: bool = True,
        client: Optional[httpx.Client] = None
    ):
        self.api_url = api_url
        self.timeout = timeout
        self.enabled = enabled
        self._client = client
        self._cache: Dict[date, str] = {}

    def current_period_name(self, today: Optional[date] = None) -> str:
        today = today or date.today()

        cached = self._cache.get(today)
        if cached:
            return cached

        name = None
        if self.enabled:
            try:
                name = self._fetch_period_name(today)
            except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
                logger.warning(f"Period lookup failed for {today}, using local calendar: {e}")

        if name is None:
            name = self.local_period_name(today)

        # Whatever was served first holds for the whole day; a later
        # network answer must not flip the period and reset the board.
        self._cache[today] = name
        return name

    @staticmethod
    def local_period_name(today: date) -> str:
        return gregorian_to_hijri(today).month_name

    def _fetch_period_name(self, today: date) -> str:
        params = {"date": today.strftime("%d-%m-%Y")}
        if self._client is not None:
            response = self._client.get(self.api_url, params=params, timeout=self.timeout)
        else:
            response = httpx.get(self.api_url, params=params, timeout=self.timeout)
        response.raise_for_status()

        month = response.json()["data"]["hijri"]["month"]
        if not isinstance(month, dict):
            raise ValueError(f"Unexpected month payload: {month!r}")
        number = month.get("number")
        if number is not None:
            return month_name(int(number))

        name = (month.get("en") or "").strip()
        if not name:
            raise ValueError("Response carries no month name")
        return name


_oracle: Optional[PeriodOracle] = None


def get_period_oracle() -> PeriodOracle:
    """FastAPI dependency: process-wide oracle built from settings"""
    global _oracle
    if _oracle is None:
        settings = get_settings()
        _oracle = PeriodOracle(
            api_url=settings.period_api_url,
            timeout=settings.period_api_timeout,
            enabled=settings.period_api_enabled,
        )
    return _oracle
