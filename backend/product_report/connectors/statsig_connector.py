"""
Statsig Console API Connector
Experiment results for the business analytics dashboard

API Docs: https://docs.statsig.com/console-api/experiments
"""
import asyncio
import logging
from typing import Dict, List, Optional

import httpx

from product_report.core.cache import CACHE_KEYS, CACHE_TTL, AnalyticsCache, analytics_cache
from product_report.core.config import get_settings
from product_report.domain.analytics import ExperimentResults, ExperimentStatus, ExperimentVariant

logger = logging.getLogger(__name__)

STATSIG_API_BASE = "https://statsigapi.net/console/v1"

STATUS_MAP = {
    'active': ExperimentStatus.RUNNING,
    'decision_made': ExperimentStatus.COMPLETED,
    'setup': ExperimentStatus.PAUSED,
    'abandoned': ExperimentStatus.PAUSED,
}

SIGNIFICANCE_THRESHOLD = 0.95
MAX_EXPERIMENTS = 5


def select_winner(variants: List[ExperimentVariant]) -> None:
    """
    Mark at most one variant as winning, in place.

    With significant variants, the best-converting significant one wins.
    Otherwise, when a control exists, the best non-control variant wins only
    if it converts better than control. Single-variant experiments have no
    winner.
    """
    if len(variants) <= 1:
        return

    significant = [v for v in variants if v.statistical_significance >= SIGNIFICANCE_THRESHOLD]
    if significant:
        max(significant, key=lambda v: v.conversion_rate).is_winning = True
        return

    control = next((v for v in variants if 'control' in v.name.lower()), None)
    if control is None:
        return

    challengers = [v for v in variants if v is not control]
    best = max(challengers, key=lambda v: v.conversion_rate - control.conversion_rate)
    if best.conversion_rate > control.conversion_rate:
        best.is_winning = True


def build_variants(groups: List[Dict], results: Optional[Dict]) -> List[ExperimentVariant]:
    """Variants from experiment groups, enriched with results when present"""
    results = results or {}
    group_results = {g.get('name'): g for g in results.get('groups') or []}
    metrics = results.get('metrics') or []
    primary_values = {
        value.get('group_name'): value
        for value in (metrics[0].get('values') or [] if metrics else [])
    }

    variants = []
    for group in groups:
        name = group.get('name')
        group_result = group_results.get(name) or {}
        metric_value = primary_values.get(name) or {}

        conversion_rate = group_result.get('conversion_rate')
        if conversion_rate is None:
            conversion_rate = metric_value.get('value') or 0

        variants.append(ExperimentVariant(
            name=name,
            conversion_rate=conversion_rate,
            statistical_significance=SIGNIFICANCE_THRESHOLD if metric_value.get('is_statistically_significant') else 0,
            sample_size=group_result.get('users') or 0,
        ))

    select_winner(variants)
    return variants


class StatsigConnector:
    """
    Connector for the Statsig Console API

    Handles:
    - Active / decided experiment results
    - Lookup by experiment name
    """

    def __init__(
        self,
        api_key: str = None,
        cache: AnalyticsCache = None,
        transport: httpx.AsyncBaseTransport = None
    ):
        self.api_key = api_key if api_key is not None else get_settings().STATSIG_CONSOLE_API_KEY
        self.cache = cache or analytics_cache
        self.transport = transport
        self.base_url = STATSIG_API_BASE
        self.timeout = 15.0

    def _headers(self) -> Dict[str, str]:
        return {
            'STATSIG-API-KEY': self.api_key,
            'Content-Type': 'application/json'
        }

    async def _get(self, client: httpx.AsyncClient, path: str) -> Optional[Dict]:
        response = await client.get(f"{self.base_url}{path}", headers=self._headers())
        if response.status_code >= 400:
            logger.error(f"Statsig API error on {path}: {response.status_code}")
            return None
        return response.json()

    async def _list_experiments(self, client: httpx.AsyncClient) -> List[Dict]:
        data = await self._get(client, "/experiments")
        if data is None:
            return []
        return data.get('data') or []

    async def _format_experiment(self, client: httpx.AsyncClient, experiment: Dict) -> ExperimentResults:
        results = None
        try:
            results = await self._get(client, f"/experiments/{experiment.get('id')}/results")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Statsig: error fetching results for {experiment.get('name')}: {e}")

        return ExperimentResults(
            name=experiment.get('name'),
            status=STATUS_MAP.get(experiment.get('status'), ExperimentStatus.PAUSED),
            variants=build_variants(experiment.get('groups') or [], results),
        )

    async def fetch_experiments(self) -> List[ExperimentResults]:
        """Up to five running or decided experiments; [] when unavailable"""
        cached = self.cache.get(CACHE_KEYS.EXPERIMENTS)
        if cached is not None:
            return cached

        if not self.api_key:
            logger.warning("Statsig: STATSIG_CONSOLE_API_KEY not configured")
            return []

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                experiments = await self._list_experiments(client)
                relevant = [
                    exp for exp in experiments
                    if exp.get('status') in ('active', 'decision_made')
                ][:MAX_EXPERIMENTS]

                formatted = await asyncio.gather(
                    *(self._format_experiment(client, exp) for exp in relevant)
                )

        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Statsig: error fetching experiments: {e}")
            return []

        result = list(formatted)
        self.cache.set(CACHE_KEYS.EXPERIMENTS, result, CACHE_TTL.STATSIG)
        return result

    async def get_experiment(self, name: str) -> Optional[ExperimentResults]:
        """Experiment by name, case-insensitive"""
        wanted = name.lower()
        for experiment in await self.fetch_experiments():
            if experiment.name.lower() == wanted:
                return experiment
        return None

    async def get_active_experiment_names(self) -> List[str]:
        if not self.api_key:
            return []

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                experiments = await self._list_experiments(client)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Statsig: error fetching experiment names: {e}")
            return []

        return [exp.get('name') for exp in experiments if exp.get('status') == 'active']
