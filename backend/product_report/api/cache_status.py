"""
Cache Status API - visibility into the in-memory analytics cache

Endpoints:
- GET    /api/cache-status  - Configured caches and what is currently cached
- DELETE /api/cache-status  - Clear the cache
"""
import logging
from typing import Dict, List

from fastapi import APIRouter, Depends

from product_report.core.auth import TokenUser, get_current_user
from product_report.core.cache import CACHE_KEYS, CACHE_TTL, analytics_cache

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cache-status", tags=["Cache"])

CACHE_CONFIG: List[Dict] = [
    {'key': CACHE_KEYS.REVENUE, 'category': 'RevenueCat', 'ttlSeconds': CACHE_TTL.REVENUECAT, 'ttlLabel': '5 min'},
    {'key': CACHE_KEYS.TRIALS, 'category': 'RevenueCat', 'ttlSeconds': CACHE_TTL.REVENUECAT, 'ttlLabel': '5 min'},
    {'key': CACHE_KEYS.MRR, 'category': 'RevenueCat', 'ttlSeconds': CACHE_TTL.REVENUECAT, 'ttlLabel': '5 min'},
    {'key': CACHE_KEYS.CHURN, 'category': 'RevenueCat', 'ttlSeconds': CACHE_TTL.REVENUECAT, 'ttlLabel': '5 min'},
    {'key': CACHE_KEYS.EXPERIMENTS, 'category': 'Statsig', 'ttlSeconds': CACHE_TTL.STATSIG, 'ttlLabel': '5 min'},
    {'key': CACHE_KEYS.REFERRALS, 'category': 'Internal', 'ttlSeconds': CACHE_TTL.INTERNAL, 'ttlLabel': '30 sec'},
    {'key': CACHE_KEYS.FULL_RESPONSE, 'category': 'Aggregated', 'ttlSeconds': CACHE_TTL.AGGREGATED, 'ttlLabel': '1 min'},
]

TTL_CONFIG = {
    'REVENUECAT': '5 minutes',
    'MIXPANEL': '5 minutes',
    'STATSIG': '5 minutes',
    'INTERNAL': '30 seconds',
    'AGGREGATED': '1 minute',
}


@router.get("")
async def get_cache_status(user: TokenUser = Depends(get_current_user)):
    """Configured cache keys, which are populated, grouped by category"""
    stats = analytics_cache.stats()
    cached_keys = set(stats['keys'])

    entries = [{**config, 'cached': config['key'] in cached_keys} for config in CACHE_CONFIG]

    by_category: Dict[str, Dict[str, int]] = {}
    for entry in entries:
        category = by_category.setdefault(entry['category'], {'total': 0, 'cached': 0})
        category['total'] += 1
        if entry['cached']:
            category['cached'] += 1

    configured_keys = {config['key'] for config in CACHE_CONFIG}

    return {
        'totalEntries': stats['size'],
        'configuredCaches': len(CACHE_CONFIG),
        'activeCaches': len(stats['keys']),
        'entries': entries,
        'byCategory': by_category,
        'dynamicKeys': [key for key in stats['keys'] if key not in configured_keys],
        'ttlConfig': TTL_CONFIG,
    }


@router.delete("")
async def clear_cache(user: TokenUser = Depends(get_current_user)):
    analytics_cache.clear()
    logger.info(f"Analytics cache cleared by {user.email}")
    return {'success': True, 'message': 'Cache cleared'}
