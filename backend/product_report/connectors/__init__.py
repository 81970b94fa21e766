"""
Connectors - third-party REST APIs (RevenueCat, Mixpanel, Statsig, Gemini)
"""
from product_report.connectors.gemini_connector import GeminiConnector
from product_report.connectors.mixpanel_connector import MixpanelConnector
from product_report.connectors.revenuecat_connector import RevenueCatConnector
from product_report.connectors.statsig_connector import StatsigConnector

__all__ = [
    'GeminiConnector',
    'MixpanelConnector',
    'RevenueCatConnector',
    'StatsigConnector',
]
