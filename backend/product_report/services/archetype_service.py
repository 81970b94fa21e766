"""
Archetype Service - premium / value badges per category

- ARCHETYPE_PREMIUM: highest price range among recommended products
- ARCHETYPE_VALUE: best overall score per price unit

Products with archetype_override set are never picked, but still lose a
badge they hold when another product takes it.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from product_report.domain.brand import ArchetypeRunResult
from product_report.domain.product import ProductSummary
from product_report.repositories.audit_log_repository import create_audit_log
from product_report.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)


@dataclass
class ArchetypeSelection:
    premium: Optional[ProductSummary] = None
    value: Optional[ProductSummary] = None
    previous_premium_id: Optional[int] = None
    previous_value_id: Optional[int] = None

    @property
    def premium_id(self) -> Optional[int]:
        return self.premium.id if self.premium else None

    @property
    def value_id(self) -> Optional[int]:
        return self.value.id if self.value else None

    @property
    def has_archetype(self) -> bool:
        return self.premium is not None or self.value is not None

    def audit_metadata(self) -> Dict:
        return {
            'type': 'archetype_calculation',
            'premiumProduct': {
                'id': self.premium.id,
                'name': self.premium.name,
                'brand': self.premium.brand,
                'priceValue': self.premium.price_value,
            } if self.premium else None,
            'valueProduct': {
                'id': self.value.id,
                'name': self.value.name,
                'brand': self.value.brand,
                'ratio': self.value.score_price_ratio,
            } if self.value else None,
            'previousPremiumId': self.previous_premium_id,
            'previousValueId': self.previous_value_id,
        }


def select_archetypes(products: List[ProductSummary]) -> ArchetypeSelection:
    """
    Pick premium and value products from candidates ordered newest first.

    Ties go to the first candidate in order.
    """
    eligible = [p for p in products if not p.badges.archetype_override]
    if not eligible:
        return ArchetypeSelection()

    previous_premium = next((p for p in products if p.badges.is_archetype_premium), None)
    previous_value = next((p for p in products if p.badges.is_archetype_value), None)

    return ArchetypeSelection(
        premium=max(eligible, key=lambda p: p.price_value),
        value=max(eligible, key=lambda p: p.score_price_ratio),
        previous_premium_id=previous_premium.id if previous_premium else None,
        previous_value_id=previous_value.id if previous_value else None,
    )


class ArchetypeService:

    def __init__(self, repository: ProductRepository = None):
        self.repository = repository or ProductRepository()

    def calculate_for_category(self, category_id: int) -> ArchetypeSelection:
        return select_archetypes(self.repository.find_archetype_candidates(category_id))

    def apply(self, selection: ArchetypeSelection) -> Tuple[int, int]:
        """
        Move badges to the selected products

        Returns:
            (products updated, badges cleared)
        """
        updated = 0
        cleared = 0
        now = datetime.now(timezone.utc)

        if selection.previous_premium_id and selection.previous_premium_id != selection.premium_id:
            self.repository.update_badges(selection.previous_premium_id, is_archetype_premium=False)
            cleared += 1

        if selection.previous_value_id and selection.previous_value_id != selection.value_id:
            self.repository.update_badges(selection.previous_value_id, is_archetype_value=False)
            cleared += 1

        if selection.premium_id and selection.premium_id == selection.value_id:
            self.repository.update_badges(
                selection.premium_id,
                is_archetype_premium=True,
                is_archetype_value=True,
                calculated_at=now,
            )
            return updated + 1, cleared

        if selection.premium_id:
            self.repository.update_badges(selection.premium_id, is_archetype_premium=True, calculated_at=now)
            updated += 1

        if selection.value_id:
            self.repository.update_badges(selection.value_id, is_archetype_value=True, calculated_at=now)
            updated += 1

        return updated, cleared

    def run(self) -> ArchetypeRunResult:
        """Recalculate archetypes for every category"""
        result = ArchetypeRunResult()

        try:
            categories = self.repository.find_categories()
        except Exception as e:
            message = f"Failed to fetch categories: {e}"
            logger.error(message)
            result.errors.append(message)
            return result

        for category in categories:
            try:
                selection = self.calculate_for_category(category['id'])

                if selection.has_archetype:
                    updated, cleared = self.apply(selection)
                    result.products_updated += updated
                    result.products_cleared += cleared

                    create_audit_log(
                        action='ai_verdict_set',
                        source_type='system',
                        target_collection='categories',
                        target_id=category['id'],
                        target_name=category.get('name'),
                        metadata=selection.audit_metadata(),
                    )

                result.categories_processed += 1

            except Exception as e:
                message = f"Failed to calculate archetypes for category {category['id']}: {e}"
                logger.error(message)
                result.errors.append(message)

        return result
