"""
Brand Repository - Data Access Layer for Brands

Brands, their recall history (brands_recalls array rows) and the persisted
Brand Trust Index.
"""
from datetime import datetime
from typing import List, Optional

from product_report.core.database import get_db_connection_dict
from product_report.domain.brand import Brand, Recall, TrustCalculation


class BrandRepository:
    """Repository for Brand data access"""

    @staticmethod
    def _map_row_to_brand(row: dict, recalls: Optional[List[dict]] = None) -> Brand:
        return Brand(
            id=row['id'],
            name=row['name'],
            slug=row.get('slug'),
            trust_score=row.get('trust_score'),
            trust_grade=row.get('trust_grade'),
            trust_score_last_calculated=row.get('trust_score_last_calculated'),
            recalls=[Recall(severity=r.get('severity')) for r in (recalls or [])],
        )

    def find_by_id(self, brand_id: int) -> Optional[Brand]:
        """
        Find brand by ID, including its recalls

        Returns:
            Brand or None if not found
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, name, slug, trust_score, trust_grade, trust_score_last_calculated
                FROM brands
                WHERE id = %s
            """, (brand_id,))

            row = cursor.fetchone()
            if not row:
                return None

            cursor.execute("""
                SELECT severity
                FROM brands_recalls
                WHERE _parent_id = %s
                ORDER BY _order
            """, (brand_id,))
            recalls = cursor.fetchall()

            return self._map_row_to_brand(row, recalls)

        finally:
            cursor.close()
            conn.close()

    def find_all(self, limit: int = 500) -> List[Brand]:
        """All brands without recalls loaded"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, name, slug, trust_score, trust_grade, trust_score_last_calculated
                FROM brands
                ORDER BY id
                LIMIT %s
            """, (limit,))

            return [self._map_row_to_brand(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_by_name(self, name: str) -> Optional[Brand]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, name, slug, trust_score, trust_grade, trust_score_last_calculated
                FROM brands
                WHERE name = %s
                LIMIT 1
            """, (name,))

            row = cursor.fetchone()
            return self._map_row_to_brand(row) if row else None

        finally:
            cursor.close()
            conn.close()

    def create(self, name: str, slug: str) -> int:
        """
        Insert a brand row

        Returns:
            New brand ID
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO brands (name, slug, created_at, updated_at)
                VALUES (%s, %s, NOW(), NOW())
                RETURNING id
            """, (name, slug))

            brand_id = cursor.fetchone()['id']
            conn.commit()
            return brand_id

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def update_trust(self, calculation: TrustCalculation, calculated_at: datetime) -> None:
        """Persist a trust calculation on its brand"""
        breakdown = calculation.breakdown
        stats = calculation.stats

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE brands
                SET trust_score = %s,
                    trust_grade = %s,
                    score_breakdown_ingredient_quality = %s,
                    score_breakdown_recall_history = %s,
                    score_breakdown_transparency = %s,
                    score_breakdown_consistency = %s,
                    score_breakdown_responsiveness = %s,
                    product_count = %s,
                    avoid_count = %s,
                    recall_count = %s,
                    trust_score_last_calculated = %s,
                    updated_at = NOW()
                WHERE id = %s
            """, (
                calculation.trust_score,
                calculation.trust_grade,
                breakdown.ingredient_quality,
                breakdown.recall_history,
                breakdown.transparency,
                breakdown.consistency,
                breakdown.responsiveness,
                stats.product_count,
                stats.avoid_count,
                stats.recall_count,
                calculated_at,
                calculation.brand_id,
            ))
            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def count_verified_reaction_reports(self, brand_name: str) -> int:
        """Verified reaction reports filed against any product of the brand"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT COUNT(*) AS count
                FROM user_submissions s
                JOIN products p ON s.product_id = p.id
                WHERE s.type = 'reaction_report'
                  AND s.status = 'verified'
                  AND p.brand = %s
            """, (brand_name,))

            row = cursor.fetchone()
            return int(row['count']) if row else 0

        finally:
            cursor.close()
            conn.close()
