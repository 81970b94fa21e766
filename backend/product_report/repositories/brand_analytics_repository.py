"""
Brand Analytics Repository - daily brand snapshots

One brand_analytics row per brand per day. Scan, search and rank columns are
written as zero until scan events are aggregated from the audit log.
"""
from datetime import date
from typing import Optional

from product_report.core.database import get_db_connection_dict
from product_report.domain.brand import BrandAnalyticsSnapshot, VerdictBreakdown


class BrandAnalyticsRepository:
    """Repository for brand_analytics rows"""

    @staticmethod
    def _map_row_to_snapshot(row: dict) -> BrandAnalyticsSnapshot:
        return BrandAnalyticsSnapshot(
            brand_id=row['brand_id'],
            brand_name=row['brand_name'],
            day=row['date'],
            verdict_breakdown=VerdictBreakdown(
                recommend_count=row.get('verdict_breakdown_recommend_count') or 0,
                caution_count=row.get('verdict_breakdown_caution_count') or 0,
                avoid_count=row.get('verdict_breakdown_avoid_count') or 0,
                avoid_hit_count=row.get('verdict_breakdown_avoid_hit_count') or 0,
            ),
            trust_score=row.get('trust_score') or 0,
            trust_grade=row.get('trust_grade') or 'C',
            trust_score_change=row.get('changes_trust_score_change') or 0,
            product_count=row.get('product_count') or 0,
            tested_product_count=row.get('tested_product_count') or 0,
            average_product_score=row.get('average_product_score') or 0,
        )

    def find_snapshot(self, brand_id: int, day: date) -> Optional[BrandAnalyticsSnapshot]:
        """The brand's snapshot for day, or None"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT brand_id, brand_name, date,
                       verdict_breakdown_recommend_count, verdict_breakdown_caution_count,
                       verdict_breakdown_avoid_count, verdict_breakdown_avoid_hit_count,
                       trust_score, trust_grade, changes_trust_score_change,
                       product_count, tested_product_count, average_product_score
                FROM brand_analytics
                WHERE brand_id = %s AND date = %s
                LIMIT 1
            """, (brand_id, day))

            row = cursor.fetchone()
            return self._map_row_to_snapshot(row) if row else None

        finally:
            cursor.close()
            conn.close()

    def create_snapshot(self, snapshot: BrandAnalyticsSnapshot) -> int:
        """
        Insert a daily snapshot

        Returns:
            New snapshot ID
        """
        breakdown = snapshot.verdict_breakdown

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO brand_analytics (
                    brand_id, brand_name, date,
                    scan_count, search_count, product_view_count, unique_users,
                    verdict_breakdown_recommend_count, verdict_breakdown_caution_count,
                    verdict_breakdown_avoid_count, verdict_breakdown_avoid_hit_count,
                    trust_score, trust_grade, category_rank, overall_rank,
                    changes_scan_count_change, changes_trust_score_change,
                    changes_category_rank_change, changes_week_over_week_growth,
                    product_count, tested_product_count, pending_test_count,
                    average_product_score, created_at, updated_at
                )
                VALUES (
                    %s, %s, %s,
                    0, 0, 0, 0,
                    %s, %s, %s, %s,
                    %s, %s, 0, 0,
                    0, %s, 0, 0,
                    %s, %s, 0,
                    %s, NOW(), NOW()
                )
                RETURNING id
            """, (
                snapshot.brand_id,
                snapshot.brand_name,
                snapshot.day,
                breakdown.recommend_count,
                breakdown.caution_count,
                breakdown.avoid_count,
                breakdown.avoid_hit_count,
                snapshot.trust_score,
                snapshot.trust_grade,
                snapshot.trust_score_change,
                snapshot.product_count,
                snapshot.tested_product_count,
                snapshot.average_product_score,
            ))

            snapshot_id = cursor.fetchone()['id']
            conn.commit()
            return snapshot_id

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()
