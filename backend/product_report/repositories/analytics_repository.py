"""
Analytics Repository - raw rows behind the internal business metrics

Device fingerprints (churn cohorts), referrals and payouts (attribution) and
user counts (trial conversion). Aggregation happens in MetricsCalculator.
"""
from typing import Dict, List

from product_report.core.database import get_db_connection_dict


class AnalyticsRepository:

    def find_device_fingerprints(self, limit: int = 10000) -> List[Dict]:
        """Rows with first_seen, created_at and subscription_status"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT first_seen, created_at, subscription_status
                FROM device_fingerprints
                LIMIT %s
            """, (limit,))
            return [dict(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_referrals(self, limit: int = 10000) -> List[Dict]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT referrer_id, referral_code, status, source, total_commission_paid
                FROM referrals
                LIMIT %s
            """, (limit,))
            return [dict(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_referral_payouts(self, limit: int = 1000) -> List[Dict]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT amount, status
                FROM referral_payouts
                LIMIT %s
            """, (limit,))
            return [dict(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def count_trial_users(self) -> Dict[str, int]:
        """
        Users who ever started a trial, and how many of them are premium now

        Returns:
            {"trials": int, "premium": int}
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT
                    COUNT(*) AS trials,
                    COUNT(*) FILTER (WHERE subscription_status = 'premium') AS premium
                FROM users
                WHERE trial_start_date IS NOT NULL
            """)
            row = cursor.fetchone() or {}
            return {
                "trials": int(row.get('trials') or 0),
                "premium": int(row.get('premium') or 0),
            }

        finally:
            cursor.close()
            conn.close()
