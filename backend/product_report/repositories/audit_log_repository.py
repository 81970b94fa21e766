"""
Audit Log Repository

Append-only rows in the CMS audit_log table recording system actions
(cron runs, trust recalculations, archetype assignments).
"""
import logging
from typing import Any, Dict, Optional

from psycopg2.extras import Json

from product_report.core.database import get_db_connection_dict

logger = logging.getLogger(__name__)


class AuditLogRepository:

    def create(
        self,
        action: str,
        source_type: str = "system",
        target_collection: Optional[str] = None,
        target_id: Optional[int] = None,
        target_name: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        success: bool = True,
        error_message: Optional[str] = None
    ) -> int:
        """
        Insert an audit row

        Returns:
            New audit log ID
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO audit_log (
                    action, source_type, target_collection, target_id, target_name,
                    metadata, success, error_message, retryable, created_at, updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, FALSE, NOW(), NOW())
                RETURNING id
            """, (
                action,
                source_type,
                target_collection,
                target_id,
                target_name,
                Json(metadata or {}),
                success,
                error_message,
            ))

            audit_id = cursor.fetchone()['id']
            conn.commit()
            return audit_id

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()


def create_audit_log(**kwargs) -> None:
    """
    Write an audit row; failures are logged and not raised so auditing never
    breaks the operation being audited.
    """
    try:
        AuditLogRepository().create(**kwargs)
    except Exception as e:
        logger.error(f"Failed to create audit log: {e}")
