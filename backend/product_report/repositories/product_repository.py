"""
Product Repository - Data Access Layer for Products

Handles all database queries for products and returns domain models.
Embeddings live in a pgvector `embedding` column the CMS does not manage, so
they are read and written here with raw SQL.
"""
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from product_report.core.database import get_db_connection_dict
from product_report.domain.product import (
    CategoryRef,
    EmbeddingInput,
    EmbeddingStats,
    ProductBadges,
    ProductSummary,
    SimilarProduct,
)

EMBEDDING_MODEL = "text-embedding-004"

_SUMMARY_COLUMNS = """
    p.id, p.name, p.brand, p.verdict, p.price_range, p.overall_score,
    p.ingredients_raw,
    p.badges_archetype_override, p.badges_is_archetype_premium,
    p.badges_is_archetype_value,
    (
        SELECT COUNT(*) FROM products_rels r
        WHERE r.parent_id = p.id AND r.path = 'ingredientsList'
    ) AS ingredient_count
"""


def to_vector_literal(embedding: Sequence[float]) -> str:
    """Format an embedding as a pgvector literal: [0.1,0.2,...]"""
    return "[" + ",".join(str(float(value)) for value in embedding) + "]"


class ProductRepository:
    """
    Repository for Product data access

    All SQL queries for products are centralized here.
    """

    @staticmethod
    def _map_row_to_summary(row: dict) -> ProductSummary:
        return ProductSummary(
            id=row['id'],
            name=row['name'],
            brand=row.get('brand'),
            verdict=row.get('verdict'),
            price_range=row.get('price_range'),
            overall_score=row.get('overall_score'),
            ingredients_raw=row.get('ingredients_raw'),
            ingredient_count=row.get('ingredient_count') or 0,
            badges=ProductBadges(
                archetype_override=bool(row.get('badges_archetype_override')),
                is_archetype_premium=bool(row.get('badges_is_archetype_premium')),
                is_archetype_value=bool(row.get('badges_is_archetype_value')),
            ),
        )

    def find_categories(self, limit: int = 500) -> List[Dict]:
        """All categories as {id, name} dicts"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, name
                FROM categories
                ORDER BY id
                LIMIT %s
            """, (limit,))
            return [dict(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_archetype_candidates(self, category_id: int, limit: int = 500) -> List[ProductSummary]:
        """
        Published RECOMMEND products in a category, newest first

        Args:
            category_id: Category to scan
            limit: Maximum products considered

        Returns:
            List of ProductSummary ordered by created_at DESC
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {_SUMMARY_COLUMNS}
                FROM products p
                WHERE p.category_id = %s
                  AND p.verdict = 'recommend'
                  AND p.status = 'published'
                ORDER BY p.created_at DESC
                LIMIT %s
            """, (category_id, limit))

            return [self._map_row_to_summary(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def update_badges(
        self,
        product_id: int,
        is_archetype_premium: Optional[bool] = None,
        is_archetype_value: Optional[bool] = None,
        calculated_at: Optional[datetime] = None
    ) -> None:
        """
        Set archetype badge flags on a product

        Only the flags passed (not None) are written.
        """
        assignments = []
        params = []

        if is_archetype_premium is not None:
            assignments.append("badges_is_archetype_premium = %s")
            params.append(is_archetype_premium)
        if is_archetype_value is not None:
            assignments.append("badges_is_archetype_value = %s")
            params.append(is_archetype_value)
        if calculated_at is not None:
            assignments.append("badges_archetype_calculated_at = %s")
            params.append(calculated_at)

        if not assignments:
            return

        assignments.append("updated_at = NOW()")
        params.append(product_id)

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(
                f"UPDATE products SET {', '.join(assignments)} WHERE id = %s",
                tuple(params)
            )
            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def find_by_brand(self, brand_name: str, limit: int = 500) -> List[ProductSummary]:
        """Products whose brand text equals brand_name"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {_SUMMARY_COLUMNS}
                FROM products p
                WHERE p.brand = %s
                ORDER BY p.id
                LIMIT %s
            """, (brand_name, limit))

            return [self._map_row_to_summary(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_distinct_brand_names(self, limit: int = 1000) -> List[str]:
        """Distinct, trimmed, non-empty brand names found on products"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT brand
                FROM products
                WHERE brand IS NOT NULL
                LIMIT %s
            """, (limit,))

            names = []
            seen = set()
            for row in cursor.fetchall():
                name = (row['brand'] or '').strip()
                if name and name not in seen:
                    seen.add(name)
                    names.append(name)
            return names

        finally:
            cursor.close()
            conn.close()

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def get_embedding_stats(self) -> EmbeddingStats:
        """Embedding coverage over published products"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT
                    COUNT(*) AS total,
                    COUNT(*) FILTER (WHERE embedding IS NOT NULL) AS with_embeddings
                FROM products
                WHERE status = 'published'
            """)
            row = cursor.fetchone() or {}

            total = int(row.get('total') or 0)
            with_embeddings = int(row.get('with_embeddings') or 0)
            percent = (with_embeddings / total) * 100 if total > 0 else 0

            return EmbeddingStats(
                total_products=total,
                with_embeddings=with_embeddings,
                without_embeddings=total - with_embeddings,
                percent_complete=round(percent, 1),
            )

        finally:
            cursor.close()
            conn.close()

    def search_similar(
        self,
        query_embedding: Sequence[float],
        limit: int = 20,
        min_similarity: float = 0.3,
        exclude_ids: Optional[List[int]] = None,
        verdict: Optional[str] = None
    ) -> List[SimilarProduct]:
        """
        Cosine-similarity search over published products using pgvector

        Similarity is 1 - cosine distance; only rows strictly above
        min_similarity are returned, closest first.
        """
        vector = to_vector_literal(query_embedding)

        where_clauses = ["p.status = 'published'", "p.embedding IS NOT NULL"]
        params: list = [vector]

        if exclude_ids:
            where_clauses.append("NOT (p.id = ANY(%s))")
            params.append(list(exclude_ids))

        if verdict:
            where_clauses.append("p.verdict = %s")
            params.append(verdict)

        params.extend([vector, min_similarity, vector, limit])

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT
                    p.id,
                    p.name,
                    p.brand,
                    p.verdict,
                    p.image_url,
                    c.name AS category_name,
                    1 - (p.embedding <=> %s::vector) AS similarity
                FROM products p
                LEFT JOIN categories c ON p.category_id = c.id
                WHERE {' AND '.join(where_clauses)}
                  AND 1 - (p.embedding <=> %s::vector) > %s
                ORDER BY p.embedding <=> %s::vector
                LIMIT %s
            """, tuple(params))

            return [
                SimilarProduct(
                    id=row['id'],
                    name=row['name'],
                    brand=row.get('brand'),
                    verdict=row.get('verdict'),
                    image_url=row.get('image_url'),
                    similarity=float(row['similarity']),
                    category=CategoryRef(name=row['category_name']) if row.get('category_name') else None,
                )
                for row in cursor.fetchall()
            ]

        finally:
            cursor.close()
            conn.close()

    def find_without_embeddings(self, limit: int = 100) -> List[EmbeddingInput]:
        """Published products with a name and brand but no embedding yet"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT
                    p.id,
                    p.name,
                    p.brand,
                    p.summary,
                    p.verdict_reason,
                    c.name AS category
                FROM products p
                LEFT JOIN categories c ON p.category_id = c.id
                WHERE p.status = 'published'
                  AND p.embedding IS NULL
                  AND p.name IS NOT NULL
                  AND p.brand IS NOT NULL
                LIMIT %s
            """, (limit,))

            return [EmbeddingInput(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def store_embedding(self, product_id: int, embedding: Sequence[float], model: str = EMBEDDING_MODEL) -> None:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE products
                SET embedding = %s::vector,
                    embedding_model = %s,
                    embedding_updated_at = NOW()
                WHERE id = %s
            """, (to_vector_literal(embedding), model, product_id))
            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()
