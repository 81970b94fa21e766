"""
Embedding Service - product embeddings and semantic search

Builds searchable text from product fields, embeds it with Gemini and stores
the vector in Postgres (pgvector), then answers similarity queries.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from product_report.connectors.gemini_connector import EMBEDDING_MODEL, GeminiConnector
from product_report.domain.product import EmbeddingInput, EmbeddingStats, SimilarProduct
from product_report.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingResult:
    product_id: int
    embedding: List[float]
    model: str
    timestamp: datetime


def create_product_text(product: EmbeddingInput) -> str:
    """
    Searchable text: brand | name | Category: x | summary | verdict reason

    Empty parts are skipped.
    """
    parts = []
    if product.brand:
        parts.append(product.brand)
    if product.name:
        parts.append(product.name)
    if product.category:
        parts.append(f"Category: {product.category}")
    if product.summary:
        parts.append(product.summary)
    if product.verdict_reason:
        parts.append(product.verdict_reason)
    return " | ".join(parts)


class EmbeddingService:

    def __init__(self, repository: ProductRepository = None, gemini: GeminiConnector = None):
        self.repository = repository or ProductRepository()
        self.gemini = gemini or GeminiConnector()

    async def embed_product(self, product: EmbeddingInput) -> EmbeddingResult:
        """Embed one product and store the vector"""
        embedding = await self.gemini.embed(create_product_text(product))
        self.repository.store_embedding(product.id, embedding, EMBEDDING_MODEL)

        logger.info(f"Embeddings: generated embedding for product {product.id}: {product.name}")
        return EmbeddingResult(
            product_id=product.id,
            embedding=embedding,
            model=EMBEDDING_MODEL,
            timestamp=datetime.now(timezone.utc),
        )

    async def embed_products(self, products: List[EmbeddingInput]) -> List[EmbeddingResult]:
        """Embed a batch of products and store every vector"""
        if not products:
            return []
        if len(products) == 1:
            return [await self.embed_product(products[0])]

        embeddings = await self.gemini.embed_many([create_product_text(p) for p in products])
        timestamp = datetime.now(timezone.utc)

        results = []
        for product, embedding in zip(products, embeddings):
            self.repository.store_embedding(product.id, embedding, EMBEDDING_MODEL)
            results.append(EmbeddingResult(
                product_id=product.id,
                embedding=embedding,
                model=EMBEDDING_MODEL,
                timestamp=timestamp,
            ))

        logger.info(f"Embeddings: generated embeddings for {len(products)} products")
        return results

    def get_stats(self) -> EmbeddingStats:
        return self.repository.get_embedding_stats()

    def find_products_without_embeddings(self, limit: int = 100) -> List[EmbeddingInput]:
        return self.repository.find_without_embeddings(limit)

    async def search(
        self,
        query: str,
        limit: int = 20,
        min_similarity: float = 0.3,
        exclude_ids: Optional[List[int]] = None,
        verdict: Optional[str] = None
    ) -> List[SimilarProduct]:
        """Products most similar to the query text"""
        query_embedding = await self.gemini.embed(query)
        return self.repository.search_similar(
            query_embedding,
            limit=limit,
            min_similarity=min_similarity,
            exclude_ids=exclude_ids or [],
            verdict=verdict,
        )
