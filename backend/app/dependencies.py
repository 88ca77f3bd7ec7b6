from fastapi import Depends

from app.batches.service import BatchService
from app.config import settings
from app.database import get_db
from app.hitl_workflow.service import ReviewService
from app.matching_engine.service import ClassificationMatcher
from app.recommender.service import AlternativeCodeRecommender
from app.risk_analytics.service import RiskAnalyticsService
from app.tax_engine.service import TaxService
from app.translation.cache import NameTranslationCache

# Re-export get_db for use in Depends()
get_db = get_db

# One name-translation cache per process
translation_cache = NameTranslationCache(ttl_seconds=settings.translation_cache_ttl_seconds)


def get_translation_cache() -> NameTranslationCache:
    return translation_cache


def get_batch_service() -> BatchService:
    return BatchService()


def get_matcher(
    translations: NameTranslationCache = Depends(get_translation_cache),
) -> ClassificationMatcher:
    return ClassificationMatcher(settings, translations=translations)


def get_review_service() -> ReviewService:
    return ReviewService(settings)


def get_tax_service() -> TaxService:
    return TaxService(settings)


def get_risk_service() -> RiskAnalyticsService:
    return RiskAnalyticsService(settings)


def get_recommender() -> AlternativeCodeRecommender:
    return AlternativeCodeRecommender(settings)
