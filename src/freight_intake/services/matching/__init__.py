"""Identity matching helpers."""

from .duplicates import detect_duplicate_groups, detect_name_duplicates
from .matcher import diff_fields, find_name_match, match_customer, rank_candidates, score_customer
from .normalization import calculate_similarity, normalize_name, normalize_phone, normalize_region
from .search import search_customers

__all__ = [
    "calculate_similarity",
    "detect_duplicate_groups",
    "detect_name_duplicates",
    "diff_fields",
    "find_name_match",
    "match_customer",
    "normalize_name",
    "normalize_phone",
    "normalize_region",
    "rank_candidates",
    "score_customer",
    "search_customers",
]
