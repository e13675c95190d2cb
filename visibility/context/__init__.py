"""
Run context: who we are measuring, against whom, and for which run.
"""

from .brands import (
    BrandVariants,
    brand_variants,
    build_brand_set,
    display_name_for,
    domain_for,
    pascal_key,
    resolve_brand_key,
    slug_lower,
)
from .run import RunContext, RunId, create_run_context
from .tasks import Task, input_file_for, load_tasks, parse_tasks

__all__ = [
    # Brands
    "BrandVariants",
    "brand_variants",
    "build_brand_set",
    "display_name_for",
    "domain_for",
    "pascal_key",
    "resolve_brand_key",
    "slug_lower",
    # Run
    "RunContext",
    "RunId",
    "create_run_context",
    # Tasks
    "Task",
    "input_file_for",
    "load_tasks",
    "parse_tasks",
]
