"""
Report Pipeline

Runs every task against each provider and records the results:

    for each provider (concurrently):
        for each keyword (sequentially):
            ask search volume      -> raw answer "MSV"
            for each question (sequentially):
                ask answer         -> raw answer
                extract metrics + score sentiment -> metric rows
            aggregate              -> "Keyword Performance" rows
        mark run complete, export CSV + TXT

Provider failures degrade to empty answers and the run continues. A store
failure is fatal and cancels the other providers.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from visibility.context.run import RunContext
from visibility.context.tasks import Task
from visibility.database.repository import (
    mark_run_complete,
    store_keyword_performance,
    store_metrics,
    store_raw_answer,
)
from visibility.errors import StoreError
from visibility.reporter.export import write_provider_report
from visibility.scoring.aggregate import KeywordAccumulator, KeywordPerformance
from visibility.scoring.helpers import MSV_QUESTION, parse_search_volume
from visibility.scoring.metrics import BrandMetric, extract_metrics
from visibility.scoring.sentiment import score_sentiment

logger = logging.getLogger(__name__)


MSV_SYSTEM_PROMPT = (
    "You are a data assistant. Provide the approximate monthly search volume "
    "(integer only) in {location} for the term:"
)
ANSWER_SYSTEM_PROMPT = (
    "You are a helpful assistant based in {location}. "
    "Answer concisely and include any relevant links."
)


@dataclass
class QuestionResult:
    """One answered question."""
    question: str
    answer: str
    metrics: List[BrandMetric]
    sentiment: Dict[str, int]


@dataclass
class KeywordResult:
    """All questions of one keyword plus their aggregate."""
    keyword: str
    msv: int
    questions: List[QuestionResult] = field(default_factory=list)
    performance: List[KeywordPerformance] = field(default_factory=list)


@dataclass
class ProviderReport:
    """Everything one provider produced in a run."""
    provider: str
    run_at: str
    brands: List[str]
    keywords: List[KeywordResult] = field(default_factory=list)
    csv_path: Optional[Path] = None
    txt_path: Optional[Path] = None

    @property
    def question_count(self) -> int:
        return sum(len(k.questions) for k in self.keywords)


async def _ask_search_volume(context: RunContext, router, provider: str, keyword: str) -> int:
    system = MSV_SYSTEM_PROMPT.format(location=context.location)
    answer = await router.ask(provider, system, keyword)
    store_raw_answer(context.run_id, provider, keyword, MSV_QUESTION, answer)
    return parse_search_volume(answer)


async def _answer_question(
    context: RunContext,
    router,
    provider: str,
    keyword: str,
    question: str,
    msv: int,
) -> QuestionResult:
    system = ANSWER_SYSTEM_PROMPT.format(location=context.location)
    answer = await router.ask(provider, system, question)
    if not answer:
        logger.warning(f"[{provider}] empty answer for {keyword!r} / {question[:60]!r}")
    store_raw_answer(context.run_id, provider, keyword, question, answer)

    metrics = extract_metrics(answer, list(context.brands), context.ctr_curve, context.domains)
    sentiment = await score_sentiment(router, provider, answer, list(context.brands))
    store_metrics(context.run_id, provider, keyword, question, metrics, sentiment, msv=msv)

    return QuestionResult(question=question, answer=answer, metrics=metrics, sentiment=sentiment)


async def run_provider(
    context: RunContext,
    tasks: Sequence[Task],
    provider: str,
    router,
    output_dir: Optional[Path] = None,
) -> ProviderReport:
    """Run every task against one provider, strictly in order."""
    logger.info(f"=== Running for provider: {provider} ===")
    report = ProviderReport(provider=provider, run_at=context.run_id.key, brands=list(context.brands))

    for task in tasks:
        logger.info(f"[{provider}] Processing keyword: {task.keyword}")
        msv = await _ask_search_volume(context, router, provider, task.keyword)
        result = KeywordResult(keyword=task.keyword, msv=msv)
        accumulator = KeywordAccumulator(list(context.brands))

        for question in task.questions:
            logger.info(f"[{provider}]   -> Processing question: {question}")
            answered = await _answer_question(context, router, provider, task.keyword, question, msv)
            accumulator.add(answered.metrics, answered.sentiment)
            result.questions.append(answered)

        result.performance = accumulator.aggregate()
        store_keyword_performance(context.run_id, provider, task.keyword, result.performance, msv=msv)
        report.keywords.append(result)

    mark_run_complete(context.run_id, provider, context.brand)

    if output_dir is not None:
        report.csv_path, report.txt_path = write_provider_report(report, context, output_dir)

    logger.info(f"[{provider}] complete: {len(report.keywords)} keywords, {report.question_count} questions")
    return report


def _store_failed(job: asyncio.Task) -> bool:
    return not job.cancelled() and isinstance(job.exception(), StoreError)


async def run_report(
    context: RunContext,
    tasks: Sequence[Task],
    providers: Sequence[str],
    router,
    output_dir: Optional[Path] = None,
) -> List[ProviderReport]:
    """
    Run the report for every provider concurrently.

    A StoreError from one provider cancels the others and is re-raised.
    Any other failure lets the remaining providers finish before the
    first failure is re-raised.

    Returns:
        One ProviderReport per provider, in the order given
    """
    if not providers:
        logger.warning("No providers to run")
        return []

    logger.info(
        f"Run {context.run_id.key}: {context.brand} vs {len(context.brands) - 1} competitors, "
        f"{len(tasks)} keywords, providers={', '.join(providers)}"
    )

    jobs = [
        asyncio.create_task(run_provider(context, tasks, p, router, output_dir))
        for p in providers
    ]
    pending = set(jobs)
    try:
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_EXCEPTION)
            if pending and any(_store_failed(job) for job in done):
                logger.error(f"Store failure, cancelling {len(pending)} remaining provider(s)")
                for job in pending:
                    job.cancel()
    finally:
        for job in pending:
            job.cancel()

    failures = []
    for provider, job in zip(providers, jobs):
        if job.cancelled():
            logger.warning(f"[{provider}] cancelled")
        elif job.exception() is not None:
            logger.error(f"[{provider}] run failed: {job.exception()}")
            failures.append(job.exception())
    if failures:
        raise next((e for e in failures if isinstance(e, StoreError)), failures[0])

    logger.info("All providers processed.")
    return [job.result() for job in jobs]
