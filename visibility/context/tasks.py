"""
Task Loader

Parses the keyword/question input document:

    [kw1] - project management software
    [What is the best project management tool?]
    [Which tools do agencies use?]

A "[X] - label" line opens a task whose keyword is the label; each
following "[question]" line is added to it.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from visibility.context.brands import resolve_brand_key
from visibility.errors import ConfigError
from visibility.utils.config import BrandConfig

logger = logging.getLogger(__name__)

_KEYWORD_LINE = re.compile(r"^\[(.+)\]\s*-\s*(.+)$")
_QUESTION_LINE = re.compile(r"^\[(.+)\]$")


@dataclass(frozen=True)
class Task:
    """A keyword and the questions asked for it."""
    keyword: str
    questions: Tuple[str, ...] = ()


def parse_tasks(lines: Iterable[str]) -> List[Task]:
    """Parse task lines. Questions before the first keyword are ignored."""
    tasks: List[Task] = []
    keyword: Optional[str] = None
    questions: List[str] = []

    for raw in lines:
        line = raw.strip()
        if not line:
            continue

        kw_match = _KEYWORD_LINE.match(line)
        if kw_match:
            if keyword is not None:
                tasks.append(Task(keyword, tuple(questions)))
            keyword = kw_match.group(2).strip()
            questions = []
            continue

        q_match = _QUESTION_LINE.match(line)
        if q_match and keyword is not None:
            questions.append(q_match.group(1).strip())

    if keyword is not None:
        tasks.append(Task(keyword, tuple(questions)))

    return tasks


def input_file_for(brand: str, config: BrandConfig, base_dir: Path) -> Path:
    """
    Input file for a brand: its inputFiles entry, else the default inputFile.

    Raises:
        ConfigError: no input file configured
    """
    key = resolve_brand_key(brand, config)
    name = config.input_files.get(key) or config.input_file
    if not name:
        raise ConfigError(f"No input file configured for brand '{brand}' (key '{key}')")
    return Path(base_dir) / name


def load_tasks(path: Path) -> List[Task]:
    """
    Load tasks from an input file.

    Raises:
        ConfigError: file missing
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Missing input file: {path}")

    tasks = parse_tasks(path.read_text(encoding="utf-8").splitlines())
    question_count = sum(len(t.questions) for t in tasks)
    logger.info(f"Loaded {len(tasks)} keywords / {question_count} questions from {path}")
    return tasks
