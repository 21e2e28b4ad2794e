"""
Quality validation for extracted law texts.

A text is checked against a fixed sequence of independent heuristics.
Each check may add an issue and raise the severity; severity never goes
down. Any single strong defect makes the text invalid; poor paragraph
structure alone is advisory.

The pattern tables below are data: extend them to tune the heuristics
without touching the control flow.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import Dict, List, Optional, Pattern, Sequence, Tuple, Union

from law_scraper.errors import ConfigurationError
from law_scraper.models import ExtractionRecord
from law_scraper.normalizer import DEFAULT_MAX_TEXT_LENGTH, TRUNCATION_MARKER, was_truncated

logger = logging.getLogger(__name__)


class Severity(IntEnum):
    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        return self.name.lower()


class Issue(str, Enum):
    NO_FULL_TEXT = 'no_full_text'
    EXTREMELY_SHORT = 'extremely_short'
    VERY_SHORT = 'very_short'
    ENDS_WITH_TABLE_DATA = 'ends_with_table_data'
    SUSPICIOUS_ENDING = 'suspicious_ending'
    TRUNCATED = 'truncated'
    ENCODING_ISSUES = 'encoding_issues'
    POOR_STRUCTURE = 'poor_structure'
    NO_LAW_CONTENT = 'no_law_content'
    PARSE_ERROR = 'parse_error'


EXTREMELY_SHORT_LENGTH = 100
VERY_SHORT_LENGTH = 500
ENDING_WINDOW = 500
ENDING_LINES = 10
MIN_ENDING_WORDS = 5
MIN_PARAGRAPHS = 3

RESCRAPE_SEVERITIES: Tuple[str, ...] = ('critical', 'high', 'medium')

VALID_ENDING_PATTERNS: Tuple[Tuple[str, Pattern], ...] = (
    ('article_reference', re.compile(r'чл\.\s*\d+.*$', re.IGNORECASE)),
    ('paragraph_reference', re.compile(r'параграф\s*\d+.*$', re.IGNORECASE)),
    ('enters_into_force', re.compile(r'влиза в сила', re.IGNORECASE)),
    ('in_force_from', re.compile(r'в сила от', re.IGNORECASE)),
    ('repealed', re.compile(r'отменя(?:т)? се', re.IGNORECASE)),
    ('supplemented', re.compile(r'допълва се', re.IGNORECASE)),
    ('amended', re.compile(r'изменя се', re.IGNORECASE)),
    ('deleted', re.compile(r'заличава се', re.IGNORECASE)),
    ('added', re.compile(r'добавя се', re.IGNORECASE)),
    ('preserved', re.compile(r'запазва се', re.IGNORECASE)),
    ('this_law', re.compile(r'настоящия закон', re.IGNORECASE)),
    ('gazette_publication', re.compile(r'публикува.*държавен вестник', re.IGNORECASE)),
)

# Matched against the last non-empty line of the text
INVALID_ENDING_PATTERNS: Tuple[Tuple[str, Pattern], ...] = (
    ('numbers_only', re.compile(r'^\s*\d+[\s\d.,\-]+$')),
    ('trailing_number', re.compile(r'^\s*[\d\s.,\-]*\d+\s*$')),
    ('numbers_with_words', re.compile(r'^\s*\d+\s*[а-я\s]*\d+\s*$', re.IGNORECASE)),
    ('project_code', re.compile(r'^\s*OP-\d+', re.IGNORECASE)),
    ('construction_code', re.compile(r'^\s*СМР', re.IGNORECASE)),
    ('engineering_entry', re.compile(r'^\s*Инженеринг', re.IGNORECASE)),
    ('municipality_entry', re.compile(r'^\s*Община\s+', re.IGNORECASE)),
    ('region_entry', re.compile(r'^\s*област\s+', re.IGNORECASE)),
    ('kilometres', re.compile(r'^\s*км\s*$')),
    ('metres', re.compile(r'^\s*[\d\s]+м\s*$')),
    ('leva', re.compile(r'^\s*[\d\s]+лв\s*$')),
)

TRUNCATION_PATTERNS: Tuple[Tuple[str, Pattern], ...] = (
    ('truncated_marker', re.compile(r'\[TRUNCATED\]', re.IGNORECASE)),
    ('truncated_log', re.compile(r'Text truncated from', re.IGNORECASE)),
    ('ellipsis', re.compile(r'\.\.\.|…')),
    ('etc', re.compile(r'и т\.н\.?\s*$', re.IGNORECASE)),
    ('continues', re.compile(r'продължава', re.IGNORECASE)),
)

LAW_KEYWORDS: Tuple[str, ...] = (
    'закон',
    'член',
    'параграф',
    'алинея',
    'точка',
    'изменя',
    'допълва',
)


def _matching(patterns: Tuple[Tuple[str, Pattern], ...], text: str) -> Optional[str]:
    for name, pattern in patterns:
        if pattern.search(text):
            return name
    return None


@dataclass
class ValidationResult:
    """Outcome of validating one text."""
    is_valid: bool = True
    issues: List[Issue] = field(default_factory=list)
    severity: Severity = Severity.NONE
    recommendations: List[str] = field(default_factory=list)

    def flag(self, issue: Issue, severity: Severity, recommendation: str, invalidates: bool = True):
        """Record an issue; severity only ever rises."""
        if issue not in self.issues:
            self.issues.append(issue)
        self.severity = max(self.severity, severity)
        self.recommendations.append(recommendation)
        if invalidates:
            self.is_valid = False

    def to_dict(self) -> dict:
        return {
            'isValid': self.is_valid,
            'issues': [issue.value for issue in self.issues],
            'severity': self.severity.label,
            'recommendations': list(self.recommendations),
        }


class TextValidator:
    """Classifies law texts as usable or defective."""

    def validate(self, full_text: Optional[str], size_truncated: bool = False) -> ValidationResult:
        """
        Validate a normalized law text.

        Args:
            full_text: Normalized text, may be empty or None
            size_truncated: The text was cut at the size limit by the
                normalizer. The trailing marker is then reported as an
                advisory ``truncated`` issue and the cut ending is not checked.

        Returns:
            ValidationResult with issues, severity and recommendations
        """
        result = ValidationResult()

        if not full_text:
            result.flag(Issue.NO_FULL_TEXT, Severity.CRITICAL, 'Complete re-scrape required')
            return result

        if size_truncated and full_text.endswith(TRUNCATION_MARKER):
            full_text = full_text[:-len(TRUNCATION_MARKER)]
            self._check_length(full_text, result)
            self._check_truncation(full_text, result)
            result.flag(
                Issue.TRUNCATED, Severity.HIGH,
                'Text exceeded the size limit and was truncated', invalidates=False
            )
        else:
            self._check_length(full_text, result)
            self._check_ending(full_text, result)
            self._check_truncation(full_text, result)

        if '\ufffd' in full_text:
            result.flag(Issue.ENCODING_ISSUES, Severity.MEDIUM, 'Text has encoding issues')

        paragraphs = [p for p in full_text.split('\n\n') if p.strip()]
        if len(paragraphs) < MIN_PARAGRAPHS:
            result.flag(
                Issue.POOR_STRUCTURE, Severity.LOW,
                'Text has poor paragraph structure', invalidates=False
            )

        lowered = full_text.lower()
        if not any(keyword in lowered for keyword in LAW_KEYWORDS):
            result.flag(
                Issue.NO_LAW_CONTENT, Severity.HIGH,
                'Text does not contain typical law terminology'
            )

        return result

    def validate_record(
        self,
        record: Union[ExtractionRecord, dict],
        max_text_length: Optional[int] = None
    ) -> ValidationResult:
        """
        Validate the text of a record object or a loaded record file.

        With ``max_text_length`` set, a text cut at that limit by the
        normalizer is validated as ``size_truncated``.
        """
        if isinstance(record, ExtractionRecord):
            full_text = record.full_text
        else:
            full_text = record.get('fullText')
        size_truncated = bool(
            max_text_length and isinstance(full_text, str) and was_truncated(full_text, max_text_length)
        )
        return self.validate(full_text, size_truncated=size_truncated)

    def _check_length(self, text: str, result: ValidationResult):
        if len(text) < EXTREMELY_SHORT_LENGTH:
            result.flag(Issue.EXTREMELY_SHORT, Severity.CRITICAL, 'Text too short - likely scraping error')
        elif len(text) < VERY_SHORT_LENGTH:
            result.flag(Issue.VERY_SHORT, Severity.HIGH, 'Text very short - verify content quality')

    def _check_ending(self, text: str, result: ValidationResult):
        ending = text[-ENDING_WINDOW:].strip()
        last_lines = '\n'.join(ending.split('\n')[-ENDING_LINES:]).strip()
        non_empty = [line for line in last_lines.split('\n') if line.strip()]
        last_line = non_empty[-1] if non_empty else ''

        valid_ending = _matching(VALID_ENDING_PATTERNS, last_lines)
        invalid_ending = _matching(INVALID_ENDING_PATTERNS, last_line)

        # The invalid-ending table takes precedence when both match
        if invalid_ending:
            result.flag(
                Issue.ENDS_WITH_TABLE_DATA, Severity.HIGH,
                'Text ends with table/numeric data instead of law content'
            )
        elif not valid_ending and len(last_lines.split()) < MIN_ENDING_WORDS:
            result.flag(Issue.SUSPICIOUS_ENDING, Severity.MEDIUM, 'Ending seems incomplete or unusual')

    def _check_truncation(self, text: str, result: ValidationResult):
        if _matching(TRUNCATION_PATTERNS, text):
            result.flag(Issue.TRUNCATED, Severity.HIGH, 'Text appears to be truncated')


@dataclass
class ValidationSummary:
    """Validation results over a directory of persisted records."""
    total: int = 0
    valid: int = 0
    invalid: int = 0
    by_severity: Dict[str, int] = field(
        default_factory=lambda: {'critical': 0, 'high': 0, 'medium': 0, 'low': 0}
    )
    by_issue: Dict[str, int] = field(default_factory=dict)
    details: List[dict] = field(default_factory=list)

    def priority_lists(self) -> Dict[str, List[str]]:
        """Law IDs to re-scrape, grouped by severity."""
        lists = {}
        for severity in RESCRAPE_SEVERITIES:
            lists[severity] = [
                d['lawId'] for d in self.details if not d['isValid'] and d['severity'] == severity
            ]
        return lists

    def to_dict(self) -> dict:
        return {
            'total': self.total,
            'valid': self.valid,
            'invalid': self.invalid,
            'bySeverity': dict(self.by_severity),
            'byIssueType': dict(self.by_issue),
            'detailedResults': list(self.details),
        }


def validate_directory(
    scraped_dir: Path,
    validator: Optional[TextValidator] = None,
    max_text_length: int = DEFAULT_MAX_TEXT_LENGTH
) -> ValidationSummary:
    """
    Validate every persisted record in a directory.

    Files that cannot be parsed are reported as critical ``parse_error``
    entries; they never stop the run. Texts cut at ``max_text_length``
    keep their advisory ``truncated`` issue but stay valid.
    """
    validator = validator or TextValidator()
    summary = ValidationSummary()
    scraped_dir = Path(scraped_dir)
    if not scraped_dir.is_dir():
        logger.warning("Scraped laws directory not found: %s", scraped_dir)
        return summary

    files = sorted(scraped_dir.glob('*.json'))
    summary.total = len(files)
    logger.info("Validating %d law texts...", len(files))

    for index, path in enumerate(files, 1):
        law_id = path.stem
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            validation = validator.validate_record(data, max_text_length)
            text_length = len(data.get('fullText') or '')
            title = data.get('title') or 'Unknown'
        except (OSError, ValueError, AttributeError) as e:
            logger.error("Error validating %s: %s", path.name, e)
            validation = ValidationResult(is_valid=False)
            validation.flag(Issue.PARSE_ERROR, Severity.CRITICAL, 'File cannot be parsed')
            text_length = 0
            title = 'Parse Error'

        if validation.is_valid:
            summary.valid += 1
        else:
            summary.invalid += 1
            if validation.severity is not Severity.NONE:
                summary.by_severity[validation.severity.label] += 1
            for issue in validation.issues:
                summary.by_issue[issue.value] = summary.by_issue.get(issue.value, 0) + 1

        summary.details.append({
            'lawId': law_id,
            **validation.to_dict(),
            'textLength': text_length,
            'title': title,
        })

        if index % 100 == 0:
            logger.info("Validated %d/%d laws...", index, len(files))

    return summary


def rescrape_list_path(report_path: Path, severity: str) -> Path:
    return Path(report_path).parent / f"rescrape_priority_{severity}.json"


def write_validation_report(summary: ValidationSummary, report_path: Path) -> List[Path]:
    """
    Write the JSON report and the per-severity re-scrape lists beside it.

    A list left over from an earlier run is removed when its severity has
    no laws any more.

    Returns:
        Paths of all files written
    """
    report_path = Path(report_path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    with open(report_path, 'w', encoding='utf-8') as f:
        json.dump(summary.to_dict(), f, indent=2, ensure_ascii=False)
    written = [report_path]

    for severity, law_ids in summary.priority_lists().items():
        list_path = rescrape_list_path(report_path, severity)
        if not law_ids:
            if list_path.exists():
                list_path.unlink()
                logger.info("Removed stale re-scrape list: %s", list_path)
            continue
        with open(list_path, 'w', encoding='utf-8') as f:
            json.dump(law_ids, f, indent=2)
        written.append(list_path)
        logger.info("%s priority re-scrape list: %s (%d laws)", severity, list_path, len(law_ids))

    return written


def load_rescrape_ids(report_path: Path, severities: Sequence[str] = RESCRAPE_SEVERITIES) -> List[str]:
    """
    Read the re-scrape lists written by ``write_validation_report``.

    Lists are read in the order of ``severities``; a missing list is
    skipped and an ID listed twice is returned once.

    Raises:
        ConfigurationError: if a list is not a JSON array
    """
    law_ids: List[str] = []
    for severity in severities:
        list_path = rescrape_list_path(report_path, severity)
        if not list_path.exists():
            logger.info("No %s priority re-scrape list at %s", severity, list_path)
            continue
        try:
            with open(list_path, 'r', encoding='utf-8') as f:
                listed = json.load(f)
        except ValueError as e:
            raise ConfigurationError(f"Malformed re-scrape list {list_path}: {e}") from e
        if not isinstance(listed, list):
            raise ConfigurationError(f"Re-scrape list {list_path} must contain an array of law IDs")
        for law_id in listed:
            if str(law_id) not in law_ids:
                law_ids.append(str(law_id))
    return law_ids
