"""
Reconciliation Pipeline

Composes statement normalization, receipt extraction, matching,
categorization and rule learning. Independent files and OCR jobs are
processed in a thread pool; their outputs are merged in input order by the
calling thread.
"""

import logging
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path

from categorization.engine import CategorizationEngine
from categorization.learning import RuleLearner, TrainingOptions
from categorization.rules import Category, RuleStore
from receipt_processor.extractor import Receipt, ReceiptTextExtractor
from statement_processor.base import BankTransaction, NormalizationResult
from statement_processor.normalizer import StatementNormalizer
from statement_processor.readers import read_statement_content, read_statement_file

from .matcher import MatchingEngine, MatchStatus, TransactionMatch
from .review import approve_match, find_match, reject_match

logger = logging.getLogger(__name__)


@dataclass
class StatementFileResult:
    """Outcome of loading one statement file."""

    source: str
    transactions: list[BankTransaction] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "transaction_count": len(self.transactions),
            "warnings": self.warnings,
            "error": self.error,
        }


@dataclass
class StatementLoadResult:
    """Merged outcome of loading several statement files."""

    transactions: list[BankTransaction] = field(default_factory=list)
    files: list[StatementFileResult] = field(default_factory=list)
    duplicates: int = 0

    @property
    def errors(self) -> list[str]:
        return [f"{f.source}: {f.error}" for f in self.files if f.error]


@dataclass
class OcrJob:
    """OCR output for one receipt image."""

    raw_text: str
    confidence: float = 0.0
    receipt_id: str | None = None
    source: str | None = None


@dataclass
class ReceiptLoadResult:
    """Merged outcome of extracting several receipts."""

    receipts: list[Receipt] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class MatchingResult:
    """Matches from one pass and the rule store with usage recorded."""

    matches: list[TransactionMatch]
    rules: RuleStore | None = None


@dataclass
class ApprovalOutcome:
    """Result of approving one or more matches."""

    matches: list[TransactionMatch]
    rules: RuleStore
    approved: list[TransactionMatch] = field(default_factory=list)


@dataclass
class MatchGroup:
    """Pending matches that look like the same payee."""

    key: str
    matches: list[TransactionMatch]

    @property
    def size(self) -> int:
        return len(self.matches)


class ReconciliationPipeline:
    """End-to-end reconciliation over statements and receipts."""

    DEFAULT_MAX_WORKERS = 4
    # Minimum score for bulk approval
    BULK_APPROVE_SCORE = 80
    # Characters of the description used to group receipt-less matches
    GROUP_KEY_LENGTH = 20

    def __init__(
        self,
        config_dir: Path | str | None = None,
        max_workers: int | None = None
    ):
        """Initialize the pipeline.

        Args:
            config_dir: Path to configuration directory
            max_workers: Thread pool size for file and OCR processing
        """
        self.config_dir = Path(config_dir) if config_dir else Path(__file__).parent.parent.parent / "config"
        self.max_workers = max_workers or self.DEFAULT_MAX_WORKERS

        self.normalizer = StatementNormalizer(self.config_dir)
        self.extractor = ReceiptTextExtractor(self.config_dir, date_parser=self.normalizer.date_parser)
        self.matcher = MatchingEngine(self.config_dir)
        self.categorizer = CategorizationEngine(self.config_dir)
        self.learner = RuleLearner(self.config_dir)

    def default_rules(self) -> RuleStore:
        return RuleStore.with_defaults(self.config_dir)

    def normalize_content(self, file_name: str, content: bytes) -> NormalizationResult:
        """Read and normalize uploaded statement bytes."""
        rows = read_statement_content(file_name, content)
        return self.normalizer.normalize_rows(rows)

    def load_statements(self, paths: list[Path | str]) -> StatementLoadResult:
        """Load and normalize statement files concurrently.

        Failures are recorded per file. Transactions repeated across files
        (same date, description, amount and UTR) are kept once.

        Args:
            paths: Statement file paths

        Returns:
            StatementLoadResult with transactions in file order
        """
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            file_results = list(executor.map(self._load_statement, paths))

        result = StatementLoadResult(files=file_results)
        seen: dict[str, str] = {}

        for file_result in file_results:
            for txn in file_result.transactions:
                source = seen.setdefault(txn.hash, file_result.source)
                if source != file_result.source:
                    result.duplicates += 1
                    continue
                result.transactions.append(txn)

        logger.info(
            f"Loaded {len(result.transactions)} transactions from {len(paths)} files "
            f"({result.duplicates} duplicates, {len(result.errors)} failures)"
        )
        return result

    def _load_statement(self, path: Path | str) -> StatementFileResult:
        path = Path(path)
        try:
            normalized = self.normalizer.normalize_rows(read_statement_file(path))
        except Exception as e:
            logger.error(f"Failed to load statement {path.name}: {e}")
            return StatementFileResult(source=path.name, error=str(e))

        return StatementFileResult(
            source=path.name,
            transactions=normalized.transactions,
            warnings=normalized.warnings,
        )

    def extract_receipts(self, jobs: list[OcrJob]) -> ReceiptLoadResult:
        """Build receipts from OCR output concurrently.

        Args:
            jobs: OCR results, one per receipt

        Returns:
            ReceiptLoadResult with receipts in job order
        """
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            outcomes = list(executor.map(self._extract_receipt, jobs))

        result = ReceiptLoadResult()
        for outcome in outcomes:
            if isinstance(outcome, Receipt):
                result.receipts.append(outcome)
            else:
                result.errors.append(outcome)

        logger.info(f"Extracted {len(result.receipts)} receipts ({len(result.errors)} failures)")
        return result

    def _extract_receipt(self, job: OcrJob) -> Receipt | str:
        try:
            return self.extractor.build_receipt(job.raw_text, job.confidence, job.receipt_id)
        except Exception as e:
            label = job.source or job.receipt_id or "receipt"
            logger.error(f"Failed to extract {label}: {e}")
            return f"{label}: {e}"

    def run_matching(
        self,
        transactions: list[BankTransaction],
        receipts: list[Receipt],
        rules: RuleStore | None = None,
        existing_matches: list[TransactionMatch] | None = None
    ) -> MatchingResult:
        """Match transactions to receipts and suggest categories.

        Args:
            transactions: Bank transactions
            receipts: Receipts
            rules: Rule store for category suggestions (None skips them)
            existing_matches: Matches from earlier passes

        Returns:
            MatchingResult
        """
        matches = self.matcher.match(transactions, receipts, existing_matches)
        if rules is None:
            return MatchingResult(matches=matches)

        matches, rules = self.categorize_matches(matches, rules)
        return MatchingResult(matches=matches, rules=rules)

    def categorize_matches(
        self,
        matches: list[TransactionMatch],
        rules: RuleStore
    ) -> tuple[list[TransactionMatch], RuleStore]:
        """Attach suggested categories and record rule usage."""
        categorized = []
        for match in matches:
            result = self.categorizer.categorize_pair(
                match.bank_transaction, match.suggested_receipt, rules
            )
            if result:
                match = replace(
                    match,
                    suggested_category=result.category.value,
                    category_confidence=round(result.confidence, 4),
                )
                rules = rules.record_usage(result.rule.id)
            categorized.append(match)

        return categorized, rules

    def approve(
        self,
        matches: list[TransactionMatch],
        match_id: str,
        rules: RuleStore,
        category: Category | str | None = None,
        notes: str | None = None,
        options: TrainingOptions | None = None,
        expected_version: int | None = None
    ) -> ApprovalOutcome:
        """Approve a match and learn from the decision.

        Args:
            matches: Current matches
            match_id: Id of the match to approve
            rules: Current rule store
            category: Category chosen by the reviewer
            notes: Reviewer notes
            options: Training options
            expected_version: Rule store version the reviewer saw

        Returns:
            ApprovalOutcome

        Raises:
            KeyError: If no match has that id
            InvalidMatchTransition: If the match is not pending
            StaleRuleStoreError: If the rule store changed since expected_version
        """
        rules.check_version(expected_version)
        match = find_match(matches, match_id)
        approved, rules = self._approve_one(match, rules, category, notes, options)

        return ApprovalOutcome(
            matches=[approved if m.id == match_id else m for m in matches],
            rules=rules,
            approved=[approved],
        )

    def reject(self, matches: list[TransactionMatch], match_id: str) -> list[TransactionMatch]:
        """Reject a match, returning the updated list."""
        rejected = reject_match(find_match(matches, match_id))
        return [rejected if m.id == match_id else m for m in matches]

    def bulk_approve(
        self,
        matches: list[TransactionMatch],
        rules: RuleStore,
        min_score: int | None = None,
        category: Category | str | None = None,
        notes: str | None = None,
        options: TrainingOptions | None = None
    ) -> ApprovalOutcome:
        """Approve every pending match with a receipt at or above min_score.

        Each match takes the explicit category, else its receipt's, else the
        suggested one, else Miscellaneous.
        """
        min_score = self.BULK_APPROVE_SCORE if min_score is None else min_score
        options = options or TrainingOptions(bulk_training=True)

        approved_by_id = {}
        for match in matches:
            if not match.is_pending or not match.has_receipt or match.match_score < min_score:
                continue
            chosen = (
                category
                or match.suggested_receipt.category
                or match.suggested_category
                or Category.MISCELLANEOUS
            )
            approved, rules = self._approve_one(match, rules, chosen, notes, options)
            approved_by_id[match.id] = approved

        logger.info(f"Bulk approved {len(approved_by_id)} matches (score >= {min_score})")
        return ApprovalOutcome(
            matches=[approved_by_id.get(m.id, m) for m in matches],
            rules=rules,
            approved=list(approved_by_id.values()),
        )

    def _approve_one(
        self,
        match: TransactionMatch,
        rules: RuleStore,
        category: Category | str | None,
        notes: str | None,
        options: TrainingOptions | None
    ) -> tuple[TransactionMatch, RuleStore]:
        if category is not None:
            category = Category.from_value(category).value

        approved = approve_match(match, category)
        approved_category = approved.bank_transaction.category
        if approved_category:
            # An overridden suggestion counts as a correction
            previous = replace(
                match.bank_transaction,
                category=match.bank_transaction.category or match.suggested_category,
            )
            rules = self.learner.learn(
                previous,
                match.suggested_receipt,
                approved_category,
                rules,
                notes=notes,
                options=options,
            )
        return approved, rules

    def group_similar(self, matches: list[TransactionMatch]) -> list[MatchGroup]:
        """Group pending matches by payee for bulk training.

        The key is the receipt merchant, else the start of the description
        (lowercased). Only groups of two or more are returned, largest first.
        """
        groups: OrderedDict[str, list[TransactionMatch]] = OrderedDict()
        for match in matches:
            if match.status != MatchStatus.PENDING:
                continue
            if match.suggested_receipt:
                key = match.suggested_receipt.merchant.lower()
            else:
                key = match.bank_transaction.description[:self.GROUP_KEY_LENGTH].lower()
            groups.setdefault(key, []).append(match)

        similar = [MatchGroup(key=k, matches=v) for k, v in groups.items() if len(v) >= 2]
        similar.sort(key=lambda g: g.size, reverse=True)
        return similar
