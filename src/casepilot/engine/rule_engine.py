"""
CasePilot Business Rule Engine

Evaluates the active rule set against a case/task context and executes
the actions of every matching rule.

Evaluation pass:
1. Snapshot active rules (priority desc, then insertion order)
2. Skip and disable rules whose configuration is malformed
3. Evaluate conditions against the evaluation root
4. Execute actions of matching rules, honoring each action's failure
   strategy (continue, stop, rollback)
5. Record counters through the rule repository and append an audit record

The evaluation root holds the request metadata (copied at the start of the
pass) at top level, plus ``case``, ``task``, ``event``, ``case_id``,
``task_id``, ``user_id`` and ``timestamp``. The ``case`` and ``task`` entries
are the live objects, so a later rule sees what earlier actions changed.
"""
from __future__ import annotations

import copy
import logging
import math
import threading
import time
from collections import deque
from typing import Any, Optional
from uuid import uuid4

from ..exceptions import (
    CaseNotFoundError,
    CasePilotError,
    RuleConfigurationError,
    RuleNotFoundError,
    TaskNotFoundError,
)
from ..models import (
    ActionResult,
    AuditRecord,
    BusinessRule,
    Case,
    EvaluationResult,
    FailureStrategy,
    RuleCategory,
    RuleEvaluationContext,
    RuleEvaluationResult,
    RuleStats,
    Task,
    TaskStatus,
    utc_now,
)
from ..store import AuditSink, CaseRepository, RuleRepository, TaskRepository
from .actions import ActionExecutor, ExecutionContext
from .condition_evaluator import ConditionEvaluator

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


class BusinessRuleEngine:
    """
    Rule evaluation over a rule repository.

    Usage:
        engine = BusinessRuleEngine(rules, cases, tasks, executor)
        results = engine.evaluate(RuleEvaluationContext(
            case_id="case-1",
            task_id="task-7",
            metadata={"daysUntilDeadline": 1},
        ))
        for r in results:
            print(r.rule_id, r.matched, r.actions_executed)
    """

    def __init__(
        self,
        rules: RuleRepository,
        cases: CaseRepository,
        tasks: TaskRepository,
        executor: ActionExecutor,
        evaluator: Optional[ConditionEvaluator] = None,
        audit: Optional[AuditSink] = None,
        history_limit: int = 1000,
    ) -> None:
        self.rules = rules
        self.cases = cases
        self.tasks = tasks
        self.executor = executor
        self.evaluator = evaluator or ConditionEvaluator()
        self.audit = audit
        self._history: deque[RuleEvaluationResult] = deque(maxlen=history_limit)
        self._history_lock = threading.Lock()
        self._evaluations = 0

    # =========================================================================
    # Evaluation
    # =========================================================================

    def evaluate(self, context: RuleEvaluationContext) -> list[RuleEvaluationResult]:
        """
        Evaluate every active rule against the context.

        Returns:
            One result per rule considered, in evaluation order

        Raises:
            CaseNotFoundError: If context.case_id is unknown
            TaskNotFoundError: If context.task_id is unknown
        """
        started = time.perf_counter()
        case, task = self._load(context)
        root = self.build_root(context, case, task)

        results: list[RuleEvaluationResult] = []
        for rule in self.rules.snapshot(active_only=True):
            problems = rule.validate()
            if problems:
                results.append(self._skip(rule, problems))
                continue
            results.append(self._evaluate_rule(rule, context, root, case, task))

        self._remember(results)
        logger.info(
            "Evaluated %d rules, %d matched",
            len(results), sum(1 for r in results if r.matched),
            extra={
                "case_id": context.case_id,
                "task_id": context.task_id,
                "duration_ms": _elapsed_ms(started),
            },
        )
        return results

    def test_rule(self, rule_id: str, context: RuleEvaluationContext) -> RuleEvaluationResult:
        """
        Dry-run a single rule.

        Conditions are evaluated against copies of the case and task;
        matching actions are listed as planned but not executed, and no
        counters or history are written.

        Raises:
            RuleNotFoundError: If the rule does not exist
            RuleConfigurationError: If the rule is malformed
        """
        rule = self.get_rule(rule_id)
        problems = rule.validate()
        if problems:
            raise RuleConfigurationError(
                message=f"Rule '{rule_id}' is misconfigured",
                details={"rule_id": rule_id, "errors": problems},
            )

        started = time.perf_counter()
        case, task = self._load(context)
        root = self.build_root(context, copy.deepcopy(case), copy.deepcopy(task))
        evaluation = self.evaluator.evaluate(rule.conditions, root)
        matched = self._is_match(rule, evaluation)

        planned = []
        if matched:
            planned = [
                ActionResult(
                    action_id=action.id,
                    action_type=action.type,
                    success=True,
                    result=self.executor.describe(action),
                )
                for action in rule.actions
            ]
        return RuleEvaluationResult(
            rule_id=rule.id,
            rule_name=rule.name,
            matched=matched,
            score=evaluation.score,
            confidence=evaluation.confidence,
            results=planned,
            warnings=list(evaluation.warnings),
            dry_run=True,
            execution_time_ms=_elapsed_ms(started),
            evaluated_at=context.timestamp,
        )

    def build_root(
        self,
        context: RuleEvaluationContext,
        case: Optional[Case],
        task: Optional[Task],
    ) -> dict[str, Any]:
        """Assemble the mapping condition field paths resolve against."""
        root: dict[str, Any] = copy.deepcopy(context.metadata)
        event: dict[str, Any] = {}
        if context.trigger_event is not None:
            event = {**copy.deepcopy(context.trigger_event.details), "type": context.trigger_event.type.value}
        root.update({
            "case": case,
            "task": task,
            "event": event,
            "case_id": context.case_id or (case.id if case else None),
            "task_id": context.task_id,
            "user_id": context.user_id,
            "timestamp": context.timestamp,
        })
        if task is not None:
            if "days_until_deadline" not in root and task.due_date is not None:
                remaining = (task.due_date - context.timestamp).total_seconds() / 86400
                root["days_until_deadline"] = math.floor(remaining)
            deps = [self.tasks.get(d) for d in task.dependencies]
            root.setdefault("dependencies", {
                "total": len(task.dependencies),
                "completed": sum(1 for d in deps if d is not None and d.status == TaskStatus.COMPLETED),
            })
        return root

    def _load(self, context: RuleEvaluationContext) -> tuple[Optional[Case], Optional[Task]]:
        task = None
        if context.task_id:
            task = self.tasks.get(context.task_id)
            if task is None:
                raise TaskNotFoundError(
                    message=f"Task '{context.task_id}' not found",
                    case_id=context.case_id,
                )
        case_id = context.case_id or (task.case_id if task else None)
        case = None
        if case_id:
            case = self.cases.get(case_id)
            if case is None:
                raise CaseNotFoundError(message=f"Case '{case_id}' not found", case_id=case_id)
        return case, task

    @staticmethod
    def _is_match(rule: BusinessRule, evaluation: EvaluationResult) -> bool:
        if not evaluation.is_satisfied:
            return False
        return rule.min_confidence is None or evaluation.confidence >= rule.min_confidence

    def _skip(self, rule: BusinessRule, problems: list[str]) -> RuleEvaluationResult:
        reason = "; ".join(problems)
        self.rules.disable(rule.id, reason)
        logger.warning(
            "Rule %s disabled: %s", rule.id, reason,
            extra={"rule_id": rule.id},
        )
        return RuleEvaluationResult(
            rule_id=rule.id,
            rule_name=rule.name,
            matched=False,
            errors=list(problems),
            skipped=True,
        )

    def _evaluate_rule(
        self,
        rule: BusinessRule,
        context: RuleEvaluationContext,
        root: dict[str, Any],
        case: Optional[Case],
        task: Optional[Task],
    ) -> RuleEvaluationResult:
        started = time.perf_counter()
        evaluation = self.evaluator.evaluate(rule.conditions, root)
        result = RuleEvaluationResult(
            rule_id=rule.id,
            rule_name=rule.name,
            matched=self._is_match(rule, evaluation),
            score=evaluation.score,
            confidence=evaluation.confidence,
            warnings=list(evaluation.warnings),
            evaluated_at=context.timestamp,
        )
        if evaluation.is_satisfied and not result.matched:
            result.warnings.append(
                f"confidence {evaluation.confidence:.2f} below minimum {rule.min_confidence:.2f}"
            )
        if not result.matched:
            result.execution_time_ms = _elapsed_ms(started)
            return result

        subject = task or case
        before = subject.to_dict() if subject is not None else {}
        ctx = ExecutionContext(
            rule_id=rule.id,
            timestamp=context.timestamp,
            case=case,
            task=task,
            user_id=context.user_id,
            metadata=copy.deepcopy(context.metadata),
            root=root,
        )
        self._run_actions(rule, ctx, result)
        result.execution_time_ms = _elapsed_ms(started)

        self.rules.record_outcome(rule.id, not result.errors, context.timestamp)
        self._audit(rule, context, result, subject, before)
        logger.info(
            "Rule %s matched, %d/%d actions applied",
            rule.id, len(result.actions_executed), len(rule.actions),
            extra={
                "rule_id": rule.id,
                "matched": True,
                "score": result.score,
                "duration_ms": result.execution_time_ms,
            },
        )
        return result

    def _run_actions(
        self,
        rule: BusinessRule,
        ctx: ExecutionContext,
        result: RuleEvaluationResult,
    ) -> None:
        applied: list[tuple[ActionResult, Any]] = []
        for action in rule.actions:
            started = time.perf_counter()
            try:
                payload, undo = self.executor.execute(action, ctx)
            except CasePilotError as e:
                result.results.append(ActionResult(
                    action_id=action.id,
                    action_type=action.type,
                    success=False,
                    error=e.message,
                    execution_time_ms=_elapsed_ms(started),
                ))
                result.errors.append(f"{action.id}: {e.message}")
                logger.warning(
                    "Action %s failed (%s): %s", action.id, action.failure_strategy.value, e.message,
                    extra={"rule_id": rule.id, "action_id": action.id},
                )
                if action.failure_strategy == FailureStrategy.CONTINUE:
                    continue
                if action.failure_strategy == FailureStrategy.ROLLBACK:
                    self._compensate(applied, result)
                break

            action_result = ActionResult(
                action_id=action.id,
                action_type=action.type,
                success=True,
                result=payload,
                execution_time_ms=_elapsed_ms(started),
            )
            result.results.append(action_result)
            result.actions_executed.append(action.id)
            applied.append((action_result, undo))

    def _compensate(
        self,
        applied: list[tuple[ActionResult, Any]],
        result: RuleEvaluationResult,
    ) -> None:
        for action_result, undo in reversed(applied):
            if undo is None:
                result.warnings.append(f"{action_result.action_id}: no compensation available")
                continue
            try:
                undo()
            except CasePilotError as e:
                result.warnings.append(f"{action_result.action_id}: compensation failed: {e.message}")
                continue
            action_result.compensated = True
        result.rolled_back = True

    def _audit(
        self,
        rule: BusinessRule,
        context: RuleEvaluationContext,
        result: RuleEvaluationResult,
        subject: Optional[Any],
        before: dict[str, Any],
    ) -> None:
        if self.audit is None:
            return
        self.audit.append(AuditRecord(
            id=str(uuid4()),
            event="rule_executed",
            actor_id=context.user_id or "system",
            entity_type="task" if isinstance(subject, Task) else "case",
            entity_id=subject.id if subject is not None else rule.id,
            before=before,
            after=subject.to_dict() if subject is not None else {},
            timestamp=context.timestamp,
            details={
                "rule_id": rule.id,
                "actions_executed": list(result.actions_executed),
                "errors": list(result.errors),
                "rolled_back": result.rolled_back,
            },
        ))

    # =========================================================================
    # Rule Management
    # =========================================================================

    def add_rule(self, rule: BusinessRule) -> BusinessRule:
        """
        Raises:
            RuleConfigurationError: If the rule is malformed or the id is taken
        """
        problems = rule.validate()
        if problems:
            raise RuleConfigurationError(
                message=f"Rule '{rule.id}' is misconfigured",
                details={"rule_id": rule.id, "errors": problems},
            )
        if self.rules.get(rule.id) is not None:
            raise RuleConfigurationError(
                message=f"Rule '{rule.id}' already exists",
                details={"rule_id": rule.id},
            )
        return self.rules.add(rule)

    def get_rule(self, rule_id: str) -> BusinessRule:
        rule = self.rules.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(message=f"Rule '{rule_id}' not found", details={"rule_id": rule_id})
        return rule

    def list_rules(
        self,
        category: Optional[RuleCategory] = None,
        active_only: bool = False,
    ) -> list[BusinessRule]:
        return self.rules.list(category=category, active_only=active_only)

    def update_rule(self, rule: BusinessRule) -> BusinessRule:
        current = self.get_rule(rule.id)
        problems = rule.validate()
        if problems:
            raise RuleConfigurationError(
                message=f"Rule '{rule.id}' is misconfigured",
                details={"rule_id": rule.id, "errors": problems},
            )
        rule.trigger_count = current.trigger_count
        rule.success_count = current.success_count
        rule.failure_count = current.failure_count
        rule.last_triggered = current.last_triggered
        rule.created_at = current.created_at
        return self.rules.update(rule)

    def delete_rule(self, rule_id: str) -> None:
        if not self.rules.delete(rule_id):
            raise RuleNotFoundError(message=f"Rule '{rule_id}' not found", details={"rule_id": rule_id})

    def activate_rule(self, rule_id: str) -> BusinessRule:
        rule = self.get_rule(rule_id)
        problems = rule.validate()
        if problems:
            raise RuleConfigurationError(
                message=f"Rule '{rule_id}' cannot be activated while misconfigured",
                details={"rule_id": rule_id, "errors": problems},
            )
        with self.rules.transaction():
            rule.is_active = True
            rule.disabled_reason = None
            rule.updated_at = utc_now()
        return rule

    def deactivate_rule(self, rule_id: str, reason: str = "deactivated") -> BusinessRule:
        self.get_rule(rule_id)
        self.rules.disable(rule_id, reason)
        return self.get_rule(rule_id)

    # =========================================================================
    # History and Statistics
    # =========================================================================

    def _remember(self, results: list[RuleEvaluationResult]) -> None:
        with self._history_lock:
            self._evaluations += 1
            self._history.extend(results)

    def get_history(
        self,
        rule_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[RuleEvaluationResult]:
        """Most recent results first."""
        with self._history_lock:
            items = list(self._history)
        items.reverse()
        if rule_id is not None:
            items = [r for r in items if r.rule_id == rule_id]
        return items[:limit] if limit is not None else items

    def get_stats(self) -> RuleStats:
        rules = self.rules.list()
        with self._history_lock:
            history = list(self._history)
            evaluations = self._evaluations
        triggers = sum(r.trigger_count for r in rules)
        successes = sum(r.success_count for r in rules)
        timed = [r.execution_time_ms for r in history if r.matched]

        categories: dict[str, int] = {}
        for rule in rules:
            categories[rule.category.value] = categories.get(rule.category.value, 0) + 1

        top = sorted(rules, key=lambda r: (-r.trigger_count, r.sequence))[:5]
        return RuleStats(
            total_rules=len(rules),
            active_rules=sum(1 for r in rules if r.is_active),
            total_evaluations=evaluations,
            total_triggers=triggers,
            total_successes=successes,
            total_failures=sum(r.failure_count for r in rules),
            success_rate=round(successes / triggers, 4) if triggers else 0.0,
            average_execution_time_ms=round(sum(timed) / len(timed), 3) if timed else 0.0,
            top_rules=[
                {
                    "rule_id": r.id,
                    "name": r.name,
                    "trigger_count": r.trigger_count,
                    "success_rate": round(r.success_rate, 4),
                }
                for r in top if r.trigger_count
            ],
            category_counts=categories,
        )
