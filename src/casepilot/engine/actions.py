"""
CasePilot Action Executor

Runs the side effects of matched business rules.

Every ActionType has exactly one handler. A handler mutates the shared
case/task objects, saves them through the repositories, and returns:

    (result payload, compensation or None)

The compensation restores the state the handler changed; the rule engine
calls them in reverse order when a rule's failure strategy is rollback.
send_notification has no compensation since delivery cannot be recalled.

Handlers raise ActionExecutionError on failure.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Optional
from uuid import uuid4

from ..exceptions import ActionExecutionError, CasePilotError
from ..models import (
    ActionType,
    AssignmentCriteria,
    AssignTaskParams,
    BusinessAction,
    Case,
    CaseStatus,
    ChangePriorityParams,
    CreateDependencyParams,
    DeadlineStrategy,
    EscalateTaskParams,
    NotificationType,
    ReassignTaskParams,
    RequestReviewParams,
    ReviewRequest,
    SendNotificationParams,
    SetDeadlineParams,
    Task,
    TaskStatus,
    UpdateStatusParams,
    UserRole,
)
from ..store import CaseRepository, NotificationDispatcher, TaskRepository, UserDirectory
from .assignment import AssignmentSelector, build_candidates, determine_preferred_role
from .deadlines import DeadlineCalculator
from .escalation import EscalationRouter
from .phase_validator import PhaseValidator

logger = logging.getLogger(__name__)

Compensation = Callable[[], None]
HandlerResult = tuple[dict[str, Any], Optional[Compensation]]

# Recipient tokens resolved to every available user holding the role
ROLE_RECIPIENTS: dict[str, UserRole] = {
    "supervisor": UserRole.ADMIN,
    "compliance_officer": UserRole.ADMIN,
    "admin": UserRole.ADMIN,
    "assistant": UserRole.ASSISTANT,
}


@dataclass
class ExecutionContext:
    """Shared state for the actions of one rule in one evaluation pass."""
    rule_id: str
    timestamp: datetime
    case: Optional[Case] = None
    task: Optional[Task] = None
    user_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    root: dict[str, Any] = field(default_factory=dict)


class ActionExecutor:
    """
    Exhaustive ActionType dispatch.

    Usage:
        executor = ActionExecutor(cases, tasks, users, dispatcher)
        payload, undo = executor.execute(action, ctx)
        ...
        if undo is not None:
            undo()
    """

    def __init__(
        self,
        cases: CaseRepository,
        tasks: TaskRepository,
        users: UserDirectory,
        notifications: NotificationDispatcher,
        selector: Optional[AssignmentSelector] = None,
        deadlines: Optional[DeadlineCalculator] = None,
        escalation: Optional[EscalationRouter] = None,
        validator: Optional[PhaseValidator] = None,
    ) -> None:
        self.cases = cases
        self.tasks = tasks
        self.users = users
        self.notifications = notifications
        self.selector = selector or AssignmentSelector()
        self.deadlines = deadlines or DeadlineCalculator()
        self.escalation = escalation
        self.validator = validator
        self._handlers: dict[ActionType, Callable[[Any, ExecutionContext], HandlerResult]] = {
            ActionType.ASSIGN_TASK: self._assign_task,
            ActionType.REASSIGN_TASK: self._reassign_task,
            ActionType.ESCALATE_TASK: self._escalate_task,
            ActionType.CHANGE_PRIORITY: self._change_priority,
            ActionType.SET_DEADLINE: self._set_deadline,
            ActionType.SEND_NOTIFICATION: self._send_notification,
            ActionType.CREATE_DEPENDENCY: self._create_dependency,
            ActionType.UPDATE_STATUS: self._update_status,
            ActionType.REQUEST_REVIEW: self._request_review,
        }

    @property
    def supported_types(self) -> set[ActionType]:
        return set(self._handlers)

    def execute(self, action: BusinessAction, ctx: ExecutionContext) -> HandlerResult:
        """
        Run one action.

        Raises:
            ActionExecutionError: If the handler fails
        """
        handler = self._handlers.get(action.type)
        if handler is None:
            raise ActionExecutionError(
                message=f"No handler for action type {action.type!r}",
                details={"action_id": action.id},
            )
        try:
            return handler(action.params, ctx)
        except ActionExecutionError:
            raise
        except CasePilotError as e:
            raise ActionExecutionError(
                message=e.message,
                details={"action_id": action.id, "cause": e.code, **e.details},
                case_id=ctx.case.id if ctx.case else None,
            ) from e

    def describe(self, action: BusinessAction) -> dict[str, Any]:
        """Planned-action summary used by dry runs."""
        params = {
            k: (v.value if hasattr(v, "value") else v)
            for k, v in asdict(action.params).items()
        }
        return {
            "planned": True,
            "type": action.type.value,
            "failure_strategy": action.failure_strategy.value,
            "params": params,
        }

    # -------------------------------------------------------------------------
    # Assignment
    # -------------------------------------------------------------------------

    def _assign_task(self, params: AssignTaskParams, ctx: ExecutionContext) -> HandlerResult:
        task = self._require_task(ctx, "assign_task")
        criteria = AssignmentCriteria(
            strategy=params.strategy,
            required_role=params.required_role,
            preferred_role=determine_preferred_role(
                ctx.case.case_type if ctx.case else None, task.priority
            ),
            required_expertise=list(params.required_expertise or task.required_expertise),
            max_workload=params.max_workload,
            min_expertise_score=params.min_expertise_score,
            priority=task.priority,
        )
        return self._apply_assignment(task, criteria, ctx)

    def _reassign_task(self, params: ReassignTaskParams, ctx: ExecutionContext) -> HandlerResult:
        task = self._require_task(ctx, "reassign_task")
        criteria = AssignmentCriteria(
            strategy=params.strategy,
            required_role=params.required_role,
            required_expertise=list(task.required_expertise),
            max_workload=params.max_workload,
            priority=task.priority,
            exclude_user_ids=[task.assignee_id] if task.assignee_id else [],
        )
        payload, undo = self._apply_assignment(task, criteria, ctx)
        payload["reason"] = params.reason
        return payload, undo

    def _apply_assignment(
        self,
        task: Task,
        criteria: AssignmentCriteria,
        ctx: ExecutionContext,
    ) -> HandlerResult:
        users = self.users.list(role=criteria.required_role, available_only=True)
        open_tasks = {u.id: self.tasks.list_for_assignee(u.id) for u in users}
        candidates = build_candidates(
            users,
            open_tasks,
            ctx.case.case_type if ctx.case else None,
            criteria.required_expertise,
            ctx.timestamp,
        )
        decision = self.selector.select(candidates, criteria)

        previous = (task.assignee_id, task.assignee_role)
        task.assignee_id = decision.user_id
        task.assignee_role = decision.selected.candidate.role
        self.tasks.save(task)

        def undo() -> None:
            task.assignee_id, task.assignee_role = previous
            self.tasks.save(task)

        return {
            "assignee_id": decision.user_id,
            "assignee_role": task.assignee_role.value,
            "previous_assignee_id": previous[0],
            "strategy": decision.strategy.value,
            "reasoning": decision.reasoning,
        }, undo

    # -------------------------------------------------------------------------
    # Escalation, priority, deadlines
    # -------------------------------------------------------------------------

    def _escalate_task(self, params: EscalateTaskParams, ctx: ExecutionContext) -> HandlerResult:
        task = self._require_task(ctx, "escalate_task")
        current_role = task.assignee_role or self._role_of(task.assignee_id) or UserRole.ASSISTANT

        path = None
        to_role = params.to_role
        if to_role is None:
            if self.escalation is None:
                raise ActionExecutionError(message="No escalation router configured and no target role given")
            path = self.escalation.next_step(current_role, task.escalation_level, ctx.root)
            if path is None:
                raise ActionExecutionError(
                    message=f"No escalation path from {current_role.value} "
                    f"at level {task.escalation_level + 1}",
                    details={"task_id": task.id},
                )
            to_role = path.to_role

        # Resolve before mutating so an unresolvable recipient leaves the task untouched
        deliveries = [
            (rule, self._resolve_recipients(rule.recipients, ctx))
            for rule in (path.notification_rules if path is not None else [])
        ]

        previous_level = task.escalation_level
        previous_due = task.due_date
        previous_target = task.metadata.get("escalated_to")

        task.escalation_level += params.levels
        task.metadata["escalated_to"] = to_role.value
        if params.deadline_extension_hours and task.due_date is not None:
            task.due_date = task.due_date + timedelta(hours=params.deadline_extension_hours)
        self.tasks.save(task)

        def undo() -> None:
            task.escalation_level = previous_level
            task.due_date = previous_due
            if previous_target is None:
                task.metadata.pop("escalated_to", None)
            else:
                task.metadata["escalated_to"] = previous_target
            self.tasks.save(task)

        notified: list[str] = []
        try:
            for rule, recipients in deliveries:
                sent = self.notifications.dispatch(
                    recipients,
                    rule.template,
                    channel=rule.channel,
                    urgency=rule.urgency,
                    delay_minutes=rule.delay_minutes,
                    payload={"task_id": task.id, "escalated_to": to_role.value},
                )
                notified.extend(n.recipient for n in sent)
        except CasePilotError:
            # A handler that raises hands back no compensation
            undo()
            raise

        return {
            "from_role": current_role.value,
            "to_role": to_role.value,
            "escalation_level": task.escalation_level,
            "approval_required": bool(path and path.approval_required),
            "due_date": task.due_date.isoformat() if task.due_date else None,
            "notified": notified,
            "reason": params.reason,
        }, undo

    def _change_priority(self, params: ChangePriorityParams, ctx: ExecutionContext) -> HandlerResult:
        task = self._require_task(ctx, "change_priority")
        previous = task.priority
        task.priority = params.priority
        self.tasks.save(task)

        def undo() -> None:
            task.priority = previous
            self.tasks.save(task)

        return {"previous_priority": previous.value, "priority": task.priority.value}, undo

    def _set_deadline(self, params: SetDeadlineParams, ctx: ExecutionContext) -> HandlerResult:
        task = self._require_task(ctx, "set_deadline")
        if params.strategy == DeadlineStrategy.COMPLEXITY_BASED:
            flags = dict(task.metadata)
            flags.update(ctx.metadata)
            result = self.deadlines.complexity_deadline(
                start=ctx.timestamp,
                case_type=ctx.case.case_type if ctx.case else None,
                base_hours=params.base_hours if params.base_hours is not None else task.estimated_hours,
                flags=flags,
                buffer=params.buffer,
                min_extension_hours=params.min_extension_hours,
                roll_to_business_day=params.roll_to_business_day or None,
            )
        else:
            prerequisites = []
            for dep_id in task.dependencies:
                dep = self.tasks.get(dep_id)
                if dep is None:
                    raise ActionExecutionError(
                        message=f"Dependency task '{dep_id}' not found",
                        details={"task_id": task.id},
                    )
                prerequisites.append(dep.due_date)
            result = self.deadlines.dependency_deadline(
                start=ctx.timestamp,
                dependency_deadlines=prerequisites,
                buffer_hours=params.dependency_buffer_hours,
                roll_to_business_day=params.roll_to_business_day or None,
            )

        previous = task.due_date
        task.due_date = result.deadline
        self.tasks.save(task)

        def undo() -> None:
            task.due_date = previous
            self.tasks.save(task)

        payload = result.to_dict()
        payload["previous_deadline"] = previous.isoformat() if previous else None
        return payload, undo

    # -------------------------------------------------------------------------
    # Notification
    # -------------------------------------------------------------------------

    def _send_notification(self, params: SendNotificationParams, ctx: ExecutionContext) -> HandlerResult:
        recipients = self._resolve_recipients(params.recipients, ctx)
        sent = self.notifications.dispatch(
            recipients,
            params.template,
            channel=params.channel,
            urgency=params.urgency,
            delay_minutes=params.delay_minutes,
            type=NotificationType.RULE_ACTION,
            payload={
                "rule_id": ctx.rule_id,
                "case_id": ctx.case.id if ctx.case else None,
                "task_id": ctx.task.id if ctx.task else None,
            },
        )
        return {
            "template": params.template,
            "channel": params.channel.value,
            "recipients": [n.recipient for n in sent],
            "notification_ids": [n.id for n in sent],
        }, None

    def _resolve_recipients(self, tokens: list[str], ctx: ExecutionContext) -> list[str]:
        """
        Turn recipient tokens into user ids.

        "assignee", "attorney" and "client" refer to the task/case at hand;
        role tokens expand to every available user with that role; anything
        else is taken as a user id.
        """
        resolved: list[str] = []
        for token in tokens:
            if token == "assignee":
                if ctx.task is not None and ctx.task.assignee_id:
                    resolved.append(ctx.task.assignee_id)
            elif token == "attorney":
                if ctx.case is not None and ctx.case.attorney_id:
                    resolved.append(ctx.case.attorney_id)
                else:
                    resolved.extend(u.id for u in self.users.list(UserRole.ATTORNEY, available_only=True))
            elif token == "client":
                if ctx.case is not None:
                    resolved.append(ctx.case.client_id)
            elif token in ROLE_RECIPIENTS:
                resolved.extend(u.id for u in self.users.list(ROLE_RECIPIENTS[token], available_only=True))
            else:
                resolved.append(token)

        if not resolved:
            raise ActionExecutionError(
                message=f"No recipients resolved from {tokens}",
                details={"tokens": list(tokens)},
            )
        return list(dict.fromkeys(resolved))

    # -------------------------------------------------------------------------
    # Dependencies, status, review
    # -------------------------------------------------------------------------

    def _create_dependency(self, params: CreateDependencyParams, ctx: ExecutionContext) -> HandlerResult:
        task = self._require_task(ctx, "create_dependency")
        added: list[str] = []
        blocking = False
        for dep_id in params.depends_on:
            if dep_id == task.id:
                raise ActionExecutionError(
                    message="A task cannot depend on itself",
                    details={"task_id": task.id},
                )
            dep = self.tasks.get(dep_id)
            if dep is None:
                raise ActionExecutionError(
                    message=f"Dependency task '{dep_id}' not found",
                    details={"task_id": task.id},
                )
            if dep.is_open:
                blocking = True
            if dep_id not in task.dependencies:
                added.append(dep_id)

        previous_status = task.status
        task.dependencies.extend(added)
        if params.block_until_complete and blocking and task.is_open:
            task.status = TaskStatus.WAITING_DEPENDENCIES
        self.tasks.save(task)

        def undo() -> None:
            task.dependencies = [d for d in task.dependencies if d not in added]
            task.status = previous_status
            self.tasks.save(task)

        return {"added": added, "status": task.status.value}, undo

    def _update_status(self, params: UpdateStatusParams, ctx: ExecutionContext) -> HandlerResult:
        if params.target == "case":
            case = ctx.case
            if case is None:
                raise ActionExecutionError(message="update_status on case requires a case in context")
            target = CaseStatus(params.status)
            if self.validator is not None:
                check = self.validator.validate_status_transition(case.status, target, case.phase)
                if not check.valid:
                    raise ActionExecutionError(
                        message="; ".join(check.errors),
                        details={"from": case.status.value, "to": target.value},
                        case_id=case.id,
                    )
            previous_case_status = case.status
            case.status = target
            self.cases.save(case)

            def undo_case() -> None:
                case.status = previous_case_status
                self.cases.save(case)

            return {
                "target": "case",
                "previous_status": previous_case_status.value,
                "status": target.value,
            }, undo_case

        task = self._require_task(ctx, "update_status")
        previous = task.status
        task.status = TaskStatus(params.status)
        self.tasks.save(task)

        def undo() -> None:
            task.status = previous
            self.tasks.save(task)

        return {"target": "task", "previous_status": previous.value, "status": task.status.value}, undo

    def _request_review(self, params: RequestReviewParams, ctx: ExecutionContext) -> HandlerResult:
        task = self._require_task(ctx, "request_review")
        review = ReviewRequest(
            id=str(uuid4()),
            review_type=params.review_type,
            reviewer_role=params.reviewer_role,
            requested_at=ctx.timestamp,
            due_at=ctx.timestamp + timedelta(hours=params.deadline_offset_hours),
            reason=params.reason,
            checklist=list(params.checklist),
        )
        task.review_requests.append(review)
        self.tasks.save(task)

        def undo() -> None:
            task.review_requests = [r for r in task.review_requests if r.id != review.id]
            self.tasks.save(task)

        return {
            "review_id": review.id,
            "review_type": review.review_type,
            "reviewer_role": review.reviewer_role.value,
            "due_at": review.due_at.isoformat(),
            "checklist": review.checklist,
        }, undo

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _require_task(ctx: ExecutionContext, action: str) -> Task:
        if ctx.task is None:
            raise ActionExecutionError(message=f"{action} requires a task in context")
        return ctx.task

    def _role_of(self, user_id: Optional[str]) -> Optional[UserRole]:
        if not user_id:
            return None
        user = self.users.get(user_id)
        return user.role if user else None
