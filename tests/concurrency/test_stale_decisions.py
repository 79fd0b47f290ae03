"""
Optimistic concurrency on workflow instances.

Two approvers working from the same snapshot of an instance: the first
write wins, the second is refused with StaleStepError and writes nothing.
The refused approver can retry against the fresh instance.
"""

import pytest

from workflow_config import parse_definition_payload
from workflow_engines.state_machine import WorkflowInstanceStateMachine
from workflow_kernel.domain.instance import InstanceStatus
from workflow_kernel.domain.roster import MemberRole
from workflow_kernel.exceptions import StaleStepError
from workflow_kernel.selectors import InstanceSelector
from workflow_kernel.services import InstanceService

SUBMITTED_AND_FORWARDED = 2


@pytest.fixture
def workflow(definition_service, organization_id):
    payload = {
        "workflowName": "Joint Sign-off",
        "steps": [
            {
                "stepName": "Submit",
                "order": 1,
                "assigneeLogic": {"assigneeType": "SUBMITTER"},
                "actions": [{"name": "submit"}],
                "transitions": [{"toStepName": "Sign-off", "actionName": "submit"}],
            },
            {
                "stepName": "Sign-off",
                "order": 2,
                "assigneeLogic": {"assigneeType": "SPECIFIC_ROLE", "specificRoleId": "MANAGER"},
                "actions": [{"name": "approve", "approvalMode": "ALL"}],
            },
        ],
    }
    return definition_service.create_definition(
        parse_definition_payload(payload, organization_id=organization_id)
    )


@pytest.fixture
def managers(add_member):
    return add_member(MemberRole.MANAGER), add_member(MemberRole.MANAGER)


@pytest.fixture
def instance_id(executor, workflow, submitter):
    instance_id = executor.submit(workflow.definition_id, {}, submitter.member_id)
    executor.record_decision(instance_id, submitter.member_id, "submit")
    return instance_id


class TestExpectedVersion:
    def test_second_decision_on_the_same_version_is_stale(self, executor, instance_id, managers):
        first, second = managers

        status = executor.record_decision(
            instance_id, first.member_id, "approve", expected_version=SUBMITTED_AND_FORWARDED,
        )
        assert status is InstanceStatus.IN_PROGRESS

        with pytest.raises(StaleStepError) as exc_info:
            executor.record_decision(
                instance_id, second.member_id, "approve",
                expected_version=SUBMITTED_AND_FORWARDED,
            )

        assert exc_info.value.expected_version == SUBMITTED_AND_FORWARDED
        assert exc_info.value.actual_version == SUBMITTED_AND_FORWARDED + 1

    def test_retry_against_the_fresh_version(self, executor, instance_id, managers):
        first, second = managers
        executor.record_decision(
            instance_id, first.member_id, "approve", expected_version=SUBMITTED_AND_FORWARDED,
        )

        fresh = executor.get_instance(instance_id)
        status = executor.record_decision(
            instance_id, second.member_id, "approve", expected_version=fresh.version,
        )

        assert status is InstanceStatus.APPROVED

    def test_stale_trace_is_emitted(self, executor, instance_id, managers, trace_records):
        first, second = managers
        executor.record_decision(instance_id, first.member_id, "approve")

        with pytest.raises(StaleStepError):
            executor.record_decision(
                instance_id, second.member_id, "approve",
                expected_version=SUBMITTED_AND_FORWARDED,
            )

        assert trace_records[-1]["error_code"] == "STALE_STEP"


class TestCompareAndSet:
    """Both writers computed from one snapshot; only the first save lands."""

    def test_lost_update_is_refused(
        self, session, roster, deterministic_clock, workflow, instance_id, managers,
    ):
        first, second = managers
        selector = InstanceSelector(session)
        instances = InstanceService(session, clock=deterministic_clock)
        machine = WorkflowInstanceStateMachine(workflow, roster.members_of(workflow.organization_id))
        snapshot = selector.get_instance(instance_id)
        ledger = selector.get_decisions(instance_id, step_visit=snapshot.step_visit)

        results = [
            machine.record_decision(
                snapshot, ledger,
                actor_id=member.member_id,
                action_name="approve",
                now=deterministic_clock.now(),
            )
            for member in (first, second)
        ]

        winner, loser = results
        instances.save_progress(
            winner.instance, expected_version=snapshot.version,
            records=winner.records, decision=winner.decision,
        )
        with pytest.raises(StaleStepError):
            instances.save_progress(
                loser.instance, expected_version=snapshot.version,
                records=loser.records, decision=loser.decision,
            )

        stored = selector.get_instance(instance_id)
        assert stored.version == snapshot.version + 1
        assert [d.actor_id for d in selector.get_decisions(
            instance_id, step_visit=snapshot.step_visit,
        )] == [first.member_id]
        assert len(selector.get_history(instance_id)) == snapshot.record_count + 1
