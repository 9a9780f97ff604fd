from datetime import timedelta
from threading import Thread
import time

import pytest

from mindpop.constants.gateway_constants import QUIZ_ATTEMPTS
from mindpop.constants.quiz_constants import COMPLETED_WORKFLOW_RETENTION_SECONDS
from mindpop.core.errors import AttemptStateError, RecordNotFoundError
from mindpop.core.quiz_attempt_workflow import AttemptState
from mindpop.core.record_mappers import utc_now
from mindpop.core.services.attempt_store import AttemptStore


def test_concurrent_starts_share_one_attempt(platform, gateway, student, course, quiz, questions, monkeypatch):
    platform.enroll(student, course.id)
    original = AttemptStore.has_completed_attempt

    def slow_check(self, *args, **kwargs):
        time.sleep(0.05)
        return original(self, *args, **kwargs)

    monkeypatch.setattr(AttemptStore, "has_completed_attempt", slow_check)
    started = []
    threads = [Thread(target=lambda: started.append(platform.start_attempt(student, quiz.id))) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert len(started) == 2
    assert started[0] is started[1]
    assert len(gateway.select(QUIZ_ATTEMPTS, {"quiz_id": quiz.id})) == 1

    workflow = started[0]
    for _ in range(60):
        workflow.timer.tick()
    assert workflow.state is AttemptState.COMPLETED
    with pytest.raises(AttemptStateError):
        platform.submit_attempt(student, quiz.id)

    finished = [row for row in gateway.select(QUIZ_ATTEMPTS, {"quiz_id": quiz.id}) if row.get("completed_at")]
    assert len(finished) == 1


def test_completed_workflows_are_evicted_after_retention(platform, student, quiz, questions):
    platform.start_attempt(student, quiz.id)
    platform.submit_attempt(student, quiz.id)

    assert platform.prune_workflows() == 0
    assert platform.get_workflow(student, quiz.id).state is AttemptState.COMPLETED

    later = utc_now() + timedelta(seconds=COMPLETED_WORKFLOW_RETENTION_SECONDS + 1)
    assert platform.prune_workflows(later) == 1

    with pytest.raises(RecordNotFoundError):
        platform.get_workflow(student, quiz.id)
    assert platform.attempts_for(student).latest_completed_attempt(quiz.id) is not None


def test_running_workflows_survive_pruning(platform, student, quiz, questions):
    workflow = platform.start_attempt(student, quiz.id)

    later = utc_now() + timedelta(seconds=COMPLETED_WORKFLOW_RETENTION_SECONDS + 1)

    assert platform.prune_workflows(later) == 0
    assert platform.get_workflow(student, quiz.id) is workflow
