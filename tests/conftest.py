from datetime import datetime, timedelta, timezone

import pytest

from tasktime.analytics import ProgressAnalytics
from tasktime.memory_store import MemoryStore
from tasktime.models import Member, Project, Task
from tasktime.timer import TimerEngine

T0 = datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_task(task_id: str, **overrides) -> Task:
    fields = {
        "id": task_id,
        "code": f"TSK-{task_id}",
        "title": f"Task {task_id}",
        "project_id": "p1",
        "workspace_id": "ws1",
        "created_by": "owner",
    }
    fields.update(overrides)
    return Task(**fields)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    s = MemoryStore()
    s.add_workspace("ws1", "Production")
    s.add_project(Project(id="p1", workspace_id="ws1", name="Biology 101",
                          client_id="c1", client_name="Acme Press"))
    s.add_member(Member(user_id="u1", workspace_id="ws1", name="Asha"))
    s.add_member(Member(user_id="u2", workspace_id="ws1", name="Ravi"))
    s.add_task(make_task("t1", assigned_to="u1", task_type_code="1001-1",
                         task_type_name="Keying/Scanning/OCR/Script Running"))
    return s


@pytest.fixture
def timer(store, clock):
    return TimerEngine(store, clock=clock)


@pytest.fixture
def analytics(store, clock):
    return ProgressAnalytics(store, clock=clock, max_workers=4)
