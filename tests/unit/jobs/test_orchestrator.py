"""AsyncJobOrchestrator - sessions, messages and non-blocking ask/ctx submission."""

from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from src.infra.credentials.env import EnvCredentialResolver
from src.infra.objects.memory_store import InMemoryObjectStore
from src.jobs.orchestrator import (
    AsyncJobOrchestrator,
    JobView,
    history_hash,
    message_view,
    normalize_history,
    parse_object_id,
    session_view,
)
from src.jobs.runner import JOB_KIND_ASK, JOB_KIND_CTX, AsyncioJobRunner, JobSpec
from src.jobs.worker import AiJobWorker
from src.objects.partition import Partition
from src.shared.errors import NotFoundError, PayloadTooLargeError, ValidationError
from tests.fakes import FakeLLM

ORG = "org_alpha"
ENV = {"org_alpha_OPENAI_API_KEY": "sk-alpha"}


class _CapturingRunner:
    def __init__(self) -> None:
        self.specs: list[JobSpec] = []

    def submit(self, spec: JobSpec) -> None:
        self.specs.append(spec)


@pytest.fixture()
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture()
def partition(store) -> Partition:
    return Partition(store=store, org_id=ORG)


@pytest.fixture()
def runner() -> _CapturingRunner:
    return _CapturingRunner()


@pytest.fixture()
def orchestrator(runner) -> AsyncJobOrchestrator:
    return AsyncJobOrchestrator(
        runner=runner,
        credentials=EnvCredentialResolver(ENV),
        default_model="gpt-4o",
        max_payload_bytes=2048,
    )


@pytest.mark.unit
class TestHelpers:
    def test_parse_object_id(self) -> None:
        oid = uuid4()
        assert parse_object_id(str(oid), field="id") == oid

    def test_parse_object_id_rejects_garbage(self) -> None:
        with pytest.raises(ValidationError, match="bad_session_id"):
            parse_object_id("nope", field="session_id")

    def test_normalize_history(self) -> None:
        turns = normalize_history(
            [{"role": "assistant", "content": "a"}, {"role": "system", "content": 5}]
        )
        assert turns[0]["role"] == "assistant"
        assert turns[1] == {
            "role": "user",
            "content": "5",
            "created_at": "1970-01-01T00:00:00Z",
        }

    def test_normalize_history_rejects_non_objects(self) -> None:
        with pytest.raises(ValidationError):
            normalize_history(["hello"])

    def test_history_hash_is_stable(self) -> None:
        turns = normalize_history([{"role": "user", "content": "hi"}])
        assert history_hash(turns) == history_hash(list(turns))
        assert history_hash(turns).startswith("sha256:")
        assert history_hash(turns) != history_hash([])

    def test_job_view_shapes(self) -> None:
        assert JobView(status="pending").to_dict() == {"status": "pending"}
        assert JobView(status="done", result="r").to_dict() == {"status": "done", "result": "r"}
        assert JobView(status="error", error="e").to_dict() == {"status": "error", "error": "e"}


@pytest.mark.unit
class TestSessions:
    async def test_create_and_get(self, orchestrator, partition) -> None:
        record = await orchestrator.create_session(
            partition, user_id="u1", name="Chat", system_prompt="Be brief"
        )
        view = session_view(await orchestrator.get_session(partition, str(record.id)))
        assert view["session_id"] == str(record.id)
        assert view["name"] == "Chat"
        assert view["system_prompt"] == "Be brief"
        assert view["user_id"] == "u1"
        assert view["session_start"] is not None
        assert view["session_end"] is None
        assert record.metadata["source"] == "ai-router"

    async def test_get_wrong_type_is_not_found(self, orchestrator, partition) -> None:
        other = await partition.create("Product", {"name": "x"})
        with pytest.raises(NotFoundError, match="Session"):
            await orchestrator.get_session(partition, str(other.id))

    async def test_get_bad_id(self, orchestrator, partition) -> None:
        with pytest.raises(ValidationError, match="bad_session_id"):
            await orchestrator.get_session(partition, "not-a-uuid")

    async def test_list_sessions_only_callers_newest_first(
        self, orchestrator, partition
    ) -> None:
        first = await orchestrator.create_session(partition, user_id="u1")
        await orchestrator.create_session(partition, user_id="u2")
        second = await orchestrator.create_session(partition, user_id="u1")
        page = await orchestrator.list_sessions(partition, user_id="u1")
        assert [r.id for r in page.items] == [second.id, first.id]

    async def test_update_session_end(self, orchestrator, partition) -> None:
        record = await orchestrator.create_session(partition, user_id="u1")
        updated = await orchestrator.update_session(
            partition, str(record.id), name="Renamed", end=True
        )
        assert updated.data["name"] == "Renamed"
        assert updated.data["session_end"] is not None

    async def test_update_nothing(self, orchestrator, partition) -> None:
        record = await orchestrator.create_session(partition, user_id="u1")
        with pytest.raises(ValidationError, match="nothing_to_update"):
            await orchestrator.update_session(partition, str(record.id))


@pytest.mark.unit
class TestMessages:
    async def test_append_and_list_in_order(self, orchestrator, partition) -> None:
        session = await orchestrator.create_session(partition, user_id="u1")
        sid = str(session.id)
        for text in ("one", "two", "three"):
            await orchestrator.append_message(
                partition, sid, user_id="u1", role="user", content=text
            )
        asc = await orchestrator.list_messages(partition, sid, order="asc")
        desc = await orchestrator.list_messages(partition, sid)
        assert [r.data["content"] for r in asc.items] == ["one", "two", "three"]
        assert [r.data["content"] for r in desc.items] == ["three", "two", "one"]

    async def test_message_is_linked_to_session(self, orchestrator, partition) -> None:
        session = await orchestrator.create_session(partition, user_id="u1")
        msg = await orchestrator.append_message(
            partition, str(session.id), user_id="u1", role="assistant", content="hi"
        )
        assert msg.links == [str(session.id)]
        view = message_view(msg)
        assert view["role"] == "assistant"
        assert view["status"] is None

    @pytest.mark.parametrize(
        ("role", "content", "error"),
        [("system", "x", "bad_role"), ("user", None, "content_required"), ("user", 5, "content")],
    )
    async def test_append_validation(
        self, orchestrator, partition, role, content, error
    ) -> None:
        session = await orchestrator.create_session(partition, user_id="u1")
        with pytest.raises(ValidationError, match=error):
            await orchestrator.append_message(
                partition, str(session.id), user_id="u1", role=role, content=content
            )

    async def test_append_to_unknown_session(self, orchestrator, partition) -> None:
        with pytest.raises(NotFoundError):
            await orchestrator.append_message(
                partition, str(uuid4()), user_id="u1", role="user", content="x"
            )

    async def test_delete_hides_message(self, orchestrator, partition) -> None:
        session = await orchestrator.create_session(partition, user_id="u1")
        sid = str(session.id)
        msg = await orchestrator.append_message(
            partition, sid, user_id="u1", role="user", content="x"
        )
        await orchestrator.delete_message(partition, sid, str(msg.id))
        with pytest.raises(NotFoundError):
            await orchestrator.get_message(partition, sid, str(msg.id))
        assert (await orchestrator.list_messages(partition, sid)).items == []

    async def test_message_from_other_session_is_not_found(
        self, orchestrator, partition
    ) -> None:
        s1 = await orchestrator.create_session(partition, user_id="u1")
        s2 = await orchestrator.create_session(partition, user_id="u1")
        msg = await orchestrator.append_message(
            partition, str(s1.id), user_id="u1", role="user", content="x"
        )
        with pytest.raises(NotFoundError):
            await orchestrator.get_message(partition, str(s2.id), str(msg.id))


@pytest.mark.unit
class TestAsk:
    async def test_ask_stores_question_and_pending_reply(
        self, orchestrator, partition, runner
    ) -> None:
        session = await orchestrator.create_session(partition, user_id="u1")
        reply = await orchestrator.ask(
            partition,
            str(session.id),
            user_id="u1",
            history=[{"role": "assistant", "content": "earlier"}],
            message="What now?",
        )

        assert reply.data["status"] == "pending"
        question_id = reply.data["in_response_to"]
        question = await partition.get(parse_object_id(question_id, field="id"))
        assert question.data["content"] == "What now?"
        assert question.data["role"] == "user"

        spec = runner.specs[0]
        assert spec.kind == JOB_KIND_ASK
        assert spec.job_id == str(reply.id)
        assert spec.model == "gpt-4o"
        assert spec.history == [{"role": "assistant", "content": "earlier"}]

        view = await orchestrator.get_job_status(partition, str(session.id), str(reply.id))
        assert view.to_dict() == {"status": "pending"}

    @pytest.mark.parametrize(
        ("history", "message"), [(None, "x"), ("not-a-list", "x"), ([], None), ([], 5)]
    )
    async def test_ask_validation(self, orchestrator, partition, runner, history, message) -> None:
        session = await orchestrator.create_session(partition, user_id="u1")
        with pytest.raises(ValidationError, match="history"):
            await orchestrator.ask(
                partition, str(session.id), user_id="u1", history=history, message=message
            )
        assert runner.specs == []

    async def test_ask_payload_ceiling(self, orchestrator, partition, runner) -> None:
        session = await orchestrator.create_session(partition, user_id="u1")
        with pytest.raises(PayloadTooLargeError):
            await orchestrator.ask(
                partition, str(session.id), user_id="u1", history=[], message="x" * 5000
            )
        assert runner.specs == []
        page = await orchestrator.list_messages(partition, str(session.id))
        assert page.items == []

    async def test_ask_unknown_session(self, orchestrator, partition, runner) -> None:
        with pytest.raises(NotFoundError):
            await orchestrator.ask(partition, str(uuid4()), user_id="u1", history=[], message="x")
        assert runner.specs == []

    async def test_model_resolution(self, runner, partition) -> None:
        credentials = EnvCredentialResolver({"org_alpha_OPENAI_MODEL": "org-model"})
        orchestrator = AsyncJobOrchestrator(runner=runner, credentials=credentials)
        assert orchestrator.resolve_model(ORG, "asked-model") == "asked-model"
        assert orchestrator.resolve_model(ORG, None) == "org-model"
        assert orchestrator.resolve_model("org_beta", None) == "gpt-4o"

    async def test_plain_message_is_not_a_job(self, orchestrator, partition) -> None:
        session = await orchestrator.create_session(partition, user_id="u1")
        msg = await orchestrator.append_message(
            partition, str(session.id), user_id="u1", role="user", content="x"
        )
        with pytest.raises(NotFoundError, match="Job"):
            await orchestrator.get_job_status(partition, str(session.id), str(msg.id))

    async def test_message_with_pending_status_is_not_a_job(
        self, orchestrator, partition
    ) -> None:
        session = await orchestrator.create_session(partition, user_id="u1")
        msg = await orchestrator.append_message(
            partition,
            str(session.id),
            user_id="u1",
            role="assistant",
            content="x",
            status="pending",
        )
        assert msg.data["job_kind"] is None
        with pytest.raises(NotFoundError, match="Job"):
            await orchestrator.get_job_status(partition, str(session.id), str(msg.id))

    async def test_ask_reply_is_marked_as_job(self, orchestrator, partition) -> None:
        session = await orchestrator.create_session(partition, user_id="u1")
        reply = await orchestrator.ask(
            partition, str(session.id), user_id="u1", history=[], message="q"
        )
        assert reply.data["job_kind"] == JOB_KIND_ASK


@pytest.mark.unit
class TestContext:
    async def test_ctx_creates_pending_job(self, orchestrator, partition, runner) -> None:
        session = await orchestrator.create_session(partition, user_id="u1")
        history = [{"role": "user", "content": "a"}]
        job = await orchestrator.context(
            partition, str(session.id), user_id="u1", task="Extract JSON", history=history
        )
        assert job.type == "AiCtxJob"
        assert job.data["status"] == "pending"
        assert job.data["history_hash"] == history_hash(normalize_history(history))
        assert runner.specs[0].kind == JOB_KIND_CTX
        assert runner.specs[0].message == "Extract JSON"

        view = await orchestrator.get_ctx_status(partition, str(session.id), str(job.id))
        assert view.status == "pending"

    async def test_ctx_validation(self, orchestrator, partition) -> None:
        session = await orchestrator.create_session(partition, user_id="u1")
        with pytest.raises(ValidationError, match="task"):
            await orchestrator.context(
                partition, str(session.id), user_id="u1", task=None, history=[]
            )

    async def test_ctx_status_for_other_session(self, orchestrator, partition) -> None:
        s1 = await orchestrator.create_session(partition, user_id="u1")
        s2 = await orchestrator.create_session(partition, user_id="u1")
        job = await orchestrator.context(
            partition, str(s1.id), user_id="u1", task="t", history=[]
        )
        with pytest.raises(NotFoundError):
            await orchestrator.get_ctx_status(partition, str(s2.id), str(job.id))


@pytest.mark.unit
class TestNonBlockingSubmission:
    async def test_ask_returns_while_llm_is_still_running(self, store, partition) -> None:
        gate = asyncio.Event()
        llm = FakeLLM(reply="late answer", gate=gate)
        credentials = EnvCredentialResolver(ENV)
        runner = AsyncioJobRunner(AiJobWorker(store=store, llm=llm, credentials=credentials))
        orchestrator = AsyncJobOrchestrator(runner=runner, credentials=credentials)

        session = await orchestrator.create_session(partition, user_id="u1")
        sid = str(session.id)
        reply = await orchestrator.ask(partition, sid, user_id="u1", history=[], message="q")
        await asyncio.sleep(0)

        assert (await orchestrator.get_job_status(partition, sid, str(reply.id))).status == (
            "pending"
        )
        gate.set()
        await runner.drain()

        view = await orchestrator.get_job_status(partition, sid, str(reply.id))
        assert view.to_dict() == {"status": "done", "result": "late answer"}
