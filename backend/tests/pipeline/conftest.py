# backend/tests/pipeline/conftest.py
"""
In-memory stand-ins for the pipeline repositories and external clients.

The fakes keep the same method names and dict shapes as the real
repositories so stages and the controller can be exercised end to end
without Postgres, Apify, Gemini or Telegram.
"""
import copy
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.modules.pipeline.constants import JobStatus, StageName
from app.modules.pipeline.repositories.post_vector_repository import validate_metadata
from app.modules.pipeline.services.failure_policy import FailurePolicy
from app.modules.pipeline.services.stage_dispatcher import StageCallResult
from app.modules.pipeline.services.stages import (
    GenerateStage,
    ProcessPostsStage,
    ScrapeLaunchStage,
    ScrapePollStage,
    SendStage,
    VectorizeStage,
)
from app.shared.utils.exceptions import (
    ActiveJobExistsError,
    ConcurrentModificationError,
    StagePreconditionError,
)
from app.shared.utils.time_utils import utcnow


# ============================================
# REPOSITORIES
# ============================================

class FakeJobRepository:
    def __init__(self):
        self.rows: Dict[int, Dict[str, Any]] = {}
        self._next_id = 1

    def add(self, **values) -> Dict[str, Any]:
        now = utcnow()
        job = {
            "id": self._next_id,
            "status": JobStatus.IDLE.value,
            "current_batch_offset": 0,
            "total_items": 0,
            "version": 1,
            "apify_run_id": None,
            "apify_dataset_id": None,
            "admin_chat_ids": [],
            "retry_count": 0,
            "max_retries": 3,
            "error_message": None,
            "created_at": now,
            "started_at": now,
            "updated_at": now,
            "completed_at": None,
        }
        job.update(values)
        self.rows[job["id"]] = job
        self._next_id += 1
        return copy.deepcopy(job)

    def row(self, job_id: int) -> Dict[str, Any]:
        return self.rows[job_id]

    async def get_active_job(self) -> Optional[Dict[str, Any]]:
        for job_id in sorted(self.rows):
            if not JobStatus.is_terminal(self.rows[job_id]["status"]):
                return copy.deepcopy(self.rows[job_id])
        return None

    async def get_job_in_status(self, status: str) -> Optional[Dict[str, Any]]:
        for job_id in sorted(self.rows):
            if self.rows[job_id]["status"] == status:
                return copy.deepcopy(self.rows[job_id])
        return None

    async def get_job_by_id(self, job_id: int) -> Optional[Dict[str, Any]]:
        job = self.rows.get(job_id)
        return copy.deepcopy(job) if job else None

    async def list_jobs(self, limit: int = 20) -> List[Dict[str, Any]]:
        return [copy.deepcopy(self.rows[i]) for i in sorted(self.rows, reverse=True)][:limit]

    async def has_job_started_since(self, moment) -> bool:
        return any(j["started_at"] and j["started_at"] >= moment for j in self.rows.values())

    async def create_job(self, max_retries: int, started_at) -> Dict[str, Any]:
        active = await self.get_active_job()
        if active:
            raise ActiveJobExistsError(active["id"])
        return self.add(max_retries=max_retries, started_at=started_at)

    async def update_job(self, job_id: int, expected_version: int, **values) -> Dict[str, Any]:
        row = self.rows.get(job_id)
        if row is None or row["version"] != expected_version:
            raise ConcurrentModificationError("PipelineJob", job_id)
        for key, value in values.items():
            if isinstance(value, JobStatus):
                value = value.value
            row[key] = value
        if JobStatus.is_terminal(row["status"]) and "status" in values:
            row["completed_at"] = utcnow()
        row["version"] += 1
        row["updated_at"] = utcnow()
        return copy.deepcopy(row)


class FakeCatalogRepository:
    def __init__(self):
        self.config: Optional[Dict[str, Any]] = {
            "limit_per_source": 2,
            "memory_mbytes": 512,
            "deep_scrape": False,
            "raw_data": False,
            "debug": False,
        }
        self.industries: List[Dict[str, Any]] = []
        self.signals: List[Dict[str, Any]] = []
        self.users: List[Dict[str, Any]] = []

    async def get_config(self):
        return copy.deepcopy(self.config)

    async def get_visible_industry_ids(self):
        return [i["id"] for i in self.industries if i.get("visible", True)]

    async def get_visible_industries(self):
        return [{"id": i["id"], "name": i["name"]} for i in self.industries if i.get("visible", True)]

    async def get_existing_industry_ids(self, industry_ids):
        known = {i["id"] for i in self.industries}
        return [i for i in industry_ids if i in known]

    async def get_generation_signals(self):
        return [
            copy.deepcopy(s) for s in self.signals
            if s.get("visible", True) and (s.get("embedding_query") or "").strip()
        ]

    async def delete_industry(self, industry_id):
        before = len(self.industries)
        self.industries = [i for i in self.industries if i["id"] != industry_id]
        for user in self.users:
            user["industry_ids"] = [i for i in user["industry_ids"] if i != industry_id]
        return len(self.industries) < before

    def _recipients(self, admins_only: bool):
        return [
            u for u in sorted(self.users, key=lambda u: u["id"])
            if u.get("telegram_chat_id") and (u.get("is_admin") or not admins_only)
        ]

    async def get_admin_chat_ids(self):
        return [u["telegram_chat_id"] for u in self._recipients(admins_only=True)]

    async def count_recipients(self, admins_only: bool):
        return len(self._recipients(admins_only))

    async def get_recipients(self, admins_only: bool, offset: int, limit: int):
        return copy.deepcopy(self._recipients(admins_only)[offset:offset + limit])


class FakeProfileRepository:
    def __init__(self):
        self.rows: Dict[int, Dict[str, Any]] = {}
        self._next_id = 1

    def add(self, url: str, industry_ids: List[int], occupation: str = None, allowed: bool = True) -> Dict[str, Any]:
        profile = {
            "id": self._next_id,
            "url": url,
            "name": None,
            "occupation": occupation,
            "allowed": allowed,
            "industry_ids": list(industry_ids),
            "unverified_details": None,
            "unverified_at": None,
        }
        self.rows[profile["id"]] = profile
        self._next_id += 1
        return copy.deepcopy(profile)

    def by_url(self, url: str) -> Optional[Dict[str, Any]]:
        return next((p for p in self.rows.values() if p["url"] == url), None)

    async def get_by_id(self, profile_id):
        profile = self.rows.get(profile_id)
        return copy.deepcopy(profile) if profile else None

    async def get_by_url(self, url):
        profile = self.by_url(url)
        return copy.deepcopy(profile) if profile else None

    async def get_by_urls(self, urls):
        return {p["url"]: copy.deepcopy(p) for p in self.rows.values() if p["url"] in set(urls)}

    async def get_eligible_urls(self, visible_industry_ids):
        visible = set(visible_industry_ids)
        return [
            self.rows[i]["url"] for i in sorted(self.rows)
            if self.rows[i]["allowed"] and visible.intersection(self.rows[i]["industry_ids"])
        ]

    async def create_profile(self, url, industry_ids):
        if self.by_url(url):
            return None
        return self.add(url, industry_ids, allowed=False)

    async def merge_industries(self, profile_id, industry_ids):
        profile = self.rows[profile_id]
        profile["industry_ids"] = sorted(set(profile["industry_ids"]) | set(industry_ids))

    async def flag_unverified(self, profile_id, details, flagged_at):
        profile = self.rows[profile_id]
        profile["allowed"] = False
        profile["unverified_details"] = details
        profile["unverified_at"] = flagged_at

    async def set_allowed(self, profile_id, allowed):
        profile = self.rows.get(profile_id)
        if not profile:
            return None
        profile["allowed"] = allowed
        if allowed:
            profile["unverified_details"] = None
            profile["unverified_at"] = None
        return copy.deepcopy(profile)

    async def allow_all(self):
        count = 0
        for profile in self.rows.values():
            if not profile["allowed"]:
                profile["allowed"] = True
                profile["unverified_details"] = None
                profile["unverified_at"] = None
                count += 1
        return count

    async def set_industries(self, profile_id, industry_ids):
        profile = self.rows.get(profile_id)
        if not profile:
            return None
        profile["industry_ids"] = list(industry_ids)
        return copy.deepcopy(profile)

    async def delete_profile(self, profile_id):
        return self.rows.pop(profile_id, None) is not None

    async def remove_industry(self, industry_id):
        touched = [p for p in self.rows.values() if industry_id in p["industry_ids"]]
        deleted = 0
        for profile in touched:
            profile["industry_ids"] = [i for i in profile["industry_ids"] if i != industry_id]
            if not profile["industry_ids"]:
                del self.rows[profile["id"]]
                deleted += 1
        return deleted


class FakePostRepository:
    def __init__(self):
        self.rows: List[Dict[str, Any]] = []

    def add(self, urn: str, text: str, posted_at, industry_ids: List[int], **extra) -> Dict[str, Any]:
        post = {
            "id": len(self.rows) + 1,
            "urn": urn,
            "text": text,
            "posted_at": posted_at,
            "industry_ids": list(industry_ids),
            "name": extra.get("name"),
            "occupation": extra.get("occupation"),
            "source_url": extra.get("source_url"),
            "author_url": extra.get("author_url"),
        }
        self.rows.append(post)
        return post

    def by_urn(self, urn: str) -> Optional[Dict[str, Any]]:
        return next((p for p in self.rows if p["urn"] == urn), None)

    def _eligible(self, cutoff, visible_industry_ids):
        visible = set(visible_industry_ids)
        return [p for p in self.rows if p["posted_at"] >= cutoff and visible.intersection(p["industry_ids"])]

    async def get_existing_urns(self, urns):
        stored = {p["urn"] for p in self.rows}
        return {u for u in urns if u in stored}

    async def count_fresh_posts(self, cutoff, visible_industry_ids):
        return len(self._eligible(cutoff, visible_industry_ids))

    async def get_fresh_posts(self, cutoff, visible_industry_ids, offset, limit):
        return copy.deepcopy(self._eligible(cutoff, visible_industry_ids)[offset:offset + limit])

    async def insert_post(self, urn, text, posted_at, industry_ids, name=None, occupation=None,
                          source_url=None, author_url=None):
        if self.by_urn(urn):
            return False
        self.add(urn, text, posted_at, industry_ids, name=name, occupation=occupation,
                 source_url=source_url, author_url=author_url)
        return True


class FakeMessageRepository:
    def __init__(self):
        self.rows: List[Dict[str, Any]] = []
        self._next_id = 1

    def add(self, industry_id: int, signal_id: int, message_text: str, pipeline_job_id: int = None,
            created_at=None) -> Dict[str, Any]:
        message = {
            "id": self._next_id,
            "pipeline_job_id": pipeline_job_id,
            "industry_id": industry_id,
            "signal_id": signal_id,
            "message_text": message_text,
            "delivered_user_ids": [],
            "created_at": created_at or utcnow(),
        }
        self.rows.append(message)
        self._next_id += 1
        return message

    async def get_messages_since(self, moment):
        return copy.deepcopy([m for m in self.rows if m["created_at"] >= moment])

    async def purge_since(self, moment):
        before = len(self.rows)
        self.rows = [m for m in self.rows if m["created_at"] < moment]
        return before - len(self.rows)

    async def insert_message(self, pipeline_job_id, industry_id, signal_id, message_text):
        for m in self.rows:
            if (m["pipeline_job_id"], m["industry_id"], m["signal_id"]) == (pipeline_job_id, industry_id, signal_id):
                return False
        self.add(industry_id, signal_id, message_text, pipeline_job_id=pipeline_job_id)
        return True

    async def mark_delivered(self, message_id, user_id):
        for m in self.rows:
            if m["id"] == message_id and user_id not in m["delivered_user_ids"]:
                m["delivered_user_ids"].append(user_id)
                return True
        return False


class FakeVectorRepository:
    def __init__(self):
        self.namespaces: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.deleted: List[str] = []

    async def delete_namespace(self, namespace):
        self.deleted.append(namespace)
        return len(self.namespaces.pop(namespace, {}))

    async def upsert(self, namespace, records):
        ns = self.namespaces.setdefault(namespace, {})
        for record in records:
            validate_metadata(record["metadata"])
            ns[record["id"]] = copy.deepcopy(record)
        return len(records)

    async def query(self, namespace, vector, top_k, industry_id=None):
        matches = []
        for record in self.namespaces.get(namespace, {}).values():
            if industry_id is not None and str(industry_id) not in record["metadata"]["industry_ids"]:
                continue
            matches.append({"id": record["id"], "score": 1.0, "metadata": copy.deepcopy(record["metadata"])})
        return matches[:top_k]


# ============================================
# EXTERNAL CLIENTS
# ============================================

class FakeApify:
    def __init__(self, items: List[Dict[str, Any]] = None):
        self.items = items or []
        self.run_status = "SUCCEEDED"
        self.started_with: List[List[str]] = []

    async def start_run(self, urls, config):
        self.started_with.append(list(urls))
        return {"run_id": f"run-{len(self.started_with)}", "dataset_id": f"ds-{len(self.started_with)}"}

    async def get_run(self, run_id):
        return {"status": self.run_status, "dataset_id": "ds-1"}

    async def get_dataset_size(self, dataset_id):
        return len(self.items)

    async def list_items(self, dataset_id, offset, limit):
        return copy.deepcopy(self.items[offset:offset + limit])


class FakeLLM:
    """Embeds to a constant vector; replies per signal name (default: a short insight)."""

    def __init__(self, replies: Dict[str, str] = None):
        self.replies = replies or {}
        self.prompts: List[str] = []

    async def embed_texts(self, texts, task_type="RETRIEVAL_DOCUMENT"):
        return [[0.1, 0.2, 0.3] for _ in texts]

    async def embed_query(self, text):
        return [0.1, 0.2, 0.3]

    async def generate(self, prompt, system_instruction=None):
        self.prompts.append(prompt)
        for signal_name, reply in self.replies.items():
            if signal_name in prompt:
                return reply
        return "<b>Insight</b> from context"


class FakeMessenger:
    def __init__(self, failing_chat_ids=()):
        self.failing_chat_ids = set(failing_chat_ids)
        self.sent: List[tuple] = []

    async def send_message(self, chat_id, text):
        if chat_id in self.failing_chat_ids:
            return {"success": False, "chat_id": chat_id, "error": "Client error: 403", "retryable": False}
        self.sent.append((chat_id, text))
        return {"success": True, "chat_id": chat_id, "message_ids": [len(self.sent)]}


# ============================================
# WORLD
# ============================================

class FakeWorld:
    """All fakes plus a mock session, with helpers to wire them into stages."""

    REPOSITORY_ATTRS = ("catalog", "profiles", "posts", "messages", "vectors")

    def __init__(self):
        self.db = MagicMock()
        self.db.commit = AsyncMock()
        self.db.rollback = AsyncMock()
        self.jobs = FakeJobRepository()
        self.catalog = FakeCatalogRepository()
        self.profiles = FakeProfileRepository()
        self.posts = FakePostRepository()
        self.messages = FakeMessageRepository()
        self.vectors = FakeVectorRepository()
        self.notifier = MagicMock()
        self.notifier.notify = AsyncMock(return_value=1)

    def wire(self, component):
        """Swap a stage's / service's repositories for the fakes."""
        if hasattr(component, "jobs"):
            component.jobs = self.jobs
        for attr in self.REPOSITORY_ATTRS:
            if hasattr(component, attr):
                setattr(component, attr, getattr(self, attr))
        policy = getattr(component, "failure_policy", None)
        if policy is not None:
            self.wire(policy)
        return component

    def apify(self, items=None) -> FakeApify:
        return FakeApify(items)

    def llm(self, replies=None) -> FakeLLM:
        return FakeLLM(replies)

    def messenger(self, failing_chat_ids=()) -> FakeMessenger:
        return FakeMessenger(failing_chat_ids)

    def dispatcher(self, apify=None, llm=None, messenger=None, namespace="test-ns") -> "InProcessDispatcher":
        return InProcessDispatcher(self, apify or FakeApify(), llm or FakeLLM(), messenger or FakeMessenger(), namespace)


class InProcessDispatcher:
    """
    Runs stages directly against the fakes and answers the way the stage
    endpoints do, so the controller sees the same status codes and bodies.
    """

    def __init__(self, world: FakeWorld, apify: FakeApify, llm: FakeLLM, messenger: FakeMessenger, namespace: str):
        self.world = world
        self.apify = apify
        self.llm = llm
        self.messenger = messenger
        self.namespace = namespace
        self.calls: List[tuple] = []

    def build(self, stage: StageName):
        db = self.world.db
        handlers = {
            StageName.SCRAPE_LAUNCH: lambda: ScrapeLaunchStage(db, apify=self.apify, notifier=self.world.notifier),
            StageName.SCRAPE_POLL: lambda: ScrapePollStage(
                db, apify=self.apify, failure_policy=FailurePolicy(db, notifier=self.world.notifier)
            ),
            StageName.PROCESS_POSTS: lambda: ProcessPostsStage(db, apify=self.apify),
            StageName.VECTORIZE: lambda: VectorizeStage(db, embedder=self.llm, namespace=self.namespace),
            StageName.GENERATE: lambda: GenerateStage(db, llm=self.llm, namespace=self.namespace, top_k=10),
            StageName.SEND: lambda: SendStage(db, messenger=self.messenger),
        }
        return self.world.wire(handlers[stage]())

    async def dispatch(self, stage: StageName, batch_offset: int, batch_size: int, authorization: str) -> StageCallResult:
        self.calls.append((stage, batch_offset))
        try:
            body = await self.build(stage).run(batch_offset, batch_size)
        except StagePreconditionError as e:
            return StageCallResult(409, {"ok": False, "retryable": False, "error": str(e)})
        except ConcurrentModificationError as e:
            return StageCallResult(409, {"ok": False, "retryable": False, "conflict": True, "error": e.message})
        except Exception as e:
            return StageCallResult(500, {"ok": False, "retryable": True, "error": str(e)})
        return StageCallResult(200, body)


@pytest.fixture
def world():
    return FakeWorld()
