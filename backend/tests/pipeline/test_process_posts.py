import asyncio
from datetime import datetime, timedelta, timezone

from app.modules.pipeline.constants import JobStatus
from app.modules.pipeline.services.stages.process_posts import ProcessPostsStage

PROFILE_URL = "https://www.linkedin.com/in/jane-doe"
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_item(urn, posted_at=None, text="We just closed our Series A and are hiring engineers",
              occupation="CEO at Acme", input_url=PROFILE_URL + "/", **extra):
    posted_at = posted_at or NOW - timedelta(hours=1)
    item = {
        "urn": urn,
        "text": text,
        "url": f"https://www.linkedin.com/feed/update/{urn}",
        "inputUrl": input_url,
        "isActivity": False,
        "author": {"firstName": "Jane", "lastName": "Doe", "occupation": occupation, "publicId": "jane-doe"},
        "postedAtTimestamp": int(posted_at.timestamp() * 1000),
    }
    item.update(extra)
    return item


def setup_world(world, items, batch_offset=0):
    world.catalog.industries = [{"id": 1, "name": "Fintech", "visible": True}]
    world.profiles.add(PROFILE_URL, [1], occupation="CEO at Acme")
    job = world.jobs.add(
        status=JobStatus.PROCESSING.value,
        apify_run_id="run-1",
        apify_dataset_id="ds-1",
        total_items=len(items),
        current_batch_offset=batch_offset,
    )
    stage = world.wire(ProcessPostsStage(world.db, apify=world.apify(items)))
    stage.now = lambda: NOW
    return job, stage


def test_fresh_posts_are_inserted_and_job_moves_to_vectorizing(world):
    async def test_logic():
        job, stage = setup_world(world, [make_item("urn:li:1"), make_item("urn:li:2")])

        result = await stage.run(batch_offset=0, batch_size=10)

        assert result["ok"] is True
        assert result["inserted"] == 2
        assert result["status"] == JobStatus.VECTORIZING.value
        row = world.jobs.row(job["id"])
        assert row["status"] == JobStatus.VECTORIZING.value
        assert row["current_batch_offset"] == 0
        assert row["total_items"] == 2

        post = world.posts.by_urn("urn:li:1")
        assert post["industry_ids"] == [1]
        assert post["name"] == "Jane Doe"
        assert post["author_url"] == PROFILE_URL + "/"
        world.db.commit.assert_called()

    asyncio.run(test_logic())


def test_rerunning_a_window_inserts_nothing_twice(world):
    async def test_logic():
        job, stage = setup_world(world, [make_item("urn:li:1"), make_item("urn:li:2")])
        await stage.run(batch_offset=0, batch_size=10)

        # Replay the same window
        world.jobs.row(job["id"]).update(status=JobStatus.PROCESSING.value, current_batch_offset=0, total_items=2)
        result = await stage.run(batch_offset=0, batch_size=10)

        assert result["inserted"] == 0
        assert result["skip_reasons"] == {"duplicate_urn": 2}
        assert len(world.posts.rows) == 2

    asyncio.run(test_logic())


def test_freshness_window_boundary(world):
    async def test_logic():
        items = [
            make_item("urn:li:fresh", posted_at=NOW - timedelta(hours=24) + timedelta(seconds=1)),
            make_item("urn:li:stale", posted_at=NOW - timedelta(hours=24) - timedelta(seconds=1)),
        ]
        _, stage = setup_world(world, items)

        result = await stage.run(batch_offset=0, batch_size=10)

        assert result["inserted"] == 1
        assert result["skip_reasons"] == {"stale": 1}
        assert world.posts.by_urn("urn:li:fresh") is not None
        assert world.posts.by_urn("urn:li:stale") is None

    asyncio.run(test_logic())


def test_occupation_change_revokes_approval(world):
    async def test_logic():
        job, stage = setup_world(world, [make_item("urn:li:1", occupation="Head of Sales at Other Corp")])

        result = await stage.run(batch_offset=0, batch_size=10)

        assert result["skip_reasons"] == {"occupation_mismatch": 1}
        assert world.posts.rows == []
        profile = world.profiles.by_url(PROFILE_URL)
        assert profile["allowed"] is False
        assert profile["unverified_at"] == NOW
        details = profile["unverified_details"]
        assert details["stored_value"] == "CEO at Acme"
        assert details["scraped_value"] == "Head of Sales at Other Corp"
        assert details["pipeline_job_id"] == job["id"]
        assert details["dataset_index"] == 0
        assert details["urn"] == "urn:li:1"

    asyncio.run(test_logic())


def test_occupation_without_letters_is_not_compared(world):
    async def test_logic():
        _, stage = setup_world(world, [make_item("urn:li:1", occupation="🚀 ---")])

        result = await stage.run(batch_offset=0, batch_size=10)

        assert result["inserted"] == 1
        assert world.profiles.by_url(PROFILE_URL)["allowed"] is True
        assert world.posts.by_urn("urn:li:1")["occupation"] is None

    asyncio.run(test_logic())


def test_skip_reasons_are_counted_not_raised(world):
    async def test_logic():
        items = [
            make_item(None),
            make_item("urn:li:unknown", input_url="https://www.linkedin.com/in/someone-else"),
            make_item("urn:li:empty", text="🚀 https://example.com/launch"),
            make_item("urn:li:when", postedAtTimestamp="yesterday"),
            make_item("urn:li:bad", author="not a person"),
            make_item("urn:li:ok"),
        ]
        _, stage = setup_world(world, items)

        result = await stage.run(batch_offset=0, batch_size=10)

        assert result["fetched"] == 6
        assert result["inserted"] == 1
        assert result["skipped"] == 5
        assert result["skip_reasons"] == {
            "missing_urn": 1,
            "profile_not_found": 1,
            "empty_text": 1,
            "unparseable_timestamp": 1,
            "invalid_item": 1,
        }

    asyncio.run(test_logic())


def test_iso_timestamp_fallback(world):
    async def test_logic():
        item = make_item("urn:li:iso", postedAtTimestamp=None, postedAtISO="2026-03-10T09:30:00Z")
        _, stage = setup_world(world, [item])

        result = await stage.run(batch_offset=0, batch_size=10)

        assert result["inserted"] == 1
        assert world.posts.by_urn("urn:li:iso")["posted_at"] == datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)

    asyncio.run(test_logic())


def test_windows_advance_the_offset_until_the_dataset_is_drained(world):
    async def test_logic():
        items = [make_item(f"urn:li:{i}") for i in range(3)]
        job, stage = setup_world(world, items)

        first = await stage.run(batch_offset=0, batch_size=2)
        assert first["status"] == JobStatus.PROCESSING.value
        assert first["offset"] == 2
        assert world.jobs.row(job["id"])["current_batch_offset"] == 2

        second = await stage.run(batch_offset=2, batch_size=2)
        assert second["inserted"] == 1
        assert second["status"] == JobStatus.VECTORIZING.value
        assert world.jobs.row(job["id"])["total_items"] == 3

    asyncio.run(test_logic())


def test_stale_offset_is_a_no_op(world):
    async def test_logic():
        job, stage = setup_world(world, [make_item("urn:li:1")], batch_offset=0)

        result = await stage.run(batch_offset=5, batch_size=10)

        assert result["skipped"] == "stale_offset"
        assert world.posts.rows == []
        assert world.jobs.row(job["id"])["version"] == job["version"]

    asyncio.run(test_logic())


def test_nothing_fresh_completes_the_job(world):
    async def test_logic():
        job, stage = setup_world(world, [make_item("urn:li:old", posted_at=NOW - timedelta(days=3))])

        result = await stage.run(batch_offset=0, batch_size=10)

        assert result["status"] == JobStatus.COMPLETED.value
        row = world.jobs.row(job["id"])
        assert row["completed_at"] is not None
        assert row["total_items"] == 0

    asyncio.run(test_logic())


def test_no_job_in_processing_is_a_no_op(world):
    async def test_logic():
        stage = world.wire(ProcessPostsStage(world.db, apify=world.apify([])))

        result = await stage.run(batch_offset=0, batch_size=10)

        assert result == {"ok": True, "stage": "process-posts", "skipped": "no_job"}

    asyncio.run(test_logic())
