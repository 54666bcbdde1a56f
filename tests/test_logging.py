import asyncio
import logging

import pytest

from app.core.logging import ContextFilter, LogContext, get_logger

logger = get_logger("tests")


class Collect(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []
        self.addFilter(ContextFilter())

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def records():
    handler = Collect()
    root = logging.getLogger("zimquote")
    root.addHandler(handler)
    old_level = root.level
    root.setLevel(logging.INFO)
    yield handler.records
    root.removeHandler(handler)
    root.setLevel(old_level)


def test_context_is_stamped_on_records(records):
    with LogContext(tenant_id="t1", phone="+263772000001", state="doc_confirm"):
        logger.info("committing")

    (record,) = records
    assert record.tenant_id == "t1"
    assert record.phone == "+263772000001"
    assert record.state == "doc_confirm"


def test_extra_with_context_keys_does_not_raise(records):
    with LogContext(tenant_id="t1", phone="+263772000001"):
        logger.info("allocated", extra={"tenant_id": "t1", "phone": "+263772000001"})
        logger.info("explicit wins", extra={"tenant_id": "t2"})

    first, second = records
    assert first.tenant_id == "t1"
    assert second.tenant_id == "t2"
    assert second.phone == "+263772000001"


def test_nested_contexts_merge_and_unwind(records):
    with LogContext(phone="+263772000001", transport="meta"):
        with LogContext(tenant_id="t1", state="ready"):
            logger.info("inner")
        logger.info("outer")
    logger.info("outside")

    inner, outer, outside = records
    assert (inner.phone, inner.tenant_id, inner.transport) == ("+263772000001", "t1", "meta")
    assert outer.phone == "+263772000001"
    assert not hasattr(outer, "tenant_id")
    assert not hasattr(outside, "phone")


def test_concurrent_tasks_keep_their_own_context(records):
    async def turn(tenant_id):
        with LogContext(tenant_id=tenant_id):
            await asyncio.sleep(0)
            logger.info(f"turn for {tenant_id}")

    async def run():
        await asyncio.gather(turn("t1"), turn("t2"))

    asyncio.run(run())
    assert {(r.getMessage(), r.tenant_id) for r in records} == {
        ("turn for t1", "t1"),
        ("turn for t2", "t2"),
    }
