from core.utils import generate_worker_id


def test_generates_multi_word_slug():
    assert len(generate_worker_id().split("-")) >= 3


def test_prefix_is_prepended():
    assert generate_worker_id("cast-ingest").startswith("cast-ingest-")


def test_ids_are_unique():
    assert len({generate_worker_id() for _ in range(20)}) > 1
