def test_second_holder_is_refused(lock_service):
    assert lock_service.acquire_order_lock(5, "a")
    assert not lock_service.acquire_order_lock(5, "b")


def test_only_holder_releases(lock_service, redis_client):
    lock_service.acquire_order_lock(5, "a")
    assert not lock_service.release_order_lock(5, "b")
    assert "order-lock:5" in redis_client.store
    assert lock_service.release_order_lock(5, "a")
    assert "order-lock:5" not in redis_client.store


def test_lock_has_ttl(lock_service, redis_client):
    lock_service.acquire_order_lock(5, "a")
    assert redis_client.ttls["order-lock:5"] == 60


def test_context_manager_releases(lock_service, redis_client):
    with lock_service.order_lock(9) as acquired:
        assert acquired
        assert "order-lock:9" in redis_client.store
    assert "order-lock:9" not in redis_client.store


def test_context_manager_reports_busy_and_leaves_foreign_lock(lock_service, redis_client):
    lock_service.acquire_order_lock(9, "other")
    with lock_service.order_lock(9) as acquired:
        assert not acquired
    assert redis_client.store["order-lock:9"] == "other"
