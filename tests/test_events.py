from biobox.services.events import EventBus, Topic


def test_subscribe_and_publish():
    bus = EventBus()
    received = []
    bus.subscribe(Topic.ORDERS_CHANGED, received.append)

    assert bus.publish(Topic.ORDERS_CHANGED, {"id": "o1"}) == 1
    assert bus.publish(Topic.CUSTOMERS_CHANGED, {"id": "c1"}) == 0
    assert received == [{"id": "o1"}]


def test_unsubscribe():
    bus = EventBus()
    received = []
    unsubscribe = bus.subscribe(Topic.ORDERS_CHANGED, received.append)
    unsubscribe()
    unsubscribe()

    bus.publish(Topic.ORDERS_CHANGED, {"id": "o1"})
    assert received == []
    assert bus.subscriber_count(Topic.ORDERS_CHANGED) == 0


def test_failing_handler_does_not_reach_publisher():
    bus = EventBus()
    received = []

    def broken(payload):
        raise RuntimeError("boom")

    bus.subscribe(Topic.ORDERS_CHANGED, broken)
    bus.subscribe(Topic.ORDERS_CHANGED, received.append)

    assert bus.publish(Topic.ORDERS_CHANGED, {"id": "o1"}) == 1
    assert received == [{"id": "o1"}]


def test_topic_for_collection():
    assert Topic.for_collection("products") is Topic.PRODUCTS_CHANGED
