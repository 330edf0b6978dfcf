from treasury_oracle.domain import TreasurySnapshot
from treasury_oracle.events import SnapshotChannel


def test_publish_reaches_listeners_in_order():
    channel = SnapshotChannel()
    seen = []
    channel.subscribe(lambda s: seen.append(("first", s)))
    channel.subscribe(lambda s: seen.append(("second", s)))
    snapshot = TreasurySnapshot.empty()

    channel.publish(snapshot)

    assert seen == [("first", snapshot), ("second", snapshot)]


def test_duplicate_subscription_is_ignored():
    channel = SnapshotChannel()
    seen = []
    listener = seen.append
    channel.subscribe(listener)
    channel.subscribe(listener)

    channel.publish(TreasurySnapshot.empty())

    assert len(channel) == 1
    assert len(seen) == 1


def test_unsubscribe_stops_delivery():
    channel = SnapshotChannel()
    seen = []
    channel.subscribe(seen.append)
    channel.unsubscribe(seen.append)
    channel.unsubscribe(seen.append)

    channel.publish(TreasurySnapshot.empty())

    assert seen == []
    assert len(channel) == 0


def test_failing_listener_does_not_block_others(caplog):
    channel = SnapshotChannel()
    seen = []

    def broken(snapshot):
        raise RuntimeError("listener bug")

    channel.subscribe(broken)
    channel.subscribe(seen.append)

    channel.publish(TreasurySnapshot.empty())

    assert len(seen) == 1
    assert "failed" in caplog.text
