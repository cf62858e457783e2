import json

from shared.models.models import PricePoint, Side, Transaction
from shared.state.backup_store import BackupStore

from poller_testkit import make_instrument


def test_save_and_rehydrate_round_trip(tmp_path):
    store = BackupStore(tmp_path)
    inst = make_instrument(bids=[1, 2, 3], asks=[1.5, 2.5, 3.5])
    inst.initial_round = False
    inst.add_transaction(Transaction(type=Side.BUY, price=3.5, fee=0.01))
    path = store.save(inst)
    assert path.name == "BTC-USD.backup.json"

    fresh = make_instrument()
    assert store.rehydrate(fresh) is True
    assert [p.bid for p in fresh.history] == [3, 2, 1]
    assert fresh.holding is True
    assert fresh.initial_round is False
    assert fresh.last_transaction().price == 3.5


def test_rehydrate_truncates_to_capacity(tmp_path):
    store = BackupStore(tmp_path)
    store.save(make_instrument(bids=[1, 2, 3, 4, 5]))

    small = make_instrument(capacity=2)
    assert store.rehydrate(small) is True
    assert [p.bid for p in small.history] == [5, 4]


def test_missing_or_corrupt_backup_is_ignored(tmp_path):
    store = BackupStore(tmp_path)
    inst = make_instrument(bids=[7])
    assert store.rehydrate(inst) is False

    store.path_for("BTC-USD").write_text("{not json", encoding="utf-8")
    assert store.rehydrate(inst) is False

    store.path_for("BTC-USD").write_text('{"history": [{"ask": 1}]}', encoding="utf-8")
    assert store.rehydrate(inst) is False
    assert [p.bid for p in inst.history] == [7]


def test_history_log_appends_one_line_per_point(tmp_path):
    store = BackupStore(tmp_path)
    store.append_point("BTC-USD", PricePoint(bid=10.0, ask=10.5, sequence=1))
    path = store.append_point("BTC-USD", PricePoint(bid=11.0, ask=11.5, sequence=2))
    assert path.name == "BTC-USD.history.jsonl"

    lines = path.read_text(encoding="utf-8").splitlines()
    points = [PricePoint.from_dict(json.loads(line)) for line in lines]
    assert [(p.bid, p.ask, p.sequence) for p in points] == [(10.0, 10.5, 1), (11.0, 11.5, 2)]


def test_history_log_is_independent_of_snapshot(tmp_path):
    store = BackupStore(tmp_path)
    for bid in [1, 2, 3]:
        store.append_point("BTC-USD", PricePoint(bid=bid, ask=bid + 0.5))
    store.save(make_instrument(capacity=2, bids=[2, 3]))

    # 快照只保留容量内的点，长期记录不截断
    assert len(store.history_path_for("BTC-USD").read_text(encoding="utf-8").splitlines()) == 3
    assert not store.history_path_for("ETH-USD").exists()
