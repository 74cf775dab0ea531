import gc

from agent_relay.utils.locking import KeyedLocks


def test_same_key_shares_a_lock_while_held():
    locks = KeyedLocks()

    first = locks.get(("alice", "bob"))
    assert locks.get(("alice", "bob")) is first
    assert locks.get(("alice", "carol")) is not first


def test_unused_locks_are_released():
    locks = KeyedLocks()
    for index in range(100):
        with locks.get(("alice", f"agent-{index}")):
            pass
    gc.collect()

    assert len(locks) == 0
