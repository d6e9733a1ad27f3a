from chatsync.utils.mutation_guard import MutationGuard


class Entity:
    pass


def test_flag_clears_when_entity_object_changes():
    guard = MutationGuard()
    original = Entity()
    guard.mark("c1", original)

    guard.refresh([("c1", original)])
    assert guard.is_pending("c1")

    guard.refresh([("c1", Entity())])
    assert not guard.is_pending("c1")


def test_flag_survives_unrelated_refresh():
    guard = MutationGuard()
    guard.mark("c1", Entity())
    guard.refresh([("c2", Entity())])
    assert guard.pending == ("c1",)


def test_flag_for_unheld_entity_clears_when_it_arrives():
    guard = MutationGuard()
    guard.mark("c9")
    guard.refresh([("c9", Entity())])
    assert not guard.is_pending("c9")


def test_discard_drops_everything():
    guard = MutationGuard()
    guard.mark("a", Entity())
    guard.mark("b", Entity())
    guard.discard()
    assert guard.pending == ()
    assert not guard.is_pending(None)


def test_clear_drops_one_flag():
    guard = MutationGuard()
    guard.mark("a", Entity())
    guard.mark("b", Entity())
    guard.clear("a")
    guard.clear("missing")
    assert guard.pending == ("b",)
