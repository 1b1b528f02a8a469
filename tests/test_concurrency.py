import threading

from sqlmodel import Session

from access.decisions import Allow, DenyReason, Operation, Resource
from access.policy import PolicyEngine
from models import Role, User
from store import Store

from conftest import principal_for


def test_concurrent_admin_deletes_keep_one_administrator(engine, factory):
    first = factory.admin()
    second = factory.admin()
    policy_engine = PolicyEngine()
    barrier = threading.Barrier(2)
    outcomes = {}

    def delete(actor, target):
        # mismo flujo que el endpoint: decidir y borrar en una sola transacción
        with Session(engine) as session:
            store = Store(session)
            barrier.wait()
            decision = policy_engine.authorize(store, Resource.USER, Operation.DELETE, principal_for(actor), target.id)
            if isinstance(decision, Allow):
                store.delete(store.get(User, target.id))
                outcomes[target.id] = "deleted"
            else:
                store.rollback()
                outcomes[target.id] = decision.reason

    threads = [
        threading.Thread(target=delete, args=(first, second)),
        threading.Thread(target=delete, args=(second, first)),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert len(outcomes) == 2
    assert set(outcomes.values()) == {"deleted", DenyReason.LAST_ADMINISTRATOR}
    with Session(engine) as session:
        assert Store(session).count(User, User.role == Role.ADMINISTRADOR) == 1
