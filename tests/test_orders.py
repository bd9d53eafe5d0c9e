import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError
from sqlalchemy.schema import CreateTable

from backend.fulfillment.models import Order
from backend.fulfillment.services.orders import OrderStore, completion_update


class StubResult:
    def __init__(self, rowcount):
        self.rowcount = rowcount


class StubSession:
    """Records statements; answers UPDATEs with a fixed rowcount."""

    def __init__(self, rowcount=1, fail=False):
        self.rowcount = rowcount
        self.fail = fail
        self.statements = []
        self.commits = 0
        self.rollbacks = 0

    async def execute(self, stmt):
        self.statements.append(stmt)
        if self.fail:
            raise OperationalError("UPDATE orders", {}, Exception("connection reset"))
        return StubResult(self.rowcount)

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


def _sql(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}))


def test_completion_update_is_guarded_by_null_server_id():
    sql = _sql(completion_update(42, "srv-uuid"))

    assert sql.startswith("UPDATE")
    assert "orders.pterodactyl_server_id IS NULL" in sql
    assert "orders.id = 42" in sql
    assert "status='done'" in sql
    assert "pterodactyl_server_id='srv-uuid'" in sql
    assert "updated_at=now()" in sql


async def test_mark_provisioned_writes_once_and_commits():
    db = StubSession(rowcount=1)

    assert await OrderStore(db).mark_provisioned(42, "srv-uuid") is True
    assert db.commits == 1
    assert "IS NULL" in _sql(db.statements[0])


async def test_mark_provisioned_reports_lost_race():
    db = StubSession(rowcount=0)

    assert await OrderStore(db).mark_provisioned(42, "srv-uuid") is False
    assert db.commits == 1


async def test_mark_provisioned_rolls_back_on_database_error():
    db = StubSession(fail=True)

    with pytest.raises(OperationalError):
        await OrderStore(db).mark_provisioned(42, "srv-uuid")
    assert db.rollbacks == 1
    assert db.commits == 0


def test_order_table_constraints():
    ddl = str(CreateTable(Order.__table__).compile(dialect=postgresql.dialect()))

    assert "UNIQUE (pterodactyl_server_id)" in ddl
    assert "created_at TIMESTAMP WITH TIME ZONE DEFAULT now() NOT NULL" in ddl
