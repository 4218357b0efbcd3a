"""Shared test fixtures."""

import pytest

from stepwise.context import Context, set_context

PRODUCTS_DDL = (
    "CREATE TABLE products ("
    " id INTEGER PRIMARY KEY,"
    " name TEXT NOT NULL,"
    " cost REAL,"
    " quantity INTEGER,"
    " added DATE,"
    " image BLOB,"
    " active BOOLEAN"
    ")"
)


@pytest.fixture
def ctx():
    """In-memory SQLite context with an empty products table."""
    context = Context.connect(":memory:")
    context.statement(PRODUCTS_DDL).execute()
    yield context
    context.close()


@pytest.fixture
def stocked(ctx):
    """The products context with three rows inserted."""
    rows = [(1, "Widget", 9.99, 5), (2, "Gadget", 24.5, 0), (3, "Sprocket", 0.75, 120)]
    for row in rows:
        stmt = ctx.statement("INSERT INTO products (id, name, cost, quantity) VALUES (?, ?, ?, ?)")
        for value in row:
            stmt.bind(value)
        stmt.execute()
    return ctx


@pytest.fixture(autouse=True)
def _no_default_context():
    """Leave no process-wide default context behind."""
    yield
    previous = set_context(None)
    if previous is not None:
        previous.close()


@pytest.fixture
def count_products():
    """Row counter for the products table."""

    def count(context: Context) -> int:
        with context.statement("SELECT COUNT(*) FROM products") as stmt:
            return stmt.read_int()

    return count


class FakeCursor:
    """Cursor over a fixed list of rows."""

    def __init__(self, rows, type_names=()):
        self._rows = list(rows)
        self._type_names = list(type_names)
        self._row = None
        self.closed = False

    def advance(self):
        if not self._rows:
            self._row = None
            return False
        self._row = self._rows.pop(0)
        return True

    def read_at(self, ordinal, column_type):
        return self._row[ordinal - 1]

    def column_type_name(self, ordinal):
        return self._type_names[ordinal - 1]

    def close(self):
        self.closed = True


class FakePrepared:
    """Prepared statement that returns a canned result or raises."""

    def __init__(self, query, database):
        self.query = query
        self._database = database
        self.params = {}

    @property
    def placeholder_count(self):
        return self.query.count("?")

    def bind_at(self, ordinal, value, column_type):
        self.params[ordinal] = value

    def execute(self):
        self._database.executed.append(self.query)
        error = self._database.failures.get(self.query)
        if error is not None:
            raise error
        return self._database.results.get(self.query, 1)

    def close(self):
        pass


class FakeDatabase:
    """Database double that records calls and fails on demand."""

    def __init__(self):
        self.executed = []
        self.failures = {}
        self.results = {}
        self.commits = 0
        self.rollbacks = 0
        self.auto_commit = True
        self.rollback_error = None
        self.commit_error = None
        self.closed = False

    def prepare(self, query):
        return FakePrepared(query, self)

    def set_auto_commit(self, enabled):
        self.auto_commit = enabled

    def commit(self):
        if self.commit_error is not None:
            raise self.commit_error
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1
        if self.rollback_error is not None:
            raise self.rollback_error

    def close(self):
        self.closed = True


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def fake_ctx(fake_db):
    """Context over a FakeDatabase."""
    return Context(fake_db)


@pytest.fixture
def fake_cursor():
    """Factory for FakeCursor results."""
    return FakeCursor
