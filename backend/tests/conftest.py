import copy
import itertools

import pytest

from webbuilder import database
from webbuilder.config import get_settings
from webbuilder.registry import crawl_statuses


class FakeResult:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Just enough of the supabase query builder for the database module."""

    def __init__(self, db, table, op, payload=None):
        self.db = db
        self.table = table
        self.op = op
        self.payload = payload
        self.filters = []
        self._limit = None
        self._order = None

    def select(self, *columns):
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def limit(self, n):
        self._limit = n
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def _matching(self):
        rows = self.db.tables.setdefault(self.table, [])
        return [r for r in rows if all(f(r) for f in self.filters)]

    def execute(self):
        if self.db.fail:
            raise RuntimeError("database unavailable")
        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            row = self.db.new_row(self.payload)
            rows.append(row)
            return FakeResult([copy.deepcopy(row)])

        if self.op == "upsert":
            existing = next((r for r in rows if r.get("id") == self.payload.get("id")), None)
            if existing is not None:
                existing.update(copy.deepcopy(self.payload))
                return FakeResult([copy.deepcopy(existing)])
            row = self.db.new_row(self.payload)
            rows.append(row)
            return FakeResult([copy.deepcopy(row)])

        matched = self._matching()
        if self.op == "update":
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return FakeResult([copy.deepcopy(r) for r in matched])

        if self.op == "delete":
            self.db.tables[self.table] = [r for r in rows if r not in matched]
            return FakeResult([copy.deepcopy(r) for r in matched])

        if self._order:
            column, desc = self._order
            matched = sorted(
                matched,
                key=lambda r: (r.get(column) is None, r.get(column) if r.get(column) is not None else 0),
                reverse=desc,
            )
        if self._limit is not None:
            matched = matched[: self._limit]
        return FakeResult([copy.deepcopy(r) for r in matched])


class FakeTable:
    def __init__(self, db, name):
        self.db = db
        self.name = name

    def select(self, *columns):
        return FakeQuery(self.db, self.name, "select")

    def insert(self, row):
        return FakeQuery(self.db, self.name, "insert", row)

    def upsert(self, row, on_conflict="id"):
        return FakeQuery(self.db, self.name, "upsert", row)

    def update(self, data):
        return FakeQuery(self.db, self.name, "update", data)

    def delete(self):
        return FakeQuery(self.db, self.name, "delete")


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.fail = False
        self._ids = itertools.count(1)

    def table(self, name):
        return FakeTable(self, name)

    def new_row(self, payload):
        row = copy.deepcopy(payload)
        row.setdefault("id", f"row-{next(self._ids)}")
        row.setdefault("created_at", f"2026-01-01T00:00:{next(self._ids):02d}+00:00")
        return row

    def rows(self, name):
        return self.tables.get(name, [])


@pytest.fixture(autouse=True)
def settings(tmp_path, monkeypatch):
    """Offline settings: temp template dir, no credentials, no delays."""
    s = get_settings()
    for key in (
        "supabase_url",
        "supabase_key",
        "anthropic_api_key",
        "gemini_api_key",
        "openai_api_key",
        "google_search_api_key",
        "google_search_engine_id",
    ):
        monkeypatch.setattr(s, key, "")
    for env in ("ANTHROPIC_API_KEY", "GEMINI_API_KEY"):
        monkeypatch.delenv(env, raising=False)
    monkeypatch.setattr(s, "templates_dir", str(tmp_path / "scraped_templates"))
    monkeypatch.setattr(s, "respect_robots_txt", False)
    monkeypatch.setattr(s, "batch_delay", 0.0)
    monkeypatch.setattr(s, "crawl_page_delay", 0.0)
    monkeypatch.setattr(s, "scrape_retry_delay", 0.0)
    monkeypatch.setattr(s, "pause_timeout", 0.05)
    crawl_statuses.clear()
    yield s
    crawl_statuses.clear()


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeSupabase()
    monkeypatch.setattr(database, "_get_client", lambda: db)
    return db


@pytest.fixture
def no_db(monkeypatch):
    def _unavailable():
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in .env")

    monkeypatch.setattr(database, "_get_client", _unavailable)


@pytest.fixture
def page_html():
    """A page rich enough to pass verification once SEO tags are added."""
    body = " ".join(["Our team builds things that last and we are proud of every project."] * 12)
    return f"""<!DOCTYPE html>
<html>
<head><title>Acme Builders | Home</title>
<style>body {{ font-family: Georgia, serif; color: #333333; }} h1 {{ font-weight: 800; }}</style>
</head>
<body>
<h1>Welcome to Acme</h1>
<p>{body}</p>
<p>We have been serving the community for over thirty years with care.</p>
<p>Short</p>
<img src="/images/hero.jpg" alt="Hero">
<a class="button-primary" href="/contact">Get in touch</a>
</body>
</html>"""
