import json

import pytest

from webbuilder import file_store
from webbuilder.file_store import InvalidTemplateIdError
from webbuilder.models import Template


def _template(template_id="acme-1", **kwargs):
    return Template(id=template_id, name="Acme Template", brand="Acme", industry="Law", **kwargs)


def test_save_writes_file_and_index():
    path = file_store.save_template_to_file(_template())
    record = json.loads(path.read_text())

    assert path.name == "acme-1.json"
    assert record["isApproved"] is False
    assert record["createdAt"]
    index = file_store.load_index()
    assert [e["id"] for e in index] == ["acme-1"]
    assert index[0]["filename"] == "acme-1.json"
    assert index[0]["brand"] == "Acme"


def test_saving_twice_keeps_one_index_entry():
    file_store.save_template_to_file(_template())
    file_store.save_template_to_file(_template())
    assert len(file_store.load_index()) == 1


def test_update_merges_and_reindexes():
    file_store.save_template_to_file(_template())
    updated = file_store.update_template_file("acme-1", {"name": "Renamed", "isApproved": True})

    assert updated["name"] == "Renamed"
    assert updated["updatedAt"]
    assert file_store.load_template_file("acme-1")["isApproved"] is True
    assert file_store.load_index()[0]["name"] == "Renamed"
    assert file_store.update_template_file("missing", {"name": "x"}) is None


def test_delete_removes_file_index_and_pages():
    file_store.save_template_to_file(_template())
    file_store.save_page_to_file("acme-1", {"path": "/about", "html": "<p>About</p>", "order": 1})

    assert file_store.delete_template_file("acme-1") is True
    assert file_store.load_template_file("acme-1") is None
    assert file_store.load_index() == []
    assert file_store.list_page_files("acme-1") == []
    assert file_store.delete_template_file("acme-1") is False


def test_corrupt_index_reads_as_empty(settings):
    (file_store.templates_dir() / "index.json").write_text("{not json")
    assert file_store.load_index() == []


def test_ids_cannot_escape_the_directory():
    with pytest.raises(InvalidTemplateIdError):
        file_store.save_template_to_file(_template("../evil"))
    assert file_store.load_template_file("../evil") is None


def test_pages_round_trip_in_order():
    file_store.save_page_to_file("acme-1", {"path": "/services/web", "order": 2})
    file_store.save_page_to_file("acme-1", {"path": "/", "order": 0})

    assert file_store.page_slug("/") == "index"
    assert file_store.page_slug("/Services/Web/") == "services-web"
    assert [p["path"] for p in file_store.list_page_files("acme-1")] == ["/", "/services/web"]
    assert file_store.load_page_file("acme-1", "/services/web")["order"] == 2


def test_delete_all_files():
    file_store.save_template_to_file(_template("a"))
    file_store.save_template_to_file(_template("b"))
    assert file_store.delete_all_files() == 2
    assert file_store.load_index() == []
