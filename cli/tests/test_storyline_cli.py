"""Tests for the storyline command-line client."""

from __future__ import annotations

import json

import httpx
import pytest

from storyline_cli.client import ApiClient, ApiError
from storyline_cli.config import Config
from storyline_cli.main import build_parser, render_tree, run

API = "http://api.test"

TREE = {
    "project_id": "p1",
    "groups": [
        {
            "id": "g1",
            "type": "group",
            "title": "Groupo",
            "selected": True,
            "children": [
                {"id": "s1", "type": "story", "title": "Greetings", "is_link_origin": True},
                {"id": "s2", "type": "story", "title": "Farewells", "is_link_destination": True},
            ],
        },
        {"id": "g2", "type": "group", "title": "Empty", "children": []},
    ],
}


@pytest.fixture(autouse=True)
def no_env_url(monkeypatch):
    monkeypatch.delenv("STORYLINE_API_URL", raising=False)


@pytest.fixture
def config(tmp_path):
    return Config(api_url_override=API, config_dir=tmp_path)


def make_client(handler, project_id="p1"):
    requests = []

    def record(request):
        requests.append(request)
        return handler(request)

    client = ApiClient(API, project_id, client=httpx.Client(transport=httpx.MockTransport(record)))
    return client, requests


def call(argv, config, client):
    return run(build_parser().parse_args(argv), config, client)


class TestRenderTree:
    def test_markers(self):
        assert render_tree(TREE).splitlines() == [
            "[*] Groupo  (g1)",
            "  - Greetings ->  (s1)",
            "  - Farewells <-  (s2)",
            "Empty  (g2)",
        ]

    def test_empty_project(self):
        assert render_tree({"project_id": "p1", "groups": []}) == "(empty project)"


class TestConfig:
    def test_default_project_persists(self, tmp_path):
        Config(api_url_override=API, config_dir=tmp_path).default_project_id = "p9"
        assert Config(api_url_override=API, config_dir=tmp_path).default_project_id == "p9"

    def test_default_project_is_per_api_url(self, tmp_path):
        Config(api_url_override=API, config_dir=tmp_path).default_project_id = "p9"
        assert Config(api_url_override="http://other", config_dir=tmp_path).default_project_id is None

    def test_env_url_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STORYLINE_API_URL", "http://env.test/")
        assert Config(api_url_override=API, config_dir=tmp_path).api_url == "http://env.test"

    def test_corrupt_file_is_ignored(self, tmp_path):
        (tmp_path / "config.json").write_text("{not json")
        assert Config(config_dir=tmp_path).api_url == "http://localhost:8000"


class TestCommands:
    def test_tree(self, config, capsys):
        client, requests = make_client(lambda r: httpx.Response(200, json=TREE))
        assert call(["tree"], config, client) == 0
        assert requests[0].url == f"{API}/api/projects/p1/tree"
        assert "[*] Groupo" in capsys.readouterr().out

    def test_new_project_becomes_default(self, config, capsys):
        client, requests = make_client(
            lambda r: httpx.Response(201, json={"id": "p2", "name": "Bot", "story_groups": []})
        )
        assert call(["new-project", "Bot", "--empty"], config, client) == 0
        assert json.loads(requests[0].content) == {"name": "Bot", "seed": False}
        assert config.default_project_id == "p2"

    def test_add_story_posts_to_group(self, config, capsys):
        client, requests = make_client(lambda r: httpx.Response(201, json={"id": "s9"}))
        assert call(["add-story", "g1", "--title", "Hello"], config, client) == 0
        assert requests[0].method == "POST"
        assert requests[0].url.path == "/api/projects/p1/groups/g1/stories"
        assert capsys.readouterr().out.strip() == "s9"

    def test_blank_rename(self, config, capsys):
        client, _ = make_client(lambda r: httpx.Response(200, json={"updated": 0}))
        assert call(["rename", "g1", " "], config, client) == 0
        assert capsys.readouterr().out.strip() == "Nothing to rename."

    def test_delete_refused(self, config, capsys):
        message = "The story group Groupo cannot be deleted as it contains links."

        def handler(request):
            assert request.method == "GET"
            return httpx.Response(
                200, json={"deletable": False, "reason": "group_contains_origin", "message": message}
            )

        client, requests = make_client(handler)
        assert call(["delete", "g1", "-y"], config, client) == 1
        assert len(requests) == 1
        assert message in capsys.readouterr().out

    def test_delete_confirmed(self, config, capsys):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json={"deletable": True, "reason": None, "message": "ok"})
            return httpx.Response(200, json={"deleted_ids": ["g2"], "orphan_events": []})

        client, requests = make_client(handler)
        assert call(["delete", "g2", "-y"], config, client) == 0
        assert [r.method for r in requests] == ["GET", "DELETE"]
        assert "Deleted 1 nodes." in capsys.readouterr().out

    def test_delete_declined(self, config, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda prompt: "n")
        client, requests = make_client(
            lambda r: httpx.Response(200, json={"deletable": True, "reason": None, "message": "ok"})
        )
        assert call(["delete", "g2"], config, client) == 1
        assert len(requests) == 1

    def test_move_sends_parent_and_index(self, config):
        client, requests = make_client(lambda r: httpx.Response(200, json=TREE))
        assert call(["move", "s1", "--parent", "g2", "--index", "3"], config, client) == 0
        assert json.loads(requests[0].content) == {"parent_id": "g2", "index": 3}


class TestClientErrors:
    def test_api_error_carries_reason(self):
        client, _ = make_client(
            lambda r: httpx.Response(
                409, json={"detail": "linked", "code": "linked_node", "reason": "story_is_origin"}
            )
        )
        with pytest.raises(ApiError) as exc:
            client.delete("s1")
        assert exc.value.status_code == 409
        assert exc.value.reason == "story_is_origin"

    def test_non_json_error(self):
        client, _ = make_client(lambda r: httpx.Response(502, text="Bad Gateway"))
        with pytest.raises(ApiError) as exc:
            client.tree()
        assert exc.value.detail == "Bad Gateway"

    def test_no_project_selected(self):
        client, requests = make_client(lambda r: httpx.Response(200, json={}), project_id=None)
        with pytest.raises(ApiError):
            client.tree()
        assert requests == []
