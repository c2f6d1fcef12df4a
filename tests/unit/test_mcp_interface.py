"""MCP interface contract tests.

All tests use ``fastmcp.Client`` to exercise the full MCP protocol
(serialization, validation) against a real project in a temporary
directory.
"""

from __future__ import annotations

import json

import pytest

from mulch.config import MulchConfig
from mulch.config import write_config
from mulch.store import lock_path_for


def _parse(result) -> dict:
    """Extract the JSON payload from a CallToolResult."""
    return json.loads(result.content[0].text)


async def _call(client, tool: str, args: dict | None = None) -> dict:
    return _parse(await client.call_tool(tool, args or {}))


@pytest.fixture()
async def client(mcp_client):
    """Client for an initialized project with a ``cli`` domain."""
    await _call(mcp_client, "init_project")
    await _call(mcp_client, "add_domain", {"domain": "cli"})
    return mcp_client


def _convention(content: str, classification: str = "foundational") -> dict:
    return {"type": "convention", "content": content, "classification": classification}


# -----------------------------------------------------------------------
# init_project / add_domain
# -----------------------------------------------------------------------


class TestProjectSetup:
    async def test_init_project(self, mcp_client, tmp_path):
        data = await _call(mcp_client, "init_project")
        assert data["status"] == "initialized"
        assert data["domains"] == []
        assert (tmp_path / ".mulch" / "mulch.config.yaml").exists()

    async def test_add_domain(self, mcp_client, tmp_path):
        await _call(mcp_client, "init_project")
        data = await _call(mcp_client, "add_domain", {"domain": "api"})
        assert data["status"] == "created"
        assert data["path"].endswith("api.jsonl")

    async def test_add_existing_domain_rejected(self, client):
        data = await _call(client, "add_domain", {"domain": "cli"})
        assert data["status"] == "rejected"
        assert data["error_code"] == "domain_exists"

    async def test_invalid_domain_name_rejected(self, client):
        data = await _call(client, "add_domain", {"domain": "../etc"})
        assert data["status"] == "rejected"
        assert data["error_code"] == "invalid_argument"

    async def test_uninitialized_project(self, mcp_client):
        data = await _call(mcp_client, "status")
        assert data["status"] == "rejected"
        assert data["error_code"] == "config_error"


# -----------------------------------------------------------------------
# record_expertise
# -----------------------------------------------------------------------


class TestRecordExpertise:
    async def test_created(self, client):
        data = await _call(
            client, "record_expertise", {"domain": "cli", "record": _convention("Use tabs")}
        )
        assert data["status"] == "created"
        assert data["index"] == 1
        assert data["record"]["id"] == "mx-88f52e"
        assert data["record"]["type"] == "convention"

    async def test_supplied_id_is_recomputed(self, client):
        record = {**_convention("Use tabs"), "id": "mx-000000"}
        data = await _call(client, "record_expertise", {"domain": "cli", "record": record})
        assert data["record"]["id"] == "mx-88f52e"
        found = await _call(client, "delete_expertise", {"domain": "cli", "identifier": "88f52e"})
        assert found["status"] == "applied"

    async def test_malformed_id_rejected(self, client):
        record = {**_convention("Use tabs"), "id": "record-1"}
        data = await _call(client, "record_expertise", {"domain": "cli", "record": record})
        assert data["status"] == "rejected"
        assert data["error_code"] == "validation_error"

    async def test_skipped_duplicate(self, client):
        args = {"domain": "cli", "record": _convention("Use tabs")}
        await _call(client, "record_expertise", args)
        data = await _call(client, "record_expertise", args)
        assert data["status"] == "skipped"
        assert data["index"] == 1

    async def test_updated_named_record(self, client):
        pattern = {
            "type": "pattern",
            "name": "Repository",
            "description": "old",
            "classification": "tactical",
        }
        await _call(client, "record_expertise", {"domain": "cli", "record": pattern})
        data = await _call(
            client,
            "record_expertise",
            {"domain": "cli", "record": {**pattern, "description": "new"}},
        )
        assert data["status"] == "updated"
        assert data["record"]["description"] == "new"

    async def test_force(self, client):
        args = {"domain": "cli", "record": _convention("Use tabs"), "force": True}
        await _call(client, "record_expertise", args)
        data = await _call(client, "record_expertise", args)
        assert data["status"] == "created"
        assert data["index"] == 2

    async def test_invalid_record_rejected(self, client):
        data = await _call(
            client,
            "record_expertise",
            {"domain": "cli", "record": {"type": "convention", "classification": "tactical"}},
        )
        assert data["status"] == "rejected"
        assert data["error_code"] == "validation_error"
        assert "content" in data["message"]

    async def test_unknown_domain_rejected(self, client):
        data = await _call(
            client, "record_expertise", {"domain": "api", "record": _convention("x")}
        )
        assert data["status"] == "rejected"
        assert data["error_code"] == "domain_not_found"

    async def test_lock_timeout_is_an_error(self, client, tmp_path):
        lock_path_for(tmp_path / ".mulch" / "expertise" / "cli.jsonl").touch()
        data = await _call(
            client, "record_expertise", {"domain": "cli", "record": _convention("x")}
        )
        assert data["status"] == "error"
        assert data["error_code"] == "lock_timeout"

    async def test_undecodable_domain_file_is_an_error(self, client, tmp_path):
        (tmp_path / ".mulch" / "expertise" / "cli.jsonl").write_bytes(b"\xff\xfe garbage\n")
        data = await _call(
            client, "record_expertise", {"domain": "cli", "record": _convention("x")}
        )
        assert data["status"] == "error"
        assert data["error_code"] == "malformed_record"

    async def test_rejects_missing_record(self, client):
        with pytest.raises(Exception):
            await client.call_tool("record_expertise", {"domain": "cli"})


# -----------------------------------------------------------------------
# edit / delete / compact
# -----------------------------------------------------------------------


class TestMutations:
    async def test_edit(self, client):
        await _call(client, "record_expertise", {"domain": "cli", "record": _convention("a")})
        data = await _call(
            client,
            "edit_expertise",
            {"domain": "cli", "identifier": "1", "updates": {"tags": ["style"]}},
        )
        assert data["status"] == "applied"
        assert data["record"]["tags"] == ["style"]

    async def test_edit_unknown_field_rejected(self, client):
        await _call(client, "record_expertise", {"domain": "cli", "record": _convention("a")})
        data = await _call(
            client,
            "edit_expertise",
            {"domain": "cli", "identifier": "1", "updates": {"title": "x"}},
        )
        assert data["status"] == "rejected"
        assert data["error_code"] == "invalid_update"

    async def test_delete_by_id(self, client):
        created = await _call(
            client, "record_expertise", {"domain": "cli", "record": _convention("Use tabs")}
        )
        data = await _call(
            client,
            "delete_expertise",
            {"domain": "cli", "identifier": created["record"]["id"]},
        )
        assert data["status"] == "applied"
        assert data["index"] == 1

    async def test_delete_ambiguous(self, client, tmp_path):
        path = tmp_path / ".mulch" / "expertise" / "cli.jsonl"
        path.write_text(
            '{"type":"convention","content":"a","classification":"tactical",'
            '"recorded_at":"2025-01-01T00:00:00.000Z","id":"mx-abc111"}\n'
            '{"type":"convention","content":"b","classification":"tactical",'
            '"recorded_at":"2025-01-01T00:00:00.000Z","id":"mx-abc222"}\n',
            encoding="utf-8",
        )
        data = await _call(client, "delete_expertise", {"domain": "cli", "identifier": "abc"})
        assert data["status"] == "rejected"
        assert data["error_code"] == "ambiguous_identifier"
        assert "mx-abc111" in data["message"]
        assert "mx-abc222" in data["message"]

    async def test_delete_not_found(self, client):
        data = await _call(client, "delete_expertise", {"domain": "cli", "identifier": "fff"})
        assert data["error_code"] == "record_not_found"

    async def test_compact(self, client):
        for content in ("a", "b"):
            await _call(
                client, "record_expertise", {"domain": "cli", "record": _convention(content)}
            )
        data = await _call(
            client, "compact_expertise", {"domain": "cli", "identifiers": ["1", "2"]}
        )
        assert data["status"] == "applied"
        assert data["removed"] == 2
        assert data["record"]["content"] == "a\n\nb"
        assert len(data["record"]["supersedes"]) == 2

    async def test_compact_single_record_rejected(self, client):
        await _call(client, "record_expertise", {"domain": "cli", "record": _convention("a")})
        data = await _call(client, "compact_expertise", {"domain": "cli", "identifiers": ["1"]})
        assert data["status"] == "rejected"
        assert data["error_code"] == "compaction_precondition"


# -----------------------------------------------------------------------
# Retrieval
# -----------------------------------------------------------------------


class TestRetrieval:
    async def test_query(self, client):
        await _call(client, "record_expertise", {"domain": "cli", "record": _convention("a")})
        data = await _call(client, "query_expertise")
        assert data["status"] == "ok"
        assert data["domains"][0]["domain"] == "cli"
        assert data["dropped_count"] == 0
        assert data["summary"] is None

    async def test_query_with_tight_budget(self, client):
        for content in ("a", "b"):
            await _call(
                client, "record_expertise", {"domain": "cli", "record": _convention(content)}
            )
        data = await _call(client, "query_expertise", {"budget": 0})
        assert data["domains"] == []
        assert data["dropped_count"] == 2
        assert data["dropped_domain_count"] == 1
        assert data["summary"].startswith("... and 2 more records")

    async def test_query_unknown_type_rejected(self, client):
        data = await _call(client, "query_expertise", {"record_type": "rumor"})
        assert data["status"] == "rejected"

    async def test_search(self, client):
        await _call(
            client, "record_expertise", {"domain": "cli", "record": _convention("Use tabs")}
        )
        data = await _call(client, "search_expertise", {"query": "TABS"})
        assert data["total"] == 1
        assert data["domains"][0]["records"][0]["content"] == "Use tabs"


# -----------------------------------------------------------------------
# Maintenance
# -----------------------------------------------------------------------


class TestMaintenance:
    async def test_analyze_and_auto_compact(self, client):
        for content in ("a", "b", "c"):
            await _call(
                client, "record_expertise", {"domain": "cli", "record": _convention(content)}
            )
        analysis = await _call(client, "analyze_compaction")
        assert analysis["groups"][0]["count"] == 3
        assert len(analysis["groups"][0]["ids"]) == 3

        data = await _call(client, "auto_compact")
        assert data["status"] == "applied"
        assert data["groups"] == [
            {"domain": "cli", "type": "convention", "count": 3, "ids": []}
        ]
        query = await _call(client, "query_expertise")
        assert len(query["domains"][0]["records"]) == 1

    async def test_prune_dry_run(self, client):
        record = {**_convention("old", "tactical"), "recorded_at": "2020-01-01T00:00:00.000Z"}
        await _call(client, "record_expertise", {"domain": "cli", "record": record})
        data = await _call(client, "prune_expertise", {"dry_run": True})
        assert data["total_pruned"] == 1
        assert data["dry_run"] is True

        applied = await _call(client, "prune_expertise")
        assert applied["status"] == "applied"
        status = await _call(client, "status")
        assert status["domains"][0]["count"] == 0

    async def test_status(self, client):
        data = await _call(client, "status")
        assert data["domains"] == [
            {
                "domain": "cli",
                "count": 0,
                "last_updated": data["domains"][0]["last_updated"],
                "governance": "ok",
            }
        ]

    @pytest.mark.parametrize(
        "tool", ["analyze_compaction", "auto_compact", "prune_expertise", "status"]
    )
    async def test_invalid_domain_in_config_rejected(self, client, tmp_path, tool):
        write_config(MulchConfig(domains=("cli", "../etc")), tmp_path)
        data = await _call(client, tool)
        assert data["status"] == "rejected"
        assert data["error_code"] == "invalid_argument"
        assert "../etc" in data["message"]

    async def test_doctor_reports_invalid_domain_in_config(self, client, tmp_path):
        write_config(MulchConfig(domains=("../etc",)), tmp_path)
        data = await _call(client, "doctor")
        assert data["passed"] is False
        assert data["checks"][0]["name"] == "config"

    async def test_doctor_reports_undecodable_line(self, client, tmp_path):
        (tmp_path / ".mulch" / "expertise" / "cli.jsonl").write_bytes(b"\xff\xfe garbage\n")
        data = await _call(client, "doctor")
        assert data["passed"] is False
        integrity = next(c for c in data["checks"] if c["name"] == "jsonl-integrity")
        assert integrity["details"] == ["cli:1 - Invalid UTF-8"]

    async def test_doctor(self, client):
        data = await _call(client, "doctor")
        assert data["passed"] is True
        assert {c["name"] for c in data["checks"]} >= {"config", "jsonl-integrity"}
