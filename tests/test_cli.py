"""Tests for the command line entry point."""

import csv
import json
from functools import partial

import httpx
import pytest
import yaml
from typer.testing import CliRunner

from svreport.cli import app, export_cmd, tables_cmd
from svreport.clients import AugmentationClient, UpstreamClient

runner = CliRunner()

GATEWAY = "http://gateway.test"
FLEET = "/api/latest/fleet"


class GatewayStub:
    """In-memory gateway: the local tables plus a few proxied upstream routes."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.flags: dict[int, str] = {}
        self.remarks: dict[int, str] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            return httpx.Response(500, json={"error": "Failed to list flags: disk I/O error"})

        path = request.url.path
        if path == "/api/open-source":
            if request.method == "POST":
                body = json.loads(request.content)
                self.flags[body["software_title_id"]] = body["name"]
                return httpx.Response(200, json={"id": len(self.flags), **body})
            rows = [
                {"id": i, "software_title_id": tid, "name": name}
                for i, (tid, name) in enumerate(sorted(self.flags.items(), key=lambda kv: kv[1]), start=1)
            ]
            return httpx.Response(200, json=rows)
        if path.startswith("/api/open-source/"):
            deleted = self.flags.pop(int(path.rsplit("/", 1)[1]), None) is not None
            return httpx.Response(200, json={"deleted": deleted})
        if path == "/api/software-remarks":
            if request.method == "POST":
                body = json.loads(request.content)
                self.remarks[body["software_title_id"]] = body["remark"]
                return httpx.Response(200, json={"id": len(self.remarks), **body})
            rows = [{"id": i, "software_title_id": tid, "remark": text}
                    for i, (tid, text) in enumerate(self.remarks.items(), start=1)]
            return httpx.Response(200, json=rows)

        if path == f"{FLEET}/software/titles/42":
            return httpx.Response(200, json={"software_title": {
                "id": 42, "name": "curl", "hosts_count": 12, "versions_count": 1,
                "versions": [{"id": 7, "version": "8.1", "vulnerabilities": ["CVE-2024-0001"]}],
            }})
        if path == f"{FLEET}/software/titles":
            return httpx.Response(200, json={"software_titles": [
                {"id": 42, "name": "curl", "hosts_count": 12, "versions_count": 1},
                {"id": 43, "name": "zlib", "hosts_count": 3, "versions_count": 1},
            ]})
        if path == f"{FLEET}/software/7":
            return httpx.Response(200, json={"software": {"id": 7, "vendor": "curl project"}})
        if path == f"{FLEET}/software/versions/7":
            return httpx.Response(200, json={"software": {"id": 7, "vulnerabilities": [
                {"cve": "CVE-2024-0001", "cvss_score": 9.8, "details_link": "https://nvd.example/CVE-2024-0001"},
            ]}})
        if path == f"{FLEET}/hosts":
            return httpx.Response(200, json={"hosts": [
                {"id": 1, "display_name": "web-01", "status": "online", "issues": {"total_issues_count": 2}},
            ], "count": 1})
        return httpx.Response(404, json={"message": "Resource Not Found"})


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "svreport.yaml"
    path.write_text(
        yaml.safe_dump({"gateway_url": GATEWAY, "vendor_batch_delay": 0, "data_dir": str(tmp_path)}),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def gateway(monkeypatch):
    stub = GatewayStub()
    transport = httpx.MockTransport(stub)
    monkeypatch.setattr(export_cmd, "UpstreamClient", partial(UpstreamClient, transport=transport))
    monkeypatch.setattr(export_cmd, "AugmentationClient", partial(AugmentationClient, transport=transport))
    monkeypatch.setattr(tables_cmd, "AugmentationClient", partial(AugmentationClient, transport=transport))
    return stub


def _invoke(config_file, *args):
    return runner.invoke(app, [*args, "--config", str(config_file)])


def _read_csv(path):
    with open(path, encoding="utf-8", newline="") as f:
        return list(csv.DictReader(f))


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "svreport" in result.stdout


def test_export_requires_token(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SVREPORT_UPSTREAM_TOKEN", raising=False)

    result = runner.invoke(app, ["export", "open-source", "--output", str(tmp_path / "out.csv")])

    assert result.exit_code == 2
    assert not (tmp_path / "out.csv").exists()


def test_help_lists_command_groups():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for group in ("serve", "export", "flags", "remarks"):
        assert group in result.stdout


def test_flags_add_list_remove(gateway, config_file):
    result = _invoke(config_file, "flags", "add", "42", "curl")
    assert result.exit_code == 0, result.output
    assert "Flagged curl (42)" in result.output
    assert gateway.flags == {42: "curl"}

    result = _invoke(config_file, "flags", "list", "--json")
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)[0]["software_title_id"] == 42

    result = _invoke(config_file, "flags", "remove", "42")
    assert result.exit_code == 0
    assert "Removed flag for 42" in result.output

    result = _invoke(config_file, "flags", "remove", "42")
    assert result.exit_code == 0
    assert "42 was not flagged" in result.output
    assert gateway.flags == {}


def test_flags_list_empty(gateway, config_file):
    result = _invoke(config_file, "flags", "list")
    assert result.exit_code == 0
    assert "No titles flagged" in result.output


def test_remarks_set_and_clear(gateway, config_file):
    assert _invoke(config_file, "remarks", "set", "42", "pinned to 8.x").exit_code == 0
    assert gateway.remarks == {42: "pinned to 8.x"}

    result = _invoke(config_file, "remarks", "set", "42", "")
    assert result.exit_code == 0
    assert gateway.remarks == {42: ""}

    result = _invoke(config_file, "remarks", "list", "--json")
    assert result.exit_code == 0
    assert json.loads(result.output) == [
        {"id": 1, "software_title_id": 42, "remark": "", "created_at": None, "updated_at": None}
    ]


def test_gateway_failure_exits_1(gateway, config_file):
    gateway.fail = True
    result = _invoke(config_file, "flags", "list")
    assert result.exit_code == 1
    assert "Gateway request failed" in result.output


def test_export_open_source_writes_csv(gateway, config_file, tmp_path):
    gateway.flags = {42: "curl"}
    gateway.remarks = {42: "pinned"}
    out = tmp_path / "reports" / "open-source.csv"

    result = _invoke(config_file, "export", "open-source", "--token", "tok", "--output", str(out))

    assert result.exit_code == 0, result.output
    assert "Wrote 1 rows" in result.output
    assert _read_csv(out) == [{
        "Name": "curl",
        "Vendor": "curl project",
        "Host Count": "12",
        "Version Count": "1",
        "Vulnerabilities Count": "1",
        "Open Source": "Yes",
        "Remarks": "pinned",
    }]
    upstream_calls = [r for r in gateway.requests if r.url.path.startswith(FLEET)]
    assert all(r.headers["authorization"] == "Bearer tok" for r in upstream_calls)


def test_export_software_writes_csv(gateway, config_file, tmp_path):
    gateway.flags = {43: "zlib"}
    out = tmp_path / "software.csv"

    result = _invoke(config_file, "export", "software", "--token", "tok", "--output", str(out))

    assert result.exit_code == 0, result.output
    assert [(r["Name"], r["Open Source"]) for r in _read_csv(out)] == [("curl", "No"), ("zlib", "Yes")]


def test_export_hosts_forwards_software_filter(gateway, config_file, tmp_path):
    out = tmp_path / "hosts.csv"

    result = _invoke(
        config_file, "export", "hosts", "--software-title-id", "42", "--token", "tok", "--output", str(out)
    )

    assert result.exit_code == 0, result.output
    assert [(r["Host"], r["Issues"]) for r in _read_csv(out)] == [("web-01", "2")]
    hosts_request = next(r for r in gateway.requests if r.url.path == f"{FLEET}/hosts")
    assert hosts_request.url.params["software_title_id"] == "42"


def test_export_vulnerabilities_writes_csv(gateway, config_file, tmp_path):
    out = tmp_path / "vulns.csv"

    result = _invoke(config_file, "export", "vulnerabilities", "7", "--token", "tok", "--output", str(out))

    assert result.exit_code == 0, result.output
    assert _read_csv(out)[0]["CVE ID"] == "CVE-2024-0001"


def test_export_failure_exits_1_without_writing(gateway, config_file, tmp_path):
    gateway.fail = True
    out = tmp_path / "open-source.csv"

    result = _invoke(config_file, "export", "open-source", "--token", "tok", "--output", str(out))

    assert result.exit_code == 1
    assert "Export failed" in result.output
    assert not out.exists()
