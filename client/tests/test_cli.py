import io
import json
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch

import httpx

from cidash.api import ApiClient
from cidash.cli import main

from fakes import BASE_URL, FakeBackend, with_defaults


class TestCli(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.state_file = str(Path(self.tmp.name) / "state.json")
        self.backend = with_defaults(FakeBackend())
        self.backend.on(
            "POST",
            "/imagebuilder/detect-changes",
            body={"changedServices": [{"path": "svc-a", "hasDockerfile": True}, {"path": "docs"}]},
        )

        backend = self.backend
        patcher = patch(
            "cidash.cli.ApiClient",
            side_effect=lambda base_url=None: ApiClient(base_url=BASE_URL, transport=httpx.MockTransport(backend)),
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        self.tmp.cleanup()

    def run_cli(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = main(["--state-file", self.state_file, *argv])
        return code, out.getvalue(), err.getvalue()

    def persisted(self):
        return json.loads(Path(self.state_file).read_text())

    def test_repos(self):
        code, out, _ = self.run_cli("repos")
        self.assertEqual(code, 0)
        self.assertIn("https://x/y.git", out)

    def test_state_persists_across_invocations(self):
        self.assertEqual(self.run_cli("select", "1")[0], 0)
        self.assertEqual(self.run_cli("set", "base-branch", "feature-a")[0], 0)
        self.assertEqual(self.run_cli("set", "current-branch", "main")[0], 0)

        code, out, _ = self.run_cli("detect", "branch")

        self.assertEqual(code, 0)
        self.assertIn("svc-a", out)
        self.assertIn("docs  (no Dockerfile)", out)
        state = self.persisted()
        self.assertEqual(state["activeComparison"], "branch")
        self.assertEqual(state["baseBranch"], "feature-a")

        code, out, _ = self.run_cli("state")
        self.assertIn("feature-a -> main", out)

    def test_identical_refs_fail(self):
        self.run_cli("select", "1")

        code, _, err = self.run_cli("detect", "commit", "--base", "abc123", "--current", "abc123")

        self.assertEqual(code, 1)
        self.assertIn("Please provide different commit hashes to compare", err)
        self.assertEqual(self.backend.calls("POST", "/imagebuilder/detect-commit-changes"), [])

    def test_build(self):
        self.backend.on("POST", "/imagebuilder/build-multiple", body={"message": "ok"})
        self.run_cli("select", "1")
        self.run_cli("detect", "branch", "--base", "feature-a", "--current", "main")

        code, out, _ = self.run_cli("build", "--all", "--tag", "v1", "--registry", "registry.example.com/team")

        self.assertEqual(code, 0)
        self.assertIn("Build Started: ok", out)
        body = self.backend.last_json("POST", "/imagebuilder/build-multiple")
        self.assertEqual(body["servicePaths"], ["svc-a"])
        self.assertEqual(body["branch"], "main")

    def test_build_reuses_persisted_selection(self):
        self.backend.on("POST", "/imagebuilder/build-multiple", body={"message": "ok"})
        self.run_cli("select", "1")
        self.run_cli("detect", "branch", "--base", "feature-a", "--current", "main")
        self.assertEqual(self.run_cli("build", "--service", "svc-a", "--registry", "r")[0], 0)

        code, out, _ = self.run_cli("build", "--registry", "r", "--tag", "v2")

        self.assertEqual(code, 0)
        self.assertIn("Build Started", out)
        body = self.backend.last_json("POST", "/imagebuilder/build-multiple")
        self.assertEqual(body["servicePaths"], ["svc-a"])
        self.assertEqual(json.loads(self.persisted()["selectedServices"]), ["svc-a"])

    def test_build_requires_comparison(self):
        self.run_cli("select", "1")
        code, _, err = self.run_cli("build", "--all", "--registry", "r")
        self.assertEqual(code, 1)
        self.assertIn("detect", err)

    def test_clear(self):
        self.run_cli("select", "1")
        self.run_cli("detect", "branch", "--base", "feature-a", "--current", "main")

        self.assertEqual(self.run_cli("clear", "branch")[0], 0)

        self.assertNotIn("activeComparison", self.persisted())
        self.assertNotIn("baseBranch", self.persisted())

    def test_images_listed_for_connected_registry(self):
        self.backend.on("POST", "/registries/3/test-connection", body={"status": "success", "message": "ok"})
        self.backend.on("GET", "/registries/3/images", body=[{"name": "api", "tags": ["v1"], "size": 10}])

        code, out, _ = self.run_cli("images", "3", "list")

        self.assertEqual(code, 0)
        self.assertIn("api  v1  10 bytes", out)

    def test_images_blocked_for_failed_registry(self):
        self.backend.on(
            "POST",
            "/registries/3/test-connection",
            body={"status": "failed", "message": "unauthorized: bad credentials"},
        )

        code, _, err = self.run_cli("images", "3", "delete", "api", "v1")

        self.assertEqual(code, 1)
        self.assertIn("Registry is offline", err)
        self.assertEqual(self.backend.calls("DELETE", "/registries/3/images/api/v1"), [])

    def test_copy_checks_both_registries(self):
        for registry_id in (3, 4):
            self.backend.on("POST", f"/registries/{registry_id}/test-connection", body={"status": "connected"})
        self.backend.on("POST", "/registries/images/copy")

        code, out, _ = self.run_cli("images", "3", "copy", "api", "v1", "--to-registry", "4")

        self.assertEqual(code, 0)
        self.assertIn("Image Copied", out)
        self.assertEqual(self.backend.last_json("POST", "/registries/images/copy")["destination_registry_id"], 4)

    def test_unknown_repository(self):
        code, _, err = self.run_cli("select", "42")
        self.assertEqual(code, 1)
        self.assertIn("not found", err)


if __name__ == "__main__":
    unittest.main()
