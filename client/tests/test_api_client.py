import unittest

import httpx

from cidash.api import ApiClient, RegistryApi
from cidash.api.error_codes import ErrorCode, extract_error_message, get_error_code
from cidash.dtos import BuildMultipleRequest, DetectChangesRequest
from cidash.services.exceptions import BackendRejection, NetworkFailure, ProtocolFailure

from fakes import BRANCHES, REPO_URL, FakeBackend, connection_error


class TestErrorCodes(unittest.TestCase):
    def test_known_and_unknown_statuses(self):
        self.assertEqual(get_error_code(404), ErrorCode.NOT_FOUND)
        self.assertEqual(get_error_code(418), ErrorCode.BAD_REQUEST)
        self.assertEqual(get_error_code(599), ErrorCode.INTERNAL_ERROR)

    def test_message_key_precedence(self):
        self.assertEqual(extract_error_message({"error": "disk full", "message": "other"}), "disk full")
        self.assertEqual(extract_error_message({"message": "bad ref"}), "bad ref")
        self.assertEqual(extract_error_message({"detail": "Not Found"}), "Not Found")
        self.assertIsNone(extract_error_message({"error": ""}))
        self.assertIsNone(extract_error_message("plain text"))
        self.assertIsNone(extract_error_message(None))


class TestApiClient(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.backend = FakeBackend()
        self.api = self.backend.api()

    async def asyncTearDown(self):
        await self.api.client.aclose()

    async def test_list_branches_sends_url(self):
        self.backend.on("GET", "/imagebuilder/branches", body=BRANCHES)

        branches = await self.api.imagebuilder.list_branches(REPO_URL)

        self.assertEqual([b.name for b in branches], ["feature-a", "main", "origin/main"])
        self.assertTrue(branches[1].is_current)
        self.assertTrue(branches[2].is_remote)
        request = self.backend.calls("GET", "/imagebuilder/branches")[0]
        self.assertEqual(request.url.params["url"], REPO_URL)

    async def test_rejection_uses_backend_message(self):
        self.backend.on("POST", "/imagebuilder/build-multiple", status=500, body={"error": "disk full"})
        request = BuildMultipleRequest(url=REPO_URL, branch="main", service_paths=["svc-a"], tag="v1", registry="r")

        with self.assertRaises(BackendRejection) as ctx:
            await self.api.imagebuilder.build_multiple(request)

        self.assertEqual(ctx.exception.message, "disk full")
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.error_code, "INTERNAL_ERROR")

    async def test_rejection_without_message_uses_fallback(self):
        self.backend.on("GET", "/imagebuilder/branches", handler=lambda r: httpx.Response(502, text="Bad Gateway"))

        with self.assertRaises(BackendRejection) as ctx:
            await self.api.imagebuilder.list_branches(REPO_URL)

        self.assertEqual(ctx.exception.message, "Failed to fetch repository branches")

    async def test_transport_error_is_network_failure(self):
        self.backend.on("GET", "/repository/list", handler=connection_error)

        with self.assertRaises(NetworkFailure) as ctx:
            await self.api.repositories.list_repositories()

        self.assertNotIsInstance(ctx.exception, BackendRejection)

    async def test_invalid_json_is_protocol_failure(self):
        self.backend.on("GET", "/repository/list", handler=lambda r: httpx.Response(200, text="<html>"))

        with self.assertRaises(ProtocolFailure):
            await self.api.repositories.list_repositories()

    async def test_unexpected_shape_is_protocol_failure(self):
        self.backend.on("GET", "/imagebuilder/branches", body={"branches": [{"isCurrent": True}]})

        with self.assertRaises(ProtocolFailure) as ctx:
            await self.api.imagebuilder.list_branches(REPO_URL)

        self.assertEqual(ctx.exception.message, "Invalid branch data received")

    async def test_detect_changes_wire_format(self):
        self.backend.on(
            "POST",
            "/imagebuilder/detect-changes",
            body={"changedServices": [{"path": "svc-a", "hasDockerfile": True}, {"path": "docs"}]},
        )

        services = await self.api.imagebuilder.detect_changes(
            DetectChangesRequest(url=REPO_URL, base_branch="feature-a", current_branch="main")
        )

        self.assertEqual(
            self.backend.last_json("POST", "/imagebuilder/detect-changes"),
            {"url": REPO_URL, "baseBranch": "feature-a", "currentBranch": "main"},
        )
        self.assertEqual([(s.path, s.has_build_recipe) for s in services], [("svc-a", True), ("docs", False)])

    async def test_null_changed_services_is_empty(self):
        self.backend.on("POST", "/imagebuilder/detect-changes", body={"changedServices": None})

        services = await self.api.imagebuilder.detect_changes(
            DetectChangesRequest(url=REPO_URL, base_branch="a", current_branch="b")
        )

        self.assertEqual(services, [])

    async def test_commits_are_a_bare_array(self):
        self.backend.on(
            "GET",
            "/repository/1/commits",
            body=[{"hash": "abc1234567", "message": "fix", "author": "dev"}, {"hash": "def7654321"}],
        )

        commits = await self.api.repositories.get_branch_commits(1, "main")

        self.assertEqual([c.short_hash for c in commits], ["abc1234", "def7654"])
        self.assertEqual(self.backend.calls("GET", "/repository/1/commits")[0].url.params["branch"], "main")

    async def test_registry_list_accepts_both_shapes(self):
        registry = {"id": 3, "name": "team", "url": "registry.example.com/team"}

        self.backend.on("GET", "/registries", body=[registry])
        self.assertEqual([r.id for r in await self.api.registries.list_registries()], [3])

        self.backend.on("GET", "/registries", body={"registries": [registry]})
        self.assertEqual([r.name for r in await self.api.registries.list_registries()], ["team"])

    async def test_empty_body_on_success(self):
        self.backend.on("POST", "/repository/1/sync", status=204)
        self.assertIsNone(await self.api.repositories.sync_repository(1))


class TestStatusChannelUrl(unittest.IsolatedAsyncioTestCase):
    async def test_http_becomes_ws(self):
        client = ApiClient(base_url="http://backend.test/", transport=httpx.MockTransport(FakeBackend()))
        self.assertEqual(
            RegistryApi(client).status_channel_url(7), "ws://backend.test/registries/7/test-connection-ws"
        )
        await client.aclose()

    async def test_https_becomes_wss(self):
        client = ApiClient(base_url="https://ci.example.com", transport=httpx.MockTransport(FakeBackend()))
        self.assertTrue(RegistryApi(client).status_channel_url(7).startswith("wss://ci.example.com/"))
        await client.aclose()


if __name__ == "__main__":
    unittest.main()
