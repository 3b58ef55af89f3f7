"""
Tests for the Traefik file-provider routing sink.

Documents are read back with yaml.safe_load, which drops the header comments.
"""

import os
import pytest
import yaml

from supapanel.services.routing import TraefikFileSink, RoutingSpec, PANEL_CONFIG_NAME


def read_yaml(path):
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)


def read_without_timestamp(path):
    with open(path, encoding="utf-8") as f:
        return [line for line in f.read().splitlines() if not line.startswith("# Generated at:")]


@pytest.mark.unit
class TestProjectDocument:

    def test_api_only(self):
        sink = TraefikFileSink("/unused")
        doc = sink.build_project_document("demo", RoutingSpec("api.demo.test", None, 8000, 3000))

        routers = doc['http']['routers']
        assert list(routers) == ["demo-api", "demo-api-http"]
        assert routers["demo-api"]['rule'] == "Host(`api.demo.test`)"
        assert routers["demo-api"]['entryPoints'] == ["websecure"]
        assert routers["demo-api"]['tls'] == {'certResolver': "letsencrypt"}
        assert routers["demo-api"]['priority'] == 10
        assert routers["demo-api-http"]['entryPoints'] == ["web"]
        assert routers["demo-api-http"]['middlewares'] == ["https-redirect"]
        assert routers["demo-api-http"]['priority'] == 5

        service = doc['http']['services']["demo-api"]['loadBalancer']
        assert service['servers'] == [{'url': "http://demo-kong:8000"}]
        assert service['healthCheck']['path'] == "/health"

    def test_api_and_studio(self):
        sink = TraefikFileSink("/unused", cert_resolver="staging")
        doc = sink.build_project_document(
            "demo", RoutingSpec("api.demo.test", "studio.demo.test", 8010, 3010)
        )

        routers = doc['http']['routers']
        assert set(routers) == {"demo-api", "demo-api-http", "demo-studio", "demo-studio-http"}
        assert routers["demo-studio"]['tls']['certResolver'] == "staging"
        services = doc['http']['services']
        assert services["demo-api"]['loadBalancer']['servers'][0]['url'] == "http://demo-kong:8010"
        assert services["demo-studio"]['loadBalancer']['servers'][0]['url'] == "http://demo-studio:3010"
        assert 'healthCheck' not in services["demo-studio"]['loadBalancer']

    def test_redirect_middleware_is_defined(self):
        doc = TraefikFileSink("/unused").build_project_document(
            "demo", RoutingSpec(None, "studio.demo.test", 8000, 3000)
        )
        redirect = doc['http']['middlewares']["https-redirect"]['redirectScheme']
        assert redirect == {'scheme': "https", 'permanent': True}
        assert set(doc['http']['routers']) == {"demo-studio", "demo-studio-http"}


@pytest.mark.integration
@pytest.mark.asyncio
class TestFileSink:

    async def test_render_writes_slug_file(self, routing_sink, dynamic_dir):
        path = await routing_sink.render("demo", RoutingSpec("api.demo.test", None, 8000, 3000))

        assert path == str(dynamic_dir / "demo.yml")
        doc = read_yaml(path)
        assert set(doc['http']['routers']) == {"demo-api", "demo-api-http"}
        assert doc['http']['routers']["demo-api"]['tls']['certResolver'] == "letsencrypt"
        assert not any(name.startswith("demo-studio") for name in doc['http']['routers'])
        assert not os.path.exists(path + ".tmp")

    async def test_render_is_idempotent(self, routing_sink):
        spec = RoutingSpec("api.demo.test", "studio.demo.test", 8000, 3000)

        path = await routing_sink.render("demo", spec)
        first = read_without_timestamp(path)
        await routing_sink.render("demo", spec)

        assert read_without_timestamp(path) == first

    async def test_render_replaces_previous_document(self, routing_sink):
        await routing_sink.render("demo", RoutingSpec("api.demo.test", "studio.demo.test", 8000, 3000))
        path = await routing_sink.render("demo", RoutingSpec("api.demo.test", None, 8000, 3000))

        assert set(read_yaml(path)['http']['routers']) == {"demo-api", "demo-api-http"}

    async def test_clear_leaves_placeholder(self, routing_sink):
        await routing_sink.render("demo", RoutingSpec("api.demo.test", None, 8000, 3000))
        path = await routing_sink.clear("demo")

        # Comment-only file: the slug's file still exists but defines zero routers
        assert os.path.exists(path)
        assert read_yaml(path) is None
        with open(path, encoding="utf-8") as f:
            assert "No custom domain configured" in f.read()

    async def test_render_without_domains_clears(self, routing_sink):
        path = await routing_sink.render("demo", RoutingSpec(None, None, 8000, 3000))
        assert read_yaml(path) is None

    async def test_other_projects_untouched(self, routing_sink, dynamic_dir):
        await routing_sink.render("alpha", RoutingSpec("api.alpha.test", None, 8000, 3000))
        await routing_sink.render("beta", RoutingSpec("api.beta.test", None, 8010, 3010))
        await routing_sink.clear("beta")

        assert "alpha-api" in read_yaml(dynamic_dir / "alpha.yml")['http']['routers']

    async def test_panel_document(self, routing_sink, dynamic_dir):
        path = await routing_sink.render_panel("panel.example.test")

        assert path == str(dynamic_dir / f"{PANEL_CONFIG_NAME}.yml")
        doc = read_yaml(path)
        routers = doc['http']['routers']
        assert routers["supapanel"]['rule'] == "Host(`panel.example.test`)"
        assert routers["supapanel"]['priority'] == 100
        assert routers["supapanel-http"]['priority'] == 50
        assert doc['http']['services']["supapanel"]['loadBalancer']['servers'] == [
            {'url': "http://supapanel-panel:3000"}
        ]

    async def test_clear_panel(self, routing_sink):
        await routing_sink.render_panel("panel.example.test")
        path = await routing_sink.clear_panel()

        with open(path, encoding="utf-8") as f:
            content = f.read()
        assert content.startswith("# SupaPanel Panel Routing\n")
        assert yaml.safe_load(content) is None

    async def test_write_failure_propagates(self, tmp_path):
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("occupied")
        sink = TraefikFileSink(str(blocker))

        with pytest.raises(OSError):
            await sink.render("demo", RoutingSpec("api.demo.test", None, 8000, 3000))
