"""Tests for Build Output file generation."""

import json
import shutil
import subprocess

import pytest

from faas_core.config import Config
from faas_core.deployments.manifest import (
    OUTPUT_ROOT,
    build_config,
    function_route,
    generate_build_output,
    wrap_handler_for_nodejs,
)
from faas_core.exceptions import BuildError

BUNDLE = "module.exports = { default: () => new Response('ok') };"


def files_by_name(files):
    return {f.file: f.data for f in files}


class TestBuildConfig:
    """Tests for the top-level config."""

    def test_single_route(self) -> None:
        """Requests to the function path go to the function."""
        config = build_config("hello")

        assert config["version"] == 3
        assert config["routes"] == [{"src": "/api/hello", "dest": "/api/hello"}]
        assert "crons" not in config

    def test_cron_entry(self) -> None:
        """A schedule adds exactly one cron entry for the function route."""
        config = build_config("report", "0 9 * * *")

        assert config["crons"] == [{"path": "/api/report", "schedule": "0 9 * * *"}]

    def test_function_route(self) -> None:
        """Functions live under /api."""
        assert function_route("hello") == "/api/hello"


class TestGenerateBuildOutput:
    """Tests for generate_build_output."""

    def test_three_files(self) -> None:
        """Output holds the config, the function config and the code."""
        files = files_by_name(generate_build_output(BUNDLE, "hello"))

        assert set(files) == {
            f"{OUTPUT_ROOT}/config.json",
            f"{OUTPUT_ROOT}/functions/api/hello.func/.vc-config.json",
            f"{OUTPUT_ROOT}/functions/api/hello.func/index.js",
        }

    def test_function_config(self) -> None:
        """The function config names the runtime, handler and launcher."""
        files = files_by_name(generate_build_output(BUNDLE, "hello", runtime="nodejs22.x"))
        vc_config = json.loads(files[f"{OUTPUT_ROOT}/functions/api/hello.func/.vc-config.json"])

        assert vc_config == {
            "runtime": "nodejs22.x",
            "handler": "index.js",
            "launcherType": "Nodejs",
            "supportsResponseStreaming": True,
        }

    def test_launcher_omitted(self) -> None:
        """No launcher type is written when none is configured."""
        files = files_by_name(generate_build_output(BUNDLE, "hello", launcher_type=None))
        vc_config = json.loads(files[f"{OUTPUT_ROOT}/functions/api/hello.func/.vc-config.json"])

        assert "launcherType" not in vc_config

    def test_cron_in_config(self) -> None:
        """The schedule reaches config.json."""
        files = files_by_name(generate_build_output(BUNDLE, "report", "*/5 * * * *"))
        config = json.loads(files[f"{OUTPUT_ROOT}/config.json"])

        assert config["crons"] == [{"path": "/api/report", "schedule": "*/5 * * * *"}]

    def test_wrapped_handler(self) -> None:
        """By default the bundle is embedded in the Node adapter."""
        files = files_by_name(generate_build_output(BUNDLE, "hello"))
        code = files[f"{OUTPUT_ROOT}/functions/api/hello.func/index.js"].decode()

        assert BUNDLE in code
        assert "module.exports = async (req, res)" in code

    def test_unwrapped_handler(self) -> None:
        """Without wrapping the bundle is written as-is."""
        files = files_by_name(generate_build_output(BUNDLE, "hello", wrap_handler=False))

        assert files[f"{OUTPUT_ROOT}/functions/api/hello.func/index.js"] == BUNDLE.encode()


class TestWrapHandler:
    """Tests for the Node adapter."""

    def test_placeholder_replaced(self) -> None:
        """The placeholder is replaced by the bundle."""
        code = wrap_handler_for_nodejs("/* bundle */")

        assert "/* bundle */" in code
        assert "__BUNDLED_CODE__" not in code

    @pytest.mark.parametrize(
        "bundle",
        [
            'var handler = () => new Response("ok");\nexport { handler as default };',
            "export default function handler(req) { return new Response('ok'); }",
            'import { x } from "./x.js";\nmodule.exports = x;',
        ],
    )
    def test_es_module_bundle_rejected(self, bundle) -> None:
        """ES module output cannot be embedded in the CommonJS adapter."""
        with pytest.raises(BuildError, match="CommonJS"):
            wrap_handler_for_nodejs(bundle)

    def test_es_module_bundle_rejected_with_default_config(self) -> None:
        """The default deploy settings wrap the bundle, so they reject ES modules too."""
        deploy = Config().deploy
        with pytest.raises(BuildError):
            generate_build_output(
                "export { handler as default };",
                "hello",
                runtime=deploy.runtime,
                launcher_type=deploy.launcher_type,
                wrap_handler=deploy.wrap_handler,
            )

    def test_dynamic_import_allowed(self) -> None:
        """Dynamic import() calls are valid inside CommonJS."""
        code = wrap_handler_for_nodejs("module.exports = { default: () => import('./x.js') };")
        assert "import('./x.js')" in code

    @pytest.mark.skipif(shutil.which("node") is None, reason="node is not installed")
    def test_wrapped_bundle_loads_in_node(self, tmp_path) -> None:
        """A CommonJS bundle wrapped with default settings loads and exports a function."""
        bundle = (
            "var exports_handler = {};\n"
            "function handler(req) { return new Response('ok'); }\n"
            "exports_handler.default = handler;\n"
            "module.exports = exports_handler;\n"
        )
        deploy = Config().deploy
        files = files_by_name(
            generate_build_output(
                bundle,
                "hello",
                runtime=deploy.runtime,
                launcher_type=deploy.launcher_type,
                wrap_handler=deploy.wrap_handler,
            )
        )
        index = tmp_path / "index.js"
        index.write_bytes(files[f"{OUTPUT_ROOT}/functions/api/hello.func/index.js"])

        result = subprocess.run(
            [
                "node",
                "-e",
                f"const h = require({json.dumps(str(index))});"
                "if (typeof h !== 'function') process.exit(3);",
            ],
            capture_output=True,
            text=True,
            timeout=30,
        )
        assert result.returncode == 0, result.stderr
