"""Build Output API files for a single serverless function."""

import json
import re
from typing import Any

from faas_core.exceptions import BuildError
from faas_core.protocols.deploy import ManifestFile

OUTPUT_ROOT = ".vercel/output"

# Top-level ES module syntax cannot run inside the CommonJS adapter
ESM_STATEMENT_RE = re.compile(
    r"^\s*(?:export\s+(?:default\b|\{|\*|const\b|let\b|var\b|function\b|async\b|class\b)"
    r"|import\s+[\w{*])",
    re.MULTILINE,
)

_NODE_ADAPTER = """
// Import the bundled handler
const handlerModule = (() => {
  const module = { exports: {} };
  const exports = module.exports;
  __BUNDLED_CODE__
  return module.exports;
})();

// Get the handler (handle both default export styles)
const handler = handlerModule.default || handlerModule;

// Node.js wrapper for the function runtime
module.exports = async (req, res) => {
  try {
    // Build full URL from Node.js request
    const protocol = req.headers['x-forwarded-proto'] || 'https';
    const host = req.headers['x-forwarded-host'] || req.headers.host || 'localhost';
    const url = `${protocol}://${host}${req.url}`;

    // Collect body for non-GET requests
    let body = null;
    if (req.method !== 'GET' && req.method !== 'HEAD') {
      const chunks = [];
      for await (const chunk of req) {
        chunks.push(chunk);
      }
      if (chunks.length > 0) {
        body = Buffer.concat(chunks);
      }
    }

    // Convert to Web Standard Request
    const webRequest = new Request(url, {
      method: req.method,
      headers: req.headers,
      body: body,
      duplex: 'half',
    });

    // Call the Web Standard handler
    const webResponse = await handler(webRequest);

    // Convert Web Standard Response to Node.js response
    res.statusCode = webResponse.status;
    webResponse.headers.forEach((value, key) => {
      res.setHeader(key, value);
    });

    const responseBody = await webResponse.arrayBuffer();
    res.end(Buffer.from(responseBody));
  } catch (error) {
    console.error('Handler error:', error);
    res.statusCode = 500;
    res.end(JSON.stringify({ error: error.message }));
  }
};
"""


def wrap_handler_for_nodejs(bundled_code: str) -> str:
    """Wrap a Request -> Response handler bundle as a Node ``(req, res)`` function.

    Raises:
        BuildError: If the bundle is an ES module rather than CommonJS
    """
    if ESM_STATEMENT_RE.search(bundled_code):
        raise BuildError("Bundle is an ES module; the Node adapter requires CommonJS output")
    return _NODE_ADAPTER.replace("__BUNDLED_CODE__", bundled_code)


def function_route(function_name: str) -> str:
    return f"/api/{function_name}"


def build_config(function_name: str, cron_schedule: str | None = None) -> dict[str, Any]:
    """The top-level ``config.json``: one route, plus a cron entry if scheduled."""
    route = function_route(function_name)
    config: dict[str, Any] = {
        "version": 3,
        "routes": [{"src": route, "dest": route}],
    }
    if cron_schedule:
        config["crons"] = [{"path": route, "schedule": cron_schedule}]
    return config


def generate_build_output(
    bundled_code: str,
    function_name: str,
    cron_schedule: str | None = None,
    runtime: str = "nodejs24.x",
    launcher_type: str | None = "Nodejs",
    wrap_handler: bool = True,
) -> list[ManifestFile]:
    """Generate the files of a deployment for one function.

    Args:
        bundled_code: Output of the bundler
        function_name: Name used for the route and the function directory
        cron_schedule: Optional five-field cron expression
        runtime: Function runtime identifier
        launcher_type: Launcher for Node runtimes; omitted when None
        wrap_handler: Wrap the bundle in the Node request/response adapter

    Returns:
        config.json, the function's .vc-config.json and its index.js
    """
    func_dir = f"{OUTPUT_ROOT}/functions/api/{function_name}.func"

    vc_config: dict[str, Any] = {"runtime": runtime, "handler": "index.js"}
    if launcher_type:
        vc_config["launcherType"] = launcher_type
    vc_config["supportsResponseStreaming"] = True

    code = wrap_handler_for_nodejs(bundled_code) if wrap_handler else bundled_code

    return [
        ManifestFile(
            file=f"{OUTPUT_ROOT}/config.json",
            data=json.dumps(build_config(function_name, cron_schedule), indent=2).encode(),
        ),
        ManifestFile(
            file=f"{func_dir}/.vc-config.json",
            data=json.dumps(vc_config, indent=2).encode(),
        ),
        ManifestFile(file=f"{func_dir}/index.js", data=code.encode()),
    ]
